"""
Record stores for usage logs, persisted content and remote settings.

SupabaseRestStore talks to a Supabase project over its PostgREST and auth
HTTP APIs with requests. JsonlStore appends rows to local JSON Lines files
and is used when no Supabase project is configured.
"""

import json
import logging
import threading
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Optional, Union

import requests

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 10.0


class StorageError(Exception):
    """Raised when a record cannot be written or read."""
    pass


class RecordStore(ABC):
    """Anything that can insert a row into a named table."""

    @abstractmethod
    def insert(self, table: str, row: dict[str, Any]) -> None:
        """Insert one row. Raises StorageError on failure."""


class SupabaseRestStore(RecordStore):
    """
    Supabase project accessed over HTTP.

    Args:
        url: Project URL, e.g. https://xyz.supabase.co
        key: Service-role or anon key.
        session: Optional requests session.
        timeout: Seconds per request.
    """

    def __init__(
        self,
        url: str,
        key: str,
        session: Optional[requests.Session] = None,
        timeout: float = DEFAULT_TIMEOUT,
    ):
        if not url or not key:
            raise StorageError("Supabase URL and key are required")
        self.url = url.rstrip("/")
        self.key = key
        self.session = session or requests.Session()
        self.timeout = timeout

    def _headers(self, token: Optional[str] = None) -> dict[str, str]:
        return {
            "apikey": self.key,
            "Authorization": f"Bearer {token or self.key}",
            "Content-Type": "application/json",
        }

    def insert(self, table: str, row: dict[str, Any]) -> None:
        headers = self._headers()
        headers["Prefer"] = "return=minimal"
        try:
            response = self.session.post(
                f"{self.url}/rest/v1/{table}",
                headers=headers,
                data=json.dumps(row, default=str),
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise StorageError(f"Insert into {table} failed: {e}") from e
        if response.status_code >= 400:
            raise StorageError(
                f"Insert into {table} failed: {response.status_code} {response.text[:200]}"
            )

    def get_setting(self, key: str) -> Optional[Any]:
        """
        Read one value from the admin_settings table.

        Values are stored as JSON strings; non-JSON values are returned as is.
        Returns None when the setting doesn't exist.
        """
        try:
            response = self.session.get(
                f"{self.url}/rest/v1/admin_settings",
                headers=self._headers(),
                params={"select": "value", "key": f"eq.{key}"},
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise StorageError(f"Reading setting {key} failed: {e}") from e
        if response.status_code >= 400:
            raise StorageError(f"Reading setting {key} failed: {response.status_code}")

        rows = response.json()
        if not rows:
            return None
        value = rows[0].get("value")
        if isinstance(value, str):
            try:
                return json.loads(value)
            except json.JSONDecodeError:
                return value
        return value

    def get_user(self, token: str) -> Optional[dict[str, Any]]:
        """Resolve an access token to its user, or None when it is not valid."""
        if not token:
            return None
        try:
            response = self.session.get(
                f"{self.url}/auth/v1/user",
                headers=self._headers(token),
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise StorageError(f"User lookup failed: {e}") from e
        if response.status_code != 200:
            logger.debug(f"Token rejected by auth API: {response.status_code}")
            return None
        return response.json()


class JsonlStore(RecordStore):
    """Append-only JSON Lines files, one per table, under a directory."""

    def __init__(self, directory: Union[str, Path]):
        self.directory = Path(directory)
        self._lock = threading.Lock()

    def path_for(self, table: str) -> Path:
        return self.directory / f"{table}.jsonl"

    def insert(self, table: str, row: dict[str, Any]) -> None:
        try:
            with self._lock:
                self.directory.mkdir(parents=True, exist_ok=True)
                with open(self.path_for(table), "a", encoding="utf-8") as f:
                    f.write(json.dumps(row, default=str, ensure_ascii=False) + "\n")
        except (OSError, TypeError, ValueError) as e:
            raise StorageError(f"Writing to {self.path_for(table)} failed: {e}") from e
