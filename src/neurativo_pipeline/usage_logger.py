"""
Fire-and-forget accounting of AI usage.

Each provider attempt becomes one ai_usage_logs row. Writes run on a
background thread so the caller never waits for them, and a failed write
is logged and dropped; it never reaches the caller.
"""

import logging
from concurrent.futures import Future, ThreadPoolExecutor, wait
from threading import Lock
from typing import Callable, Optional

from .models import AIResponse, UsageRecord
from .storage import RecordStore

logger = logging.getLogger(__name__)

USAGE_TABLE = "ai_usage_logs"

ActorResolver = Callable[[], Optional[str]]


class UsageLogger:
    """
    Records AI usage rows in a record store.

    Args:
        store: Where rows are written.
        actor_resolver: Optional callable returning the current user id.
            Used when log() is called without an explicit actor.
        executor: Optional executor for the writes (a single-worker
            ThreadPoolExecutor is created when omitted).
    """

    def __init__(
        self,
        store: RecordStore,
        actor_resolver: Optional[ActorResolver] = None,
        executor: Optional[ThreadPoolExecutor] = None,
    ):
        self.store = store
        self.actor_resolver = actor_resolver
        self._owns_executor = executor is None
        self._executor = executor or ThreadPoolExecutor(max_workers=1, thread_name_prefix="usage-log")
        self._pending: set[Future] = set()
        self._lock = Lock()

    def _resolve_actor(self, actor_id: Optional[str]) -> Optional[str]:
        if actor_id:
            return actor_id
        if self.actor_resolver is None:
            return None
        try:
            return self.actor_resolver()
        except Exception as e:
            logger.warning(f"Could not resolve user for usage logging: {e}")
            return None

    def _write(self, record: UsageRecord) -> None:
        try:
            self.store.insert(USAGE_TABLE, record.to_row())
        except Exception as e:
            logger.warning(f"Error logging AI usage ({record.feature} via {record.provider}): {e}")

    def _forget(self, future: Future) -> None:
        with self._lock:
            self._pending.discard(future)

    def log(
        self,
        feature: str,
        provider: str,
        response: AIResponse,
        actor_id: Optional[str] = None,
    ) -> Optional[Future]:
        """
        Queue one usage row and return immediately.

        Returns:
            The Future of the background write, or None when skipped
            because no user is known.
        """
        actor = self._resolve_actor(actor_id)
        if not actor:
            logger.debug(f"Skipping usage log for {feature}: no user")
            return None

        record = UsageRecord.from_response(actor, feature, provider, response)
        future = self._executor.submit(self._write, record)
        with self._lock:
            self._pending.add(future)
        future.add_done_callback(self._forget)
        return future

    def flush(self, timeout: Optional[float] = None) -> None:
        """Wait for queued writes to finish."""
        with self._lock:
            pending = list(self._pending)
        if pending:
            wait(pending, timeout=timeout)

    def close(self) -> None:
        """Flush and shut down the executor it owns."""
        self.flush()
        if self._owns_executor:
            self._executor.shutdown(wait=True)
