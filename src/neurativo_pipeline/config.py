# -*- coding: utf-8 -*-
"""
Centralized configuration for the Neurativo content pipeline.

Two dataclasses control runtime behavior:
- PipelineConfig: ingestion limits (timeouts, word and page caps) and
  optional persistence targets.
- AIConfig: provider credentials, models and the active provider name.

Both are read from the environment. AIConfig can additionally be merged
with a remote override fetched once at startup.
"""

import logging
import os
from dataclasses import dataclass, field, replace
from typing import Any, Mapping, Optional

logger = logging.getLogger(__name__)

# Providers the registry knows how to build, in fallback preference order.
PROVIDER_NAMES = ("openai", "claude", "gemini", "aimlapi", "mock")

_TRUE_VALUES = {"1", "true", "yes", "on"}


def _env_bool(value: Optional[str], default: bool) -> bool:
    if value is None or value.strip() == "":
        return default
    return value.strip().lower() in _TRUE_VALUES


def _env_float(value: Optional[str], default: float) -> float:
    if not value:
        return default
    try:
        return float(value)
    except ValueError:
        logger.warning(f"Ignoring non-numeric value {value!r}, using {default}")
        return default


@dataclass
class PipelineConfig:
    """
    Limits and collaborators of the ingestion pipeline.

    Attributes:
        fetch_timeout: Hard ceiling in seconds for fetching a URL.
        min_extracted_chars: Extracted web content shorter than this is rejected.
        max_document_words: Documents above this word count are rejected
            (about 3 pages).
        min_document_chars: Cleaned documents shorter than this are rejected.
        words_per_page: Used to estimate a document's page count.
        max_pages: Cap applied to the estimated page count.
        supabase_url / supabase_key: Optional REST target for usage logs,
            persisted content and the remote AI config.
        usage_log_dir: Optional local directory for JSONL record storage
            when Supabase is not configured.
    """

    fetch_timeout: float = 30.0
    min_extracted_chars: int = 50
    max_document_words: int = 4500
    min_document_chars: int = 100
    words_per_page: int = 250
    max_pages: int = 3

    supabase_url: Optional[str] = None
    supabase_key: Optional[str] = None
    usage_log_dir: Optional[str] = None

    @property
    def has_supabase(self) -> bool:
        return bool(self.supabase_url and self.supabase_key)

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "PipelineConfig":
        env = os.environ if environ is None else environ
        return cls(
            fetch_timeout=_env_float(env.get("FETCH_TIMEOUT"), 30.0),
            supabase_url=env.get("SUPABASE_URL") or None,
            supabase_key=env.get("SUPABASE_SERVICE_KEY") or env.get("SUPABASE_ANON_KEY") or None,
            usage_log_dir=env.get("USAGE_LOG_DIR") or None,
        )


@dataclass(frozen=True)
class ProviderCredentials:
    """Connection settings for one vendor adapter."""
    api_key: str
    model: str
    base_url: Optional[str] = None


@dataclass(frozen=True)
class AIConfig:
    """
    Provider configuration, built once at startup.

    Attributes:
        openai_key / claude_key / gemini_key / aimlapi_key: Vendor API keys.
            A vendor without a key is not registered.
        active_provider: Name of the provider serving requests. Falls back
            to "mock" when that provider has no credentials.
        models: Optional per-vendor model overrides.
        base_urls: Optional per-vendor base URL overrides.
        request_timeout: Seconds allowed for one provider call.
        fallback_on_error: Whether an error response (not only a raised
            exception) from the active provider triggers the fallback attempt.
    """

    openai_key: Optional[str] = None
    claude_key: Optional[str] = None
    gemini_key: Optional[str] = None
    aimlapi_key: Optional[str] = None
    active_provider: str = "openai"
    models: Mapping[str, str] = field(default_factory=dict)
    base_urls: Mapping[str, str] = field(default_factory=dict)
    request_timeout: float = 60.0
    fallback_on_error: bool = True

    def api_key_for(self, provider: str) -> Optional[str]:
        return getattr(self, f"{provider}_key", None) or None

    def credentials_for(self, provider: str, default_model: str) -> Optional[ProviderCredentials]:
        """Return credentials for a vendor, or None when it has no key."""
        api_key = self.api_key_for(provider)
        if not api_key:
            return None
        return ProviderCredentials(
            api_key=api_key,
            model=self.models.get(provider) or default_model,
            base_url=self.base_urls.get(provider),
        )

    @property
    def configured_providers(self) -> list[str]:
        return [name for name in PROVIDER_NAMES if name != "mock" and self.api_key_for(name)]

    def with_overrides(self, overrides: Optional[Mapping[str, Any]]) -> "AIConfig":
        """
        Merge a remote configuration mapping over this config.

        Recognized keys: openai_key, claude_key, gemini_key, aimlapi_key,
        active_provider, models, fallback_on_error. Empty values are ignored.
        """
        if not isinstance(overrides, Mapping) or not overrides:
            return self
        changes: dict[str, Any] = {}
        for key in ("openai_key", "claude_key", "gemini_key", "aimlapi_key", "active_provider"):
            value = overrides.get(key)
            if value:
                changes[key] = str(value)
        if isinstance(overrides.get("models"), Mapping):
            changes["models"] = {**self.models, **overrides["models"]}
        if "fallback_on_error" in overrides:
            changes["fallback_on_error"] = bool(overrides["fallback_on_error"])
        return replace(self, **changes)

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "AIConfig":
        env = os.environ if environ is None else environ
        models = {
            name: env[f"{name.upper()}_MODEL"]
            for name in ("openai", "claude", "gemini", "aimlapi")
            if env.get(f"{name.upper()}_MODEL")
        }
        base_urls = {}
        if env.get("OPENAI_BASE_URL"):
            base_urls["openai"] = env["OPENAI_BASE_URL"]
        if env.get("AIMLAPI_BASE_URL"):
            base_urls["aimlapi"] = env["AIMLAPI_BASE_URL"]
        return cls(
            openai_key=env.get("OPENAI_API_KEY") or None,
            claude_key=env.get("CLAUDE_API_KEY") or env.get("ANTHROPIC_API_KEY") or None,
            gemini_key=env.get("GEMINI_API_KEY") or None,
            aimlapi_key=env.get("AIMLAPI_API_KEY") or None,
            active_provider=(env.get("ACTIVE_AI_PROVIDER") or "openai").strip().lower(),
            models=models,
            base_urls=base_urls,
            request_timeout=_env_float(env.get("AI_REQUEST_TIMEOUT"), 60.0),
            fallback_on_error=_env_bool(env.get("AI_FALLBACK_ON_ERROR"), True),
        )


def load_ai_config(
    environ: Optional[Mapping[str, str]] = None,
    remote=None,
) -> AIConfig:
    """
    Load the AI configuration from the environment plus a remote override.

    Args:
        environ: Environment mapping. Defaults to os.environ.
        remote: Optional object with a ``get_setting(key)`` method (such as
            storage.SupabaseRestStore). Queried once for ``ai_config``.

    Returns:
        The merged AIConfig. Remote failures leave the env config in place.
    """
    config = AIConfig.from_env(environ)
    if remote is not None:
        try:
            overrides = remote.get_setting("ai_config")
        except Exception as e:
            logger.warning(f"Could not fetch remote AI config, using environment: {e}")
        else:
            if overrides:
                config = config.with_overrides(overrides)
    logger.info(
        f"AI config loaded: active={config.active_provider}, "
        f"configured={config.configured_providers}"
    )
    return config
