"""
Provider registry.

Built once from an AIConfig and read-only afterwards, so it can be shared
across concurrent requests. The mock provider is always registered; each
vendor is registered only when it has a key.
"""

import logging
from types import MappingProxyType
from typing import Iterable, Mapping, Optional

import requests

from .config import AIConfig, PROVIDER_NAMES
from .llm_client import AIProvider, MockProvider, create_provider

logger = logging.getLogger(__name__)

# Order in which a replacement provider is chosen after a failure
FALLBACK_ORDER = PROVIDER_NAMES


class ProviderRegistry:
    """
    Immutable name -> provider mapping plus the active provider name.

    Args:
        providers: Provider instances keyed by name.
        active: Requested active provider. Replaced by "mock" (with a
            warning) when it is not registered.
    """

    def __init__(self, providers: Mapping[str, AIProvider], active: Optional[str] = None):
        members = dict(providers)
        members.setdefault("mock", MockProvider())
        self._providers = MappingProxyType(members)

        if active and active in self._providers:
            self._active = active
        else:
            if active:
                logger.warning(
                    f"Active provider {active!r} is not configured; "
                    f"falling back to mock (available: {self.names()})"
                )
            self._active = "mock"

    @classmethod
    def from_config(
        cls, config: AIConfig, session: Optional[requests.Session] = None
    ) -> "ProviderRegistry":
        """Build the registry from configuration: mock always, vendors with keys."""
        providers: dict[str, AIProvider] = {"mock": MockProvider()}
        for name in FALLBACK_ORDER:
            if name == "mock":
                continue
            try:
                provider = create_provider(name, config, session=session)
            except Exception as e:
                logger.warning(f"Skipping provider {name}: adapter setup failed: {e}")
                continue
            if provider is not None:
                providers[name] = provider
        registry = cls(providers, active=config.active_provider)
        logger.info(f"Provider registry: {registry.names()} (active: {registry.active_name})")
        return registry

    @property
    def providers(self) -> Mapping[str, AIProvider]:
        return self._providers

    @property
    def active_name(self) -> str:
        return self._active

    def get(self, name: str) -> Optional[AIProvider]:
        return self._providers.get(name)

    def names(self) -> list[str]:
        return list(self._providers.keys())

    def __contains__(self, name: object) -> bool:
        return name in self._providers

    def __len__(self) -> int:
        return len(self._providers)

    def fallback_candidate(self, exclude: Optional[str], order: Iterable[str] = FALLBACK_ORDER) -> Optional[str]:
        """Name of the first registered provider in fallback order other than ``exclude``."""
        excluded = self._providers.get(exclude) if exclude else None
        for name in order:
            provider = self._providers.get(name)
            if provider is not None and name != exclude and provider is not excluded:
                return name
        return None
