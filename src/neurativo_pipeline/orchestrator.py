"""
Fallback orchestration of AI operations.

The orchestrator sends each request to the active provider. When that
provider raises (or, with fallback_on_error, answers with an error), it
makes exactly one more attempt on the first other registered provider in
FALLBACK_ORDER. Every attempt is reported to the usage logger. Callers
always get an AIResponse back; nothing is raised.
"""

import logging
from enum import Enum
from typing import Any, Optional

import requests

from .config import AIConfig, PipelineConfig, load_ai_config
from .models import AIResponse, QuizOptions
from .registry import ProviderRegistry
from .storage import JsonlStore, RecordStore, SupabaseRestStore
from .usage_logger import UsageLogger

logger = logging.getLogger(__name__)


class AIOperation(Enum):
    """AI operations; the value is the feature name recorded in usage logs."""
    GENERATE_QUIZ = "generate_quiz"
    GENERATE_EXPLANATION = "generate_explanation"
    SUMMARIZE_CONTENT = "summarize_content"
    GENERATE_LEARNING_PATH = "generate_learning_path"


class FallbackOrchestrator:
    """
    Runs AI operations against a fixed registry snapshot.

    Args:
        registry: The provider registry.
        usage_logger: Optional usage logger notified after every attempt.
        active_provider: Provider to try first. Defaults to the registry's
            active provider.
        fallback_on_error: Also fall back when the active provider returns
            an error response instead of raising.
        actor_id: Default user id attached to usage records.
    """

    def __init__(
        self,
        registry: ProviderRegistry,
        usage_logger: Optional[UsageLogger] = None,
        active_provider: Optional[str] = None,
        fallback_on_error: bool = True,
        actor_id: Optional[str] = None,
    ):
        self.registry = registry
        self.usage_logger = usage_logger
        self.active_provider = active_provider or registry.active_name
        self.fallback_on_error = fallback_on_error
        self.actor_id = actor_id

    def available_providers(self) -> list[str]:
        return self.registry.names()

    def _report(self, operation: AIOperation, provider: str, response: AIResponse, actor_id: Optional[str]) -> None:
        if self.usage_logger is not None:
            self.usage_logger.log(operation.value, provider, response, actor_id=actor_id or self.actor_id)

    def _attempt(self, operation: AIOperation, provider_name: str, args: tuple, kwargs: dict) -> AIResponse:
        provider = self.registry.get(provider_name)
        response = getattr(provider, operation.value)(*args, **kwargs)
        if response.provider is None:
            response.provider = provider_name
        return response

    def run(self, operation: AIOperation, *args: Any, actor_id: Optional[str] = None, **kwargs: Any) -> AIResponse:
        """
        Run one operation with at most one fallback attempt.

        Args:
            operation: The AIOperation (or its feature name).
            *args / **kwargs: Passed to the provider method.
            actor_id: User id for usage accounting (overrides the default).

        Returns:
            The AIResponse of the provider that served the request.
        """
        operation = AIOperation(operation)
        active = self.active_provider
        if self.registry.get(active) is None:
            logger.error(f"No AI provider available. Active: {active}, available: {self.registry.names()}")
            return AIResponse.failure(f"No AI provider available. Active: {active}")

        failure: Optional[str] = None
        try:
            response = self._attempt(operation, active, args, kwargs)
        except Exception as e:
            logger.error(f"{operation.value} failed on {active}: {e}")
            failure = str(e) or "Unknown error"
            self._report(operation, active, AIResponse.failure(failure, provider=active), actor_id)
        else:
            self._report(operation, active, response, actor_id)
            if not (self.fallback_on_error and response.error):
                return response
            failure = response.error

        fallback = self.registry.fallback_candidate(active)
        if fallback is None:
            return AIResponse.failure(failure, provider=active)

        logger.warning(f"{operation.value} failed on {active} ({failure}); falling back to {fallback}")
        try:
            response = self._attempt(operation, fallback, args, kwargs)
        except Exception as e:
            logger.error(f"{operation.value} fallback on {fallback} failed: {e}")
            response = AIResponse.failure(str(e) or "Unknown error", provider=fallback)
        self._report(operation, fallback, response, actor_id)
        return response

    def generate_quiz(self, content: str, options: QuizOptions, actor_id: Optional[str] = None) -> AIResponse:
        return self.run(AIOperation.GENERATE_QUIZ, content, options, actor_id=actor_id)

    def generate_explanation(
        self,
        question: str,
        user_answer: str,
        correct_answer: str,
        simple: bool = False,
        actor_id: Optional[str] = None,
    ) -> AIResponse:
        return self.run(
            AIOperation.GENERATE_EXPLANATION, question, user_answer, correct_answer, simple,
            actor_id=actor_id,
        )

    def summarize_content(self, content: str, actor_id: Optional[str] = None) -> AIResponse:
        return self.run(AIOperation.SUMMARIZE_CONTENT, content, actor_id=actor_id)

    def generate_learning_path(
        self, goal: str, timeframe: str, difficulty: str, actor_id: Optional[str] = None
    ) -> AIResponse:
        return self.run(AIOperation.GENERATE_LEARNING_PATH, goal, timeframe, difficulty, actor_id=actor_id)


def build_record_store(
    pipeline_config: PipelineConfig, session: Optional[requests.Session] = None
) -> Optional[RecordStore]:
    """Supabase when configured, else a JSONL directory when configured, else None."""
    if pipeline_config.has_supabase:
        return SupabaseRestStore(pipeline_config.supabase_url, pipeline_config.supabase_key, session=session)
    if pipeline_config.usage_log_dir:
        return JsonlStore(pipeline_config.usage_log_dir)
    return None


def build_orchestrator(
    config: Optional[AIConfig] = None,
    pipeline_config: Optional[PipelineConfig] = None,
    store: Optional[RecordStore] = None,
    actor_id: Optional[str] = None,
    session: Optional[requests.Session] = None,
) -> FallbackOrchestrator:
    """
    Build a ready orchestrator.

    Args:
        config: AI configuration. Loaded from the environment (plus the
            remote Supabase override when available) when omitted.
        pipeline_config: Supplies the record store settings.
        store: Record store for usage logs; derived from pipeline_config
            when omitted.
        actor_id: Default user id for usage records.
        session: Optional requests session shared by the HTTP adapters.

    Returns:
        FallbackOrchestrator bound to a registry snapshot.
    """
    pipeline_config = pipeline_config or PipelineConfig.from_env()
    if store is None:
        store = build_record_store(pipeline_config, session=session)
    if config is None:
        remote = store if isinstance(store, SupabaseRestStore) else None
        config = load_ai_config(remote=remote)

    registry = ProviderRegistry.from_config(config, session=session)
    usage_logger = UsageLogger(store) if store is not None else None
    return FallbackOrchestrator(
        registry,
        usage_logger=usage_logger,
        fallback_on_error=config.fallback_on_error,
        actor_id=actor_id,
    )
