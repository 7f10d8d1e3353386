"""Tests for the provider registry and the fallback orchestrator."""

import json
from unittest.mock import Mock, patch

import pytest

from conftest import StubProvider
from neurativo_pipeline.config import AIConfig, PipelineConfig
from neurativo_pipeline.llm_client import MockProvider, OpenAIProvider, create_provider, parse_quiz
from neurativo_pipeline.models import AIResponse, QuizOptions, UsageStats
from neurativo_pipeline.orchestrator import (
    AIOperation,
    FallbackOrchestrator,
    build_orchestrator,
    build_record_store,
)
from neurativo_pipeline.registry import FALLBACK_ORDER, ProviderRegistry
from neurativo_pipeline.storage import JsonlStore
from neurativo_pipeline.usage_logger import USAGE_TABLE


def ok(text: str = "done") -> AIResponse:
    return AIResponse(content=text, usage=UsageStats(10, 20, 0.001))


def failed(message: str = "API Error: 500") -> AIResponse:
    return AIResponse.failure(message)


class TestProviderRegistry:
    """Tests for ProviderRegistry."""

    def test_no_keys_means_mock_only(self):
        registry = ProviderRegistry.from_config(AIConfig())

        assert registry.names() == ["mock"]
        assert registry.active_name == "mock"
        assert isinstance(registry.get("mock"), MockProvider)

    def test_only_keyed_vendors_registered(self):
        registry = ProviderRegistry.from_config(AIConfig(openai_key="sk", gemini_key="g"))

        assert set(registry.names()) == {"mock", "openai", "gemini"}
        assert registry.active_name == "openai"
        assert isinstance(registry.get("openai"), OpenAIProvider)
        assert "claude" not in registry

    def test_unconfigured_active_falls_back_to_mock(self):
        registry = ProviderRegistry.from_config(AIConfig(openai_key="sk", active_provider="claude"))
        assert registry.active_name == "mock"

    def test_read_only(self):
        registry = ProviderRegistry({})
        with pytest.raises(TypeError):
            registry.providers["openai"] = StubProvider("openai")

    def test_fallback_order(self):
        assert FALLBACK_ORDER == ("openai", "claude", "gemini", "aimlapi", "mock")
        registry = ProviderRegistry({
            name: StubProvider(name) for name in ("gemini", "claude", "openai")
        })

        assert registry.fallback_candidate("openai") == "claude"
        assert registry.fallback_candidate("claude") == "openai"
        assert registry.fallback_candidate(None) == "openai"

    def test_no_fallback_when_alone(self):
        registry = ProviderRegistry({})
        assert registry.fallback_candidate("mock") is None

    def test_fallback_skips_unconfigured_vendors_in_order(self):
        registry = ProviderRegistry.from_config(AIConfig(openai_key="sk", aimlapi_key="a"))

        assert registry.fallback_candidate("openai") == "aimlapi"
        assert registry.fallback_candidate("aimlapi") == "openai"

    def test_failing_adapter_setup_is_skipped(self, caplog):
        """One adapter failing to build leaves the others and mock registered."""
        real_create = create_provider

        def create(name, config, session=None):
            if name == "claude":
                raise TypeError("Invalid http_client argument")
            return real_create(name, config, session=session)

        config = AIConfig(openai_key="sk", claude_key="ck", active_provider="claude")
        with patch("neurativo_pipeline.registry.create_provider", side_effect=create):
            registry = ProviderRegistry.from_config(config)

        assert set(registry.names()) == {"mock", "openai"}
        assert registry.active_name == "mock"
        assert "Skipping provider claude" in caplog.text


class TestFallbackOrchestrator:
    """Tests for FallbackOrchestrator.run()."""

    def _orchestrator(self, providers, active="openai", **kwargs):
        registry = ProviderRegistry(providers, active=active)
        return FallbackOrchestrator(registry, **kwargs)

    def test_active_provider_serves(self):
        openai = StubProvider("openai", response=ok("quiz json"))
        claude = StubProvider("claude", response=ok())
        orchestrator = self._orchestrator({"openai": openai, "claude": claude})

        response = orchestrator.summarize_content("text")

        assert response.content == "quiz json"
        assert response.provider == "openai"
        assert claude.calls == []

    def test_fallback_on_raise(self):
        openai = StubProvider("openai", error=RuntimeError("connection reset"))
        claude = StubProvider("claude", response=ok("from claude"))
        usage_logger = Mock()
        orchestrator = self._orchestrator({"openai": openai, "claude": claude}, usage_logger=usage_logger)

        response = orchestrator.generate_quiz("text", QuizOptions(question_count=2))

        assert response.content == "from claude"
        assert response.provider == "claude"
        assert openai.calls == ["generate_quiz"]
        assert claude.calls == ["generate_quiz"]

        first, second = usage_logger.log.call_args_list
        assert first[0][:2] == ("generate_quiz", "openai")
        assert first[0][2].error == "connection reset"
        assert second[0][:2] == ("generate_quiz", "claude")
        assert second[0][2].ok

    def test_fallback_on_error_response(self):
        openai = StubProvider("openai", response=failed("Incorrect API key provided"))
        gemini = StubProvider("gemini", response=ok("from gemini"))
        orchestrator = self._orchestrator({"openai": openai, "gemini": gemini})

        response = orchestrator.summarize_content("text")

        assert response.provider == "gemini"
        assert response.content == "from gemini"

    def test_fallback_to_aimlapi_before_mock(self):
        """With claude and gemini unconfigured, aimlapi is tried ahead of mock."""
        openai = StubProvider("openai", error=RuntimeError("connection reset"))
        aimlapi = StubProvider("aimlapi", response=ok("from aimlapi"))
        mock = StubProvider("mock", response=ok("from mock"))
        orchestrator = self._orchestrator({"openai": openai, "aimlapi": aimlapi, "mock": mock})

        response = orchestrator.summarize_content("text")

        assert response.provider == "aimlapi"
        assert response.content == "from aimlapi"
        assert mock.calls == []

    def test_error_response_returned_when_fallback_on_error_disabled(self):
        openai = StubProvider("openai", response=failed("Incorrect API key provided"))
        claude = StubProvider("claude", response=ok())
        orchestrator = self._orchestrator({"openai": openai, "claude": claude}, fallback_on_error=False)

        response = orchestrator.summarize_content("text")

        assert response.error == "Incorrect API key provided"
        assert claude.calls == []

    def test_raise_still_falls_back_when_fallback_on_error_disabled(self):
        openai = StubProvider("openai", error=RuntimeError("boom"))
        orchestrator = self._orchestrator({"openai": openai}, fallback_on_error=False)

        response = orchestrator.summarize_content("Cells are the basic unit of all known living things.")

        assert response.provider == "mock"
        assert response.ok

    def test_real_provider_failing_lands_on_mock(self):
        openai = StubProvider("openai", response=failed())
        orchestrator = self._orchestrator({"openai": openai})

        response = orchestrator.generate_quiz(
            "Mitochondria produce energy for the cell through respiration.", QuizOptions(question_count=3)
        )

        assert response.provider == "mock"
        assert len(parse_quiz(response.content)["questions"]) == 3

    def test_exactly_one_fallback(self):
        """A failing fallback is returned as is; no third attempt is made."""
        openai = StubProvider("openai", response=failed("first"))
        claude = StubProvider("claude", response=failed("second"))
        mock = StubProvider("mock", response=ok())
        orchestrator = self._orchestrator({"openai": openai, "claude": claude, "mock": mock})

        response = orchestrator.summarize_content("text")

        assert response.error == "second"
        assert response.provider == "claude"
        assert mock.calls == []

    def test_raising_fallback_becomes_error_response(self):
        openai = StubProvider("openai", error=RuntimeError("first"))
        claude = StubProvider("claude", error=ValueError("second"))
        orchestrator = self._orchestrator({"openai": openai, "claude": claude})

        response = orchestrator.summarize_content("text")

        assert response.error == "second"
        assert response.provider == "claude"

    def test_no_fallback_available(self):
        mock = StubProvider("mock", error=RuntimeError("mock broke"))
        orchestrator = self._orchestrator({"mock": mock}, active="mock")

        response = orchestrator.summarize_content("text")

        assert response.error == "mock broke"
        assert response.content == ""

    def test_unknown_active_provider(self):
        orchestrator = self._orchestrator({}, active_provider="nope")

        response = orchestrator.summarize_content("text")

        assert response.error == "No AI provider available. Active: nope"

    def test_actor_id_forwarded(self):
        usage_logger = Mock()
        orchestrator = self._orchestrator(
            {"openai": StubProvider("openai", response=ok())}, usage_logger=usage_logger, actor_id="default-user"
        )

        orchestrator.summarize_content("text")
        orchestrator.summarize_content("text", actor_id="request-user")

        assert usage_logger.log.call_args_list[0][1]["actor_id"] == "default-user"
        assert usage_logger.log.call_args_list[1][1]["actor_id"] == "request-user"

    def test_operation_by_feature_name(self):
        orchestrator = self._orchestrator({"openai": StubProvider("openai", response=ok())})
        response = orchestrator.run("generate_learning_path", "Learn Go", "2 weeks", "easy")
        assert response.ok

    def test_operation_names(self):
        assert [op.value for op in AIOperation] == [
            "generate_quiz", "generate_explanation", "summarize_content", "generate_learning_path",
        ]


class TestBuildOrchestrator:
    """Tests for build_orchestrator() and build_record_store()."""

    def test_without_store(self):
        orchestrator = build_orchestrator(config=AIConfig(), pipeline_config=PipelineConfig())

        assert orchestrator.available_providers() == ["mock"]
        assert orchestrator.usage_logger is None

    def test_record_store_selection(self, tmp_path):
        assert build_record_store(PipelineConfig()) is None
        assert isinstance(build_record_store(PipelineConfig(usage_log_dir=str(tmp_path))), JsonlStore)

    def test_usage_rows_written(self, tmp_path):
        store = JsonlStore(tmp_path)
        orchestrator = build_orchestrator(
            config=AIConfig(), pipeline_config=PipelineConfig(), store=store, actor_id="user-9"
        )

        orchestrator.generate_learning_path("Learn SQL", "1 month", "medium")
        orchestrator.usage_logger.close()

        with open(store.path_for(USAGE_TABLE), encoding="utf-8") as f:
            rows = [json.loads(line) for line in f]
        assert len(rows) == 1
        assert rows[0]["user_id"] == "user-9"
        assert rows[0]["feature"] == "generate_learning_path"
        assert rows[0]["provider"] == "mock"
        assert rows[0]["success"] is True
        assert rows[0]["cost"] == 0.0
