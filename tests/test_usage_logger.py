"""Tests for background usage logging."""

import logging
from unittest.mock import Mock

from neurativo_pipeline.models import AIResponse, UsageRecord, UsageStats
from neurativo_pipeline.storage import StorageError
from neurativo_pipeline.usage_logger import USAGE_TABLE, UsageLogger


def _response() -> AIResponse:
    return AIResponse(content="ok", usage=UsageStats(input_tokens=100, output_tokens=50, cost=0.0002))


class TestUsageLogger:
    """Tests for UsageLogger."""

    def test_skips_without_actor(self):
        store = Mock()
        usage_logger = UsageLogger(store)

        assert usage_logger.log("generate_quiz", "openai", _response()) is None
        usage_logger.close()

        store.insert.assert_not_called()

    def test_writes_row(self):
        store = Mock()
        usage_logger = UsageLogger(store)

        future = usage_logger.log("generate_quiz", "openai", _response(), actor_id="user-1")
        usage_logger.flush()

        assert future.done()
        store.insert.assert_called_once_with(USAGE_TABLE, {
            "user_id": "user-1",
            "feature": "generate_quiz",
            "provider": "openai",
            "input_tokens": 100,
            "output_tokens": 50,
            "cost": 0.0002,
            "success": True,
            "error_message": None,
        })
        usage_logger.close()

    def test_failed_attempt_recorded(self):
        store = Mock()
        usage_logger = UsageLogger(store)

        usage_logger.log("summarize_content", "claude", AIResponse.failure("Rate limited"), actor_id="u")
        usage_logger.close()

        row = store.insert.call_args[0][1]
        assert row["success"] is False
        assert row["error_message"] == "Rate limited"
        assert row["input_tokens"] == 0

    def test_actor_resolver(self):
        store = Mock()
        usage_logger = UsageLogger(store, actor_resolver=lambda: "resolved-user")

        usage_logger.log("generate_quiz", "mock", _response())
        usage_logger.close()

        assert store.insert.call_args[0][1]["user_id"] == "resolved-user"

    def test_failing_resolver_skips(self, caplog):
        store = Mock()
        resolver = Mock(side_effect=RuntimeError("auth down"))
        usage_logger = UsageLogger(store, actor_resolver=resolver)

        with caplog.at_level(logging.WARNING):
            assert usage_logger.log("generate_quiz", "mock", _response()) is None
        usage_logger.close()

        store.insert.assert_not_called()
        assert "auth down" in caplog.text

    def test_write_failure_is_swallowed(self, caplog):
        store = Mock()
        store.insert.side_effect = StorageError("insert failed: 500")
        usage_logger = UsageLogger(store)

        with caplog.at_level(logging.WARNING, logger="neurativo_pipeline.usage_logger"):
            future = usage_logger.log("generate_quiz", "openai", _response(), actor_id="user-1")
            usage_logger.flush()

        assert future.exception() is None
        assert "Error logging AI usage" in caplog.text
        usage_logger.close()

    def test_shared_executor_not_shut_down(self):
        executor = Mock()
        usage_logger = UsageLogger(Mock(), executor=executor)

        usage_logger.close()

        executor.shutdown.assert_not_called()


class TestUsageRecord:
    """Tests for UsageRecord.from_response()."""

    def test_missing_usage_counts_as_zero(self):
        record = UsageRecord.from_response("u", "generate_quiz", "mock", AIResponse(content="x"))

        assert record.input_tokens == 0
        assert record.cost == 0.0
        assert record.success is True
