"""Tests for provider adapters, JSON extraction and prompts."""

import json
from unittest.mock import Mock

import anthropic
import httpx
import pytest
import requests

from conftest import make_http_response
from neurativo_pipeline.config import AIConfig
from neurativo_pipeline.llm_client import (
    AIMLAPIProvider,
    ClaudeProvider,
    GeminiProvider,
    LLMClientError,
    MockProvider,
    OpenAIProvider,
    QuizParseError,
    calculate_cost,
    create_provider,
    extract_json,
    parse_quiz,
)
from neurativo_pipeline.models import QuizOptions
from neurativo_pipeline.prompts import (
    SYSTEM_PROMPT,
    build_explanation_prompt,
    build_quiz_prompt,
)

CONTENT = (
    "Photosynthesis converts light energy into chemical energy. "
    "Chloroplasts contain chlorophyll pigments."
)

OPENAI_OK = {
    "choices": [{"message": {"content": '{"title": "Quiz", "questions": []}'}}],
    "usage": {"prompt_tokens": 1000, "completion_tokens": 500},
}


def _session(response=None, error=None) -> Mock:
    session = Mock()
    if error is not None:
        session.post.side_effect = error
    else:
        session.post.return_value = response
    return session


class TestOpenAIProvider:
    """Tests for the OpenAI adapter."""

    def test_success(self):
        session = _session(make_http_response(200, OPENAI_OK))
        provider = OpenAIProvider("sk-test", session=session)

        response = provider.generate_quiz(CONTENT, QuizOptions(question_count=3))

        assert response.ok
        assert response.content == '{"title": "Quiz", "questions": []}'
        assert response.provider == "openai"
        assert response.usage.input_tokens == 1000
        assert response.usage.output_tokens == 500
        assert response.usage.cost == pytest.approx(0.002)

    def test_request_shape(self):
        session = _session(make_http_response(200, OPENAI_OK))
        OpenAIProvider("sk-test", session=session).summarize_content(CONTENT)

        args, kwargs = session.post.call_args
        assert args[0] == "https://api.openai.com/v1/chat/completions"
        assert kwargs["headers"]["Authorization"] == "Bearer sk-test"
        assert kwargs["timeout"] == 60.0
        payload = kwargs["json"]
        assert payload["model"] == "gpt-3.5-turbo"
        assert payload["max_tokens"] == 3000
        assert payload["response_format"] == {"type": "json_object"}
        assert payload["messages"][0] == {"role": "system", "content": SYSTEM_PROMPT}
        assert CONTENT in payload["messages"][1]["content"]

    def test_vendor_error_message(self):
        """The vendor's own message is passed through."""
        session = _session(make_http_response(401, {"error": {"message": "Incorrect API key provided"}}))

        response = OpenAIProvider("sk-bad", session=session).summarize_content(CONTENT)

        assert response.content == ""
        assert response.error == "Incorrect API key provided"
        assert response.provider == "openai"

    def test_status_without_body(self):
        session = _session(make_http_response(503, None, text="Service Unavailable"))
        response = OpenAIProvider("sk-test", session=session).summarize_content(CONTENT)
        assert response.error == "API Error: 503"

    @pytest.mark.parametrize("json_data", [None, {"unexpected": True}, {"choices": []}])
    def test_malformed_body(self, json_data):
        session = _session(make_http_response(200, json_data))
        response = OpenAIProvider("sk-test", session=session).summarize_content(CONTENT)
        assert response.error == "Invalid response format from OpenAI"

    def test_timeout_is_an_error_response(self):
        session = _session(error=requests.Timeout("read timeout"))

        response = OpenAIProvider("sk-test", session=session, timeout=5).summarize_content(CONTENT)

        assert response.error == "OpenAI request timed out after 5s"
        session.post.assert_called_once()

    def test_requires_key(self):
        with pytest.raises(LLMClientError):
            OpenAIProvider("")


class TestOtherHttpProviders:
    """Tests for the Gemini and AIMLAPI adapters."""

    def test_gemini(self):
        session = _session(make_http_response(200, {
            "candidates": [{"content": {"parts": [{"text": "Gemini summary"}]}}],
            "usageMetadata": {"promptTokenCount": 2000, "candidatesTokenCount": 1000},
        }))

        response = GeminiProvider("g-key", session=session).summarize_content(CONTENT)

        assert response.content == "Gemini summary"
        assert response.usage.cost == pytest.approx(0.0025)
        args, kwargs = session.post.call_args
        assert args[0] == "https://generativelanguage.googleapis.com/v1beta/models/gemini-pro:generateContent"
        assert kwargs["params"] == {"key": "g-key"}
        assert kwargs["json"]["generationConfig"]["maxOutputTokens"] == 2000

    def test_gemini_missing_candidates(self):
        session = _session(make_http_response(200, {"candidates": []}))
        response = GeminiProvider("g-key", session=session).summarize_content(CONTENT)
        assert response.error == "Invalid response format from Gemini"

    def test_aimlapi(self):
        session = _session(make_http_response(200, OPENAI_OK))

        response = AIMLAPIProvider("a-key", session=session).summarize_content(CONTENT)

        assert response.provider == "aimlapi"
        args, kwargs = session.post.call_args
        assert args[0] == "https://samuraiapi.in/v1/chat/completions"
        payload = kwargs["json"]
        assert payload["model"] == "gpt-4o"
        assert payload["max_tokens"] == 2000
        assert "response_format" not in payload
        assert len(payload["messages"]) == 1
        assert payload["messages"][0]["content"].startswith(SYSTEM_PROMPT)


class TestClaudeProvider:
    """Tests for the Anthropic adapter with the SDK client mocked."""

    def test_success(self):
        client = Mock()
        client.messages.create.return_value = Mock(
            content=[Mock(text="Claude summary")],
            usage=Mock(input_tokens=1000, output_tokens=1000),
        )

        response = ClaudeProvider("ck", client=client).summarize_content(CONTENT)

        assert response.content == "Claude summary"
        assert response.usage.cost == pytest.approx(0.018)
        kwargs = client.messages.create.call_args[1]
        assert kwargs["model"] == "claude-3-sonnet-20240229"
        assert kwargs["max_tokens"] == 2000

    def test_status_error_message(self):
        request = httpx.Request("POST", "https://api.anthropic.com/v1/messages")
        client = Mock()
        client.messages.create.side_effect = anthropic.APIStatusError(
            "rate limited",
            response=httpx.Response(429, request=request),
            body={"error": {"type": "rate_limit_error", "message": "Rate limited"}},
        )

        response = ClaudeProvider("ck", client=client).summarize_content(CONTENT)

        assert response.error == "Rate limited"
        assert response.provider == "claude"

    def test_connection_error(self):
        request = httpx.Request("POST", "https://api.anthropic.com/v1/messages")
        client = Mock()
        client.messages.create.side_effect = anthropic.APIConnectionError(request=request)

        response = ClaudeProvider("ck", client=client).summarize_content(CONTENT)

        assert response.error.startswith("Claude request failed")

    def test_empty_content(self):
        client = Mock()
        client.messages.create.return_value = Mock(content=[], usage=None)

        response = ClaudeProvider("ck", client=client).summarize_content(CONTENT)

        assert response.error == "Invalid response format from Claude"


class TestMockProvider:
    """Tests for the local mock provider."""

    def test_true_false_quiz(self):
        options = QuizOptions(question_count=2, question_type="true_false")

        response = MockProvider().generate_quiz(CONTENT, options)
        quiz = parse_quiz(response.content)

        assert response.usage.cost == 0.0
        assert len(quiz["questions"]) == 2
        first = quiz["questions"][0]
        assert first["type"] == "true_false"
        assert first["options"] == ["True", "False"]
        assert first["correct_answer"] == "True"
        assert first["question"] == (
            "True or False: Photosynthesis converts light energy into chemical energy."
        )

    def test_multiple_choice_quiz(self):
        options = QuizOptions(question_count=5, difficulty="hard", time_limit=45)

        quiz = parse_quiz(MockProvider().generate_quiz(CONTENT, options).content)

        assert len(quiz["questions"]) == 5
        assert quiz["difficulty"] == "hard"
        assert quiz["estimated_time"] == pytest.approx(3.75)
        for question in quiz["questions"]:
            assert len(question["options"]) == 4
            assert len(set(question["options"])) == 4
            assert question["correct_answer"] in question["options"]
            assert "_____" in question["question"]
            assert question["time_limit"] == 45
        assert [q["id"] for q in quiz["questions"]] == ["q1", "q2", "q3", "q4", "q5"]

    def test_short_answer_quiz(self):
        options = QuizOptions(question_count=1, question_type="short_answer")
        question = parse_quiz(MockProvider().generate_quiz(CONTENT, options).content)["questions"][0]

        assert question["options"] == []
        assert question["correct_answer"] == "Photosynthesis"

    def test_quiz_from_empty_content(self):
        quiz = parse_quiz(MockProvider().generate_quiz("", QuizOptions(question_count=3)).content)
        assert len(quiz["questions"]) == 3

    def test_learning_path_is_json(self):
        response = MockProvider().generate_learning_path("Learn Python", "4 weeks", "beginner")
        path = json.loads(response.content)

        assert path["title"] == "Learning Path: Learn Python"
        assert set(path) == {"title", "description", "topics", "schedule", "milestones"}

    def test_explanation_mentions_answers(self):
        response = MockProvider().generate_explanation("What is 2+2?", "5", "4")
        assert '"4"' in response.content
        assert '"5"' in response.content

    def test_summary(self):
        response = MockProvider().summarize_content(CONTENT)
        assert response.content.startswith("- Photosynthesis converts light energy")


class TestCreateProvider:
    """Tests for the create_provider() factory."""

    def test_none_without_key(self):
        assert create_provider("openai", AIConfig()) is None

    def test_mock_always_available(self):
        assert isinstance(create_provider("mock", AIConfig()), MockProvider)

    def test_model_override(self):
        provider = create_provider("openai", AIConfig(openai_key="sk", models={"openai": "gpt-4"}))
        assert isinstance(provider, OpenAIProvider)
        assert provider.model == "gpt-4"

    def test_claude(self):
        provider = create_provider("claude", AIConfig(claude_key="ck", request_timeout=15))
        assert isinstance(provider, ClaudeProvider)
        assert provider.timeout == 15

    def test_unknown(self):
        with pytest.raises(LLMClientError, match="Unknown provider"):
            create_provider("bogus", AIConfig())

    def test_cost_table(self):
        assert calculate_cost("mock", 5000, 5000) == 0.0
        assert calculate_cost("claude", 2000, 0) == pytest.approx(0.006)


class TestJsonExtraction:
    """Tests for extract_json() and parse_quiz()."""

    @pytest.mark.parametrize("text,expected", [
        ('{"a": 1}', {"a": 1}),
        ('```json\n{"a": 1}\n```', {"a": 1}),
        ('Here is your quiz: {"a": [1, 2]} Enjoy!', {"a": [1, 2]}),
        ("[1, 2]", [1, 2]),
        ("Sorry, I can't help with that.", None),
        ("", None),
    ])
    def test_extract_json(self, text, expected):
        assert extract_json(text) == expected

    def test_parse_quiz(self):
        quiz = parse_quiz('```\n{"title": "T", "questions": [{"id": "q1"}]}\n```')
        assert quiz["questions"] == [{"id": "q1"}]

    @pytest.mark.parametrize("text", ["[1, 2]", '{"title": "No questions"}', "not json"])
    def test_parse_quiz_rejects(self, text):
        with pytest.raises(QuizParseError):
            parse_quiz(text)


class TestPrompts:
    """Tests for prompt construction."""

    def test_quiz_prompt(self):
        options = QuizOptions(
            question_count=3, difficulty="hard", question_type="short_answer",
            time_limit=45, include_explanations=True, topics=["mitosis", "meiosis"],
        )
        prompt = build_quiz_prompt("Cells divide.", options)

        assert "hard difficulty quiz with exactly 3 questions" in prompt
        assert "Cells divide." in prompt
        assert "- Question type: short_answer" in prompt
        assert "requiring 1-3 word answers" in prompt
        assert "Time limit: 45 seconds per question" in prompt
        assert "detailed explanations (2-3 sentences)" in prompt
        assert "- Focus on these topics: mitosis, meiosis" in prompt
        assert '"estimated_time": 2.25' in prompt
        assert '"time_limit": 45' in prompt

    def test_quiz_prompt_defaults(self):
        prompt = build_quiz_prompt("Cells divide.", QuizOptions(question_count=4))

        assert "Default time limit: 30 seconds per question" in prompt
        assert "Include brief explanations (1 sentence)" in prompt
        assert '"estimated_time": 2,' in prompt
        assert "Focus on these topics" not in prompt

    def test_explanation_prompt(self):
        prompt = build_explanation_prompt("Capital of France?", "Lyon", "Paris", simple=True)

        assert 'is "Paris" and not "Lyon"' in prompt
        assert "simple, easy-to-understand" in prompt

    @pytest.mark.parametrize("kwargs", [
        {"question_count": 0},
        {"question_count": 2, "time_limit": -1},
        {"question_count": 2, "difficulty": "impossible"},
    ])
    def test_quiz_options_validation(self, kwargs):
        with pytest.raises(ValueError):
            QuizOptions(**kwargs)
