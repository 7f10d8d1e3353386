"""
LLM provider abstraction for the AI operations.

Every vendor adapter exposes the same four operations (quiz generation,
answer explanation, summarization and learning-path generation). Each
operation performs exactly one outbound call, never retries and never
raises: failures come back as an AIResponse carrying an error message.

Adapters:
- OpenAIProvider: OpenAI chat completions over requests
- AIMLAPIProvider: OpenAI-compatible endpoint over requests
- GeminiProvider: Google generateContent over requests
- ClaudeProvider: Anthropic Messages API via the anthropic SDK
- MockProvider: local, deterministic, free; always available
"""

import json
import logging
import re
from abc import ABC, abstractmethod
from typing import Any, Optional

import anthropic
import httpx
import requests

from .config import AIConfig
from .models import AIResponse, QuestionType, QuizOptions, UsageStats
from .prompts import (
    SYSTEM_PROMPT,
    build_explanation_prompt,
    build_learning_path_prompt,
    build_quiz_prompt,
    build_summary_prompt,
)

logger = logging.getLogger(__name__)


class LLMClientError(Exception):
    """Raised inside an adapter when a provider call fails."""
    pass


class QuizParseError(LLMClientError):
    """Raised when a provider's quiz output is not a usable quiz object."""
    pass


# USD per 1000 tokens, (input, output)
RATES = {
    "openai": (0.001, 0.002),
    "claude": (0.003, 0.015),
    "gemini": (0.0005, 0.0015),
    "aimlapi": (0.001, 0.002),
    "mock": (0.0, 0.0),
}

DEFAULT_MODELS = {
    "openai": "gpt-3.5-turbo",
    "claude": "claude-3-sonnet-20240229",
    "gemini": "gemini-pro",
    "aimlapi": "gpt-4o",
}

DEFAULT_BASE_URLS = {
    "openai": "https://api.openai.com/v1",
    "aimlapi": "https://samuraiapi.in/v1",
    "gemini": "https://generativelanguage.googleapis.com/v1beta",
}

DEFAULT_TIMEOUT = 60.0
TEMPERATURE = 0.7


def calculate_cost(provider: str, input_tokens: int, output_tokens: int) -> float:
    """Cost of a call from the fixed per-1000-token rate table."""
    input_rate, output_rate = RATES.get(provider, (0.0, 0.0))
    return (input_tokens / 1000) * input_rate + (output_tokens / 1000) * output_rate


def _usage(provider: str, input_tokens: Optional[int], output_tokens: Optional[int]) -> UsageStats:
    input_tokens = int(input_tokens or 0)
    output_tokens = int(output_tokens or 0)
    return UsageStats(
        input_tokens=input_tokens,
        output_tokens=output_tokens,
        cost=calculate_cost(provider, input_tokens, output_tokens),
    )


class AIProvider(ABC):
    """Capability interface shared by every provider."""

    name: str = ""

    @abstractmethod
    def generate_quiz(self, content: str, options: QuizOptions) -> AIResponse:
        """Generate a quiz JSON document with exactly options.question_count questions."""

    @abstractmethod
    def generate_explanation(
        self, question: str, user_answer: str, correct_answer: str, simple: bool = False
    ) -> AIResponse:
        """Explain why correct_answer is right and user_answer is not."""

    @abstractmethod
    def summarize_content(self, content: str) -> AIResponse:
        """Summarize content into quiz-relevant key points."""

    @abstractmethod
    def generate_learning_path(self, goal: str, timeframe: str, difficulty: str) -> AIResponse:
        """Generate a learning path JSON document."""


class PromptProvider(AIProvider):
    """
    Base for vendor adapters: builds the prompt, makes one call and turns
    any failure into an error response.

    Subclasses implement _complete(prompt) returning (text, UsageStats)
    and raising LLMClientError on failure.
    """

    vendor: str = ""

    def __init__(
        self,
        api_key: str,
        model: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout: float = DEFAULT_TIMEOUT,
    ):
        if not api_key:
            raise LLMClientError(f"No API key provided for {self.vendor}")
        self.api_key = api_key
        self.model = model or DEFAULT_MODELS[self.name]
        self.base_url = (base_url or DEFAULT_BASE_URLS.get(self.name, "")).rstrip("/")
        self.timeout = timeout

    @abstractmethod
    def _complete(self, prompt: str) -> tuple[str, UsageStats]:
        """Send one prompt and return the generated text with its usage."""

    def _run(self, prompt: str) -> AIResponse:
        logger.debug(f"{self.vendor} request: model={self.model}, prompt {len(prompt)} chars")
        try:
            text, usage = self._complete(prompt)
        except Exception as e:
            logger.error(f"{self.vendor} API error: {e}")
            return AIResponse.failure(str(e) or "Unknown error", provider=self.name)
        return AIResponse(content=text, usage=usage, provider=self.name)

    def generate_quiz(self, content: str, options: QuizOptions) -> AIResponse:
        return self._run(build_quiz_prompt(content, options))

    def generate_explanation(
        self, question: str, user_answer: str, correct_answer: str, simple: bool = False
    ) -> AIResponse:
        return self._run(build_explanation_prompt(question, user_answer, correct_answer, simple))

    def summarize_content(self, content: str) -> AIResponse:
        return self._run(build_summary_prompt(content))

    def generate_learning_path(self, goal: str, timeframe: str, difficulty: str) -> AIResponse:
        return self._run(build_learning_path_prompt(goal, timeframe, difficulty))


def _vendor_error_message(response: requests.Response) -> str:
    """The vendor's error message when the body carries one, else the status."""
    try:
        data = response.json()
    except ValueError:
        data = None
    if isinstance(data, dict):
        error = data.get("error")
        if isinstance(error, dict) and error.get("message"):
            return str(error["message"])
        if isinstance(error, str) and error:
            return error
    return f"API Error: {response.status_code}"


class HTTPProvider(PromptProvider):
    """Adapter talking JSON over HTTP with requests."""

    def __init__(self, *args, session: Optional[requests.Session] = None, **kwargs):
        super().__init__(*args, **kwargs)
        self.session = session or requests.Session()

    def _post_json(
        self,
        url: str,
        payload: dict[str, Any],
        headers: Optional[dict[str, str]] = None,
        params: Optional[dict[str, str]] = None,
    ) -> dict[str, Any]:
        try:
            response = self.session.post(
                url,
                json=payload,
                headers={"Content-Type": "application/json", **(headers or {})},
                params=params,
                timeout=self.timeout,
            )
        except requests.Timeout:
            raise LLMClientError(f"{self.vendor} request timed out after {self.timeout}s")
        except requests.RequestException as e:
            raise LLMClientError(f"{self.vendor} request failed: {e}")

        if not 200 <= response.status_code < 300:
            raise LLMClientError(_vendor_error_message(response))

        try:
            data = response.json()
        except ValueError:
            raise LLMClientError(f"Invalid response format from {self.vendor}")
        if not isinstance(data, dict):
            raise LLMClientError(f"Invalid response format from {self.vendor}")
        return data


class OpenAIProvider(HTTPProvider):
    """OpenAI chat completions."""

    name = "openai"
    vendor = "OpenAI"
    max_tokens = 3000

    def _messages(self, prompt: str) -> list[dict[str, str]]:
        return [
            {"role": "system", "content": SYSTEM_PROMPT},
            {"role": "user", "content": prompt},
        ]

    def _payload(self, prompt: str) -> dict[str, Any]:
        return {
            "model": self.model,
            "messages": self._messages(prompt),
            "max_tokens": self.max_tokens,
            "temperature": TEMPERATURE,
            "response_format": {"type": "json_object"},
        }

    def _complete(self, prompt: str) -> tuple[str, UsageStats]:
        data = self._post_json(
            f"{self.base_url}/chat/completions",
            self._payload(prompt),
            headers={"Authorization": f"Bearer {self.api_key}"},
        )
        try:
            text = data["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError):
            raise LLMClientError(f"Invalid response format from {self.vendor}")
        if not isinstance(text, str):
            raise LLMClientError(f"Invalid response format from {self.vendor}")

        usage = data.get("usage") or {}
        return text, _usage(self.name, usage.get("prompt_tokens"), usage.get("completion_tokens"))


class AIMLAPIProvider(OpenAIProvider):
    """OpenAI-compatible aggregator endpoint (single user message, no JSON mode)."""

    name = "aimlapi"
    vendor = "AIMLAPI"
    max_tokens = 2000

    def _messages(self, prompt: str) -> list[dict[str, str]]:
        return [{"role": "user", "content": f"{SYSTEM_PROMPT}\n\n{prompt}"}]

    def _payload(self, prompt: str) -> dict[str, Any]:
        return {
            "model": self.model,
            "messages": self._messages(prompt),
            "temperature": TEMPERATURE,
            "max_tokens": self.max_tokens,
        }


class GeminiProvider(HTTPProvider):
    """Google Gemini generateContent; the key travels as a query parameter."""

    name = "gemini"
    vendor = "Gemini"
    max_tokens = 2000

    def _complete(self, prompt: str) -> tuple[str, UsageStats]:
        payload = {
            "contents": [{"parts": [{"text": prompt}]}],
            "generationConfig": {
                "temperature": TEMPERATURE,
                "maxOutputTokens": self.max_tokens,
            },
        }
        data = self._post_json(
            f"{self.base_url}/models/{self.model}:generateContent",
            payload,
            params={"key": self.api_key},
        )
        try:
            text = data["candidates"][0]["content"]["parts"][0]["text"]
        except (KeyError, IndexError, TypeError):
            raise LLMClientError(f"Invalid response format from {self.vendor}")

        usage = data.get("usageMetadata") or {}
        return text, _usage(
            self.name, usage.get("promptTokenCount"), usage.get("candidatesTokenCount")
        )


class ClaudeProvider(PromptProvider):
    """Anthropic Claude via the official SDK, with SDK retries disabled."""

    name = "claude"
    vendor = "Claude"
    max_tokens = 2000

    def __init__(self, *args, client: Optional[Any] = None, **kwargs):
        super().__init__(*args, **kwargs)
        if client is not None:
            self.client = client
            return

        client_kwargs: dict[str, Any] = {
            "api_key": self.api_key,
            "timeout": httpx.Timeout(self.timeout, connect=min(30.0, self.timeout)),
            "max_retries": 0,
        }
        if self.base_url:
            client_kwargs["base_url"] = self.base_url
        self.client = anthropic.Anthropic(**client_kwargs)

    def _complete(self, prompt: str) -> tuple[str, UsageStats]:
        try:
            response = self.client.messages.create(
                model=self.model,
                max_tokens=self.max_tokens,
                temperature=TEMPERATURE,
                messages=[{"role": "user", "content": prompt}],
            )
        except anthropic.APIStatusError as e:
            raise LLMClientError(_anthropic_error_message(e))
        except anthropic.APIError as e:
            raise LLMClientError(f"{self.vendor} request failed: {e}")

        try:
            text = response.content[0].text
        except (AttributeError, IndexError, TypeError):
            raise LLMClientError(f"Invalid response format from {self.vendor}")

        usage = getattr(response, "usage", None)
        return text, _usage(
            self.name,
            getattr(usage, "input_tokens", 0),
            getattr(usage, "output_tokens", 0),
        )


def _anthropic_error_message(error: "anthropic.APIStatusError") -> str:
    body = getattr(error, "body", None)
    if isinstance(body, dict):
        detail = body.get("error")
        if isinstance(detail, dict) and detail.get("message"):
            return str(detail["message"])
    return f"API Error: {error.status_code}"


class MockProvider(AIProvider):
    """
    Local provider used when no vendor is available.

    Builds schema-valid output from the content itself: quiz questions are
    derived from content sentences, with exactly the requested count and
    question type. Costs nothing.
    """

    name = "mock"

    FALLBACK_TERMS = ("Concept", "Process", "Principle", "Method", "Structure")

    @staticmethod
    def _sentences(text: str) -> list[str]:
        parts = re.split(r"[.!?]+\s*", text or "")
        return [" ".join(p.split()) for p in parts if len(p.strip()) > 20]

    @staticmethod
    def _key_term(sentence: str) -> str:
        words = [w.strip(",;:()\"'") for w in sentence.split()]
        words = [w for w in words if len(w) > 4 and w.isalpha()]
        return max(words, key=len) if words else ""

    def _question(self, index: int, sentence: str, terms: list[str], options: QuizOptions) -> dict:
        qtype = options.question_type
        term = self._key_term(sentence)
        question: dict[str, Any] = {
            "id": f"q{index + 1}",
            "type": qtype.value,
            "difficulty": options.difficulty.value,
            "topic": term.capitalize(),
            "time_limit": options.effective_time_limit,
            "hints": ["Re-read the section this statement comes from"],
        }

        if qtype is QuestionType.TRUE_FALSE:
            question["question"] = f"True or False: {sentence}."
            question["options"] = ["True", "False"]
            question["correct_answer"] = "True"
            question["explanation"] = "The statement is taken directly from the content."
            return question

        blanked = re.sub(rf"\b{re.escape(term)}\b", "_____", sentence, count=1)
        question["question"] = f"Fill in the blank: {blanked}."
        question["correct_answer"] = term
        question["explanation"] = f'The content states: "{sentence}."'
        if qtype is QuestionType.MULTIPLE_CHOICE:
            question["options"] = self._choices(term, terms, index)
        else:
            question["options"] = []
        return question

    def _choices(self, correct: str, terms: list[str], index: int) -> list[str]:
        distractors: list[str] = []
        for candidate in list(terms) + list(self.FALLBACK_TERMS):
            if candidate.lower() != correct.lower() and candidate not in distractors:
                distractors.append(candidate)
            if len(distractors) == 3:
                break
        distractors.insert(index % 4, correct)
        return distractors

    def generate_quiz(self, content: str, options: QuizOptions) -> AIResponse:
        sentences = [s for s in self._sentences(content) if self._key_term(s)]
        if not sentences:
            sentences = ["The provided content introduces the main topic of this quiz"]
        terms = list(dict.fromkeys(self._key_term(s) for s in sentences))

        questions = [
            self._question(i, sentences[i % len(sentences)], terms, options)
            for i in range(options.question_count)
        ]
        quiz = {
            "title": "Practice Quiz",
            "description": "A quiz generated locally from the provided content",
            "category": "General",
            "difficulty": options.difficulty.value,
            "estimated_time": options.question_count * options.effective_time_limit / 60,
            "questions": questions,
        }
        return AIResponse(content=json.dumps(quiz), usage=UsageStats(), provider=self.name)

    def generate_explanation(
        self, question: str, user_answer: str, correct_answer: str, simple: bool = False
    ) -> AIResponse:
        if simple:
            explanation = f'The correct answer is "{correct_answer}" because it\'s the right choice for this question.'
        else:
            explanation = (
                f'The correct answer is "{correct_answer}" rather than "{user_answer}". '
                f'Re-read the part of the material that covers "{question}" and compare '
                f"it with both answers to see where they differ."
            )
        return AIResponse(content=explanation, usage=UsageStats(), provider=self.name)

    def summarize_content(self, content: str) -> AIResponse:
        sentences = self._sentences(content)
        if sentences:
            summary = "\n".join(f"- {s}." for s in sentences[:6])
        else:
            summary = (content or "").strip()[:600]
        return AIResponse(content=summary, usage=UsageStats(), provider=self.name)

    def generate_learning_path(self, goal: str, timeframe: str, difficulty: str) -> AIResponse:
        path = {
            "title": f"Learning Path: {goal}",
            "description": f"A structured learning path to achieve: {goal}",
            "topics": ["Introduction", "Fundamentals", "Advanced Concepts", "Practice"],
            "schedule": f"Complete within {timeframe} at {difficulty} difficulty level",
            "milestones": ["Week 1: Basics", "Week 2: Practice", "Week 3: Advanced"],
        }
        return AIResponse(content=json.dumps(path), usage=UsageStats(), provider=self.name)


PROVIDER_CLASSES = {
    "openai": OpenAIProvider,
    "claude": ClaudeProvider,
    "gemini": GeminiProvider,
    "aimlapi": AIMLAPIProvider,
}


def create_provider(
    name: str,
    config: AIConfig,
    session: Optional[requests.Session] = None,
) -> Optional[AIProvider]:
    """
    Factory function to create a provider adapter.

    Args:
        name: Provider name ("openai", "claude", "gemini", "aimlapi" or "mock").
        config: AI configuration holding keys, models and timeouts.
        session: Optional requests session for the HTTP adapters.

    Returns:
        The adapter, or None when the vendor has no key configured.
    """
    if name == "mock":
        return MockProvider()
    provider_class = PROVIDER_CLASSES.get(name)
    if provider_class is None:
        raise LLMClientError(f"Unknown provider: {name}")

    credentials = config.credentials_for(name, DEFAULT_MODELS[name])
    if credentials is None:
        return None
    kwargs: dict[str, Any] = {
        "model": credentials.model,
        "base_url": credentials.base_url,
        "timeout": config.request_timeout,
    }
    if issubclass(provider_class, HTTPProvider):
        kwargs["session"] = session
    return provider_class(credentials.api_key, **kwargs)


def extract_json(text: str) -> Optional[Any]:
    """
    Pull the first JSON object or array out of model output.

    Handles markdown code fences and leading/trailing prose.

    Returns:
        The parsed value, or None when nothing parses.
    """
    if not text:
        return None
    cleaned = text.strip()
    fenced = re.search(r"```(?:json)?\s*(.*?)```", cleaned, re.S | re.I)
    if fenced:
        cleaned = fenced.group(1).strip()

    try:
        return json.loads(cleaned)
    except json.JSONDecodeError:
        pass

    decoder = json.JSONDecoder()
    for match in re.finditer(r"[\[{]", cleaned):
        try:
            value, _ = decoder.raw_decode(cleaned[match.start():])
        except json.JSONDecodeError:
            continue
        return value
    return None


def parse_quiz(content: str) -> dict[str, Any]:
    """
    Parse a provider's quiz output.

    Returns:
        The quiz dict (title, description, questions, ...).

    Raises:
        QuizParseError: If no JSON object with a questions list is found.
    """
    data = extract_json(content)
    if not isinstance(data, dict):
        raise QuizParseError("Quiz response is not a JSON object")
    questions = data.get("questions")
    if not isinstance(questions, list):
        raise QuizParseError("Quiz response has no questions list")
    return data
