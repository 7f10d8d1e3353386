"""
Data models for the Neurativo content pipeline.

This module defines the core data structures shared by the ingestion
pipeline (URL extraction, document analysis) and the AI provider layer.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional


def _isoformat(value: datetime) -> str:
    """Render a timestamp the way JavaScript's toISOString() does."""
    return value.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class Difficulty(Enum):
    """Quiz difficulty levels."""
    EASY = "easy"
    MEDIUM = "medium"
    HARD = "hard"


class QuestionType(Enum):
    """Supported quiz question types."""
    MULTIPLE_CHOICE = "multiple_choice"
    TRUE_FALSE = "true_false"
    SHORT_ANSWER = "short_answer"


@dataclass(frozen=True)
class ContentMetadata:
    """Metadata attached to content extracted from a URL."""
    source_url: str
    word_count: int
    extracted_at: datetime
    content_type: str = "text/html"
    language: str = "unknown"

    def to_dict(self) -> dict[str, Any]:
        return {
            "url": self.source_url,
            "sourceUrl": self.source_url,
            "wordCount": self.word_count,
            "extractedAt": _isoformat(self.extracted_at),
            "contentType": self.content_type,
            "language": self.language,
        }


@dataclass(frozen=True)
class ExtractedContent:
    """
    Readable content extracted from a web page.

    Immutable once produced. Persistence is the caller's responsibility
    unless a record store is handed to the ingestion function.
    """
    title: str
    content: str
    metadata: ContentMetadata
    summary: str = ""
    key_points: list[str] = field(default_factory=list)
    topics: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        """Serialize using the camelCase keys of the HTTP interface."""
        return {
            "title": self.title,
            "content": self.content,
            "summary": self.summary,
            "keyPoints": list(self.key_points),
            "topics": list(self.topics),
            "metadata": self.metadata.to_dict(),
        }


@dataclass(frozen=True)
class DocumentMetadata:
    """Metadata attached to an analyzed uploaded document."""
    file_name: str
    file_type: str
    word_count: int
    page_count: int
    analyzed_at: datetime
    language: str = "unknown"

    def to_dict(self) -> dict[str, Any]:
        return {
            "fileName": self.file_name,
            "fileType": self.file_type,
            "wordCount": self.word_count,
            "pageCount": self.page_count,
            "analyzedAt": _isoformat(self.analyzed_at),
            "language": self.language,
        }


@dataclass(frozen=True)
class AnalyzedDocument:
    """An uploaded document after cleaning and heuristic analysis."""
    title: str
    content: str
    summary: str
    key_points: list[str]
    topics: list[str]
    concepts: list[str]
    quiz_ready_content: str
    metadata: DocumentMetadata

    def to_dict(self) -> dict[str, Any]:
        return {
            "title": self.title,
            "content": self.content,
            "summary": self.summary,
            "keyPoints": list(self.key_points),
            "topics": list(self.topics),
            "concepts": list(self.concepts),
            "quizReadyContent": self.quiz_ready_content,
            "metadata": self.metadata.to_dict(),
        }


@dataclass
class AnalysisResult:
    """Output of the heuristic analyzer."""
    summary: str = ""
    key_points: list[str] = field(default_factory=list)
    topics: list[str] = field(default_factory=list)
    concepts: list[str] = field(default_factory=list)
    word_count: int = 0
    language: str = "unknown"


@dataclass
class ExtractionOptions:
    """Options accepted by the extract-content operation."""
    summarize: bool = False
    max_length: Optional[int] = None
    focus_areas: list[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Optional[dict[str, Any]]) -> "ExtractionOptions":
        data = data or {}
        return cls(
            summarize=bool(data.get("summarize", False)),
            max_length=data.get("maxLength", data.get("max_length")),
            focus_areas=list(data.get("focusAreas", data.get("focus_areas")) or []),
        )


@dataclass
class DocumentOptions:
    """Options accepted by the analyze-document operation."""
    max_pages: Optional[int] = None
    focus_areas: list[str] = field(default_factory=list)
    extract_key_points: bool = True

    @classmethod
    def from_dict(cls, data: Optional[dict[str, Any]]) -> "DocumentOptions":
        data = data or {}
        extract_key_points = data.get("extractKeyPoints", data.get("extract_key_points"))
        return cls(
            max_pages=data.get("maxPages", data.get("max_pages")),
            focus_areas=list(data.get("focusAreas", data.get("focus_areas")) or []),
            extract_key_points=True if extract_key_points is None else bool(extract_key_points),
        )


@dataclass
class QuizOptions:
    """
    Input contract for quiz generation.

    Attributes:
        question_count: Exact number of questions the provider must return.
        difficulty: easy, medium or hard.
        question_type: multiple_choice, true_false or short_answer.
        time_limit: Seconds per question. None means the 30 second default.
        include_explanations: Ask for detailed (2-3 sentence) explanations.
        topics: Optional topics to focus the quiz on.
    """
    question_count: int
    difficulty: Difficulty = Difficulty.MEDIUM
    question_type: QuestionType = QuestionType.MULTIPLE_CHOICE
    time_limit: Optional[int] = None
    include_explanations: bool = False
    topics: list[str] = field(default_factory=list)

    def __post_init__(self) -> None:
        """Coerce enum values given as strings and validate counts."""
        if isinstance(self.difficulty, str):
            self.difficulty = Difficulty(self.difficulty.lower())
        if isinstance(self.question_type, str):
            self.question_type = QuestionType(self.question_type.lower())
        if isinstance(self.question_count, bool) or not isinstance(self.question_count, int):
            raise ValueError(f"question_count must be an integer, got {self.question_count!r}")
        if self.question_count <= 0:
            raise ValueError(f"question_count must be positive, got {self.question_count}")
        if self.time_limit is not None and self.time_limit <= 0:
            raise ValueError(f"time_limit must be positive, got {self.time_limit}")

    @property
    def effective_time_limit(self) -> int:
        return self.time_limit or 30


@dataclass(frozen=True)
class UsageStats:
    """Token usage and computed cost of one provider call."""
    input_tokens: int = 0
    output_tokens: int = 0
    cost: float = 0.0


@dataclass
class AIResponse:
    """
    Result of an AI provider operation.

    Exactly one of a non-empty content or a non-empty error is meaningful
    to the caller.
    """
    content: str = ""
    error: Optional[str] = None
    usage: Optional[UsageStats] = None
    provider: Optional[str] = None

    @property
    def ok(self) -> bool:
        return bool(self.content) and not self.error

    @classmethod
    def failure(cls, message: str, provider: Optional[str] = None) -> "AIResponse":
        return cls(content="", error=message or "Unknown error", provider=provider)


@dataclass(frozen=True)
class UsageRecord:
    """One row of the ai_usage_logs table."""
    user_id: str
    feature: str
    provider: str
    input_tokens: int = 0
    output_tokens: int = 0
    cost: float = 0.0
    success: bool = True
    error_message: Optional[str] = None

    @classmethod
    def from_response(
        cls, user_id: str, feature: str, provider: str, response: AIResponse
    ) -> "UsageRecord":
        usage = response.usage or UsageStats()
        return cls(
            user_id=user_id,
            feature=feature,
            provider=provider,
            input_tokens=usage.input_tokens,
            output_tokens=usage.output_tokens,
            cost=usage.cost,
            success=not response.error,
            error_message=response.error,
        )

    def to_row(self) -> dict[str, Any]:
        return {
            "user_id": self.user_id,
            "feature": self.feature,
            "provider": self.provider,
            "input_tokens": self.input_tokens,
            "output_tokens": self.output_tokens,
            "cost": self.cost,
            "success": self.success,
            "error_message": self.error_message,
        }
