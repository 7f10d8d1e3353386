"""
Neurativo Content Pipeline

Content ingestion and AI orchestration for quiz-based learning:
- Extracts readable text from web pages and uploaded documents
- Derives summaries, key points, topics and concepts heuristically
- Generates quizzes, explanations, summaries and learning paths through
  interchangeable AI providers with automatic fallback
"""

__version__ = "1.0.0"
__author__ = "Neurativo Team"

from .config import AIConfig, PipelineConfig, load_ai_config

from .models import (
    AIResponse,
    AnalyzedDocument,
    ContentMetadata,
    Difficulty,
    DocumentMetadata,
    DocumentOptions,
    ExtractedContent,
    ExtractionOptions,
    QuestionType,
    QuizOptions,
    UsageRecord,
    UsageStats,
)

from .content_sources import (
    ContentExtractionError,
    ContentTooLongError,
    ContentTooShortError,
    InvalidInputError,
    analyze_document,
    extract_url_content,
)

from .fetcher import FetchError, fetch_url

from .llm_client import AIProvider, MockProvider, extract_json, parse_quiz

from .registry import FALLBACK_ORDER, ProviderRegistry

from .orchestrator import AIOperation, FallbackOrchestrator, build_orchestrator

from .usage_logger import UsageLogger

__all__ = [
    # Config
    "AIConfig",
    "PipelineConfig",
    "load_ai_config",
    # Models
    "AIResponse",
    "AnalyzedDocument",
    "ContentMetadata",
    "Difficulty",
    "DocumentMetadata",
    "DocumentOptions",
    "ExtractedContent",
    "ExtractionOptions",
    "QuestionType",
    "QuizOptions",
    "UsageRecord",
    "UsageStats",
    # Ingestion
    "ContentExtractionError",
    "ContentTooLongError",
    "ContentTooShortError",
    "InvalidInputError",
    "analyze_document",
    "extract_url_content",
    "FetchError",
    "fetch_url",
    # AI providers
    "AIProvider",
    "MockProvider",
    "extract_json",
    "parse_quiz",
    "FALLBACK_ORDER",
    "ProviderRegistry",
    "AIOperation",
    "FallbackOrchestrator",
    "build_orchestrator",
    "UsageLogger",
]
