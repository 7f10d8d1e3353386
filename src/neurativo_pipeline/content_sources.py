"""
Content ingestion from URLs and uploaded documents.

Two operations feed the rest of the system:
- extract_url_content(): fetch a web page, pick its main region, clean it
  and optionally analyze it.
- analyze_document(): validate and clean raw text taken from an upload,
  analyze it and build a condensed quiz-ready digest.

A local file loader (plain text, Markdown and .docx via python-docx) is
provided for the CLI.
"""

import logging
from pathlib import Path
from typing import Any, Callable, Optional, Union

from docx import Document

from .analyzer import (
    DOCUMENT_PROFILE,
    URL_PROFILE,
    analyze,
    build_quiz_ready_content,
    count_words,
    derive_document_title,
    detect_language,
    estimate_page_count,
)
from .cleaner import clean_document
from .config import PipelineConfig
from .extractor import extract
from .fetcher import FetchResult, fetch_url, validate_url
from .models import (
    AnalyzedDocument,
    ContentMetadata,
    DocumentMetadata,
    DocumentOptions,
    ExtractedContent,
    ExtractionOptions,
    utc_now,
)
from .storage import RecordStore, StorageError
from .text_repair import repair_text

logger = logging.getLogger(__name__)

EXTRACTED_CONTENT_TABLE = "extracted_content"
ANALYZED_DOCUMENTS_TABLE = "analyzed_documents"

TEXT_SUFFIXES = (".txt", ".md", ".markdown")


class ContentExtractionError(Exception):
    """
    Raised when content cannot be ingested.

    Attributes:
        status_code: HTTP status the API layer answers with.
        details: Optional human-readable explanation.
    """

    status_code = 500

    def __init__(self, message: str, details: Optional[str] = None):
        super().__init__(message)
        self.details = details


class InvalidInputError(ContentExtractionError):
    """A required field is missing or malformed."""

    status_code = 400


class ContentTooLongError(ContentExtractionError):
    """The document exceeds the word limit."""

    status_code = 413

    def __init__(self, word_count: int, limit: int = 4500):
        super().__init__(
            "Content too long",
            details=(
                f"Document contains {word_count} words. "
                f"Maximum allowed is {limit} words (approximately 3 pages)."
            ),
        )
        self.word_count = word_count
        self.limit = limit


class ContentTooShortError(ContentExtractionError):
    """Too little readable text survived extraction or cleaning."""

    status_code = 422


def truncate_at_word(text: str, max_length: Optional[int]) -> str:
    """Cut text to at most max_length chars without splitting a word."""
    if not max_length or max_length <= 0 or len(text) <= max_length:
        return text
    cut = text[:max_length]
    boundary = cut.rfind(" ")
    if boundary > 0 and not text[max_length].isspace():
        cut = cut[:boundary]
    return cut.rstrip()


def _persist(store: Optional[RecordStore], actor_id: Optional[str], table: str, row: dict[str, Any]) -> None:
    """Insert a row when both a store and an actor are known; failures are logged."""
    if store is None or not actor_id:
        return
    try:
        store.insert(table, {"user_id": actor_id, **row})
        logger.info(f"Persisted result to {table} for user {actor_id}")
    except StorageError as e:
        logger.warning(f"Failed to persist result to {table}: {e}")


def extract_url_content(
    url: str,
    options: Optional[ExtractionOptions] = None,
    fetcher: Callable[..., FetchResult] = fetch_url,
    store: Optional[RecordStore] = None,
    actor_id: Optional[str] = None,
    config: Optional[PipelineConfig] = None,
) -> ExtractedContent:
    """
    Fetch a web page and extract its readable content.

    Args:
        url: http(s) URL to ingest.
        options: summarize / max_length / focus_areas.
        fetcher: Callable compatible with fetch_url (injected by tests).
        store: Optional record store for persisting the result.
        actor_id: User the result is persisted for.
        config: Pipeline limits; defaults are used when omitted.

    Returns:
        ExtractedContent with metadata and, when summarizing, the analysis.

    Raises:
        FetchError: Propagated from the fetcher (bad URL, timeout, upstream status).
        ContentTooShortError: Fewer than 50 chars of readable text.
    """
    options = options or ExtractionOptions()
    config = config or PipelineConfig()

    url = validate_url(url)
    fetched = fetcher(url, timeout=config.fetch_timeout)
    extraction = extract(fetched.text, fetched.final_url)
    content, was_corrupted = repair_text(extraction.content)
    if was_corrupted:
        logger.info(f"Repaired encoding artifacts in content from {url}")

    if len(content.strip()) < config.min_extracted_chars:
        raise ContentTooShortError(
            "Insufficient content extracted",
            details="The page may be protected, require JavaScript, or contain mostly non-text content",
        )

    summary = ""
    key_points: list[str] = []
    topics: list[str] = []
    language = detect_language(content, URL_PROFILE.language_sample)
    if options.summarize:
        result = analyze(content, URL_PROFILE, options.focus_areas)
        summary, key_points, topics = result.summary, result.key_points, result.topics
        language = result.language

    metadata = ContentMetadata(
        source_url=url,
        word_count=count_words(content),
        extracted_at=utc_now(),
        content_type=fetched.content_type,
        language=language,
    )
    extracted = ExtractedContent(
        title=extraction.title,
        content=truncate_at_word(content, options.max_length),
        metadata=metadata,
        summary=summary,
        key_points=key_points,
        topics=topics,
    )
    logger.info(
        f"Extracted {metadata.word_count} words from {url} "
        f"(title: {extracted.title!r}, strategy: {extraction.strategy})"
    )

    _persist(store, actor_id, EXTRACTED_CONTENT_TABLE, {
        "url": url,
        "title": extracted.title,
        "content": extracted.content,
        "summary": extracted.summary,
        "key_points": extracted.key_points,
        "topics": extracted.topics,
        "metadata": metadata.to_dict(),
    })
    return extracted


def analyze_document(
    content: str,
    file_name: str,
    file_type: Optional[str] = None,
    options: Optional[DocumentOptions] = None,
    store: Optional[RecordStore] = None,
    actor_id: Optional[str] = None,
    config: Optional[PipelineConfig] = None,
) -> AnalyzedDocument:
    """
    Clean and analyze the text of an uploaded document.

    Args:
        content: Raw document text.
        file_name: Original file name (used for the title).
        file_type: MIME type or extension; "unknown" when missing.
        options: max_pages / focus_areas / extract_key_points.
        store: Optional record store for persisting the result.
        actor_id: User the result is persisted for.
        config: Pipeline limits; defaults are used when omitted.

    Returns:
        AnalyzedDocument including the quiz-ready digest.

    Raises:
        InvalidInputError: Missing content or file name.
        ContentTooLongError: More than 4500 words.
        ContentTooShortError: Fewer than 100 chars after cleaning.
    """
    options = options or DocumentOptions()
    config = config or PipelineConfig()

    if not content or not isinstance(content, str):
        raise InvalidInputError("Content is required")
    if not file_name:
        raise InvalidInputError("File name is required")

    raw_words = count_words(content)
    if raw_words > config.max_document_words:
        raise ContentTooLongError(raw_words, config.max_document_words)

    cleaned = clean_document(content)
    if len(cleaned) < config.min_document_chars:
        raise ContentTooShortError(
            "Insufficient content",
            details="The document appears to be empty or contains mostly non-text content",
        )

    result = analyze(cleaned, DOCUMENT_PROFILE, options.focus_areas)
    key_points = result.key_points if options.extract_key_points else []
    title = derive_document_title(file_name, cleaned)
    max_pages = min(config.max_pages, options.max_pages or config.max_pages)

    metadata = DocumentMetadata(
        file_name=file_name,
        file_type=file_type or "unknown",
        word_count=raw_words,
        page_count=estimate_page_count(raw_words, config.words_per_page, max_pages),
        analyzed_at=utc_now(),
        language=result.language,
    )
    document = AnalyzedDocument(
        title=title,
        content=cleaned,
        summary=result.summary,
        key_points=key_points,
        topics=result.topics,
        concepts=result.concepts,
        quiz_ready_content=build_quiz_ready_content(
            title, key_points, result.summary, result.topics, cleaned
        ),
        metadata=metadata,
    )
    logger.info(
        f"Analyzed document {file_name}: {metadata.word_count} words, "
        f"{metadata.page_count} pages, {len(key_points)} key points"
    )

    _persist(store, actor_id, ANALYZED_DOCUMENTS_TABLE, {
        "file_name": file_name,
        "title": document.title,
        "content": document.content,
        "summary": document.summary,
        "key_points": document.key_points,
        "topics": document.topics,
        "concepts": document.concepts,
        "metadata": metadata.to_dict(),
    })
    return document


def load_docx_text(file_path: Union[str, Path]) -> str:
    """
    Read the paragraphs of a Word document as plain text.

    Args:
        file_path: Path to the .docx file.

    Returns:
        Paragraph texts joined by blank lines; tables are included row by row.

    Raises:
        InvalidInputError: If the file doesn't exist or can't be parsed.
    """
    path = Path(file_path)
    if not path.exists():
        raise InvalidInputError(f"File not found: {file_path}")

    try:
        doc = Document(str(path))
    except Exception as e:
        raise InvalidInputError(f"Failed to parse Word document: {e}")

    parts = [para.text.strip() for para in doc.paragraphs if para.text.strip()]
    for table in doc.tables:
        for row in table.rows:
            cells = [cell.text.strip() for cell in row.cells if cell.text.strip()]
            if cells:
                parts.append(" | ".join(cells))
    return "\n\n".join(parts)


def load_document_text(file_path: Union[str, Path]) -> tuple[str, str]:
    """
    Load a local document for analysis.

    Returns:
        Tuple of (text, file_type). Supports .txt, .md and .docx.

    Raises:
        InvalidInputError: Missing file or unsupported extension.
    """
    path = Path(file_path)
    suffix = path.suffix.lower()
    if suffix == ".docx":
        return load_docx_text(path), "application/vnd.openxmlformats-officedocument.wordprocessingml.document"
    if suffix in TEXT_SUFFIXES:
        if not path.exists():
            raise InvalidInputError(f"File not found: {file_path}")
        return path.read_text(encoding="utf-8", errors="replace"), "text/markdown" if suffix != ".txt" else "text/plain"
    raise InvalidInputError(
        f"Unsupported file type: {suffix or path.name}",
        details="Supported formats are .txt, .md and .docx",
    )
