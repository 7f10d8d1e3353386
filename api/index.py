"""
FastAPI wrapper for the Neurativo content pipeline - serverless function.

Exposes the two ingestion operations over HTTP:
- extract-content: fetch a URL and return its readable content
- analyze-document: clean and analyze the text of an uploaded document

Both are mounted under /functions/v1/ (the paths the web client calls)
and under /api/.
"""

import logging
from typing import Any, Callable, Optional

from fastapi import Depends, FastAPI, Header, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse
from pydantic import BaseModel, ConfigDict, Field

# Add src to path for imports
import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from neurativo_pipeline import __version__
from neurativo_pipeline.config import PipelineConfig
from neurativo_pipeline.content_sources import (
    ContentExtractionError,
    analyze_document,
    extract_url_content,
)
from neurativo_pipeline.fetcher import FetchError, FetchResult, fetch_url
from neurativo_pipeline.models import DocumentOptions, ExtractionOptions
from neurativo_pipeline.orchestrator import build_record_store
from neurativo_pipeline.storage import RecordStore, StorageError, SupabaseRestStore

logger = logging.getLogger(__name__)

app = FastAPI(
    title="Neurativo Content API",
    description="Content extraction and document analysis for AI quiz generation",
    version=__version__,
)

# Enable CORS for all origins
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["authorization", "x-client-info", "apikey", "content-type"],
)


class ExtractOptionsInput(BaseModel):
    """Options of the extract-content request."""
    model_config = ConfigDict(populate_by_name=True)

    summarize: bool = False
    max_length: Optional[int] = Field(None, alias="maxLength", gt=0)
    focus_areas: list[str] = Field(default_factory=list, alias="focusAreas")


class ExtractContentRequest(BaseModel):
    """Request model for URL content extraction."""
    url: Optional[str] = Field(None, description="http(s) URL to extract")
    options: Optional[ExtractOptionsInput] = None


class DocumentOptionsInput(BaseModel):
    """Options of the analyze-document request."""
    model_config = ConfigDict(populate_by_name=True)

    max_pages: Optional[int] = Field(None, alias="maxPages", gt=0)
    focus_areas: list[str] = Field(default_factory=list, alias="focusAreas")
    extract_key_points: bool = Field(True, alias="extractKeyPoints")


class AnalyzeDocumentRequest(BaseModel):
    """Request model for document analysis."""
    model_config = ConfigDict(populate_by_name=True)

    content: Optional[str] = Field(None, description="Raw document text")
    file_name: Optional[str] = Field(None, alias="fileName")
    file_type: Optional[str] = Field(None, alias="fileType")
    options: Optional[DocumentOptionsInput] = None


class HealthResponse(BaseModel):
    """Health check response."""
    status: str
    version: str


def error_response(status_code: int, error: str, details: Optional[str] = None) -> JSONResponse:
    body: dict[str, Any] = {"error": error}
    if details:
        body["details"] = details
    return JSONResponse(status_code=status_code, content=body)


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    """Malformed JSON and schema violations are client errors (400)."""
    errors = exc.errors()
    if any(err.get("type") == "json_invalid" for err in errors):
        return error_response(400, "Invalid JSON in request body", str(errors[0].get("msg", "")))
    details = "; ".join(
        f"{'.'.join(str(p) for p in err.get('loc', ()) if p != 'body')}: {err.get('msg')}"
        for err in errors
    )
    return error_response(400, "Invalid request", details)


# ============================================================================
# Dependencies (overridable in tests)
# ============================================================================

_store_cache: dict[str, Optional[RecordStore]] = {}


def get_pipeline_config() -> PipelineConfig:
    return PipelineConfig.from_env()


def get_record_store(config: PipelineConfig = Depends(get_pipeline_config)) -> Optional[RecordStore]:
    """Record store for persisting results, built once per process."""
    if "store" not in _store_cache:
        _store_cache["store"] = build_record_store(config)
    return _store_cache["store"]


def get_fetcher() -> Callable[..., FetchResult]:
    return fetch_url


def resolve_actor(
    authorization: Optional[str] = Header(None),
    store: Optional[RecordStore] = Depends(get_record_store),
) -> Optional[str]:
    """User id behind the bearer token, when Supabase can resolve it."""
    if not authorization or not authorization.lower().startswith("bearer "):
        return None
    if not isinstance(store, SupabaseRestStore):
        return None
    token = authorization.split(" ", 1)[1].strip()
    try:
        user = store.get_user(token)
    except StorageError as e:
        logger.warning(f"Could not resolve user from token: {e}")
        return None
    return user.get("id") if user else None


# ============================================================================
# Endpoints
# ============================================================================

@app.get("/api/health", response_model=HealthResponse)
async def health_check():
    """Health check endpoint."""
    return HealthResponse(status="healthy", version=__version__)


@app.options("/functions/v1/extract-content")
@app.options("/api/extract-content")
@app.options("/functions/v1/analyze-document")
@app.options("/api/analyze-document")
async def preflight():
    """CORS preflight."""
    return PlainTextResponse("ok")


@app.post("/functions/v1/extract-content")
@app.post("/api/extract-content")
def extract_content(
    request: ExtractContentRequest,
    config: PipelineConfig = Depends(get_pipeline_config),
    fetcher: Callable[..., FetchResult] = Depends(get_fetcher),
    store: Optional[RecordStore] = Depends(get_record_store),
    actor_id: Optional[str] = Depends(resolve_actor),
):
    """
    Extract readable content from a URL.

    Returns the ExtractedContent JSON, or ``{error, details}`` with
    400 (bad URL), 408 (timeout), 422 (too little content), the upstream
    status, or 500.
    """
    options = ExtractionOptions()
    if request.options is not None:
        options = ExtractionOptions(
            summarize=request.options.summarize,
            max_length=request.options.max_length,
            focus_areas=request.options.focus_areas,
        )

    try:
        result = extract_url_content(
            request.url,
            options,
            fetcher=fetcher,
            store=store,
            actor_id=actor_id,
            config=config,
        )
    except (FetchError, ContentExtractionError) as e:
        logger.info(f"Extraction of {request.url} failed ({e.status_code}): {e}")
        return error_response(e.status_code, str(e), e.details)
    except Exception as e:
        logger.exception(f"Unexpected error extracting {request.url}")
        return error_response(500, "Failed to extract content", str(e))

    return result.to_dict()


@app.post("/functions/v1/analyze-document")
@app.post("/api/analyze-document")
def analyze_document_endpoint(
    request: AnalyzeDocumentRequest,
    config: PipelineConfig = Depends(get_pipeline_config),
    store: Optional[RecordStore] = Depends(get_record_store),
    actor_id: Optional[str] = Depends(resolve_actor),
):
    """
    Clean and analyze document text.

    Returns the AnalyzedDocument JSON, or ``{error, details}`` with
    400 (missing fields), 413 (over 4500 words), 422 (too little text)
    or 500.
    """
    options = DocumentOptions()
    if request.options is not None:
        options = DocumentOptions(
            max_pages=request.options.max_pages,
            focus_areas=request.options.focus_areas,
            extract_key_points=request.options.extract_key_points,
        )

    try:
        document = analyze_document(
            request.content,
            request.file_name,
            request.file_type,
            options,
            store=store,
            actor_id=actor_id,
            config=config,
        )
    except ContentExtractionError as e:
        logger.info(f"Analysis of {request.file_name} failed ({e.status_code}): {e}")
        return error_response(e.status_code, str(e), e.details)
    except Exception as e:
        logger.exception(f"Unexpected error analyzing {request.file_name}")
        return error_response(500, "Failed to analyze document", str(e))

    return document.to_dict()


@app.get("/api/info")
async def api_info():
    """Get API information and usage instructions."""
    return {
        "name": "Neurativo Content API",
        "version": __version__,
        "endpoints": {
            "GET /api/health": "Health check",
            "POST /functions/v1/extract-content": "Extract readable content from a URL",
            "POST /functions/v1/analyze-document": "Analyze uploaded document text (max 4500 words)",
            "GET /api/info": "This endpoint",
        },
        "documentation": "/docs",
        "openapi": "/openapi.json",
    }
