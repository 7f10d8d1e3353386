"""
Bounded-time HTTP fetching of caller-supplied URLs.

The fetcher validates the URL scheme, issues one GET with browser-like
headers (some sites reject bare scripted requests), follows redirects and
enforces a hard timeout. Failures are reported as typed FetchError
subclasses so the HTTP layer can map them to status codes.
"""

import logging
import re
import socket
import threading
import time
from dataclasses import dataclass
from typing import Optional
from urllib.parse import urlparse

import requests

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30.0

MAX_CONTENT_BYTES = 10 * 1024 * 1024

CHUNK_SIZE = 8192

TIMEOUT_MESSAGE = "Request timeout - the URL took too long to respond"

ALLOWED_SCHEMES = ("http", "https")

# Default headers for web requests
DEFAULT_HEADERS = {
    "User-Agent": (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
    ),
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,image/webp,*/*;q=0.8",
    "Accept-Language": "en-US,en;q=0.9",
    "Cache-Control": "no-cache",
    "Upgrade-Insecure-Requests": "1",
}


class FetchError(Exception):
    """Base class for fetch failures."""

    status_code = 500

    def __init__(self, message: str, details: Optional[str] = None):
        super().__init__(message)
        self.details = details


class InvalidUrlError(FetchError):
    """The URL does not parse or uses a scheme other than http/https."""

    status_code = 400


class FetchTimeoutError(FetchError):
    """The remote server did not answer within the timeout."""

    status_code = 408


class UpstreamError(FetchError):
    """The remote server answered with a non-2xx status."""

    def __init__(self, status: int, reason: str = ""):
        message = f"Failed to fetch URL: {status} {reason}".strip()
        super().__init__(message, details=f"The server returned a {status} error")
        self.upstream_status = status
        # Pass client/server errors through; anything else is our failure.
        self.status_code = status if status >= 400 else 500


class NetworkError(FetchError):
    """Connection-level failure (DNS, refused connection, TLS, ...)."""


@dataclass(frozen=True)
class FetchResult:
    """Raw response of a successful fetch."""
    url: str
    final_url: str
    status_code: int
    content_type: str
    body: bytes
    text: str


def validate_url(url: str) -> str:
    """
    Check that a URL parses and uses http or https.

    Returns:
        The stripped URL.

    Raises:
        InvalidUrlError: On a missing, malformed or non-HTTP URL.
    """
    if not url or not isinstance(url, str):
        raise InvalidUrlError("URL is required")
    url = url.strip()
    try:
        parsed = urlparse(url)
    except ValueError as e:
        raise InvalidUrlError("Invalid URL format", details=str(e))
    if not parsed.scheme:
        raise InvalidUrlError(f"Invalid URL format: {url}")
    if parsed.scheme.lower() not in ALLOWED_SCHEMES:
        raise InvalidUrlError("Only HTTP and HTTPS URLs are allowed")
    if not parsed.netloc:
        raise InvalidUrlError(f"Invalid URL format: {url}")
    return url


def _charset_from_content_type(content_type: str) -> Optional[str]:
    if "charset=" not in content_type.lower():
        return None
    return content_type.lower().split("charset=")[-1].split(";")[0].strip().strip("\"'")


def decode_body(body: bytes, content_type: str = "") -> str:
    """
    Decode a response body with proper encoding detection.

    Detection order:
    1. Content-Type header charset
    2. HTML meta charset tag in the first 8KB
    3. charset_normalizer detection
    4. UTF-8 with replacement characters

    Args:
        body: Raw response bytes.
        content_type: Content-Type header value.

    Returns:
        Decoded text.
    """
    charset = _charset_from_content_type(content_type)
    if charset:
        try:
            return body.decode(charset)
        except (UnicodeDecodeError, LookupError) as e:
            logger.debug(f"Header charset {charset} failed: {e}")

    head_text = body[:8192].decode("ascii", errors="ignore")
    meta_match = re.search(r'<meta[^>]+charset=["\']?([^"\'>\s;]+)', head_text, re.I)
    if meta_match:
        charset = meta_match.group(1)
        try:
            return body.decode(charset)
        except (UnicodeDecodeError, LookupError) as e:
            logger.debug(f"Meta charset {charset} failed: {e}")

    from charset_normalizer import from_bytes

    best = from_bytes(body).best()
    if best is not None:
        logger.debug(f"charset_normalizer detected: {best.encoding}")
        return str(best)

    return body.decode("utf-8", errors="replace")


def _shutdown_socket(response) -> None:
    """Shut down the socket under a streamed response so a blocked read returns."""
    connection = getattr(response.raw, "connection", None)
    sock = getattr(connection, "sock", None)
    if sock is None:
        return
    try:
        sock.shutdown(socket.SHUT_RDWR)
    except OSError as e:
        logger.debug(f"Socket shutdown after deadline failed: {e}")


def _read_body(response, deadline: float, max_bytes: int) -> bytes:
    """
    Read a streamed response body before a wall-clock deadline.

    A per-read socket timeout does not stop a server that trickles bytes,
    so a timer shuts the connection down once the deadline passes.

    Raises:
        FetchTimeoutError: The deadline passed before the body was read.
        NetworkError: The connection failed mid-body.
    """
    remaining = deadline - time.monotonic()
    if remaining <= 0:
        raise FetchTimeoutError(TIMEOUT_MESSAGE)

    expired = threading.Event()

    def _expire():
        expired.set()
        _shutdown_socket(response)

    timer = threading.Timer(remaining, _expire)
    timer.daemon = True
    timer.start()

    chunks = []
    size = 0
    try:
        for chunk in response.iter_content(chunk_size=CHUNK_SIZE):
            if expired.is_set():
                break
            chunks.append(chunk)
            size += len(chunk)
            if size > max_bytes:
                logger.warning(f"Response body exceeds {max_bytes} bytes, truncating")
                break
    except requests.RequestException as e:
        if not expired.is_set():
            raise NetworkError("Failed to fetch URL", details=str(e))
    finally:
        timer.cancel()

    if expired.is_set() or time.monotonic() > deadline:
        raise FetchTimeoutError(TIMEOUT_MESSAGE)
    return b"".join(chunks)[:max_bytes]


def fetch_url(
    url: str,
    timeout: float = DEFAULT_TIMEOUT,
    session: Optional[requests.Session] = None,
    max_bytes: int = MAX_CONTENT_BYTES,
) -> FetchResult:
    """
    Fetch a URL with a hard timeout.

    The timeout is a wall-clock limit that runs from sending the request to
    reading the last body byte. requests applies the same value to the
    connect and to each socket read while the headers arrive.

    Args:
        url: http(s) URL to fetch.
        timeout: Wall-clock seconds allowed for the fetch.
        session: Optional requests session (used by tests and for pooling).
        max_bytes: Body size after which the rest of the response is dropped.

    Returns:
        FetchResult with the raw body, decoded text and content type.

    Raises:
        InvalidUrlError: Bad or non-HTTP URL.
        FetchTimeoutError: The fetch did not finish within the timeout.
        UpstreamError: Non-2xx response status.
        NetworkError: Connection failure.
    """
    url = validate_url(url)
    http = session or requests
    logger.info(f"Fetching content from: {url}")
    deadline = time.monotonic() + timeout

    try:
        response = http.get(
            url, headers=DEFAULT_HEADERS, timeout=timeout, allow_redirects=True, stream=True
        )
    except requests.Timeout as e:
        raise FetchTimeoutError(TIMEOUT_MESSAGE, details=str(e))
    except requests.RequestException as e:
        raise NetworkError("Failed to fetch URL", details=str(e))

    try:
        if not 200 <= response.status_code < 300:
            logger.warning(f"HTTP error fetching {url}: {response.status_code} {response.reason}")
            raise UpstreamError(response.status_code, response.reason or "")

        content_type = response.headers.get("Content-Type") or "text/html"
        body = _read_body(response, deadline, max_bytes)
    finally:
        response.close()

    text = decode_body(body, content_type)
    logger.info(f"Fetched {url}: content type {content_type}, {len(text)} chars")

    return FetchResult(
        url=url,
        final_url=getattr(response, "url", None) or url,
        status_code=response.status_code,
        content_type=content_type,
        body=body,
        text=text,
    )
