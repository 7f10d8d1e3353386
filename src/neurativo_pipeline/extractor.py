"""
Main-content extraction from arbitrary web pages.

Real-world pages vary wildly in markup, so extraction is an ordered
cascade of independent strategies. Each strategy looks at the parsed
page and either returns a markup region or None; the first region with
non-trivial text wins and is handed to the cleaner.

EXTRACTION CASCADE (in order):
1. All <article> regions, concatenated
2. The first <main> region
3. The first content-like <div>/<section> by class/id substring
4. All <p> elements in <body>, when there are more than two
5. The whole <body> (always accepted)
"""

import logging
from dataclasses import dataclass
from typing import Callable, Optional
from urllib.parse import urlparse

from bs4 import BeautifulSoup, Tag

from .cleaner import clean_html

logger = logging.getLogger(__name__)

# Minimum visible text length for a strategy's region to count as a match
MIN_STRATEGY_CHARS = 200

# Class/id substrings of content containers, in priority order
CONTENT_CONTAINER_HINTS = (
    "content",
    "post-content",
    "entry-content",
    "article-content",
    "main-content",
    "post",
    "entry",
    "article",
)

# Removed before any strategy runs
NON_CONTENT_TAGS = ["script", "style", "noscript"]

Strategy = Callable[[BeautifulSoup], Optional[str]]


@dataclass(frozen=True)
class ExtractionResult:
    """Title and cleaned main content of a page."""
    title: str
    content: str
    strategy: str


def _visible_length(markup: str) -> int:
    return len(BeautifulSoup(markup, "lxml").get_text(" ", strip=True))


def _is_substantial(markup: Optional[str]) -> bool:
    return bool(markup) and _visible_length(markup) > MIN_STRATEGY_CHARS


def _inner_markup(tag: Tag) -> str:
    return "".join(str(child) for child in tag.contents)


def _attribute_text(tag: Tag, name: str) -> str:
    value = tag.get(name)
    if not value:
        return ""
    if isinstance(value, (list, tuple)):
        return " ".join(value).lower()
    return str(value).lower()


def article_strategy(soup: BeautifulSoup) -> Optional[str]:
    """Concatenate every <article> region."""
    articles = soup.find_all("article")
    if not articles:
        return None
    markup = "\n\n".join(_inner_markup(article) for article in articles)
    return markup if _is_substantial(markup) else None


def main_strategy(soup: BeautifulSoup) -> Optional[str]:
    """Use the first <main> region."""
    main = soup.find("main")
    if main is None:
        return None
    markup = _inner_markup(main)
    return markup if _is_substantial(markup) else None


def content_container_strategy(soup: BeautifulSoup) -> Optional[str]:
    """Find the first content-like container, trying class/id hints in priority order."""
    containers = soup.find_all(["div", "section"])
    for hint in CONTENT_CONTAINER_HINTS:
        for container in containers:
            if hint in _attribute_text(container, "class") or hint in _attribute_text(container, "id"):
                markup = _inner_markup(container)
                if _is_substantial(markup):
                    return markup
    return None


def paragraphs_strategy(soup: BeautifulSoup) -> Optional[str]:
    """Join all <p> elements of the body when there are more than two."""
    body = soup.body or soup
    paragraphs = body.find_all("p")
    if len(paragraphs) <= 2:
        return None
    markup = "\n".join(str(p) for p in paragraphs)
    return markup if _is_substantial(markup) else None


def body_strategy(soup: BeautifulSoup) -> Optional[str]:
    """Last resort: the whole body."""
    if soup.body is not None:
        return _inner_markup(soup.body)
    return str(soup)


# Ordered cascade; the last strategy always produces a region.
STRATEGIES: list[tuple[str, Strategy]] = [
    ("article", article_strategy),
    ("main", main_strategy),
    ("content_container", content_container_strategy),
    ("paragraphs", paragraphs_strategy),
    ("body", body_strategy),
]


def resolve_title(soup: BeautifulSoup, source_url: str) -> str:
    """
    Resolve the page title.

    Order: <title> text, og:title meta content, source hostname.
    """
    title_tag = soup.find("title")
    if title_tag:
        title = " ".join(title_tag.get_text(separator=" ", strip=True).split())
        if title:
            return title

    og_title = soup.find("meta", attrs={"property": "og:title"})
    if og_title and og_title.get("content"):
        title = " ".join(og_title["content"].split())
        if title:
            return title

    return urlparse(source_url).hostname or source_url


def select_main_region(
    soup: BeautifulSoup,
    strategies: Optional[list[tuple[str, Strategy]]] = None,
) -> tuple[str, str]:
    """
    Run the strategy cascade.

    Returns:
        Tuple of (region_markup, strategy_name). Empty markup when no
        strategy matched.
    """
    for name, strategy in strategies or STRATEGIES:
        markup = strategy(soup)
        if markup:
            return markup, name
    return "", "none"


def extract(markup: str, source_url: str) -> ExtractionResult:
    """
    Extract the title and main readable content of a page.

    Args:
        markup: Full page HTML.
        source_url: URL the markup came from (used for the title fallback).

    Returns:
        ExtractionResult with cleaned plain-text content.
    """
    soup = BeautifulSoup(markup or "", "lxml")
    for tag in soup.find_all(NON_CONTENT_TAGS):
        tag.decompose()

    title = resolve_title(soup, source_url)
    region, strategy = select_main_region(soup)
    content = clean_html(region)

    logger.info(
        f"Extracted content from {source_url}: strategy={strategy}, "
        f"region={len(region)} chars, cleaned={len(content)} chars"
    )
    return ExtractionResult(title=title, content=content, strategy=strategy)
