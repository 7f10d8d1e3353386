"""
Markup and document text cleaning.

clean_html() turns an extracted markup region into plain text:
boilerplate blocks (navigation, headers, footers, asides, menus) are
dropped with their content, remaining tags are stripped, entities are
decoded and common boilerplate phrases are removed.

clean_document() is the variant for text pulled from uploaded documents:
page numbers, lone numeric lines and metadata lines are dropped and
stray symbols are mapped to spaces.

Both functions are idempotent: cleaning already-clean text is a no-op.
"""

import re

from bs4 import BeautifulSoup, NavigableString

from .text_repair import decode_entities, normalize_typography, normalize_whitespace

# Blocks removed together with their content before tag stripping
REMOVED_TAGS = ["script", "style", "noscript", "nav", "header", "footer", "aside", "menu"]

# Block-level elements get paragraph breaks around them
BLOCK_TAGS = [
    "p", "div", "section", "article", "main", "blockquote", "pre",
    "h1", "h2", "h3", "h4", "h5", "h6",
    "ul", "ol", "li", "dl", "dt", "dd",
    "table", "tr", "td", "th", "figure", "figcaption", "br", "hr",
]

# Boilerplate phrases replaced by a space (never deleted outright, so the
# words around them do not merge).
BOILERPLATE_PATTERNS = [
    re.compile(r"\bskip to (?:main )?content\b", re.I),
    re.compile(r"\bskip navigation\b", re.I),
    re.compile(r"\btoggle navigation\b", re.I),
    re.compile(r"\bmain menu\b", re.I),
    re.compile(r"\bbreadcrumbs?\b", re.I),
    re.compile(r"\bshare this\b", re.I),
    re.compile(r"\bfollow us\b", re.I),
    re.compile(r"\bsubscribe\b", re.I),
    re.compile(r"\bnewsletter\b", re.I),
    re.compile(r"\bcopyright\b[^\n]{0,200}?\ball rights reserved\b", re.I),
    re.compile(r"\bprivacy policy\b", re.I),
    re.compile(r"\bterms of (?:service|use)\b", re.I),
    re.compile(r"\bcookie policy\b", re.I),
    re.compile(r"\bback to top\b", re.I),
    re.compile(r"\bread more\b", re.I),
    re.compile(r"\bcontinue reading\b", re.I),
]

# Document artifacts
PAGE_NUMBER_LINE = re.compile(r"^Page\s+\d+")
NUMERIC_LINE = re.compile(r"^\d+$")
METADATA_LINE = re.compile(r"^(?:Created|Modified|Author|Title):")
UNSAFE_CHARS = re.compile(r"[^\w\s.,!?;:\-()\[\]{}\"']")

INLINE_WHITESPACE = re.compile(r"\s+")


def _strip_markup(markup: str) -> str:
    """Drop boilerplate blocks and tags, keeping paragraph breaks."""
    soup = BeautifulSoup(markup, "lxml")
    for tag in soup.find_all(REMOVED_TAGS):
        tag.decompose()
    # Source line wrapping inside text is not a line break
    for string in soup.find_all(string=True):
        if type(string) is NavigableString and string.find_parent("pre") is None:
            string.replace_with(INLINE_WHITESPACE.sub(" ", str(string)))
    for tag in soup.find_all(BLOCK_TAGS):
        tag.insert_before("\n\n")
        tag.insert_after("\n\n")
    return soup.get_text()


def remove_boilerplate(text: str) -> str:
    """Replace known navigation/footer phrases with a space."""
    for pattern in BOILERPLATE_PATTERNS:
        text = pattern.sub(" ", text)
    return text


def _clean_html_once(markup: str) -> str:
    text = markup
    if "<" in text or "&" in text:
        text = _strip_markup(text)
    text = decode_entities(text)
    text = normalize_typography(text)
    text = remove_boilerplate(text)
    return normalize_whitespace(text)


def clean_html(markup: str) -> str:
    """
    Convert a markup region into clean plain text.

    Decoding entities can expose text that itself looks like markup
    (``&lt;b&gt;``), so the single pass is repeated until the output is
    stable.

    Args:
        markup: HTML fragment or plain text.

    Returns:
        Plain text with paragraphs separated by blank lines.
    """
    if not markup:
        return ""
    text = markup
    cleaned = _clean_html_once(text)
    while cleaned != text:
        text = cleaned
        cleaned = _clean_html_once(text)
    return text


def _is_artifact_line(line: str) -> bool:
    stripped = line.strip()
    return bool(
        PAGE_NUMBER_LINE.match(stripped)
        or NUMERIC_LINE.match(stripped)
        or METADATA_LINE.match(stripped)
    )


def clean_document(text: str) -> str:
    """
    Clean text extracted from an uploaded document.

    Removes page-number lines (``Page 3``), lone numeric lines and
    metadata lines (``Author: ...``), maps symbols outside the safe
    punctuation set to spaces and collapses whitespace, keeping
    paragraph breaks.

    Args:
        text: Raw document text.

    Returns:
        Cleaned text.
    """
    if not text:
        return ""
    text = text.replace("\r\n", "\n").replace("\r", "\n")
    text = text.replace("\u2028", "\n").replace("\u2029", "\n\n")
    text = UNSAFE_CHARS.sub(" ", text)
    lines = [line for line in text.split("\n") if not _is_artifact_line(line)]
    return normalize_whitespace("\n".join(lines))
