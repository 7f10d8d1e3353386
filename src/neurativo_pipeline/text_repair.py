# -*- coding: utf-8 -*-
"""
Text repair and encoding normalization module.

Handles:
- Mojibake detection and repair (via ftfy)
- The fixed table of common HTML entities
- Typographic character normalization (curly quotes, ellipsis, nbsp)
- Whitespace normalization that keeps paragraph breaks
"""

import re
import unicodedata
from typing import Tuple

import ftfy

# Simple string markers to detect
MOJIBAKE_MARKERS = [
    "â€",      # Most common mojibake prefix
    "Â",       # Non-breaking space corruption
    "Ã",       # UTF-8 decoded as Latin-1
    "\ufffd",  # Replacement character
]

# Common HTML entities left over in scraped text. Dashes keep their
# typographic form; quotes and ellipsis become ASCII.
HTML_ENTITIES = {
    "&nbsp;": " ",
    "&lt;": "<",
    "&gt;": ">",
    "&quot;": '"',
    "&#39;": "'",
    "&apos;": "'",
    "&hellip;": "...",
    "&mdash;": "—",
    "&ndash;": "–",
    "&rsquo;": "'",
    "&lsquo;": "'",
    "&rdquo;": '"',
    "&ldquo;": '"',
    "&amp;": "&",
}

# What the entities above decode to when the HTML parser already
# unescaped them.
TYPOGRAPHIC_MAP = {
    "\u00a0": " ",    # Non-breaking space
    "\u2026": "...",  # Horizontal ellipsis
    "\u2018": "'",    # Left single quotation mark
    "\u2019": "'",    # Right single quotation mark
    "\u201c": '"',    # Left double quotation mark
    "\u201d": '"',    # Right double quotation mark
}

_ZERO_WIDTH = ("\u200b", "\u200c", "\u200d", "\u2060", "\ufeff", "\u00ad")


def detect_mojibake(text: str) -> bool:
    """Detect if text contains mojibake corruption."""
    if not text:
        return False
    return any(marker in text for marker in MOJIBAKE_MARKERS)


def repair_mojibake(text: str) -> str:
    """
    Repair mojibake corruption such as "â€™" in place of an apostrophe.

    ftfy is told not to touch HTML entities, quotes or line breaks; those
    are handled by the fixed tables in this module so that the result is
    stable under repeated cleaning.
    """
    if not text:
        return text
    return ftfy.fix_text(
        text,
        unescape_html=False,
        uncurl_quotes=False,
        fix_line_breaks=False,
        normalization="NFC",
    )


def decode_entities(text: str) -> str:
    """Decode the fixed table of common HTML entities."""
    if not text or "&" not in text:
        return text
    result = text
    for entity, replacement in HTML_ENTITIES.items():
        result = result.replace(entity, replacement)
    return result


def normalize_typography(text: str) -> str:
    """Map curly quotes, ellipsis and non-breaking spaces to plain forms."""
    if not text:
        return text
    result = text
    for fancy, plain in TYPOGRAPHIC_MAP.items():
        result = result.replace(fancy, plain)
    for char in _ZERO_WIDTH:
        result = result.replace(char, "")
    return result


def normalize_whitespace(text: str) -> str:
    """
    Normalize whitespace while keeping paragraph breaks.

    - Runs of spaces and tabs become one space
    - Lines are stripped
    - Three or more newlines collapse to one blank line
    - Leading and trailing whitespace is removed
    """
    if not text:
        return ""
    result = text.replace("\r\n", "\n").replace("\r", "\n")
    result = result.replace("\u2028", "\n").replace("\u2029", "\n\n")
    result = re.sub(r"[^\S\n]+", " ", result)
    result = "\n".join(line.strip() for line in result.split("\n"))
    result = re.sub(r"\n{3,}", "\n\n", result)
    return result.strip()


def repair_text(text: str) -> Tuple[str, bool]:
    """
    Full text repair pipeline.

    Applies in order: mojibake repair, typographic normalization,
    whitespace normalization, NFC normalization.

    Returns:
        Tuple of (repaired_text, was_corrupted).
    """
    if not text:
        return text, False

    was_corrupted = detect_mojibake(text)
    result = repair_mojibake(text)
    result = normalize_typography(result)
    result = normalize_whitespace(result)
    result = unicodedata.normalize("NFC", result)
    return result, was_corrupted
