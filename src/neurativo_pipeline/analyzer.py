"""
Heuristic content analysis.

Derives key points, a short summary, frequency-based topics, pattern
based concepts and a coarse English/unknown language signal from cleaned
text. Heuristics are deliberately simple: sentence position, a fixed
importance vocabulary, word frequency and a handful of regex patterns.

The URL and document pipelines use different vocabularies, caps and
thresholds. Both are kept as AnalysisProfile instances rather than being
merged into one.
"""

import logging
import math
import re
from collections import Counter
from dataclasses import dataclass
from pathlib import PurePath
from typing import Optional, Sequence

from .models import AnalysisResult

logger = logging.getLogger(__name__)

SUMMARY_MAX_CHARS = 1000
QUIZ_DIGEST_CONTENT_CHARS = 2000

SENTENCE_SPLIT = re.compile(r"[.!?]+")
PARAGRAPH_SPLIT = re.compile(r"\n\s*\n")
NON_WORD = re.compile(r"[^\w]")
NUMERIC = re.compile(r"^\d+$")

# Words counted by the language check
ENGLISH_MARKERS = frozenset([
    "the", "and", "or", "but", "in", "on", "at", "to", "for", "of", "with", "by",
    "is", "are", "was", "were", "have", "has", "had", "this", "that",
])

URL_IMPORTANCE_WORDS = (
    "important", "key", "main", "primary", "essential", "fundamental", "critical",
    "significant", "major", "principle", "concept", "theory", "method", "process",
    "result", "conclusion", "therefore", "however", "because", "due to",
)

DOCUMENT_IMPORTANCE_WORDS = (
    "definition", "define", "important", "key", "main", "primary", "essential",
    "fundamental", "critical", "significant", "principle", "concept", "theory",
    "method", "process", "approach", "technique", "strategy", "framework",
    "result", "conclusion", "finding", "discovery", "research", "study",
    "analysis", "evaluation", "assessment", "comparison", "contrast",
    "cause", "effect", "reason", "because", "therefore", "thus", "hence",
    "however", "although", "despite", "nevertheless", "furthermore", "moreover",
)

URL_STOP_WORDS = frozenset([
    "the", "a", "an", "and", "or", "but", "in", "on", "at", "to", "for", "of", "with", "by",
    "is", "are", "was", "were", "be", "been", "have", "has", "had", "do", "does", "did",
    "will", "would", "could", "should", "may", "might", "can", "this", "that", "these",
    "those", "they", "them", "their", "there", "then", "than", "when", "where", "why",
    "how", "what", "who", "which", "some", "any", "all", "each", "every", "most", "many",
    "much", "more", "less", "few", "several", "other", "another", "such", "same", "different",
])

DOCUMENT_STOP_WORDS = URL_STOP_WORDS | frozenset([
    "also", "just", "only", "even", "still", "now", "here", "very", "well", "back", "through",
    "during", "before", "after", "above", "below", "up", "down", "out", "off", "over", "under",
    "again", "further", "once",
])

CONCEPT_PATTERNS = (
    re.compile(
        r"\b([A-Z][a-z]+ (?:theory|principle|law|rule|method|approach|technique"
        r"|strategy|framework|model|system))\b"
    ),
    re.compile(
        r"\b((?:data|information|knowledge|learning|teaching|education|research"
        r"|study|analysis|evaluation|assessment)[a-z]*)\b"
    ),
    re.compile(
        r"\b([a-z]+ (?:process|procedure|mechanism|structure|function|operation"
        r"|behavior|pattern|trend))\b"
    ),
)


@dataclass(frozen=True)
class AnalysisProfile:
    """
    Tuning knobs of one ingestion path.

    Attributes:
        name: Profile label used in logs.
        importance_words: Vocabulary marking a sentence as a key point.
        stop_words: Words never reported as topics.
        min_topic_frequency: Minimum occurrences for a topic.
        max_topics: Topics collected by frequency.
        topics_returned: Topics kept in the result.
        key_points_collected: Stop adding keyword sentences at this many key points.
        key_points_returned: Key points kept in the result.
        dedupe_prefix: Leading characters compared to detect duplicate key points.
        dedupe_exact_prefix: Duplicates share the same leading characters exactly;
            otherwise a candidate whose prefix appears anywhere in a kept point is a duplicate.
        summary_points: Key points joined into the summary.
        summary_fallback_sentences: Sentences used when there are no key points.
        language_sample: Leading tokens inspected by the language check.
        concepts_returned: Concepts kept (0 disables concept extraction).
    """

    name: str
    importance_words: Sequence[str]
    stop_words: frozenset
    min_topic_frequency: int
    max_topics: int
    topics_returned: int
    key_points_collected: int
    key_points_returned: int
    dedupe_prefix: int
    summary_points: int
    summary_fallback_sentences: int
    language_sample: int
    concepts_returned: int = 0
    dedupe_exact_prefix: bool = False

    @property
    def importance_pattern(self) -> re.Pattern:
        alternatives = "|".join(re.escape(word) for word in self.importance_words)
        return re.compile(rf"\b(?:{alternatives})", re.I)


# "freq > 2" in the URL path, "freq >= 3" in the document path.
URL_PROFILE = AnalysisProfile(
    name="url",
    importance_words=URL_IMPORTANCE_WORDS,
    stop_words=URL_STOP_WORDS,
    min_topic_frequency=3,
    max_topics=15,
    topics_returned=15,
    key_points_collected=15,
    key_points_returned=10,
    dedupe_prefix=20,
    summary_points=3,
    summary_fallback_sentences=2,
    language_sample=200,
)

DOCUMENT_PROFILE = AnalysisProfile(
    name="document",
    importance_words=DOCUMENT_IMPORTANCE_WORDS,
    stop_words=DOCUMENT_STOP_WORDS,
    min_topic_frequency=3,
    max_topics=15,
    topics_returned=12,
    key_points_collected=20,
    key_points_returned=15,
    dedupe_prefix=30,
    summary_points=5,
    summary_fallback_sentences=3,
    language_sample=100,
    concepts_returned=10,
    dedupe_exact_prefix=True,
)


def count_words(text: str) -> int:
    """Count whitespace-separated words."""
    return len(text.split()) if text else 0


def split_sentences(text: str) -> list[str]:
    """Split on sentence punctuation, keeping sentences longer than 20 chars."""
    sentences = (" ".join(part.split()) for part in SENTENCE_SPLIT.split(text or ""))
    return [s for s in sentences if len(s) > 20]


def split_paragraphs(text: str) -> list[str]:
    """Split on blank-line runs, keeping paragraphs longer than 50 chars."""
    paragraphs = (part.strip() for part in PARAGRAPH_SPLIT.split(text or ""))
    return [p for p in paragraphs if len(p) > 50]


def _is_duplicate(candidate: str, key_points: list[str], profile: AnalysisProfile) -> bool:
    prefix = candidate[:profile.dedupe_prefix]
    if profile.dedupe_exact_prefix:
        return any(existing[:profile.dedupe_prefix] == prefix for existing in key_points)
    return any(prefix in existing for existing in key_points)


def extract_key_points(text: str, profile: AnalysisProfile = URL_PROFILE) -> list[str]:
    """
    Pick sentences likely to carry important information.

    Two sources, in order:
    1. The first sentence of each paragraph (30-200 chars), usually a
       topic sentence.
    2. Sentences of 40-300 chars containing an importance word, until
       the profile's collection cap is reached.

    Candidates whose leading characters already appear in a key point are
    skipped. The full collected list is returned; callers slice it.
    """
    key_points: list[str] = []
    importance = profile.importance_pattern

    for paragraph in split_paragraphs(text):
        first_sentence = " ".join(SENTENCE_SPLIT.split(paragraph)[0].split())
        if 30 < len(first_sentence) < 200:
            candidate = first_sentence + "."
            if not _is_duplicate(candidate, key_points, profile):
                key_points.append(candidate)

    for sentence in split_sentences(text):
        if len(key_points) >= profile.key_points_collected:
            break
        if 40 < len(sentence) < 300 and importance.search(sentence):
            candidate = sentence + "."
            if not _is_duplicate(candidate, key_points, profile):
                key_points.append(candidate)

    return key_points


def build_summary(
    key_points: list[str],
    sentences: list[str],
    profile: AnalysisProfile = URL_PROFILE,
) -> str:
    """Join the leading key points, falling back to the first raw sentences."""
    summary = " ".join(key_points[: profile.summary_points])
    if not summary and sentences:
        summary = ". ".join(sentences[: profile.summary_fallback_sentences]) + "."
    return summary[:SUMMARY_MAX_CHARS]


def extract_topics(
    text: str,
    profile: AnalysisProfile = URL_PROFILE,
    focus_areas: Optional[Sequence[str]] = None,
) -> list[str]:
    """
    Frequency-based topics.

    Tokens are lower-cased with non-word characters stripped. Stop words,
    pure numbers and tokens of three characters or fewer never count.
    Ties keep first-seen order. Topics matching a focus area move first.
    """
    frequencies: Counter = Counter()
    for raw in (text or "").lower().split():
        if len(raw) <= 2:
            continue
        word = NON_WORD.sub("", raw)
        if len(word) > 3 and word not in profile.stop_words and not NUMERIC.match(word):
            frequencies[word] += 1

    topics = [
        word for word, freq in frequencies.most_common()
        if freq >= profile.min_topic_frequency
    ][: profile.max_topics]

    if focus_areas:
        focus = [area.lower() for area in focus_areas if area]
        preferred = [t for t in topics if any(t in area or area in t for area in focus)]
        topics = preferred + [t for t in topics if t not in preferred]

    return topics


def extract_concepts(text: str, limit: int = 20) -> list[str]:
    """
    Pattern-based educational concepts.

    Matches phrases like "Piaget theory", nouns such as "assessment" and
    "<word> process" style phrases. Lower-cased and deduplicated.
    """
    concepts: list[str] = []
    for pattern in CONCEPT_PATTERNS:
        for match in pattern.finditer(text or ""):
            concept = match.group(1).lower().strip()
            if len(concept) > 5 and concept not in concepts and len(concepts) < limit:
                concepts.append(concept)
    return concepts


def detect_language(text: str, sample_size: int = 200) -> str:
    """
    Coarse English detection.

    Returns "en" when more than 5% of the first ``sample_size`` tokens are
    common English function words, else "unknown".
    """
    tokens = (text or "").lower().split()[:sample_size]
    if not tokens:
        return "unknown"
    english = sum(1 for token in tokens if NON_WORD.sub("", token) in ENGLISH_MARKERS)
    ratio = english / min(len(tokens), sample_size)
    logger.debug(f"Language detection: {english}/{len(tokens)} English words ({ratio:.1%})")
    return "en" if ratio > 0.05 else "unknown"


def analyze(
    text: str,
    profile: AnalysisProfile = URL_PROFILE,
    focus_areas: Optional[Sequence[str]] = None,
) -> AnalysisResult:
    """
    Run the full heuristic analysis.

    Args:
        text: Cleaned text.
        profile: URL_PROFILE or DOCUMENT_PROFILE.
        focus_areas: Optional topics to rank first.

    Returns:
        AnalysisResult with capped key points, topics and concepts.
    """
    sentences = split_sentences(text)
    key_points = extract_key_points(text, profile)
    summary = build_summary(key_points, sentences, profile)
    topics = extract_topics(text, profile, focus_areas)
    concepts = extract_concepts(text)[: profile.concepts_returned] if profile.concepts_returned else []

    result = AnalysisResult(
        summary=summary,
        key_points=key_points[: profile.key_points_returned],
        topics=topics[: profile.topics_returned],
        concepts=concepts,
        word_count=count_words(text),
        language=detect_language(text, profile.language_sample),
    )
    logger.info(
        f"Analysis ({profile.name}) complete: {len(result.key_points)} key points, "
        f"{len(result.topics)} topics, {len(result.concepts)} concepts, "
        f"summary {len(result.summary)} chars"
    )
    return result


def derive_document_title(file_name: str, content: str) -> str:
    """
    Title for an uploaded document.

    The file stem with dashes/underscores turned into spaces, replaced by
    the first line of the content when that line is 6-99 chars long.
    """
    title = PurePath(file_name).stem if "." in file_name else file_name
    title = re.sub(r"[-_]", " ", title)
    first_line = (content or "").split("\n", 1)[0].strip()
    if 5 < len(first_line) < 100:
        title = first_line
    return title


def estimate_page_count(word_count: int, words_per_page: int = 250, max_pages: int = 3) -> int:
    """Estimate pages at ~250 words per page, capped."""
    return min(math.ceil(word_count / words_per_page), max_pages)


def build_quiz_ready_content(
    title: str,
    key_points: Sequence[str],
    summary: str,
    topics: Sequence[str],
    content: str,
) -> str:
    """
    Condensed digest handed to quiz generation instead of the full document.
    """
    lines = [f"Title: {title}", "", "Key Learning Points:"]
    lines.extend(f"{i}. {point}" for i, point in enumerate(key_points[:10], start=1))
    lines.extend([
        "",
        "Summary:",
        summary,
        "",
        "Important Topics:",
        ", ".join(topics[:10]),
        "",
        "Core Content:",
        content[:QUIZ_DIGEST_CONTENT_CHARS],
    ])
    return "\n".join(lines)
