"""
Content extraction: turn the model's free text into structured artifacts.

Every pass is independent and works on either the raw response or a cleaned
copy with model meta-commentary stripped. Nothing here raises; no match means
an empty list.

Caps and length bounds are fixed: insights 8, mined recommendations 6
(5 when displayed), key points 5, key metrics 6.
"""

import logging
import re
from typing import Any, Iterable, List, Optional

from .schemas import DatasetProfile, ExtractedArtifacts, KeyMetric, coerce_profile

logger = logging.getLogger(__name__)

CHART_KINDS = ("bar", "line", "pie", "scatter", "histogram", "heatmap", "area")

MAX_INSIGHTS = 8
MAX_RECOMMENDATIONS = 6
MAX_DISPLAY_RECOMMENDATIONS = 5
MAX_KEY_POINTS = 5
MAX_KEY_METRICS = 6

MIN_LIST_INSIGHT_LENGTH = 15
SENTENCE_LENGTH = (30, 200)
RECOMMENDATION_LENGTH = (20, 200)

# (pattern, replacement), applied in order.
_CLEANUP_RULES = [
    # Introductory clauses
    (re.compile(
        r"^(I'll|I will|Let me|I'm going to|I can see that|Looking at|Based on|From|According to).*?[.!]\s*",
        re.I | re.M,
    ), ""),
    # Hedging / meta phrases
    (re.compile(
        r"(It appears|It seems|It looks like|This suggests|Let me analyze|I'll examine|Here's what I found)",
        re.I,
    ), ""),
    (re.compile(
        r"^(The data shows|Analysis reveals|From the dataset|The analysis indicates).*?[.!]\s*",
        re.I | re.M,
    ), ""),
    # Notes
    (re.compile(r"\(Note:.*?\)", re.I), ""),
    (re.compile(r"\[.*?\]"), ""),
    (re.compile(r"\*\*Note:\*\*.*$", re.I | re.M), ""),
    (re.compile(r"^(Here are the|Here's a|Below are|The following).*?:\s*", re.I | re.M), ""),
    # Markdown artifacts
    (re.compile(r"\*\*(.*?)\*\*"), r"\1"),
    (re.compile(r"^[ \t]*#+[ \t]*", re.M), ""),
    # Whitespace
    (re.compile(r"\n\s*\n\s*\n"), "\n\n"),
    (re.compile(r"^[ \t]+", re.M), ""),
]

_BULLET_LINE = re.compile(r"^\s*[-*•]\s+(.+?)\s*$", re.M)
_NUMBERED_LINE = re.compile(r"^\s*\d+\.\s+(.+?)\s*$", re.M)
_HEADER_LINE = re.compile(r"^\s*#+\s+(.+?)\s*$", re.M)
# Sentence boundaries; a period inside a number ("12.5") does not split.
_SENTENCE_SPLIT = re.compile(r"[!?\n]+|\.+(?!\d)")
_LIST_MARKER = re.compile(r"^(?:[-*•]|\d+\.)\s+")
_INDICATORS = re.compile(
    r"\b(shows?|indicates?|reveals?|demonstrates?|suggests?|highest|lowest|"
    r"increased?|decreased?|significant|trend|pattern)\b",
    re.I,
)
_AI_WORD = re.compile(r"\bai\b", re.I)

_RECOMMENDATION_PATTERNS = [
    re.compile(
        r"\b(?:recommend(?:s|ed|ing)?|suggest(?:s|ed|ing)?|should|consider(?:s|ed|ing)?|"
        r"propos(?:e|es|ed|ing)|advis(?:e|es|ed|ing))\b\s*([^.!?\n]+)",
        re.I,
    ),
    re.compile(r"\brecommendation\s*\d*\s*:\s*([^.\n]+)", re.I),
]

_METRIC_KEYWORDS = ("%", "average", "total", "mean", "median", "max", "min")

_SUMMARY_PATTERNS = [
    re.compile(r"(?:summary|conclusion|overview|key findings?):\s*([^.\n]{30,200})", re.I),
    re.compile(r"(?:in summary|to summarize|overall|in conclusion),?\s*([^.\n]{30,200})", re.I),
]
GENERIC_SUMMARY = "Comprehensive analysis reveals important insights and patterns within the dataset"

_DATA_STATEMENT_PATTERNS = [
    re.compile(r"(\d+(?:,\d{3})*(?:\.\d+)?)\s*(?:percent|%|records|rows|entries)", re.I),
    re.compile(
        r"(?:average|mean|median|total|sum|count|maximum|minimum|highest|lowest)\s*(?:of|is|:)?\s*([^.\n]{10,50})",
        re.I,
    ),
]
MAX_STATEMENTS_PER_PATTERN = 2

_FILLER_START = re.compile(r"^(the|this|it|that|in|for|with|by|of|on|at|to|from)\b", re.I)


def clean_content(text: str) -> str:
    """Strip model boilerplate and markdown emphasis; collapse redundant blank lines."""
    cleaned = text or ""
    for pattern, repl in _CLEANUP_RULES:
        cleaned = pattern.sub(repl, cleaned)
    return cleaned.strip()


def _normalize(text: str) -> str:
    return " ".join(text.split()).rstrip(".!?;:").casefold()


def _dedupe(items: Iterable[str]) -> List[str]:
    seen = set()
    out = []
    for item in items:
        key = _normalize(item)
        if key and key not in seen:
            seen.add(key)
            out.append(item)
    return out


def _is_list_insight(text: str) -> bool:
    return (
        len(text) > MIN_LIST_INSIGHT_LENGTH
        and not _AI_WORD.search(text)
        and "analysis shows" not in text.lower()
    )


def _is_sentence_insight(sentence: str) -> bool:
    lo, hi = SENTENCE_LENGTH
    return (
        lo <= len(sentence) < hi
        and bool(_INDICATORS.search(sentence))
        and "analysis" not in sentence.lower()
        and not _AI_WORD.search(sentence)
    )


def extract_insights(cleaned: str) -> List[str]:
    """Bullets, then numbered items, then indicator sentences; deduplicated and capped."""
    bullets = [m.group(1) for m in _BULLET_LINE.finditer(cleaned)]
    numbered = [m.group(1) for m in _NUMBERED_LINE.finditer(cleaned)]
    sentences = [_LIST_MARKER.sub("", s.strip()) for s in _SENTENCE_SPLIT.split(cleaned)]

    candidates = [b for b in bullets if _is_list_insight(b)]
    candidates += [n for n in numbered if _is_list_insight(n)]
    candidates += [s for s in sentences if _is_sentence_insight(s)]
    return _dedupe(candidates)[:MAX_INSIGHTS]


def extract_recommendations(cleaned: str) -> List[str]:
    lo, hi = RECOMMENDATION_LENGTH
    found = []
    for pattern in _RECOMMENDATION_PATTERNS:
        for m in pattern.finditer(cleaned):
            rec = m.group(1).strip().lstrip(":,-– ").strip()
            if lo <= len(rec) < hi:
                found.append(rec)
    return _dedupe(found)[:MAX_RECOMMENDATIONS]


def extract_chart_suggestions(raw_text: str) -> List[str]:
    lowered = (raw_text or "").lower()
    return [
        kind for kind in CHART_KINDS
        if f"{kind} chart" in lowered or f"{kind} graph" in lowered
    ]


def extract_key_metrics(raw_text: str, profile: Optional[DatasetProfile]) -> List[KeyMetric]:
    metrics = []
    for line in (raw_text or "").split("\n"):
        text = line.strip()
        if text and any(k in text.lower() for k in _METRIC_KEYWORDS):
            metrics.append(KeyMetric(text=text, source="model"))

    if profile is not None:
        for column, stat in profile.numeric_stats():
            metrics.append(
                KeyMetric(column=column, mean=stat.mean, max=stat.max, min=stat.min, source="profile")
            )
    return metrics[:MAX_KEY_METRICS]


def extract_sections(raw_text: str) -> List[str]:
    return [m.group(1).strip() for m in _HEADER_LINE.finditer(raw_text or "")]


def extract_key_points(raw_text: str) -> List[str]:
    return [m.group(1) for m in _BULLET_LINE.finditer(raw_text or "")][:MAX_KEY_POINTS]


def extract_content_summary(cleaned: str) -> str:
    """A summary-like sentence for decks that have no mined insights."""
    for pattern in _SUMMARY_PATTERNS:
        m = pattern.search(cleaned)
        if m:
            return m.group(1).strip()

    paragraphs = [p for p in cleaned.split("\n\n") if len(p.strip()) > 50]
    if paragraphs:
        first = paragraphs[0].strip()
        return first[:200] + ("..." if len(first) > 200 else "")

    return GENERIC_SUMMARY


def extract_data_statements(cleaned: str) -> List[str]:
    """Numeric statements quoted from the text (percentages, row counts, aggregates)."""
    statements = []
    for pattern in _DATA_STATEMENT_PATTERNS:
        matches = [m.group(0).strip() for m in pattern.finditer(cleaned)]
        statements.extend(matches[:MAX_STATEMENTS_PER_PATTERN])
    return statements


def extract_meaningful_content(raw_text: str) -> str:
    """Lightly cleaned excerpt used by the fallback deck."""
    kept = []
    for line in (raw_text or "").split("\n"):
        text = line.strip()
        if len(text) < 10:
            continue
        if _FILLER_START.match(text) and len(text) <= 30:
            continue
        kept.append(text)
    return "\n".join(kept).strip()


def extract(raw_text: str, profile: Any = None) -> ExtractedArtifacts:
    """Run every extraction pass over one model response."""
    raw_text = raw_text or ""
    if not isinstance(profile, DatasetProfile):
        profile = coerce_profile(profile)
    cleaned = clean_content(raw_text)

    artifacts = ExtractedArtifacts(
        insights=extract_insights(cleaned),
        recommendations=extract_recommendations(cleaned),
        chart_suggestions=extract_chart_suggestions(raw_text),
        key_metrics=extract_key_metrics(raw_text, profile),
        presentation_sections=extract_sections(raw_text),
        key_points=extract_key_points(raw_text),
    )
    logger.debug(
        "extract.done insights=%d recommendations=%d charts=%d metrics=%d sections=%d key_points=%d",
        len(artifacts.insights),
        len(artifacts.recommendations),
        len(artifacts.chart_suggestions),
        len(artifacts.key_metrics),
        len(artifacts.presentation_sections),
        len(artifacts.key_points),
    )
    return artifacts
