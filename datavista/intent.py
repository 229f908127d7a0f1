"""
Query intent classification.

Rationale:
- Keyword sets overlap ("report" vs "presentation", "trend" in a slide request),
  so rules are an ordered list of (predicate, intent) and the first match wins.
- Pure function of the query text: no state, never raises.
"""

from enum import Enum
from typing import Callable, List, Tuple


class Intent(str, Enum):
    GENERAL = "general"
    VISUALIZATION = "visualization"
    INSIGHTS = "insights"
    PRESENTATION = "presentation"


def _has_any(text: str, *keywords: str) -> bool:
    return any(k in text for k in keywords)


def _is_presentation(q: str) -> bool:
    return (
        _has_any(q, "presentation", "slide", "ppt", "powerpoint", "slideshow")
        or (_has_any(q, "create", "make", "generate") and _has_any(q, "presentation", "slide"))
        or ("export" in q and _has_any(q, "presentation", "slide"))
    )


def _is_visualization(q: str) -> bool:
    return (
        _has_any(q, "chart", "graph", "visualiz", "plot", "dashboard")
        or ("show me" in q and _has_any(q, "data", "visual"))
        or _has_any(q, "bar chart", "pie chart", "line chart", "scatter", "histogram", "heatmap")
    )


def _is_insights(q: str) -> bool:
    return (
        _has_any(
            q,
            "insight", "summary", "overview", "analysis", "trend", "pattern",
            "summarize", "analyze", "tell me about", "what do you see",
            "findings", "key points", "important", "correlation",
            "relationship", "recommendations", "smart report",
        )
        or ("report" in q and "presentation" not in q)
        or (_has_any(q, "show me", "give me") and _has_any(q, "insight", "analysis", "report"))
    )


# Evaluated top to bottom; presentation must precede visualization.
INTENT_RULES: List[Tuple[Callable[[str], bool], Intent]] = [
    (_is_presentation, Intent.PRESENTATION),
    (_is_visualization, Intent.VISUALIZATION),
    (_is_insights, Intent.INSIGHTS),
]


def classify(query: str) -> Intent:
    """Map a free-text query onto an Intent (case-insensitive)."""
    lowered = (query or "").lower()
    return next(
        (intent for predicate, intent in INTENT_RULES if predicate(lowered)),
        Intent.GENERAL,
    )
