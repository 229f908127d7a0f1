"""
Deck assembly: turn a model response and its mined artifacts into slides.

Stages run in a fixed order and each returns zero or more slides:

    title -> executive summary -> key findings (1-2) -> data insights (0-1)
          -> charts (0..n, two per slide) -> recommendations (0-1) -> conclusion

When the cleaned response is too short, or the stages produce fewer than three
slides, a smaller fallback deck is built from the profile instead. Neither path
raises.
"""

import logging
import math
import re
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, List, Optional

from .extractor import (
    MAX_DISPLAY_RECOMMENDATIONS,
    clean_content,
    extract_content_summary,
    extract_data_statements,
    extract_meaningful_content,
)
from .intent import Intent
from .schemas import (
    CategoricalStat,
    ChartSpec,
    DatasetProfile,
    Deck,
    ExtractedArtifacts,
    Layout,
    Metric,
    NumericStat,
    Slide,
    SlideType,
)

logger = logging.getLogger(__name__)

MIN_CONTENT_LENGTH = 50
MIN_PRIMARY_SLIDES = 3
CHARTS_PER_SLIDE = 2
SUMMARY_INSIGHTS = 3
FINDINGS_SPLIT_THRESHOLD = 4
DATA_INSIGHT_FIELDS = 3
MAX_SLIDE_METRICS = 4

_FILE_EXTENSION = re.compile(r"\.(csv|xlsx|json)$", re.I)

# (keywords, title), first match wins.
_DOMAIN_TITLES = [
    (("sales", "revenue"), "Sales Performance Analysis"),
    (("customer", "user"), "Customer Analytics Report"),
    (("marketing", "campaign"), "Marketing Insights Dashboard"),
    (("financial", "profit"), "Financial Analysis Report"),
    (("product", "inventory"), "Product Performance Analysis"),
    (("employee", "hr"), "HR Analytics Report"),
]
_DOMAIN_PATTERNS = [
    (re.compile(r"\b(?:" + "|".join(keywords) + r")s?\b"), title)
    for keywords, title in _DOMAIN_TITLES
]

DEFAULT_TITLE = "Business Intelligence Report"
NEXT_STEPS = "Next Steps: Review findings with stakeholders and implement recommended actions"


@dataclass(frozen=True)
class _DeckInput:
    raw_text: str
    cleaned: str
    artifacts: ExtractedArtifacts
    profile: Optional[DatasetProfile]
    intent: Intent
    timestamp: int
    model_title: Optional[str]


def _bullets(parts: List[str]) -> str:
    return "\n\n".join(f"• {p}" for p in parts)


def _fmt_count(value: Optional[int], default: str) -> str:
    return f"{value:,}" if value is not None else default


def format_date(timestamp: int) -> str:
    try:
        d = datetime.fromtimestamp(timestamp / 1000, tz=timezone.utc)
    except (ValueError, OverflowError, OSError):
        logger.warning("deck.timestamp_out_of_range timestamp=%s", timestamp)
        d = datetime.now(tz=timezone.utc)
    return f"{d.month}/{d.day}/{d.year}"


def deck_title(raw_text: str, profile: Optional[DatasetProfile], model_title: Optional[str] = None) -> str:
    if profile is not None and profile.file_name:
        return f"{_FILE_EXTENSION.sub('', profile.file_name)} Analysis Report"
    if profile is not None and profile.table_name:
        return f"{profile.table_name} Insights"

    lowered = (raw_text or "").lower()
    for pattern, title in _DOMAIN_PATTERNS:
        if pattern.search(lowered):
            return title

    if model_title and "response" not in model_title.lower():
        return model_title

    rows = profile.row_count if profile is not None else None
    if rows:
        return f"Data Analysis Report ({rows:,} Records)"
    return DEFAULT_TITLE


def deck_subtitle(profile: Optional[DatasetProfile], timestamp: int) -> str:
    if profile is not None:
        rows = profile.row_count
        data_info = f"Analysis of {rows if rows else 'your'} data points"
    else:
        data_info = "Data Analysis Report"
    return f"{data_info} • Generated {format_date(timestamp)}"


def _title_slide(d: _DeckInput) -> List[Slide]:
    return [Slide(
        id="title",
        type=SlideType.TITLE,
        title=deck_title(d.raw_text, d.profile, d.model_title),
        subtitle=deck_subtitle(d.profile, d.timestamp),
    )]


def _executive_summary(d: _DeckInput) -> List[Slide]:
    if d.profile is not None:
        parts = [
            f"Overview: This analysis examines {_fmt_count(d.profile.row_count, 'multiple')} data records, "
            "revealing key patterns and trends in the dataset."
        ]
    else:
        parts = [
            "Overview: This presentation summarizes the key findings from comprehensive data analysis, "
            "highlighting critical insights and actionable recommendations."
        ]

    insights = d.artifacts.insights[:SUMMARY_INSIGHTS]
    if insights:
        parts.extend(f"Key Insight {i + 1}: {insight}" for i, insight in enumerate(insights))
    else:
        parts.append(extract_content_summary(d.cleaned))

    return [Slide(id="executive-summary", type=SlideType.CONTENT, title="Executive Summary", content=_bullets(parts))]


def _key_findings(d: _DeckInput) -> List[Slide]:
    insights = d.artifacts.insights
    if not insights:
        return []

    midpoint = math.ceil(len(insights) / 2)
    first, second = insights[:midpoint], insights[midpoint:]
    slides = [Slide(
        id="key-findings-1",
        type=SlideType.CONTENT,
        title="Key Findings",
        content="\n\n".join(f"{i + 1}. {text}" for i, text in enumerate(first)),
    )]
    # A short trailing group is not worth its own slide.
    if second and len(insights) > FINDINGS_SPLIT_THRESHOLD:
        slides.append(Slide(
            id="key-findings-2",
            type=SlideType.CONTENT,
            title="Additional Key Findings",
            content="\n\n".join(f"{midpoint + i + 1}. {text}" for i, text in enumerate(second)),
        ))
    return slides


def _profile_statements(profile: DatasetProfile) -> List[str]:
    statements = []
    if profile.row_count:
        statements.append(f"Dataset Volume: {profile.row_count:,} total records analyzed")
    if profile.statistics:
        statements.append(f"Data Coverage: {len(profile.statistics)} key variables examined")
        for field, stat in list(profile.statistics.items())[:DATA_INSIGHT_FIELDS]:
            if isinstance(stat, NumericStat) and stat.mean is not None:
                statements.append(f"{field}: Average value of {stat.mean:.2f}")
            elif isinstance(stat, CategoricalStat) and stat.unique_count is not None:
                statements.append(f"{field}: {stat.unique_count} unique values identified")
            elif stat.count is not None:
                statements.append(f"{field}: {stat.count} entries recorded")
    return statements


def _data_insights(d: _DeckInput) -> List[Slide]:
    statements = _profile_statements(d.profile) if d.profile is not None else []
    statements += extract_data_statements(d.cleaned)
    if not statements:
        return []

    metrics = ()
    if d.profile is not None:
        metrics = tuple(
            Metric(label=column, value=f"{stat.mean:.2f}")
            for column, stat in d.profile.numeric_stats()
            if stat.mean is not None
        )[:MAX_SLIDE_METRICS]

    return [Slide(
        id="data-insights",
        type=SlideType.METRICS if metrics else SlideType.CONTENT,
        title="Data Insights",
        content=_bullets(statements),
        metrics=metrics,
        layout=Layout.METRICS_GRID if metrics else Layout.SINGLE,
    )]


def chart_slides(charts: List[ChartSpec]) -> List[Slide]:
    """Group chart specs two per slide, in input order."""
    slides = []
    groups = [charts[i:i + CHARTS_PER_SLIDE] for i in range(0, len(charts), CHARTS_PER_SLIDE)]
    for index, group in enumerate(groups):
        if len(group) == 1:
            chart = group[0]
            slides.append(Slide(
                id=f"chart-{index + 1}",
                type=SlideType.CHART,
                title=chart.title or f"Chart {index + 1}",
                content=chart.description or "",
                chart_spec=chart,
                layout=Layout.CHART_SINGLE,
            ))
        else:
            slides.append(Slide(
                id=f"charts-{index + 1}",
                type=SlideType.CHART,
                title="Data Visualization",
                charts=tuple(group),
                layout=Layout.CHART_GRID,
            ))
    return slides


def _charts(d: _DeckInput) -> List[Slide]:
    if d.profile is None or not d.profile.charts:
        return []
    return chart_slides(d.profile.charts)


def format_recommendations(recommendations: List[str]) -> str:
    lines = []
    for i, rec in enumerate(recommendations[:MAX_DISPLAY_RECOMMENDATIONS]):
        text = re.sub(r"^(that\s+|to\s+)", "", rec, flags=re.I).strip()
        text = text[:1].upper() + text[1:]
        lines.append(f"{i + 1}. {text}{'' if text.endswith('.') else '.'}")
    return "\n\n".join(lines)


def _recommendations(d: _DeckInput) -> List[Slide]:
    if not d.artifacts.recommendations:
        return []
    return [Slide(
        id="recommendations",
        type=SlideType.CONTENT,
        title="Recommendations",
        content=format_recommendations(d.artifacts.recommendations),
    )]


def _conclusion(d: _DeckInput) -> List[Slide]:
    insights = d.artifacts.insights
    recommendations = d.artifacts.recommendations
    parts = []
    if insights:
        parts.append(f"Key Findings: {len(insights)} critical insights identified from the analysis")
        parts.append(f"Primary Discovery: {insights[0]}")
    if recommendations:
        parts.append(f"Actionable Items: {len(recommendations)} specific recommendations provided")
    parts.append(NEXT_STEPS)
    if d.profile is not None and d.profile.row_count:
        parts.append(
            f"Impact: Insights derived from {d.profile.row_count:,} data points for informed decision-making"
        )
    return [Slide(
        id="conclusion",
        type=SlideType.CONCLUSION,
        title="Key Takeaways & Next Steps",
        content=_bullets(parts),
    )]


STAGES: List[Callable[[_DeckInput], List[Slide]]] = [
    _title_slide,
    _executive_summary,
    _key_findings,
    _data_insights,
    _charts,
    _recommendations,
    _conclusion,
]


def fallback_deck(d: _DeckInput) -> Deck:
    slides = _title_slide(d)

    if d.profile is not None:
        overview = [
            f"Dataset contains {_fmt_count(d.profile.row_count, 'multiple')} records",
            f"Analysis covers {len(d.profile.statistics)} data fields",
            "AI-powered insights and recommendations generated",
            "Data patterns and trends identified",
        ]
        slides.append(Slide(id="overview", type=SlideType.CONTENT, title="Data Overview", content=_bullets(overview)))

    if len(d.raw_text) > MIN_CONTENT_LENGTH:
        excerpt = extract_meaningful_content(d.raw_text)
        if excerpt:
            slides.append(Slide(id="content", type=SlideType.CONTENT, title="Analysis Results", content=excerpt))

    slides.extend(_charts(d))
    return Deck(slides=tuple(slides), fallback=True, intent=d.intent)


def assemble(
    raw_text: str,
    artifacts: ExtractedArtifacts,
    profile: Optional[DatasetProfile],
    intent: Intent,
    timestamp: int,
    model_title: Optional[str] = None,
) -> Deck:
    """Build the ordered slide deck for one response."""
    raw_text = raw_text or ""
    d = _DeckInput(
        raw_text=raw_text,
        cleaned=clean_content(raw_text),
        artifacts=artifacts,
        profile=profile,
        intent=intent,
        timestamp=timestamp,
        model_title=model_title,
    )

    if len(d.cleaned) < MIN_CONTENT_LENGTH:
        logger.info("deck.fallback reason=short_content length=%d", len(d.cleaned))
        return fallback_deck(d)

    slides: List[Slide] = []
    for stage in STAGES:
        slides.extend(stage(d))

    if len(slides) < MIN_PRIMARY_SLIDES:
        logger.info("deck.fallback reason=too_few_slides slides=%d", len(slides))
        return fallback_deck(d)

    logger.info("deck.assembled slides=%d intent=%s", len(slides), intent.value)
    return Deck(slides=tuple(slides), fallback=False, intent=intent)
