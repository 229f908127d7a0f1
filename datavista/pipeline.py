"""
Core orchestration / pipeline.

Flow:
1. Receive inputs (query, analysis_data)
2. Classify the query into an intent (keyword rules, no LLM)
3. Compose the prompt from the validated dataset profile
4. Single LLM call: the only suspension point and the only stage that may fail
5. DETERMINISTICALLY mine the text into artifacts / action data (no LLM needed)
6. Return formatted response

Decks are built on demand from a stored response with build_deck().
"""

import logging
import time
from typing import Any, Awaitable, Callable, Dict, Optional

from .errors import GenerationError, classify_generation_error
from .extractor import MAX_DISPLAY_RECOMMENDATIONS, extract
from .intent import Intent, classify
from .llm_client import generate
from .prompts import compose
from .schemas import ChatResponse, DatasetProfile, Deck, ExtractedArtifacts, coerce_profile
from .session import RequestCounter
from .slides import assemble, format_date

logger = logging.getLogger(__name__)

TITLE_QUERY_LENGTH = 50

GenerateFn = Callable[[str], Awaitable[str]]


def now_ms() -> int:
    return int(time.time() * 1000)


def response_title(query: str, intent: Intent, timestamp: int) -> str:
    truncated = query[:TITLE_QUERY_LENGTH] + "..." if len(query) > TITLE_QUERY_LENGTH else query

    if intent == Intent.VISUALIZATION:
        return f"Data Visualization: {truncated}"
    if intent == Intent.INSIGHTS:
        return f"Data Insights: {truncated}"
    if intent == Intent.PRESENTATION:
        date = format_date(timestamp)
        lowered = truncated.lower()
        if "summary" in lowered:
            return f"Data Summary Report - {date}"
        if "analysis" in lowered:
            return f"Data Analysis Presentation - {date}"
        if "trend" in lowered:
            return f"Trend Analysis Report - {date}"
        if "insight" in lowered:
            return f"Key Insights Presentation - {date}"
        return f"Data Presentation - {date}"
    return f"AI Analysis: {truncated}"


def action_data(
    intent: Intent,
    artifacts: ExtractedArtifacts,
    profile: Optional[DatasetProfile],
) -> Optional[Dict[str, Any]]:
    """Per-intent structured payload echoed back with the response."""
    if intent == Intent.VISUALIZATION:
        return {
            "suggestedCharts": list(artifacts.chart_suggestions),
            "dataColumns": list(profile.overview.columns) if profile is not None else [],
        }
    if intent == Intent.INSIGHTS:
        return {
            "keyMetrics": [m.to_wire() for m in artifacts.key_metrics],
            "recommendations": artifacts.recommendations[:MAX_DISPLAY_RECOMMENDATIONS],
        }
    if intent == Intent.PRESENTATION:
        return {
            "sections": list(artifacts.presentation_sections),
            "keyPoints": list(artifacts.key_points),
        }
    return None


async def respond(
    query: str,
    analysis_data: Any = None,
    *,
    counter: Optional[RequestCounter] = None,
    generate_fn: Optional[GenerateFn] = None,
) -> ChatResponse:
    """
    Answer one query against a dataset profile.

    Raises:
        RequestLimitExceeded: the session counter is exhausted (before any LLM call).
        GenerationError: the Generation Service failed; every other stage degrades
            instead of raising.
    """
    if counter is not None:
        count = counter.acquire()
        logger.debug("respond.counted request_count=%d remaining=%d", count, counter.remaining)

    intent = classify(query)
    profile = coerce_profile(analysis_data)
    prompt = compose(query, profile, intent)
    logger.info(
        "respond.generate intent=%s has_profile=%s prompt_chars=%d",
        intent.value,
        profile is not None,
        len(prompt),
    )

    try:
        text = await (generate_fn or generate)(prompt)
    except GenerationError:
        raise
    except Exception as e:
        raise classify_generation_error(e) from e

    # No awaits past this point: callers see a complete response or an error.
    timestamp = now_ms()
    artifacts = extract(text, profile)
    response = ChatResponse(
        message=text,
        timestamp=timestamp,
        response_type=intent,
        title=response_title(query, intent, timestamp),
        action_data=action_data(intent, artifacts, profile),
    )
    logger.info(
        "respond.done intent=%s chars=%d insights=%d recommendations=%d",
        intent.value,
        len(text),
        len(artifacts.insights),
        len(artifacts.recommendations),
    )
    return response


def build_deck(
    message: str,
    analysis_data: Any = None,
    *,
    title: Optional[str] = None,
    timestamp: Optional[int] = None,
    intent: Optional[Intent] = None,
) -> Deck:
    """Assemble the slide deck for a (stored) model response."""
    profile = coerce_profile(analysis_data)
    artifacts = extract(message, profile)
    return assemble(
        message,
        artifacts,
        profile,
        intent or Intent.PRESENTATION,
        timestamp if timestamp is not None else now_ms(),
        model_title=title,
    )
