"""
Minimal LLM client wrapper using Google Gemini.

Rationale:
- Use google-genai SDK (supported) for Gemini access.
- Keep interface tiny: await generate(prompt) -> str.
- One round trip, no streaming. Optional retries for transient failures only.
- Provider failures are mapped onto the GenerationError taxonomy so callers can
  tell a bad key from an exhausted quota or a safety block.
"""

import asyncio
import logging
import os
import random
from typing import Optional

try:
    from google import genai
    from google.genai import types
except Exception as e:  # pragma: no cover
    raise RuntimeError(
        "Missing dependency for Gemini client. Install 'google-genai'. "
        "Original import error: " + str(e)
    )

from .errors import (
    GenerationError,
    InvalidCredentialError,
    SafetyFilteredError,
    classify_generation_error,
)

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "gemini-2.0-flash"
LLM_TEMPERATURE = float(os.getenv("LLM_TEMPERATURE", "0.7"))
MAX_LLM_TOKENS = int(os.getenv("MAX_LLM_TOKENS", "4096"))

# Optional retries (disabled by default to avoid extra cost)
LLM_MAX_RETRIES = int(os.getenv("LLM_MAX_RETRIES", "0"))


async def _call_gemini(prompt: str, *, model_name: str, temperature: float, max_tokens: int) -> str:
    # Load API key lazily (after main.py loads .env)
    api_key = os.getenv("GEMINI_API_KEY") or os.getenv("LLM_API_KEY")
    if not api_key:
        raise InvalidCredentialError("GEMINI_API_KEY or LLM_API_KEY must be set in environment")

    client = genai.Client(api_key=api_key)
    response = await client.aio.models.generate_content(
        model=model_name,
        contents=prompt,
        config=types.GenerateContentConfig(
            temperature=temperature,
            max_output_tokens=max_tokens,
        ),
    )

    # Prefer the SDK's convenience property
    result = getattr(response, "text", None)
    if result:
        return result

    # Blocked prompts come back without candidates but with feedback
    feedback = getattr(response, "prompt_feedback", None)
    block_reason = getattr(feedback, "block_reason", None) if feedback else None
    if block_reason:
        raise SafetyFilteredError(f"SAFETY: prompt blocked ({block_reason})")

    candidates = getattr(response, "candidates", None) or []
    if not candidates:
        raise GenerationError("Gemini returned no candidates.")

    candidate0 = candidates[0]
    finish_reason = str(getattr(candidate0, "finish_reason", "") or "")
    if "SAFETY" in finish_reason.upper():
        raise SafetyFilteredError(f"SAFETY: response blocked ({finish_reason})")

    content = getattr(candidate0, "content", None)
    parts = getattr(content, "parts", None) if content else None
    if parts:
        text0 = getattr(parts[0], "text", None)
        if text0:
            return text0

    raise GenerationError("Gemini returned empty response")


def _should_retry(err: GenerationError) -> bool:
    if isinstance(err, (InvalidCredentialError, SafetyFilteredError)):
        return False
    msg = str(err).lower()
    transient_markers = ["429", "rate", "quota", "timeout", "temporar", "unavailable", "503", "500"]
    return any(m in msg for m in transient_markers)


async def generate(
    prompt: str,
    *,
    model_name: Optional[str] = None,
    temperature: Optional[float] = None,
    max_tokens: Optional[int] = None,
) -> str:
    """Send one prompt to Gemini and return the generated text."""
    model_name = model_name or os.getenv("GEMINI_MODEL", DEFAULT_MODEL)
    temperature = LLM_TEMPERATURE if temperature is None else temperature
    max_tokens = max_tokens or MAX_LLM_TOKENS
    attempts = 1 + max(0, LLM_MAX_RETRIES)

    for attempt in range(attempts):
        try:
            return await _call_gemini(
                prompt,
                model_name=model_name,
                temperature=temperature,
                max_tokens=max_tokens,
            )
        except asyncio.CancelledError:
            raise
        except Exception as e:
            err = classify_generation_error(e)
            if attempt >= attempts - 1 or not _should_retry(err):
                logger.error("llm.failed kind=%s model=%s err=%s", err.kind, model_name, str(e)[:200])
                if err is e:
                    raise
                raise err from e

            # Exponential backoff + jitter
            sleep_s = min(5.0, (0.6 * (2 ** attempt)) + random.random() * 0.25)
            logger.warning(
                "LLM call failed; retrying attempt=%d/%d sleep=%.2fs err=%s",
                attempt + 1,
                attempts,
                sleep_s,
                str(e)[:200],
            )
            await asyncio.sleep(sleep_s)

    raise GenerationError("LLM call failed")
