"""
Error types surfaced by the response pipeline.

Only generation failures (and the per-session request cap) are allowed to fail
a request; every other stage degrades to empty or fallback output.
"""

from typing import Optional


class GenerationError(RuntimeError):
    """Generic failure of the Generation Service."""

    kind = "generic"

    def __init__(self, detail: str, user_message: Optional[str] = None):
        super().__init__(detail)
        self.detail = detail
        self.user_message = user_message or f"AI service error: {detail or 'Unknown error occurred'}"


class InvalidCredentialError(GenerationError):
    kind = "invalid_credential"

    def __init__(self, detail: str):
        super().__init__(detail, "Invalid Gemini API key. Please check your environment variables.")


class QuotaExceededError(GenerationError):
    kind = "quota_exceeded"

    def __init__(self, detail: str):
        super().__init__(detail, "Gemini API quota exceeded. Please try again later.")


class SafetyFilteredError(GenerationError):
    kind = "safety_filtered"

    def __init__(self, detail: str):
        super().__init__(detail, "Content was blocked by safety filters. Please rephrase your question.")


class RequestLimitExceeded(RuntimeError):
    def __init__(self, limit: int):
        super().__init__(f"Request limit reached for this session ({limit} requests max)")
        self.limit = limit


# Marker -> error class, first match wins.
_ERROR_MARKERS = [
    (("api_key_invalid", "api key not valid", "permission_denied"), InvalidCredentialError),
    (("quota_exceeded", "resource_exhausted", "quota", "429"), QuotaExceededError),
    (("safety",), SafetyFilteredError),
]


def classify_generation_error(exc: BaseException) -> GenerationError:
    """Map a provider exception onto the GenerationError taxonomy."""
    if isinstance(exc, GenerationError):
        return exc

    detail = str(exc)
    lowered = detail.lower()
    for markers, error_cls in _ERROR_MARKERS:
        if any(m in lowered for m in markers):
            return error_cls(detail)
    return GenerationError(detail)
