import asyncio

import pytest

from datavista import llm_client as llm_mod
from datavista.errors import (
    GenerationError,
    InvalidCredentialError,
    QuotaExceededError,
    SafetyFilteredError,
    classify_generation_error,
)


def _scripted(outcomes, calls):
    async def fake_call_gemini(prompt, **kwargs):
        calls.append(kwargs)
        outcome = outcomes[min(len(calls), len(outcomes)) - 1]
        if isinstance(outcome, Exception):
            raise outcome
        return outcome
    return fake_call_gemini


@pytest.fixture
def no_sleep(monkeypatch):
    async def fake_sleep(seconds):
        return None

    monkeypatch.setattr(llm_mod.asyncio, "sleep", fake_sleep)


@pytest.mark.parametrize(
    "message,expected",
    [
        ("400 API_KEY_INVALID", InvalidCredentialError),
        ("API key not valid. Please pass a valid API key.", InvalidCredentialError),
        ("429 RESOURCE_EXHAUSTED", QuotaExceededError),
        ("QUOTA_EXCEEDED for project", QuotaExceededError),
        ("finish_reason: SAFETY", SafetyFilteredError),
        ("connection reset by peer", GenerationError),
    ],
)
def test_classify_generation_error(message, expected):
    err = classify_generation_error(RuntimeError(message))
    assert type(err) is expected
    assert err.detail == message


def test_user_messages():
    assert QuotaExceededError("x").user_message == "Gemini API quota exceeded. Please try again later."
    assert SafetyFilteredError("x").user_message.startswith("Content was blocked by safety filters")
    assert GenerationError("boom").user_message == "AI service error: boom"
    assert GenerationError("").user_message == "AI service error: Unknown error occurred"


def test_transient_failures_are_retried(monkeypatch, no_sleep):
    calls = []
    monkeypatch.setattr(llm_mod, "LLM_MAX_RETRIES", 2)
    monkeypatch.setattr(llm_mod, "_call_gemini", _scripted(
        [RuntimeError("503 UNAVAILABLE"), RuntimeError("503 UNAVAILABLE"), "answer"], calls
    ))

    assert asyncio.run(llm_mod.generate("prompt")) == "answer"
    assert len(calls) == 3


def test_retries_exhausted_raise_classified_error(monkeypatch, no_sleep):
    calls = []
    monkeypatch.setattr(llm_mod, "LLM_MAX_RETRIES", 1)
    monkeypatch.setattr(llm_mod, "_call_gemini", _scripted([RuntimeError("429 RESOURCE_EXHAUSTED")], calls))

    with pytest.raises(QuotaExceededError):
        asyncio.run(llm_mod.generate("prompt"))
    assert len(calls) == 2


def test_credential_failure_is_not_retried(monkeypatch, no_sleep):
    calls = []
    monkeypatch.setattr(llm_mod, "LLM_MAX_RETRIES", 3)
    monkeypatch.setattr(llm_mod, "_call_gemini", _scripted([RuntimeError("API_KEY_INVALID 500")], calls))

    with pytest.raises(InvalidCredentialError):
        asyncio.run(llm_mod.generate("prompt"))
    assert len(calls) == 1


def test_generation_options_passed_through(monkeypatch):
    calls = []
    monkeypatch.setenv("GEMINI_MODEL", "gemini-test")
    monkeypatch.setattr(llm_mod, "_call_gemini", _scripted(["ok"], calls))

    asyncio.run(llm_mod.generate("prompt", temperature=0.1))

    assert calls[0] == {"model_name": "gemini-test", "temperature": 0.1, "max_tokens": llm_mod.MAX_LLM_TOKENS}


def test_missing_api_key_is_a_credential_error(monkeypatch):
    monkeypatch.delenv("GEMINI_API_KEY", raising=False)
    monkeypatch.delenv("LLM_API_KEY", raising=False)

    with pytest.raises(InvalidCredentialError):
        asyncio.run(llm_mod.generate("prompt"))
