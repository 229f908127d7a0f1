"""
FastAPI entrypoint.

Routes:
- POST /api/chat     query + dataset profile -> model answer with structured action data
- POST /api/slides   stored model answer + profile -> ordered slide deck
- POST /api/profile  CSV upload or URL -> dataset profile
- GET  /api/usage    per-session request counter (POST /api/usage/reset to clear)
"""

import os
import logging
from dotenv import load_dotenv, find_dotenv

# Load environment variables from .env file (optional).
# Hosted deployments should provide secrets via environment variables, not committed .env files.
# Some editors save .env as UTF-16; support both UTF-8 and UTF-16.
_dotenv_path = find_dotenv(usecwd=True) or None
if _dotenv_path:
    try:
        load_dotenv(_dotenv_path)
    except UnicodeError:
        load_dotenv(_dotenv_path, encoding="utf-16")
else:
    # No .env found; rely on process env
    load_dotenv()

# Configure logging with environment-based level
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
logging.basicConfig(
    level=getattr(logging, LOG_LEVEL, logging.INFO),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    datefmt='%Y-%m-%d %H:%M:%S'
)
logger = logging.getLogger(__name__)
logger.info("Pipeline starting with LOG_LEVEL=%s", LOG_LEVEL)

from fastapi import FastAPI, UploadFile, File, Form, HTTPException
from fastapi import Request
from fastapi.responses import JSONResponse
from pydantic import ValidationError
from typing import Optional
import httpx

from . import pipeline
from .errors import GenerationError, RequestLimitExceeded
from .profiling import file_name_from_url, load_csv, load_csv_from_url, profile_dataframe
from .schemas import ChatRequest, DeckRequest
from .session import SessionRegistry

DEFAULT_SESSION_ID = "anonymous"

app = FastAPI(title="DataVista Analytics Pipeline")
app.state.sessions = SessionRegistry()


def _session_id(request: Request) -> str:
    return request.headers.get("x-session-id") or DEFAULT_SESSION_ID


@app.exception_handler(GenerationError)
async def _generation_error_handler(request: Request, exc: GenerationError):
    logger.error("generation.failed kind=%s session_id=%s detail=%s",
                 exc.kind, _session_id(request), exc.detail[:200])
    return JSONResponse(status_code=500, content={"error": exc.user_message, "details": exc.detail})


@app.exception_handler(RequestLimitExceeded)
async def _request_limit_handler(request: Request, exc: RequestLimitExceeded):
    logger.warning("session.limit_reached session_id=%s limit=%d", _session_id(request), exc.limit)
    return JSONResponse(status_code=429, content={"error": str(exc)})


@app.get("/")
def root():
    return {"ok": True, "service": "datavista"}


@app.get("/healthz")
def healthz():
    return {"ok": True}


@app.post("/api/chat")
async def chat_endpoint(request: Request):
    session_id = _session_id(request)
    try:
        payload = await request.json()
        req = ChatRequest.model_validate(payload if isinstance(payload, dict) else {})
    except (ValueError, ValidationError) as e:
        return JSONResponse(status_code=400, content={"error": f"Invalid request body: {e}"})

    if not req.message or not isinstance(req.message, str):
        return JSONResponse(status_code=400, content={"error": "Message is required"})

    logger.info("chat.request session_id=%s has_analysis_data=%s chars=%d",
                session_id, req.analysis_data is not None, len(req.message))

    counter = request.app.state.sessions.counter(session_id)
    response = await pipeline.respond(req.message, req.analysis_data, counter=counter)

    logger.info("chat.response session_id=%s intent=%s remaining=%d",
                session_id, response.response_type.value, counter.remaining)
    return response.to_wire()


@app.api_route("/api/chat", methods=["GET", "PUT", "PATCH", "DELETE"], include_in_schema=False)
async def chat_method_not_allowed():
    return JSONResponse(status_code=405, content={"error": "Method not allowed"})


@app.post("/api/slides")
def slides_endpoint(req: DeckRequest):
    deck = pipeline.build_deck(
        req.message,
        req.analysis_data,
        title=req.title,
        timestamp=req.timestamp,
        intent=req.response_type,
    )
    logger.info("slides.built slides=%d fallback=%s", len(deck.slides), deck.fallback)
    return deck.to_wire()


@app.post("/api/profile")
async def profile_endpoint(
    file: Optional[UploadFile] = File(None),
    url: Optional[str] = Form(None),
):
    if file is None and not url:
        raise HTTPException(status_code=400, detail="Upload a CSV file or provide a dataset URL.")

    if file is not None:
        name = getattr(file, "filename", None) or "uploaded.csv"
        try:
            df = load_csv(file.file)
        except Exception as e:
            raise HTTPException(status_code=400, detail=f"Error reading uploaded CSV file: {e}")
        size = getattr(file, "size", None)
    else:
        name = file_name_from_url(url)
        try:
            async with httpx.AsyncClient(timeout=30.0) as client:
                df = await load_csv_from_url(url, client)
        except Exception as e:
            raise HTTPException(status_code=400, detail=f"Error loading CSV from URL: {e}")
        size = None

    return profile_dataframe(df, file_name=name, file_size=size).to_wire()


@app.get("/api/usage")
def usage_endpoint(request: Request):
    return request.app.state.sessions.counter(_session_id(request)).snapshot()


@app.post("/api/usage/reset")
def usage_reset_endpoint(request: Request):
    counter = request.app.state.sessions.counter(_session_id(request))
    counter.reset()
    return counter.snapshot()
