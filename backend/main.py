from __future__ import annotations

import logging
import os
import threading
import time
import uuid
from pathlib import Path

from dotenv import load_dotenv

# Load .env from backend directory so SETTINGS_PATH etc. are available
load_dotenv(Path(__file__).resolve().parent / ".env")

from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import Response
from starlette.middleware.base import BaseHTTPMiddleware

from errors import RenderLimitError, ReservationListError, StaleResultError, ValidityError
from models import (
    Audience,
    LayoutSettings,
    SessionCreateRequest,
    SessionResponse,
    SettingsPayload,
    SortRequest,
    SortStatus,
    SourceUpdateRequest,
)
from services.session import ReservationSession, user_message
from settings_store import load_settings, save_settings, settings_from_payload, settings_to_payload

_LOG = logging.getLogger("uvicorn.error")

VERSION = (os.environ.get("GIT_COMMIT") or "").strip() or "unknown"

app = FastAPI(title="Reservation List Backend", version="0.1.0")

# CORS: use ALLOWED_ORIGINS env (comma-separated) if set, else default
_origins_env = os.environ.get("ALLOWED_ORIGINS", "").strip()
if _origins_env:
    ALLOWED_ORIGINS = [o.strip() for o in _origins_env.split(",") if o.strip()]
else:
    ALLOWED_ORIGINS = [
        "http://localhost:3000",
        "http://127.0.0.1:3000",
    ]
app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


class RequestLogMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        request_id = str(uuid.uuid4())[:8]
        request.state.request_id = request_id
        start = time.perf_counter()
        response = await call_next(request)
        duration_ms = (time.perf_counter() - start) * 1000
        _LOG.info(
            "request_id=%s method=%s path=%s status=%s duration_ms=%.0f",
            request_id,
            request.method,
            request.url.path,
            response.status_code,
            duration_ms,
        )
        response.headers["X-Request-Id"] = request_id
        return response


app.add_middleware(RequestLogMiddleware)


# In-memory sessions, oldest evicted first. Capped by SESSION_CACHE_MAX.
_SESSIONS: dict[str, ReservationSession] = {}
_SESSION_ORDER: list[str] = []
_SESSIONS_LOCK = threading.Lock()
_MAX_SESSIONS = max(1, int(os.getenv("SESSION_CACHE_MAX", "32")))

_SAVED_SETTINGS: LayoutSettings | None = None


def _saved_settings() -> LayoutSettings:
    global _SAVED_SETTINGS
    if _SAVED_SETTINGS is None:
        _SAVED_SETTINGS = load_settings()
    return _SAVED_SETTINGS


@app.on_event("startup")
def startup_log() -> None:
    settings = _saved_settings()
    port = os.environ.get("PORT", "8010")
    host = os.environ.get("HOST", "127.0.0.1")
    _LOG.info(
        "Backend starting on http://%s:%s version=%s font=%s size=%s columns=%s",
        host, port, VERSION, settings.font.value, settings.text_size, settings.columns,
    )


def _store_session(session: ReservationSession) -> str:
    session_id = str(uuid.uuid4())
    with _SESSIONS_LOCK:
        while len(_SESSIONS) >= _MAX_SESSIONS and _SESSION_ORDER:
            oldest = _SESSION_ORDER.pop(0)
            _SESSIONS.pop(oldest, None)
        _SESSIONS[session_id] = session
        _SESSION_ORDER.append(session_id)
    return session_id


def _get_session(session_id: str) -> ReservationSession:
    with _SESSIONS_LOCK:
        session = _SESSIONS.get(session_id)
    if session is None:
        raise HTTPException(status_code=404, detail="Session not found")
    return session


def _session_response(session_id: str, session: ReservationSession) -> SessionResponse:
    return SessionResponse(
        session_id=session_id,
        settings=settings_to_payload(session.settings),
        stale=session.stale,
        status=session.status,
    )


@app.get("/health")
def health():
    return {"status": "ok", "version": VERSION}


@app.get("/settings", response_model=SettingsPayload)
def get_settings() -> SettingsPayload:
    return settings_to_payload(_saved_settings())


@app.put("/settings", response_model=SettingsPayload)
def put_settings(payload: SettingsPayload) -> SettingsPayload:
    """Persist settings. Values are normalised (unknown font -> helvetica, size clamped 8..14)."""
    global _SAVED_SETTINGS
    settings = settings_from_payload(payload.model_dump())
    try:
        save_settings(settings)
    except OSError as e:
        _LOG.warning("Settings save failed: %s", e)
        raise HTTPException(status_code=500, detail="Settings could not be saved.") from e
    _SAVED_SETTINGS = settings
    return settings_to_payload(settings)


@app.post("/sort", response_model=SortStatus)
def sort_once(req: SortRequest) -> SortStatus:
    """Stateless parse + sort; reports counts and status only."""
    return ReservationSession(req.text).sort()


@app.post("/sessions", response_model=SessionResponse)
def create_session(req: SessionCreateRequest) -> SessionResponse:
    settings = settings_from_payload(req.settings.model_dump()) if req.settings else _saved_settings()
    session = ReservationSession(req.text, settings)
    session_id = _store_session(session)
    return _session_response(session_id, session)


@app.get("/sessions/{session_id}", response_model=SessionResponse)
def get_session(session_id: str) -> SessionResponse:
    return _session_response(session_id, _get_session(session_id))


@app.put("/sessions/{session_id}/source", response_model=SessionResponse)
def update_session_source(session_id: str, req: SourceUpdateRequest) -> SessionResponse:
    session = _get_session(session_id)
    session.update_source(req.text)
    return _session_response(session_id, session)


@app.put("/sessions/{session_id}/settings", response_model=SessionResponse)
def update_session_settings(session_id: str, payload: SettingsPayload) -> SessionResponse:
    session = _get_session(session_id)
    session.update_settings(settings_from_payload(payload.model_dump()))
    return _session_response(session_id, session)


@app.post("/sessions/{session_id}/sort", response_model=SortStatus)
def sort_session(session_id: str) -> SortStatus:
    return _get_session(session_id).sort()


@app.get("/sessions/{session_id}/lists/{audience}.pdf")
def download_list(session_id: str, audience: Audience) -> Response:
    """
    PDF for one audience. 409 when the session has no current valid sort,
    422 when the list is too large to render.
    """
    session = _get_session(session_id)
    try:
        rendered = session.render(audience)
    except (ValidityError, StaleResultError) as e:
        raise HTTPException(status_code=409, detail=user_message(e)) from e
    except RenderLimitError as e:
        _LOG.warning("Render aborted kind=%s count=%d limit=%d", e.kind, e.count, e.limit)
        raise HTTPException(status_code=422, detail=user_message(e)) from e
    except ReservationListError as e:
        raise HTTPException(status_code=400, detail=user_message(e)) from e
    return Response(
        content=rendered.pdf_bytes,
        media_type="application/pdf",
        headers={"Content-Disposition": f'attachment; filename="{rendered.filename}"'},
    )
