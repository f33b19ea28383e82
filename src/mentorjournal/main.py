import logging
from contextlib import asynccontextmanager
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any

from fastapi import Depends, FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from .errors import (
    InvalidTransitionError,
    NothingToExportError,
    SaveFailedError,
    SessionBusyError,
    SessionNotFoundError,
    SessionPersistenceError,
    TemplateNotFoundError,
    TurnFailedError,
)
from .journaling import JournalingFlow, close_journaling_flow, get_journaling_flow_async
from .models import JournalingSession, JournalTemplate
from .services.journal_repository import entry_to_dict, get_journal_repository_async
from .services.session_store import session_to_dict
from .settings import get_settings


def setup_server_logging() -> logging.Logger:
    """Configure the package logger (console + rotating file) and return the server logger."""
    logs_dir = Path("logs")
    logs_dir.mkdir(parents=True, exist_ok=True)

    root = logging.getLogger("mentorjournal")
    logger = logging.getLogger("mentorjournal.server")
    if root.handlers:
        return logger

    root.setLevel(get_settings().log_level)
    fmt = logging.Formatter("%(asctime)s %(levelname)s %(name)s - %(message)s")

    ch = logging.StreamHandler()
    ch.setFormatter(fmt)
    root.addHandler(ch)

    fh = RotatingFileHandler(logs_dir / "server.log", maxBytes=5_000_000, backupCount=3)
    fh.setFormatter(fmt)
    root.addHandler(fh)

    return logger


def _cors_origins_list(origins: str) -> list[str]:
    """Parse CORS_ORIGINS into a list."""
    if not origins or origins.strip() == "*":
        return ["*"]
    return [o.strip() for o in origins.split(",") if o.strip()]


LOGGER = setup_server_logging()
settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Wire the journaling flow (and Redis when configured) at startup; close on shutdown."""
    flow = await get_journaling_flow_async()
    LOGGER.info("Journaling flow ready with %d templates", len(flow.templates.list()))
    yield
    LOGGER.info("Shutting down...")
    await close_journaling_flow()


app = FastAPI(
    title="Mentor Journal",
    version="0.1.0",
    debug=settings.debug,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=_cors_origins_list(settings.cors_origins),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


class StartSessionRequest(BaseModel):
    template_id: str


class UserResponseRequest(BaseModel):
    text: str


def _template_to_dict(template: JournalTemplate) -> dict[str, Any]:
    return {
        "id": template.id,
        "name": template.name,
        "description": template.description,
        "emoji": template.emoji,
        "category": template.category.value if template.category else None,
        "show_progress_indicator": template.show_progress_indicator,
        "allow_skip_fields": template.allow_skip_fields,
        "fields": [
            {
                "id": f.id,
                "label": f.label,
                "prompt": f.prompt,
                "type": f.type.value,
                "required": f.required,
                "help_text": f.help_text,
            }
            for f in template.fields
        ],
    }


def _session_payload(flow: JournalingFlow, session: JournalingSession, **extra: Any) -> dict[str, Any]:
    template = flow.template_for(session)
    payload = session_to_dict(session)
    payload["total_steps"] = len(template.fields)
    payload["can_manually_complete"] = flow.can_manually_complete(session)
    payload["busy"] = flow.is_busy(session.id)
    payload.update(extra)
    return payload


@app.exception_handler(TemplateNotFoundError)
@app.exception_handler(SessionNotFoundError)
async def _not_found(_request, exc: Exception) -> JSONResponse:
    return JSONResponse(status_code=404, content={"detail": str(exc)})


@app.exception_handler(InvalidTransitionError)
@app.exception_handler(NothingToExportError)
async def _conflict(_request, exc: Exception) -> JSONResponse:
    return JSONResponse(status_code=409, content={"detail": str(exc)})


@app.exception_handler(SessionBusyError)
async def _busy(_request, exc: SessionBusyError) -> JSONResponse:
    return JSONResponse(status_code=409, content={"detail": str(exc), "busy": True})


@app.exception_handler(TurnFailedError)
async def _turn_failed(_request, exc: TurnFailedError) -> JSONResponse:
    content: dict[str, Any] = {
        "detail": exc.message,
        "can_complete_anyway": exc.can_complete_anyway,
        "session_id": exc.session.id if exc.session else None,
    }
    return JSONResponse(status_code=502, content=content)


@app.exception_handler(SaveFailedError)
@app.exception_handler(SessionPersistenceError)
async def _save_failed(_request, exc: Exception) -> JSONResponse:
    LOGGER.error("Persistence failure: %s", exc)
    return JSONResponse(status_code=503, content={"detail": "Failed to save entry. Please try again."})


@app.get("/health")
async def health() -> dict[str, Any]:
    """Health check for load balancers and monitoring."""
    return {"status": "ok"}


@app.get("/templates")
async def list_templates(flow: JournalingFlow = Depends(get_journaling_flow_async)) -> list[dict[str, Any]]:
    return [_template_to_dict(t) for t in flow.templates.list()]


@app.get("/templates/{template_id}")
async def get_template(template_id: str, flow: JournalingFlow = Depends(get_journaling_flow_async)) -> dict[str, Any]:
    return _template_to_dict(flow.templates.get(template_id))


@app.post("/sessions", status_code=201)
async def start_session(
    body: StartSessionRequest, flow: JournalingFlow = Depends(get_journaling_flow_async)
) -> dict[str, Any]:
    """Start a session; the response carries the mentor's opening message."""
    LOGGER.info("Starting session template_id=%s", body.template_id)
    result = await flow.start_session(body.template_id)
    return _session_payload(flow, result.session)


@app.get("/sessions/{session_id}")
async def get_session(session_id: str, flow: JournalingFlow = Depends(get_journaling_flow_async)) -> dict[str, Any]:
    return _session_payload(flow, await flow.get_session(session_id))


@app.post("/sessions/{session_id}/responses")
async def submit_response(
    session_id: str,
    body: UserResponseRequest,
    flow: JournalingFlow = Depends(get_journaling_flow_async),
) -> dict[str, Any]:
    """Submit the user's answer to the current question.

    Responses:
        200 with the updated session (and an optional ``notice``);
        409 while a previous answer is still being processed;
        502 with ``can_complete_anyway`` when the mentor reply failed.
    """
    if not body.text.strip():
        raise HTTPException(status_code=422, detail="Empty message")
    result = await flow.submit_user_response(session_id, body.text)
    return _session_payload(flow, result.session, notice=result.notice, dropped=result.dropped)


@app.post("/sessions/{session_id}/complete")
async def complete_session(
    session_id: str, flow: JournalingFlow = Depends(get_journaling_flow_async)
) -> dict[str, Any]:
    """Complete Anyway: finish early once every required question has an answer."""
    return _session_payload(flow, await flow.manually_complete(session_id))


@app.post("/sessions/{session_id}/save", status_code=201)
async def save_session(session_id: str, flow: JournalingFlow = Depends(get_journaling_flow_async)) -> dict[str, Any]:
    entry = await flow.save_session(session_id)
    return entry_to_dict(entry)


@app.delete("/sessions/{session_id}")
async def discard_session(
    session_id: str, flow: JournalingFlow = Depends(get_journaling_flow_async)
) -> dict[str, Any]:
    session = await flow.discard_session(session_id)
    return {"id": session.id, "status": session.status.value}


@app.get("/sessions/{session_id}/export")
async def export_session(
    session_id: str, flow: JournalingFlow = Depends(get_journaling_flow_async)
) -> dict[str, Any]:
    subject, text = await flow.export_session(session_id)
    return {"subject": subject, "text": text}


@app.get("/entries")
async def list_entries(repository=Depends(get_journal_repository_async)) -> list[dict[str, Any]]:
    return [entry_to_dict(e) for e in await repository.list_entries()]


@app.get("/entries/{entry_id}")
async def get_entry(entry_id: str, repository=Depends(get_journal_repository_async)) -> dict[str, Any]:
    entry = await repository.get_entry(entry_id)
    if entry is None:
        raise HTTPException(status_code=404, detail=f"Journal entry not found: {entry_id}")
    return entry_to_dict(entry)


def run() -> None:
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "mentorjournal.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    run()
