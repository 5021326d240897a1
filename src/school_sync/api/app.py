"""FastAPI application factory."""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import asdict

from fastapi import FastAPI, HTTPException, status

from school_sync.api.models import (
    CandidateDeltaRequest,
    SelectSchoolRequest,
    SendMessageRequest,
)
from school_sync.app_logging import configure_logging
from school_sync.containers import AppContainer, build_container
from school_sync.domain.categories import CATEGORY_NAMES
from school_sync.domain.errors import (
    InvalidInput,
    StoreUnavailable,
    SyncError,
    WriteRejected,
)
from school_sync.services.sync import SyncSession

_ERROR_STATUS = {
    InvalidInput: status.HTTP_400_BAD_REQUEST,
    WriteRejected: status.HTTP_502_BAD_GATEWAY,
    StoreUnavailable: status.HTTP_503_SERVICE_UNAVAILABLE,
}


def create_app(container: AppContainer | None = None) -> FastAPI:
    """Create a FastAPI app; the container is built on startup when omitted."""
    configure_logging()
    logger = logging.getLogger(__name__)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        if app.state.container is None:
            app.state.container = await build_container()
        configure_logging(app.state.container.settings.log_level)
        session: SyncSession = app.state.container.session
        await session.activate()
        if session.error is not None:
            logger.error("Initial sync failed: %s", session.error)
        yield
        await session.deactivate()
        await app.state.container.close_resources()

    app = FastAPI(lifespan=lifespan)
    app.state.container = container

    @app.get("/health")
    async def health() -> dict[str, str]:
        """Simple health check endpoint."""
        return {"status": "ok"}

    @app.get("/categories")
    async def categories() -> dict[str, object]:
        """Return the category set with display names and fees."""
        session = _session(app)
        return {
            "categories": [
                {"key": key, "name": name, "fee": session.fee_table[key]}
                for key, name in CATEGORY_NAMES.items()
            ]
        }

    @app.get("/schools")
    async def list_schools() -> dict[str, object]:
        """Return the current registry snapshot."""
        session = _available_session(app)
        return {"schools": [asdict(school) for school in session.schools]}

    @app.get("/report")
    async def report() -> dict[str, object]:
        """Return the detailed cross-school report."""
        session = _available_session(app)
        return asdict(session.report)

    @app.get("/messages")
    async def list_messages() -> dict[str, object]:
        """Return the retained chat window, oldest first."""
        session = _available_session(app)
        return {"messages": [asdict(message) for message in session.messages]}

    @app.get("/session")
    async def session_state() -> dict[str, object]:
        """Return the selected school, its totals and the current error."""
        session = _session(app)
        selected = session.selected_school
        totals = session.selected_totals
        return {
            "active": session.is_active,
            "selected_school": asdict(selected) if selected else None,
            "totals": asdict(totals) if totals else None,
            "error": _describe_error(session.error),
        }

    @app.post("/session/select")
    async def select_school(payload: SelectSchoolRequest) -> dict[str, object]:
        """Select the school this session acts as."""
        session = _available_session(app)
        _raise_for(session.select_school(payload.school_id))
        return {"selected_school": asdict(session.selected_school)}

    @app.post("/session/logout")
    async def logout() -> dict[str, str]:
        """Clear the selected school."""
        _session(app).request_logout()
        return {"status": "ok"}

    @app.post("/session/retry")
    async def retry() -> dict[str, object]:
        """Retry activation after a failed initial load."""
        session = _session(app)
        await session.activate()
        if session.error is not None and session.error.terminal:
            _raise_for(session.error)
        return {"active": session.is_active}

    @app.post("/schools/{school_id}/candidates")
    async def change_candidates(
        school_id: str, payload: CandidateDeltaRequest
    ) -> dict[str, str]:
        """Apply a candidate count change for a school."""
        session = _available_session(app)
        _raise_for(
            await session.request_candidate_delta(
                school_id, payload.category, payload.delta
            )
        )
        return {"status": "ok"}

    @app.post("/messages")
    async def send_message(payload: SendMessageRequest) -> dict[str, str]:
        """Post a chat message."""
        session = _available_session(app)
        _raise_for(
            await session.request_send_message(
                payload.school_id, payload.school_name, payload.content
            )
        )
        return {"status": "ok"}

    return app


def _session(app: FastAPI) -> SyncSession:
    container: AppContainer = app.state.container
    return container.session


def _available_session(app: FastAPI) -> SyncSession:
    session = _session(app)
    if session.error is not None and session.error.terminal:
        _raise_for(session.error)
    return session


def _raise_for(error: SyncError | None) -> None:
    if error is None:
        return
    status_code = _ERROR_STATUS.get(type(error), status.HTTP_503_SERVICE_UNAVAILABLE)
    raise HTTPException(status_code=status_code, detail=_describe_error(error))


def _describe_error(error: SyncError | None) -> dict[str, object] | None:
    if error is None:
        return None
    return {
        "kind": type(error).__name__,
        "message": str(error),
        "terminal": error.terminal,
    }
