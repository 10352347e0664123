"""Code execution endpoint."""

from typing import Any, Dict

from fastapi import APIRouter, BackgroundTasks, Depends

from practice.auth import AuthenticatedSession, get_current_session, get_session_store
from practice.schemas.activity import RunCodeRequest
from practice.services.context import SessionStore
from practice.services.coordinator import Coordinator, get_coordinator

router = APIRouter()


@router.post("/run-code")
async def run_code(
    payload: RunCodeRequest,
    background: BackgroundTasks,
    session: AuthenticatedSession = Depends(get_current_session),
    sessions: SessionStore = Depends(get_session_store),
    coordinator: Coordinator = Depends(get_coordinator),
) -> Dict[str, Any]:
    """Execute code remotely and log the run after responding."""
    context = session.context
    if payload.task_number:
        context = await sessions.set_task(
            session.session_id, context, payload.task_number
        )

    return await coordinator.run_code(
        context, payload.code, payload.language, payload.stdin, background
    )
