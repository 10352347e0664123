"""AI advice endpoint."""

from typing import Any, Dict

from fastapi import APIRouter, BackgroundTasks, Depends

from practice.auth import AuthenticatedSession, get_current_session, get_session_store
from practice.schemas.advice import AdviceRequest
from practice.services.context import SessionStore
from practice.services.coordinator import Coordinator, get_coordinator

router = APIRouter()


@router.post("/ai-advice")
async def ai_advice(
    payload: AdviceRequest,
    background: BackgroundTasks,
    session: AuthenticatedSession = Depends(get_current_session),
    sessions: SessionStore = Depends(get_session_store),
    coordinator: Coordinator = Depends(get_coordinator),
) -> Dict[str, Any]:
    """Ask the tutoring model for staged advice on the student's code."""
    context = session.context
    if payload.task_number:
        context = await sessions.set_task(
            session.session_id, context, payload.task_number
        )

    return await coordinator.request_advice(
        context,
        payload.task,
        payload.student_code,
        payload.hints_used,
        background,
    )
