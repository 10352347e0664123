"""Login, logout and task-switch endpoints."""

from fastapi import APIRouter, Depends, Request, Response
from sqlalchemy.ext.asyncio import AsyncSession

from practice.auth import (
    AuthenticatedSession,
    get_current_session,
    get_session_store,
    issue_session_token,
)
from practice.config import get_settings
from practice.db.base import get_db
from practice.errors import PracticeError, StorageError
from practice.schemas.auth import (
    LoginRequest,
    LoginResponse,
    MessageResponse,
    SessionResponse,
    SessionUser,
    SetTaskRequest,
)
from practice.services.context import Context, SessionStore
from practice.services.users import UserService

router = APIRouter()


def _session_user(context: Context) -> SessionUser:
    return SessionUser(
        user_id=context.user_id,
        username=context.username,
        task_number=context.task_number,
    )


@router.post("/login", response_model=LoginResponse)
async def login(
    credentials: LoginRequest,
    response: Response,
    db: AsyncSession = Depends(get_db),
    sessions: SessionStore = Depends(get_session_store),
) -> LoginResponse:
    """Check credentials and start a session on task 1."""
    settings = get_settings()
    service = UserService(db)
    session_id, context = await service.authenticate(
        credentials.username, credentials.password, sessions
    )

    response.set_cookie(
        key=settings.session_cookie_name,
        value=issue_session_token(session_id, context.user_id),
        max_age=settings.session_ttl_seconds,
        httponly=True,
        secure=settings.session_cookie_secure,
        samesite="lax",
        path="/",
    )
    return LoginResponse(message="Login successful", user=_session_user(context))


@router.post("/logout", response_model=MessageResponse)
async def logout(
    request: Request,
    response: Response,
    sessions: SessionStore = Depends(get_session_store),
) -> MessageResponse:
    """End the session; logging out twice is not an error."""
    session_id = getattr(request.state, "session_id", None)
    if session_id:
        try:
            await sessions.destroy(session_id)
        except StorageError as exc:
            raise PracticeError("Logout failed") from exc

    response.delete_cookie(get_settings().session_cookie_name, path="/")
    return MessageResponse(message="Logout successful")


@router.get("/session", response_model=SessionResponse)
async def read_session(
    session: AuthenticatedSession = Depends(get_current_session),
) -> SessionResponse:
    return SessionResponse(user=_session_user(session.context))


@router.post("/set-task", response_model=MessageResponse)
async def set_task(
    payload: SetTaskRequest,
    session: AuthenticatedSession = Depends(get_current_session),
    sessions: SessionStore = Depends(get_session_store),
) -> MessageResponse:
    """Switch the task subsequent log entries are filed under."""
    context = await sessions.set_task(
        session.session_id, session.context, payload.task_number
    )
    return MessageResponse(message=f"Task number set to {context.task_number}")
