"""Password hashing, session tokens and the authenticated-context dependency."""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

import bcrypt
import jwt
from fastapi import Depends, Request

from practice.config import get_settings
from practice.errors import Unauthenticated
from practice.services.context import Context, SessionStore


def hash_password(password: str) -> str:
    """Hash a password using bcrypt."""
    rounds = get_settings().password_hash_rounds
    return bcrypt.hashpw(password.encode(), bcrypt.gensalt(rounds=rounds)).decode()


def verify_password(password: str, hashed: str) -> bool:
    """Verify a password against a bcrypt hash."""
    try:
        return bcrypt.checkpw(password.encode(), hashed.encode())
    except ValueError:
        return False


def issue_session_token(session_id: str, user_id: str) -> str:
    """Signed cookie value naming a server-side session."""
    settings = get_settings()
    now = datetime.now(timezone.utc)
    payload = {
        "sub": user_id,
        "sid": session_id,
        "iat": now,
        "exp": now + timedelta(seconds=settings.session_ttl_seconds),
    }
    return jwt.encode(
        payload, settings.session_secret, algorithm=settings.session_algorithm
    )


def decode_session_token(token: str) -> Optional[str]:
    """Session id from a cookie value, or None if it is invalid or expired."""
    settings = get_settings()
    try:
        payload = jwt.decode(
            token, settings.session_secret, algorithms=[settings.session_algorithm]
        )
    except jwt.InvalidTokenError:
        return None
    session_id = payload.get("sid")
    return session_id if isinstance(session_id, str) and session_id else None


def get_session_store(request: Request) -> SessionStore:
    return request.app.state.sessions


@dataclass
class AuthenticatedSession:
    session_id: str
    context: Context


async def get_current_session(
    request: Request,
    sessions: SessionStore = Depends(get_session_store),
) -> AuthenticatedSession:
    """Resolve the request's session; absent or expired sessions are terminal."""
    # Set by SessionMiddleware from the cookie
    session_id = getattr(request.state, "session_id", None)
    if not session_id:
        raise Unauthenticated("Not authenticated")

    context = await sessions.get(session_id)
    if context is None:
        raise Unauthenticated("Not authenticated")
    return AuthenticatedSession(session_id=session_id, context=context)


async def get_current_context(
    session: AuthenticatedSession = Depends(get_current_session),
) -> Context:
    return session.context
