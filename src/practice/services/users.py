"""Credential checks and account provisioning."""

from functools import lru_cache
from typing import Optional

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from practice.auth import hash_password, verify_password
from practice.db.models import User
from practice.errors import AuthenticationError
from practice.services.context import Context, SessionStore

log = structlog.get_logger()


@lru_cache
def _dummy_hash() -> str:
    # Checked for unknown usernames so both failure paths cost one bcrypt verification
    return hash_password("not-a-real-password")


class UserService:
    """Service for student accounts."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_by_username(self, username: str) -> Optional[User]:
        result = await self.db.execute(select(User).where(User.username == username))
        return result.scalar_one_or_none()

    async def create_user(self, username: str, password: str, user_id: str) -> User:
        user = User(
            username=username,
            user_id=user_id,
            password_hash=hash_password(password),
        )
        self.db.add(user)
        await self.db.commit()
        await self.db.refresh(user)
        return user

    async def authenticate(
        self, username: str, password: str, sessions: SessionStore
    ) -> tuple[str, Context]:
        """Check credentials and open a session on task 1."""
        user = await self.get_by_username(username)
        if user is None:
            verify_password(password, _dummy_hash())
            log.info("auth.login_failed", username=username)
            raise AuthenticationError("Invalid username or password")
        if not verify_password(password, user.password_hash):
            log.info("auth.login_failed", username=username)
            raise AuthenticationError("Invalid username or password")

        session_id, context = await sessions.create(user.user_id, user.username)
        log.info("auth.login", user_id=user.user_id)
        return session_id, context
