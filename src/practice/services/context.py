"""Session-scoped task context and its Redis-backed store."""

import json
import secrets
from typing import Any, Optional

import structlog
from pydantic import BaseModel
from redis import asyncio as aioredis
from redis.exceptions import RedisError

from practice.config import get_settings
from practice.errors import StorageError, Unauthenticated, ValidationError

log = structlog.get_logger()


class Context(BaseModel):
    """The (user, task) scope every log operation runs under."""

    user_id: str
    username: str
    task_number: int = 1


def validate_task_number(value: Any) -> int:
    """Coerce a client-supplied task number, rejecting absent or invalid ones."""
    if value is None or value is False or value == "" or value == 0:
        raise ValidationError("taskNumber is required", {"field": "taskNumber"})
    if isinstance(value, bool):
        raise ValidationError("taskNumber must be a positive integer", {"field": "taskNumber"})
    try:
        number = int(value)
    except (TypeError, ValueError, OverflowError) as exc:
        # int() of an infinite float overflows; NaN is a ValueError
        raise ValidationError(
            "taskNumber must be a positive integer", {"field": "taskNumber"}
        ) from exc
    if number < 1 or (isinstance(value, float) and number != value):
        raise ValidationError("taskNumber must be a positive integer", {"field": "taskNumber"})
    return number


class SessionStore:
    """Contexts keyed by opaque session id, expiring a fixed TTL after login."""

    def __init__(self, redis: aioredis.Redis, ttl_seconds: Optional[int] = None):
        self.redis = redis
        self.ttl_seconds = ttl_seconds or get_settings().session_ttl_seconds

    def _key(self, session_id: str) -> str:
        return f"session:{session_id}"

    async def create(self, user_id: str, username: str) -> tuple[str, Context]:
        """Start a session on task 1."""
        session_id = secrets.token_urlsafe(32)
        context = Context(user_id=user_id, username=username, task_number=1)
        try:
            await self.redis.set(
                self._key(session_id), context.model_dump_json(), ex=self.ttl_seconds
            )
        except RedisError as exc:
            raise StorageError("Failed to create session") from exc
        return session_id, context

    async def get(self, session_id: str) -> Optional[Context]:
        try:
            raw = await self.redis.get(self._key(session_id))
        except RedisError as exc:
            raise StorageError("Failed to read session") from exc
        if raw is None:
            return None
        return Context.model_validate(json.loads(raw))

    async def set_task(self, session_id: str, context: Context, task_number: Any) -> Context:
        """Switch the session's task; the stored context is untouched on rejection."""
        number = validate_task_number(task_number)
        updated = context.model_copy(update={"task_number": number})
        try:
            stored = await self.redis.set(
                self._key(session_id), updated.model_dump_json(), xx=True, keepttl=True
            )
        except RedisError as exc:
            raise StorageError("Failed to update session") from exc
        if not stored:
            # Expired between lookup and update
            raise Unauthenticated("Session expired")
        log.info(
            "session.task_changed",
            user_id=context.user_id,
            previous=context.task_number,
            task_number=number,
        )
        return updated

    async def destroy(self, session_id: str) -> None:
        """Delete the session; deleting a missing session is not an error."""
        try:
            await self.redis.delete(self._key(session_id))
        except RedisError as exc:
            raise StorageError("Failed to destroy session") from exc
