"""Authentication and session schemas."""

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


class LoginRequest(BaseModel):
    username: str
    password: str


class SessionUser(BaseModel):
    """Context as exposed to the browser."""

    model_config = ConfigDict(populate_by_name=True)

    user_id: str = Field(serialization_alias="userId")
    username: str
    task_number: int = Field(serialization_alias="taskNumber")


class LoginResponse(BaseModel):
    message: str
    user: SessionUser


class SessionResponse(BaseModel):
    user: SessionUser


class SetTaskRequest(BaseModel):
    """``taskNumber`` is validated by the session service, not here."""

    task_number: Optional[Any] = Field(default=None, alias="taskNumber")


class MessageResponse(BaseModel):
    message: str
