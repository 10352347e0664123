"""Activity log and execution schemas."""

from typing import Any, Dict, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


class RunCodeRequest(BaseModel):
    """Request body for ``/run-code``."""

    model_config = ConfigDict(populate_by_name=True)

    code: str
    language: str
    stdin: Optional[str] = None
    task_number: Optional[int] = Field(default=None, alias="taskNumber")


class UploadRequest(BaseModel):
    """Explicit save: a caller label plus a JSON object (or its text)."""

    key: Optional[str] = None
    body: Optional[Union[Dict[str, Any], str]] = None


class UploadResponse(BaseModel):
    message: str
    key: str


class LatestCodeResponse(BaseModel):
    code: str
