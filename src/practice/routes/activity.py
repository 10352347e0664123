"""Explicit save and latest-code endpoints."""

from typing import Optional

from fastapi import APIRouter, Depends, Query

from practice.auth import get_current_context
from practice.schemas.activity import LatestCodeResponse, UploadRequest, UploadResponse
from practice.services.context import Context, validate_task_number
from practice.services.coordinator import Coordinator, get_coordinator

router = APIRouter()


@router.post("/upload", response_model=UploadResponse)
async def upload(
    payload: UploadRequest,
    context: Context = Depends(get_current_context),
    coordinator: Coordinator = Depends(get_coordinator),
) -> UploadResponse:
    """Save the caller's code under a named key in the current task."""
    key = await coordinator.save(context, payload.key, payload.body)
    return UploadResponse(message="Saved", key=key)


@router.get("/load_latest_code", response_model=LatestCodeResponse)
async def load_latest_code(
    task_number: Optional[str] = Query(default=None, alias="taskNumber"),
    context: Context = Depends(get_current_context),
    coordinator: Coordinator = Depends(get_coordinator),
) -> LatestCodeResponse:
    """Most recently recorded code for a task (default: the session's task)."""
    number = validate_task_number(task_number) if task_number else None
    code = await coordinator.load_latest(context, number)
    return LatestCodeResponse(code=code)
