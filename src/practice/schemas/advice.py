"""Advice-related schemas."""

from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

EstimatedStage = Literal[
    "課題の理解",
    "処理の大枠決定",
    "処理の詳細化",
    "コード化",
    "コードの整合性確認",
]


class LeveledItem(BaseModel):
    """One line of a nested outline; ``level`` is the nesting depth."""

    model_config = ConfigDict(extra="allow")

    level: int = Field(ge=1)
    text: str
    status: Optional[Literal["done", "in_progress", "todo"]] = None


class AdviceResult(BaseModel):
    """Structured advice returned by the tutoring model."""

    model_config = ConfigDict(extra="allow")

    estimated_stage: EstimatedStage
    processing_structure: List[LeveledItem] = []
    advice: List[LeveledItem] = []


class AdviceRequest(BaseModel):
    """Request body for ``/ai-advice``."""

    model_config = ConfigDict(populate_by_name=True)

    task: str
    student_code: str = Field(alias="studentCode")
    task_number: Optional[int] = Field(default=None, alias="taskNumber")
    hints_used: Optional[int] = Field(default=None, alias="hintsUsed", ge=0)
