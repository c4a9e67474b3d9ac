"""Core data contracts exchanged by the stepflow engine."""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class WorkflowStatus(str, Enum):
    """Derived progress of a subject through a workflow."""

    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    COMPLETE = "complete"


class FieldError(BaseModel):
    """A single problem found while validating a step payload."""

    field: str
    message: str
    code: str = "invalid"


class WorkflowStatusView(BaseModel):
    """Read-only snapshot of one subject's progress."""

    subject_id: str
    status: WorkflowStatus
    current_step: Optional[str] = None
    completed_steps: List[str] = Field(default_factory=list)
    remaining_steps: List[str] = Field(default_factory=list)

    @property
    def is_complete(self) -> bool:
        return self.status is WorkflowStatus.COMPLETE


class SubmitResult(BaseModel):
    """Outcome of an accepted step submission."""

    success: bool = True
    subject_id: str
    step: str
    status: WorkflowStatus
    next_step: Optional[str] = None
    payload: Dict[str, Any] = Field(default_factory=dict)
