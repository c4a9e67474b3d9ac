"""Data models for persisted workflow state."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, Field


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class InstanceState(BaseModel):
    """Persisted progress of one subject through a workflow.

    ``version`` is 0 for a record that has never been saved and is bumped by
    the store on every successful write.
    """

    subject_id: str
    completed_steps: list[str] = Field(default_factory=list)
    step_payloads: dict[str, dict[str, Any]] = Field(default_factory=dict)
    version: int = 0
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)

    @classmethod
    def empty(cls, subject_id: str) -> "InstanceState":
        return cls(subject_id=subject_id)
