"""In-memory implementation of the profile store."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Dict

from ..errors import VersionConflict
from .models import InstanceState
from .repository import ProfileStore


class InMemoryProfileStore(ProfileStore):
    """Store workflow state in local memory.

    Useful for tests or when no database is configured. Data is not
    persisted across process restarts. Records are copied on the way in and
    out so callers never share mutable state with the store.
    """

    def __init__(self) -> None:
        self._instances: Dict[str, InstanceState] = {}

    async def load(self, subject_id: str) -> InstanceState | None:
        state = self._instances.get(subject_id)
        return state.model_copy(deep=True) if state else None

    async def save(self, state: InstanceState, expected_version: int) -> InstanceState:
        current = self._instances.get(state.subject_id)
        current_version = current.version if current else 0
        if current_version != expected_version:
            raise VersionConflict(state.subject_id, expected_version)
        saved = state.model_copy(
            deep=True,
            update={
                "version": expected_version + 1,
                "updated_at": datetime.now(timezone.utc),
            },
        )
        self._instances[state.subject_id] = saved
        return saved.model_copy(deep=True)

    async def list_instances(self) -> list[InstanceState]:
        return [s.model_copy(deep=True) for s in self._instances.values()]
