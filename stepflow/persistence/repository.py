"""Store abstraction for workflow instance persistence."""

from __future__ import annotations

from typing import Protocol

from .models import InstanceState


class ProfileStore(Protocol):
    """Protocol for identity/profile store backends.

    Implementations must write a whole record atomically and must raise
    ``StorageUnavailable`` for backend failures.
    """

    async def load(self, subject_id: str) -> InstanceState | None:
        """Return the stored state for ``subject_id`` or ``None``."""

    async def save(self, state: InstanceState, expected_version: int) -> InstanceState:
        """Persist ``state`` if the stored version equals ``expected_version``.

        Returns the saved state carrying its new version. Raises
        ``VersionConflict`` when another writer got there first.
        """

    async def list_instances(self) -> list[InstanceState]:
        """Return all persisted instances."""
