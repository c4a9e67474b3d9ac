"""Workflow engine: ordered, resumable, per-subject step tracking."""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Awaitable, Callable, Dict, List, Optional, TypeVar

from .config import StepflowConfig
from .contracts import SubmitResult, WorkflowStatus, WorkflowStatusView
from .definition import WorkflowDefinition
from .errors import (
    OutOfOrder,
    UnknownStep,
    VersionConflict,
    WorkflowAlreadyComplete,
    WorkflowError,
)
from .persistence import InstanceState, ProfileStore
from .utils.retry import schedule_retry

logger = logging.getLogger(__name__)

T = TypeVar("T")


class _LockEntry:
    __slots__ = ("lock", "users")

    def __init__(self) -> None:
        self.lock = asyncio.Lock()
        self.users = 0


class SubjectLocks:
    """Per-subject mutual exclusion.

    An entry lives only while at least one task holds or waits for it, so
    the table does not grow with the number of subjects ever seen.
    """

    def __init__(self) -> None:
        self._entries: Dict[str, _LockEntry] = {}

    def __len__(self) -> int:
        return len(self._entries)

    @asynccontextmanager
    async def hold(self, subject_id: str) -> AsyncIterator[None]:
        entry = self._entries.get(subject_id)
        if entry is None:
            entry = self._entries[subject_id] = _LockEntry()
        entry.users += 1
        try:
            async with entry.lock:
                yield
        finally:
            entry.users -= 1
            if entry.users == 0:
                del self._entries[subject_id]


class WorkflowEngine:
    """Drives subjects through a :class:`WorkflowDefinition`.

    State lives in the injected ``store``; the engine itself only keeps the
    per-subject lock table. Mutations for one subject are serialised in
    process and guarded across processes by the store's version check.
    """

    def __init__(
        self,
        definition: WorkflowDefinition,
        store: ProfileStore,
        max_conflict_retries: int = 3,
    ) -> None:
        self._definition = definition
        self._store = store
        self._max_conflict_retries = max_conflict_retries
        self._locks = SubjectLocks()

    @classmethod
    def from_config(
        cls, definition: WorkflowDefinition, store: ProfileStore, config: StepflowConfig
    ) -> "WorkflowEngine":
        return cls(definition, store, max_conflict_retries=config.engine.max_conflict_retries)

    @property
    def definition(self) -> WorkflowDefinition:
        return self._definition

    @property
    def store(self) -> ProfileStore:
        return self._store

    # ------------------------------------------------------------------
    # Queries
    async def get_instance(self, subject_id: str) -> InstanceState:
        """Return the stored state, or an unsaved empty one for new subjects."""
        state = await self._store.load(subject_id)
        if state is None:
            return InstanceState.empty(subject_id)
        known = self._definition.known_steps(state.completed_steps)
        if len(known) != len(state.completed_steps):
            state.completed_steps = known
            state.step_payloads = {
                k: v for k, v in state.step_payloads.items() if k in self._definition
            }
        return state

    async def get_status(self, subject_id: str) -> WorkflowStatusView:
        state = await self.get_instance(subject_id)
        return self._definition.view(subject_id, state.completed_steps)

    async def list_instances(self) -> List[WorkflowStatusView]:
        states = await self._store.list_instances()
        return [
            self._definition.view(s.subject_id, self._definition.known_steps(s.completed_steps))
            for s in states
        ]

    # ------------------------------------------------------------------
    # Mutations
    async def submit_step(
        self, subject_id: str, step_name: str, payload: Optional[Dict[str, Any]] = None
    ) -> SubmitResult:
        """Validate and record ``payload`` for ``step_name``.

        Raises:
            UnknownStep: ``step_name`` is not part of the definition.
            WorkflowAlreadyComplete: the workflow is complete and the step is new.
            ValidationFailed: the payload is invalid (``PaymentFailed`` for
                provider refusals).
            OutOfOrder: a required earlier step is missing.
            StorageUnavailable: the store failed; nothing was recorded.
        """
        accepted: Optional[Dict[str, Any]] = None

        async def transition() -> SubmitResult:
            nonlocal accepted
            state = await self.get_instance(subject_id)
            try:
                cleaned = self._check_submission(state, step_name, payload)
                if accepted is None:
                    step = self._definition.get(step_name)
                    accepted = await step.on_accept(
                        subject_id, cleaned, state.step_payloads.get(step_name)
                    )
            except WorkflowError as exc:
                logger.info(
                    f"Rejected step {step_name} for subject_id={subject_id}: {exc.code}"
                )
                raise
            saved = await self._record(state, step_name, accepted)
            view = self._definition.view(subject_id, saved.completed_steps)
            logger.info(
                f"Accepted step {step_name} for subject_id={subject_id} "
                f"(status={view.status.value}, next={view.current_step})"
            )
            return SubmitResult(
                subject_id=subject_id,
                step=step_name,
                status=view.status,
                next_step=view.current_step,
                payload=accepted,
            )

        return await self._serialized(subject_id, transition)

    async def reset_workflow(self, subject_id: str) -> WorkflowStatusView:
        """Clear all progress for ``subject_id``. Operational use only."""

        async def transition() -> WorkflowStatusView:
            state = await self._store.load(subject_id)
            if state is not None and (state.completed_steps or state.step_payloads):
                cleared = state.model_copy(update={"completed_steps": [], "step_payloads": {}})
                await self._store.save(cleared, state.version)
                logger.warning(f"Workflow reset for subject_id={subject_id}")
            return self._definition.view(subject_id, [])

        return await self._serialized(subject_id, transition)

    # ------------------------------------------------------------------
    # Internals
    def _check_submission(
        self, state: InstanceState, step_name: str, payload: Any
    ) -> Dict[str, Any]:
        step = self._definition.get(step_name)
        if step is None:
            raise UnknownStep(step_name)

        completed = state.completed_steps
        resubmission = step_name in completed
        if (
            not resubmission
            and self._definition.status_of(completed) is WorkflowStatus.COMPLETE
        ):
            raise WorkflowAlreadyComplete(step_name)

        cleaned = step.validate(payload)

        if not resubmission:
            missing = self._definition.missing_prerequisite(step_name, completed)
            if missing is not None:
                raise OutOfOrder(step_name, missing)
        return cleaned

    async def _record(
        self, state: InstanceState, step_name: str, payload: Dict[str, Any]
    ) -> InstanceState:
        completed = list(state.completed_steps)
        if step_name not in completed:
            completed.append(step_name)
        payloads = dict(state.step_payloads)
        payloads[step_name] = payload
        updated = state.model_copy(
            update={"completed_steps": completed, "step_payloads": payloads}
        )
        return await self._store.save(updated, state.version)

    async def _serialized(
        self, subject_id: str, transition: Callable[[], Awaitable[T]]
    ) -> T:
        async with self._locks.hold(subject_id):
            attempt = 0
            while True:
                try:
                    return await transition()
                except VersionConflict:
                    if attempt >= self._max_conflict_retries:
                        logger.warning(
                            f"Giving up on subject_id={subject_id} after "
                            f"{attempt + 1} conflicting writes"
                        )
                        raise
                    attempt += 1
                    logger.info(
                        f"Concurrent write detected for subject_id={subject_id}; "
                        f"retry {attempt}/{self._max_conflict_retries}"
                    )
                    await schedule_retry(attempt)
