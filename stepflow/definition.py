"""Workflow definitions: the ordered, immutable list of steps."""

from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, Iterator, List, Optional, Sequence, Type

from pydantic import BaseModel, ValidationError

from .contracts import FieldError, WorkflowStatus, WorkflowStatusView
from .errors import ValidationFailed

logger = logging.getLogger(__name__)


def field_errors_from(exc: ValidationError) -> List[FieldError]:
    """Flatten a pydantic ``ValidationError`` into ``FieldError`` records."""
    errors = []
    for err in exc.errors():
        loc = ".".join(str(part) for part in err.get("loc", ())) or "payload"
        errors.append(FieldError(field=loc, message=err["msg"], code=err["type"]))
    return errors


class Step:
    """One named stage of a workflow.

    ``schema`` is an optional pydantic model used to validate and normalise
    payloads. Subclasses may override :meth:`on_accept` to perform a side
    effect once the submission has passed validation and ordering checks.
    """

    def __init__(
        self,
        name: str,
        required: bool = True,
        schema: Optional[Type[BaseModel]] = None,
        description: str = "",
    ) -> None:
        if not name:
            raise ValueError("Step name must not be empty")
        self.name = name
        self.required = required
        self.schema = schema
        self.description = description

    def validate(self, payload: Any) -> Dict[str, Any]:
        """Return the normalised payload or raise ``ValidationFailed``."""
        if payload is None:
            payload = {}
        if not isinstance(payload, dict):
            raise ValidationFailed(
                self.name,
                [FieldError(field="payload", message="Payload must be an object", code="dict_type")],
            )
        if self.schema is None:
            return dict(payload)
        try:
            model = self.schema.model_validate(payload)
        except ValidationError as exc:
            raise ValidationFailed(self.name, field_errors_from(exc)) from exc
        return model.model_dump(mode="json")

    async def on_accept(
        self,
        subject_id: str,
        payload: Dict[str, Any],
        previous: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        """Hook run right before the payload is recorded.

        ``previous`` is the payload recorded for this step earlier, if the
        step was already completed.
        """
        return payload

    def __repr__(self) -> str:
        return f"Step(name={self.name!r}, required={self.required})"


class WorkflowDefinition:
    """Ordered, immutable sequence of uniquely named steps."""

    def __init__(self, name: str, steps: Sequence[Step]) -> None:
        if not steps:
            raise ValueError("A workflow definition needs at least one step")
        seen: set[str] = set()
        for step in steps:
            if step.name in seen:
                raise ValueError(f"Duplicate step name: {step.name}")
            seen.add(step.name)
        self._name = name
        self._steps = tuple(steps)
        self._index = {step.name: i for i, step in enumerate(self._steps)}

    @property
    def name(self) -> str:
        return self._name

    @property
    def steps(self) -> tuple[Step, ...]:
        return self._steps

    @property
    def step_names(self) -> List[str]:
        return [step.name for step in self._steps]

    def __iter__(self) -> Iterator[Step]:
        return iter(self._steps)

    def __len__(self) -> int:
        return len(self._steps)

    def __contains__(self, step_name: object) -> bool:
        return step_name in self._index

    def get(self, step_name: str) -> Optional[Step]:
        idx = self._index.get(step_name)
        return None if idx is None else self._steps[idx]

    def index(self, step_name: str) -> int:
        return self._index[step_name]

    # ------------------------------------------------------------------
    # Derived state
    def known_steps(self, completed: Iterable[str]) -> List[str]:
        """Filter ``completed`` down to names present in this definition."""
        known = []
        for name in completed:
            if name in self._index:
                known.append(name)
            else:
                logger.warning(f"Ignoring unknown completed step {name!r} in {self._name}")
        return known

    def status_of(self, completed: Sequence[str]) -> WorkflowStatus:
        if not completed:
            return WorkflowStatus.NOT_STARTED
        done = set(completed)
        if all(step.name in done for step in self._steps if step.required):
            return WorkflowStatus.COMPLETE
        return WorkflowStatus.IN_PROGRESS

    def current_step(self, completed: Sequence[str]) -> Optional[str]:
        if self.status_of(completed) is WorkflowStatus.COMPLETE:
            return None
        done = set(completed)
        return next((s.name for s in self._steps if s.name not in done), None)

    def remaining_steps(self, completed: Sequence[str]) -> List[str]:
        done = set(completed)
        return [s.name for s in self._steps if s.name not in done]

    def missing_prerequisite(self, step_name: str, completed: Sequence[str]) -> Optional[str]:
        """First required step before ``step_name`` that is not completed."""
        done = set(completed)
        for step in self._steps[: self._index[step_name]]:
            if step.required and step.name not in done:
                return step.name
        return None

    def view(self, subject_id: str, completed: Sequence[str]) -> WorkflowStatusView:
        return WorkflowStatusView(
            subject_id=subject_id,
            status=self.status_of(completed),
            current_step=self.current_step(completed),
            completed_steps=list(completed),
            remaining_steps=self.remaining_steps(completed),
        )
