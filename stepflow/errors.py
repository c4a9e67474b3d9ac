"""Error taxonomy for stepflow workflows."""

from __future__ import annotations

from typing import Any, List, Optional

from .contracts import FieldError


class WorkflowError(Exception):
    """Base class for every error raised by the workflow engine."""

    code = "workflow_error"

    def __init__(self, message: str, step: Optional[str] = None) -> None:
        super().__init__(message)
        self.message = message
        self.step = step

    def to_dict(self) -> dict[str, Any]:
        """Structured representation suitable for API responses."""
        data: dict[str, Any] = {"error": self.code, "message": self.message}
        if self.step is not None:
            data["step"] = self.step
        return data


class UnknownStep(WorkflowError):
    """The submitted step is not part of the workflow definition."""

    code = "unknown_step"

    def __init__(self, step: str) -> None:
        super().__init__(f"Unknown step: {step}", step=step)


class ValidationFailed(WorkflowError):
    """The payload for a step did not pass validation."""

    code = "validation_failed"

    def __init__(
        self,
        step: str,
        errors: List[FieldError],
        message: Optional[str] = None,
    ) -> None:
        super().__init__(message or f"Invalid payload for step {step}", step=step)
        self.errors = list(errors)

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data["errors"] = [e.model_dump() for e in self.errors]
        return data


class PaymentFailed(ValidationFailed):
    """The payment provider refused the charge attached to a step."""

    code = "payment_failed"

    def __init__(self, step: str, provider_code: str, message: str) -> None:
        super().__init__(
            step,
            [FieldError(field="payment", message=message, code=provider_code)],
            message=f"Payment failed for step {step}: {message}",
        )
        self.provider_code = provider_code

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data["provider_code"] = self.provider_code
        return data


class OutOfOrder(WorkflowError):
    """A required prerequisite step has not been completed yet."""

    code = "out_of_order"

    def __init__(
        self, step: str, missing_step: Optional[str], message: Optional[str] = None
    ) -> None:
        super().__init__(
            message or f"Step {step} requires {missing_step} to be completed first",
            step=step,
        )
        self.missing_step = missing_step

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data["missing_step"] = self.missing_step
        return data


class WorkflowAlreadyComplete(OutOfOrder):
    """The workflow is complete and only accepts resubmission of finished steps."""

    code = "workflow_already_complete"

    def __init__(self, step: str) -> None:
        super().__init__(
            step,
            missing_step=None,
            message=f"Workflow already complete; step {step} can no longer be submitted",
        )


class StorageUnavailable(WorkflowError):
    """The profile store could not be read or written. Safe to retry."""

    code = "storage_unavailable"

    def __init__(self, subject_id: Optional[str], message: str) -> None:
        super().__init__(message)
        self.subject_id = subject_id

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        if self.subject_id is not None:
            data["subject_id"] = self.subject_id
        return data


class VersionConflict(StorageUnavailable):
    """A concurrent writer changed the record since it was loaded."""

    code = "version_conflict"

    def __init__(self, subject_id: str, expected_version: int) -> None:
        super().__init__(
            subject_id,
            f"Instance {subject_id} was modified concurrently "
            f"(expected version {expected_version})",
        )
        self.expected_version = expected_version


class ProviderError(Exception):
    """Raised by payment providers when an intent cannot be created."""

    def __init__(self, code: str, message: str) -> None:
        super().__init__(message)
        self.code = code
        self.message = message
