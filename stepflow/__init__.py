"""stepflow: resumable, ordered multi-step workflows."""

from .contracts import FieldError, SubmitResult, WorkflowStatus, WorkflowStatusView
from .definition import Step, WorkflowDefinition
from .engine import WorkflowEngine
from .errors import (
    OutOfOrder,
    PaymentFailed,
    ProviderError,
    StorageUnavailable,
    UnknownStep,
    ValidationFailed,
    VersionConflict,
    WorkflowAlreadyComplete,
    WorkflowError,
)
from .onboarding import build_onboarding_definition
from .payments import get_payment_provider
from .persistence import get_store

__version__ = "0.1.0"
__all__ = [
    "FieldError",
    "OutOfOrder",
    "PaymentFailed",
    "ProviderError",
    "Step",
    "StorageUnavailable",
    "SubmitResult",
    "UnknownStep",
    "ValidationFailed",
    "VersionConflict",
    "WorkflowAlreadyComplete",
    "WorkflowDefinition",
    "WorkflowEngine",
    "WorkflowError",
    "WorkflowStatus",
    "WorkflowStatusView",
    "build_onboarding_definition",
    "get_payment_provider",
    "get_store",
]
