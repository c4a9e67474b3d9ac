"""
FastAPI adapter exposing the workflow engine over HTTP.

Status and step submission only; resetting a workflow stays an operational
concern handled by the CLI.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, FastAPI, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from .config import StepflowConfig, load_config
from .contracts import SubmitResult, WorkflowStatusView
from .engine import WorkflowEngine
from .errors import (
    OutOfOrder,
    PaymentFailed,
    StorageUnavailable,
    UnknownStep,
    ValidationFailed,
    WorkflowError,
)
from .onboarding import build_onboarding_definition
from .payments import get_payment_provider
from .persistence import get_store

logger = logging.getLogger(__name__)

# Checked in order; subclasses must precede their bases.
_STATUS_CODES = [
    (UnknownStep, 404),
    (PaymentFailed, 402),
    (ValidationFailed, 422),
    (OutOfOrder, 409),
    (StorageUnavailable, 503),
]


def status_code_for(exc: WorkflowError) -> int:
    for error_type, status_code in _STATUS_CODES:
        if isinstance(exc, error_type):
            return status_code
    return 500


class StepSubmission(BaseModel):
    """Body of a step submission request."""

    subject_id: str = Field(min_length=1)
    payload: Dict[str, Any] = Field(default_factory=dict)


class StepInfo(BaseModel):
    name: str
    required: bool
    description: str = ""


def build_engine(config: StepflowConfig) -> WorkflowEngine:
    """Wire the onboarding definition to the configured store and provider."""
    provider = get_payment_provider(config=config)
    definition = build_onboarding_definition(
        provider, default_currency=config.payments.default_currency
    )
    return WorkflowEngine.from_config(definition, get_store(config=config), config)


def get_engine(request: Request) -> WorkflowEngine:
    return request.app.state.engine


router = APIRouter(tags=["workflow"])


@router.get("/status/{subject_id}", response_model=WorkflowStatusView)
async def get_status(subject_id: str, engine: WorkflowEngine = Depends(get_engine)):
    """Current progress of one subject."""
    return await engine.get_status(subject_id)


@router.post("/step/{step_name}", response_model=SubmitResult)
async def submit_step(
    step_name: str,
    submission: StepSubmission,
    engine: WorkflowEngine = Depends(get_engine),
):
    """Submit the payload for one step."""
    return await engine.submit_step(submission.subject_id, step_name, submission.payload)


@router.get("/steps", response_model=List[StepInfo])
async def list_steps(engine: WorkflowEngine = Depends(get_engine)):
    """Steps of the workflow in definition order."""
    return [
        StepInfo(name=s.name, required=s.required, description=s.description)
        for s in engine.definition
    ]


@router.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "ok"}


async def workflow_error_handler(request: Request, exc: WorkflowError) -> JSONResponse:
    status_code = status_code_for(exc)
    if status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    return JSONResponse(status_code=status_code, content=exc.to_dict())


def create_app(
    engine: Optional[WorkflowEngine] = None, config: Optional[StepflowConfig] = None
) -> FastAPI:
    """Create the HTTP application.

    When ``engine`` is omitted it is built from configuration at startup.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if getattr(app.state, "engine", None) is None:
            app.state.engine = build_engine(config or load_config())
        yield

    app = FastAPI(
        title="stepflow",
        description="Resumable multi-step workflow API",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.engine = engine
    app.include_router(router, prefix="/api/v1")
    app.add_exception_handler(WorkflowError, workflow_error_handler)
    return app
