"""End-to-end onboarding scenario against a SQLite store."""

import pytest

from stepflow import (
    OutOfOrder,
    WorkflowEngine,
    WorkflowStatus,
    build_onboarding_definition,
)
from stepflow.payments import InMemoryPaymentProvider
from stepflow.persistence import SQLiteProfileStore

USER = {
    "fullName": "Grace Hopper",
    "email": "grace@example.com",
    "phone_number": "555-0100",
    "company_name": "Compilers Inc",
}
DETAILS = {
    "industry": "Software",
    "company_size": "11-50",
    "role": "Admiral",
    "goals": ["conferences", "client visits"],
    "referralSource": "friend",
}


def _engine(db_path) -> WorkflowEngine:
    definition = build_onboarding_definition(InMemoryPaymentProvider())
    return WorkflowEngine(definition, SQLiteProfileStore(db_path))


@pytest.mark.asyncio
async def test_onboarding_scenario_is_resumable(tmp_path):
    db_path = tmp_path / "onboarding.db"
    engine = _engine(db_path)

    view = await engine.get_status("grace")
    assert view.status is WorkflowStatus.NOT_STARTED

    result = await engine.submit_step("grace", "user_info", USER)
    assert result.status is WorkflowStatus.IN_PROGRESS
    assert result.next_step == "additional_details"

    with pytest.raises(OutOfOrder) as excinfo:
        await engine.submit_step("grace", "payment", {"amount": 99})
    assert excinfo.value.missing_step == "additional_details"

    # a new process picks up where the last one stopped
    engine = _engine(db_path)
    view = await engine.get_status("grace")
    assert view.completed_steps == ["user_info"]
    assert view.current_step == "additional_details"

    await engine.submit_step("grace", "additional_details", DETAILS)
    await engine.submit_step("grace", "payment", {"amount": 99, "plan_name": "platinum"})
    result = await engine.submit_step("grace", "complete", {})

    assert result.status is WorkflowStatus.COMPLETE
    view = await engine.get_status("grace")
    assert view.status is WorkflowStatus.COMPLETE
    assert view.remaining_steps == []
    assert view.completed_steps == ["user_info", "additional_details", "payment", "complete"]

    state = await engine.get_instance("grace")
    assert state.step_payloads["additional_details"]["referral_source"] == "friend"
    assert state.step_payloads["payment"]["amount_minor"] == 9900

    await engine.reset_workflow("grace")
    view = await engine.get_status("grace")
    assert view.status is WorkflowStatus.NOT_STARTED


@pytest.mark.asyncio
async def test_resubmitting_details_after_completion(tmp_path):
    engine = _engine(tmp_path / "onboarding.db")
    for step, payload in [
        ("user_info", USER),
        ("additional_details", DETAILS),
        ("payment", {"amount": 10}),
        ("complete", {}),
    ]:
        await engine.submit_step("grace", step, payload)

    result = await engine.submit_step(
        "grace", "additional_details", {**DETAILS, "role": "Rear Admiral"}
    )
    assert result.status is WorkflowStatus.COMPLETE

    state = await engine.get_instance("grace")
    assert state.completed_steps == ["user_info", "additional_details", "payment", "complete"]
    assert state.step_payloads["additional_details"]["role"] == "Rear Admiral"
