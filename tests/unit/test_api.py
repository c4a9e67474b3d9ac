"""
HTTP adapter tests using FastAPI TestClient
"""

import pytest
from fastapi.testclient import TestClient

from stepflow import (
    Step,
    StorageUnavailable,
    WorkflowDefinition,
    WorkflowEngine,
    build_onboarding_definition,
)
from stepflow.api import create_app
from stepflow.payments import InMemoryPaymentProvider
from stepflow.persistence import InMemoryProfileStore

USER = {
    "fullName": "Ada Lovelace",
    "email": "ada@example.com",
    "phoneNumber": "+44 20 7946 0000",
    "companyName": "Analytical Engines",
}
DETAILS = {
    "industry": "Computing",
    "companySize": "1-10",
    "role": "Founder",
    "goals": ["business travel"],
}


class DownStore(InMemoryProfileStore):
    async def load(self, subject_id):
        raise StorageUnavailable(subject_id, "connection refused")


def _client(provider=None, store=None) -> TestClient:
    definition = build_onboarding_definition(provider or InMemoryPaymentProvider())
    engine = WorkflowEngine(definition, store or InMemoryProfileStore())
    return TestClient(create_app(engine=engine))


@pytest.fixture
def client():
    """Create test client."""
    return _client()


def _submit(client, step, payload, subject_id="user-1"):
    return client.post(
        f"/api/v1/step/{step}", json={"subject_id": subject_id, "payload": payload}
    )


def test_health_check(client):
    response = client.get("/api/v1/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_list_steps(client):
    response = client.get("/api/v1/steps")
    assert response.status_code == 200
    names = [s["name"] for s in response.json()]
    assert names == ["user_info", "additional_details", "payment", "complete"]


def test_status_for_new_subject(client):
    response = client.get("/api/v1/status/user-1")
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "not_started"
    assert data["current_step"] == "user_info"
    assert data["completed_steps"] == []


def test_full_flow_over_http(client):
    response = _submit(client, "user_info", USER)
    assert response.status_code == 200
    assert response.json()["next_step"] == "additional_details"

    response = _submit(client, "payment", {"amount": 49})
    assert response.status_code == 409
    body = response.json()
    assert body["error"] == "out_of_order"
    assert body["missing_step"] == "additional_details"

    assert _submit(client, "additional_details", DETAILS).status_code == 200
    response = _submit(client, "payment", {"amount": 49, "planName": "gold"})
    assert response.status_code == 200
    assert response.json()["payload"]["client_secret"]

    response = _submit(client, "complete", {})
    assert response.status_code == 200
    assert response.json()["status"] == "complete"

    data = client.get("/api/v1/status/user-1").json()
    assert data["status"] == "complete"
    assert data["remaining_steps"] == []
    assert data["current_step"] is None


def test_unknown_step_is_404(client):
    response = _submit(client, "preferences", {})
    assert response.status_code == 404
    assert response.json()["error"] == "unknown_step"


def test_invalid_payload_is_422_with_field_errors(client):
    response = _submit(client, "user_info", {**USER, "email": "nope"})
    assert response.status_code == 422
    body = response.json()
    assert body["error"] == "validation_failed"
    assert [e["field"] for e in body["errors"]] == ["email"]


def test_missing_subject_id_is_rejected(client):
    response = client.post("/api/v1/step/user_info", json={"payload": USER})
    assert response.status_code == 422


def test_declined_payment_is_402():
    client = _client(provider=InMemoryPaymentProvider(decline_code="card_declined"))
    _submit(client, "user_info", USER)
    _submit(client, "additional_details", DETAILS)

    response = _submit(client, "payment", {"amount": 49})
    assert response.status_code == 402
    body = response.json()
    assert body["error"] == "payment_failed"
    assert body["provider_code"] == "card_declined"


def test_completed_workflow_rejects_new_steps_with_409():
    definition = WorkflowDefinition("survey", [Step("answers"), Step("feedback", required=False)])
    client = TestClient(create_app(engine=WorkflowEngine(definition, InMemoryProfileStore())))
    assert _submit(client, "answers", {"q1": "yes"}).status_code == 200

    response = _submit(client, "feedback", {"text": "late"})
    assert response.status_code == 409
    assert response.json()["error"] == "workflow_already_complete"

    # resubmitting a finished step is still fine
    assert _submit(client, "answers", {"q1": "no"}).status_code == 200


def test_storage_failure_is_503():
    client = _client(store=DownStore())
    response = client.get("/api/v1/status/user-1")
    assert response.status_code == 503
    assert response.json()["error"] == "storage_unavailable"


def test_reset_is_not_exposed(client):
    response = client.post("/api/v1/reset/user-1")
    assert response.status_code in (404, 405)
