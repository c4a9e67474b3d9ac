"""Walk one user through the onboarding workflow."""

import asyncio

from stepflow import OutOfOrder, WorkflowEngine, build_onboarding_definition
from stepflow.payments import InMemoryPaymentProvider
from stepflow.persistence import SQLiteProfileStore


async def main():
    """Onboarding example backed by a local SQLite file."""
    definition = build_onboarding_definition(InMemoryPaymentProvider())
    engine = WorkflowEngine(definition, SQLiteProfileStore("onboarding.db"))
    subject_id = "user-123"

    await engine.submit_step(
        subject_id,
        "user_info",
        {
            "fullName": "Ada Lovelace",
            "email": "ada@example.com",
            "phoneNumber": "+44 20 7946 0000",
            "companyName": "Analytical Engines Ltd",
        },
    )
    print(await engine.get_status(subject_id))

    try:
        await engine.submit_step(subject_id, "payment", {"amount": 49})
    except OutOfOrder as exc:
        print(f"Payment rejected, complete {exc.missing_step} first")

    await engine.submit_step(
        subject_id,
        "additional_details",
        {"industry": "Computing", "companySize": "1-10", "role": "Founder", "goals": ["travel"]},
    )
    result = await engine.submit_step(subject_id, "payment", {"amount": 49, "planName": "gold"})
    print(f"Client secret for checkout: {result.payload['client_secret']}")

    result = await engine.submit_step(subject_id, "complete", {})
    print(f"Status: {result.status.value}")


if __name__ == "__main__":
    asyncio.run(main())
