"""The onboarding workflow: user info, additional details, payment, completion.

Payload fields are snake_case; camelCase aliases (``fullName``,
``companySize`` ...) are accepted as well so existing front ends keep working.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from .definition import Step, WorkflowDefinition
from .errors import PaymentFailed, ProviderError
from .payments import BasePaymentProvider
from .payments.base import to_minor_units

logger = logging.getLogger(__name__)

USER_INFO = "user_info"
ADDITIONAL_DETAILS = "additional_details"
PAYMENT = "payment"
COMPLETE = "complete"

EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"


class _Payload(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        str_strip_whitespace=True,
        extra="ignore",
    )


class UserInfo(_Payload):
    full_name: str = Field(min_length=2)
    email: str = Field(pattern=EMAIL_PATTERN)
    phone_number: str = Field(min_length=5)
    company_name: str = Field(min_length=2)


class AdditionalDetails(_Payload):
    industry: str = Field(min_length=2)
    company_size: str = Field(min_length=1)
    role: str = Field(min_length=2)
    goals: List[str] = Field(min_length=1)
    referral_source: Optional[str] = None


class PaymentDetails(_Payload):
    amount: float = Field(gt=0)
    currency: Optional[str] = Field(default=None, pattern=r"^[A-Za-z]{3}$")
    plan_name: Optional[str] = None
    price_id: Optional[str] = None


class PaymentStep(Step):
    """Step that creates a payment intent once it is accepted."""

    def __init__(
        self,
        provider: BasePaymentProvider,
        name: str = PAYMENT,
        required: bool = True,
        default_currency: str = "usd",
    ) -> None:
        super().__init__(
            name,
            required=required,
            schema=PaymentDetails,
            description="Select a plan and create a payment intent",
        )
        self.provider = provider
        self.default_currency = default_currency

    async def on_accept(
        self,
        subject_id: str,
        payload: Dict[str, Any],
        previous: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        """Attach a payment intent, reusing the recorded one for the same charge."""
        currency = (payload.get("currency") or self.default_currency).lower()
        try:
            minor = to_minor_units(payload["amount"])
        except ProviderError as exc:
            raise PaymentFailed(self.name, exc.code, exc.message) from exc

        if (
            previous
            and previous.get("intent_id")
            and previous.get("amount_minor") == minor
            and previous.get("currency") == currency
        ):
            logger.info(
                f"Reusing payment intent {previous['intent_id']} for subject_id={subject_id}"
            )
            return {
                **payload,
                "currency": currency,
                "amount_minor": minor,
                "intent_id": previous["intent_id"],
                "client_secret": previous.get("client_secret"),
            }

        metadata = {
            "subject_id": subject_id,
            "plan_name": payload.get("plan_name"),
            "price_id": payload.get("price_id"),
        }
        # same subject, step and charge always map to the same intent
        idempotency_key = f"{subject_id}:{self.name}:{minor}:{currency}"
        try:
            intent = await self.provider.create_intent(
                payload["amount"], currency, metadata, idempotency_key=idempotency_key
            )
        except ProviderError as exc:
            logger.warning(f"Payment provider refused subject_id={subject_id}: {exc.code}")
            raise PaymentFailed(self.name, exc.code, exc.message) from exc
        logger.info(f"Payment intent {intent.intent_id} attached for subject_id={subject_id}")
        return {
            **payload,
            "currency": intent.currency,
            "amount_minor": intent.amount,
            "intent_id": intent.intent_id,
            "client_secret": intent.client_secret,
        }


def build_onboarding_definition(
    provider: BasePaymentProvider, default_currency: str = "usd"
) -> WorkflowDefinition:
    """Build the four-step onboarding workflow."""
    return WorkflowDefinition(
        "onboarding",
        [
            Step(USER_INFO, schema=UserInfo, description="Basic contact information"),
            Step(
                ADDITIONAL_DETAILS,
                schema=AdditionalDetails,
                description="Company, role and goals",
            ),
            PaymentStep(provider, default_currency=default_currency),
            Step(COMPLETE, description="Confirm and finish onboarding"),
        ],
    )
