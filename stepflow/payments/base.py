"""Base payment provider interface."""

from __future__ import annotations

import abc
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field

from ..errors import ProviderError


class PaymentIntent(BaseModel):
    """A payment intent as returned by a provider."""

    intent_id: str
    client_secret: str
    amount: int = Field(description="Amount in minor currency units")
    currency: str
    status: str = "requires_confirmation"
    metadata: Dict[str, str] = Field(default_factory=dict)


def to_minor_units(amount: Any) -> int:
    """Convert a major-unit amount (e.g. dollars) to integer minor units."""
    try:
        value = Decimal(str(amount))
    except (InvalidOperation, ValueError) as exc:
        raise ProviderError("invalid_amount", f"Invalid amount: {amount!r}") from exc
    if not value.is_finite() or value <= 0:
        raise ProviderError("invalid_amount", "Valid amount is required")
    return int((value * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


class BasePaymentProvider(metaclass=abc.ABCMeta):
    """Abstract base for payment providers."""

    @abc.abstractmethod
    async def create_intent(
        self,
        amount: Any,
        currency: str,
        metadata: Optional[Dict[str, Any]] = None,
        idempotency_key: Optional[str] = None,
    ) -> PaymentIntent:
        """Create a payment intent.

        Args:
            amount: Amount in major units; converted to minor units.
            currency: ISO currency code, case-insensitive.
            metadata: Free-form values attached to the intent.
            idempotency_key: Repeated calls with the same key return the
                intent created by the first call instead of a new one.

        Raises:
            ProviderError: If the provider refuses to create the intent.
        """
        raise NotImplementedError
