"""In-memory payment provider for development and tests."""

from __future__ import annotations

import logging
import uuid
from typing import Any, Dict, List, Optional

from ..errors import ProviderError
from .base import BasePaymentProvider, PaymentIntent, to_minor_units

logger = logging.getLogger(__name__)


class InMemoryPaymentProvider(BasePaymentProvider):
    """Creates intents locally without contacting any payment network.

    Set ``decline_code`` to make every subsequent call fail with that code.
    """

    def __init__(self, decline_code: Optional[str] = None) -> None:
        self.decline_code = decline_code
        self.intents: List[PaymentIntent] = []
        self._by_key: Dict[str, PaymentIntent] = {}

    async def create_intent(
        self,
        amount: Any,
        currency: str,
        metadata: Optional[Dict[str, Any]] = None,
        idempotency_key: Optional[str] = None,
    ) -> PaymentIntent:
        minor = to_minor_units(amount)
        if idempotency_key and idempotency_key in self._by_key:
            logger.debug(f"Replaying intent for idempotency key {idempotency_key}")
            return self._by_key[idempotency_key]
        if self.decline_code:
            logger.info(f"Declining intent for {minor} {currency}: {self.decline_code}")
            raise ProviderError(self.decline_code, "Your card was declined")
        intent_id = f"pi_{uuid.uuid4().hex[:24]}"
        intent = PaymentIntent(
            intent_id=intent_id,
            client_secret=f"{intent_id}_secret_{uuid.uuid4().hex[:16]}",
            amount=minor,
            currency=currency.lower(),
            metadata={k: str(v) for k, v in (metadata or {}).items() if v is not None},
        )
        self.intents.append(intent)
        if idempotency_key:
            self._by_key[idempotency_key] = intent
        return intent
