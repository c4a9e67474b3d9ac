"""Payment provider factory and initialization."""

from __future__ import annotations

import os
from typing import Optional

from ..config import StepflowConfig, load_config
from .base import BasePaymentProvider, PaymentIntent
from .inmemory import InMemoryPaymentProvider


def get_payment_provider(
    backend: Optional[str] = None, config: Optional[StepflowConfig] = None
) -> BasePaymentProvider:
    """Factory function to get the configured payment provider."""

    config = config or load_config()
    backend = (
        backend
        or os.getenv("STEPFLOW_PAYMENTS")
        or config.payments.backend
    ).lower()

    if backend == "inmemory":
        return InMemoryPaymentProvider()
    raise ValueError(f"Unsupported payment backend: {backend}")


__all__ = [
    "BasePaymentProvider",
    "InMemoryPaymentProvider",
    "PaymentIntent",
    "get_payment_provider",
]
