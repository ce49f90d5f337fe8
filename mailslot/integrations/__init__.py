"""
Integrations package initialization.
Exports collaborator interfaces and provider factories.
"""
from typing import Optional

from mailslot.config import PAYMENT_SETTINGS
from mailslot.exceptions import ConfigurationError
from .base import (
    ArtifactStore,
    CheckoutSession,
    NotificationDispatcher,
    PaymentGateway,
    PaymentGatewayError,
    PaymentVerification,
    RefundResult,
)
from .artifacts import LocalArtifactStore
from .notifications import LoggingNotificationDispatcher
from .payments import MockPaymentGateway


def create_payment_gateway(provider: Optional[str] = None) -> PaymentGateway:
    """Build the configured payment gateway (``mock`` or ``stripe``)."""
    provider = (provider or str(PAYMENT_SETTINGS.get("provider") or "mock")).lower()
    if provider == "stripe":
        from .stripe_gateway import StripePaymentGateway  # local import to avoid unnecessary dependency load
        return StripePaymentGateway()
    if provider == "mock":
        return MockPaymentGateway()
    raise ConfigurationError(f"Unknown payment provider: {provider}", details={"provider": provider})


__all__ = [
    "ArtifactStore",
    "CheckoutSession",
    "NotificationDispatcher",
    "PaymentGateway",
    "PaymentGatewayError",
    "PaymentVerification",
    "RefundResult",
    "LocalArtifactStore",
    "LoggingNotificationDispatcher",
    "MockPaymentGateway",
    "create_payment_gateway",
]
