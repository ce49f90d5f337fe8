"""
Stripe Checkout payment gateway.

One-off ``payment`` mode sessions; the booking id travels in session
metadata so verification can detect a session being replayed against the
wrong booking.
"""
from typing import Optional

import stripe

from mailslot.config import PAYMENT_SETTINGS
from mailslot.exceptions import ConfigurationError
from mailslot.integrations.base import (
    CheckoutSession,
    PaymentGateway,
    PaymentGatewayError,
    PaymentVerification,
    RefundResult,
)
from mailslot.utils import get_logger

logger = get_logger(__name__)


class StripePaymentGateway(PaymentGateway):

    def __init__(self, api_key: Optional[str] = None):
        key = api_key or PAYMENT_SETTINGS.get("stripe_secret_key")
        if not key:
            raise ConfigurationError("STRIPE_SECRET_KEY is not configured", code="PAYMENT_PROVIDER_UNCONFIGURED")
        stripe.api_key = key
        self.currency = str(PAYMENT_SETTINGS.get("currency") or "usd")
        self.success_url = str(PAYMENT_SETTINGS.get("success_url"))
        self.cancel_url = str(PAYMENT_SETTINGS.get("cancel_url"))

    def create_checkout_session(self, booking_id: int, amount: int, *, description: str = "") -> CheckoutSession:
        try:
            session = stripe.checkout.Session.create(
                mode="payment",
                payment_method_types=["card"],
                line_items=[{
                    "price_data": {
                        "currency": self.currency,
                        "unit_amount": amount,
                        "product_data": {"name": description or f"Direct mail slot booking #{booking_id}"},
                    },
                    "quantity": 1,
                }],
                metadata={"booking_id": str(booking_id)},
                success_url=self.success_url + "?session_id={CHECKOUT_SESSION_ID}",
                cancel_url=self.cancel_url,
            )
        except stripe.StripeError as e:
            logger.error("Stripe checkout session creation failed", booking_id=booking_id, error=str(e))
            raise PaymentGatewayError(str(e)) from e
        logger.info("Stripe checkout session created", booking_id=booking_id, session_id=session.id)
        return CheckoutSession(session_id=session.id, url=session.url)

    def verify_session(self, session_id: str) -> PaymentVerification:
        try:
            session = stripe.checkout.Session.retrieve(session_id)
        except stripe.StripeError as e:
            logger.error("Stripe session retrieval failed", session_id=session_id, error=str(e))
            raise PaymentGatewayError(str(e)) from e
        metadata = session.metadata or {}
        raw_booking_id = metadata.get("booking_id")
        status = "paid" if session.payment_status == "paid" else "unpaid"
        if session.status == "expired":
            status = "failed"
        return PaymentVerification(
            session_id=session_id,
            payment_status=status,
            payment_intent_id=session.payment_intent if isinstance(session.payment_intent, str) else None,
            booking_id=int(raw_booking_id) if raw_booking_id else None,
            amount_total=session.amount_total,
        )

    def refund(self, payment_intent_id: str, amount: int) -> RefundResult:
        try:
            refund = stripe.Refund.create(payment_intent=payment_intent_id, amount=amount)
        except stripe.StripeError as e:
            logger.error("Stripe refund failed", payment_intent_id=payment_intent_id, error=str(e))
            raise PaymentGatewayError(str(e)) from e
        return RefundResult(refund_id=refund.id, amount=refund.amount, status=refund.status)
