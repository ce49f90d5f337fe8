"""
In-process payment gateway.

Default provider for local development and tests: checkout sessions live in
memory and are settled explicitly via ``complete_session`` / ``fail_session``
(standing in for the customer finishing the hosted checkout).
"""
import secrets
import threading
from typing import Dict, Optional

from mailslot.config import PAYMENT_SETTINGS
from mailslot.integrations.base import (
    CheckoutSession,
    PaymentGateway,
    PaymentGatewayError,
    PaymentVerification,
    RefundResult,
)
from mailslot.utils import get_logger

logger = get_logger(__name__)


class MockPaymentGateway(PaymentGateway):
    """Thread-safe in-memory gateway."""

    def __init__(self, checkout_base_url: Optional[str] = None):
        self.checkout_base_url = checkout_base_url or "https://checkout.mock.local/pay"
        self._lock = threading.Lock()
        self._sessions: Dict[str, Dict[str, object]] = {}
        self._refunds: Dict[str, RefundResult] = {}
        self.refund_failures_remaining = 0

    def create_checkout_session(self, booking_id: int, amount: int, *, description: str = "") -> CheckoutSession:
        session_id = f"cs_mock_{secrets.token_hex(12)}"
        with self._lock:
            self._sessions[session_id] = {
                "booking_id": booking_id,
                "amount_total": amount,
                "payment_status": "unpaid",
                "payment_intent_id": None,
                "currency": PAYMENT_SETTINGS["currency"],
                "description": description,
            }
        logger.info("Mock checkout session created", session_id=session_id, booking_id=booking_id, amount=amount)
        return CheckoutSession(session_id=session_id, url=f"{self.checkout_base_url}/{session_id}")

    def complete_session(self, session_id: str) -> str:
        """Mark a session paid; returns the payment intent id."""
        with self._lock:
            session = self._require(session_id)
            if session["payment_intent_id"] is None:
                session["payment_intent_id"] = f"pi_mock_{secrets.token_hex(12)}"
            session["payment_status"] = "paid"
            return str(session["payment_intent_id"])

    def fail_session(self, session_id: str) -> None:
        with self._lock:
            self._require(session_id)["payment_status"] = "failed"

    def verify_session(self, session_id: str) -> PaymentVerification:
        with self._lock:
            session = dict(self._require(session_id))
        return PaymentVerification(
            session_id=session_id,
            payment_status=str(session["payment_status"]),
            payment_intent_id=session["payment_intent_id"],  # type: ignore[arg-type]
            booking_id=session["booking_id"],  # type: ignore[arg-type]
            amount_total=session["amount_total"],  # type: ignore[arg-type]
        )

    def refund(self, payment_intent_id: str, amount: int) -> RefundResult:
        with self._lock:
            if self.refund_failures_remaining > 0:
                self.refund_failures_remaining -= 1
                raise PaymentGatewayError(f"Mock refund declined for {payment_intent_id}")
            paid = [s for s in self._sessions.values() if s["payment_intent_id"] == payment_intent_id]
            if not paid:
                raise PaymentGatewayError(f"Unknown payment intent {payment_intent_id}")
            result = RefundResult(refund_id=f"re_mock_{secrets.token_hex(8)}", amount=amount, status="succeeded")
            self._refunds[result.refund_id] = result
        logger.info("Mock refund issued", payment_intent_id=payment_intent_id, amount=amount)
        return result

    def _require(self, session_id: str) -> Dict[str, object]:
        session = self._sessions.get(session_id)
        if session is None:
            raise PaymentGatewayError(f"Unknown checkout session {session_id}")
        return session
