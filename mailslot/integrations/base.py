"""Interfaces for the external collaborators the booking engine consumes."""
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional, Sequence


class PaymentGatewayError(Exception):
    """Transport or provider-side failure talking to the payment gateway."""


@dataclass(frozen=True)
class CheckoutSession:
    session_id: str
    url: str


@dataclass(frozen=True)
class PaymentVerification:
    session_id: str
    payment_status: str  # "paid" | "unpaid" | "failed"
    payment_intent_id: Optional[str] = None
    booking_id: Optional[int] = None
    amount_total: Optional[int] = None

    @property
    def is_paid(self) -> bool:
        return self.payment_status == "paid"


@dataclass(frozen=True)
class RefundResult:
    refund_id: str
    amount: int
    status: str


class PaymentGateway(ABC):
    @abstractmethod
    def create_checkout_session(self, booking_id: int, amount: int, *, description: str = "") -> CheckoutSession:
        """Create a hosted checkout session for ``amount`` cents."""

    @abstractmethod
    def verify_session(self, session_id: str) -> PaymentVerification:
        """Report the payment state of a checkout session. Must be safe to call repeatedly."""

    @abstractmethod
    def refund(self, payment_intent_id: str, amount: int) -> RefundResult:
        """Refund ``amount`` cents of a captured payment."""


class ArtifactStore(ABC):
    @abstractmethod
    def store(self, file_name: str, content: bytes) -> str:
        """Persist an artifact and return the path it can be retrieved by."""

    @abstractmethod
    def retrieve(self, file_path: str) -> bytes:
        pass


class NotificationDispatcher(ABC):
    @abstractmethod
    def notify(self, user_id: int, message: str, channels: Sequence[str]) -> None:
        pass
