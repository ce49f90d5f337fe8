"""Domain exception taxonomy for the booking engine.

Services raise these and let them propagate; ``mailslot.main`` maps each
class onto an HTTP status and the standard JSON error envelope.

Caller-fixable errors (bad input, taken slot, illegal transition) are logged
at warning level by the handlers; ``ConfigurationError`` signals data an
admin must fix and is logged as an error.
"""
from __future__ import annotations

from typing import Any, Dict, Optional


class BookingEngineError(Exception):
    """Base class for every error raised by the booking engine."""

    status_code: int = 400
    code: str = "BOOKING_ENGINE_ERROR"

    def __init__(self, message: str, *, code: Optional[str] = None, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code
        self.details: Dict[str, Any] = details or {}

    def to_dict(self) -> Dict[str, Any]:
        return {"message": self.message, "code": self.code, "details": self.details}


class ValidationError(BookingEngineError):
    """Malformed or inconsistent request (bad quantity, wrong subcategory...)."""
    status_code = 422
    code = "VALIDATION_ERROR"


class NotFoundError(BookingEngineError):
    status_code = 404
    code = "NOT_FOUND"


class SlotConflict(BookingEngineError):
    """The exclusive slot is already held by a confirmed booking."""
    status_code = 409
    code = "SLOT_CONFLICT"


class StateConflict(BookingEngineError):
    """Operation is not allowed from the booking's current state."""
    status_code = 409
    code = "STATE_CONFLICT"


class PricingRuleExhausted(StateConflict):
    """A usage-limited rule ran out between quote and persistence."""
    code = "PRICING_RULE_EXHAUSTED"


class ConfigurationError(BookingEngineError):
    """Catalog data is incomplete (e.g. campaign without a print deadline)."""
    status_code = 503
    code = "CONFIGURATION_ERROR"


class PaymentVerificationError(BookingEngineError):
    """The payment gateway does not confirm the payment being claimed."""
    status_code = 402
    code = "PAYMENT_VERIFICATION_FAILED"


__all__ = [
    "BookingEngineError",
    "ValidationError",
    "NotFoundError",
    "SlotConflict",
    "StateConflict",
    "PricingRuleExhausted",
    "ConfigurationError",
    "PaymentVerificationError",
]
