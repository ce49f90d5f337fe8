"""Refund eligibility on cancellation.

days_until_deadline = ceil((print_deadline - now) / 1 day)
Full refund of the amount paid iff days_until_deadline >= min_days_before_deadline
(default 7) and the booking is paid; otherwise no refund.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from mailslot.config import REFUND_POLICY
from mailslot.exceptions import ConfigurationError
from mailslot.models.db.enums import PaymentStatus, RefundStatus
from mailslot.utils.time import days_until


@dataclass(frozen=True)
class RefundDecision:
    eligible: bool
    amount: int
    status: RefundStatus
    days_until_deadline: int
    reason: str


def evaluate_refund(
    *,
    print_deadline: Optional[datetime],
    payment_status: PaymentStatus,
    amount_paid: int,
    now: datetime,
    campaign_id: Optional[int] = None,
) -> RefundDecision:
    if print_deadline is None:
        raise ConfigurationError(
            "Campaign has no print deadline; cancellation refund cannot be determined",
            code="PRINT_DEADLINE_MISSING",
            details={"campaign_id": campaign_id},
        )
    min_days = int(REFUND_POLICY["min_days_before_deadline"])
    days = days_until(print_deadline, now)
    if payment_status != PaymentStatus.PAID:
        return RefundDecision(False, 0, RefundStatus.NO_REFUND, days, "booking was not paid")
    if days < min_days:
        return RefundDecision(
            False, 0, RefundStatus.NO_REFUND, days,
            f"cancelled {days} day(s) before print deadline; refunds require {min_days}",
        )
    return RefundDecision(True, amount_paid, RefundStatus.PENDING, days, "full refund")


__all__ = ["RefundDecision", "evaluate_refund"]
