"""Booking state tables.

A booking carries three independent state dimensions plus the terminal
``cancelled`` status:

    payment:   pending -> paid | failed ; failed -> paid (retried checkout)
    approval:  pending -> approved | rejected            (only once paid)
    artwork:   pending_upload -> under_review -> approved | rejected
               rejected -> under_review                  (re-upload)

Any transition on a cancelled booking, or one missing from the tables, is a
``StateConflict``.
"""
from __future__ import annotations

from typing import Dict, FrozenSet, TypeVar

from mailslot.exceptions import StateConflict
from mailslot.models.db import Booking
from mailslot.models.db.enums import (
    ApprovalStatus,
    ArtworkStatus,
    BookingStatus,
    PaymentStatus,
)

PAYMENT_TRANSITIONS: Dict[PaymentStatus, FrozenSet[PaymentStatus]] = {
    PaymentStatus.PENDING: frozenset({PaymentStatus.PAID, PaymentStatus.FAILED}),
    PaymentStatus.FAILED: frozenset({PaymentStatus.PAID}),
    PaymentStatus.PAID: frozenset(),
}

APPROVAL_TRANSITIONS: Dict[ApprovalStatus, FrozenSet[ApprovalStatus]] = {
    ApprovalStatus.PENDING: frozenset({ApprovalStatus.APPROVED, ApprovalStatus.REJECTED}),
    ApprovalStatus.APPROVED: frozenset(),
    ApprovalStatus.REJECTED: frozenset(),
}

ARTWORK_TRANSITIONS: Dict[ArtworkStatus, FrozenSet[ArtworkStatus]] = {
    ArtworkStatus.PENDING_UPLOAD: frozenset({ArtworkStatus.UNDER_REVIEW}),
    ArtworkStatus.UNDER_REVIEW: frozenset({ArtworkStatus.APPROVED, ArtworkStatus.REJECTED}),
    ArtworkStatus.REJECTED: frozenset({ArtworkStatus.UNDER_REVIEW}),
    ArtworkStatus.APPROVED: frozenset(),
}

S = TypeVar("S", PaymentStatus, ApprovalStatus, ArtworkStatus)


def can_transition(table: Dict[S, FrozenSet[S]], current: S, target: S) -> bool:
    return target in table.get(current, frozenset())


def _check(table: Dict[S, FrozenSet[S]], dimension: str, booking: Booking, current: S, target: S) -> None:
    if not can_transition(table, current, target):
        raise StateConflict(
            f"Cannot move {dimension} from {current.value} to {target.value}",
            code="INVALID_TRANSITION",
            details={
                "booking_id": booking.id,
                "dimension": dimension,
                "from": current.value,
                "to": target.value,
            },
        )


def ensure_not_cancelled(booking: Booking) -> None:
    if booking.status == BookingStatus.CANCELLED:
        raise StateConflict(
            f"Booking {booking.id} is cancelled",
            code="BOOKING_CANCELLED",
            details={"booking_id": booking.id},
        )


def ensure_paid(booking: Booking) -> None:
    if booking.payment_status != PaymentStatus.PAID:
        raise StateConflict(
            f"Booking {booking.id} has not been paid",
            code="BOOKING_NOT_PAID",
            details={"booking_id": booking.id, "payment_status": booking.payment_status.value},
        )


def validate_payment_transition(booking: Booking, target: PaymentStatus) -> None:
    ensure_not_cancelled(booking)
    _check(PAYMENT_TRANSITIONS, "payment_status", booking, booking.payment_status, target)


def validate_approval_transition(booking: Booking, target: ApprovalStatus) -> None:
    ensure_not_cancelled(booking)
    ensure_paid(booking)
    _check(APPROVAL_TRANSITIONS, "approval_status", booking, booking.approval_status, target)


def validate_artwork_transition(booking: Booking, target: ArtworkStatus) -> None:
    ensure_not_cancelled(booking)
    ensure_paid(booking)
    _check(ARTWORK_TRANSITIONS, "artwork_status", booking, booking.artwork_status, target)


__all__ = [
    "PAYMENT_TRANSITIONS",
    "APPROVAL_TRANSITIONS",
    "ARTWORK_TRANSITIONS",
    "can_transition",
    "ensure_not_cancelled",
    "ensure_paid",
    "validate_payment_transition",
    "validate_approval_transition",
    "validate_artwork_transition",
]
