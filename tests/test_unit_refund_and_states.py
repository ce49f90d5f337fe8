from datetime import datetime, timedelta, timezone

import pytest

from mailslot.exceptions import ConfigurationError, StateConflict
from mailslot.models.db import Booking
from mailslot.models.db.enums import (
    ApprovalStatus,
    ArtworkStatus,
    BookingStatus,
    PaymentStatus,
    RefundStatus,
)
from mailslot.services import state_machine
from mailslot.services.refund_policy import evaluate_refund
from mailslot.services.slot_exclusivity import SlotKey
from mailslot.utils.time import days_until

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


def test_full_refund_ten_days_before_deadline():
    decision = evaluate_refund(print_deadline=NOW + timedelta(days=10), payment_status=PaymentStatus.PAID,
                               amount_paid=60000, now=NOW)
    assert decision.eligible
    assert decision.status == RefundStatus.PENDING
    assert decision.amount == 60000
    assert decision.days_until_deadline == 10


def test_no_refund_three_days_before_deadline():
    decision = evaluate_refund(print_deadline=NOW + timedelta(days=3), payment_status=PaymentStatus.PAID,
                               amount_paid=60000, now=NOW)
    assert not decision.eligible
    assert decision.status == RefundStatus.NO_REFUND
    assert decision.amount == 0


def test_partial_day_rounds_up_to_threshold():
    # 6 days and 1 hour counts as 7 days
    deadline = NOW + timedelta(days=6, hours=1)
    assert days_until(deadline, NOW) == 7
    decision = evaluate_refund(print_deadline=deadline, payment_status=PaymentStatus.PAID,
                               amount_paid=45000, now=NOW)
    assert decision.eligible and decision.amount == 45000


def test_unpaid_booking_gets_no_refund():
    decision = evaluate_refund(print_deadline=NOW + timedelta(days=30), payment_status=PaymentStatus.PENDING,
                               amount_paid=60000, now=NOW)
    assert decision.status == RefundStatus.NO_REFUND


def test_missing_deadline_is_configuration_error():
    with pytest.raises(ConfigurationError) as exc:
        evaluate_refund(print_deadline=None, payment_status=PaymentStatus.PAID, amount_paid=1, now=NOW,
                        campaign_id=5)
    assert exc.value.code == "PRINT_DEADLINE_MISSING"


def test_naive_deadline_treated_as_utc():
    naive = datetime(2026, 3, 11, 12, 0)
    assert days_until(naive, NOW) == 10


def _booking(**overrides):
    fields = dict(
        id=1,
        status=BookingStatus.CONFIRMED,
        payment_status=PaymentStatus.PAID,
        approval_status=ApprovalStatus.PENDING,
        artwork_status=ArtworkStatus.PENDING_UPLOAD,
    )
    fields.update(overrides)
    return Booking(**fields)


def test_payment_table():
    table = state_machine.PAYMENT_TRANSITIONS
    assert state_machine.can_transition(table, PaymentStatus.PENDING, PaymentStatus.PAID)
    assert state_machine.can_transition(table, PaymentStatus.FAILED, PaymentStatus.PAID)
    assert not state_machine.can_transition(table, PaymentStatus.PAID, PaymentStatus.PENDING)


def test_approval_requires_payment():
    with pytest.raises(StateConflict) as exc:
        state_machine.validate_approval_transition(_booking(payment_status=PaymentStatus.PENDING),
                                                   ApprovalStatus.APPROVED)
    assert exc.value.code == "BOOKING_NOT_PAID"


def test_approval_is_final():
    booking = _booking(approval_status=ApprovalStatus.APPROVED)
    with pytest.raises(StateConflict) as exc:
        state_machine.validate_approval_transition(booking, ApprovalStatus.REJECTED)
    assert exc.value.code == "INVALID_TRANSITION"


def test_artwork_resubmission_after_rejection():
    booking = _booking(artwork_status=ArtworkStatus.REJECTED)
    state_machine.validate_artwork_transition(booking, ArtworkStatus.UNDER_REVIEW)
    with pytest.raises(StateConflict):
        state_machine.validate_artwork_transition(booking, ArtworkStatus.APPROVED)


def test_cancelled_booking_rejects_every_transition():
    booking = _booking(status=BookingStatus.CANCELLED)
    for check, target in (
        (state_machine.validate_payment_transition, PaymentStatus.PAID),
        (state_machine.validate_approval_transition, ApprovalStatus.APPROVED),
        (state_machine.validate_artwork_transition, ArtworkStatus.UNDER_REVIEW),
    ):
        with pytest.raises(StateConflict) as exc:
            check(booking, target)
        assert exc.value.code == "BOOKING_CANCELLED"


def test_slot_key_format():
    assert SlotKey(4, 9, 2, None).as_string() == "4:9:2:-"
    key = SlotKey.parse("4:9:2:17")
    assert key == SlotKey(4, 9, 2, 17)
    assert SlotKey.parse(SlotKey(1, 2, 3).as_string()).subcategory_id is None
