"""Booking lifecycle manager.

Create -> (checkout) -> confirm payment -> approve/reject, artwork review,
and cancel from any non-cancelled state.

Rules:
* A new booking is ``confirmed`` with payment ``pending`` and holds its slot
  key immediately. Rule usage and loyalty reservation are written in the
  same transaction; a key collision at flush/commit becomes ``SlotConflict``.
* Campaign ``booked_slots``/``revenue`` move only on the first successful
  payment confirmation (``slot_counted``) and are given back on
  cancellation, floored at zero.
* Payment confirmation is idempotent per checkout session id: the paid
  transition is a conditional UPDATE, so a replayed webhook or a concurrent
  duplicate updates nothing and reports a replay.
* Cancellation refunds in full iff the print deadline is at least
  ``REFUND_POLICY['min_days_before_deadline']`` days away and the booking
  is paid. The cancel commits before any gateway refund is sent, so a
  losing concurrent cancel never refunds. It always frees the key and then
  notifies the waitlist.
* Unpaid bookings older than ``pending_expiry_minutes`` are released by
  ``expire_pending_bookings`` (called on demand, there is no scheduler).
"""
from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import List, Optional, Sequence, Tuple

from sqlalchemy import case, func, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from mailslot.config import BOOKING_SETTINGS
from mailslot.exceptions import (
    BookingEngineError,
    NotFoundError,
    PaymentVerificationError,
    SlotConflict,
    StateConflict,
    ValidationError,
)
from mailslot.integrations.base import (
    ArtifactStore,
    CheckoutSession,
    NotificationDispatcher,
    PaymentGateway,
    PaymentGatewayError,
)
from mailslot.models.db import Booking, Campaign, User
from mailslot.models.db.enums import (
    ApprovalStatus,
    ArtworkStatus,
    BookingStatus,
    PaymentStatus,
    RefundStatus,
)
from mailslot.services import catalog, loyalty, pricing_engine, state_machine, waitlist
from mailslot.services.pricing_engine import Quote
from mailslot.services.refund_policy import evaluate_refund
from mailslot.services.slot_exclusivity import exclusivity_key, find_occupant
from mailslot.utils import get_logger, log_business_event, utc_now
from mailslot.utils.time import as_utc

logger = get_logger(__name__)


@dataclass(frozen=True)
class BookingRequest:
    campaign_id: int
    route_id: int
    industry_id: int
    business_name: str
    contact_email: str
    quantity: int = 1
    subcategory_id: Optional[int] = None
    industry_description: Optional[str] = None
    contact_phone: Optional[str] = None
    loyalty_exempt: bool = False


@dataclass(frozen=True)
class PaymentConfirmation:
    booking: Booking
    replayed: bool
    loyalty_discounts_earned: int = 0


@dataclass(frozen=True)
class CancellationResult:
    booking: Booking
    refund_status: RefundStatus
    refund_amount: int
    days_until_deadline: int
    waitlist_notified: int


# ------------------------------- Lookups ----------------------------------- #

def get_booking(session: Session, booking_id: int) -> Booking:
    booking = session.get(Booking, booking_id)
    if booking is None:
        raise NotFoundError(f"Booking {booking_id} not found", details={"booking_id": booking_id})
    return booking


def list_bookings(
    session: Session,
    *,
    user_id: Optional[int] = None,
    campaign_id: Optional[int] = None,
    status: Optional[BookingStatus] = None,
    payment_status: Optional[PaymentStatus] = None,
    limit: int = 100,
    offset: int = 0,
) -> List[Booking]:
    query = session.query(Booking)
    if user_id is not None:
        query = query.filter(Booking.user_id == user_id)
    if campaign_id is not None:
        query = query.filter(Booking.campaign_id == campaign_id)
    if status is not None:
        query = query.filter(Booking.status == status)
    if payment_status is not None:
        query = query.filter(Booking.payment_status == payment_status)
    return query.order_by(Booking.created_at.desc(), Booking.id.desc()).offset(offset).limit(limit).all()


# ------------------------------- Creation ---------------------------------- #

def _is_slot_key_violation(error: IntegrityError) -> bool:
    return "slot_key" in str(error.orig)


def _check_capacity(session: Session, campaign: Campaign) -> None:
    if not campaign.total_slots:
        return
    held = (
        session.query(func.count(Booking.id))
        .filter(Booking.campaign_id == campaign.id, Booking.status == BookingStatus.CONFIRMED)
        .scalar()
    )
    if held >= campaign.total_slots:
        raise SlotConflict(
            f"Campaign {campaign.id} is fully booked",
            code="CAMPAIGN_FULL",
            details={"campaign_id": campaign.id, "total_slots": campaign.total_slots},
        )


def _persist_booking(
    session: Session,
    user: User,
    req: BookingRequest,
    *,
    now: datetime,
    bundle_id: Optional[str] = None,
    bundle_size: int = 1,
    bundle_lead: bool = True,
) -> Tuple[Booking, Quote]:
    pricing_engine.validate_quantity(req.quantity)
    target = catalog.validate_booking_target(
        session, req.campaign_id, req.route_id, req.industry_id, req.subcategory_id, req.industry_description
    )
    key = exclusivity_key(
        session, req.campaign_id, req.route_id, req.industry_id, req.subcategory_id, industry=target.industry
    )
    occupant = find_occupant(session, key)
    if occupant is not None:
        raise SlotConflict(
            "This slot is already booked",
            details={"slot_key": key.as_string(), "campaign_id": req.campaign_id, "route_id": req.route_id,
                     "industry_id": req.industry_id},
        )
    _check_capacity(session, target.campaign)

    quote = pricing_engine.quote(
        session, req.campaign_id, req.quantity, user.id,
        bundle_size=bundle_size, bundle_lead=bundle_lead, loyalty_exempt=req.loyalty_exempt, now=now,
    )

    booking = Booking(
        user_id=user.id,
        campaign_id=req.campaign_id,
        route_id=req.route_id,
        industry_id=req.industry_id,
        subcategory_id=key.subcategory_id,
        industry_description=target.industry_description,
        slot_key=key.as_string(),
        bundle_id=bundle_id,
        business_name=req.business_name,
        contact_email=req.contact_email,
        contact_phone=req.contact_phone,
        quantity=req.quantity,
        base_price_before_discounts=quote.base_price,
        discount_amount=quote.discount_amount,
        amount=quote.final_price,
        payment_status=PaymentStatus.PENDING,
        status=BookingStatus.CONFIRMED,
        approval_status=ApprovalStatus.PENDING,
        artwork_status=ArtworkStatus.PENDING_UPLOAD,
        counts_toward_loyalty=quote.counts_toward_loyalty,
        loyalty_discount_applied=quote.uses_loyalty_discount,
        slot_counted=False,
        pending_since=now,
        created_at=now,
    )
    session.add(booking)
    session.flush()

    pricing_engine.record_rule_usage(session, quote, booking.id, user.id)
    if quote.uses_loyalty_discount:
        loyalty.reserve_discount(session, user.id, now)
    return booking, quote


def _commit_new_bookings(session: Session, bookings: Sequence[Booking]) -> None:
    try:
        session.commit()
    except IntegrityError as e:
        session.rollback()
        if _is_slot_key_violation(e):
            raise SlotConflict(
                "This slot was booked by another request",
                details={"slot_keys": [b.slot_key for b in bookings]},
            ) from e
        raise


def create_booking(session: Session, user: User, req: BookingRequest, *, now: Optional[datetime] = None) -> Booking:
    now = now or utc_now()
    try:
        booking, quote = _persist_booking(session, user, req, now=now)
    except IntegrityError as e:
        session.rollback()
        if _is_slot_key_violation(e):
            raise SlotConflict("This slot was booked by another request",
                               details={"campaign_id": req.campaign_id, "route_id": req.route_id,
                                        "industry_id": req.industry_id}) from e
        raise
    except BookingEngineError:
        session.rollback()
        raise
    _commit_new_bookings(session, [booking])
    session.refresh(booking)

    log_business_event(
        event_type="booking_created",
        details={
            "booking_id": booking.id,
            "slot_key": booking.slot_key,
            "quantity": booking.quantity,
            "amount": booking.amount,
            "applied_rules": pricing_engine.applied_rule_types(quote.applied_rules),
        },
        user_id=user.id,
    )
    return booking


def create_bundle(
    session: Session, user: User, items: Sequence[BookingRequest], *, now: Optional[datetime] = None
) -> List[Booking]:
    """Book slots in several campaigns in one transaction.

    The bulk discount is evaluated once, for the first item (the bundle lead).
    Any failure rolls back the whole bundle.
    """
    now = now or utc_now()
    max_size = int(BOOKING_SETTINGS["max_bundle_size"])
    if not items or len(items) > max_size:
        raise ValidationError(
            f"A bundle must contain between 1 and {max_size} bookings",
            details={"bundle_size": len(items), "max_bundle_size": max_size},
        )
    campaign_ids = [item.campaign_id for item in items]
    if len(set(campaign_ids)) != len(campaign_ids):
        raise ValidationError("Each booking in a bundle must be for a different campaign",
                              details={"campaign_ids": campaign_ids})

    bundle_id = uuid.uuid4().hex
    bookings: List[Booking] = []
    try:
        for idx, item in enumerate(items):
            booking, _ = _persist_booking(
                session, user, item, now=now,
                bundle_id=bundle_id, bundle_size=len(items), bundle_lead=(idx == 0),
            )
            bookings.append(booking)
    except IntegrityError as e:
        session.rollback()
        if _is_slot_key_violation(e):
            raise SlotConflict("A slot in this bundle was booked by another request",
                               details={"bundle_size": len(items)}) from e
        raise
    except BookingEngineError:
        session.rollback()
        raise
    _commit_new_bookings(session, bookings)
    for booking in bookings:
        session.refresh(booking)

    log_business_event(
        event_type="bundle_created",
        details={
            "bundle_id": bundle_id,
            "booking_ids": [b.id for b in bookings],
            "total_amount": sum(b.amount for b in bookings),
        },
        user_id=user.id,
    )
    return bookings


# ------------------------------- Payment ----------------------------------- #

def start_checkout(session: Session, booking_id: int, gateway: PaymentGateway) -> CheckoutSession:
    booking = get_booking(session, booking_id)
    state_machine.ensure_not_cancelled(booking)
    if booking.payment_status == PaymentStatus.PAID:
        raise StateConflict(f"Booking {booking_id} is already paid", code="BOOKING_ALREADY_PAID",
                            details={"booking_id": booking_id})
    try:
        checkout = gateway.create_checkout_session(
            booking.id, booking.amount, description=f"{booking.business_name} slot booking #{booking.id}"
        )
    except PaymentGatewayError as e:
        raise PaymentVerificationError(
            "Payment gateway could not create a checkout session",
            code="CHECKOUT_UNAVAILABLE",
            details={"booking_id": booking_id, "error": str(e)},
        ) from e
    booking.checkout_session_id = checkout.session_id
    session.commit()
    logger.info("Checkout session started", booking_id=booking_id, session_id=checkout.session_id)
    return checkout


def _replay_or_conflict(booking: Booking, session_id: str) -> PaymentConfirmation:
    if booking.status == BookingStatus.CANCELLED:
        raise StateConflict(f"Booking {booking.id} is cancelled; payment cannot be confirmed",
                            code="BOOKING_CANCELLED", details={"booking_id": booking.id})
    if booking.payment_status == PaymentStatus.PAID and booking.checkout_session_id == session_id:
        logger.info("Payment confirmation replay ignored", booking_id=booking.id, session_id=session_id)
        return PaymentConfirmation(booking=booking, replayed=True)
    raise StateConflict(
        f"Booking {booking.id} was already paid with a different checkout session",
        code="BOOKING_ALREADY_PAID",
        details={"booking_id": booking.id},
    )


def confirm_payment(
    session: Session,
    booking_id: int,
    session_id: str,
    gateway: PaymentGateway,
    *,
    now: Optional[datetime] = None,
) -> PaymentConfirmation:
    now = now or utc_now()
    booking = get_booking(session, booking_id)
    if booking.status == BookingStatus.CANCELLED or booking.payment_status == PaymentStatus.PAID:
        return _replay_or_conflict(booking, session_id)
    if booking.checkout_session_id and booking.checkout_session_id != session_id:
        raise PaymentVerificationError(
            "Checkout session does not belong to this booking",
            details={"booking_id": booking_id, "session_id": session_id},
        )

    try:
        verification = gateway.verify_session(session_id)
    except PaymentGatewayError as e:
        raise PaymentVerificationError(
            "Payment gateway could not verify the session",
            details={"booking_id": booking_id, "session_id": session_id, "error": str(e)},
        ) from e

    if verification.booking_id is not None and verification.booking_id != booking.id:
        raise PaymentVerificationError(
            "Checkout session was issued for a different booking",
            details={"booking_id": booking_id, "session_booking_id": verification.booking_id},
        )
    if verification.payment_status == "failed":
        # A retried checkout that fails again leaves the booking as it is
        if booking.payment_status != PaymentStatus.FAILED:
            state_machine.validate_payment_transition(booking, PaymentStatus.FAILED)
            booking.payment_status = PaymentStatus.FAILED
            session.commit()
        logger.warning("Payment failed at gateway", booking_id=booking_id, session_id=session_id)
        raise PaymentVerificationError("Payment failed", code="PAYMENT_FAILED",
                                       details={"booking_id": booking_id, "session_id": session_id})
    if not verification.is_paid:
        raise PaymentVerificationError(
            "Payment has not been completed",
            code="PAYMENT_INCOMPLETE",
            details={"booking_id": booking_id, "payment_status": verification.payment_status},
        )
    if verification.amount_total is not None and verification.amount_total < booking.amount:
        raise PaymentVerificationError(
            "Amount paid does not cover the booking",
            code="PAYMENT_AMOUNT_MISMATCH",
            details={"booking_id": booking_id, "amount": booking.amount, "amount_paid": verification.amount_total},
        )

    state_machine.validate_payment_transition(booking, PaymentStatus.PAID)
    amount_paid = verification.amount_total if verification.amount_total is not None else booking.amount
    user_id, quantity, counts = booking.user_id, booking.quantity, booking.counts_toward_loyalty

    result = session.execute(
        update(Booking)
        .where(
            Booking.id == booking_id,
            Booking.status == BookingStatus.CONFIRMED,
            Booking.payment_status != PaymentStatus.PAID,
        )
        .values(
            payment_status=PaymentStatus.PAID,
            checkout_session_id=session_id,
            payment_intent_id=verification.payment_intent_id,
            amount_paid=amount_paid,
            paid_at=now,
            slot_counted=True,
        )
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        session.rollback()
        session.refresh(booking)
        return _replay_or_conflict(booking, session_id)

    session.execute(
        update(Campaign)
        .where(Campaign.id == booking.campaign_id)
        .values(booked_slots=Campaign.booked_slots + 1, revenue=Campaign.revenue + amount_paid)
        .execution_options(synchronize_session=False)
    )
    earned = loyalty.credit_slots(session, user_id, quantity, now) if counts else 0
    try:
        session.commit()
    except IntegrityError as e:
        session.rollback()
        if "checkout_session_id" not in str(e.orig):
            raise
        raise PaymentVerificationError(
            "Checkout session is already attached to another booking",
            details={"booking_id": booking_id, "session_id": session_id},
        ) from e
    session.refresh(booking)

    log_business_event(
        event_type="payment_confirmed",
        details={
            "booking_id": booking_id,
            "session_id": session_id,
            "amount_paid": amount_paid,
            "loyalty_discounts_earned": earned,
        },
        user_id=user_id,
    )
    return PaymentConfirmation(booking=booking, replayed=False, loyalty_discounts_earned=earned)


# ------------------------------ Admin gates -------------------------------- #

def approve_booking(session: Session, booking_id: int, *, admin_id: Optional[int] = None) -> Booking:
    booking = get_booking(session, booking_id)
    state_machine.validate_approval_transition(booking, ApprovalStatus.APPROVED)
    booking.approval_status = ApprovalStatus.APPROVED
    booking.rejection_note = None
    session.commit()
    session.refresh(booking)
    log_business_event("booking_approved", {"booking_id": booking_id}, user_id=admin_id)
    return booking


def reject_booking(session: Session, booking_id: int, note: Optional[str] = None, *,
                   admin_id: Optional[int] = None) -> Booking:
    booking = get_booking(session, booking_id)
    state_machine.validate_approval_transition(booking, ApprovalStatus.REJECTED)
    booking.approval_status = ApprovalStatus.REJECTED
    booking.rejection_note = note
    session.commit()
    session.refresh(booking)
    log_business_event("booking_rejected", {"booking_id": booking_id, "note": note}, user_id=admin_id)
    return booking


# ------------------------------- Artwork ----------------------------------- #

def upload_artwork(session: Session, booking_id: int, file_name: str, content: bytes,
                   store: ArtifactStore) -> Booking:
    booking = get_booking(session, booking_id)
    state_machine.validate_artwork_transition(booking, ArtworkStatus.UNDER_REVIEW)
    file_path = store.store(file_name, content)
    booking.artwork_file_path = file_path
    booking.artwork_file_name = file_name
    booking.artwork_status = ArtworkStatus.UNDER_REVIEW
    booking.artwork_rejection_reason = None
    session.commit()
    session.refresh(booking)
    log_business_event("artwork_uploaded", {"booking_id": booking_id, "file_path": file_path},
                       user_id=booking.user_id)
    return booking


def review_artwork(session: Session, booking_id: int, approve: bool, reason: Optional[str] = None, *,
                   admin_id: Optional[int] = None) -> Booking:
    booking = get_booking(session, booking_id)
    target = ArtworkStatus.APPROVED if approve else ArtworkStatus.REJECTED
    state_machine.validate_artwork_transition(booking, target)
    if not approve and not (reason and reason.strip()):
        raise ValidationError("A rejection reason is required", details={"booking_id": booking_id})
    booking.artwork_status = target
    booking.artwork_rejection_reason = None if approve else reason
    session.commit()
    session.refresh(booking)
    log_business_event("artwork_reviewed", {"booking_id": booking_id, "approved": approve, "reason": reason},
                       user_id=admin_id)
    return booking


def get_artwork(session: Session, booking_id: int, store: ArtifactStore) -> bytes:
    booking = get_booking(session, booking_id)
    if not booking.artwork_file_path:
        raise NotFoundError(f"Booking {booking_id} has no artwork", details={"booking_id": booking_id})
    return store.retrieve(booking.artwork_file_path)


# ------------------------------ Cancellation ------------------------------- #

def _release_slot(
    session: Session,
    booking: Booking,
    *,
    now: datetime,
    refund_status: RefundStatus,
    refund_amount: int,
) -> None:
    """Mark ``booking`` cancelled and undo its counters, in the caller's transaction."""
    was_paid = booking.payment_status == PaymentStatus.PAID
    counted = booking.slot_counted
    paid_amount = booking.amount_paid or 0
    result = session.execute(
        update(Booking)
        .where(Booking.id == booking.id, Booking.status == BookingStatus.CONFIRMED)
        .values(
            status=BookingStatus.CANCELLED,
            cancellation_date=now,
            refund_status=refund_status,
            refund_amount=refund_amount,
        )
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        raise StateConflict(f"Booking {booking.id} is already cancelled", code="BOOKING_CANCELLED",
                            details={"booking_id": booking.id})
    if counted:
        session.execute(
            update(Campaign)
            .where(Campaign.id == booking.campaign_id)
            .values(
                booked_slots=case((Campaign.booked_slots > 0, Campaign.booked_slots - 1), else_=0),
                revenue=case((Campaign.revenue > paid_amount, Campaign.revenue - paid_amount), else_=0),
            )
            .execution_options(synchronize_session=False)
        )
    if booking.loyalty_discount_applied and not was_paid:
        loyalty.release_discount(session, booking.user_id, now, reserved_year=as_utc(booking.created_at).year)


def cancel_booking(
    session: Session,
    booking_id: int,
    *,
    now: Optional[datetime] = None,
    gateway: Optional[PaymentGateway] = None,
    dispatcher: Optional[NotificationDispatcher] = None,
    actor_id: Optional[int] = None,
) -> CancellationResult:
    now = now or utc_now()
    booking = get_booking(session, booking_id)
    state_machine.ensure_not_cancelled(booking)
    campaign = booking.campaign

    decision = evaluate_refund(
        print_deadline=campaign.print_deadline,
        payment_status=booking.payment_status,
        amount_paid=booking.amount_paid if booking.amount_paid is not None else booking.amount,
        now=now,
        campaign_id=campaign.id,
    )
    refund_status, refund_amount = decision.status, decision.amount
    slot_key = booking.slot_key
    payment_intent_id = booking.payment_intent_id

    # Only the request whose conditional cancel commits may talk to the gateway
    try:
        _release_slot(session, booking, now=now, refund_status=refund_status, refund_amount=refund_amount)
        session.commit()
    except BookingEngineError:
        session.rollback()
        raise
    session.refresh(booking)

    if decision.eligible and gateway is not None and payment_intent_id:
        try:
            gateway.refund(payment_intent_id, refund_amount)
            refund_status = RefundStatus.PROCESSED
        except PaymentGatewayError as e:
            # The cancellation stands; the refund is left for manual follow-up
            logger.error("Refund failed at gateway", booking_id=booking_id, amount=refund_amount, error=str(e))
            refund_status = RefundStatus.FAILED
        booking.refund_status = refund_status
        session.commit()
        session.refresh(booking)

    log_business_event(
        event_type="booking_cancelled",
        details={
            "booking_id": booking_id,
            "slot_key": slot_key,
            "refund_status": refund_status.value,
            "refund_amount": refund_amount,
            "days_until_deadline": decision.days_until_deadline,
        },
        user_id=actor_id or booking.user_id,
    )

    notified = waitlist.notify_slot_released(session, slot_key, dispatcher, now=now)
    return CancellationResult(
        booking=booking,
        refund_status=refund_status,
        refund_amount=refund_amount,
        days_until_deadline=decision.days_until_deadline,
        waitlist_notified=len(notified),
    )


def expire_pending_bookings(
    session: Session,
    *,
    now: Optional[datetime] = None,
    older_than_minutes: Optional[int] = None,
    dispatcher: Optional[NotificationDispatcher] = None,
) -> List[int]:
    """Release unpaid bookings whose checkout window has lapsed. Returns the expired ids."""
    now = now or utc_now()
    minutes = older_than_minutes if older_than_minutes is not None else int(BOOKING_SETTINGS["pending_expiry_minutes"])
    cutoff = now - timedelta(minutes=minutes)
    stale = (
        session.query(Booking)
        .filter(
            Booking.status == BookingStatus.CONFIRMED,
            Booking.payment_status.in_([PaymentStatus.PENDING, PaymentStatus.FAILED]),
            Booking.pending_since < cutoff,
        )
        .order_by(Booking.id)
        .all()
    )
    expired: List[Tuple[int, str]] = []
    for booking in stale:
        try:
            _release_slot(session, booking, now=now, refund_status=RefundStatus.NO_REFUND, refund_amount=0)
        except StateConflict:
            # Cancelled concurrently
            continue
        expired.append((booking.id, booking.slot_key))
    session.commit()

    for booking_id, slot_key in expired:
        logger.info("Pending booking expired", booking_id=booking_id, slot_key=slot_key)
        waitlist.notify_slot_released(session, slot_key, dispatcher, now=now)
    if expired:
        log_business_event("pending_bookings_expired", {"booking_ids": [b for b, _ in expired],
                                                         "older_than_minutes": minutes})
    return [b for b, _ in expired]


__all__ = [
    "BookingRequest",
    "PaymentConfirmation",
    "CancellationResult",
    "get_booking",
    "list_bookings",
    "create_booking",
    "create_bundle",
    "start_checkout",
    "confirm_payment",
    "approve_booking",
    "reject_booking",
    "upload_artwork",
    "review_artwork",
    "get_artwork",
    "cancel_booking",
    "expire_pending_bookings",
]
