"""Waitlist coordinator.

Rules:
* One ``active`` entry per (user, slot key); the partial unique index on
  ``waitlist_entries`` makes a concurrent duplicate join collapse onto the
  existing entry.
* Joining while the slot is free succeeds and reports ``slot_available``.
* When a slot is released every active entry for that exact key is flagged
  ``notified`` (first come, first served by ``created_at``), the change is
  committed, and only then handed to the notification dispatcher. Nobody
  is booked automatically.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional, Sequence

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from mailslot.config import NOTIFICATION_SETTINGS
from mailslot.exceptions import ValidationError
from mailslot.integrations.base import NotificationDispatcher
from mailslot.models.db import WaitlistEntry
from mailslot.models.db.enums import CampaignStatus, WaitlistStatus
from mailslot.services import catalog
from mailslot.services.slot_exclusivity import SlotKey, exclusivity_key, find_occupant
from mailslot.utils import get_logger, log_business_event, utc_now

logger = get_logger(__name__)


@dataclass(frozen=True)
class JoinResult:
    entry: WaitlistEntry
    created: bool
    slot_available: bool


def _active_entry(session: Session, user_id: int, slot_key: str) -> Optional[WaitlistEntry]:
    return (
        session.query(WaitlistEntry)
        .filter(
            WaitlistEntry.user_id == user_id,
            WaitlistEntry.slot_key == slot_key,
            WaitlistEntry.status == WaitlistStatus.ACTIVE,
        )
        .first()
    )


def join_waitlist(
    session: Session,
    user_id: int,
    campaign_id: int,
    route_id: int,
    industry_id: int,
    subcategory_id: Optional[int] = None,
    notes: Optional[str] = None,
    *,
    now: Optional[datetime] = None,
) -> JoinResult:
    now = now or utc_now()
    target = catalog.validate_booking_target(
        session, campaign_id, route_id, industry_id, subcategory_id, require_open=False
    )
    if target.campaign.status == CampaignStatus.CLOSED:
        raise ValidationError(
            f"Campaign {campaign_id} is closed", details={"campaign_id": campaign_id}
        )
    key = exclusivity_key(session, campaign_id, route_id, industry_id, subcategory_id, industry=target.industry)
    slot_key = key.as_string()
    slot_available = find_occupant(session, key) is None

    existing = _active_entry(session, user_id, slot_key)
    if existing is not None:
        logger.info("Waitlist join deduplicated", user_id=user_id, slot_key=slot_key, entry_id=existing.id)
        return JoinResult(entry=existing, created=False, slot_available=slot_available)

    entry = WaitlistEntry(
        user_id=user_id,
        campaign_id=campaign_id,
        route_id=route_id,
        industry_id=industry_id,
        subcategory_id=key.subcategory_id,
        slot_key=slot_key,
        notes=notes,
        status=WaitlistStatus.ACTIVE,
        created_at=now,
    )
    session.add(entry)
    try:
        session.commit()
    except IntegrityError:
        # Lost a race against an identical join
        session.rollback()
        existing = _active_entry(session, user_id, slot_key)
        if existing is None:
            raise
        return JoinResult(entry=existing, created=False, slot_available=slot_available)
    session.refresh(entry)

    if slot_available:
        logger.info("Waitlist joined for an available slot", user_id=user_id, slot_key=slot_key)
    log_business_event(
        event_type="waitlist_joined",
        details={"entry_id": entry.id, "slot_key": slot_key, "slot_available": slot_available},
        user_id=user_id,
    )
    return JoinResult(entry=entry, created=True, slot_available=slot_available)


def candidates_for_key(session: Session, slot_key: str) -> List[WaitlistEntry]:
    return (
        session.query(WaitlistEntry)
        .filter(WaitlistEntry.slot_key == slot_key, WaitlistEntry.status == WaitlistStatus.ACTIVE)
        .order_by(WaitlistEntry.created_at.asc(), WaitlistEntry.id.asc())
        .all()
    )


def _release_message(key: SlotKey) -> str:
    return (
        f"A slot you are waitlisted for is available again "
        f"(campaign {key.campaign_id}, route {key.route_id}, industry {key.industry_id}). "
        f"Book soon: slots are first come, first served."
    )


def notify_slot_released(
    session: Session,
    slot_key: str,
    dispatcher: Optional[NotificationDispatcher],
    *,
    now: Optional[datetime] = None,
    channels: Optional[Sequence[str]] = None,
) -> List[WaitlistEntry]:
    """Flag every active entry for ``slot_key`` as notified, then dispatch."""
    now = now or utc_now()
    entries = candidates_for_key(session, slot_key)
    if not entries:
        return []

    for entry in entries:
        entry.status = WaitlistStatus.NOTIFIED
        entry.notified_count = (entry.notified_count or 0) + 1
        entry.last_notified_at = now
    session.commit()

    recipients = [(e.id, e.user_id) for e in entries]
    log_business_event(
        event_type="waitlist_notified",
        details={"slot_key": slot_key, "entry_ids": [r[0] for r in recipients]},
    )

    if dispatcher is None:
        logger.warning("No notification dispatcher configured; waitlist flagged only", slot_key=slot_key)
        return entries

    message = _release_message(SlotKey.parse(slot_key))
    chosen = list(channels or NOTIFICATION_SETTINGS["waitlist_channels"])
    for entry_id, user_id in recipients:
        try:
            dispatcher.notify(user_id, message, chosen)
        except Exception as e:
            # Delivery is best-effort; the entry stays flagged for follow-up
            logger.error("Waitlist notification delivery failed", entry_id=entry_id, user_id=user_id,
                         error=str(e), exc_info=True)
    return entries


def expire_entries_for_campaign(session: Session, campaign_id: int) -> int:
    entries = (
        session.query(WaitlistEntry)
        .filter(WaitlistEntry.campaign_id == campaign_id, WaitlistEntry.status == WaitlistStatus.ACTIVE)
        .all()
    )
    for entry in entries:
        entry.status = WaitlistStatus.EXPIRED
    session.commit()
    if entries:
        logger.info("Waitlist entries expired", campaign_id=campaign_id, count=len(entries))
    return len(entries)


def list_entries(
    session: Session,
    *,
    user_id: Optional[int] = None,
    campaign_id: Optional[int] = None,
    status: Optional[WaitlistStatus] = None,
) -> List[WaitlistEntry]:
    query = session.query(WaitlistEntry)
    if user_id is not None:
        query = query.filter(WaitlistEntry.user_id == user_id)
    if campaign_id is not None:
        query = query.filter(WaitlistEntry.campaign_id == campaign_id)
    if status is not None:
        query = query.filter(WaitlistEntry.status == status)
    return query.order_by(WaitlistEntry.created_at.asc(), WaitlistEntry.id.asc()).all()


__all__ = [
    "JoinResult",
    "join_waitlist",
    "candidates_for_key",
    "notify_slot_released",
    "expire_entries_for_campaign",
    "list_entries",
]
