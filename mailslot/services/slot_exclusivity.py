"""Slot exclusivity index.

A slot is identified by (campaign, route, industry[, subcategory]). The
subcategory only narrows the key for regular industries: every booking in
the ``Other`` industry shares one key per campaign/route regardless of its
free-text description.

A slot is occupied by any booking with ``status = confirmed``, paid or not.
Cancelling frees it immediately. The partial unique index on
``bookings.slot_key`` is authoritative; ``is_available`` is a pre-check.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from sqlalchemy.orm import Session

from mailslot.models.db import Booking, Industry
from mailslot.models.db.enums import BookingStatus
from mailslot.services.catalog import get_industry, is_other_industry

_NO_SUBCATEGORY = "-"


@dataclass(frozen=True)
class SlotKey:
    campaign_id: int
    route_id: int
    industry_id: int
    subcategory_id: Optional[int] = None

    def as_string(self) -> str:
        sub = _NO_SUBCATEGORY if self.subcategory_id is None else str(self.subcategory_id)
        return f"{self.campaign_id}:{self.route_id}:{self.industry_id}:{sub}"

    @classmethod
    def parse(cls, raw: str) -> "SlotKey":
        campaign_id, route_id, industry_id, sub = raw.split(":")
        return cls(
            campaign_id=int(campaign_id),
            route_id=int(route_id),
            industry_id=int(industry_id),
            subcategory_id=None if sub == _NO_SUBCATEGORY else int(sub),
        )


def exclusivity_key(
    session: Session,
    campaign_id: int,
    route_id: int,
    industry_id: int,
    subcategory_id: Optional[int] = None,
    *,
    industry: Optional[Industry] = None,
) -> SlotKey:
    industry = industry or get_industry(session, industry_id)
    if is_other_industry(industry):
        subcategory_id = None
    return SlotKey(campaign_id, route_id, industry_id, subcategory_id)


def find_occupant(session: Session, key: SlotKey) -> Optional[Booking]:
    return (
        session.query(Booking)
        .filter(Booking.slot_key == key.as_string(), Booking.status == BookingStatus.CONFIRMED)
        .first()
    )


def is_available(
    session: Session,
    campaign_id: int,
    route_id: int,
    industry_id: int,
    subcategory_id: Optional[int] = None,
) -> bool:
    key = exclusivity_key(session, campaign_id, route_id, industry_id, subcategory_id)
    return find_occupant(session, key) is None


__all__ = ["SlotKey", "exclusivity_key", "find_occupant", "is_available"]
