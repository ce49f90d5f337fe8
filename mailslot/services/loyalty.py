"""Loyalty ledger.

Rules:
* Each regular-price slot paid for in a calendar year counts toward loyalty.
  Every ``slot_threshold`` slots earn one discount (``discounts_available``).
* Counters belong to a calendar year. A counter whose ``year_reset`` is older
  than the current year is treated as zero by reads (``effective_state``) and
  written back as zero before any mutation (``_ensure_current_year``).
* A loyalty discount is reserved when a booking is created with it and
  released again if that booking is cancelled or expires unpaid.

Counter rows are versioned; a concurrent writer losing the race surfaces as
``StateConflict``.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from mailslot.config import LOYALTY_SETTINGS
from mailslot.exceptions import StateConflict
from mailslot.models.db import LoyaltyCounter
from mailslot.utils import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class LoyaltyState:
    year: int
    slots_earned_this_year: int
    discounts_available: int

    @property
    def slots_until_next_discount(self) -> int:
        threshold = int(LOYALTY_SETTINGS["slot_threshold"])
        return threshold - (self.slots_earned_this_year % threshold)


def effective_state(counter: Optional[LoyaltyCounter], now: datetime) -> LoyaltyState:
    """Counter values as of ``now`` without writing anything."""
    if counter is None or counter.year_reset < now.year:
        return LoyaltyState(year=now.year, slots_earned_this_year=0, discounts_available=0)
    return LoyaltyState(
        year=counter.year_reset,
        slots_earned_this_year=counter.slots_earned_this_year,
        discounts_available=counter.discounts_available,
    )


def find_counter(session: Session, user_id: int) -> Optional[LoyaltyCounter]:
    return session.query(LoyaltyCounter).filter(LoyaltyCounter.user_id == user_id).first()


def _flush(session: Session, user_id: int) -> None:
    try:
        session.flush()
    except StaleDataError as e:
        logger.warning("Loyalty counter update lost a concurrent race", user_id=user_id, error=str(e))
        raise StateConflict(
            "Loyalty counter was modified concurrently; retry the request",
            code="LOYALTY_COUNTER_STALE",
            details={"user_id": user_id},
        ) from e


def _ensure_current_year(counter: LoyaltyCounter, now: datetime) -> None:
    if counter.year_reset < now.year:
        logger.info(
            "Loyalty counter reset for new year",
            user_id=counter.user_id,
            previous_year=counter.year_reset,
            year=now.year,
            expired_discounts=counter.discounts_available,
        )
        counter.slots_earned_this_year = 0
        counter.discounts_available = 0
        counter.year_reset = now.year


def get_or_create_counter(session: Session, user_id: int, now: datetime) -> LoyaltyCounter:
    counter = find_counter(session, user_id)
    if counter is None:
        counter = LoyaltyCounter(user_id=user_id, slots_earned_this_year=0, discounts_available=0,
                                 year_reset=now.year)
        session.add(counter)
    else:
        _ensure_current_year(counter, now)
    _flush(session, user_id)
    return counter


def reserve_discount(session: Session, user_id: int, now: datetime) -> LoyaltyCounter:
    """Take one available discount for a booking being created."""
    counter = get_or_create_counter(session, user_id, now)
    if counter.discounts_available <= 0:
        raise StateConflict(
            "No loyalty discount available",
            code="LOYALTY_DISCOUNT_UNAVAILABLE",
            details={"user_id": user_id},
        )
    counter.discounts_available -= 1
    _flush(session, user_id)
    return counter


def release_discount(session: Session, user_id: int, now: datetime, *, reserved_year: int) -> bool:
    """Give back a reserved discount. Discounts reserved in an earlier year are not restored."""
    counter = get_or_create_counter(session, user_id, now)
    if reserved_year != counter.year_reset:
        logger.info("Loyalty discount from a previous year not restored", user_id=user_id,
                    reserved_year=reserved_year)
        return False
    counter.discounts_available += 1
    _flush(session, user_id)
    return True


def credit_slots(session: Session, user_id: int, quantity: int, now: datetime) -> int:
    """Count paid regular-price slots; returns the number of discounts newly earned."""
    threshold = int(LOYALTY_SETTINGS["slot_threshold"])
    counter = get_or_create_counter(session, user_id, now)
    before = counter.slots_earned_this_year
    after = before + quantity
    earned = after // threshold - before // threshold
    counter.slots_earned_this_year = after
    counter.discounts_available += earned
    _flush(session, user_id)
    if earned:
        logger.info("Loyalty discount earned", user_id=user_id, slots_earned_this_year=after,
                    discounts_earned=earned)
    return earned


__all__ = [
    "LoyaltyState",
    "effective_state",
    "find_counter",
    "get_or_create_counter",
    "reserve_discount",
    "release_discount",
    "credit_slots",
]
