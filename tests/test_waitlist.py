from datetime import timedelta

import pytest

from mailslot.exceptions import ValidationError
from mailslot.integrations.base import NotificationDispatcher
from mailslot.models.db.enums import CampaignStatus, WaitlistStatus
from mailslot.services import booking_lifecycle, waitlist
from mailslot.services.booking_lifecycle import BookingRequest
from mailslot.utils import utc_now


class ExplodingDispatcher(NotificationDispatcher):
    def __init__(self):
        self.attempts = []

    def notify(self, user_id, message, channels):
        self.attempts.append(user_id)
        raise RuntimeError("smtp unavailable")


def _book(session, user, campaign, route, industry, **kwargs):
    req = BookingRequest(campaign_id=campaign.id, route_id=route.id, industry_id=industry.id,
                         business_name="Holder", contact_email="holder@slot-holder.com", **kwargs)
    return booking_lifecycle.create_booking(session, user, req)


def test_join_free_slot_reports_availability(db_session, customer, slot):
    campaign, route, industry = slot
    result = waitlist.join_waitlist(db_session, customer.id, campaign.id, route.id, industry.id)
    assert result.created is True
    assert result.slot_available is True
    assert result.entry.status == WaitlistStatus.ACTIVE


def test_duplicate_join_returns_existing_entry(db_session, customer, user_factory, slot):
    campaign, route, industry = slot
    _book(db_session, user_factory(), campaign, route, industry)
    first = waitlist.join_waitlist(db_session, customer.id, campaign.id, route.id, industry.id, notes="call me")
    second = waitlist.join_waitlist(db_session, customer.id, campaign.id, route.id, industry.id)
    assert first.slot_available is False
    assert second.created is False
    assert second.entry.id == first.entry.id
    assert len(waitlist.list_entries(db_session, user_id=customer.id, campaign_id=campaign.id)) == 1


def test_release_notifies_in_join_order(db_session, user_factory, slot, dispatcher):
    campaign, route, industry = slot
    holder, early, late = user_factory(), user_factory(), user_factory()
    booking = _book(db_session, holder, campaign, route, industry)
    base = utc_now()
    # Joined out of call order on purpose; created_at decides
    waitlist.join_waitlist(db_session, late.id, campaign.id, route.id, industry.id, now=base + timedelta(minutes=5))
    waitlist.join_waitlist(db_session, early.id, campaign.id, route.id, industry.id, now=base)

    result = booking_lifecycle.cancel_booking(db_session, booking.id, dispatcher=dispatcher)
    assert result.waitlist_notified == 2
    assert [n.user_id for n in dispatcher.outbox] == [early.id, late.id]

    entries = waitlist.list_entries(db_session, campaign_id=campaign.id)
    assert {e.status for e in entries} == {WaitlistStatus.NOTIFIED}
    assert all(e.notified_count == 1 and e.last_notified_at is not None for e in entries)


def test_release_only_notifies_matching_subcategory(db_session, user_factory, route_factory, industry_factory,
                                                     campaign_factory, dispatcher):
    route = route_factory()
    industry = industry_factory(subcategories=("Dentist", "Orthodontist"))
    campaign = campaign_factory()
    dentist, ortho = sorted(industry.subcategories, key=lambda s: s.name)
    booking = _book(db_session, user_factory(), campaign, route, industry, subcategory_id=dentist.id)
    watcher_other = user_factory()
    waitlist.join_waitlist(db_session, watcher_other.id, campaign.id, route.id, industry.id, ortho.id)

    result = booking_lifecycle.cancel_booking(db_session, booking.id, dispatcher=dispatcher)
    assert result.waitlist_notified == 0
    assert dispatcher.outbox == []
    entry = waitlist.list_entries(db_session, user_id=watcher_other.id)[0]
    assert entry.status == WaitlistStatus.ACTIVE


def test_join_needs_subcategory_when_industry_has_them(db_session, user_factory, route_factory, industry_factory,
                                                       campaign_factory, dispatcher):
    route = route_factory()
    industry = industry_factory(subcategories=("Dentist", "Orthodontist"))
    campaign = campaign_factory()
    dentist, _ = sorted(industry.subcategories, key=lambda s: s.name)
    booking = _book(db_session, user_factory(), campaign, route, industry, subcategory_id=dentist.id)
    watcher = user_factory()

    with pytest.raises(ValidationError):
        waitlist.join_waitlist(db_session, watcher.id, campaign.id, route.id, industry.id)

    joined = waitlist.join_waitlist(db_session, watcher.id, campaign.id, route.id, industry.id, dentist.id)
    assert joined.slot_available is False
    assert joined.entry.slot_key == booking.slot_key

    result = booking_lifecycle.cancel_booking(db_session, booking.id, dispatcher=dispatcher)
    assert result.waitlist_notified == 1
    assert [n.user_id for n in dispatcher.outbox] == [watcher.id]


def test_delivery_failure_keeps_entry_flagged(db_session, user_factory, slot):
    campaign, route, industry = slot
    booking = _book(db_session, user_factory(), campaign, route, industry)
    watcher = user_factory()
    waitlist.join_waitlist(db_session, watcher.id, campaign.id, route.id, industry.id)
    exploding = ExplodingDispatcher()

    result = booking_lifecycle.cancel_booking(db_session, booking.id, dispatcher=exploding)
    assert result.waitlist_notified == 1
    assert exploding.attempts == [watcher.id]
    assert waitlist.list_entries(db_session, user_id=watcher.id)[0].status == WaitlistStatus.NOTIFIED


def test_closed_campaign(db_session, customer, user_factory, slot):
    campaign, route, industry = slot
    waitlist.join_waitlist(db_session, customer.id, campaign.id, route.id, industry.id)
    campaign.status = CampaignStatus.CLOSED
    db_session.commit()

    assert waitlist.expire_entries_for_campaign(db_session, campaign.id) == 1
    assert waitlist.list_entries(db_session, user_id=customer.id)[0].status == WaitlistStatus.EXPIRED
    with pytest.raises(ValidationError):
        waitlist.join_waitlist(db_session, user_factory().id, campaign.id, route.id, industry.id)
