from datetime import timedelta

import pytest

from mailslot.exceptions import SlotConflict, ValidationError
from mailslot.models.db import Booking, LoyaltyCounter
from mailslot.models.db.enums import BookingStatus, RefundStatus, RuleStatus, RuleType, WaitlistStatus
from mailslot.services import booking_lifecycle, loyalty, waitlist
from mailslot.services.booking_lifecycle import BookingRequest
from mailslot.utils import utc_now


def _req(campaign, route, industry, **kwargs):
    return BookingRequest(campaign_id=campaign.id, route_id=route.id, industry_id=industry.id,
                          business_name="Bundle Bakery", contact_email="hello@bundle-bakery.com", **kwargs)


def test_stale_pending_booking_is_released(db_session, customer, user_factory, slot, dispatcher):
    campaign, route, industry = slot
    stale = booking_lifecycle.create_booking(db_session, customer, _req(campaign, route, industry),
                                             now=utc_now() - timedelta(minutes=20))
    watcher = user_factory()
    waitlist.join_waitlist(db_session, watcher.id, campaign.id, route.id, industry.id)

    expired = booking_lifecycle.expire_pending_bookings(db_session, dispatcher=dispatcher)
    assert stale.id in expired

    db_session.refresh(stale)
    assert stale.status == BookingStatus.CANCELLED
    assert stale.refund_status == RefundStatus.NO_REFUND
    assert watcher.id in [n.user_id for n in dispatcher.outbox]
    assert waitlist.list_entries(db_session, user_id=watcher.id)[0].status == WaitlistStatus.NOTIFIED


def test_recent_and_paid_bookings_survive_expiry(db_session, user_factory, route_factory, industry_factory,
                                                 campaign_factory, gateway):
    campaign = campaign_factory()
    industry = industry_factory()
    recent = booking_lifecycle.create_booking(db_session, user_factory(),
                                              _req(campaign, route_factory(), industry))
    old_paid = booking_lifecycle.create_booking(db_session, user_factory(),
                                                _req(campaign, route_factory(), industry),
                                                now=utc_now() - timedelta(hours=2))
    checkout = booking_lifecycle.start_checkout(db_session, old_paid.id, gateway)
    gateway.complete_session(checkout.session_id)
    booking_lifecycle.confirm_payment(db_session, old_paid.id, checkout.session_id, gateway)

    expired = booking_lifecycle.expire_pending_bookings(db_session)
    assert recent.id not in expired
    assert old_paid.id not in expired
    db_session.refresh(recent)
    assert recent.status == BookingStatus.CONFIRMED


def test_expiry_returns_reserved_loyalty_discount(db_session, customer, slot):
    campaign, route, industry = slot
    db_session.add(LoyaltyCounter(user_id=customer.id, slots_earned_this_year=3, discounts_available=1,
                                  year_reset=utc_now().year))
    db_session.commit()
    booking = booking_lifecycle.create_booking(db_session, customer, _req(campaign, route, industry),
                                               now=utc_now() - timedelta(minutes=30))
    assert booking.loyalty_discount_applied is True

    assert booking.id in booking_lifecycle.expire_pending_bookings(db_session)
    assert loyalty.find_counter(db_session, customer.id).discounts_available == 1


def test_bundle_of_three_discounts_the_lead_only(db_session, customer, route_factory, industry_factory,
                                                 campaign_factory):
    route = route_factory()
    industry = industry_factory()
    campaigns = [campaign_factory() for _ in range(3)]

    bookings = booking_lifecycle.create_bundle(db_session, customer, [_req(c, route, industry) for c in campaigns])
    assert len({b.bundle_id for b in bookings}) == 1
    assert [b.amount for b in bookings] == [30000, 60000, 60000]
    assert [b.counts_toward_loyalty for b in bookings] == [False, True, True]


def test_deactivated_bulk_rule_turns_off_builtin_discount(db_session, customer, route_factory, industry_factory,
                                                          campaign_factory, rule_factory):
    route = route_factory()
    industry = industry_factory()
    campaigns = [campaign_factory() for _ in range(3)]
    rule = rule_factory(RuleType.BULK_DISCOUNT, 20000, campaign_id=campaigns[0].id, priority=1)
    rule.status = RuleStatus.INACTIVE
    db_session.commit()

    bookings = booking_lifecycle.create_bundle(db_session, customer, [_req(c, route, industry) for c in campaigns])
    assert [b.amount for b in bookings] == [60000, 60000, 60000]


def test_bundle_of_two_gets_no_bulk_discount(db_session, customer, route_factory, industry_factory,
                                             campaign_factory):
    route = route_factory()
    industry = industry_factory()
    bookings = booking_lifecycle.create_bundle(
        db_session, customer, [_req(campaign_factory(), route, industry) for _ in range(2)]
    )
    assert [b.amount for b in bookings] == [60000, 60000]


def test_bundle_is_all_or_nothing(db_session, customer, user_factory, route_factory, industry_factory,
                                  campaign_factory):
    route = route_factory()
    industry = industry_factory()
    campaigns = [campaign_factory() for _ in range(3)]
    booking_lifecycle.create_booking(db_session, user_factory(), _req(campaigns[2], route, industry))

    with pytest.raises(SlotConflict):
        booking_lifecycle.create_bundle(db_session, customer, [_req(c, route, industry) for c in campaigns])
    assert db_session.query(Booking).filter(Booking.user_id == customer.id).count() == 0


def test_bundle_rejects_repeated_campaign(db_session, customer, route_factory, industry_factory,
                                          campaign_factory):
    campaign = campaign_factory()
    industry = industry_factory()
    with pytest.raises(ValidationError):
        booking_lifecycle.create_bundle(
            db_session, customer,
            [_req(campaign, route_factory(), industry), _req(campaign, route_factory(), industry)],
        )
