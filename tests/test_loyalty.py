from datetime import datetime, timezone

from mailslot.models.db import LoyaltyCounter
from mailslot.services import booking_lifecycle, loyalty, pricing_engine
from mailslot.services.booking_lifecycle import BookingRequest

JAN_2026 = datetime(2026, 1, 5, 9, 0, tzinfo=timezone.utc)


def _book_and_pay(session, user, campaign, route, industry, gateway, **kwargs):
    req = BookingRequest(campaign_id=campaign.id, route_id=route.id, industry_id=industry.id,
                         business_name="Loyal Co", contact_email="books@loyal-co.com", **kwargs)
    booking = booking_lifecycle.create_booking(session, user, req)
    checkout = booking_lifecycle.start_checkout(session, booking.id, gateway)
    gateway.complete_session(checkout.session_id)
    return booking_lifecycle.confirm_payment(session, booking.id, checkout.session_id, gateway)


def test_third_regular_slot_earns_discount(db_session, customer, route_factory, industry_factory,
                                           campaign_factory, gateway):
    campaign = campaign_factory()
    industry = industry_factory()
    earned = [
        _book_and_pay(db_session, customer, campaign, route_factory(), industry, gateway).loyalty_discounts_earned
        for _ in range(3)
    ]
    assert earned == [0, 0, 1]

    counter = loyalty.find_counter(db_session, customer.id)
    assert counter.slots_earned_this_year == 3
    assert counter.discounts_available == 1

    quote = pricing_engine.quote(db_session, campaign.id, 1, customer.id)
    assert quote.uses_loyalty_discount is True
    assert quote.total_price == 45000


def test_discounted_booking_reserves_and_releases(db_session, customer, route_factory, industry_factory,
                                                  campaign_factory, gateway):
    campaign = campaign_factory()
    industry = industry_factory()
    db_session.add(LoyaltyCounter(user_id=customer.id, slots_earned_this_year=3, discounts_available=1,
                                  year_reset=datetime.now(timezone.utc).year))
    db_session.commit()

    req = BookingRequest(campaign_id=campaign.id, route_id=route_factory().id, industry_id=industry.id,
                         business_name="Loyal Co", contact_email="books@loyal-co.com")
    booking = booking_lifecycle.create_booking(db_session, customer, req)
    assert booking.loyalty_discount_applied is True
    assert booking.counts_toward_loyalty is False
    assert booking.amount == 45000
    assert loyalty.find_counter(db_session, customer.id).discounts_available == 0

    booking_lifecycle.cancel_booking(db_session, booking.id)
    assert loyalty.find_counter(db_session, customer.id).discounts_available == 1


def test_loyalty_exempt_booking_keeps_discount(db_session, customer, route_factory, industry_factory,
                                               campaign_factory, gateway):
    campaign = campaign_factory()
    industry = industry_factory()
    db_session.add(LoyaltyCounter(user_id=customer.id, slots_earned_this_year=3, discounts_available=1,
                                  year_reset=datetime.now(timezone.utc).year))
    db_session.commit()

    result = _book_and_pay(db_session, customer, campaign, route_factory(), industry, gateway,
                           loyalty_exempt=True)
    assert result.booking.amount == 60000
    counter = loyalty.find_counter(db_session, customer.id)
    assert counter.discounts_available == 1
    assert counter.slots_earned_this_year == 4


def test_multi_slot_booking_counts_each_slot(db_session, customer):
    assert loyalty.credit_slots(db_session, customer.id, 4, JAN_2026) == 1
    assert loyalty.credit_slots(db_session, customer.id, 2, JAN_2026) == 1
    db_session.commit()
    counter = loyalty.find_counter(db_session, customer.id)
    assert counter.slots_earned_this_year == 6
    assert counter.discounts_available == 2
    assert loyalty.effective_state(counter, JAN_2026).slots_until_next_discount == 3


def test_new_year_resets_counter(db_session, customer):
    db_session.add(LoyaltyCounter(user_id=customer.id, slots_earned_this_year=5, discounts_available=2,
                                  year_reset=2025))
    db_session.commit()
    counter = loyalty.find_counter(db_session, customer.id)

    state = loyalty.effective_state(counter, JAN_2026)
    assert (state.year, state.slots_earned_this_year, state.discounts_available) == (2026, 0, 0)
    # Reads do not write
    assert counter.year_reset == 2025

    assert loyalty.credit_slots(db_session, customer.id, 1, JAN_2026) == 0
    db_session.commit()
    counter = loyalty.find_counter(db_session, customer.id)
    assert (counter.year_reset, counter.slots_earned_this_year, counter.discounts_available) == (2026, 1, 0)


def test_discount_reserved_last_year_is_not_restored(db_session, customer):
    db_session.add(LoyaltyCounter(user_id=customer.id, slots_earned_this_year=3, discounts_available=1,
                                  year_reset=2025))
    db_session.commit()
    dec_2025 = datetime(2025, 12, 20, tzinfo=timezone.utc)
    loyalty.reserve_discount(db_session, customer.id, dec_2025)
    db_session.commit()

    assert loyalty.release_discount(db_session, customer.id, JAN_2026, reserved_year=2025) is False
    db_session.commit()
    assert loyalty.find_counter(db_session, customer.id).discounts_available == 0
