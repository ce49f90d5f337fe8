"""HTTP-level tests: auth, error envelope and the booking flow through the routers."""
import secrets
from datetime import datetime, timedelta, timezone

from mailslot.models.db import Booking
from mailslot.models.db.enums import RuleType, UserRole, WaitlistStatus
from mailslot.services import waitlist


def _booking_payload(campaign, route, industry, **extra):
    payload = {
        "campaign_id": campaign.id,
        "route_id": route.id,
        "industry_id": industry.id,
        "business_name": "Harbor Dental",
        "contact_email": "front-desk@harbordental.com",
    }
    payload.update(extra)
    return payload


def _paid_booking(client, headers, gateway, payload):
    booking_id = client.post("/api/v1/bookings/", json=payload, headers=headers).json()["booking_id"]
    session_id = client.post(f"/api/v1/bookings/{booking_id}/checkout", headers=headers).json()["session_id"]
    gateway.complete_session(session_id)
    r = client.post(f"/api/v1/bookings/{booking_id}/confirm-payment", json={"session_id": session_id},
                    headers=headers)
    assert r.status_code == 200, r.text
    return booking_id


def test_health(client):
    r = client.get("/health")
    assert r.status_code == 200
    assert r.json()["checks"]["database"] == "healthy"


def test_register_and_me(client):
    email = f"owner_{secrets.token_hex(4)}@corner-cafe.com"
    r = client.post("/api/v1/users/", json={"name": "Corner Cafe", "email": email, "business_name": "Corner Cafe"})
    assert r.status_code == 201, r.text
    body = r.json()
    assert body["role"] == UserRole.CUSTOMER.value
    assert body["api_key"]

    me = client.get("/api/v1/users/me", headers={"Authorization": f"Bearer {body['api_key']}"})
    assert me.status_code == 200
    assert me.json()["email"] == email

    dup = client.post("/api/v1/users/", json={"name": "Again", "email": email})
    assert dup.status_code == 409
    assert dup.json()["success"] is False


def test_auth_required(client):
    assert client.get("/api/v1/users/me").status_code in (401, 403)
    r = client.get("/api/v1/users/me", headers={"Authorization": "Bearer not-a-real-key"})
    assert r.status_code == 401


def test_catalog_writes_are_admin_only(client, auth, admin, customer):
    payload = {"zip_code": f"Z{secrets.token_hex(3)}", "name": "North Loop"}
    assert client.post("/api/v1/catalog/routes", json=payload, headers=auth(customer)).status_code == 403

    r = client.post("/api/v1/catalog/routes", json=payload, headers=auth(admin))
    assert r.status_code == 201, r.text
    route_id = r.json()["id"]

    industry = client.post("/api/v1/catalog/industries",
                           json={"name": f"Florist {secrets.token_hex(3)}", "subcategories": ["Weddings"]},
                           headers=auth(admin))
    assert industry.status_code == 201, industry.text
    assert [s["name"] for s in industry.json()["subcategories"]] == ["Weddings"]

    deadline = datetime.now(timezone.utc) + timedelta(days=20)
    campaign = client.post(
        "/api/v1/catalog/campaigns",
        json={
            "name": "Autumn Mailer",
            "mail_date": (deadline + timedelta(days=10)).date().isoformat(),
            "print_deadline": deadline.isoformat(),
            "status": "booking_open",
            "route_ids": [route_id],
        },
        headers=auth(admin),
    )
    assert campaign.status_code == 201, campaign.text
    assert campaign.json()["route_ids"] == [route_id]


def test_campaign_deadline_after_mail_date_rejected(client, auth, admin):
    r = client.post(
        "/api/v1/catalog/campaigns",
        json={"name": "Backwards", "mail_date": "2026-03-01", "print_deadline": "2026-03-10T12:00:00Z"},
        headers=auth(admin),
    )
    assert r.status_code == 422
    assert r.json()["code"] == "VALIDATION_ERROR"


def test_booking_conflict_envelope(client, auth, customer, user_factory, slot):
    campaign, route, industry = slot
    params = {"campaign_id": campaign.id, "route_id": route.id, "industry_id": industry.id}
    assert client.get("/api/v1/availability/", params=params, headers=auth(customer)).json()["available"] is True

    r = client.post("/api/v1/bookings/", json=_booking_payload(campaign, route, industry), headers=auth(customer))
    assert r.status_code == 201, r.text
    assert r.json()["booking"]["amount"] == 60000

    assert client.get("/api/v1/availability/", params=params, headers=auth(customer)).json()["available"] is False

    rival = user_factory()
    r = client.post("/api/v1/bookings/", json=_booking_payload(campaign, route, industry), headers=auth(rival))
    assert r.status_code == 409
    body = r.json()
    assert body["success"] is False
    assert body["code"] == "SLOT_CONFLICT"
    assert body["details"]["campaign_id"] == campaign.id


def test_quantity_above_limit_rejected(client, auth, customer, slot):
    campaign, route, industry = slot
    r = client.post("/api/v1/bookings/", json=_booking_payload(campaign, route, industry, quantity=9),
                    headers=auth(customer))
    assert r.status_code == 422


def test_quote_with_campaign_bulk_rule(client, auth, admin, customer, campaign_factory):
    campaign = campaign_factory()
    rule = client.post(
        "/api/v1/pricing/rules",
        json={"rule_type": "bulk_discount", "value": 30000, "priority": 1, "campaign_id": campaign.id},
        headers=auth(admin),
    )
    assert rule.status_code == 201, rule.text

    r = client.get("/api/v1/pricing/quote", params={"campaign_id": campaign.id, "quantity": 3, "bundle_size": 3},
                   headers=auth(customer))
    assert r.status_code == 200, r.text
    body = r.json()
    assert body["breakdown"] == {"base_price": 160000, "discount_amount": 30000, "final_price": 130000}
    assert body["total_price"] == 130000
    assert [a["rule_type"] for a in body["applied_rules"]] == ["bulk_discount"]


def test_rule_update_validation(client, auth, admin, campaign_factory, rule_factory):
    rule = rule_factory(RuleType.MANUAL_OVERRIDE, 10000, campaign_id=campaign_factory().id)
    r = client.patch(f"/api/v1/pricing/rules/{rule.id}", json={"additional_value": 5000}, headers=auth(admin))
    assert r.status_code == 422
    r = client.patch(f"/api/v1/pricing/rules/{rule.id}", json={"priority": 2}, headers=auth(admin))
    assert r.status_code == 200
    assert r.json()["priority"] == 2


def test_pay_replay_and_cancel(client, auth, customer, slot, gateway, db_session):
    campaign, route, industry = slot
    headers = auth(customer)
    booking_id = client.post("/api/v1/bookings/", json=_booking_payload(campaign, route, industry),
                             headers=headers).json()["booking_id"]
    checkout = client.post(f"/api/v1/bookings/{booking_id}/checkout", headers=headers)
    assert checkout.status_code == 200
    assert checkout.json()["amount"] == 60000
    session_id = checkout.json()["session_id"]
    gateway.complete_session(session_id)

    first = client.post(f"/api/v1/bookings/{booking_id}/confirm-payment", json={"session_id": session_id},
                        headers=headers)
    second = client.post(f"/api/v1/bookings/{booking_id}/confirm-payment", json={"session_id": session_id},
                         headers=headers)
    assert (first.json()["replayed"], second.json()["replayed"]) == (False, True)
    assert second.json()["booking"]["payment_status"] == "paid"
    assert client.get(f"/api/v1/catalog/campaigns/{campaign.id}", headers=headers).json()["booked_slots"] == 1

    r = client.post(f"/api/v1/bookings/{booking_id}/cancel", headers=headers)
    assert r.status_code == 200, r.text
    assert r.json()["refund"]["status"] == "processed"
    assert r.json()["refund"]["amount"] == 60000

    r = client.post(f"/api/v1/bookings/{booking_id}/cancel", headers=headers)
    assert r.status_code == 409
    assert r.json()["code"] == "BOOKING_CANCELLED"


def test_bookings_are_private(client, auth, customer, user_factory, slot):
    campaign, route, industry = slot
    booking_id = client.post("/api/v1/bookings/", json=_booking_payload(campaign, route, industry),
                             headers=auth(customer)).json()["booking_id"]
    stranger = user_factory()
    assert client.get(f"/api/v1/bookings/{booking_id}", headers=auth(stranger)).status_code == 403
    assert client.post(f"/api/v1/bookings/{booking_id}/cancel", headers=auth(stranger)).status_code == 403

    mine = client.get("/api/v1/bookings/", headers=auth(stranger)).json()
    assert booking_id not in [b["id"] for b in mine]


def test_waitlist_join_is_idempotent(client, auth, customer, slot):
    campaign, route, industry = slot
    payload = {"campaign_id": campaign.id, "route_id": route.id, "industry_id": industry.id}
    first = client.post("/api/v1/waitlist/", json=payload, headers=auth(customer))
    second = client.post("/api/v1/waitlist/", json=payload, headers=auth(customer))
    assert (first.status_code, second.status_code) == (201, 200)
    assert first.json()["entry_id"] == second.json()["entry_id"]
    assert second.json()["created"] is False


def test_closing_campaign_expires_waitlist(client, auth, admin, customer, slot, db_session):
    campaign, route, industry = slot
    waitlist.join_waitlist(db_session, customer.id, campaign.id, route.id, industry.id)

    r = client.patch(f"/api/v1/catalog/campaigns/{campaign.id}", json={"status": "closed"}, headers=auth(admin))
    assert r.status_code == 200, r.text
    db_session.expire_all()
    assert waitlist.list_entries(db_session, user_id=customer.id)[0].status == WaitlistStatus.EXPIRED


def test_admin_expire_pending(client, auth, admin, customer, slot, db_session):
    campaign, route, industry = slot
    booking_id = client.post("/api/v1/bookings/", json=_booking_payload(campaign, route, industry),
                             headers=auth(customer)).json()["booking_id"]
    assert client.post("/api/v1/bookings/expire-pending", headers=auth(customer)).status_code == 403

    r = client.post("/api/v1/bookings/expire-pending", json={"older_than_minutes": 0}, headers=auth(admin))
    assert r.status_code == 200, r.text
    assert booking_id in r.json()["expired_booking_ids"]
    db_session.expire_all()
    assert db_session.get(Booking, booking_id).status.value == "cancelled"


def test_artwork_upload_and_download(client, auth, admin, customer, slot, gateway):
    campaign, route, industry = slot
    headers = auth(customer)
    booking_id = _paid_booking(client, headers, gateway, _booking_payload(campaign, route, industry))

    r = client.post(f"/api/v1/bookings/{booking_id}/artwork",
                    files={"file": ("postcard.pdf", b"%PDF-1.4 postcard", "application/pdf")}, headers=headers)
    assert r.status_code == 200, r.text
    assert r.json()["artwork_status"] == "under_review"

    download = client.get(f"/api/v1/bookings/{booking_id}/artwork", headers=headers)
    assert download.status_code == 200
    assert download.content == b"%PDF-1.4 postcard"

    review = client.post(f"/api/v1/bookings/{booking_id}/artwork/review", json={"approve": True},
                         headers=auth(admin))
    assert review.json()["artwork_status"] == "approved"
