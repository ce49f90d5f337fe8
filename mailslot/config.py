"""Core application configuration & tunable business rules.

Pricing defaults, discount thresholds, refund cutoffs and integration
settings are centralized here so they can be adjusted without diving into
service logic. Values are read from environment variables with defaults;
tests monkeypatch the dicts directly where needed.
"""
from __future__ import annotations

import os


def _env_int(name: str, default: int) -> int:
	raw = os.getenv(name)
	return int(raw) if raw and raw.strip() else default


# ------------------------------ Base Pricing ------------------------------ #
# All amounts are integer cents.
PRICING_SETTINGS: dict[str, int] = {
	"first_slot_price": _env_int("PRICING_FIRST_SLOT_PRICE", 60000),        # $600
	"additional_slot_price": _env_int("PRICING_ADDITIONAL_SLOT_PRICE", 50000),  # $500
	"max_quantity": _env_int("PRICING_MAX_QUANTITY", 4),
}

# ----------------------------- Bulk Discount ------------------------------ #
# A bundle of N campaigns booked in one transaction unlocks bulk_discount rules.
BULK_DISCOUNT_SETTINGS: dict[str, int] = {
	"min_campaigns": _env_int("BULK_MIN_CAMPAIGNS", 3),
	"default_amount": _env_int("BULK_DEFAULT_AMOUNT", 30000),  # $300 per bundle
	# Priority of the built-in bulk rule used when no bulk_discount rule is configured
	"default_priority": _env_int("BULK_DEFAULT_PRIORITY", 1000),
}

# -------------------------------- Loyalty --------------------------------- #
LOYALTY_SETTINGS: dict[str, int] = {
	# Regular-price slots needed (per calendar year) to earn one discount
	"slot_threshold": _env_int("LOYALTY_SLOT_THRESHOLD", 3),
	"discount_amount": _env_int("LOYALTY_DISCOUNT_AMOUNT", 15000),  # $150
	"default_priority": _env_int("LOYALTY_DEFAULT_PRIORITY", 1000),
}

# ------------------------------ Refund Policy ----------------------------- #
REFUND_POLICY: dict[str, int] = {
	# Full refund iff ceil(days until print deadline) >= this and booking paid
	"min_days_before_deadline": _env_int("REFUND_MIN_DAYS_BEFORE_DEADLINE", 7),
}

# -------------------------------- Bookings -------------------------------- #
BOOKING_SETTINGS: dict[str, int | str] = {
	# Unpaid bookings older than this are released by the expiry sweep
	"pending_expiry_minutes": _env_int("BOOKING_PENDING_EXPIRY_MINUTES", 15),
	# Industry name that requires a free-text description instead of a subcategory
	"other_industry_name": os.getenv("OTHER_INDUSTRY_NAME", "Other"),
	"max_bundle_size": _env_int("BOOKING_MAX_BUNDLE_SIZE", 6),
}

# -------------------------------- Payments -------------------------------- #
PAYMENT_SETTINGS: dict[str, str | None] = {
	"provider": os.getenv("PAYMENT_PROVIDER", "mock"),  # mock | stripe
	"stripe_secret_key": os.getenv("STRIPE_SECRET_KEY") or None,
	"currency": os.getenv("PAYMENT_CURRENCY", "usd"),
	"success_url": os.getenv("PAYMENT_SUCCESS_URL", "http://localhost:5173/bookings/confirmation"),
	"cancel_url": os.getenv("PAYMENT_CANCEL_URL", "http://localhost:5173/bookings/payment"),
}

# -------------------------------- Artifacts ------------------------------- #
ARTIFACT_SETTINGS: dict[str, str | int] = {
	"storage_dir": os.getenv("ARTIFACT_STORAGE_DIR", "uploads"),
	"max_bytes": _env_int("ARTIFACT_MAX_BYTES", 20 * 1024 * 1024),
}

# ------------------------------ Notifications ----------------------------- #
NOTIFICATION_SETTINGS: dict[str, list[str]] = {
	"waitlist_channels": [c.strip() for c in os.getenv("WAITLIST_CHANNELS", "email").split(",") if c.strip()],
}

__all__ = [
	"PRICING_SETTINGS",
	"BULK_DISCOUNT_SETTINGS",
	"LOYALTY_SETTINGS",
	"REFUND_POLICY",
	"BOOKING_SETTINGS",
	"PAYMENT_SETTINGS",
	"ARTIFACT_SETTINGS",
	"NOTIFICATION_SETTINGS",
]
