"""Central Enum definitions for core domain states.

These replace scattered string literals to ensure consistency across
DB models, schemas, and business logic.
"""
from __future__ import annotations
import enum

from sqlalchemy import Enum


class UserRole(str, enum.Enum):
    CUSTOMER = "CUSTOMER"
    ADMIN = "ADMIN"


class CatalogStatus(str, enum.Enum):
    """Status shared by routes, industries and subcategories."""
    ACTIVE = "active"
    INACTIVE = "inactive"


class CampaignStatus(str, enum.Enum):
    PLANNING = "planning"
    BOOKING_OPEN = "booking_open"
    CLOSED = "closed"

# ------------------------------ Booking Enums ------------------------------ #

class PaymentStatus(str, enum.Enum):
    PENDING = "pending"
    PAID = "paid"
    FAILED = "failed"

class BookingStatus(str, enum.Enum):
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"

class ApprovalStatus(str, enum.Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"

class ArtworkStatus(str, enum.Enum):
    PENDING_UPLOAD = "pending_upload"
    UNDER_REVIEW = "under_review"
    APPROVED = "approved"
    REJECTED = "rejected"

class RefundStatus(str, enum.Enum):
    PROCESSED = "processed"
    PENDING = "pending"
    NO_REFUND = "no_refund"
    FAILED = "failed"

# ------------------------------ Pricing Enums ------------------------------ #

class RuleType(str, enum.Enum):
    TIERED_BASE = "tiered_base"
    BULK_DISCOUNT = "bulk_discount"
    LOYALTY_DISCOUNT = "loyalty_discount"
    MANUAL_OVERRIDE = "manual_override"

class RuleStatus(str, enum.Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"

class WaitlistStatus(str, enum.Enum):
    ACTIVE = "active"
    NOTIFIED = "notified"
    EXPIRED = "expired"

__all__ = [
    "UserRole",
    "CatalogStatus",
    "CampaignStatus",
    "PaymentStatus",
    "BookingStatus",
    "ApprovalStatus",
    "ArtworkStatus",
    "RefundStatus",
    "RuleType",
    "RuleStatus",
    "WaitlistStatus",
    "db_enum",
]


def db_enum(enum_cls: type[enum.Enum]) -> Enum:
    """SQLAlchemy column type storing the enum *value* (``'confirmed'``) rather than its name.

    Partial indexes compare against the stored literal, so the stored form must be stable.
    """
    return Enum(enum_cls, values_callable=lambda members: [m.value for m in members], native_enum=False, length=32)
