from __future__ import annotations
"""SQLAlchemy model for slot bookings.

``slot_key`` is the canonical exclusivity key (see services.slot_exclusivity).
The partial unique index below is the authoritative guard: two concurrent
transactions may both pass the availability pre-check, but only one can
commit a confirmed row for a given key.
"""
from typing import TYPE_CHECKING
from sqlalchemy import Integer, String, DateTime, Boolean, ForeignKey, CheckConstraint, Index, text
from sqlalchemy.orm import relationship, Mapped, mapped_column

if TYPE_CHECKING:  # pragma: no cover
    from .users import User
    from .campaigns import Campaign
    from .routes import Route
    from .industries import Industry, IndustrySubcategory
    from .pricing_rules import PricingRuleApplication
from mailslot.database import Base
from mailslot.utils.time import utc_now
from .enums import (
    PaymentStatus,
    BookingStatus,
    ApprovalStatus,
    ArtworkStatus,
    RefundStatus,
    db_enum,
)

class Booking(Base):
    __tablename__ = "bookings"
    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    user_id: Mapped[int] = mapped_column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    campaign_id: Mapped[int] = mapped_column(Integer, ForeignKey("campaigns.id"), nullable=False, index=True)
    route_id: Mapped[int] = mapped_column(Integer, ForeignKey("routes.id"), nullable=False, index=True)
    industry_id: Mapped[int] = mapped_column(Integer, ForeignKey("industries.id"), nullable=False, index=True)
    subcategory_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("industry_subcategories.id"), nullable=True
    )
    industry_description: Mapped[str | None] = mapped_column(String, nullable=True)
    slot_key: Mapped[str] = mapped_column(String, nullable=False, index=True)
    bundle_id: Mapped[str | None] = mapped_column(String, nullable=True, index=True)

    business_name: Mapped[str] = mapped_column(String, nullable=False)
    contact_email: Mapped[str] = mapped_column(String, nullable=False)
    contact_phone: Mapped[str | None] = mapped_column(String, nullable=True)

    # Pricing (integer cents)
    quantity: Mapped[int] = mapped_column(Integer, default=1)
    base_price_before_discounts: Mapped[int] = mapped_column(Integer, default=0)
    discount_amount: Mapped[int] = mapped_column(Integer, default=0)
    amount: Mapped[int] = mapped_column(Integer, nullable=False)

    # Payment
    payment_status: Mapped[PaymentStatus] = mapped_column(
        db_enum(PaymentStatus), default=PaymentStatus.PENDING, index=True
    )
    checkout_session_id: Mapped[str | None] = mapped_column(String, unique=True, nullable=True)
    payment_intent_id: Mapped[str | None] = mapped_column(String, nullable=True)
    amount_paid: Mapped[int | None] = mapped_column(Integer, nullable=True)
    paid_at: Mapped[DateTime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    pending_since: Mapped[DateTime] = mapped_column(DateTime(timezone=True), default=utc_now)

    status: Mapped[BookingStatus] = mapped_column(
        db_enum(BookingStatus), default=BookingStatus.CONFIRMED, index=True
    )
    approval_status: Mapped[ApprovalStatus] = mapped_column(
        db_enum(ApprovalStatus), default=ApprovalStatus.PENDING
    )
    rejection_note: Mapped[str | None] = mapped_column(String, nullable=True)
    artwork_status: Mapped[ArtworkStatus] = mapped_column(
        db_enum(ArtworkStatus), default=ArtworkStatus.PENDING_UPLOAD
    )
    artwork_file_path: Mapped[str | None] = mapped_column(String, nullable=True)
    artwork_file_name: Mapped[str | None] = mapped_column(String, nullable=True)
    artwork_rejection_reason: Mapped[str | None] = mapped_column(String, nullable=True)

    # Cancellation / refund
    cancellation_date: Mapped[DateTime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    refund_amount: Mapped[int | None] = mapped_column(Integer, nullable=True)
    refund_status: Mapped[RefundStatus | None] = mapped_column(db_enum(RefundStatus), nullable=True)

    # Loyalty bookkeeping
    counts_toward_loyalty: Mapped[bool] = mapped_column(Boolean, default=True)
    loyalty_discount_applied: Mapped[bool] = mapped_column(Boolean, default=False)
    # True once campaign.booked_slots/revenue were incremented for this booking
    slot_counted: Mapped[bool] = mapped_column(Boolean, default=False)

    created_at: Mapped[DateTime] = mapped_column(DateTime(timezone=True), default=utc_now, index=True)

    # Relationships
    user: Mapped["User"] = relationship("User", back_populates="bookings")
    campaign: Mapped["Campaign"] = relationship("Campaign", back_populates="bookings")
    route: Mapped["Route"] = relationship("Route")
    industry: Mapped["Industry"] = relationship("Industry")
    subcategory: Mapped["IndustrySubcategory | None"] = relationship("IndustrySubcategory")
    rule_applications: Mapped[list["PricingRuleApplication"]] = relationship(
        "PricingRuleApplication", back_populates="booking"
    )

    __table_args__ = (
        Index(
            "uq_bookings_confirmed_slot_key",
            "slot_key",
            unique=True,
            sqlite_where=text("status = 'confirmed'"),
            postgresql_where=text("status = 'confirmed'"),
        ),
        CheckConstraint("quantity >= 1", name="booking_quantity_positive"),
        CheckConstraint("amount >= 0", name="booking_amount_non_negative"),
        CheckConstraint("discount_amount <= base_price_before_discounts", name="booking_discount_within_base"),
    )
