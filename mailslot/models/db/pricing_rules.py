from __future__ import annotations
"""SQLAlchemy models for pricing rules and their per-booking applications.

Rule scope: ``campaign_id`` and ``user_id`` both NULL means global; a rule
scoped to both must match both. ``value`` is in cents. For ``tiered_base``
rules ``value`` is the first-slot price and ``additional_value`` the price of
each additional slot; for discount rules ``value`` is the discount.
"""
from typing import TYPE_CHECKING
from sqlalchemy import Integer, String, DateTime, ForeignKey, CheckConstraint
from sqlalchemy.orm import relationship, Mapped, mapped_column

if TYPE_CHECKING:  # pragma: no cover
    from .bookings import Booking
from sqlalchemy.sql import func
from mailslot.database import Base
from .enums import RuleType, RuleStatus, db_enum

class PricingRule(Base):
    __tablename__ = "pricing_rules"
    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    campaign_id: Mapped[int | None] = mapped_column(Integer, ForeignKey("campaigns.id"), nullable=True, index=True)
    user_id: Mapped[int | None] = mapped_column(Integer, ForeignKey("users.id"), nullable=True, index=True)
    rule_type: Mapped[RuleType] = mapped_column(db_enum(RuleType), nullable=False, index=True)
    value: Mapped[int] = mapped_column(Integer, nullable=False)
    additional_value: Mapped[int | None] = mapped_column(Integer, nullable=True)
    # Lower priority is evaluated first
    priority: Mapped[int] = mapped_column(Integer, default=100)
    usage_limit: Mapped[int | None] = mapped_column(Integer, nullable=True)
    usage_count: Mapped[int] = mapped_column(Integer, default=0)
    status: Mapped[RuleStatus] = mapped_column(db_enum(RuleStatus), default=RuleStatus.ACTIVE, index=True)
    description: Mapped[str | None] = mapped_column(String, nullable=True)
    created_at: Mapped[DateTime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    applications: Mapped[list["PricingRuleApplication"]] = relationship(
        "PricingRuleApplication", back_populates="rule"
    )

    __table_args__ = (
        CheckConstraint("value >= 0", name="pricing_rule_value_non_negative"),
        CheckConstraint("usage_count >= 0", name="pricing_rule_usage_non_negative"),
        CheckConstraint(
            "usage_limit IS NULL OR usage_count <= usage_limit",
            name="pricing_rule_usage_within_limit",
        ),
    )

class PricingRuleApplication(Base):
    __tablename__ = "pricing_rule_applications"
    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    rule_id: Mapped[int] = mapped_column(Integer, ForeignKey("pricing_rules.id"), nullable=False, index=True)
    booking_id: Mapped[int] = mapped_column(Integer, ForeignKey("bookings.id"), nullable=False, index=True)
    user_id: Mapped[int] = mapped_column(Integer, ForeignKey("users.id"), nullable=False)
    discount_amount: Mapped[int] = mapped_column(Integer, default=0)
    applied_at: Mapped[DateTime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    rule: Mapped["PricingRule"] = relationship("PricingRule", back_populates="applications")
    booking: Mapped["Booking"] = relationship("Booking", back_populates="rule_applications")
