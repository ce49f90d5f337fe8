from __future__ import annotations
"""SQLAlchemy model for print campaigns and their allowed route/industry sets."""
from typing import TYPE_CHECKING
from sqlalchemy import Integer, String, Date, DateTime, ForeignKey, Table, Column, CheckConstraint
from sqlalchemy.orm import relationship, Mapped, mapped_column

if TYPE_CHECKING:  # pragma: no cover
    from .routes import Route
    from .industries import Industry
    from .bookings import Booking
from sqlalchemy.sql import func
from mailslot.database import Base
from .enums import CampaignStatus, db_enum

# Association tables for the per-campaign allowed sets
campaign_route_association = Table(
    "campaign_routes",
    Base.metadata,
    Column("campaign_id", Integer, ForeignKey("campaigns.id"), primary_key=True),
    Column("route_id", Integer, ForeignKey("routes.id"), primary_key=True),
)

campaign_industry_association = Table(
    "campaign_industries",
    Base.metadata,
    Column("campaign_id", Integer, ForeignKey("campaigns.id"), primary_key=True),
    Column("industry_id", Integer, ForeignKey("industries.id"), primary_key=True),
)

class Campaign(Base):
    __tablename__ = "campaigns"
    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    name: Mapped[str] = mapped_column(String, unique=True, index=True)
    mail_date: Mapped[Date] = mapped_column(Date, nullable=False)
    # Required for cancellation; refund eligibility is measured against it
    print_deadline: Mapped[DateTime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    status: Mapped[CampaignStatus] = mapped_column(db_enum(CampaignStatus), default=CampaignStatus.PLANNING, index=True)
    total_slots: Mapped[int] = mapped_column(Integer, default=0)
    booked_slots: Mapped[int] = mapped_column(Integer, default=0)
    # Cents collected from confirmed payments, net of cancellations
    revenue: Mapped[int] = mapped_column(Integer, default=0)
    base_slot_price: Mapped[int | None] = mapped_column(Integer, nullable=True)
    additional_slot_price: Mapped[int | None] = mapped_column(Integer, nullable=True)
    created_at: Mapped[DateTime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    # Relationships
    routes: Mapped[list["Route"]] = relationship(
        "Route", secondary=campaign_route_association, back_populates="campaigns"
    )
    industries: Mapped[list["Industry"]] = relationship(
        "Industry", secondary=campaign_industry_association, back_populates="campaigns"
    )
    bookings: Mapped[list["Booking"]] = relationship("Booking", back_populates="campaign")

    __table_args__ = (
        CheckConstraint("booked_slots >= 0", name="campaign_booked_slots_non_negative"),
        CheckConstraint("total_slots >= 0", name="campaign_total_slots_non_negative"),
        # total_slots = 0 means the campaign is not capacity-limited
        CheckConstraint("total_slots = 0 OR booked_slots <= total_slots", name="campaign_booked_within_total"),
        CheckConstraint("revenue >= 0", name="campaign_revenue_non_negative"),
    )
