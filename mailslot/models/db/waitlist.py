from __future__ import annotations
"""SQLAlchemy model for waitlist entries on occupied slots."""
from typing import TYPE_CHECKING
from sqlalchemy import Integer, String, DateTime, ForeignKey, Index, text
from sqlalchemy.orm import relationship, Mapped, mapped_column

if TYPE_CHECKING:  # pragma: no cover
    from .users import User
    from .campaigns import Campaign
from mailslot.database import Base
from mailslot.utils.time import utc_now
from .enums import WaitlistStatus, db_enum

class WaitlistEntry(Base):
    __tablename__ = "waitlist_entries"
    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    user_id: Mapped[int] = mapped_column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    campaign_id: Mapped[int] = mapped_column(Integer, ForeignKey("campaigns.id"), nullable=False, index=True)
    route_id: Mapped[int] = mapped_column(Integer, ForeignKey("routes.id"), nullable=False)
    industry_id: Mapped[int] = mapped_column(Integer, ForeignKey("industries.id"), nullable=False)
    subcategory_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("industry_subcategories.id"), nullable=True
    )
    slot_key: Mapped[str] = mapped_column(String, nullable=False, index=True)
    notes: Mapped[str | None] = mapped_column(String, nullable=True)
    status: Mapped[WaitlistStatus] = mapped_column(
        db_enum(WaitlistStatus), default=WaitlistStatus.ACTIVE, index=True
    )
    notified_count: Mapped[int] = mapped_column(Integer, default=0)
    last_notified_at: Mapped[DateTime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    # Python-side default keeps sub-second precision for first-come-first-served ordering
    created_at: Mapped[DateTime] = mapped_column(DateTime(timezone=True), default=utc_now, index=True)

    user: Mapped["User"] = relationship("User", back_populates="waitlist_entries")
    campaign: Mapped["Campaign"] = relationship("Campaign")

    __table_args__ = (
        Index(
            "uq_waitlist_active_user_slot",
            "user_id",
            "slot_key",
            unique=True,
            sqlite_where=text("status = 'active'"),
            postgresql_where=text("status = 'active'"),
        ),
    )
