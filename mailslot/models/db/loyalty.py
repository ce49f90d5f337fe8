from __future__ import annotations
"""SQLAlchemy model for the per-user loyalty counter.

The row is versioned: concurrent writers updating the same counter cause
the late flush to raise ``StaleDataError`` instead of losing an update.
"""
from typing import TYPE_CHECKING
from sqlalchemy import Integer, DateTime, ForeignKey, CheckConstraint
from sqlalchemy.orm import relationship, Mapped, mapped_column

if TYPE_CHECKING:  # pragma: no cover
    from .users import User
from sqlalchemy.sql import func
from mailslot.database import Base

class LoyaltyCounter(Base):
    __tablename__ = "loyalty_counters"
    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    user_id: Mapped[int] = mapped_column(Integer, ForeignKey("users.id"), unique=True, nullable=False)
    slots_earned_this_year: Mapped[int] = mapped_column(Integer, default=0)
    discounts_available: Mapped[int] = mapped_column(Integer, default=0)
    # Calendar year the counters belong to
    year_reset: Mapped[int] = mapped_column(Integer, nullable=False)
    version: Mapped[int] = mapped_column(Integer, nullable=False)
    updated_at: Mapped[DateTime | None] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    user: Mapped["User"] = relationship("User", back_populates="loyalty_counter")

    __mapper_args__ = {"version_id_col": version}

    __table_args__ = (
        CheckConstraint("slots_earned_this_year >= 0", name="loyalty_slots_non_negative"),
        CheckConstraint("discounts_available >= 0", name="loyalty_discounts_non_negative"),
    )
