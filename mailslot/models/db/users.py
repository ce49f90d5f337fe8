from __future__ import annotations
"""SQLAlchemy model for users (advertisers and admins)."""
from typing import TYPE_CHECKING
from sqlalchemy import Integer, String, DateTime, Boolean
from sqlalchemy.orm import relationship, Mapped, mapped_column

if TYPE_CHECKING:  # pragma: no cover
    from .bookings import Booking
    from .loyalty import LoyaltyCounter
    from .waitlist import WaitlistEntry
from sqlalchemy.sql import func
from mailslot.database import Base
from .enums import UserRole, db_enum

class User(Base):
    __tablename__ = "users"
    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    name: Mapped[str] = mapped_column(String, index=True)
    email: Mapped[str] = mapped_column(String, unique=True, index=True)
    business_name: Mapped[str | None] = mapped_column(String, nullable=True)
    api_key: Mapped[str | None] = mapped_column(String, unique=True, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    role: Mapped[UserRole] = mapped_column(db_enum(UserRole), default=UserRole.CUSTOMER, index=True)
    created_at: Mapped[DateTime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    # Relationships
    bookings: Mapped[list["Booking"]] = relationship("Booking", back_populates="user")
    waitlist_entries: Mapped[list["WaitlistEntry"]] = relationship("WaitlistEntry", back_populates="user")
    loyalty_counter: Mapped["LoyaltyCounter | None"] = relationship(
        "LoyaltyCounter", back_populates="user", uselist=False
    )
