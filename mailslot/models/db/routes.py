from __future__ import annotations
"""SQLAlchemy model for carrier routes (ZIP-code delivery areas)."""
from typing import TYPE_CHECKING
from sqlalchemy import Integer, String, DateTime, CheckConstraint
from sqlalchemy.orm import relationship, Mapped, mapped_column

if TYPE_CHECKING:  # pragma: no cover
    from .campaigns import Campaign
from sqlalchemy.sql import func
from mailslot.database import Base
from .campaigns import campaign_route_association
from .enums import CatalogStatus, db_enum

class Route(Base):
    __tablename__ = "routes"
    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    zip_code: Mapped[str] = mapped_column(String, unique=True, index=True)
    name: Mapped[str] = mapped_column(String)
    household_count: Mapped[int] = mapped_column(Integer, default=0)
    status: Mapped[CatalogStatus] = mapped_column(db_enum(CatalogStatus), default=CatalogStatus.ACTIVE, index=True)
    created_at: Mapped[DateTime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    campaigns: Mapped[list["Campaign"]] = relationship(
        "Campaign", secondary=campaign_route_association, back_populates="routes"
    )

    __table_args__ = (
        CheckConstraint("household_count >= 0", name="route_household_count_non_negative"),
    )
