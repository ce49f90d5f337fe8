from __future__ import annotations
"""SQLAlchemy models for industries and their optional subcategories.

A subcategory narrows an industry for exclusivity purposes: two plumbers with
different subcategories can share a route in the same campaign.
"""
from typing import TYPE_CHECKING
from sqlalchemy import Integer, String, DateTime, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship, Mapped, mapped_column

if TYPE_CHECKING:  # pragma: no cover
    from .campaigns import Campaign
from sqlalchemy.sql import func
from mailslot.database import Base
from .campaigns import campaign_industry_association
from .enums import CatalogStatus, db_enum

class Industry(Base):
    __tablename__ = "industries"
    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    name: Mapped[str] = mapped_column(String, unique=True, index=True)
    description: Mapped[str | None] = mapped_column(String, nullable=True)
    status: Mapped[CatalogStatus] = mapped_column(db_enum(CatalogStatus), default=CatalogStatus.ACTIVE, index=True)
    created_at: Mapped[DateTime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    subcategories: Mapped[list["IndustrySubcategory"]] = relationship(
        "IndustrySubcategory", back_populates="industry", order_by="IndustrySubcategory.id"
    )
    campaigns: Mapped[list["Campaign"]] = relationship(
        "Campaign", secondary=campaign_industry_association, back_populates="industries"
    )

class IndustrySubcategory(Base):
    __tablename__ = "industry_subcategories"
    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    industry_id: Mapped[int] = mapped_column(Integer, ForeignKey("industries.id"), nullable=False, index=True)
    name: Mapped[str] = mapped_column(String)
    status: Mapped[CatalogStatus] = mapped_column(db_enum(CatalogStatus), default=CatalogStatus.ACTIVE)
    created_at: Mapped[DateTime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    industry: Mapped["Industry"] = relationship("Industry", back_populates="subcategories")

    __table_args__ = (
        UniqueConstraint("industry_id", "name", name="uq_subcategory_name_per_industry"),
    )
