"""
Pydantic schemas for catalog reference data (routes, industries, campaigns).
"""
from datetime import date, datetime
from typing import Optional, List
from pydantic import BaseModel, Field, ConfigDict, model_validator
from ..db.enums import CatalogStatus, CampaignStatus

class RouteCreate(BaseModel):
    zip_code: str = Field(min_length=3, max_length=16)
    name: str = Field(min_length=1, max_length=200)
    household_count: int = Field(0, ge=0)
    status: CatalogStatus = CatalogStatus.ACTIVE

    model_config = ConfigDict(json_schema_extra={
        "example": {"zip_code": "30101", "name": "Acworth North", "household_count": 5400}
    })

class RouteRead(BaseModel):
    id: int
    zip_code: str
    name: str
    household_count: int
    status: CatalogStatus

    model_config = ConfigDict(from_attributes=True)

class SubcategoryCreate(BaseModel):
    name: str = Field(min_length=1, max_length=200)

class SubcategoryRead(BaseModel):
    id: int
    industry_id: int
    name: str
    status: CatalogStatus

    model_config = ConfigDict(from_attributes=True)

class IndustryCreate(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    description: Optional[str] = Field(None, max_length=500)
    subcategories: List[str] = Field(default_factory=list)

    model_config = ConfigDict(json_schema_extra={
        "example": {"name": "Home Services", "subcategories": ["Plumbing", "HVAC", "Roofing"]}
    })

class IndustryRead(BaseModel):
    id: int
    name: str
    description: Optional[str]
    status: CatalogStatus
    subcategories: List[SubcategoryRead] = Field(default_factory=list)

    model_config = ConfigDict(from_attributes=True)

class CampaignCreate(BaseModel):
    name: str = Field(min_length=1, max_length=300)
    mail_date: date
    print_deadline: Optional[datetime] = None
    status: CampaignStatus = CampaignStatus.PLANNING
    total_slots: int = Field(0, ge=0, description="0 means not capacity-limited")
    base_slot_price: Optional[int] = Field(None, ge=0, description="First slot price in cents")
    additional_slot_price: Optional[int] = Field(None, ge=0, description="Each additional slot in cents")
    route_ids: List[int] = Field(default_factory=list)
    industry_ids: List[int] = Field(default_factory=list)

    @model_validator(mode="after")
    def _deadline_before_mail_date(self):
        if self.print_deadline is not None and self.print_deadline.date() > self.mail_date:
            raise ValueError("print_deadline must not be after mail_date")
        return self

    model_config = ConfigDict(json_schema_extra={
        "example": {
            "name": "Spring 2026 Mailer",
            "mail_date": "2026-03-20",
            "print_deadline": "2026-03-01T17:00:00Z",
            "status": "booking_open",
            "total_slots": 64,
            "route_ids": [1, 2],
            "industry_ids": [1, 2, 3]
        }
    })

class CampaignUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=300)
    print_deadline: Optional[datetime] = None
    status: Optional[CampaignStatus] = None
    total_slots: Optional[int] = Field(None, ge=0)
    base_slot_price: Optional[int] = Field(None, ge=0)
    additional_slot_price: Optional[int] = Field(None, ge=0)

class CampaignRead(BaseModel):
    id: int
    name: str
    mail_date: date
    print_deadline: Optional[datetime]
    status: CampaignStatus
    total_slots: int
    booked_slots: int
    revenue: int
    base_slot_price: Optional[int]
    additional_slot_price: Optional[int]
    route_ids: List[int] = Field(default_factory=list)
    industry_ids: List[int] = Field(default_factory=list)

    model_config = ConfigDict(from_attributes=True)

    @classmethod
    def from_campaign(cls, campaign) -> "CampaignRead":
        data = cls.model_validate(campaign)
        data.route_ids = sorted(r.id for r in campaign.routes)
        data.industry_ids = sorted(i.id for i in campaign.industries)
        return data
