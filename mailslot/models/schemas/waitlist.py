"""
Pydantic schemas for waitlist entries.
"""
from datetime import datetime
from typing import Optional
from pydantic import BaseModel, Field, ConfigDict
from ..db.enums import WaitlistStatus

class WaitlistJoin(BaseModel):
    campaign_id: int = Field(gt=0)
    route_id: int = Field(gt=0)
    industry_id: int = Field(gt=0)
    subcategory_id: Optional[int] = Field(None, gt=0)
    notes: Optional[str] = Field(None, max_length=1000)

class WaitlistEntryRead(BaseModel):
    id: int
    user_id: int
    campaign_id: int
    route_id: int
    industry_id: int
    subcategory_id: Optional[int]
    slot_key: str
    notes: Optional[str]
    status: WaitlistStatus
    notified_count: int
    last_notified_at: Optional[datetime]
    created_at: Optional[datetime]

    model_config = ConfigDict(from_attributes=True)

class WaitlistJoinResponse(BaseModel):
    entry_id: int
    created: bool
    slot_available: bool
    notice: Optional[str] = None
    entry: WaitlistEntryRead
