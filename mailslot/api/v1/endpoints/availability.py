"""
Slot availability lookup.
"""
from typing import Optional
from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel
from sqlalchemy.orm import Session
from mailslot.api.deps import get_db, get_current_user
from mailslot.models.db import User
from mailslot.services import catalog
from mailslot.services.slot_exclusivity import exclusivity_key, find_occupant

router = APIRouter()

class AvailabilityRead(BaseModel):
    campaign_id: int
    route_id: int
    industry_id: int
    subcategory_id: Optional[int]
    slot_key: str
    available: bool

@router.get(
    "/",
    response_model=AvailabilityRead,
    summary="Check slot availability",
    description="Whether the campaign/route/industry slot is free. Does not reveal who holds it."
)
async def check_availability(
    campaign_id: int = Query(..., gt=0),
    route_id: int = Query(..., gt=0),
    industry_id: int = Query(..., gt=0),
    subcategory_id: Optional[int] = Query(None, gt=0),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
) -> AvailabilityRead:
    catalog.get_campaign(db, campaign_id)
    catalog.get_route(db, route_id)
    key = exclusivity_key(db, campaign_id, route_id, industry_id, subcategory_id)
    return AvailabilityRead(
        campaign_id=campaign_id,
        route_id=route_id,
        industry_id=industry_id,
        subcategory_id=key.subcategory_id,
        slot_key=key.as_string(),
        available=find_occupant(db, key) is None,
    )
