"""
Catalog endpoints: routes, industries and campaigns.
"""
from typing import List, Optional
from fastapi import APIRouter, Depends, HTTPException, status, Query, Request
from sqlalchemy.orm import Session
import time
from mailslot.api.deps import get_db, get_current_user, require_admin
from mailslot.exceptions import BookingEngineError
from mailslot.models.db import User
from mailslot.models.db.enums import CampaignStatus
from mailslot.models.schemas.catalog import (
    RouteCreate,
    RouteRead,
    IndustryCreate,
    IndustryRead,
    CampaignCreate,
    CampaignUpdate,
    CampaignRead,
)
from mailslot.services import catalog, waitlist
from mailslot.utils import as_utc, get_logger, log_business_event, log_performance

router = APIRouter()
logger = get_logger(__name__)

# --------------------------------- Routes ---------------------------------- #

@router.get("/routes", response_model=List[RouteRead], summary="List mail routes")
async def list_routes(
    include_inactive: bool = Query(False),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
) -> List[RouteRead]:
    return [RouteRead.model_validate(r) for r in catalog.list_routes(db, include_inactive=include_inactive)]

@router.post(
    "/routes",
    response_model=RouteRead,
    status_code=status.HTTP_201_CREATED,
    summary="Create mail route (admin)"
)
async def create_route(
    route_data: RouteCreate,
    request: Request,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db)
) -> RouteRead:
    route = catalog.create_route(db, **route_data.model_dump())
    log_business_event(
        event_type="route_created",
        details={"route_id": route.id, "zip_code": route.zip_code},
        user_id=admin.id,
        request_id=request.headers.get("X-Request-ID", "unknown")
    )
    return RouteRead.model_validate(route)

# ------------------------------- Industries -------------------------------- #

@router.get("/industries", response_model=List[IndustryRead], summary="List industries")
async def list_industries(
    include_inactive: bool = Query(False),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
) -> List[IndustryRead]:
    industries = catalog.list_industries(db, include_inactive=include_inactive)
    return [IndustryRead.model_validate(i) for i in industries]

@router.post(
    "/industries",
    response_model=IndustryRead,
    status_code=status.HTTP_201_CREATED,
    summary="Create industry (admin)"
)
async def create_industry(
    industry_data: IndustryCreate,
    request: Request,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db)
) -> IndustryRead:
    industry = catalog.create_industry(
        db,
        name=industry_data.name,
        description=industry_data.description,
        subcategories=industry_data.subcategories,
    )
    log_business_event(
        event_type="industry_created",
        details={"industry_id": industry.id, "name": industry.name,
                 "subcategories": [s.name for s in industry.subcategories]},
        user_id=admin.id,
        request_id=request.headers.get("X-Request-ID", "unknown")
    )
    return IndustryRead.model_validate(industry)

# -------------------------------- Campaigns -------------------------------- #

@router.get("/campaigns", response_model=List[CampaignRead], summary="List campaigns")
async def list_campaigns(
    status_filter: Optional[CampaignStatus] = Query(None, alias="status"),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
) -> List[CampaignRead]:
    return [CampaignRead.from_campaign(c) for c in catalog.list_campaigns(db, status_filter)]

@router.get("/campaigns/{campaign_id}", response_model=CampaignRead, summary="Get campaign")
async def get_campaign(
    campaign_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
) -> CampaignRead:
    return CampaignRead.from_campaign(catalog.get_campaign(db, campaign_id))

@router.post(
    "/campaigns",
    response_model=CampaignRead,
    status_code=status.HTTP_201_CREATED,
    summary="Create campaign (admin)",
    description="Create a mailing campaign and the routes and industries it sells. Empty lists allow all."
)
async def create_campaign(
    campaign_data: CampaignCreate,
    request: Request,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db)
) -> CampaignRead:
    start_time = time.time()
    request_id = request.headers.get("X-Request-ID", "unknown")

    try:
        fields = campaign_data.model_dump(exclude={"route_ids", "industry_ids"})
        campaign = catalog.create_campaign(
            db,
            route_ids=campaign_data.route_ids,
            industry_ids=campaign_data.industry_ids,
            **fields
        )
        log_business_event(
            event_type="campaign_created",
            details={
                "campaign_id": campaign.id,
                "name": campaign.name,
                "mail_date": campaign.mail_date.isoformat(),
                "status": campaign.status.value,
            },
            user_id=admin.id,
            request_id=request_id
        )
        log_performance(
            operation="create_campaign",
            duration_ms=(time.time() - start_time) * 1000,
            additional_data={"campaign_id": campaign.id}
        )
        return CampaignRead.from_campaign(campaign)

    except (HTTPException, BookingEngineError):
        raise
    except Exception as e:
        logger.error(
            "Campaign creation failed with unexpected error",
            error=str(e),
            request_id=request_id,
            exc_info=True
        )
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to create campaign"
        )

@router.patch(
    "/campaigns/{campaign_id}",
    response_model=CampaignRead,
    summary="Update campaign (admin)",
    description="Closing a campaign expires its active waitlist entries."
)
async def update_campaign(
    campaign_id: int,
    campaign_update: CampaignUpdate,
    request: Request,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db)
) -> CampaignRead:
    request_id = request.headers.get("X-Request-ID", "unknown")
    campaign = catalog.get_campaign(db, campaign_id)
    changes = campaign_update.model_dump(exclude_unset=True)

    deadline = changes.get("print_deadline")
    if deadline is not None and as_utc(deadline).date() > campaign.mail_date:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail="print_deadline must not be after mail_date"
        )
    total_slots = changes.get("total_slots")
    if total_slots and total_slots < campaign.booked_slots:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=f"total_slots cannot be below booked slots ({campaign.booked_slots})"
        )

    was_closed = campaign.status == CampaignStatus.CLOSED
    for field_name, value in changes.items():
        setattr(campaign, field_name, value)
    db.commit()
    db.refresh(campaign)

    expired = 0
    if campaign.status == CampaignStatus.CLOSED and not was_closed:
        expired = waitlist.expire_entries_for_campaign(db, campaign_id)

    log_business_event(
        event_type="campaign_updated",
        details={
            "campaign_id": campaign_id,
            "changes": {k: str(v) for k, v in changes.items()},
            "waitlist_entries_expired": expired,
        },
        user_id=admin.id,
        request_id=request_id
    )
    return CampaignRead.from_campaign(campaign)
