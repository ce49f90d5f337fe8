"""
Waitlist endpoints.
"""
from typing import List, Optional
from fastapi import APIRouter, Depends, HTTPException, status, Query, Request, Response
from sqlalchemy.orm import Session
import time
from mailslot.api.deps import get_db, get_current_user
from mailslot.exceptions import BookingEngineError
from mailslot.models.db import User
from mailslot.models.db.enums import UserRole, WaitlistStatus
from mailslot.models.schemas.waitlist import WaitlistJoin, WaitlistEntryRead, WaitlistJoinResponse
from mailslot.services import waitlist
from mailslot.utils import get_logger, log_performance

router = APIRouter()
logger = get_logger(__name__)

@router.post(
    "/",
    response_model=WaitlistJoinResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Join waitlist",
    description="Queue for a taken slot. Joining twice returns the existing entry."
)
async def join_waitlist(
    join_data: WaitlistJoin,
    request: Request,
    response: Response,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
) -> WaitlistJoinResponse:
    start_time = time.time()
    request_id = request.headers.get("X-Request-ID", "unknown")

    logger.info(
        "Waitlist join started",
        user_id=current_user.id,
        campaign_id=join_data.campaign_id,
        route_id=join_data.route_id,
        industry_id=join_data.industry_id,
        request_id=request_id
    )

    try:
        result = waitlist.join_waitlist(
            db,
            current_user.id,
            join_data.campaign_id,
            join_data.route_id,
            join_data.industry_id,
            join_data.subcategory_id,
            join_data.notes,
        )
        if not result.created:
            response.status_code = status.HTTP_200_OK

        log_performance(
            operation="join_waitlist",
            duration_ms=(time.time() - start_time) * 1000,
            additional_data={"entry_id": result.entry.id, "created": result.created}
        )
        return WaitlistJoinResponse(
            entry_id=result.entry.id,
            created=result.created,
            slot_available=result.slot_available,
            notice="This slot is currently available to book" if result.slot_available else None,
            entry=WaitlistEntryRead.model_validate(result.entry),
        )

    except (HTTPException, BookingEngineError):
        raise
    except Exception as e:
        logger.error(
            "Waitlist join failed with unexpected error",
            error=str(e),
            user_id=current_user.id,
            request_id=request_id,
            exc_info=True
        )
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to join waitlist"
        )

@router.get(
    "/",
    response_model=List[WaitlistEntryRead],
    summary="List waitlist entries",
    description="Customers see their own entries; admins see all, optionally filtered."
)
async def list_waitlist(
    campaign_id: Optional[int] = Query(None, gt=0),
    status_filter: Optional[WaitlistStatus] = Query(None, alias="status"),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
) -> List[WaitlistEntryRead]:
    owner = None if current_user.role == UserRole.ADMIN else current_user.id
    entries = waitlist.list_entries(db, user_id=owner, campaign_id=campaign_id, status=status_filter)
    return [WaitlistEntryRead.model_validate(e) for e in entries]
