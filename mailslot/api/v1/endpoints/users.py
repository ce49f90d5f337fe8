"""
User registration, profile and loyalty endpoints.
"""
from typing import List
from fastapi import APIRouter, Depends, HTTPException, status, Query, Request
from sqlalchemy.orm import Session
from sqlalchemy.exc import IntegrityError
import secrets
import string
import time
from mailslot.api.deps import get_db, get_current_user, require_admin
from mailslot.config import LOYALTY_SETTINGS
from mailslot.models.db import User
from mailslot.models.schemas.users import UserCreate, UserRead, UserWithApiKey, LoyaltyRead
from mailslot.services import loyalty
from mailslot.utils import get_logger, log_business_event, log_performance, utc_now

router = APIRouter()
logger = get_logger(__name__)

def generate_api_key() -> str:
    """Generate a secure API key."""
    alphabet = string.ascii_letters + string.digits
    return ''.join(secrets.choice(alphabet) for _ in range(32))

@router.post(
    "/",
    response_model=UserWithApiKey,
    status_code=status.HTTP_201_CREATED,
    summary="Register user",
    description="Register a customer (or admin) and issue the API key used as a bearer token"
)
async def create_user(
    user_data: UserCreate,
    request: Request,
    db: Session = Depends(get_db)
) -> UserWithApiKey:
    start_time = time.time()
    request_id = request.headers.get("X-Request-ID", "unknown")

    logger.info(
        "User creation started",
        user_email=user_data.email,
        user_role=user_data.role.value,
        request_id=request_id
    )

    try:
        existing_email = db.query(User).filter(User.email == user_data.email).first()
        if existing_email:
            logger.warning(
                "User creation failed: duplicate email",
                email=user_data.email,
                existing_user_id=existing_email.id,
                request_id=request_id
            )
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail=f"User with email '{user_data.email}' already exists"
            )

        new_user = User(
            name=user_data.name,
            email=user_data.email,
            business_name=user_data.business_name,
            api_key=generate_api_key(),
            role=user_data.role,
        )
        db.add(new_user)
        db.commit()
        db.refresh(new_user)

        log_business_event(
            event_type="user_created",
            details={"user_email": new_user.email, "user_role": new_user.role.value},
            user_id=new_user.id,
            request_id=request_id
        )
        log_performance(
            operation="create_user",
            duration_ms=(time.time() - start_time) * 1000,
            additional_data={"user_id": new_user.id}
        )
        return UserWithApiKey.model_validate(new_user)

    except HTTPException:
        raise
    except IntegrityError as e:
        db.rollback()
        logger.error(
            "User creation failed: database integrity error",
            error=str(e),
            user_email=user_data.email,
            request_id=request_id
        )
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="User with this email already exists"
        )
    except Exception as e:
        logger.error(
            "User creation failed with unexpected error",
            error=str(e),
            request_id=request_id,
            exc_info=True
        )
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to create user"
        )

@router.get(
    "/",
    response_model=List[UserRead],
    summary="List users (admin)"
)
async def list_users(
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=1000),
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db)
) -> List[UserRead]:
    users = db.query(User).order_by(User.id).offset(skip).limit(limit).all()
    return [UserRead.model_validate(u) for u in users]

@router.get(
    "/me",
    response_model=UserRead,
    summary="Current user"
)
async def read_me(current_user: User = Depends(get_current_user)) -> UserRead:
    return UserRead.model_validate(current_user)

@router.get(
    "/me/loyalty",
    response_model=LoyaltyRead,
    summary="Loyalty progress",
    description="Slots earned this calendar year and loyalty discounts ready to use"
)
async def read_my_loyalty(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
) -> LoyaltyRead:
    state = loyalty.effective_state(loyalty.find_counter(db, current_user.id), utc_now())
    return LoyaltyRead(
        user_id=current_user.id,
        year=state.year,
        slots_earned_this_year=state.slots_earned_this_year,
        discounts_available=state.discounts_available,
        slots_until_next_discount=state.slots_until_next_discount,
        discount_amount=int(LOYALTY_SETTINGS["discount_amount"]),
    )
