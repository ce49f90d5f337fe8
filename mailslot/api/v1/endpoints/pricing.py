"""
Pricing endpoints: quotes for customers and rule management for admins.
"""
from typing import List, Optional
from fastapi import APIRouter, Depends, HTTPException, status, Query, Request
from sqlalchemy.orm import Session
import time
from mailslot.api.deps import get_db, get_current_user, require_admin
from mailslot.exceptions import BookingEngineError, NotFoundError
from mailslot.models.db import User, PricingRule
from mailslot.models.db.enums import RuleStatus, RuleType
from mailslot.models.schemas.pricing import QuoteRead, PricingRuleCreate, PricingRuleUpdate, PricingRuleRead
from mailslot.services import catalog, pricing_engine
from mailslot.utils import get_logger, log_business_event, log_performance

router = APIRouter()
logger = get_logger(__name__)

@router.get(
    "/quote",
    response_model=QuoteRead,
    summary="Price a booking",
    description="Compute the price the current user would pay. Quotes never consume rule usage."
)
async def get_quote(
    request: Request,
    campaign_id: int = Query(..., gt=0),
    quantity: int = Query(1, ge=1),
    bundle_size: int = Query(1, ge=1, description="Number of campaigns booked together"),
    loyalty_exempt: bool = Query(False),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
) -> QuoteRead:
    start_time = time.time()
    request_id = request.headers.get("X-Request-ID", "unknown")

    try:
        result = pricing_engine.quote(
            db, campaign_id, quantity, current_user.id,
            bundle_size=bundle_size, loyalty_exempt=loyalty_exempt,
        )
        log_performance(
            operation="quote",
            duration_ms=(time.time() - start_time) * 1000,
            additional_data={"campaign_id": campaign_id, "quantity": quantity}
        )
        return QuoteRead.from_quote(result)

    except (HTTPException, BookingEngineError):
        raise
    except Exception as e:
        logger.error(
            "Quote failed with unexpected error",
            error=str(e),
            campaign_id=campaign_id,
            request_id=request_id,
            exc_info=True
        )
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to compute quote"
        )

@router.post(
    "/rules",
    response_model=PricingRuleRead,
    status_code=status.HTTP_201_CREATED,
    summary="Create pricing rule (admin)"
)
async def create_rule(
    rule_data: PricingRuleCreate,
    request: Request,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db)
) -> PricingRuleRead:
    request_id = request.headers.get("X-Request-ID", "unknown")

    if rule_data.campaign_id is not None:
        catalog.get_campaign(db, rule_data.campaign_id)
    if rule_data.user_id is not None and db.get(User, rule_data.user_id) is None:
        raise NotFoundError(f"User {rule_data.user_id} not found", details={"user_id": rule_data.user_id})

    rule = PricingRule(**rule_data.model_dump())
    db.add(rule)
    db.commit()
    db.refresh(rule)

    log_business_event(
        event_type="pricing_rule_created",
        details={
            "rule_id": rule.id,
            "rule_type": rule.rule_type.value,
            "value": rule.value,
            "priority": rule.priority,
            "campaign_id": rule.campaign_id,
            "user_id": rule.user_id,
        },
        user_id=admin.id,
        request_id=request_id
    )
    return PricingRuleRead.model_validate(rule)

@router.get(
    "/rules",
    response_model=List[PricingRuleRead],
    summary="List pricing rules (admin)"
)
async def list_rules(
    rule_type: Optional[RuleType] = Query(None),
    status_filter: Optional[RuleStatus] = Query(None, alias="status"),
    campaign_id: Optional[int] = Query(None, gt=0),
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db)
) -> List[PricingRuleRead]:
    query = db.query(PricingRule)
    if rule_type is not None:
        query = query.filter(PricingRule.rule_type == rule_type)
    if status_filter is not None:
        query = query.filter(PricingRule.status == status_filter)
    if campaign_id is not None:
        query = query.filter(PricingRule.campaign_id == campaign_id)
    rules = query.order_by(PricingRule.priority, PricingRule.id).all()
    return [PricingRuleRead.model_validate(r) for r in rules]

@router.patch(
    "/rules/{rule_id}",
    response_model=PricingRuleRead,
    summary="Update pricing rule (admin)"
)
async def update_rule(
    rule_id: int,
    rule_update: PricingRuleUpdate,
    request: Request,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db)
) -> PricingRuleRead:
    request_id = request.headers.get("X-Request-ID", "unknown")
    rule = db.get(PricingRule, rule_id)
    if rule is None:
        raise NotFoundError(f"Pricing rule {rule_id} not found", details={"rule_id": rule_id})

    changes = rule_update.model_dump(exclude_unset=True)
    if changes.get("additional_value") is not None and rule.rule_type != RuleType.TIERED_BASE:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail="additional_value is only valid for tiered_base rules"
        )
    if changes.get("usage_limit") is not None and changes["usage_limit"] < rule.usage_count:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=f"usage_limit cannot be below current usage ({rule.usage_count})"
        )
    for field_name, value in changes.items():
        setattr(rule, field_name, value)
    db.commit()
    db.refresh(rule)

    log_business_event(
        event_type="pricing_rule_updated",
        details={"rule_id": rule_id, "changes": {k: str(v) for k, v in changes.items()}},
        user_id=admin.id,
        request_id=request_id
    )
    return PricingRuleRead.model_validate(rule)
