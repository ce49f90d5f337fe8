"""Catalog store: routes, industries, subcategories and campaigns.

Read-mostly reference data. ``validate_booking_target`` is the single place
that decides whether a (campaign, route, industry, subcategory) tuple is
bookable:

* campaign must exist and be ``booking_open`` (availability reads skip this)
* route must be active and in the campaign's allowed set (an empty set allows all)
* industry likewise; the ``Other`` industry needs a free-text description
* a subcategory must belong to the industry; industries with active
  subcategories require one (except ``Other``)
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, List, Optional

from sqlalchemy.orm import Session, selectinload

from mailslot.config import BOOKING_SETTINGS
from mailslot.exceptions import NotFoundError, ValidationError
from mailslot.models.db import Campaign, Route, Industry, IndustrySubcategory
from mailslot.models.db.enums import CampaignStatus, CatalogStatus
from mailslot.utils import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class BookingTarget:
    campaign: Campaign
    route: Route
    industry: Industry
    subcategory: Optional[IndustrySubcategory]
    industry_description: Optional[str] = None


def is_other_industry(industry: Industry) -> bool:
    return industry.name.strip().lower() == str(BOOKING_SETTINGS["other_industry_name"]).lower()


def get_campaign(session: Session, campaign_id: int) -> Campaign:
    campaign = session.get(Campaign, campaign_id)
    if campaign is None:
        raise NotFoundError(f"Campaign {campaign_id} not found", details={"campaign_id": campaign_id})
    return campaign


def get_route(session: Session, route_id: int) -> Route:
    route = session.get(Route, route_id)
    if route is None:
        raise NotFoundError(f"Route {route_id} not found", details={"route_id": route_id})
    return route


def get_industry(session: Session, industry_id: int) -> Industry:
    industry = session.get(Industry, industry_id)
    if industry is None:
        raise NotFoundError(f"Industry {industry_id} not found", details={"industry_id": industry_id})
    return industry


def get_subcategory(session: Session, subcategory_id: int) -> IndustrySubcategory:
    sub = session.get(IndustrySubcategory, subcategory_id)
    if sub is None:
        raise NotFoundError(f"Subcategory {subcategory_id} not found", details={"subcategory_id": subcategory_id})
    return sub


def list_routes(session: Session, *, include_inactive: bool = False) -> List[Route]:
    query = session.query(Route)
    if not include_inactive:
        query = query.filter(Route.status == CatalogStatus.ACTIVE)
    return query.order_by(Route.zip_code).all()


def list_industries(session: Session, *, include_inactive: bool = False) -> List[Industry]:
    query = session.query(Industry).options(selectinload(Industry.subcategories))
    if not include_inactive:
        query = query.filter(Industry.status == CatalogStatus.ACTIVE)
    return query.order_by(Industry.name).all()


def list_campaigns(session: Session, status: Optional[CampaignStatus] = None) -> List[Campaign]:
    query = session.query(Campaign).options(selectinload(Campaign.routes), selectinload(Campaign.industries))
    if status is not None:
        query = query.filter(Campaign.status == status)
    return query.order_by(Campaign.mail_date, Campaign.id).all()


def _allowed(members: Iterable, target_id: int) -> bool:
    ids = {m.id for m in members}
    return not ids or target_id in ids


def validate_booking_target(
    session: Session,
    campaign_id: int,
    route_id: int,
    industry_id: int,
    subcategory_id: Optional[int] = None,
    industry_description: Optional[str] = None,
    *,
    require_open: bool = True,
) -> BookingTarget:
    """Resolve and validate a booking target; raises NotFoundError / ValidationError."""
    campaign = get_campaign(session, campaign_id)
    if require_open and campaign.status != CampaignStatus.BOOKING_OPEN:
        raise ValidationError(
            f"Campaign {campaign_id} is not open for booking",
            details={"campaign_id": campaign_id, "campaign_status": campaign.status.value},
        )

    route = get_route(session, route_id)
    if route.status != CatalogStatus.ACTIVE:
        raise ValidationError(f"Route {route_id} is inactive", details={"route_id": route_id})
    if not _allowed(campaign.routes, route_id):
        raise ValidationError(
            f"Route {route_id} is not part of campaign {campaign_id}",
            details={"campaign_id": campaign_id, "route_id": route_id},
        )

    industry = get_industry(session, industry_id)
    if industry.status != CatalogStatus.ACTIVE:
        raise ValidationError(f"Industry {industry_id} is inactive", details={"industry_id": industry_id})
    if not _allowed(campaign.industries, industry_id):
        raise ValidationError(
            f"Industry {industry_id} is not available in campaign {campaign_id}",
            details={"campaign_id": campaign_id, "industry_id": industry_id},
        )

    subcategory: Optional[IndustrySubcategory] = None
    description = (industry_description or "").strip() or None
    if is_other_industry(industry):
        # Description is informational only; it never narrows exclusivity
        if require_open and description is None:
            raise ValidationError(
                "industry_description is required for the Other industry",
                details={"industry_id": industry_id},
            )
    else:
        if subcategory_id is not None:
            subcategory = get_subcategory(session, subcategory_id)
            if subcategory.industry_id != industry_id:
                raise ValidationError(
                    f"Subcategory {subcategory_id} does not belong to industry {industry_id}",
                    details={"industry_id": industry_id, "subcategory_id": subcategory_id},
                )
            if subcategory.status != CatalogStatus.ACTIVE:
                raise ValidationError(
                    f"Subcategory {subcategory_id} is inactive", details={"subcategory_id": subcategory_id}
                )
        elif any(s.status == CatalogStatus.ACTIVE for s in industry.subcategories):
            raise ValidationError(
                f"A subcategory is required for industry {industry.name}",
                details={"industry_id": industry_id},
            )

    return BookingTarget(
        campaign=campaign,
        route=route,
        industry=industry,
        subcategory=subcategory,
        industry_description=description,
    )


def create_route(session: Session, *, zip_code: str, name: str, household_count: int = 0,
                 status: CatalogStatus = CatalogStatus.ACTIVE) -> Route:
    if session.query(Route).filter(Route.zip_code == zip_code).first():
        raise ValidationError(f"Route with ZIP code {zip_code} already exists", code="DUPLICATE_ROUTE",
                              details={"zip_code": zip_code})
    route = Route(zip_code=zip_code, name=name, household_count=household_count, status=status)
    session.add(route)
    session.commit()
    session.refresh(route)
    logger.info("Route created", route_id=route.id, zip_code=zip_code)
    return route


def create_industry(session: Session, *, name: str, description: Optional[str] = None,
                    subcategories: Iterable[str] = ()) -> Industry:
    if session.query(Industry).filter(Industry.name == name).first():
        raise ValidationError(f"Industry {name} already exists", code="DUPLICATE_INDUSTRY", details={"name": name})
    industry = Industry(name=name, description=description)
    industry.subcategories = [IndustrySubcategory(name=s) for s in dict.fromkeys(subcategories)]
    session.add(industry)
    session.commit()
    session.refresh(industry)
    logger.info("Industry created", industry_id=industry.id, subcategory_count=len(industry.subcategories))
    return industry


def create_campaign(session: Session, *, route_ids: Iterable[int] = (), industry_ids: Iterable[int] = (),
                    **fields) -> Campaign:
    name = fields.get("name")
    if session.query(Campaign).filter(Campaign.name == name).first():
        raise ValidationError(f"Campaign {name} already exists", code="DUPLICATE_CAMPAIGN", details={"name": name})
    route_ids = list(dict.fromkeys(route_ids))
    industry_ids = list(dict.fromkeys(industry_ids))
    routes = session.query(Route).filter(Route.id.in_(route_ids)).all() if route_ids else []
    industries = session.query(Industry).filter(Industry.id.in_(industry_ids)).all() if industry_ids else []
    missing_routes = set(route_ids) - {r.id for r in routes}
    missing_industries = set(industry_ids) - {i.id for i in industries}
    if missing_routes or missing_industries:
        raise NotFoundError(
            "Unknown routes or industries",
            details={"route_ids": sorted(missing_routes), "industry_ids": sorted(missing_industries)},
        )
    campaign = Campaign(**fields)
    campaign.routes = routes
    campaign.industries = industries
    session.add(campaign)
    session.commit()
    session.refresh(campaign)
    logger.info("Campaign created", campaign_id=campaign.id, route_count=len(routes),
                industry_count=len(industries))
    return campaign


__all__ = [
    "BookingTarget",
    "is_other_industry",
    "get_campaign",
    "get_route",
    "get_industry",
    "get_subcategory",
    "list_routes",
    "list_industries",
    "list_campaigns",
    "validate_booking_target",
    "create_route",
    "create_industry",
    "create_campaign",
]
