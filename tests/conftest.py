import os
import secrets
import sys
from datetime import date, timedelta
from pathlib import Path
import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

# Ensure project root on sys.path so 'mailslot' resolves without an install
ROOT_DIR = Path(__file__).resolve().parents[1]
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))

from mailslot.main import app  # type: ignore
from mailslot.database import Base, configure_sqlite  # type: ignore
from mailslot.api import deps  # type: ignore
"""Pytest fixtures and factories.

All model modules are imported before Base.metadata.create_all() so every
relationship target is mapped.
"""
from mailslot.models.db import (
    Campaign, Route, Industry, IndustrySubcategory, User, PricingRule,
)
from mailslot.models.db.enums import CampaignStatus, CatalogStatus, RuleType, UserRole
from mailslot.integrations import LocalArtifactStore, LoggingNotificationDispatcher, MockPaymentGateway
from mailslot.utils import utc_now

# File-based SQLite so concurrent sessions in different threads each get their own connection
SQLALCHEMY_TEST_URL = "sqlite+pysqlite:///./test_mailslot.db"
engine = configure_sqlite(create_engine(
    SQLALCHEMY_TEST_URL,
    connect_args={"check_same_thread": False},
))
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

# Code that opens sessions through the database module sees the test database
import mailslot.database as _mailslot_database  # noqa: E402
_mailslot_database.SessionLocal = TestingSessionLocal  # type: ignore

@pytest.fixture(scope="session", autouse=True)
def create_test_db():
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)
    engine.dispose()
    try:
        os.remove("test_mailslot.db")
    except OSError:
        pass

@pytest.fixture()
def db_session():
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()

@pytest.fixture()
def session_factory():
    """Sessions for code that must not share the test's session (threads, second requests)."""
    return TestingSessionLocal

# Override dependency
def _override_get_db():
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()

app.dependency_overrides[deps.get_db] = _override_get_db

@pytest.fixture()
def gateway():
    return MockPaymentGateway()

@pytest.fixture()
def dispatcher():
    return LoggingNotificationDispatcher()

@pytest.fixture()
def artifact_store(tmp_path):
    return LocalArtifactStore(root=str(tmp_path / "artwork"), max_bytes=1024 * 1024)

@pytest.fixture()
def client(gateway, dispatcher, artifact_store):
    app.dependency_overrides[deps.get_payment_gateway] = lambda: gateway
    app.dependency_overrides[deps.get_notification_dispatcher] = lambda: dispatcher
    app.dependency_overrides[deps.get_artifact_store] = lambda: artifact_store
    yield TestClient(app)
    for dependency in (deps.get_payment_gateway, deps.get_notification_dispatcher, deps.get_artifact_store):
        app.dependency_overrides.pop(dependency, None)

@pytest.fixture()
def auth():
    def _headers(user: User) -> dict:
        return {"Authorization": f"Bearer {user.api_key}"}
    return _headers

# ---------- Data factory helpers ----------

@pytest.fixture()
def user_factory(db_session):
    def _create(role: UserRole = UserRole.CUSTOMER, *, business_name: str | None = None):
        tag = secrets.token_hex(4)
        user = User(
            name=f"Test User {tag}",
            email=f"user_{tag}@mailslot-tests.com",
            business_name=business_name or f"Business {tag}",
            api_key=f"key_{secrets.token_hex(12)}",
            role=role,
        )
        db_session.add(user)
        db_session.commit()
        db_session.refresh(user)
        return user
    return _create

@pytest.fixture()
def customer(user_factory):
    return user_factory()

@pytest.fixture()
def admin(user_factory):
    return user_factory(UserRole.ADMIN)

@pytest.fixture()
def route_factory(db_session):
    def _create(*, status: CatalogStatus = CatalogStatus.ACTIVE):
        tag = secrets.token_hex(3)
        route = Route(zip_code=f"Z{tag}", name=f"Carrier route {tag}", household_count=2500, status=status)
        db_session.add(route)
        db_session.commit()
        db_session.refresh(route)
        return route
    return _create

@pytest.fixture()
def industry_factory(db_session):
    def _create(name: str | None = None, subcategories: tuple[str, ...] = ()):
        industry = Industry(name=name or f"Industry {secrets.token_hex(3)}")
        industry.subcategories = [IndustrySubcategory(name=s) for s in subcategories]
        db_session.add(industry)
        db_session.commit()
        db_session.refresh(industry)
        return industry
    return _create

@pytest.fixture()
def other_industry(db_session):
    existing = db_session.query(Industry).filter_by(name="Other").first()
    if existing:
        return existing
    industry = Industry(name="Other", description="Anything without a dedicated category")
    db_session.add(industry)
    db_session.commit()
    db_session.refresh(industry)
    return industry

@pytest.fixture()
def campaign_factory(db_session):
    def _create(
        *,
        status: CampaignStatus = CampaignStatus.BOOKING_OPEN,
        days_to_deadline: float | None = 30,
        total_slots: int = 0,
        base_slot_price: int | None = None,
        additional_slot_price: int | None = None,
        routes: list[Route] | None = None,
        industries: list[Industry] | None = None,
    ):
        deadline = utc_now() + timedelta(days=days_to_deadline) if days_to_deadline is not None else None
        mail_date = (deadline.date() if deadline else date.today()) + timedelta(days=14)
        campaign = Campaign(
            name=f"Campaign {secrets.token_hex(4)}",
            mail_date=mail_date,
            print_deadline=deadline,
            status=status,
            total_slots=total_slots,
            base_slot_price=base_slot_price,
            additional_slot_price=additional_slot_price,
        )
        campaign.routes = routes or []
        campaign.industries = industries or []
        db_session.add(campaign)
        db_session.commit()
        db_session.refresh(campaign)
        return campaign
    return _create

@pytest.fixture()
def rule_factory(db_session):
    """Rules are always campaign- or user-scoped here so they never leak into other tests."""
    def _create(rule_type: RuleType, value: int, *, campaign_id: int | None = None, user_id: int | None = None,
                priority: int = 100, additional_value: int | None = None, usage_limit: int | None = None):
        assert campaign_id is not None or user_id is not None
        rule = PricingRule(
            rule_type=rule_type,
            value=value,
            additional_value=additional_value,
            priority=priority,
            campaign_id=campaign_id,
            user_id=user_id,
            usage_limit=usage_limit,
        )
        db_session.add(rule)
        db_session.commit()
        db_session.refresh(rule)
        return rule
    return _create

@pytest.fixture()
def slot(route_factory, industry_factory, campaign_factory):
    """A bookable (campaign, route, industry) triple with no subcategories."""
    route = route_factory()
    industry = industry_factory()
    campaign = campaign_factory()
    return campaign, route, industry
