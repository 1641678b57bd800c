"""
Shared fixtures: a fresh in-memory database per test and a TestClient
wired to it.
"""
from datetime import datetime, timedelta

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from fieldjobs.main import app
from fieldjobs.db.base import Base
from fieldjobs.db import models  # noqa: F401  registers every table
from fieldjobs.db.models.credit import CreditBalance
from fieldjobs.db.models.job import Job
from fieldjobs.db.models.profile import Profile
from fieldjobs.db.models.subscription import Subscription
from fieldjobs.core.auth_dependency import get_db
from fieldjobs.core.plan_limits import get_plan_limits
from fieldjobs.core.security import create_access_token


# Setup in-memory SQLite database for testing
TEST_DATABASE_URL = "sqlite:///:memory:"
test_engine = create_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=test_engine)


def override_get_db():
    """Override get_db dependency for testing."""
    db = TestSessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture(scope="function")
def db():
    """Create a fresh database for each test."""
    Base.metadata.create_all(bind=test_engine)
    db = TestSessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=test_engine)


@pytest.fixture
def client(db):
    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


def make_profile(db, email, account_type="job_seeker", **fields):
    defaults = {
        "first_name": "Test",
        "last_name": "User",
        "phone": "555-0100",
    }
    if account_type == "employer":
        defaults["company_name"] = "Acme Electrical"
    defaults.update(fields)
    profile = Profile(email=email, account_type=account_type, **defaults)
    db.add(profile)
    db.commit()
    db.refresh(profile)
    return profile


def make_subscription(db, user_id, plan_type="starter", stripe_subscription_id=None, created_at=None, **fields):
    limits = get_plan_limits(plan_type)
    subscription = Subscription(
        user_id=user_id,
        plan_type=plan_type,
        status=fields.pop("status", "active"),
        active_jobs_limit=limits["active_jobs_limit"],
        monthly_credits=limits["monthly_credits"],
        price=limits["price"],
        stripe_subscription_id=stripe_subscription_id,
        created_at=created_at or datetime.utcnow(),
        **fields,
    )
    db.add(subscription)
    db.commit()
    db.refresh(subscription)
    return subscription


def make_job(db, employer, title="Journeyman Electrician", age_days=0, **fields):
    created = datetime.utcnow() - timedelta(days=age_days)
    values = {
        "employer_id": employer.id,
        "title": title,
        "company": employer.company_name or "Acme Electrical",
        "region": "Houston, TX",
        "hourly_rate": "$45/hr",
        "description": "Commercial wiring and panel work",
        "contact_email": employer.email,
        "job_type": "project-hire",
        "status": "active",
        "active": True,
        "expiry_date": created + timedelta(days=30),
        "created_at": created,
        "updated_at": created,
    }
    values.update(fields)
    job = Job(**values)
    db.add(job)
    db.commit()
    db.refresh(job)
    return job


def give_credits(db, user_id, monthly=0, purchased=0):
    balance = CreditBalance(
        user_id=user_id,
        monthly_credits=monthly,
        purchased_credits=purchased,
        last_monthly_refresh=datetime.utcnow(),
    )
    db.add(balance)
    db.commit()
    return balance


def auth_headers(email, account_type="job_seeker"):
    token = create_access_token({"sub": email, "account_type": account_type})
    return {"Authorization": f"Bearer {token}"}


def provider_subscription(sub_id, plan_type="growth", customer="cus_test", created=None):
    """A subscription in the shape stripe_service.normalize_subscription returns."""
    now = created or datetime.utcnow()
    return {
        "id": sub_id,
        "customer": customer,
        "status": "active",
        "price_id": f"price_{plan_type}",
        "item_id": f"si_{sub_id}",
        "plan_type": plan_type,
        "metadata": {"plan_type": plan_type},
        "created": now,
        "current_period_start": now,
        "current_period_end": now + timedelta(days=30),
        "cancel_at_period_end": False,
    }
