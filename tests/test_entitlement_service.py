"""
Unit tests for the entitlement resolver.
Tests plan resolution, job limits, monthly credit refresh and lazy
materialization from Stripe.
"""
from datetime import datetime, timedelta

import pytest
import stripe
from sqlalchemy import insert

from fieldjobs.core.errors import JobLimitReached
from fieldjobs.db.models.credit import CreditBalance
from fieldjobs.db.models.subscription import Subscription
from fieldjobs.services import entitlement_service, stripe_service
from fieldjobs.services.entitlement_service import (
    count_active_jobs,
    ensure_can_post_job,
    get_credit_balance,
    get_current_plan,
    resolve_entitlements,
)
from conftest import make_job, make_profile, make_subscription, provider_subscription


@pytest.fixture
def employer(db):
    return make_profile(db, "boss@acme.com", "employer")


def test_no_subscription_is_free_tier(db, employer):
    result = resolve_entitlements(db, employer.id)

    assert result["plan_type"] == "free"
    assert result["status"] == "inactive"
    assert result["active_jobs_limit"] == 0
    assert result["credits"] == 0
    assert result["subscription"] is None


def test_growth_plan_entitlements(db, employer):
    make_subscription(db, employer.id, "growth", stripe_subscription_id="sub_growth")
    make_job(db, employer)

    result = resolve_entitlements(db, employer.id)

    assert result["plan_type"] == "growth"
    assert result["status"] == "active"
    assert result["active_jobs_limit"] == 6
    assert result["active_jobs"] == 1
    assert result["monthly_credits"] == 5
    assert result["credits"] == 5


def test_enterprise_is_unlimited(db, employer):
    make_subscription(db, employer.id, "enterprise")
    for i in range(20):
        make_job(db, employer, title=f"Job {i}")

    assert ensure_can_post_job(db, employer.id) == "enterprise"


def test_latest_active_subscription_wins(db, employer):
    old = make_subscription(
        db, employer.id, "starter", stripe_subscription_id="sub_old",
        created_at=datetime.utcnow() - timedelta(days=60), status="replaced",
    )
    make_subscription(db, employer.id, "professional", stripe_subscription_id="sub_new")

    plan, sub = get_current_plan(db, employer.id)

    assert plan == "professional"
    assert sub.stripe_subscription_id == "sub_new"
    assert old.status == "replaced"


def test_monthly_refresh_after_30_days(db, employer):
    make_subscription(db, employer.id, "growth")
    now = datetime.utcnow()
    db.add(CreditBalance(
        user_id=employer.id,
        monthly_credits=1,
        purchased_credits=4,
        last_monthly_refresh=now - timedelta(days=30),
    ))
    db.commit()

    balance = get_credit_balance(db, employer.id, "growth", now=now)

    assert balance.monthly_credits == 5
    assert balance.purchased_credits == 4
    assert balance.last_monthly_refresh == now


def test_no_refresh_before_30_days(db, employer):
    now = datetime.utcnow()
    db.add(CreditBalance(
        user_id=employer.id,
        monthly_credits=1,
        purchased_credits=0,
        last_monthly_refresh=now - timedelta(days=29),
    ))
    db.commit()

    balance = get_credit_balance(db, employer.id, "growth", now=now)

    assert balance.monthly_credits == 1


def test_concurrent_first_read_reuses_existing_balance(db, employer, monkeypatch):
    now = datetime.utcnow()
    begin_nested = db.begin_nested

    def other_request_inserts_first():
        db.execute(insert(CreditBalance).values(
            user_id=employer.id,
            monthly_credits=3,
            purchased_credits=1,
            last_monthly_refresh=now,
            updated_at=now,
        ))
        return begin_nested()

    monkeypatch.setattr(db, "begin_nested", other_request_inserts_first)

    balance = get_credit_balance(db, employer.id, "growth", now=now)

    assert balance.monthly_credits == 3
    assert balance.purchased_credits == 1
    assert db.query(CreditBalance).filter(CreditBalance.user_id == employer.id).count() == 1


def test_starter_limit_blocks_fourth_job(db, employer):
    make_subscription(db, employer.id, "starter")
    for i in range(3):
        make_job(db, employer, title=f"Job {i}")

    with pytest.raises(JobLimitReached) as exc_info:
        ensure_can_post_job(db, employer.id)

    assert exc_info.value.status_code == 402
    assert "3" in exc_info.value.details


def test_paused_and_free_jobs_do_not_count(db, employer):
    make_subscription(db, employer.id, "starter")
    make_job(db, employer, title="Paused", status="paused", active=False)
    make_job(db, employer, title="Free", is_free_job=True)
    make_job(db, employer, title="Live")

    assert count_active_jobs(db, employer.id) == 1
    assert ensure_can_post_job(db, employer.id) == "starter"


def test_free_tier_cannot_post(db, employer):
    with pytest.raises(JobLimitReached) as exc_info:
        ensure_can_post_job(db, employer.id)

    assert "subscription" in exc_info.value.message


def test_materializes_subscription_from_stripe(db, employer, monkeypatch):
    employer.stripe_customer_id = "cus_test"
    db.commit()

    monkeypatch.setattr(stripe_service, "is_configured", lambda: True)
    monkeypatch.setattr(
        stripe_service, "list_active_subscriptions",
        lambda customer_id: [provider_subscription("sub_live", "professional", customer_id)],
    )

    plan, sub = get_current_plan(db, employer.id)

    assert plan == "professional"
    assert sub.stripe_subscription_id == "sub_live"
    assert db.query(Subscription).filter(Subscription.status == "active").count() == 1


def test_materialized_subscription_starts_monthly_cycle(db, employer, monkeypatch):
    employer.stripe_customer_id = "cus_test"
    db.add(CreditBalance(user_id=employer.id, monthly_credits=0, purchased_credits=2, last_monthly_refresh=datetime.utcnow()))
    db.commit()

    monkeypatch.setattr(stripe_service, "is_configured", lambda: True)
    monkeypatch.setattr(
        stripe_service, "list_active_subscriptions",
        lambda customer_id: [provider_subscription("sub_live", "growth", customer_id)],
    )

    plan, _ = get_current_plan(db, employer.id)
    balance = get_credit_balance(db, employer.id, plan)

    assert balance.monthly_credits == 5
    assert balance.purchased_credits == 2


def test_provider_failure_means_free_tier(db, employer, monkeypatch):
    employer.stripe_customer_id = "cus_test"
    db.commit()

    def broken(customer_id):
        raise stripe.APIConnectionError("network down")

    monkeypatch.setattr(stripe_service, "is_configured", lambda: True)
    monkeypatch.setattr(stripe_service, "list_active_subscriptions", broken)

    plan, sub = entitlement_service.get_current_plan(db, employer.id)

    assert plan == "free"
    assert sub is None
