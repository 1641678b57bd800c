"""
Unit tests for checkout consumption, subscription activation,
reconciliation and webhook handling. Stripe is replaced by
monkeypatching stripe_service.
"""
from datetime import datetime, timedelta

import pytest

from fieldjobs.core.errors import ConflictError, PermissionDenied, ValidationError
from fieldjobs.db.models.ledger import CreditPurchase, JobFeaturePurchase
from fieldjobs.db.models.subscription import Subscription
from fieldjobs.services import billing_service, stripe_service
from fieldjobs.services.credit_service import consume_credits, get_balance
from conftest import make_job, make_profile, make_subscription, provider_subscription


@pytest.fixture
def employer(db):
    profile = make_profile(db, "boss@acme.com", "employer", stripe_customer_id="cus_test")
    return profile


def paid_session(session_id, metadata, mode="payment", subscription=None, amount_total=None):
    return {
        "id": session_id,
        "url": None,
        "mode": mode,
        "status": "complete",
        "payment_status": "paid",
        "customer": "cus_test",
        "subscription": subscription,
        "amount_total": amount_total,
        "metadata": metadata,
    }


@pytest.fixture
def stripe_calls(monkeypatch):
    """Record Stripe cancellations; sessions and subscriptions are registered per test."""
    calls = {"sessions": {}, "subscriptions": {}, "cancelled": []}

    monkeypatch.setattr(stripe_service, "retrieve_checkout_session", lambda sid: calls["sessions"][sid])
    monkeypatch.setattr(stripe_service, "retrieve_subscription", lambda sid: dict(calls["subscriptions"][sid]))

    def cancel(sid):
        calls["cancelled"].append(sid)
        return {"id": sid, "status": "canceled"}

    monkeypatch.setattr(stripe_service, "cancel_subscription", cancel)
    return calls


def active_rows(db, user_id):
    db.expire_all()
    return db.query(Subscription).filter(Subscription.user_id == user_id, Subscription.status == "active").all()


def test_job_feature_session_features_job_for_30_days(db, employer, stripe_calls):
    job = make_job(db, employer)
    stripe_calls["sessions"]["cs_test_1"] = paid_session(
        "cs_test_1", {"type": "job_feature", "user_id": str(employer.id), "job_id": str(job.id), "addon_type": "featured"}
    )
    before = datetime.utcnow()

    result = billing_service.process_checkout_session(db, "cs_test_1")

    db.refresh(job)
    assert result["already_processed"] is False
    assert job.is_featured is True
    assert before + timedelta(days=30) <= job.featured_until <= datetime.utcnow() + timedelta(days=30)


def test_job_feature_session_is_idempotent(db, employer, stripe_calls):
    job = make_job(db, employer)
    stripe_calls["sessions"]["cs_test_1"] = paid_session(
        "cs_test_1", {"type": "job_feature", "user_id": str(employer.id), "job_id": str(job.id), "addon_type": "urgent"}
    )

    billing_service.process_checkout_session(db, "cs_test_1")
    db.refresh(job)
    first_until = job.urgent_until

    again = billing_service.process_checkout_session(db, "cs_test_1")

    db.refresh(job)
    assert again["already_processed"] is True
    assert job.urgent_until == first_until
    assert db.query(JobFeaturePurchase).count() == 1


def test_unpaid_session_is_rejected(db, employer, stripe_calls):
    session = paid_session("cs_unpaid", {"type": "credit_purchase", "user_id": str(employer.id), "package_type": "small"})
    session["payment_status"] = "unpaid"
    stripe_calls["sessions"]["cs_unpaid"] = session

    with pytest.raises(ValidationError):
        billing_service.process_checkout_session(db, "cs_unpaid")

    assert db.query(CreditPurchase).count() == 0


def test_session_of_another_user(db, employer, stripe_calls):
    stripe_calls["sessions"]["cs_other"] = paid_session(
        "cs_other", {"type": "credit_purchase", "user_id": str(employer.id), "package_type": "small"}
    )

    with pytest.raises(PermissionDenied):
        billing_service.process_checkout_session(db, "cs_other", requester_id=employer.id + 1)


def test_credit_session_adds_purchased_credits(db, employer, stripe_calls):
    stripe_calls["sessions"]["cs_credits"] = paid_session(
        "cs_credits", {"type": "credit_purchase", "user_id": str(employer.id), "package_type": "medium"},
        amount_total=7900,
    )

    first = billing_service.process_checkout_session(db, "cs_credits")
    second = billing_service.process_checkout_session(db, "cs_credits")

    assert first["credits_added"] == 25
    assert first["already_processed"] is False
    assert second["already_processed"] is True
    assert get_balance(db, employer.id)["purchased_credits"] == 25


def test_activation_leaves_one_active_subscription(db, employer, stripe_calls):
    make_subscription(
        db, employer.id, "starter", stripe_subscription_id="sub_old",
        created_at=datetime.utcnow() - timedelta(days=40),
    )
    stripe_calls["subscriptions"]["sub_new"] = provider_subscription("sub_new", "growth")
    stripe_calls["sessions"]["cs_sub"] = paid_session(
        "cs_sub", {"type": "subscription", "user_id": str(employer.id), "plan_type": "growth"},
        mode="subscription", subscription="sub_new",
    )

    result = billing_service.process_checkout_session(db, "cs_sub")

    rows = active_rows(db, employer.id)
    assert result["plan_type"] == "growth"
    assert [r.stripe_subscription_id for r in rows] == ["sub_new"]
    old = db.query(Subscription).filter(Subscription.stripe_subscription_id == "sub_old").one()
    assert old.status == "replaced"
    assert stripe_calls["cancelled"] == ["sub_old"]
    assert get_balance(db, employer.id)["monthly_credits"] == 5


def test_activation_twice_is_a_no_op(db, employer, stripe_calls):
    stripe_calls["subscriptions"]["sub_new"] = provider_subscription("sub_new", "growth")
    stripe_calls["sessions"]["cs_sub"] = paid_session(
        "cs_sub", {"type": "subscription", "user_id": str(employer.id), "plan_type": "growth"},
        mode="subscription", subscription="sub_new",
    )

    billing_service.process_checkout_session(db, "cs_sub")
    again = billing_service.process_checkout_session(db, "cs_sub")

    assert again["already_processed"] is True
    assert len(active_rows(db, employer.id)) == 1


def test_subscription_created_webhook_before_checkout_grants_credits(db, employer, stripe_calls, monkeypatch):
    # Free-tier visits already created an empty balance row
    assert get_balance(db, employer.id)["monthly_credits"] == 0

    stripe_calls["subscriptions"]["sub_new"] = provider_subscription("sub_new", "growth")
    stripe_calls["sessions"]["cs_sub"] = paid_session(
        "cs_sub", {"type": "subscription", "user_id": str(employer.id), "plan_type": "growth"},
        mode="subscription", subscription="sub_new",
    )
    monkeypatch.setattr(
        stripe_service, "list_active_subscriptions", lambda customer_id: [provider_subscription("sub_new", "growth")]
    )
    event = {
        "id": "evt_created",
        "type": "customer.subscription.created",
        "data": {"object": {"id": "sub_new", "customer": "cus_test"}},
    }

    billing_service.handle_webhook_event(db, event)
    result = billing_service.process_checkout_session(db, "cs_sub")

    balance = get_balance(db, employer.id)
    assert result["already_processed"] is True
    assert balance["monthly_credits"] == 5
    assert balance["credits"] == 5


def test_reconcile_of_unchanged_subscription_keeps_spent_credits(db, employer, monkeypatch):
    monkeypatch.setattr(
        stripe_service, "list_active_subscriptions", lambda customer_id: [provider_subscription("sub_live", "growth")]
    )
    billing_service.reconcile_subscriptions(db, employer.id)
    consume_credits(db, employer.id, 2, reason="test")

    billing_service.reconcile_subscriptions(db, employer.id)

    assert get_balance(db, employer.id)["monthly_credits"] == 3


def test_reconcile_keeps_newest_provider_subscription(db, employer, monkeypatch):
    make_subscription(db, employer.id, "starter", stripe_subscription_id="sub_stale")
    now = datetime.utcnow()
    monkeypatch.setattr(stripe_service, "list_active_subscriptions", lambda customer_id: [
        provider_subscription("sub_b", "professional", created=now),
        provider_subscription("sub_a", "growth", created=now - timedelta(days=3)),
    ])

    result = billing_service.reconcile_subscriptions(db, employer.id)
    again = billing_service.reconcile_subscriptions(db, employer.id)

    rows = active_rows(db, employer.id)
    assert [r.stripe_subscription_id for r in rows] == ["sub_b"]
    assert rows[0].plan_type == "professional"
    assert result["replaced"] == 1
    assert result["extra_provider_subscriptions"] == ["sub_a"]
    assert again["replaced"] == 0


def test_reconcile_cancels_rows_stripe_does_not_know(db, employer, monkeypatch):
    make_subscription(db, employer.id, "growth", stripe_subscription_id="sub_gone")
    monkeypatch.setattr(stripe_service, "list_active_subscriptions", lambda customer_id: [])

    result = billing_service.reconcile_subscriptions(db, employer.id)

    assert result["cancelled"] == 1
    assert active_rows(db, employer.id) == []


def test_reconcile_repairs_customer_id(db, monkeypatch):
    profile = make_profile(db, "lost@acme.com", "employer")
    monkeypatch.setattr(stripe_service, "find_customer_by_email", lambda email: "cus_found")
    monkeypatch.setattr(stripe_service, "list_active_subscriptions", lambda customer_id: [
        provider_subscription("sub_found", "starter", customer_id),
    ])

    result = billing_service.reconcile_subscriptions(db, profile.id)

    db.refresh(profile)
    assert result["customer_repaired"] is True
    assert profile.stripe_customer_id == "cus_found"
    assert result["plan_type"] == "starter"


def test_reconcile_all_counts_failures(db, employer, monkeypatch):
    make_profile(db, "second@acme.com", "employer", stripe_customer_id="cus_broken")

    def listing(customer_id):
        if customer_id == "cus_broken":
            raise ValidationError("boom")
        return [provider_subscription("sub_ok", "starter", customer_id)]

    monkeypatch.setattr(stripe_service, "list_active_subscriptions", listing)

    result = billing_service.reconcile_all_subscriptions(db)

    assert result["processed"] == 2
    assert result["succeeded"] == 1
    assert len(result["failed"]) == 1


def test_subscription_checkout_refused_with_active_plan(db, employer, monkeypatch):
    make_subscription(db, employer.id, "starter", stripe_subscription_id="sub_live")
    monkeypatch.setattr(stripe_service, "get_price_id_for_plan", lambda plan: "price_growth")

    with pytest.raises(ConflictError):
        billing_service.create_subscription_checkout(db, employer, "growth")


def test_subscription_checkout_metadata(db, employer, monkeypatch):
    captured = {}
    monkeypatch.setattr(stripe_service, "get_price_id_for_plan", lambda plan: "price_growth")
    monkeypatch.setattr(stripe_service, "list_active_subscriptions", lambda customer_id: [])

    def create(**kwargs):
        captured.update(kwargs)
        return {"id": "cs_new", "url": "https://checkout.stripe.com/c/cs_new"}

    monkeypatch.setattr(stripe_service, "create_checkout_session", create)

    result = billing_service.create_subscription_checkout(db, employer, "growth")

    assert result == {"session_id": "cs_new", "url": "https://checkout.stripe.com/c/cs_new"}
    assert captured["mode"] == "subscription"
    assert captured["metadata"]["plan_type"] == "growth"
    assert captured["success_url"].endswith("session_id={CHECKOUT_SESSION_ID}")


def test_webhook_subscription_deleted(db, employer):
    make_subscription(db, employer.id, "growth", stripe_subscription_id="sub_live")
    event = {"id": "evt_1", "type": "customer.subscription.deleted", "data": {"object": {"id": "sub_live"}}}

    result = billing_service.handle_webhook_event(db, event)

    row = db.query(Subscription).filter(Subscription.stripe_subscription_id == "sub_live").one()
    assert result["handled"] is True
    assert row.status == "cancelled"
    assert row.cancelled_at is not None


def test_webhook_payment_failed_marks_past_due(db, employer):
    make_subscription(db, employer.id, "growth", stripe_subscription_id="sub_live")
    event = {"id": "evt_2", "type": "invoice.payment_failed", "data": {"object": {"subscription": "sub_live"}}}

    billing_service.handle_webhook_event(db, event)

    row = db.query(Subscription).filter(Subscription.stripe_subscription_id == "sub_live").one()
    assert row.status == "past_due"


def test_webhook_unpaid_checkout_is_skipped(db, employer):
    event = {
        "id": "evt_3",
        "type": "checkout.session.completed",
        "data": {"object": {"id": "cs_async", "payment_status": "unpaid"}},
    }

    result = billing_service.handle_webhook_event(db, event)

    assert result == {"received": True, "handled": False}


def test_webhook_unknown_event_acknowledged(db):
    result = billing_service.handle_webhook_event(db, {"id": "evt_4", "type": "charge.refunded", "data": {"object": {}}})

    assert result["received"] is True
    assert result["handled"] is False


def test_cancel_sets_cancel_at_period_end(db, employer, monkeypatch):
    sub = make_subscription(db, employer.id, "growth", stripe_subscription_id="sub_live")
    period_end = datetime(2030, 1, 1)
    monkeypatch.setattr(
        stripe_service, "set_cancel_at_period_end",
        lambda sid, flag: {"id": sid, "current_period_end": period_end, "cancel_at_period_end": flag},
    )

    result = billing_service.cancel_subscription(db, employer)

    db.refresh(sub)
    assert result["cancel_at_period_end"] is True
    assert sub.status == "active"
    assert sub.current_period_end == period_end


def test_change_plan(db, employer, monkeypatch):
    make_subscription(db, employer.id, "starter", stripe_subscription_id="sub_live")
    monkeypatch.setattr(stripe_service, "get_price_id_for_plan", lambda plan: f"price_{plan}")
    monkeypatch.setattr(stripe_service, "retrieve_subscription", lambda sid: provider_subscription(sid, "starter"))
    monkeypatch.setattr(
        stripe_service, "change_subscription_price",
        lambda sid, item_id, price_id, plan_type: provider_subscription(sid, plan_type),
    )

    result = billing_service.change_plan(db, employer, "professional")

    rows = active_rows(db, employer.id)
    assert result == {"plan_type": "professional", "previous_plan": "starter", "subscription_id": "sub_live"}
    assert len(rows) == 1
    assert rows[0].active_jobs_limit == 15
    assert get_balance(db, employer.id)["monthly_credits"] == 25
