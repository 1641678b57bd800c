"""
Entitlement resolver.

Computes a user's plan, active-job limit and credit balance from the
subscription and credit-ledger rows. Missing data means the free tier,
never an error.
"""
import logging
from datetime import datetime, timedelta
from typing import Optional, Dict, Any, Tuple

import stripe
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from fieldjobs.core.errors import AppError, JobLimitReached
from fieldjobs.core.plan_limits import (
    FREE_PLAN,
    MONTHLY_REFRESH_DAYS,
    get_active_jobs_limit,
    get_monthly_credits,
    has_unlimited_jobs,
    normalize_plan,
)
from fieldjobs.db.models.credit import CreditBalance
from fieldjobs.db.models.job import Job
from fieldjobs.db.models.profile import Profile
from fieldjobs.db.models.subscription import Subscription
from fieldjobs.services import stripe_service
from fieldjobs.services.subscription_service import get_active_subscription, upsert_active_subscription

logger = logging.getLogger(__name__)


def materialize_subscription(db: Session, user_id: int) -> Optional[Subscription]:
    """
    Self-healing read: build the local active row from Stripe.

    Used when no active row exists but the profile has a Stripe customer id.
    Provider failures are logged and treated as "no subscription".
    """
    profile = db.query(Profile).filter(Profile.id == user_id).first()
    if not profile or not profile.stripe_customer_id or not stripe_service.is_configured():
        return None

    try:
        provider_subs = stripe_service.list_active_subscriptions(profile.stripe_customer_id)
    except (stripe.StripeError, AppError) as e:
        logger.warning(f"Could not read Stripe subscriptions for user_id={user_id}: {e}")
        return None

    for provider_sub in provider_subs:
        if not provider_sub.get("plan_type"):
            logger.warning(f"Skipping Stripe subscription with unknown plan: {provider_sub.get('id')}")
            continue
        try:
            row, _ = upsert_active_subscription(db, user_id, provider_sub, profile.stripe_customer_id)
            db.commit()
        except IntegrityError:
            # A concurrent request materialized it first
            db.rollback()
            return get_active_subscription(db, user_id)
        logger.info(f"Materialized subscription from Stripe: user_id={user_id}, plan={row.plan_type}")
        return row

    return None


def get_current_plan(db: Session, user_id: int) -> Tuple[str, Optional[Subscription]]:
    """
    Get the user's plan type and active subscription row.

    Returns:
        ("free", None) when the user has no active subscription
    """
    subscription = get_active_subscription(db, user_id)
    if subscription is None:
        subscription = materialize_subscription(db, user_id)
    if subscription is None:
        return FREE_PLAN, None
    return normalize_plan(subscription.plan_type), subscription


def get_credit_balance(
    db: Session,
    user_id: int,
    plan_type: str,
    now: Optional[datetime] = None,
    for_update: bool = False,
) -> CreditBalance:
    """
    Read (or create) the credit ledger row, refreshing the monthly pool.

    The monthly pool resets to the plan's allotment once 30 days have passed
    since the last refresh. Purchased credits are never touched. Changes are
    flushed, not committed.
    """
    now = now or datetime.utcnow()
    query = db.query(CreditBalance).filter(CreditBalance.user_id == user_id)
    if for_update:
        query = query.with_for_update()
    balance = query.first()

    allotment = get_monthly_credits(plan_type)

    if balance is None:
        balance = CreditBalance(
            user_id=user_id,
            monthly_credits=allotment,
            purchased_credits=0,
            last_monthly_refresh=now,
        )
        try:
            with db.begin_nested():
                db.add(balance)
                db.flush()
        except IntegrityError:
            # Concurrent first read created it; only the savepoint is undone
            logger.info(f"Credit balance already created: user_id={user_id}")
            return get_credit_balance(db, user_id, plan_type, now=now, for_update=for_update)
        logger.info(f"Credit balance created: user_id={user_id}, monthly={allotment}")
        return balance

    last_refresh = balance.last_monthly_refresh or balance.updated_at or now
    if now - last_refresh >= timedelta(days=MONTHLY_REFRESH_DAYS):
        logger.info(
            f"Monthly credits refreshed: user_id={user_id}, plan={plan_type}, "
            f"{balance.monthly_credits} -> {allotment}"
        )
        balance.monthly_credits = allotment
        balance.last_monthly_refresh = now
        db.flush()

    return balance


def count_active_jobs(db: Session, user_id: int, exclude_job_id: Optional[int] = None) -> int:
    """Active jobs counted against the plan limit; the free job has its own allotment."""
    query = db.query(Job).filter(
        Job.employer_id == user_id,
        Job.status == "active",
        Job.is_free_job.is_(False),
    )
    if exclude_job_id is not None:
        query = query.filter(Job.id != exclude_job_id)
    return query.count()


def ensure_can_post_job(db: Session, user_id: int, exclude_job_id: Optional[int] = None) -> str:
    """
    The one active-job limit check.

    Called by job creation and by every transition to `active`.

    Returns:
        The plan type the check ran against

    Raises:
        JobLimitReached: the employer is at or over the plan's limit
    """
    plan_type, _ = get_current_plan(db, user_id)
    if has_unlimited_jobs(plan_type):
        return plan_type
    limit = get_active_jobs_limit(plan_type)

    active_jobs = count_active_jobs(db, user_id, exclude_job_id=exclude_job_id)
    if active_jobs >= limit:
        logger.info(f"Job limit reached: user_id={user_id}, plan={plan_type}, active={active_jobs}, limit={limit}")
        if plan_type == FREE_PLAN:
            raise JobLimitReached(
                "An active subscription is required to post jobs",
                details="Post your free job or choose a plan",
            )
        raise JobLimitReached(details=f"{plan_type} plan allows {limit} active jobs")
    return plan_type


def resolve_entitlements(db: Session, user_id: int, now: Optional[datetime] = None) -> Dict[str, Any]:
    """
    Current entitlements of a user.

    Returns:
        plan_type, status ("inactive" without a subscription), active_jobs_limit
        (None = unlimited), active_jobs, credits, monthly_credits,
        purchased_credits, subscription (row or None)
    """
    plan_type, subscription = get_current_plan(db, user_id)
    balance = get_credit_balance(db, user_id, plan_type, now=now)
    db.commit()

    return {
        "plan_type": plan_type,
        "status": subscription.status if subscription else "inactive",
        "active_jobs_limit": get_active_jobs_limit(plan_type),
        "active_jobs": count_active_jobs(db, user_id),
        "credits": balance.total,
        "monthly_credits": balance.monthly_credits,
        "purchased_credits": balance.purchased_credits,
        "subscription": subscription,
    }
