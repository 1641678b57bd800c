"""
Local subscription rows.

At most one row per user is `active` (partial unique index). Every write
that makes a row active first retires the user's other active rows and
flushes, inside the caller's transaction. A row that becomes active, or
changes plan, starts a new monthly credit cycle.
"""
import logging
from datetime import datetime
from typing import Optional, Dict, Any, List, Tuple

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from fieldjobs.core.errors import ValidationError
from fieldjobs.core.plan_limits import FREE_PLAN, normalize_plan, get_plan_limits, get_monthly_credits
from fieldjobs.db.models.credit import CreditBalance, CreditTransaction
from fieldjobs.db.models.subscription import Subscription

logger = logging.getLogger(__name__)


def get_active_subscription(db: Session, user_id: int) -> Optional[Subscription]:
    """Latest active subscription row, by creation time."""
    return (
        db.query(Subscription)
        .filter(Subscription.user_id == user_id, Subscription.status == "active")
        .order_by(Subscription.created_at.desc(), Subscription.id.desc())
        .first()
    )


def list_active_subscriptions(db: Session, user_id: int) -> List[Subscription]:
    return (
        db.query(Subscription)
        .filter(Subscription.user_id == user_id, Subscription.status == "active")
        .order_by(Subscription.created_at.desc(), Subscription.id.desc())
        .all()
    )


def retire_active_subscriptions(
    db: Session,
    user_id: int,
    status: str,
    keep_id: Optional[int] = None,
    now: Optional[datetime] = None,
) -> List[Subscription]:
    """Move every active row of the user except `keep_id` to `status`."""
    now = now or datetime.utcnow()
    retired = []
    for row in list_active_subscriptions(db, user_id):
        if keep_id is not None and row.id == keep_id:
            continue
        row.status = status
        row.updated_at = now
        if status == "cancelled":
            row.cancelled_at = now
        retired.append(row)

    if retired:
        db.flush()
        logger.info(f"Retired {len(retired)} subscription row(s) as {status}: user_id={user_id}")
    return retired


def reset_monthly_allotment(db: Session, user_id: int, plan_type: str, now: Optional[datetime] = None) -> CreditBalance:
    """Start a new monthly cycle at the plan's allotment. Purchased credits are kept; flushed only."""
    now = now or datetime.utcnow()
    query = db.query(CreditBalance).filter(CreditBalance.user_id == user_id).with_for_update()
    balance = query.first()
    if balance is None:
        balance = CreditBalance(user_id=user_id, monthly_credits=0, purchased_credits=0, last_monthly_refresh=now)
        try:
            with db.begin_nested():
                db.add(balance)
                db.flush()
        except IntegrityError:
            balance = query.one()

    allotment = get_monthly_credits(plan_type)
    delta = allotment - (balance.monthly_credits or 0)
    balance.monthly_credits = allotment
    balance.last_monthly_refresh = now
    if delta:
        db.add(CreditTransaction(
            user_id=user_id,
            delta=delta,
            monthly_delta=delta,
            purchased_delta=0,
            reason=f"plan:{plan_type}",
        ))
    db.flush()

    logger.info(f"Monthly credit cycle started: user_id={user_id}, plan={plan_type}, monthly={allotment}")
    return balance


def upsert_active_subscription(
    db: Session,
    user_id: int,
    provider_sub: Dict[str, Any],
    customer_id: Optional[str] = None,
    now: Optional[datetime] = None,
) -> Tuple[Subscription, List[Subscription]]:
    """
    Make the given provider subscription the user's only active row.

    Args:
        provider_sub: normalized subscription from stripe_service
        customer_id: Stripe customer id, defaults to the subscription's customer

    Returns:
        (active row, rows retired as `replaced`). Nothing is committed.
    """
    now = now or datetime.utcnow()
    plan_type = normalize_plan(provider_sub.get("plan_type"))
    if plan_type == FREE_PLAN:
        raise ValidationError(
            "Unknown plan for subscription",
            details=f"subscription_id={provider_sub.get('id')}",
        )

    existing = None
    already_active = False
    if provider_sub.get("id"):
        existing = (
            db.query(Subscription)
            .filter(Subscription.stripe_subscription_id == provider_sub["id"])
            .first()
        )
        already_active = (
            existing is not None
            and existing.user_id == user_id
            and existing.status == "active"
            and existing.plan_type == plan_type
        )
        if existing is not None and existing.user_id != user_id:
            logger.warning(
                f"Stripe subscription {provider_sub['id']} moved from user_id={existing.user_id} to user_id={user_id}"
            )
            existing.user_id = user_id

    replaced = retire_active_subscriptions(
        db, user_id, "replaced", keep_id=existing.id if existing is not None else None, now=now
    )

    row = existing
    if row is None:
        row = Subscription(user_id=user_id, stripe_subscription_id=provider_sub.get("id"), created_at=now)
        db.add(row)

    limits = get_plan_limits(plan_type)
    row.plan_type = plan_type
    row.status = "active"
    row.active_jobs_limit = limits["active_jobs_limit"]
    row.monthly_credits = limits["monthly_credits"]
    row.price = limits["price"]
    row.stripe_customer_id = customer_id or provider_sub.get("customer") or row.stripe_customer_id
    row.current_period_start = provider_sub.get("current_period_start") or row.current_period_start or now
    row.current_period_end = provider_sub.get("current_period_end") or row.current_period_end
    row.cancel_at_period_end = bool(provider_sub.get("cancel_at_period_end"))
    row.cancelled_at = None
    row.updated_at = now
    db.flush()

    if not already_active:
        reset_monthly_allotment(db, user_id, plan_type, now=now)

    logger.info(
        f"Active subscription upserted: user_id={user_id}, plan={plan_type}, "
        f"subscription_id={provider_sub.get('id')}, replaced={len(replaced)}"
    )
    return row, replaced
