"""
Billing service for Stripe integration.

Handles checkout sessions, session consumption, webhook events, plan
changes, and the single reconciliation routine that aligns local
subscription rows with Stripe.
"""
import logging
from datetime import datetime
from typing import Optional, Dict, Any, List

import stripe
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from fieldjobs.core import config
from fieldjobs.core.errors import (
    AppError,
    ConflictError,
    NotFoundError,
    PermissionDenied,
    ProviderNotConfigured,
    ValidationError,
)
from fieldjobs.core.logging_config import sanitize_log_data
from fieldjobs.core.plan_limits import CREDIT_PACKAGES, JOB_FEATURES, SUPPORTED_PLANS
from fieldjobs.db.models.job import Job
from fieldjobs.db.models.ledger import CreditPurchase, JobFeaturePurchase
from fieldjobs.db.models.profile import Profile
from fieldjobs.db.models.subscription import Subscription
from fieldjobs.services import stripe_service
from fieldjobs.services.credit_service import record_credit_purchase
from fieldjobs.services.job_service import apply_job_feature, get_owned_job
from fieldjobs.services.subscription_service import (
    get_active_subscription,
    list_active_subscriptions,
    retire_active_subscriptions,
    upsert_active_subscription,
)

logger = logging.getLogger(__name__)

SESSION_PLACEHOLDER = "{CHECKOUT_SESSION_ID}"


def _require_employer(profile: Profile) -> None:
    if not profile.is_employer:
        raise PermissionDenied("Employer account required")


def _success_url(path: str) -> str:
    separator = "&" if "?" in path else "?"
    return f"{config.BASE_URL}{path}{separator}session_id={SESSION_PLACEHOLDER}"


def ensure_customer(db: Session, profile: Profile) -> str:
    """Stripe customer id of the profile: stored, else found by email, else created."""
    if profile.stripe_customer_id:
        return profile.stripe_customer_id

    name = profile.company_name or profile.full_name
    customer_id = stripe_service.get_or_create_customer(profile.email, name, profile.id)
    profile.stripe_customer_id = customer_id
    db.commit()
    db.refresh(profile)
    logger.info(f"Stripe customer linked: user_id={profile.id}, customer_id={customer_id}")
    return customer_id


# ---------------------------------------------------------------------------
# Checkout creation
# ---------------------------------------------------------------------------

def create_subscription_checkout(db: Session, profile: Profile, plan_type: str) -> Dict[str, Any]:
    """Checkout for a plan; refused while the user already has an active subscription."""
    _require_employer(profile)
    plan_type = (plan_type or "").lower()
    if plan_type not in SUPPORTED_PLANS:
        raise ValidationError("Invalid plan type", details=f"plan must be one of: {', '.join(SUPPORTED_PLANS)}")

    price_id = stripe_service.get_price_id_for_plan(plan_type)
    if not price_id:
        raise ProviderNotConfigured(f"Stripe price for the {plan_type} plan is not configured")

    if get_active_subscription(db, profile.id):
        raise ConflictError(
            "You already have an active subscription",
            details="Use change-plan to switch plans",
        )

    customer_id = ensure_customer(db, profile)
    if stripe_service.list_active_subscriptions(customer_id):
        raise ConflictError(
            "You already have an active subscription",
            details="Run billing reconcile to sync it",
        )

    metadata = {"type": "subscription", "user_id": str(profile.id), "plan_type": plan_type}
    session = stripe_service.create_checkout_session(
        customer_id=customer_id,
        mode="subscription",
        line_items=[{"price": price_id, "quantity": 1}],
        metadata=metadata,
        success_url=_success_url("/employer?subscription=success"),
        cancel_url=f"{config.BASE_URL}/pricing?cancelled=1",
    )
    return {"session_id": session["id"], "url": session["url"]}


def create_job_feature_checkout(db: Session, profile: Profile, job_id: int, addon_type: str) -> Dict[str, Any]:
    _require_employer(profile)
    feature = JOB_FEATURES.get(addon_type)
    if not feature:
        raise ValidationError("Invalid feature type", details=f"feature must be one of: {', '.join(JOB_FEATURES)}")

    job = get_owned_job(db, job_id, profile)
    customer_id = ensure_customer(db, profile)

    metadata = {
        "type": "job_feature",
        "user_id": str(profile.id),
        "job_id": str(job.id),
        "addon_type": addon_type,
    }
    session = stripe_service.create_checkout_session(
        customer_id=customer_id,
        mode="payment",
        line_items=[{
            "price_data": {
                "currency": "usd",
                "product_data": {"name": feature["name"], "description": feature["description"]},
                "unit_amount": feature["price"],
            },
            "quantity": 1,
        }],
        metadata=metadata,
        success_url=_success_url("/employer?feature=success"),
        cancel_url=f"{config.BASE_URL}/employer?feature=cancelled",
    )
    return {"session_id": session["id"], "url": session["url"]}


def create_credit_checkout(db: Session, profile: Profile, package_type: str) -> Dict[str, Any]:
    _require_employer(profile)
    package = CREDIT_PACKAGES.get(package_type)
    if not package:
        raise ValidationError("Invalid package type", details=f"package must be one of: {', '.join(CREDIT_PACKAGES)}")

    customer_id = ensure_customer(db, profile)
    metadata = {
        "type": "credit_purchase",
        "user_id": str(profile.id),
        "package_type": package_type,
        "credits": str(package["credits"]),
    }
    session = stripe_service.create_checkout_session(
        customer_id=customer_id,
        mode="payment",
        line_items=[{
            "price_data": {
                "currency": "usd",
                "product_data": {
                    "name": f"{package['credits']} Resume Credits",
                    "description": "Credits to unlock job seeker resumes and contact details",
                },
                "unit_amount": package["price"],
            },
            "quantity": 1,
        }],
        metadata=metadata,
        success_url=_success_url("/employer?credits=success"),
        cancel_url=f"{config.BASE_URL}/employer?credits=cancelled",
    )
    return {"session_id": session["id"], "url": session["url"]}


# ---------------------------------------------------------------------------
# Session consumption
# ---------------------------------------------------------------------------

def _metadata_user_id(metadata: Dict[str, Any]) -> int:
    try:
        return int(metadata.get("user_id"))
    except (TypeError, ValueError):
        raise ValidationError("Checkout session is missing user metadata")


def _apply_job_feature_session(db: Session, session: Dict[str, Any], user_id: int) -> Dict[str, Any]:
    metadata = session["metadata"]
    feature = metadata.get("addon_type")
    try:
        job_id = int(metadata.get("job_id"))
    except (TypeError, ValueError):
        raise ValidationError("Checkout session is missing job metadata")

    existing = db.query(JobFeaturePurchase).filter(JobFeaturePurchase.stripe_session_id == session["id"]).first()
    if existing:
        return {"type": "job_feature", "already_processed": True, "job_id": existing.job_id, "feature": existing.feature_type}

    job = db.query(Job).filter(Job.id == job_id).first()
    if not job:
        raise NotFoundError("Job not found")
    if job.employer_id != user_id:
        raise PermissionDenied("Job does not belong to the paying user")

    apply_job_feature(db, job, feature)
    db.add(JobFeaturePurchase(user_id=user_id, job_id=job_id, feature_type=feature, stripe_session_id=session["id"]))
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        return {"type": "job_feature", "already_processed": True, "job_id": job_id, "feature": feature}

    logger.info(f"Job feature purchased: job_id={job_id}, feature={feature}, session_id={session['id']}")
    return {"type": "job_feature", "already_processed": False, "job_id": job_id, "feature": feature}


def _apply_credit_session(db: Session, session: Dict[str, Any], user_id: int) -> Dict[str, Any]:
    package_type = session["metadata"].get("package_type")
    already = (
        db.query(CreditPurchase).filter(CreditPurchase.stripe_session_id == session["id"]).first() is not None
    )
    purchase = record_credit_purchase(db, user_id, package_type, session["id"], session.get("amount_total"))
    return {
        "type": "credit_purchase",
        "already_processed": already,
        "package_type": purchase.package_type,
        "credits_added": purchase.credits_purchased,
    }


def activate_subscription(
    db: Session,
    user_id: int,
    subscription_id: str,
    customer_id: Optional[str] = None,
    plan_hint: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Make a newly paid Stripe subscription the user's only active one.

    Other active subscriptions are cancelled at Stripe (best effort) and
    their local rows become `replaced` in the same transaction as the upsert.
    """
    profile = db.query(Profile).filter(Profile.id == user_id).first()
    if not profile:
        raise NotFoundError("User not found for checkout session")

    current = (
        db.query(Subscription)
        .filter(Subscription.stripe_subscription_id == subscription_id, Subscription.status == "active")
        .first()
    )
    if current and current.user_id == user_id:
        return {
            "type": "subscription",
            "already_processed": True,
            "plan_type": current.plan_type,
            "subscription_id": subscription_id,
        }

    provider_sub = stripe_service.retrieve_subscription(subscription_id)
    if not provider_sub.get("plan_type") and plan_hint in SUPPORTED_PLANS:
        provider_sub["plan_type"] = plan_hint
    customer_id = customer_id or provider_sub.get("customer")

    for old in list_active_subscriptions(db, user_id):
        if old.stripe_subscription_id and old.stripe_subscription_id != subscription_id:
            try:
                stripe_service.cancel_subscription(old.stripe_subscription_id)
            except (stripe.StripeError, AppError) as e:
                logger.warning(f"Could not cancel replaced subscription {old.stripe_subscription_id}: {e}")

    try:
        row, replaced = upsert_active_subscription(db, user_id, provider_sub, customer_id)
        if customer_id and profile.stripe_customer_id != customer_id:
            profile.stripe_customer_id = customer_id
        db.commit()
    except IntegrityError:
        db.rollback()
        logger.info(f"Subscription activation raced: user_id={user_id}, subscription_id={subscription_id}")
        active = get_active_subscription(db, user_id)
        return {
            "type": "subscription",
            "already_processed": True,
            "plan_type": active.plan_type if active else None,
            "subscription_id": subscription_id,
        }

    logger.info(
        f"Subscription activated: user_id={user_id}, plan={row.plan_type}, "
        f"subscription_id={subscription_id}, replaced={len(replaced)}"
    )
    return {
        "type": "subscription",
        "already_processed": False,
        "plan_type": row.plan_type,
        "subscription_id": subscription_id,
    }


def process_checkout_session(db: Session, session_id: str, requester_id: Optional[int] = None) -> Dict[str, Any]:
    """
    Apply a completed checkout session.

    The session is re-fetched from Stripe; only `paid` sessions are applied.
    Processing the same session again returns `already_processed=True`.
    """
    session = stripe_service.retrieve_checkout_session(session_id)
    if session.get("payment_status") != "paid":
        raise ValidationError("Payment not completed", details=f"payment_status={session.get('payment_status')}")

    metadata = session["metadata"]
    user_id = _metadata_user_id(metadata)
    if requester_id is not None and requester_id != user_id:
        raise PermissionDenied("Checkout session belongs to another user")

    session_type = metadata.get("type")
    logger.info(
        f"Processing checkout session: session_id={session_id}, type={session_type}, "
        f"metadata={sanitize_log_data(metadata)}"
    )

    if session_type == "job_feature":
        return _apply_job_feature_session(db, session, user_id)
    if session_type == "credit_purchase":
        return _apply_credit_session(db, session, user_id)
    if session_type == "subscription" or session.get("mode") == "subscription":
        if not session.get("subscription"):
            raise ValidationError("Checkout session has no subscription")
        return activate_subscription(
            db, user_id, session["subscription"], session.get("customer"), metadata.get("plan_type")
        )

    raise ValidationError("Unknown checkout session type", details=str(session_type))


# ---------------------------------------------------------------------------
# Reconciliation
# ---------------------------------------------------------------------------

def reconcile_subscriptions(db: Session, user_id: int) -> Dict[str, Any]:
    """
    Align a user's local subscription rows with Stripe.

    Idempotent. Repairs a missing customer id by email lookup, keeps the most
    recently created active Stripe subscription as the only active row, and
    cancels local active rows when Stripe has none.
    """
    profile = db.query(Profile).filter(Profile.id == user_id).first()
    if not profile:
        raise NotFoundError("User not found")

    customer_id = profile.stripe_customer_id
    customer_repaired = False
    if not customer_id:
        customer_id = stripe_service.find_customer_by_email(profile.email)
        if customer_id:
            profile.stripe_customer_id = customer_id
            customer_repaired = True
            logger.info(f"Customer id repaired: user_id={user_id}, customer_id={customer_id}")

    provider_subs = stripe_service.list_active_subscriptions(customer_id) if customer_id else []
    usable = [sub for sub in provider_subs if sub.get("plan_type")]
    extra: List[str] = [sub["id"] for sub in usable[1:]]

    replaced: List[Subscription] = []
    cancelled: List[Subscription] = []
    active_row = None
    if usable:
        active_row, replaced = upsert_active_subscription(db, user_id, usable[0], customer_id)
        if extra:
            logger.warning(f"User has several active Stripe subscriptions: user_id={user_id}, extra={extra}")
    else:
        cancelled = retire_active_subscriptions(db, user_id, "cancelled")

    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise ConflictError("Subscription changed during reconciliation, retry")

    result = {
        "user_id": user_id,
        "customer_id": customer_id,
        "customer_repaired": customer_repaired,
        "plan_type": active_row.plan_type if active_row else None,
        "subscription_id": active_row.stripe_subscription_id if active_row else None,
        "replaced": len(replaced),
        "cancelled": len(cancelled),
        "extra_provider_subscriptions": extra,
    }
    logger.info(f"Reconciled subscriptions: {result}")
    return result


def reconcile_all_subscriptions(db: Session) -> Dict[str, Any]:
    """Reconcile every user with a Stripe customer id or an active local row."""
    with_customer = db.query(Profile.id).filter(Profile.stripe_customer_id.isnot(None))
    with_active = db.query(Subscription.user_id).filter(Subscription.status == "active")
    user_ids = sorted({row[0] for row in with_customer.all()} | {row[0] for row in with_active.all()})

    results = []
    failed = []
    for user_id in user_ids:
        try:
            results.append(reconcile_subscriptions(db, user_id))
        except (stripe.StripeError, AppError) as e:
            db.rollback()
            logger.error(f"Reconciliation failed for user_id={user_id}: {e}")
            failed.append(user_id)

    return {
        "processed": len(user_ids),
        "succeeded": len(results),
        "failed": failed,
        "replaced": sum(r["replaced"] for r in results),
        "cancelled": sum(r["cancelled"] for r in results),
    }


# ---------------------------------------------------------------------------
# Webhooks
# ---------------------------------------------------------------------------

def _user_for_provider_subscription(db: Session, obj: Dict[str, Any]) -> Optional[int]:
    row = db.query(Subscription).filter(Subscription.stripe_subscription_id == obj.get("id")).first()
    if row:
        return row.user_id
    if obj.get("customer"):
        profile = db.query(Profile).filter(Profile.stripe_customer_id == obj["customer"]).first()
        if profile:
            return profile.id
    try:
        return int((obj.get("metadata") or {}).get("user_id"))
    except (TypeError, ValueError):
        return None


def _invoice_subscription_id(invoice: Dict[str, Any]) -> Optional[str]:
    if invoice.get("subscription"):
        return invoice["subscription"]
    # Newer API versions nest it under the invoice parent
    details = (invoice.get("parent") or {}).get("subscription_details") or {}
    return details.get("subscription")


def handle_webhook_event(db: Session, event: Dict[str, Any]) -> Dict[str, Any]:
    """Apply a verified Stripe event. Unknown event types are acknowledged."""
    event_type = event.get("type")
    obj = (event.get("data") or {}).get("object") or {}
    logger.info(f"Handling webhook event: type={event_type}, id={event.get('id')}")

    if event_type == "checkout.session.completed":
        if obj.get("payment_status") != "paid":
            logger.info(f"Checkout session not paid yet, skipping: session_id={obj.get('id')}")
            return {"received": True, "handled": False}
        result = process_checkout_session(db, obj["id"])
        return {"received": True, "handled": True, "result": result}

    if event_type in ("customer.subscription.created", "customer.subscription.updated"):
        user_id = _user_for_provider_subscription(db, obj)
        if user_id is None:
            logger.warning(f"No user for Stripe subscription {obj.get('id')}, skipping")
            return {"received": True, "handled": False}
        return {"received": True, "handled": True, "result": reconcile_subscriptions(db, user_id)}

    if event_type == "customer.subscription.deleted":
        row = db.query(Subscription).filter(Subscription.stripe_subscription_id == obj.get("id")).first()
        if row and row.status != "cancelled":
            now = datetime.utcnow()
            row.status = "cancelled"
            row.cancelled_at = now
            row.updated_at = now
            db.commit()
            logger.info(f"Subscription cancelled by Stripe: user_id={row.user_id}, subscription_id={obj.get('id')}")
        return {"received": True, "handled": row is not None}

    if event_type == "invoice.payment_failed":
        row = db.query(Subscription).filter(
            Subscription.stripe_subscription_id == _invoice_subscription_id(obj)
        ).first()
        if row and row.status == "active":
            row.status = "past_due"
            row.updated_at = datetime.utcnow()
            db.commit()
            logger.warning(f"Subscription past due: user_id={row.user_id}, subscription_id={row.stripe_subscription_id}")
        return {"received": True, "handled": row is not None}

    if event_type in ("invoice.payment_succeeded", "invoice.paid"):
        row = db.query(Subscription).filter(
            Subscription.stripe_subscription_id == _invoice_subscription_id(obj)
        ).first()
        if row and row.status == "past_due":
            return {"received": True, "handled": True, "result": reconcile_subscriptions(db, row.user_id)}
        return {"received": True, "handled": False}

    logger.info(f"Unhandled event type: {event_type}")
    return {"received": True, "handled": False}


# ---------------------------------------------------------------------------
# Subscription management
# ---------------------------------------------------------------------------

def _require_active_provider_subscription(db: Session, profile: Profile) -> Subscription:
    subscription = get_active_subscription(db, profile.id)
    if not subscription:
        raise NotFoundError("No active subscription found")
    if not subscription.stripe_subscription_id:
        raise ValidationError("Subscription is not linked to Stripe", details="Run billing reconcile first")
    return subscription


def change_plan(db: Session, profile: Profile, new_plan: str) -> Dict[str, Any]:
    """Switch plans immediately; Stripe prorates the price difference."""
    new_plan = (new_plan or "").lower()
    if new_plan not in SUPPORTED_PLANS:
        raise ValidationError("Invalid plan type", details=f"plan must be one of: {', '.join(SUPPORTED_PLANS)}")

    subscription = _require_active_provider_subscription(db, profile)
    if subscription.plan_type == new_plan:
        raise ConflictError(f"You are already on the {new_plan} plan")

    price_id = stripe_service.get_price_id_for_plan(new_plan)
    if not price_id:
        raise ProviderNotConfigured(f"Stripe price for the {new_plan} plan is not configured")

    provider_sub = stripe_service.retrieve_subscription(subscription.stripe_subscription_id)
    updated = stripe_service.change_subscription_price(
        subscription.stripe_subscription_id, provider_sub["item_id"], price_id, new_plan
    )
    updated["plan_type"] = new_plan

    old_plan = subscription.plan_type
    row, _ = upsert_active_subscription(db, profile.id, updated, subscription.stripe_customer_id)
    db.commit()

    logger.info(f"Plan changed: user_id={profile.id}, {old_plan} -> {new_plan}")
    return {"plan_type": row.plan_type, "previous_plan": old_plan, "subscription_id": row.stripe_subscription_id}


def cancel_subscription(db: Session, profile: Profile) -> Dict[str, Any]:
    """Cancel at period end; the row stays active until Stripe deletes the subscription."""
    subscription = _require_active_provider_subscription(db, profile)
    updated = stripe_service.set_cancel_at_period_end(subscription.stripe_subscription_id, True)

    subscription.cancel_at_period_end = True
    if updated.get("current_period_end"):
        subscription.current_period_end = updated["current_period_end"]
    subscription.updated_at = datetime.utcnow()
    db.commit()
    db.refresh(subscription)

    logger.info(f"Subscription set to cancel at period end: user_id={profile.id}")
    return {
        "plan_type": subscription.plan_type,
        "cancel_at_period_end": True,
        "current_period_end": subscription.current_period_end,
    }


def create_portal_session(db: Session, profile: Profile) -> Dict[str, Any]:
    if not profile.stripe_customer_id:
        raise ValidationError("No billing account found", details="Subscribe or purchase first")
    return stripe_service.create_billing_portal_session(profile.stripe_customer_id, f"{config.BASE_URL}/employer")
