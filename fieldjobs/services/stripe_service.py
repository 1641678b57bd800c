"""
Stripe service for checkout, subscriptions, billing portal, and webhook handling.

Every Stripe SDK call in the project goes through this module. Results are
returned as plain dicts so the billing logic never depends on SDK object
shapes.
"""
import json
import logging
from datetime import datetime, timezone
from typing import Optional, Dict, List, Any

import stripe

from fieldjobs.core import config
from fieldjobs.core.errors import ProviderNotConfigured, ValidationError
from fieldjobs.core.plan_limits import SUPPORTED_PLANS

logger = logging.getLogger(__name__)

# Initialize Stripe client
if config.STRIPE_SECRET_KEY:
    stripe.api_key = config.STRIPE_SECRET_KEY
else:
    logger.warning("STRIPE_SECRET_KEY not configured - Stripe features disabled")


def is_configured() -> bool:
    return bool(config.STRIPE_SECRET_KEY)


def _require_configured() -> None:
    if not is_configured():
        raise ProviderNotConfigured("Stripe not configured - STRIPE_SECRET_KEY required")
    stripe.api_key = config.STRIPE_SECRET_KEY


def _field(obj: Any, key: str, default=None):
    """Read a key from a dict or a StripeObject."""
    if obj is None:
        return default
    if isinstance(obj, dict):
        return obj.get(key, default)
    try:
        return obj[key]
    except (KeyError, TypeError, AttributeError):
        return getattr(obj, key, default)


def _timestamp(value) -> Optional[datetime]:
    """Unix seconds to naive UTC datetime."""
    if not value:
        return None
    return datetime.fromtimestamp(int(value), tz=timezone.utc).replace(tzinfo=None)


def _price_ids() -> Dict[str, Optional[str]]:
    return {
        "starter": config.STRIPE_PRICE_ID_STARTER,
        "growth": config.STRIPE_PRICE_ID_GROWTH,
        "professional": config.STRIPE_PRICE_ID_PROFESSIONAL,
        "enterprise": config.STRIPE_PRICE_ID_ENTERPRISE,
    }


def get_price_id_for_plan(plan: str) -> Optional[str]:
    """Get Stripe price ID from plan type."""
    price_id = _price_ids().get((plan or "").lower())
    if not price_id or price_id.startswith("price_your_"):
        # Placeholder values from .env.example
        return None
    return price_id


def get_plan_for_price_id(price_id: Optional[str]) -> Optional[str]:
    """Get plan type from Stripe price ID."""
    if not price_id:
        return None
    for plan, configured in _price_ids().items():
        if configured and configured == price_id:
            return plan
    return None


def normalize_subscription(sub: Any) -> Dict[str, Any]:
    """
    Flatten a Stripe subscription into the fields the billing logic uses.

    The plan comes from subscription metadata, else from the first item's price.
    """
    items = _field(_field(sub, "items"), "data") or []
    first_item = items[0] if items else None
    price_id = _field(_field(first_item, "price"), "id")
    metadata = dict(_field(sub, "metadata") or {})

    plan_type = (metadata.get("plan_type") or "").lower() or None
    if plan_type not in SUPPORTED_PLANS:
        plan_type = get_plan_for_price_id(price_id)

    # Newer API versions report the period on the subscription item
    period_start = _field(sub, "current_period_start") or _field(first_item, "current_period_start")
    period_end = _field(sub, "current_period_end") or _field(first_item, "current_period_end")

    return {
        "id": _field(sub, "id"),
        "customer": _field(sub, "customer"),
        "status": _field(sub, "status"),
        "price_id": price_id,
        "item_id": _field(first_item, "id"),
        "plan_type": plan_type,
        "metadata": metadata,
        "created": _timestamp(_field(sub, "created")),
        "current_period_start": _timestamp(period_start),
        "current_period_end": _timestamp(period_end),
        "cancel_at_period_end": bool(_field(sub, "cancel_at_period_end", False)),
    }


def normalize_session(session: Any) -> Dict[str, Any]:
    subscription = _field(session, "subscription")
    if subscription is not None and not isinstance(subscription, str):
        subscription = _field(subscription, "id")
    return {
        "id": _field(session, "id"),
        "url": _field(session, "url"),
        "mode": _field(session, "mode"),
        "status": _field(session, "status"),
        "payment_status": _field(session, "payment_status"),
        "customer": _field(session, "customer"),
        "subscription": subscription,
        "amount_total": _field(session, "amount_total"),
        "metadata": dict(_field(session, "metadata") or {}),
    }


def find_customer_by_email(email: str) -> Optional[str]:
    _require_configured()
    customers = stripe.Customer.list(email=email, limit=1)
    data = _field(customers, "data") or []
    return _field(data[0], "id") if data else None


def get_or_create_customer(email: str, name: Optional[str], user_id: int) -> str:
    """Existing customer for this email, else a new one tagged with the user id."""
    customer_id = find_customer_by_email(email)
    if customer_id:
        return customer_id

    customer = stripe.Customer.create(
        email=email,
        name=name,
        metadata={"user_id": str(user_id)},
    )
    logger.info(f"Created Stripe customer: customer_id={customer.id}, user_id={user_id}")
    return customer.id


def create_checkout_session(
    customer_id: str,
    mode: str,
    line_items: List[Dict[str, Any]],
    metadata: Dict[str, str],
    success_url: str,
    cancel_url: str,
) -> Dict[str, Any]:
    """
    Create a Stripe Checkout session.

    Args:
        customer_id: Stripe customer ID
        mode: "subscription" or "payment"
        line_items: Stripe line items
        metadata: Identifiers read back when the session is consumed
        success_url: Redirect after payment, may contain {CHECKOUT_SESSION_ID}
        cancel_url: Redirect if the user cancels

    Returns:
        Normalized session dict with `id` and `url`
    """
    _require_configured()

    params: Dict[str, Any] = {
        "customer": customer_id,
        "payment_method_types": ["card"],
        "mode": mode,
        "line_items": line_items,
        "success_url": success_url,
        "cancel_url": cancel_url,
        "metadata": metadata,
    }
    if mode == "subscription":
        params["subscription_data"] = {"metadata": metadata}
        params["allow_promotion_codes"] = True

    session = stripe.checkout.Session.create(**params)
    logger.info(f"Created checkout session: session_id={session.id}, mode={mode}, type={metadata.get('type')}")
    return normalize_session(session)


def retrieve_checkout_session(session_id: str) -> Dict[str, Any]:
    _require_configured()
    return normalize_session(stripe.checkout.Session.retrieve(session_id))


def list_active_subscriptions(customer_id: str) -> List[Dict[str, Any]]:
    """Active subscriptions of a customer, most recently created first."""
    _require_configured()
    result = stripe.Subscription.list(customer=customer_id, status="active", limit=100)
    subs = [normalize_subscription(sub) for sub in (_field(result, "data") or [])]
    subs.sort(key=lambda s: s["created"] or datetime.min, reverse=True)
    return subs


def retrieve_subscription(subscription_id: str) -> Dict[str, Any]:
    _require_configured()
    return normalize_subscription(stripe.Subscription.retrieve(subscription_id))


def cancel_subscription(subscription_id: str) -> None:
    """Cancel immediately."""
    _require_configured()
    stripe.Subscription.cancel(subscription_id)
    logger.info(f"Cancelled Stripe subscription: subscription_id={subscription_id}")


def set_cancel_at_period_end(subscription_id: str, cancel: bool = True) -> Dict[str, Any]:
    _require_configured()
    sub = stripe.Subscription.modify(subscription_id, cancel_at_period_end=cancel)
    logger.info(f"Set cancel_at_period_end={cancel}: subscription_id={subscription_id}")
    return normalize_subscription(sub)


def change_subscription_price(subscription_id: str, item_id: str, price_id: str, plan_type: str) -> Dict[str, Any]:
    """Swap the subscription's price immediately, prorating the difference."""
    _require_configured()
    sub = stripe.Subscription.modify(
        subscription_id,
        items=[{"id": item_id, "price": price_id}],
        proration_behavior="create_prorations",
        cancel_at_period_end=False,
        metadata={"plan_type": plan_type},
    )
    logger.info(f"Changed subscription price: subscription_id={subscription_id}, plan={plan_type}")
    return normalize_subscription(sub)


def create_billing_portal_session(customer_id: str, return_url: Optional[str] = None) -> Dict[str, Any]:
    """
    Create Stripe Billing Portal session for managing subscription.

    Returns:
        Dictionary with 'url' key containing portal session URL
    """
    _require_configured()
    if not return_url:
        return_url = f"{config.BASE_URL}/employer"

    session = stripe.billing_portal.Session.create(customer=customer_id, return_url=return_url)
    logger.info(f"Created billing portal session for customer_id={customer_id}")
    return {"url": _field(session, "url")}


def construct_webhook_event(payload: bytes, signature: Optional[str]) -> Dict[str, Any]:
    """
    Verify a webhook signature and parse the event.

    Returns:
        The event as a plain dict

    Raises:
        ValidationError: missing secret, missing or invalid signature, bad payload
    """
    if not config.STRIPE_WEBHOOK_SECRET:
        raise ProviderNotConfigured("STRIPE_WEBHOOK_SECRET not configured")
    if not signature:
        raise ValidationError("Missing signature")

    try:
        stripe.WebhookSignature.verify_header(
            payload.decode("utf-8"), signature, config.STRIPE_WEBHOOK_SECRET, stripe.Webhook.DEFAULT_TOLERANCE
        )
        event = json.loads(payload)
    except stripe.SignatureVerificationError as e:
        logger.error(f"Webhook signature verification failed: {e}")
        raise ValidationError("Invalid signature")
    except (ValueError, UnicodeDecodeError) as e:
        logger.error(f"Invalid webhook payload: {e}")
        raise ValidationError("Invalid payload")

    logger.info(f"Verified webhook event: {event.get('type')}, id={event.get('id')}")
    return event
