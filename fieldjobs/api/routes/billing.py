"""
Billing endpoints for Stripe integration.

Checkout creation, session consumption, webhook, reconciliation and
subscription management. Stripe failures surface through the global
error handlers.
"""
import logging

from fastapi import APIRouter, Depends, Header, HTTPException, Request, status
from sqlalchemy.orm import Session

from fieldjobs.core.auth_dependency import get_db, get_current_profile, require_employer
from fieldjobs.core.errors import AppError
from fieldjobs.db.models.profile import Profile
from fieldjobs.schemas.billing import (
    CancelSubscriptionResponse,
    ChangePlanRequest,
    ChangePlanResponse,
    CheckoutSessionResponse,
    CreditCheckoutRequest,
    JobFeatureCheckoutRequest,
    PortalSessionResponse,
    ProcessSessionResponse,
    ReconcileResponse,
    SubscriptionCheckoutRequest,
)
from fieldjobs.services import billing_service, stripe_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/billing", tags=["Billing"])


@router.post("/checkout/subscription", response_model=CheckoutSessionResponse)
def create_subscription_checkout(
    data: SubscriptionCheckoutRequest,
    employer: Profile = Depends(require_employer),
    db: Session = Depends(get_db),
):
    """
    Create a Stripe Checkout session for a plan.

    Returns 409 while the employer already has an active subscription.
    """
    return billing_service.create_subscription_checkout(db, employer, data.plan_type)


@router.post("/checkout/job-feature", response_model=CheckoutSessionResponse)
def create_job_feature_checkout(
    data: JobFeatureCheckoutRequest,
    employer: Profile = Depends(require_employer),
    db: Session = Depends(get_db),
):
    return billing_service.create_job_feature_checkout(db, employer, data.job_id, data.addon_type)


@router.post("/checkout/credits", response_model=CheckoutSessionResponse)
def create_credit_checkout(
    data: CreditCheckoutRequest,
    employer: Profile = Depends(require_employer),
    db: Session = Depends(get_db),
):
    return billing_service.create_credit_checkout(db, employer, data.package_type)


@router.post("/sessions/{session_id}/process", response_model=ProcessSessionResponse)
def process_session(
    session_id: str,
    profile: Profile = Depends(get_current_profile),
    db: Session = Depends(get_db),
):
    """Apply a paid checkout session after the success redirect. Safe to repeat."""
    try:
        return billing_service.process_checkout_session(db, session_id, requester_id=profile.id)
    except (AppError, HTTPException):
        db.rollback()
        raise


@router.post("/webhook")
async def stripe_webhook(
    request: Request,
    stripe_signature: str = Header(None),
    db: Session = Depends(get_db),
):
    """
    Stripe webhook endpoint.

    The signature is verified before anything is applied.
    """
    payload = await request.body()
    event = stripe_service.construct_webhook_event(payload, stripe_signature)

    try:
        return billing_service.handle_webhook_event(db, event)
    except (AppError, HTTPException):
        db.rollback()
        raise
    except Exception as e:
        db.rollback()
        logger.error(f"Webhook handling failed: type={event.get('type')}: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={"error": "Webhook handling failed", "details": str(e)},
        )


@router.post("/reconcile", response_model=ReconcileResponse)
def reconcile(
    profile: Profile = Depends(get_current_profile),
    db: Session = Depends(get_db),
):
    """Repair drift between the caller's subscription rows and Stripe."""
    return billing_service.reconcile_subscriptions(db, profile.id)


@router.post("/subscription/change-plan", response_model=ChangePlanResponse)
def change_plan(
    data: ChangePlanRequest,
    employer: Profile = Depends(require_employer),
    db: Session = Depends(get_db),
):
    try:
        return billing_service.change_plan(db, employer, data.plan_type)
    except (AppError, HTTPException):
        db.rollback()
        raise


@router.post("/subscription/cancel", response_model=CancelSubscriptionResponse)
def cancel_subscription(
    employer: Profile = Depends(require_employer),
    db: Session = Depends(get_db),
):
    """Cancel at the end of the current period."""
    return billing_service.cancel_subscription(db, employer)


@router.post("/portal", response_model=PortalSessionResponse)
def create_portal_session(
    profile: Profile = Depends(get_current_profile),
    db: Session = Depends(get_db),
):
    return billing_service.create_portal_session(db, profile)
