"""
Subscription endpoints.
"""
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from fieldjobs.core.auth_dependency import get_db, get_current_profile
from fieldjobs.db.models.profile import Profile
from fieldjobs.schemas.entitlement import EntitlementResponse, SubscriptionDetail
from fieldjobs.services.entitlement_service import resolve_entitlements

router = APIRouter(prefix="/subscriptions", tags=["Subscriptions"])


@router.get("/me", response_model=EntitlementResponse)
def get_my_subscription(
    profile: Profile = Depends(get_current_profile),
    db: Session = Depends(get_db),
):
    """
    Current plan, job limit and credit balance.

    A paid subscription that only Stripe knows about is materialized here.
    """
    entitlements = resolve_entitlements(db, profile.id)
    subscription = entitlements.pop("subscription")
    return EntitlementResponse(
        **entitlements,
        subscription=SubscriptionDetail.model_validate(subscription) if subscription else None,
    )
