"""
Pydantic schemas for billing endpoints.
"""
from typing import Optional, List
from datetime import datetime
from pydantic import BaseModel, Field


class SubscriptionCheckoutRequest(BaseModel):
    """Request schema for a subscription checkout."""
    plan_type: str = Field(
        ...,
        description="Plan type",
        pattern="^(starter|growth|professional|enterprise)$",
    )

    class Config:
        json_schema_extra = {"example": {"plan_type": "growth"}}


class JobFeatureCheckoutRequest(BaseModel):
    job_id: int = Field(..., description="Job to feature")
    addon_type: str = Field(..., description="featured or urgent", pattern="^(featured|urgent)$")


class CreditCheckoutRequest(BaseModel):
    package_type: str = Field(..., description="Credit pack", pattern="^(small|medium|large)$")


class CheckoutSessionResponse(BaseModel):
    """Response schema for checkout session creation."""
    session_id: str = Field(..., description="Stripe checkout session ID")
    url: Optional[str] = Field(None, description="Stripe checkout session URL")

    class Config:
        json_schema_extra = {
            "example": {
                "session_id": "cs_test_...",
                "url": "https://checkout.stripe.com/pay/cs_test_...",
            }
        }


class ProcessSessionResponse(BaseModel):
    type: str
    already_processed: bool
    job_id: Optional[int] = None
    feature: Optional[str] = None
    package_type: Optional[str] = None
    credits_added: Optional[int] = None
    plan_type: Optional[str] = None
    subscription_id: Optional[str] = None


class ReconcileResponse(BaseModel):
    user_id: int
    customer_id: Optional[str] = None
    customer_repaired: bool
    plan_type: Optional[str] = None
    subscription_id: Optional[str] = None
    replaced: int
    cancelled: int
    extra_provider_subscriptions: List[str] = Field(default_factory=list)


class ChangePlanRequest(BaseModel):
    plan_type: str = Field(..., pattern="^(starter|growth|professional|enterprise)$")


class ChangePlanResponse(BaseModel):
    plan_type: str
    previous_plan: str
    subscription_id: Optional[str] = None


class CancelSubscriptionResponse(BaseModel):
    plan_type: str
    cancel_at_period_end: bool
    current_period_end: Optional[datetime] = None


class PortalSessionResponse(BaseModel):
    """Response schema for portal session creation."""
    url: str = Field(..., description="Stripe customer portal URL")
