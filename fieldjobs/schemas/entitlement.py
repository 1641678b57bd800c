"""
Pydantic schemas for subscription and credit endpoints.
"""
from typing import Optional, Dict, Any
from datetime import datetime
from pydantic import BaseModel, Field


class SubscriptionDetail(BaseModel):
    id: int
    plan_type: str
    status: str
    stripe_subscription_id: Optional[str] = None
    current_period_start: Optional[datetime] = None
    current_period_end: Optional[datetime] = None
    cancel_at_period_end: bool
    created_at: datetime

    class Config:
        from_attributes = True


class EntitlementResponse(BaseModel):
    """Response schema for GET /subscriptions/me."""
    plan_type: str = Field(..., description="starter, growth, professional, enterprise or free")
    status: str = Field(..., description="Subscription status, 'inactive' without one")
    active_jobs_limit: Optional[int] = Field(None, description="Active job limit (None for unlimited)")
    active_jobs: int = Field(..., description="Jobs currently active")
    credits: int = Field(..., description="Monthly plus purchased credits")
    monthly_credits: int
    purchased_credits: int
    subscription: Optional[SubscriptionDetail] = None

    class Config:
        json_schema_extra = {
            "example": {
                "plan_type": "growth",
                "status": "active",
                "active_jobs_limit": 6,
                "active_jobs": 2,
                "credits": 7,
                "monthly_credits": 5,
                "purchased_credits": 2,
                "subscription": None,
            }
        }


class CreditBalanceResponse(BaseModel):
    credits: int
    monthly_credits: int
    purchased_credits: int


class UnlockProfileRequest(BaseModel):
    job_seeker_id: int = Field(..., description="Profile to unlock")


class UnlockProfileResponse(BaseModel):
    already_unlocked: bool
    profile: Dict[str, Any]
    remaining_credits: int


class UpgradePromptResponse(BaseModel):
    id: int
    job_id: int
    prompt_type: str
    triggered_at: datetime
    shown_at: Optional[datetime] = None
    action_taken: Optional[str] = None

    class Config:
        from_attributes = True


class UpgradePromptAck(BaseModel):
    action_taken: Optional[str] = Field(None, description="e.g. 'upgraded' or 'dismissed'")
