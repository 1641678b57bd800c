"""
Plan-based entitlements and price tables.

Single source of truth for job-posting limits, monthly credit allotments,
credit packs and paid job add-ons. None means unlimited.
"""
from typing import Dict, Optional, List

FREE_PLAN = "free"

SUPPORTED_PLANS: List[str] = [
    "starter",
    "growth",
    "professional",
    "enterprise",
]

# Entitlements per subscription plan (price in cents, per month)
PLAN_LIMITS: Dict[str, Dict[str, Optional[int]]] = {
    "free": {
        "active_jobs_limit": 0,
        "monthly_credits": 0,
        "price": 0,
    },
    "starter": {
        "active_jobs_limit": 3,
        "monthly_credits": 0,
        "price": 19900,
    },
    "growth": {
        "active_jobs_limit": 6,
        "monthly_credits": 5,
        "price": 29900,
    },
    "professional": {
        "active_jobs_limit": 15,
        "monthly_credits": 25,
        "price": 59900,
    },
    "enterprise": {
        "active_jobs_limit": None,  # Unlimited
        "monthly_credits": 100,
        "price": 199900,
    },
}

# One-time credit packs (price in cents)
CREDIT_PACKAGES: Dict[str, Dict[str, int]] = {
    "small": {"credits": 10, "price": 3900},
    "medium": {"credits": 25, "price": 7900},
    "large": {"credits": 50, "price": 12900},
}

# Paid job add-ons
JOB_FEATURES: Dict[str, Dict[str, object]] = {
    "featured": {
        "price": 2900,
        "duration_days": 30,
        "name": "Featured Job Listing",
        "description": "Top of search results with a highlight badge for 30 days",
    },
    "urgent": {
        "price": 1900,
        "duration_days": 30,
        "name": "Urgent Job Badge",
        "description": "URGENT badge for immediate attention for 30 days",
    },
}

JOB_ACTIVE_DAYS = 30
FREE_JOB_DAYS = 30
MONTHLY_REFRESH_DAYS = 30
EXPIRATION_WARNING_DAYS = (7, 1)


def normalize_plan(plan_type: Optional[str]) -> str:
    """Lowercase a plan name, mapping unknown or empty values to the free tier."""
    plan_type = plan_type.lower() if plan_type else FREE_PLAN
    return plan_type if plan_type in PLAN_LIMITS else FREE_PLAN


def get_plan_limits(plan_type: Optional[str]) -> Dict[str, Optional[int]]:
    """Get all entitlements for a plan type."""
    return PLAN_LIMITS[normalize_plan(plan_type)]


def get_active_jobs_limit(plan_type: Optional[str]) -> Optional[int]:
    """Active job limit for a plan, None for unlimited."""
    return get_plan_limits(plan_type)["active_jobs_limit"]


def get_monthly_credits(plan_type: Optional[str]) -> int:
    """Monthly credit allotment for a plan."""
    return get_plan_limits(plan_type)["monthly_credits"] or 0


def has_unlimited_jobs(plan_type: Optional[str]) -> bool:
    return get_active_jobs_limit(plan_type) is None
