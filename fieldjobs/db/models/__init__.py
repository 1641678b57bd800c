"""
Database models module.

This module imports all database models to ensure they are registered with SQLAlchemy's Base.metadata
before table creation.

All models must be imported here to be included in database migrations and table creation.
"""
from fieldjobs.db.models.profile import Profile
from fieldjobs.db.models.job import Job
from fieldjobs.db.models.application import Application
from fieldjobs.db.models.subscription import Subscription
from fieldjobs.db.models.credit import CreditBalance, CreditTransaction
from fieldjobs.db.models.upgrade_prompt import UpgradePrompt
from fieldjobs.db.models.ledger import (
    JobFeaturePurchase,
    CreditPurchase,
    ProfileUnlock,
    ResumeUnlock,
)

__all__ = [
    "Profile",
    "Job",
    "Application",
    "Subscription",
    "CreditBalance",
    "CreditTransaction",
    "UpgradePrompt",
    "JobFeaturePurchase",
    "CreditPurchase",
    "ProfileUnlock",
    "ResumeUnlock",
]
