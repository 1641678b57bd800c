"""
Append-only ledgers of paid actions.

Purchases are unique per Stripe checkout session so a session is applied
once; unlocks are unique per (employer, job seeker) so a pair is charged once.
"""
from datetime import datetime

from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, UniqueConstraint
from fieldjobs.db.base import Base


class JobFeaturePurchase(Base):
    __tablename__ = "job_feature_purchases"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("profiles.id"), nullable=False, index=True)
    job_id = Column(Integer, ForeignKey("jobs.id"), nullable=False, index=True)
    feature_type = Column(String, nullable=False)  # featured | urgent
    stripe_session_id = Column(String, nullable=False, unique=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)


class CreditPurchase(Base):
    __tablename__ = "credit_purchases"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("profiles.id"), nullable=False, index=True)
    package_type = Column(String, nullable=False)
    credits_purchased = Column(Integer, nullable=False)
    amount_paid = Column(Integer, nullable=False)  # cents
    stripe_session_id = Column(String, nullable=False, unique=True)
    purchased_at = Column(DateTime, default=datetime.utcnow, nullable=False)


class ProfileUnlock(Base):
    __tablename__ = "profile_unlocks"

    id = Column(Integer, primary_key=True, index=True)
    employer_id = Column(Integer, ForeignKey("profiles.id"), nullable=False, index=True)
    job_seeker_id = Column(Integer, ForeignKey("profiles.id"), nullable=False, index=True)
    unlocked_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    __table_args__ = (
        UniqueConstraint("employer_id", "job_seeker_id", name="uq_profile_unlocks_pair"),
    )


class ResumeUnlock(Base):
    __tablename__ = "resume_unlocks"

    id = Column(Integer, primary_key=True, index=True)
    employer_id = Column(Integer, ForeignKey("profiles.id"), nullable=False, index=True)
    job_seeker_id = Column(Integer, ForeignKey("profiles.id"), nullable=False, index=True)
    unlocked_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    __table_args__ = (
        UniqueConstraint("employer_id", "job_seeker_id", name="uq_resume_unlocks_pair"),
    )
