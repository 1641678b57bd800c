"""
Credit ledger models.

CreditBalance holds the two pools per user; CreditTransaction is the
append-only audit trail of every consumption and purchase.
"""
from datetime import datetime

from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Index
from fieldjobs.db.base import Base


class CreditBalance(Base):
    __tablename__ = "credit_balances"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("profiles.id"), nullable=False, unique=True)

    monthly_credits = Column(Integer, nullable=False, default=0)  # reset every 30 days
    purchased_credits = Column(Integer, nullable=False, default=0)  # never expire
    last_monthly_refresh = Column(DateTime, default=datetime.utcnow, nullable=False)

    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    @property
    def total(self) -> int:
        return (self.monthly_credits or 0) + (self.purchased_credits or 0)


class CreditTransaction(Base):
    __tablename__ = "credit_transactions"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("profiles.id"), nullable=False, index=True)
    delta = Column(Integer, nullable=False)  # negative for consumption
    monthly_delta = Column(Integer, nullable=False, default=0)
    purchased_delta = Column(Integer, nullable=False, default=0)
    reason = Column(String, nullable=False)  # "profile_unlock", "resume_unlock", "purchase:small", ...
    reference = Column(String, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False, index=True)

    __table_args__ = (
        Index("idx_credit_tx_user_created", "user_id", "created_at"),
    )
