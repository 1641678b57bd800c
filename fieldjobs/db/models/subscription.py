from datetime import datetime

from sqlalchemy import Column, Integer, String, DateTime, Boolean, ForeignKey, Index, text
from fieldjobs.db.base import Base

SUBSCRIPTION_STATUSES = ("active", "cancelled", "replaced", "past_due")


class Subscription(Base):
    """
    One row per billing period per user.

    The partial unique index keeps at most one `active` row per user; older
    rows are kept as `cancelled` or `replaced` history.
    """
    __tablename__ = "subscriptions"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("profiles.id"), nullable=False, index=True)

    plan_type = Column(String, nullable=False)  # starter | growth | professional | enterprise
    status = Column(String, nullable=False, default="active")

    active_jobs_limit = Column(Integer, nullable=True)  # NULL = unlimited
    monthly_credits = Column(Integer, nullable=False, default=0)
    price = Column(Integer, nullable=False, default=0)  # cents

    stripe_customer_id = Column(String, nullable=True, index=True)
    stripe_subscription_id = Column(String, nullable=True, unique=True)

    current_period_start = Column(DateTime, nullable=True)
    current_period_end = Column(DateTime, nullable=True)
    cancel_at_period_end = Column(Boolean, nullable=False, default=False)
    cancelled_at = Column(DateTime, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False, index=True)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    __table_args__ = (
        Index(
            "uq_subscriptions_one_active_per_user",
            "user_id",
            unique=True,
            postgresql_where=text("status = 'active'"),
            sqlite_where=text("status = 'active'"),
        ),
    )

    def __repr__(self):
        return f"<Subscription(id={self.id}, user_id={self.user_id}, plan='{self.plan_type}', status='{self.status}')>"
