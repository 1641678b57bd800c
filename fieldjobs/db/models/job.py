"""
Job posting model.

Status moves between active, paused and expired and ends at deleted
(soft delete). The `active` flag mirrors `status == "active"`.
"""
from datetime import datetime

from sqlalchemy import Column, Integer, String, Text, DateTime, Boolean, ForeignKey, Index
from sqlalchemy.orm import relationship
from fieldjobs.db.base import Base

JOB_STATUSES = ("active", "paused", "expired", "deleted")
JOB_TYPES = ("in-house", "project-hire")


class Job(Base):
    __tablename__ = "jobs"

    id = Column(Integer, primary_key=True, index=True)
    employer_id = Column(Integer, ForeignKey("profiles.id"), nullable=False, index=True)

    title = Column(String, nullable=False)
    company = Column(String, nullable=False)
    region = Column(String, nullable=False, index=True)
    hourly_rate = Column(String, nullable=False)
    description = Column(Text, nullable=False)
    requirements = Column(Text, nullable=True)
    benefits = Column(Text, nullable=True)
    duration = Column(String, nullable=True)
    contact_email = Column(String, nullable=False)
    contact_phone = Column(String, nullable=True)
    job_type = Column(String, nullable=False, default="project-hire")
    primary_industry = Column(String, nullable=True, index=True)
    classification = Column(String, nullable=True)

    status = Column(String, nullable=False, default="active", index=True)
    active = Column(Boolean, nullable=False, default=True)
    expiry_date = Column(DateTime, nullable=True)
    deactivated_at = Column(DateTime, nullable=True)

    # Free allotment
    is_free_job = Column(Boolean, nullable=False, default=False)
    free_job_expires_at = Column(DateTime, nullable=True)

    # Paid add-ons, each with its own expiry
    is_featured = Column(Boolean, nullable=False, default=False)
    featured_until = Column(DateTime, nullable=True)
    is_urgent = Column(Boolean, nullable=False, default=False)
    urgent_until = Column(DateTime, nullable=True)

    views = Column(Integer, nullable=False, default=0)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False, index=True)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    employer = relationship("Profile", backref="jobs")

    __table_args__ = (
        Index("idx_jobs_employer_status", "employer_id", "status"),
    )

    def feature_live(self, feature: str, now: datetime = None) -> bool:
        """A feature flag counts while it is set and its expiry (if any) is in the future."""
        now = now or datetime.utcnow()
        if feature == "featured":
            flag, until = self.is_featured, self.featured_until
        elif feature == "urgent":
            flag, until = self.is_urgent, self.urgent_until
        else:
            return False
        return bool(flag) and (until is None or until > now)

    @property
    def featured_active(self) -> bool:
        return self.feature_live("featured")

    @property
    def urgent_active(self) -> bool:
        return self.feature_live("urgent")

    def __repr__(self):
        return f"<Job(id={self.id}, title='{self.title}', status='{self.status}')>"
