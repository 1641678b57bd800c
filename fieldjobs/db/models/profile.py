from datetime import datetime

from sqlalchemy import Column, Integer, String, DateTime, Boolean
from fieldjobs.db.base import Base

ACCOUNT_TYPES = ("job_seeker", "employer")


class Profile(Base):
    """
    One row per user, created on the first authenticated request.

    Never hard-deleted; mutated by profile edits and payment flows.
    """
    __tablename__ = "profiles"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String, unique=True, index=True, nullable=False)
    account_type = Column(String, nullable=False, default="job_seeker")  # job_seeker | employer

    first_name = Column(String, nullable=True)
    last_name = Column(String, nullable=True)
    company_name = Column(String, nullable=True)
    phone = Column(String, nullable=True)
    location = Column(String, nullable=True, index=True)
    classification = Column(String, nullable=True)
    specialization = Column(String, nullable=True)
    years_experience = Column(Integer, nullable=True)

    # Storage key "{user_id}/{filename}", see services/resume_storage.py
    resume_key = Column(String, nullable=True)
    resume_uploaded_at = Column(DateTime, nullable=True)

    stripe_customer_id = Column(String, nullable=True, index=True)
    has_used_free_job = Column(Boolean, nullable=False, default=False)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    @property
    def is_employer(self) -> bool:
        return self.account_type == "employer"

    @property
    def full_name(self) -> str:
        name = " ".join(part for part in (self.first_name, self.last_name) if part)
        return name or self.email.split("@")[0]

    def __repr__(self):
        return f"<Profile(id={self.id}, email='{self.email}', account_type='{self.account_type}')>"
