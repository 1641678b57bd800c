from datetime import datetime

from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship
from fieldjobs.db.base import Base


class UpgradePrompt(Base):
    """One-shot upgrade nudge, fired once per (job, prompt_type)."""
    __tablename__ = "upgrade_prompts"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("profiles.id"), nullable=False, index=True)
    job_id = Column(Integer, ForeignKey("jobs.id"), nullable=False)
    prompt_type = Column(String, nullable=False, default="first_application")
    triggered_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    shown_at = Column(DateTime, nullable=True)
    action_taken = Column(String, nullable=True)

    job = relationship("Job")

    __table_args__ = (
        UniqueConstraint("job_id", "prompt_type", name="uq_upgrade_prompts_job_type"),
    )
