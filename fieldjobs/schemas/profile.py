"""
Pydantic schemas for profile endpoints.
"""
from typing import Optional
from datetime import datetime
from pydantic import BaseModel, Field


class ProfileUpdate(BaseModel):
    first_name: Optional[str] = Field(None, max_length=100)
    last_name: Optional[str] = Field(None, max_length=100)
    company_name: Optional[str] = Field(None, max_length=255)
    phone: Optional[str] = Field(None, max_length=50)
    location: Optional[str] = Field(None, max_length=255)
    classification: Optional[str] = Field(None, max_length=100)
    specialization: Optional[str] = Field(None, max_length=255)
    years_experience: Optional[int] = Field(None, ge=0, le=80)
    account_type: Optional[str] = Field(None, pattern="^(job_seeker|employer)$")


class ProfileResponse(BaseModel):
    id: int
    email: str
    account_type: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    company_name: Optional[str] = None
    phone: Optional[str] = None
    location: Optional[str] = None
    classification: Optional[str] = None
    specialization: Optional[str] = None
    years_experience: Optional[int] = None
    resume_key: Optional[str] = None
    resume_uploaded_at: Optional[datetime] = None
    has_used_free_job: bool
    created_at: datetime

    class Config:
        from_attributes = True


class ResumeSearchResult(BaseModel):
    """Search hit; contact details stay hidden until unlocked."""
    id: int
    first_name: Optional[str] = None
    last_initial: Optional[str] = None
    location: Optional[str] = None
    classification: Optional[str] = None
    specialization: Optional[str] = None
    years_experience: Optional[int] = None
    resume_uploaded_at: Optional[datetime] = None
    unlocked: bool = False
