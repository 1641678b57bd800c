"""
Pydantic schemas for job endpoints.
"""
from typing import Optional, List
from datetime import datetime
from pydantic import BaseModel, Field


class JobBase(BaseModel):
    """Base job schema with common fields."""
    title: str = Field(..., description="Job title", min_length=1, max_length=255)
    company: Optional[str] = Field(None, description="Company name, defaults to the employer's", max_length=255)
    region: str = Field(..., description="Region or location", min_length=1, max_length=255)
    hourly_rate: str = Field(..., description="Pay rate, e.g. '$45/hr'", min_length=1, max_length=100)
    description: str = Field(..., description="Job description", min_length=1)
    requirements: Optional[str] = Field(None, description="Requirements")
    benefits: Optional[str] = Field(None, description="Benefits")
    duration: Optional[str] = Field(None, description="Expected duration")
    contact_email: Optional[str] = Field(None, description="Contact email, defaults to the employer's")
    contact_phone: Optional[str] = Field(None, description="Contact phone")
    job_type: Optional[str] = Field("project-hire", description="in-house or project-hire (common aliases accepted)")
    primary_industry: Optional[str] = Field(None, description="Primary industry")
    classification: Optional[str] = Field(None, description="Trade classification")


class JobCreate(JobBase):
    """Schema for creating a new job."""
    pass


class JobUpdate(BaseModel):
    """Schema for editing a job (PUT)."""
    title: Optional[str] = Field(None, min_length=1, max_length=255)
    company: Optional[str] = Field(None, min_length=1, max_length=255)
    region: Optional[str] = Field(None, min_length=1, max_length=255)
    hourly_rate: Optional[str] = Field(None, min_length=1, max_length=100)
    description: Optional[str] = Field(None, min_length=1)
    requirements: Optional[str] = None
    benefits: Optional[str] = None
    duration: Optional[str] = None
    contact_email: Optional[str] = None
    contact_phone: Optional[str] = None
    job_type: Optional[str] = None
    primary_industry: Optional[str] = None
    classification: Optional[str] = None
    status: Optional[str] = Field(None, description="Optional status transition")


class JobStatusUpdate(BaseModel):
    status: str = Field(..., description="active, paused, expired or deleted")


class JobFeatureToggle(BaseModel):
    feature: str = Field(..., description="featured or urgent", pattern="^(featured|urgent)$")
    enabled: bool = Field(..., description="Turn the flag on or off")


class JobResponse(BaseModel):
    """Schema for job response."""
    id: int
    employer_id: int
    title: str
    company: str
    region: str
    hourly_rate: str
    description: str
    requirements: Optional[str] = None
    benefits: Optional[str] = None
    duration: Optional[str] = None
    contact_email: str
    contact_phone: Optional[str] = None
    job_type: str
    primary_industry: Optional[str] = None
    classification: Optional[str] = None
    status: str
    active: bool
    expiry_date: Optional[datetime] = None
    is_free_job: bool
    free_job_expires_at: Optional[datetime] = None
    is_featured: bool
    featured_until: Optional[datetime] = None
    featured_active: bool = Field(..., description="Featured flag set and not expired")
    is_urgent: bool
    urgent_until: Optional[datetime] = None
    urgent_active: bool = Field(..., description="Urgent flag set and not expired")
    views: int
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class JobListResponse(BaseModel):
    """Schema for list of jobs response."""
    jobs: List[JobResponse] = Field(..., description="List of jobs")
    total: int = Field(..., description="Number of jobs returned")


class FreeJobEligibility(BaseModel):
    eligible: bool
    reason: str
