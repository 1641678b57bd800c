"""
Pydantic schemas for application endpoints.
"""
from typing import Optional, List
from datetime import datetime
from pydantic import BaseModel, Field


class ApplicationCreate(BaseModel):
    """Contact fields default to the applicant's profile."""
    job_id: int = Field(..., description="Job to apply to")
    first_name: Optional[str] = Field(None, max_length=100)
    last_name: Optional[str] = Field(None, max_length=100)
    email: Optional[str] = Field(None, max_length=255)
    phone: Optional[str] = Field(None, max_length=50)
    classification: Optional[str] = Field(None, max_length=100)


class ApplicationStatusUpdate(BaseModel):
    status: str = Field(..., description="pending, submitted, shortlisted, interviewed, rejected or hired")


class ApplicationResponse(BaseModel):
    id: int
    job_id: int
    applicant_id: int
    first_name: str
    last_name: str
    email: str
    phone: str
    classification: Optional[str] = None
    status: str
    applied_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class ApplicationListResponse(BaseModel):
    applications: List[ApplicationResponse]
    total: int
