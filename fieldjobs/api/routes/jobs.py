"""
Job endpoints.

Public listing and detail, plus the employer's CRUD, status transitions,
feature toggles and the one-per-employer free job.
"""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, status, Query
from sqlalchemy.orm import Session

from fieldjobs.core.auth_dependency import get_db, get_current_profile, require_employer
from fieldjobs.core.errors import AppError
from fieldjobs.db.models.profile import Profile
from fieldjobs.schemas.job import (
    FreeJobEligibility,
    JobCreate,
    JobFeatureToggle,
    JobListResponse,
    JobResponse,
    JobStatusUpdate,
    JobUpdate,
)
from fieldjobs.services import job_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/jobs", tags=["Jobs"])


def _failed(db: Session, action: str, e: Exception) -> HTTPException:
    db.rollback()
    logger.error(f"Failed to {action}: {e}", exc_info=True)
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail={"error": f"Failed to {action}", "details": str(e)},
    )


@router.get("", response_model=JobListResponse)
def list_jobs(
    search: Optional[str] = Query(None, description="Search in title, company and description"),
    region: Optional[str] = Query(None, description="Filter by region (partial match)"),
    job_type: Optional[str] = Query(None, description="in-house or project-hire"),
    industry: Optional[str] = Query(None, description="Filter by primary industry"),
    urgent: Optional[bool] = Query(None, description="Only jobs with a live urgent flag"),
    limit: int = Query(50, ge=1, le=200),
    db: Session = Depends(get_db),
):
    """Public listing of active jobs; live featured jobs come first."""
    try:
        jobs = job_service.list_public_jobs(
            db, search=search, region=region, job_type=job_type, industry=industry, urgent=urgent, limit=limit
        )
        return JobListResponse(jobs=[JobResponse.model_validate(job) for job in jobs], total=len(jobs))
    except (AppError, HTTPException):
        raise
    except Exception as e:
        raise _failed(db, "list jobs", e)


@router.get("/mine", response_model=JobListResponse)
def list_my_jobs(
    employer: Profile = Depends(require_employer),
    db: Session = Depends(get_db),
):
    jobs = job_service.list_employer_jobs(db, employer)
    return JobListResponse(jobs=[JobResponse.model_validate(job) for job in jobs], total=len(jobs))


@router.get("/free/eligibility", response_model=FreeJobEligibility)
def free_job_eligibility(
    profile: Profile = Depends(get_current_profile),
    db: Session = Depends(get_db),
):
    return job_service.check_free_job_eligibility(db, profile)


@router.post("/free", status_code=status.HTTP_201_CREATED, response_model=JobResponse)
def create_free_job(
    job_data: JobCreate,
    employer: Profile = Depends(require_employer),
    db: Session = Depends(get_db),
):
    """Post the employer's one free job (active for 30 days, outside the plan limit)."""
    try:
        job = job_service.create_free_job(db, employer, job_data.model_dump(exclude_unset=True))
        return JobResponse.model_validate(job)
    except (AppError, HTTPException):
        db.rollback()
        raise
    except Exception as e:
        raise _failed(db, "create free job", e)


@router.post("", status_code=status.HTTP_201_CREATED, response_model=JobResponse)
def create_job(
    job_data: JobCreate,
    employer: Profile = Depends(require_employer),
    db: Session = Depends(get_db),
):
    """
    Create a job posting.

    Returns 402 when the employer's plan has no active job slot left.
    """
    try:
        job = job_service.create_job(db, employer, job_data.model_dump(exclude_unset=True))
        return JobResponse.model_validate(job)
    except (AppError, HTTPException):
        db.rollback()
        raise
    except Exception as e:
        raise _failed(db, "create job", e)


@router.get("/{job_id}", response_model=JobResponse)
def get_job(job_id: int, db: Session = Depends(get_db)):
    """Job detail; counts a view."""
    job = job_service.get_job(db, job_id)
    job = job_service.record_view(db, job)
    return JobResponse.model_validate(job)


@router.put("/{job_id}", response_model=JobResponse)
def update_job(
    job_id: int,
    job_data: JobUpdate,
    employer: Profile = Depends(require_employer),
    db: Session = Depends(get_db),
):
    """Only updates provided fields; a `status` key goes through the transition rules."""
    try:
        job = job_service.update_job(db, job_id, employer, job_data.model_dump(exclude_unset=True))
        return JobResponse.model_validate(job)
    except (AppError, HTTPException):
        db.rollback()
        raise
    except Exception as e:
        raise _failed(db, "update job", e)


@router.patch("/{job_id}/status", response_model=JobResponse)
def update_job_status(
    job_id: int,
    data: JobStatusUpdate,
    employer: Profile = Depends(require_employer),
    db: Session = Depends(get_db),
):
    try:
        job = job_service.update_job_status(db, job_id, employer, data.status)
        return JobResponse.model_validate(job)
    except (AppError, HTTPException):
        db.rollback()
        raise
    except Exception as e:
        raise _failed(db, "update job status", e)


@router.delete("/{job_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_job(
    job_id: int,
    employer: Profile = Depends(require_employer),
    db: Session = Depends(get_db),
):
    """Soft delete: the job is kept with status `deleted`."""
    try:
        job_service.delete_job(db, job_id, employer)
        return None
    except (AppError, HTTPException):
        db.rollback()
        raise
    except Exception as e:
        raise _failed(db, "delete job", e)


@router.post("/{job_id}/features", response_model=JobResponse)
def toggle_job_feature(
    job_id: int,
    data: JobFeatureToggle,
    employer: Profile = Depends(require_employer),
    db: Session = Depends(get_db),
):
    try:
        job = job_service.toggle_job_feature(db, job_id, employer, data.feature, data.enabled)
        return JobResponse.model_validate(job)
    except (AppError, HTTPException):
        db.rollback()
        raise
    except Exception as e:
        raise _failed(db, "update job features", e)
