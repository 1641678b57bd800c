"""
Application endpoints: submit, list, and owner status updates.
"""
import logging

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, status
from sqlalchemy.orm import Session

from fieldjobs.core.auth_dependency import get_db, get_current_profile
from fieldjobs.core.errors import AppError
from fieldjobs.db.models.profile import Profile
from fieldjobs.schemas.application import (
    ApplicationCreate,
    ApplicationListResponse,
    ApplicationResponse,
    ApplicationStatusUpdate,
)
from fieldjobs.services import application_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/applications", tags=["Applications"])


@router.post("", status_code=status.HTTP_201_CREATED, response_model=ApplicationResponse)
def submit_application(
    data: ApplicationCreate,
    background_tasks: BackgroundTasks,
    profile: Profile = Depends(get_current_profile),
    db: Session = Depends(get_db),
):
    """
    Apply to a job.

    Contact fields default to the applicant's profile. Applying twice to
    the same job returns 409.
    """
    try:
        fields = data.model_dump(exclude={"job_id"}, exclude_none=True)
        application = application_service.submit_application(
            db, data.job_id, profile, fields, background_tasks
        )
        return ApplicationResponse.model_validate(application)
    except (AppError, HTTPException):
        db.rollback()
        raise
    except Exception as e:
        db.rollback()
        logger.error(f"Failed to submit application: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={"error": "Failed to submit application", "details": str(e)},
        )


@router.get("", response_model=ApplicationListResponse)
def list_applications(
    profile: Profile = Depends(get_current_profile),
    db: Session = Depends(get_db),
):
    """Own applications for job seekers, received applications for employers."""
    applications = application_service.list_applications(db, profile)
    return ApplicationListResponse(
        applications=[ApplicationResponse.model_validate(a) for a in applications],
        total=len(applications),
    )


@router.patch("/{application_id}/status", response_model=ApplicationResponse)
def update_application_status(
    application_id: int,
    data: ApplicationStatusUpdate,
    background_tasks: BackgroundTasks,
    profile: Profile = Depends(get_current_profile),
    db: Session = Depends(get_db),
):
    try:
        application = application_service.update_application_status(
            db, application_id, data.status, profile, background_tasks
        )
        return ApplicationResponse.model_validate(application)
    except (AppError, HTTPException):
        db.rollback()
        raise
    except Exception as e:
        db.rollback()
        logger.error(f"Failed to update application status: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={"error": "Failed to update application status", "details": str(e)},
        )
