"""
Profile endpoints. The profile itself is created on the first
authenticated request (see get_current_profile).
"""
import logging
from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from fieldjobs.core.auth_dependency import get_db, get_current_profile
from fieldjobs.core.errors import AppError
from fieldjobs.db.models.profile import Profile
from fieldjobs.schemas.profile import ProfileResponse, ProfileUpdate

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/profile", tags=["Profile"])


@router.get("/me", response_model=ProfileResponse)
def get_my_profile(profile: Profile = Depends(get_current_profile)):
    return ProfileResponse.model_validate(profile)


@router.put("/me", response_model=ProfileResponse)
def update_my_profile(
    data: ProfileUpdate,
    profile: Profile = Depends(get_current_profile),
    db: Session = Depends(get_db),
):
    """Only updates provided fields."""
    try:
        for field, value in data.model_dump(exclude_unset=True).items():
            setattr(profile, field, value)
        profile.updated_at = datetime.utcnow()
        db.commit()
        db.refresh(profile)

        logger.info(f"Profile updated: user_id={profile.id}")
        return ProfileResponse.model_validate(profile)

    except (AppError, HTTPException):
        db.rollback()
        raise
    except Exception as e:
        db.rollback()
        logger.error(f"Failed to update profile: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={"error": "Failed to update profile", "details": str(e)},
        )
