"""
Credit endpoints: balance and contact unlocks.
"""
import logging

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from fieldjobs.core.auth_dependency import get_db, require_employer
from fieldjobs.core.errors import AppError
from fieldjobs.db.models.profile import Profile
from fieldjobs.schemas.entitlement import (
    CreditBalanceResponse,
    UnlockProfileRequest,
    UnlockProfileResponse,
)
from fieldjobs.services import credit_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/credits", tags=["Credits"])


@router.get("/balance", response_model=CreditBalanceResponse)
def get_balance(
    employer: Profile = Depends(require_employer),
    db: Session = Depends(get_db),
):
    balance = credit_service.get_balance(db, employer.id)
    return CreditBalanceResponse(**balance)


@router.post("/unlock-profile", response_model=UnlockProfileResponse)
def unlock_profile(
    data: UnlockProfileRequest,
    employer: Profile = Depends(require_employer),
    db: Session = Depends(get_db),
):
    """
    Reveal a job seeker's contact details for one credit.

    Returns 402 with no credits left; a pair already unlocked is free.
    """
    try:
        return credit_service.unlock_profile(db, employer, data.job_seeker_id)
    except (AppError, HTTPException):
        db.rollback()
        raise
    except Exception as e:
        db.rollback()
        logger.error(f"Failed to unlock profile: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={"error": "Failed to unlock profile", "details": str(e)},
        )
