"""
Resume endpoints: upload, employer search, and the secure inline view.
"""
import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, UploadFile, status
from fastapi.responses import FileResponse
from sqlalchemy.orm import Session

from fieldjobs.core.auth_dependency import get_db, get_current_profile, require_employer
from fieldjobs.core.errors import AppError, ValidationError
from fieldjobs.db.models.profile import Profile
from fieldjobs.schemas.profile import ResumeSearchResult
from fieldjobs.services import resume_storage

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/resumes", tags=["Resumes"])


@router.post("/upload", status_code=status.HTTP_201_CREATED)
async def upload_resume(
    file: UploadFile,
    profile: Profile = Depends(get_current_profile),
    db: Session = Depends(get_db),
):
    """Upload the caller's resume (pdf, doc or docx, up to 5 MB)."""
    content = await file.read(resume_storage.MAX_RESUME_BYTES + 1)
    if len(content) > resume_storage.MAX_RESUME_BYTES:
        raise ValidationError("File too large", details="Maximum size is 5 MB")

    try:
        key = resume_storage.save_resume(db, profile, file.filename, content)
    except (AppError, HTTPException):
        db.rollback()
        raise
    except Exception as e:
        db.rollback()
        logger.error(f"Failed to upload resume: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={"error": "Failed to upload resume", "details": str(e)},
        )

    return {"resume_key": key, "uploaded_at": profile.resume_uploaded_at}


@router.get("/search", response_model=List[ResumeSearchResult])
def search_resumes(
    classification: Optional[str] = Query(None),
    location: Optional[str] = Query(None),
    search: Optional[str] = Query(None, description="Search in specialization and classification"),
    limit: int = Query(50, ge=1, le=200),
    employer: Profile = Depends(require_employer),
    db: Session = Depends(get_db),
):
    return resume_storage.search_resumes(
        db, employer, classification=classification, location=location, search=search, limit=limit
    )


@router.get("/{user_id}/view")
def view_resume(
    user_id: int,
    profile: Profile = Depends(get_current_profile),
    db: Session = Depends(get_db),
):
    """
    Stream a resume inline.

    Employers pay one credit unless the job seeker applied to one of their
    jobs or the resume was unlocked before.
    """
    try:
        access = resume_storage.authorize_resume_view(db, profile, user_id)
    except (AppError, HTTPException):
        db.rollback()
        raise

    path = access["path"]
    logger.info(f"Resume viewed: viewer_id={profile.id}, job_seeker_id={user_id}, access={access['access']}")
    return FileResponse(
        path,
        media_type=access["media_type"],
        content_disposition_type="inline",
        filename=path.name,
        headers={"Cache-Control": "no-store", "X-Resume-Access": access["access"]},
    )
