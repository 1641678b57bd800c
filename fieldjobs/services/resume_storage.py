"""
Resume file storage.

Files live under RESUME_STORAGE_DIR and are addressed by the key
"{user_id}/{filename}". Only the server reads them back, after an access
check, and streams them inline.
"""
import logging
import re
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from fieldjobs.core import config
from fieldjobs.core.errors import NotFoundError, PermissionDenied, ValidationError
from fieldjobs.db.models.ledger import ProfileUnlock, ResumeUnlock
from fieldjobs.db.models.profile import Profile
from fieldjobs.services.application_service import has_applied_to_employer
from fieldjobs.services.credit_service import consume_credits

logger = logging.getLogger(__name__)

ALLOWED_EXTENSIONS = {
    ".pdf": "application/pdf",
    ".doc": "application/msword",
    ".docx": "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
}
MAX_RESUME_BYTES = 5 * 1024 * 1024


def _storage_root() -> Path:
    return Path(config.RESUME_STORAGE_DIR)


def safe_filename(filename: str) -> str:
    name = Path(filename or "").name
    name = re.sub(r"[^A-Za-z0-9._-]+", "_", name).strip("._")
    return name or "resume"


def save_resume(db: Session, profile: Profile, filename: str, content: bytes) -> str:
    """
    Store a job seeker's resume and point the profile at it.

    Returns:
        The storage key
    """
    if profile.is_employer:
        raise PermissionDenied("Only job seekers can upload resumes")

    name = safe_filename(filename)
    extension = Path(name).suffix.lower()
    if extension not in ALLOWED_EXTENSIONS:
        raise ValidationError("Invalid file type", details="Allowed types: pdf, doc, docx")
    if not content:
        raise ValidationError("Empty file")
    if len(content) > MAX_RESUME_BYTES:
        raise ValidationError("File too large", details="Maximum size is 5 MB")

    key = f"{profile.id}/{datetime.utcnow().strftime('%Y%m%d%H%M%S')}_{name}"
    path = _storage_root() / key
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(content)

    profile.resume_key = key
    profile.resume_uploaded_at = datetime.utcnow()
    db.commit()
    db.refresh(profile)

    logger.info(f"Resume stored: user_id={profile.id}, key={key}, bytes={len(content)}")
    return key


def resolve_resume(key: str) -> Tuple[Path, str]:
    """Path and media type for a stored key; the path must stay inside the storage root."""
    root = _storage_root().resolve()
    path = (root / key).resolve()
    if root not in path.parents or not path.is_file():
        raise NotFoundError("Resume file not found")
    media_type = ALLOWED_EXTENSIONS.get(path.suffix.lower(), "application/octet-stream")
    return path, media_type


def authorize_resume_view(db: Session, viewer: Profile, job_seeker_id: int) -> dict:
    """
    Decide whether `viewer` may see the job seeker's resume, charging if needed.

    Job seekers may only view their own. Employers view for free when the job
    seeker applied to one of their jobs or the resume was unlocked before;
    otherwise one credit is consumed and a ResumeUnlock row is written.
    The stored file is resolved before any charge.
    """
    job_seeker = db.query(Profile).filter(Profile.id == job_seeker_id).first()
    if not job_seeker or job_seeker.is_employer or not job_seeker.resume_key:
        raise NotFoundError("Resume not found")
    if not viewer.is_employer and viewer.id != job_seeker_id:
        raise PermissionDenied("You can only view your own resume")

    path, media_type = resolve_resume(job_seeker.resume_key)
    found = {"profile": job_seeker, "path": path, "media_type": media_type}

    if not viewer.is_employer:
        return {**found, "access": "owner", "charged": False}

    if has_applied_to_employer(db, job_seeker_id, viewer.id):
        return {**found, "access": "applicant", "charged": False}

    unlocked = (
        db.query(ResumeUnlock)
        .filter(ResumeUnlock.employer_id == viewer.id, ResumeUnlock.job_seeker_id == job_seeker_id)
        .first()
    )
    if unlocked:
        return {**found, "access": "unlocked", "charged": False}

    consume_credits(db, viewer.id, 1, reason="resume_unlock", reference=str(job_seeker_id), commit=False)
    db.add(ResumeUnlock(employer_id=viewer.id, job_seeker_id=job_seeker_id))
    try:
        db.commit()
    except IntegrityError:
        # A concurrent request unlocked the pair; this charge is rolled back
        db.rollback()
        return {**found, "access": "unlocked", "charged": False}
    logger.info(f"Resume unlocked: employer_id={viewer.id}, job_seeker_id={job_seeker_id}")
    return {**found, "access": "unlocked", "charged": True}


def search_resumes(
    db: Session,
    employer: Profile,
    classification: Optional[str] = None,
    location: Optional[str] = None,
    search: Optional[str] = None,
    limit: int = 50,
) -> List[Dict[str, Any]]:
    """
    Job seekers with an uploaded resume.

    Contact details are left out; `unlocked` tells whether this employer
    already paid for the resume or the contact details.
    """
    if not employer.is_employer:
        raise PermissionDenied("Only employers can search resumes")

    query = db.query(Profile).filter(Profile.account_type == "job_seeker", Profile.resume_key.isnot(None))
    if classification:
        query = query.filter(Profile.classification.ilike(f"%{classification}%"))
    if location:
        query = query.filter(Profile.location.ilike(f"%{location}%"))
    if search:
        term = f"%{search}%"
        query = query.filter(or_(Profile.specialization.ilike(term), Profile.classification.ilike(term)))
    profiles = query.order_by(Profile.resume_uploaded_at.desc(), Profile.id.desc()).limit(limit).all()

    unlocked_ids = {
        row[0]
        for row in db.query(ResumeUnlock.job_seeker_id).filter(ResumeUnlock.employer_id == employer.id).all()
    } | {
        row[0]
        for row in db.query(ProfileUnlock.job_seeker_id).filter(ProfileUnlock.employer_id == employer.id).all()
    }

    return [
        {
            "id": p.id,
            "first_name": p.first_name,
            "last_initial": p.last_name[:1] if p.last_name else None,
            "location": p.location,
            "classification": p.classification,
            "specialization": p.specialization,
            "years_experience": p.years_experience,
            "resume_uploaded_at": p.resume_uploaded_at,
            "unlocked": p.id in unlocked_ids,
        }
        for p in profiles
    ]
