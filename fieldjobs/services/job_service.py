"""
Job lifecycle manager.

Statuses: active, paused, expired, deleted (soft, terminal). Every move to
`active` resets the 30-day expiry and runs the plan's job-limit check, so
no caller can post past its limit.
"""
import logging
from datetime import datetime, timedelta
from typing import Optional, Dict, Any, List

from fastapi import BackgroundTasks
from sqlalchemy import and_, case, or_, select
from sqlalchemy.orm import Session

from fieldjobs.core.errors import ConflictError, NotFoundError, PermissionDenied, ValidationError
from fieldjobs.core.plan_limits import (
    EXPIRATION_WARNING_DAYS,
    FREE_JOB_DAYS,
    JOB_ACTIVE_DAYS,
    JOB_FEATURES,
)
from fieldjobs.db.models.job import Job, JOB_STATUSES, JOB_TYPES
from fieldjobs.db.models.profile import Profile
from fieldjobs.db.models.subscription import Subscription
from fieldjobs.services.entitlement_service import ensure_can_post_job
from fieldjobs.services.notification_service import notify_job_expiring

logger = logging.getLogger(__name__)

ALLOWED_TRANSITIONS = {
    "active": {"paused", "expired", "deleted"},
    "paused": {"active", "expired", "deleted"},
    "expired": {"active", "deleted"},
    "deleted": set(),
}

JOB_TYPE_ALIASES = {
    "full time": "in-house",
    "full-time": "in-house",
    "fulltime": "in-house",
    "permanent": "in-house",
    "employee": "in-house",
    "staff": "in-house",
    "contract": "project-hire",
    "contractor": "project-hire",
    "freelance": "project-hire",
    "project": "project-hire",
    "temp": "project-hire",
    "temporary": "project-hire",
    "part time": "project-hire",
    "part-time": "project-hire",
}

EDITABLE_FIELDS = (
    "title",
    "company",
    "region",
    "hourly_rate",
    "description",
    "requirements",
    "benefits",
    "duration",
    "contact_email",
    "contact_phone",
    "job_type",
    "primary_industry",
    "classification",
)


def normalize_job_type(value: Optional[str]) -> str:
    """Map free-form job types onto in-house / project-hire."""
    lowered = (value or "").strip().lower()
    if lowered in JOB_TYPES:
        return lowered
    return JOB_TYPE_ALIASES.get(lowered, "project-hire")


def days_active(job: Job, now: datetime) -> int:
    return int((now - job.created_at).total_seconds() // 86400)


def get_job(db: Session, job_id: int) -> Job:
    """A job that exists and is not deleted."""
    job = db.query(Job).filter(Job.id == job_id).first()
    if not job or job.status == "deleted":
        raise NotFoundError("Job not found")
    return job


def get_owned_job(db: Session, job_id: int, employer: Profile) -> Job:
    job = get_job(db, job_id)
    if job.employer_id != employer.id:
        raise PermissionDenied("You can only manage your own jobs")
    return job


def _require_employer(profile: Profile) -> None:
    if not profile.is_employer:
        raise PermissionDenied("Employer account required")


def _apply_fields(job: Job, data: Dict[str, Any]) -> None:
    for field in EDITABLE_FIELDS:
        if field in data and data[field] is not None:
            value = data[field]
            if field == "job_type":
                value = normalize_job_type(value)
            setattr(job, field, value)


def _fill_defaults(job: Job, employer: Profile) -> None:
    """Company and contact fall back to the employer profile."""
    if not job.company:
        job.company = employer.company_name
    if not job.contact_email:
        job.contact_email = employer.email
    job.job_type = normalize_job_type(job.job_type)

    missing = [field for field in ("title", "company", "region", "hourly_rate", "description") if not getattr(job, field)]
    if missing:
        raise ValidationError("Missing required fields", details=", ".join(missing))


def _transition(db: Session, job: Job, new_status: str, now: datetime) -> Job:
    if new_status not in JOB_STATUSES:
        raise ValidationError("Invalid status", details=f"status must be one of: {', '.join(JOB_STATUSES)}")
    if new_status == job.status:
        return job
    if new_status not in ALLOWED_TRANSITIONS[job.status]:
        raise ConflictError(f"Cannot change job status from {job.status} to {new_status}")

    if new_status == "active":
        if job.is_free_job:
            if job.free_job_expires_at and job.free_job_expires_at <= now:
                raise ConflictError("Your free job posting period has ended", details="Choose a plan to repost")
        else:
            ensure_can_post_job(db, job.employer_id, exclude_job_id=job.id)
        job.active = True
        job.expiry_date = now + timedelta(days=JOB_ACTIVE_DAYS)
        job.deactivated_at = None
    else:
        job.active = False
        job.deactivated_at = now

    old_status = job.status
    job.status = new_status
    job.updated_at = now
    logger.info(f"Job status changed: job_id={job.id}, {old_status} -> {new_status}")
    return job


def create_job(db: Session, employer: Profile, data: Dict[str, Any], now: Optional[datetime] = None) -> Job:
    """Insert an active job after the plan's job-limit check."""
    _require_employer(employer)
    now = now or datetime.utcnow()

    ensure_can_post_job(db, employer.id)

    job = Job(
        employer_id=employer.id,
        status="active",
        active=True,
        expiry_date=now + timedelta(days=JOB_ACTIVE_DAYS),
        created_at=now,
        updated_at=now,
    )
    _apply_fields(job, data)
    _fill_defaults(job, employer)

    db.add(job)
    db.commit()
    db.refresh(job)
    logger.info(f"Job created: job_id={job.id}, employer_id={employer.id}")
    return job


def update_job(db: Session, job_id: int, employer: Profile, data: Dict[str, Any], now: Optional[datetime] = None) -> Job:
    """Full edit; a `status` key goes through the same transition rules as PATCH."""
    now = now or datetime.utcnow()
    job = get_owned_job(db, job_id, employer)
    _apply_fields(job, data)
    if data.get("status"):
        _transition(db, job, data["status"], now)
    job.updated_at = now
    db.commit()
    db.refresh(job)
    logger.info(f"Job updated: job_id={job.id}")
    return job


def update_job_status(
    db: Session, job_id: int, employer: Profile, new_status: str, now: Optional[datetime] = None
) -> Job:
    job = get_owned_job(db, job_id, employer)
    _transition(db, job, new_status, now or datetime.utcnow())
    db.commit()
    db.refresh(job)
    return job


def delete_job(db: Session, job_id: int, employer: Profile, now: Optional[datetime] = None) -> Job:
    """Soft delete."""
    return update_job_status(db, job_id, employer, "deleted", now=now)


def toggle_job_feature(db: Session, job_id: int, employer: Profile, feature: str, enabled: bool) -> Job:
    """Owner toggle of a feature flag; clears the paid expiry either way."""
    if feature not in JOB_FEATURES:
        raise ValidationError("Invalid feature type", details=f"feature must be one of: {', '.join(JOB_FEATURES)}")
    job = get_owned_job(db, job_id, employer)
    setattr(job, f"is_{feature}", bool(enabled))
    setattr(job, f"{feature}_until", None)
    db.commit()
    db.refresh(job)
    logger.info(f"Job feature toggled: job_id={job.id}, {feature}={enabled}")
    return job


def apply_job_feature(db: Session, job: Job, feature: str, now: Optional[datetime] = None) -> Job:
    """Paid feature: flag on for the feature's duration. Flushed, the caller commits."""
    if feature not in JOB_FEATURES:
        raise ValidationError("Invalid feature type", details=feature)
    now = now or datetime.utcnow()
    setattr(job, f"is_{feature}", True)
    setattr(job, f"{feature}_until", now + timedelta(days=JOB_FEATURES[feature]["duration_days"]))
    job.updated_at = now
    db.flush()
    logger.info(f"Job feature applied: job_id={job.id}, feature={feature}")
    return job


def check_free_job_eligibility(db: Session, profile: Profile) -> Dict[str, Any]:
    if not profile.is_employer:
        return {"eligible": False, "reason": "Only employers can post jobs"}
    if profile.has_used_free_job:
        return {"eligible": False, "reason": "User has already used free job"}
    return {"eligible": True, "reason": "Eligible for free job"}


def create_free_job(db: Session, employer: Profile, data: Dict[str, Any], now: Optional[datetime] = None) -> Job:
    """The one job an employer may post without a plan."""
    _require_employer(employer)
    eligibility = check_free_job_eligibility(db, employer)
    if not eligibility["eligible"]:
        raise ConflictError(eligibility["reason"])

    now = now or datetime.utcnow()
    expires_at = now + timedelta(days=FREE_JOB_DAYS)
    job = Job(
        employer_id=employer.id,
        status="active",
        active=True,
        is_free_job=True,
        free_job_expires_at=expires_at,
        expiry_date=expires_at,
        created_at=now,
        updated_at=now,
    )
    _apply_fields(job, data)
    _fill_defaults(job, employer)

    employer.has_used_free_job = True
    db.add(job)
    db.commit()
    db.refresh(job)
    logger.info(f"Free job created: job_id={job.id}, employer_id={employer.id}")
    return job


def list_public_jobs(
    db: Session,
    search: Optional[str] = None,
    region: Optional[str] = None,
    job_type: Optional[str] = None,
    industry: Optional[str] = None,
    urgent: Optional[bool] = None,
    limit: int = 50,
    now: Optional[datetime] = None,
) -> List[Job]:
    """Active jobs, live featured jobs first, then newest."""
    now = now or datetime.utcnow()
    query = db.query(Job).filter(Job.status == "active")

    if search:
        term = f"%{search}%"
        query = query.filter(
            or_(Job.title.ilike(term), Job.company.ilike(term), Job.description.ilike(term))
        )
    if region:
        query = query.filter(Job.region.ilike(f"%{region}%"))
    if job_type:
        query = query.filter(Job.job_type == normalize_job_type(job_type))
    if industry:
        query = query.filter(Job.primary_industry == industry)
    if urgent:
        query = query.filter(
            Job.is_urgent.is_(True),
            or_(Job.urgent_until.is_(None), Job.urgent_until > now),
        )

    featured_live = and_(
        Job.is_featured.is_(True),
        or_(Job.featured_until.is_(None), Job.featured_until > now),
    )
    return (
        query.order_by(case((featured_live, 0), else_=1), Job.created_at.desc(), Job.id.desc())
        .limit(limit)
        .all()
    )


def list_employer_jobs(db: Session, employer: Profile) -> List[Job]:
    return (
        db.query(Job)
        .filter(Job.employer_id == employer.id, Job.status != "deleted")
        .order_by(Job.created_at.desc(), Job.id.desc())
        .all()
    )


def record_view(db: Session, job: Job) -> Job:
    job.views = (job.views or 0) + 1
    db.commit()
    db.refresh(job)
    return job


def _free_plan_active_jobs(db: Session) -> List[Job]:
    """Active jobs whose employer has no active subscription row."""
    subscribed = select(Subscription.user_id).where(Subscription.status == "active")
    return (
        db.query(Job)
        .filter(Job.status == "active", Job.employer_id.notin_(subscribed))
        .order_by(Job.id)
        .all()
    )


def expire_jobs(db: Session, now: Optional[datetime] = None) -> Dict[str, Any]:
    """
    Expiration sweep.

    Expires active jobs of free-plan employers once they are 30 days old,
    and free jobs whose free period has ended.
    """
    now = now or datetime.utcnow()
    to_expire = {}

    for job in _free_plan_active_jobs(db):
        if days_active(job, now) >= JOB_ACTIVE_DAYS:
            to_expire[job.id] = job

    ended_free_jobs = (
        db.query(Job)
        .filter(Job.status == "active", Job.is_free_job.is_(True), Job.free_job_expires_at <= now)
        .all()
    )
    for job in ended_free_jobs:
        to_expire[job.id] = job

    for job in to_expire.values():
        _transition(db, job, "expired", now)

    db.commit()
    expired_ids = sorted(to_expire)
    logger.info(f"Expiration sweep: expired={len(expired_ids)}")
    return {"expired": len(expired_ids), "job_ids": expired_ids}


def send_expiration_warnings(
    db: Session, tasks: Optional[BackgroundTasks], now: Optional[datetime] = None
) -> Dict[str, Any]:
    """
    Email owners of free-plan jobs with exactly 7 or 1 days left.

    Equality, not a threshold: a job checked on a different cadence can skip
    its warning day.
    """
    now = now or datetime.utcnow()
    warned = []

    for job in _free_plan_active_jobs(db):
        days_left = JOB_ACTIVE_DAYS - days_active(job, now)
        if days_left not in EXPIRATION_WARNING_DAYS:
            continue
        employer = db.query(Profile).filter(Profile.id == job.employer_id).first()
        if not employer:
            continue
        notify_job_expiring(tasks, job, employer, days_left)
        warned.append({"job_id": job.id, "days_left": days_left})
        logger.info(f"Expiration warning scheduled: job_id={job.id}, days_left={days_left}")

    return {"warnings_sent": len(warned), "jobs": warned}
