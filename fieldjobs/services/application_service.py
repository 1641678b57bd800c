"""
Application manager.

One application per (job, applicant), enforced by a unique constraint.
Status updates belong to the job's owner. Emails and the free-job upgrade
prompt are side effects: they are logged on failure and never undo the
application itself.
"""
import logging
from datetime import datetime
from typing import Optional, Dict, Any, List

from fastapi import BackgroundTasks
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from fieldjobs.core.errors import ConflictError, NotFoundError, PermissionDenied, ValidationError
from fieldjobs.db.models.application import Application, APPLICATION_STATUSES
from fieldjobs.db.models.job import Job
from fieldjobs.db.models.profile import Profile
from fieldjobs.db.models.upgrade_prompt import UpgradePrompt
from fieldjobs.services.notification_service import (
    notify_application_status,
    notify_application_submitted,
)

logger = logging.getLogger(__name__)

FIRST_APPLICATION_PROMPT = "first_application"


def _trigger_first_application_prompt(db: Session, job: Job) -> Optional[UpgradePrompt]:
    """Insert the one-shot upgrade prompt when a free job gets its first application."""
    if not job.is_free_job:
        return None

    count = db.query(Application).filter(Application.job_id == job.id).count()
    if count != 1:
        return None

    prompt = UpgradePrompt(user_id=job.employer_id, job_id=job.id, prompt_type=FIRST_APPLICATION_PROMPT)
    db.add(prompt)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        logger.info(f"Upgrade prompt already exists: job_id={job.id}")
        return None

    logger.info(f"Created first application prompt: job_id={job.id}, employer_id={job.employer_id}")
    return prompt


def submit_application(
    db: Session,
    job_id: int,
    applicant: Profile,
    fields: Dict[str, Any],
    tasks: Optional[BackgroundTasks] = None,
) -> Application:
    """
    Record an application.

    Raises:
        NotFoundError: job missing or deleted
        PermissionDenied: caller is an employer
        ConflictError: job not accepting applications, or already applied
    """
    if applicant.is_employer:
        raise PermissionDenied("Only job seekers can apply to jobs")

    job = db.query(Job).filter(Job.id == job_id).first()
    if not job or job.status == "deleted":
        raise NotFoundError("Job not found")
    if job.status != "active":
        raise ConflictError("This job is no longer accepting applications")

    existing = (
        db.query(Application)
        .filter(Application.job_id == job_id, Application.applicant_id == applicant.id)
        .first()
    )
    if existing:
        raise ConflictError("You have already applied to this job")

    application = Application(
        job_id=job_id,
        applicant_id=applicant.id,
        first_name=fields.get("first_name") or applicant.first_name,
        last_name=fields.get("last_name") or applicant.last_name,
        email=fields.get("email") or applicant.email,
        phone=fields.get("phone") or applicant.phone,
        classification=fields.get("classification") or applicant.classification,
        status="pending",
    )
    missing = [name for name in ("first_name", "last_name", "email", "phone") if not getattr(application, name)]
    if missing:
        raise ValidationError("Missing required fields", details=", ".join(missing))

    db.add(application)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        logger.info(f"Duplicate application rejected by constraint: job_id={job_id}, applicant_id={applicant.id}")
        raise ConflictError("You have already applied to this job")

    db.refresh(application)
    logger.info(f"Application submitted: application_id={application.id}, job_id={job_id}, applicant_id={applicant.id}")

    try:
        _trigger_first_application_prompt(db, job)
    except Exception as e:
        db.rollback()
        logger.error(f"Failed to create upgrade prompt for job_id={job_id}: {e}", exc_info=True)

    employer = db.query(Profile).filter(Profile.id == job.employer_id).first()
    notify_application_submitted(tasks, application, job, employer)
    return application


def update_application_status(
    db: Session,
    application_id: int,
    new_status: str,
    requester: Profile,
    tasks: Optional[BackgroundTasks] = None,
) -> Application:
    """Change an application's status; only the job's owner may."""
    if new_status not in APPLICATION_STATUSES:
        raise ValidationError(
            "Invalid status",
            details=f"status must be one of: {', '.join(APPLICATION_STATUSES)}",
        )

    application = db.query(Application).filter(Application.id == application_id).first()
    if not application:
        raise NotFoundError("Application not found")

    job = db.query(Job).filter(Job.id == application.job_id).first()
    if not job or job.employer_id != requester.id:
        raise PermissionDenied("Unauthorized - you can only update applications for your own jobs")

    old_status = application.status
    application.status = new_status
    application.updated_at = datetime.utcnow()
    db.commit()
    db.refresh(application)

    logger.info(f"Application status updated: application_id={application_id}, {old_status} -> {new_status}")

    if old_status != new_status:
        notify_application_status(tasks, application, job, new_status)
    return application


def list_applications(db: Session, profile: Profile) -> List[Application]:
    """A job seeker's own applications, or every application to an employer's jobs."""
    if profile.is_employer:
        query = (
            db.query(Application)
            .join(Job, Job.id == Application.job_id)
            .filter(Job.employer_id == profile.id, Job.status != "deleted")
        )
    else:
        query = db.query(Application).filter(Application.applicant_id == profile.id)
    return query.order_by(Application.applied_at.desc(), Application.id.desc()).all()


def has_applied_to_employer(db: Session, job_seeker_id: int, employer_id: int) -> bool:
    return (
        db.query(Application)
        .join(Job, Job.id == Application.job_id)
        .filter(Application.applicant_id == job_seeker_id, Job.employer_id == employer_id)
        .first()
        is not None
    )


def list_upgrade_prompts(db: Session, employer: Profile) -> List[UpgradePrompt]:
    return (
        db.query(UpgradePrompt)
        .filter(UpgradePrompt.user_id == employer.id, UpgradePrompt.shown_at.is_(None))
        .order_by(UpgradePrompt.triggered_at.desc())
        .all()
    )


def acknowledge_upgrade_prompt(
    db: Session, prompt_id: int, employer: Profile, action_taken: Optional[str] = None
) -> UpgradePrompt:
    prompt = db.query(UpgradePrompt).filter(UpgradePrompt.id == prompt_id).first()
    if not prompt:
        raise NotFoundError("Upgrade prompt not found")
    if prompt.user_id != employer.id:
        raise PermissionDenied()

    prompt.shown_at = prompt.shown_at or datetime.utcnow()
    if action_taken:
        prompt.action_taken = action_taken
    db.commit()
    db.refresh(prompt)
    return prompt
