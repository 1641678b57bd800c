"""
Email side effects of profile, application and job events.

Messages are rendered immediately (so no ORM object outlives its session)
and delivered by FastAPI background tasks after the response is sent.
A failure here never fails the request that triggered it.
"""
import logging
from typing import Optional

from fastapi import BackgroundTasks

from fieldjobs.db.models.profile import Profile
from fieldjobs.db.models.job import Job
from fieldjobs.db.models.application import Application
from fieldjobs.services import email_templates
from fieldjobs.services.email_service import send_email

logger = logging.getLogger(__name__)

# Status changes that notify the applicant; pending/submitted stay silent
STATUS_EMAILS = {"shortlisted", "interviewed", "rejected", "hired"}


def _schedule(tasks: Optional[BackgroundTasks], to_email: str, message: dict) -> None:
    try:
        if tasks is None:
            send_email(to_email, message["subject"], message["html"], message["text"])
        else:
            tasks.add_task(send_email, to_email, message["subject"], message["html"], message["text"])
    except Exception as e:
        logger.error(f"Failed to schedule email to {to_email}: {e}", exc_info=True)


def notify_welcome(tasks: Optional[BackgroundTasks], profile: Profile) -> None:
    _schedule(tasks, profile.email, email_templates.welcome(profile.full_name))


def notify_application_submitted(
    tasks: Optional[BackgroundTasks],
    application: Application,
    job: Job,
    employer: Optional[Profile],
) -> None:
    """Confirmation to the applicant and an alert to the job's contact address."""
    applicant_name = f"{application.first_name} {application.last_name}".strip()
    _schedule(
        tasks,
        application.email,
        email_templates.application_confirmation(applicant_name, job.title, job.company),
    )

    employer_email = job.contact_email or (employer.email if employer else None)
    employer_name = (employer.company_name or employer.full_name) if employer else job.company
    _schedule(
        tasks,
        employer_email,
        email_templates.new_application_alert(employer_name, job.title, applicant_name, application.email),
    )


def notify_application_status(
    tasks: Optional[BackgroundTasks],
    application: Application,
    job: Job,
    new_status: str,
) -> bool:
    """
    Schedule the applicant email for a status change.

    Returns:
        True if an email was scheduled for this status
    """
    if new_status not in STATUS_EMAILS:
        return False

    applicant_name = f"{application.first_name} {application.last_name}".strip()
    if new_status == "rejected":
        message = email_templates.application_rejected(applicant_name, job.title, job.company)
    else:
        message = email_templates.application_status_update(applicant_name, job.title, job.company, new_status)

    _schedule(tasks, application.email, message)
    return True


def notify_job_expiring(
    tasks: Optional[BackgroundTasks],
    job: Job,
    employer: Profile,
    days_left: int,
) -> None:
    _schedule(
        tasks,
        employer.email,
        email_templates.job_expiration_warning(employer.company_name or employer.full_name, job.title, days_left),
    )
