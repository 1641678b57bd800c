"""
Transactional email templates.

Each builder returns a dict with `subject`, `html` and `text` keys.
"""
from datetime import datetime
from html import escape

from fieldjobs.core import config

BRAND_COLOR = "#ff6b35"

STATUS_TITLES = {
    "shortlisted": "You've Been Shortlisted",
    "interviewed": "Interview Scheduled",
    "rejected": "Application Update",
    "hired": "Congratulations!",
}

STATUS_MESSAGES = {
    "shortlisted": "Good news! The employer has shortlisted your application and may contact you soon.",
    "interviewed": "The employer has moved your application to the interview stage.",
    "hired": "The employer has marked you as hired for this position.",
}


def _button(url: str, label: str) -> str:
    return (
        f'<div style="text-align: center; margin: 30px 0;">'
        f'<a href="{escape(url)}" style="background: {BRAND_COLOR}; color: white; padding: 12px 24px; '
        f'text-decoration: none; border-radius: 6px; display: inline-block;">{escape(label)}</a></div>'
    )


def _layout(heading: str, body: str) -> str:
    return (
        '<div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;">'
        f'<div style="background: #f8f9fa; padding: 20px; text-align: center;">'
        f'<h1 style="color: {BRAND_COLOR}; margin: 0;">{escape(heading)}</h1></div>'
        f'<div style="padding: 30px 20px;">{body}</div>'
        '<div style="background: #f8f9fa; padding: 20px; text-align: center; font-size: 12px; color: #666;">'
        f"<p>&copy; {datetime.utcnow().year} FieldJobs. All rights reserved.</p></div></div>"
    )


def welcome(name: str) -> dict:
    dashboard_url = f"{config.BASE_URL}/dashboard"
    body = (
        f"<h2>Welcome, {escape(name)}!</h2>"
        "<p>Thank you for joining FieldJobs, the platform for technical careers in energy, "
        "construction, and industrial sectors.</p>"
        "<ul><li>Complete your profile</li><li>Upload your resume</li><li>Browse available positions</li></ul>"
        f"{_button(dashboard_url, 'Complete Your Profile')}"
        f'<p>Questions? Contact us at <a href="mailto:{config.EMAIL_REPLY_TO}">{config.EMAIL_REPLY_TO}</a>.</p>'
        "<p>Best regards,<br>The FieldJobs Team</p>"
    )
    text = (
        f"Welcome, {name}!\n\n"
        "Thank you for joining FieldJobs. Complete your profile, upload your resume "
        f"and browse available positions: {dashboard_url}\n\nThe FieldJobs Team"
    )
    return {"subject": "Welcome to FieldJobs!", "html": _layout("FieldJobs", body), "text": text}


def application_confirmation(applicant_name: str, job_title: str, company: str) -> dict:
    dashboard_url = f"{config.BASE_URL}/dashboard"
    body = (
        f"<h2>Hi {escape(applicant_name)},</h2>"
        f"<p>Your application for <strong>{escape(job_title)}</strong> at "
        f"<strong>{escape(company)}</strong> has been submitted.</p>"
        "<p>The employer will review it and contact you if your qualifications match their needs.</p>"
        f"{_button(dashboard_url, 'View Your Applications')}"
    )
    text = (
        f"Hi {applicant_name},\n\nYour application for {job_title} at {company} has been submitted.\n"
        f"Track it here: {dashboard_url}"
    )
    return {
        "subject": f"Application Submitted: {job_title} at {company}",
        "html": _layout("Application Submitted", body),
        "text": text,
    }


def new_application_alert(employer_name: str, job_title: str, applicant_name: str, applicant_email: str) -> dict:
    employer_url = f"{config.BASE_URL}/employer"
    body = (
        "<h2>Application Details:</h2>"
        f"<p><strong>Position:</strong> {escape(job_title)}</p>"
        f"<p><strong>Applicant:</strong> {escape(applicant_name)} ({escape(applicant_email)})</p>"
        f"<p><strong>Employer:</strong> {escape(employer_name)}</p>"
        f"{_button(employer_url, 'View Application')}"
        '<p style="font-size: 12px; color: #666;">Log in to your employer dashboard to review the full application.</p>'
    )
    text = (
        f"New application for {job_title}\n\nApplicant: {applicant_name} ({applicant_email})\n"
        f"Review it on your dashboard: {employer_url}"
    )
    return {"subject": f"New Application: {job_title}", "html": _layout("New Job Application", body), "text": text}


def application_rejected(applicant_name: str, job_title: str, company: str) -> dict:
    jobs_url = f"{config.BASE_URL}/jobs"
    body = (
        f"<h2>Hi {escape(applicant_name)},</h2>"
        f"<p>Thank you for your interest in <strong>{escape(job_title)}</strong> at "
        f"<strong>{escape(company)}</strong>. After careful consideration, the employer has decided "
        "to move forward with other candidates.</p>"
        "<p>New positions are posted every day, so keep looking.</p>"
        f"{_button(jobs_url, 'Browse Jobs')}"
    )
    text = (
        f"Hi {applicant_name},\n\nThank you for your interest in {job_title} at {company}. "
        "The employer has decided to move forward with other candidates.\n"
        f"Browse new positions: {jobs_url}"
    )
    return {
        "subject": f"{STATUS_TITLES['rejected']}: {job_title}",
        "html": _layout("Application Update", body),
        "text": text,
    }


def application_status_update(applicant_name: str, job_title: str, company: str, status: str) -> dict:
    dashboard_url = f"{config.BASE_URL}/dashboard"
    title = STATUS_TITLES.get(status, "Application Update")
    message = STATUS_MESSAGES.get(status, f"Your application status is now: {status}.")
    body = (
        f"<h2>Hi {escape(applicant_name)},</h2>"
        f"<p>Update on your application for <strong>{escape(job_title)}</strong> at "
        f"<strong>{escape(company)}</strong>:</p>"
        f"<p>{escape(message)}</p>"
        f"{_button(dashboard_url, 'View Dashboard')}"
    )
    text = f"Hi {applicant_name},\n\n{job_title} at {company}: {message}\n{dashboard_url}"
    return {"subject": f"{title}: {job_title}", "html": _layout(title, body), "text": text}


def job_expiration_warning(employer_name: str, job_title: str, days_left: int) -> dict:
    pricing_url = f"{config.BASE_URL}/pricing"
    day_word = "day" if days_left == 1 else "days"
    body = (
        f"<h2>Hi {escape(employer_name)},</h2>"
        f"<p>Your free job posting <strong>{escape(job_title)}</strong> expires in "
        f"<strong>{days_left} {day_word}</strong>.</p>"
        "<p>Upgrade to a plan to keep your listings live and reach more candidates.</p>"
        f"{_button(pricing_url, 'View Plans')}"
    )
    text = (
        f"Hi {employer_name},\n\nYour free job posting '{job_title}' expires in {days_left} {day_word}.\n"
        f"Upgrade to keep it live: {pricing_url}"
    )
    return {
        "subject": f"Your job posting expires in {days_left} {day_word}: {job_title}",
        "html": _layout("Job Expiring Soon", body),
        "text": text,
    }
