"""
Unit tests for the application manager.
"""
import pytest
from fastapi import BackgroundTasks

from fieldjobs.core.errors import ConflictError, NotFoundError, PermissionDenied, ValidationError
from fieldjobs.db.models.application import Application
from fieldjobs.db.models.upgrade_prompt import UpgradePrompt
from fieldjobs.services.application_service import (
    acknowledge_upgrade_prompt,
    list_applications,
    list_upgrade_prompts,
    submit_application,
    update_application_status,
)
from conftest import make_job, make_profile


@pytest.fixture
def employer(db):
    return make_profile(db, "boss@acme.com", "employer")


@pytest.fixture
def seeker(db):
    return make_profile(db, "sparky@example.com", first_name="Sam", last_name="Sparks", classification="Electrician")


@pytest.fixture
def job(db, employer):
    return make_job(db, employer)


def test_submit_uses_profile_contact_details(db, job, seeker):
    tasks = BackgroundTasks()

    application = submit_application(db, job.id, seeker, {"phone": "555-0199"}, tasks)

    assert application.status == "pending"
    assert application.first_name == "Sam"
    assert application.email == "sparky@example.com"
    assert application.phone == "555-0199"
    # Confirmation to the applicant, alert to the employer
    assert len(tasks.tasks) == 2


def test_duplicate_application_rejected(db, job, seeker):
    submit_application(db, job.id, seeker, {})

    with pytest.raises(ConflictError):
        submit_application(db, job.id, seeker, {})

    assert db.query(Application).count() == 1


def test_employer_cannot_apply(db, job, employer):
    with pytest.raises(PermissionDenied):
        submit_application(db, job.id, employer, {})


def test_closed_job_rejects_applications(db, employer, seeker):
    paused = make_job(db, employer, status="paused", active=False)
    deleted = make_job(db, employer, status="deleted", active=False)

    with pytest.raises(ConflictError):
        submit_application(db, paused.id, seeker, {})
    with pytest.raises(NotFoundError):
        submit_application(db, deleted.id, seeker, {})


def test_missing_contact_fields(db, job):
    bare = make_profile(db, "bare@example.com", first_name=None, last_name=None, phone=None)

    with pytest.raises(ValidationError) as exc_info:
        submit_application(db, job.id, bare, {"first_name": "Bo"})

    assert "last_name" in exc_info.value.details
    assert "first_name" not in exc_info.value.details


def test_first_application_to_free_job_prompts_upgrade(db, employer, seeker):
    free_job = make_job(db, employer, is_free_job=True)
    other = make_profile(db, "second@example.com")

    submit_application(db, free_job.id, seeker, {})
    submit_application(db, free_job.id, other, {})

    prompts = db.query(UpgradePrompt).all()
    assert len(prompts) == 1
    assert prompts[0].user_id == employer.id
    assert prompts[0].prompt_type == "first_application"


def test_paid_job_has_no_prompt(db, job, seeker):
    submit_application(db, job.id, seeker, {})

    assert db.query(UpgradePrompt).count() == 0


def test_acknowledge_prompt(db, employer, seeker):
    free_job = make_job(db, employer, is_free_job=True)
    submit_application(db, free_job.id, seeker, {})
    prompt = list_upgrade_prompts(db, employer)[0]

    acknowledge_upgrade_prompt(db, prompt.id, employer, "dismissed")

    assert prompt.shown_at is not None
    assert prompt.action_taken == "dismissed"
    assert list_upgrade_prompts(db, employer) == []


def test_owner_updates_status_and_applicant_is_emailed(db, job, employer, seeker):
    application = submit_application(db, job.id, seeker, {})
    tasks = BackgroundTasks()

    updated = update_application_status(db, application.id, "shortlisted", employer, tasks)

    assert updated.status == "shortlisted"
    assert len(tasks.tasks) == 1


def test_silent_status_change(db, job, employer, seeker):
    application = submit_application(db, job.id, seeker, {})
    tasks = BackgroundTasks()

    update_application_status(db, application.id, "submitted", employer, tasks)

    assert tasks.tasks == []


def test_non_owner_cannot_update_status(db, job, seeker):
    application = submit_application(db, job.id, seeker, {})
    rival = make_profile(db, "rival@example.com", "employer")

    with pytest.raises(PermissionDenied):
        update_application_status(db, application.id, "hired", rival)


def test_invalid_status(db, job, employer, seeker):
    application = submit_application(db, job.id, seeker, {})

    with pytest.raises(ValidationError):
        update_application_status(db, application.id, "ghosted", employer)


def test_list_applications_by_role(db, job, employer, seeker):
    submit_application(db, job.id, seeker, {})
    other_seeker = make_profile(db, "other@example.com")
    submit_application(db, job.id, other_seeker, {})

    assert len(list_applications(db, employer)) == 2
    assert [a.email for a in list_applications(db, seeker)] == ["sparky@example.com"]
