"""
Unit tests for the job lifecycle manager.
Tests posting limits, status transitions, the free job, paid features and
the expiration sweep.
"""
from datetime import datetime, timedelta

import pytest
from fastapi import BackgroundTasks

from fieldjobs.core.errors import (
    ConflictError,
    JobLimitReached,
    NotFoundError,
    PermissionDenied,
    ValidationError,
)
from fieldjobs.db.models.job import Job
from fieldjobs.services import job_service
from fieldjobs.services.job_service import (
    apply_job_feature,
    check_free_job_eligibility,
    create_free_job,
    create_job,
    expire_jobs,
    list_public_jobs,
    normalize_job_type,
    send_expiration_warnings,
    update_job,
    update_job_status,
)
from conftest import make_job, make_profile, make_subscription

JOB_DATA = {
    "title": "Industrial Electrician",
    "region": "Houston, TX",
    "hourly_rate": "$48/hr",
    "description": "Plant maintenance and controls",
}


@pytest.fixture
def employer(db):
    return make_profile(db, "boss@acme.com", "employer")


@pytest.fixture
def starter_employer(db, employer):
    make_subscription(db, employer.id, "starter")
    return employer


def test_create_job_fills_defaults(db, starter_employer):
    job = create_job(db, starter_employer, dict(JOB_DATA, job_type="Full Time"))

    assert job.status == "active"
    assert job.active is True
    assert job.company == "Acme Electrical"
    assert job.contact_email == "boss@acme.com"
    assert job.job_type == "in-house"
    assert job.expiry_date - job.created_at == timedelta(days=30)


def test_create_job_requires_fields(db, starter_employer):
    with pytest.raises(ValidationError) as exc_info:
        create_job(db, starter_employer, {"title": "Lineman"})

    assert "region" in exc_info.value.details


def test_job_seeker_cannot_post(db):
    seeker = make_profile(db, "sparky@example.com")

    with pytest.raises(PermissionDenied):
        create_job(db, seeker, JOB_DATA)


def test_starter_cannot_create_fourth_job(db, starter_employer):
    for _ in range(3):
        create_job(db, starter_employer, JOB_DATA)

    with pytest.raises(JobLimitReached):
        create_job(db, starter_employer, JOB_DATA)

    assert db.query(Job).count() == 3


def test_reactivation_runs_limit_check(db, starter_employer):
    paused = make_job(db, starter_employer, status="paused", active=False)
    for i in range(3):
        make_job(db, starter_employer, title=f"Live {i}")

    with pytest.raises(JobLimitReached):
        update_job_status(db, paused.id, starter_employer, "active")


def test_status_transitions(db, starter_employer):
    job = make_job(db, starter_employer)
    now = datetime.utcnow()

    job = update_job_status(db, job.id, starter_employer, "paused", now=now)
    assert job.active is False
    assert job.deactivated_at == now

    later = now + timedelta(days=2)
    job = update_job_status(db, job.id, starter_employer, "active", now=later)
    assert job.active is True
    assert job.deactivated_at is None
    assert job.expiry_date == later + timedelta(days=30)


def test_deleted_is_terminal(db, starter_employer):
    job = make_job(db, starter_employer, status="deleted", active=False)

    # Deleted jobs are invisible to their owner too
    with pytest.raises(NotFoundError):
        update_job_status(db, job.id, starter_employer, "active")


def test_expired_cannot_be_paused(db, starter_employer):
    job = make_job(db, starter_employer, status="expired", active=False)

    with pytest.raises(ConflictError):
        update_job_status(db, job.id, starter_employer, "paused")


def test_unknown_status_rejected(db, starter_employer):
    job = make_job(db, starter_employer)

    with pytest.raises(ValidationError):
        update_job_status(db, job.id, starter_employer, "archived")


def test_update_job_with_status(db, starter_employer):
    job = make_job(db, starter_employer)

    job = update_job(db, job.id, starter_employer, {"hourly_rate": "$52/hr", "status": "paused"})

    assert job.hourly_rate == "$52/hr"
    assert job.status == "paused"


def test_only_owner_can_edit(db, starter_employer):
    job = make_job(db, starter_employer)
    other = make_profile(db, "rival@example.com", "employer")

    with pytest.raises(PermissionDenied):
        update_job(db, job.id, other, {"title": "Hijacked"})


def test_free_job_once_per_employer(db, employer):
    assert check_free_job_eligibility(db, employer)["eligible"] is True

    job = create_free_job(db, employer, JOB_DATA)

    assert job.is_free_job is True
    assert job.free_job_expires_at - job.created_at == timedelta(days=30)
    db.refresh(employer)
    assert employer.has_used_free_job is True
    assert check_free_job_eligibility(db, employer)["eligible"] is False

    with pytest.raises(ConflictError):
        create_free_job(db, employer, JOB_DATA)


def test_free_job_does_not_use_plan_slot(db, starter_employer):
    create_free_job(db, starter_employer, JOB_DATA)
    for _ in range(3):
        create_job(db, starter_employer, JOB_DATA)

    assert db.query(Job).filter(Job.status == "active").count() == 4


def test_ended_free_job_cannot_be_reactivated(db, employer):
    job = make_job(
        db, employer, is_free_job=True, status="paused", active=False,
        free_job_expires_at=datetime.utcnow() - timedelta(days=1),
    )

    with pytest.raises(ConflictError):
        update_job_status(db, job.id, employer, "active")


def test_apply_feature_sets_expiry(db, starter_employer):
    job = make_job(db, starter_employer)
    now = datetime.utcnow()

    apply_job_feature(db, job, "featured", now=now)

    assert job.is_featured is True
    assert job.featured_until == now + timedelta(days=30)
    assert job.feature_live("featured", now) is True
    assert job.feature_live("featured", now + timedelta(days=31)) is False


def test_public_listing_puts_live_featured_first(db, starter_employer):
    now = datetime.utcnow()
    make_job(db, starter_employer, title="Plain newest", age_days=0)
    make_job(db, starter_employer, title="Featured older", age_days=5,
             is_featured=True, featured_until=now + timedelta(days=10))
    make_job(db, starter_employer, title="Lapsed feature", age_days=1,
             is_featured=True, featured_until=now - timedelta(days=1))
    make_job(db, starter_employer, title="Paused", status="paused", active=False)

    titles = [job.title for job in list_public_jobs(db, now=now)]

    assert titles == ["Featured older", "Plain newest", "Lapsed feature"]


def test_public_listing_filters(db, starter_employer):
    make_job(db, starter_employer, title="Lineman", region="Denver, CO", job_type="in-house")
    make_job(db, starter_employer, title="Welder", region="Houston, TX")

    assert [j.title for j in list_public_jobs(db, region="denver")] == ["Lineman"]
    assert [j.title for j in list_public_jobs(db, job_type="contract")] == ["Welder"]
    assert [j.title for j in list_public_jobs(db, search="weld")] == ["Welder"]


def test_normalize_job_type():
    assert normalize_job_type("Contract") == "project-hire"
    assert normalize_job_type("permanent") == "in-house"
    assert normalize_job_type(None) == "project-hire"


def test_sweep_expires_free_plan_job_at_30_days(db, employer):
    now = datetime.utcnow()
    old = make_job(db, employer, title="Thirty", created_at=now - timedelta(days=30))
    young = make_job(db, employer, title="Twenty-nine", created_at=now - timedelta(days=29))

    result = expire_jobs(db, now=now)

    assert result["job_ids"] == [old.id]
    db.refresh(old)
    db.refresh(young)
    assert old.status == "expired"
    assert old.active is False
    assert young.status == "active"


def test_sweep_skips_subscribed_employers(db, starter_employer):
    now = datetime.utcnow()
    job = make_job(db, starter_employer, created_at=now - timedelta(days=45))

    result = expire_jobs(db, now=now)

    assert result["expired"] == 0
    db.refresh(job)
    assert job.status == "active"


def test_sweep_expires_ended_free_job(db, starter_employer):
    now = datetime.utcnow()
    job = make_job(
        db, starter_employer, is_free_job=True,
        created_at=now - timedelta(days=10), free_job_expires_at=now - timedelta(minutes=1),
    )

    result = expire_jobs(db, now=now)

    assert result["job_ids"] == [job.id]


def test_expiration_warnings_on_exact_days(db, employer):
    now = datetime.utcnow()
    seven = make_job(db, employer, title="Seven left", created_at=now - timedelta(days=23, hours=1))
    one = make_job(db, employer, title="One left", created_at=now - timedelta(days=29, hours=1))
    make_job(db, employer, title="Ten left", created_at=now - timedelta(days=20, hours=1))
    tasks = BackgroundTasks()

    result = send_expiration_warnings(db, tasks, now=now)

    assert result["warnings_sent"] == 2
    assert {(w["job_id"], w["days_left"]) for w in result["jobs"]} == {(seven.id, 7), (one.id, 1)}
    assert len(tasks.tasks) == 2


def test_expiration_warning_email_content(db, employer, monkeypatch):
    sent = []
    monkeypatch.setattr(
        "fieldjobs.services.notification_service.send_email",
        lambda to, subject, html, text: sent.append((to, subject)),
    )
    now = datetime.utcnow()
    make_job(db, employer, title="One left", created_at=now - timedelta(days=29, hours=1))

    job_service.send_expiration_warnings(db, None, now=now)

    assert sent and sent[0][0] == "boss@acme.com"
    assert "1 day" in sent[0][1]
