"""
Scheduler-invoked maintenance endpoints.

Each call processes every matching row synchronously. Guarded by the
X-Cron-Secret header when CRON_SECRET is set.
"""
import logging

from fastapi import APIRouter, BackgroundTasks, Depends
from sqlalchemy.orm import Session

from fieldjobs.core.auth_dependency import get_db, require_cron_secret
from fieldjobs.services.billing_service import reconcile_all_subscriptions
from fieldjobs.services.job_service import expire_jobs, send_expiration_warnings

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/cron", tags=["Cron"], dependencies=[Depends(require_cron_secret)])


@router.post("/expire-jobs")
def run_expire_jobs(db: Session = Depends(get_db)):
    result = expire_jobs(db)
    logger.info(f"Cron expire-jobs done: {result['expired']} expired")
    return result


@router.post("/expiration-warnings")
def run_expiration_warnings(background_tasks: BackgroundTasks, db: Session = Depends(get_db)):
    result = send_expiration_warnings(db, background_tasks)
    logger.info(f"Cron expiration-warnings done: {result['warnings_sent']} scheduled")
    return result


@router.post("/reconcile-subscriptions")
def run_reconcile_subscriptions(db: Session = Depends(get_db)):
    result = reconcile_all_subscriptions(db)
    logger.info(f"Cron reconcile-subscriptions done: {result}")
    return result
