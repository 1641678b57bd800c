"""
Align local subscription rows with Stripe for one user or for everyone.
Run: python -m scripts.reconcile_subscriptions [email]
"""
import sys
import logging

from fieldjobs.db.session import SessionLocal
from fieldjobs.db.models.profile import Profile
from fieldjobs.services.billing_service import reconcile_all_subscriptions, reconcile_subscriptions

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


def reconcile(email: str = None) -> bool:
    db = SessionLocal()
    try:
        if email:
            profile = db.query(Profile).filter(Profile.email == email.lower()).first()
            if not profile:
                logger.error(f"No profile for {email}")
                return False
            result = reconcile_subscriptions(db, profile.id)
        else:
            result = reconcile_all_subscriptions(db)
            if result["failed"]:
                logger.warning(f"Failed users: {result['failed']}")

        logger.info(f"Reconciliation result: {result}")
        return True
    except Exception as e:
        db.rollback()
        logger.error(f"Reconciliation failed: {e}", exc_info=True)
        return False
    finally:
        db.close()


if __name__ == "__main__":
    target = sys.argv[1] if len(sys.argv) > 1 else None
    if not reconcile(target):
        sys.exit(1)
