"""
Credit ledger service.

Two pools per user: monthly credits (reset by the entitlement resolver
every 30 days) and purchased credits (never expire). Consumption takes
from the monthly pool first. Every change appends a CreditTransaction.
"""
import logging
from datetime import datetime
from typing import Optional, Dict, Any

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from fieldjobs.core.errors import InsufficientCredits, NotFoundError, PermissionDenied, ValidationError
from fieldjobs.core.plan_limits import CREDIT_PACKAGES
from fieldjobs.db.models.credit import CreditBalance, CreditTransaction
from fieldjobs.db.models.ledger import CreditPurchase, ProfileUnlock
from fieldjobs.db.models.profile import Profile
from fieldjobs.services.entitlement_service import get_current_plan, get_credit_balance

logger = logging.getLogger(__name__)


def _record(
    db: Session,
    user_id: int,
    monthly_delta: int,
    purchased_delta: int,
    reason: str,
    reference: Optional[str] = None,
) -> CreditTransaction:
    tx = CreditTransaction(
        user_id=user_id,
        delta=monthly_delta + purchased_delta,
        monthly_delta=monthly_delta,
        purchased_delta=purchased_delta,
        reason=reason,
        reference=reference,
    )
    db.add(tx)
    return tx


def get_balance(db: Session, user_id: int, now: Optional[datetime] = None) -> Dict[str, int]:
    plan_type, _ = get_current_plan(db, user_id)
    balance = get_credit_balance(db, user_id, plan_type, now=now)
    db.commit()
    return {
        "credits": balance.total,
        "monthly_credits": balance.monthly_credits,
        "purchased_credits": balance.purchased_credits,
    }


def consume_credits(
    db: Session,
    user_id: int,
    amount: int = 1,
    reason: str = "unlock",
    reference: Optional[str] = None,
    now: Optional[datetime] = None,
    commit: bool = True,
) -> CreditBalance:
    """
    Consume credits, monthly pool first.

    Raises:
        InsufficientCredits: monthly + purchased < amount (nothing is changed)
    """
    if amount < 1:
        raise ValidationError("Credit amount must be positive")

    plan_type, _ = get_current_plan(db, user_id)
    balance = get_credit_balance(db, user_id, plan_type, now=now, for_update=True)

    if balance.total < amount:
        logger.info(f"Insufficient credits: user_id={user_id}, have={balance.total}, need={amount}")
        db.rollback()
        raise InsufficientCredits(details=f"{amount} credit(s) required, {balance.total} available")

    from_monthly = min(balance.monthly_credits, amount)
    from_purchased = amount - from_monthly
    balance.monthly_credits -= from_monthly
    balance.purchased_credits -= from_purchased

    _record(db, user_id, -from_monthly, -from_purchased, reason, reference)

    if commit:
        db.commit()
        db.refresh(balance)

    logger.info(
        f"Credits consumed: user_id={user_id}, amount={amount}, reason={reason}, "
        f"monthly={balance.monthly_credits}, purchased={balance.purchased_credits}"
    )
    return balance


def add_purchased_credits(
    db: Session,
    user_id: int,
    credits: int,
    reason: str,
    reference: Optional[str] = None,
) -> CreditBalance:
    """Increase the purchased pool. Flushed, the caller commits."""
    plan_type, _ = get_current_plan(db, user_id)
    balance = get_credit_balance(db, user_id, plan_type, for_update=True)
    balance.purchased_credits += credits
    _record(db, user_id, 0, credits, reason, reference)
    db.flush()
    logger.info(f"Purchased credits added: user_id={user_id}, credits={credits}, total={balance.total}")
    return balance


def record_credit_purchase(
    db: Session,
    user_id: int,
    package_type: str,
    session_id: str,
    amount_paid: Optional[int] = None,
) -> CreditPurchase:
    """
    Apply a paid credit pack once per checkout session.

    Returns the existing purchase row when the session was already applied.
    """
    package = CREDIT_PACKAGES.get(package_type)
    if not package:
        raise ValidationError("Invalid package type", details=package_type)

    existing = db.query(CreditPurchase).filter(CreditPurchase.stripe_session_id == session_id).first()
    if existing:
        logger.info(f"Credit purchase already applied: session_id={session_id}")
        return existing

    purchase = CreditPurchase(
        user_id=user_id,
        package_type=package_type,
        credits_purchased=package["credits"],
        amount_paid=amount_paid if amount_paid is not None else package["price"],
        stripe_session_id=session_id,
    )
    db.add(purchase)
    try:
        db.flush()
    except IntegrityError:
        db.rollback()
        return db.query(CreditPurchase).filter(CreditPurchase.stripe_session_id == session_id).one()

    add_purchased_credits(db, user_id, package["credits"], f"purchase:{package_type}", reference=session_id)
    db.commit()
    db.refresh(purchase)
    return purchase


def contact_details(job_seeker: Profile) -> Dict[str, Any]:
    return {
        "id": job_seeker.id,
        "first_name": job_seeker.first_name,
        "last_name": job_seeker.last_name,
        "email": job_seeker.email,
        "phone": job_seeker.phone,
        "location": job_seeker.location,
        "classification": job_seeker.classification,
    }


def unlock_profile(db: Session, employer: Profile, job_seeker_id: int) -> Dict[str, Any]:
    """
    Reveal a job seeker's contact details to an employer.

    A pair already unlocked costs nothing; otherwise one credit is consumed
    and a ProfileUnlock row is written in the same transaction.
    """
    if not employer.is_employer:
        raise PermissionDenied("Only employers can unlock profiles")

    job_seeker = db.query(Profile).filter(Profile.id == job_seeker_id).first()
    if not job_seeker or job_seeker.is_employer:
        raise NotFoundError("Job seeker profile not found")

    already = (
        db.query(ProfileUnlock)
        .filter(ProfileUnlock.employer_id == employer.id, ProfileUnlock.job_seeker_id == job_seeker_id)
        .first()
    )
    if already:
        balance = get_balance(db, employer.id)
        return {
            "already_unlocked": True,
            "profile": contact_details(job_seeker),
            "remaining_credits": balance["credits"],
        }

    balance = consume_credits(
        db, employer.id, 1, reason="profile_unlock", reference=str(job_seeker_id), commit=False
    )
    db.add(ProfileUnlock(employer_id=employer.id, job_seeker_id=job_seeker_id))
    try:
        db.commit()
    except IntegrityError:
        # Concurrent unlock of the same pair won; this charge is rolled back
        db.rollback()
        logger.info(f"Profile unlock raced: employer_id={employer.id}, job_seeker_id={job_seeker_id}")
        balance_now = get_balance(db, employer.id)
        return {
            "already_unlocked": True,
            "profile": contact_details(job_seeker),
            "remaining_credits": balance_now["credits"],
        }

    db.refresh(balance)
    logger.info(f"Profile unlocked: employer_id={employer.id}, job_seeker_id={job_seeker_id}")
    return {
        "already_unlocked": False,
        "profile": contact_details(job_seeker),
        "remaining_credits": balance.total,
    }
