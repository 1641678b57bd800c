import logging
import secrets
from typing import Optional

from fastapi import BackgroundTasks, Depends, Header, HTTPException
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from fieldjobs.core import config
from fieldjobs.core.errors import PermissionDenied
from fieldjobs.core.security import decode_access_token
from fieldjobs.db.session import SessionLocal
from fieldjobs.db.models.profile import Profile, ACCOUNT_TYPES
from fieldjobs.services.notification_service import notify_welcome

logger = logging.getLogger(__name__)

bearer_scheme = HTTPBearer(auto_error=False)


def get_db():
    """Database session dependency."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_current_claims(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> dict:
    """Verified claims of the auth provider's bearer token."""
    if credentials is None:
        raise HTTPException(status_code=401, detail="Not authenticated")

    payload = decode_access_token(credentials.credentials)
    if not payload or not payload.get("sub"):
        raise HTTPException(status_code=401, detail="Invalid token")

    return payload


def get_current_user(claims: dict = Depends(get_current_claims)) -> str:
    """Get current user email from JWT token."""
    return claims["sub"].strip().lower()


def _profile_from_claims(email: str, claims: dict) -> Profile:
    account_type = claims.get("account_type")
    if account_type not in ACCOUNT_TYPES:
        account_type = "job_seeker"
    return Profile(
        email=email,
        account_type=account_type,
        first_name=claims.get("first_name"),
        last_name=claims.get("last_name"),
        company_name=claims.get("company_name"),
    )


def get_current_profile(
    background_tasks: BackgroundTasks,
    claims: dict = Depends(get_current_claims),
    email: str = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> Profile:
    """
    Get the caller's Profile, creating it on the first authenticated request.

    A newly created profile gets a welcome email.
    """
    profile = db.query(Profile).filter(Profile.email == email).first()
    if profile:
        return profile

    profile = _profile_from_claims(email, claims)
    db.add(profile)
    try:
        db.commit()
    except IntegrityError:
        # Concurrent first request created it
        db.rollback()
        return db.query(Profile).filter(Profile.email == email).one()

    db.refresh(profile)
    logger.info(f"Profile created: user_id={profile.id}, account_type={profile.account_type}")
    notify_welcome(background_tasks, profile)
    return profile


def require_employer(profile: Profile = Depends(get_current_profile)) -> Profile:
    if not profile.is_employer:
        raise PermissionDenied("Employer account required")
    return profile


def require_cron_secret(x_cron_secret: Optional[str] = Header(None)) -> None:
    """Guard for scheduler-invoked endpoints when CRON_SECRET is set."""
    if not config.CRON_SECRET:
        return
    if not x_cron_secret or not secrets.compare_digest(x_cron_secret, config.CRON_SECRET):
        raise HTTPException(status_code=401, detail="Invalid cron secret")
