import logging
from datetime import datetime, timedelta
from typing import Optional

from jose import jwt, JWTError

from fieldjobs.core import config

logger = logging.getLogger(__name__)


def create_access_token(data: dict, expires_delta: timedelta = None) -> str:
    """Mint a token in the auth provider's format (used by scripts and tests)."""
    to_encode = data.copy()
    expire = datetime.utcnow() + (expires_delta or timedelta(minutes=60))
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, config.SECRET_KEY, algorithm=config.ALGORITHM)


def decode_access_token(token: str) -> Optional[dict]:
    """
    Verify a bearer token and return its claims.

    Returns None when the signature, expiry or format is invalid.
    """
    try:
        return jwt.decode(token, config.SECRET_KEY, algorithms=[config.ALGORITHM])
    except JWTError as e:
        logger.debug(f"Token rejected: {e}")
        return None
