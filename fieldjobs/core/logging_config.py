"""
Logging for the FieldJobs API.

Console output plus a rotating file under LOG_DIR. Log lines carry ids
(user_id, job_id, session_id); anything else passes through
sanitize_log_data first.
"""
import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Optional

LOG_FILE_NAME = "fieldjobs.log"
LOG_FILE_MAX_BYTES = 10 * 1024 * 1024
LOG_FILE_BACKUPS = 5

CONSOLE_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
FILE_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(funcName)s:%(lineno)d - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Substrings of keys whose values are never logged
SECRET_MARKERS = ("password", "token", "secret", "api_key", "authorization", "signature", "database_url")

# Job seeker contact details are sold per unlock, so logs only keep a hint
CONTACT_FIELDS = {"email", "phone", "contact_email", "contact_phone", "customer_email"}

REDACTED = "***REDACTED***"


def setup_logging(log_level: str = "INFO", log_dir: Optional[str] = "logs"):
    """
    Configure the root logger.

    Args:
        log_level: DEBUG, INFO, WARNING, ERROR or CRITICAL
        log_dir: directory for the rotating file, None for console only
    """
    level = getattr(logging, log_level.upper(), logging.INFO)

    root = logging.getLogger()
    root.setLevel(level)
    root.handlers.clear()

    console = logging.StreamHandler(sys.stdout)
    console.setLevel(level)
    console.setFormatter(logging.Formatter(CONSOLE_FORMAT, datefmt=DATE_FORMAT))
    root.addHandler(console)

    if log_dir:
        path = Path(log_dir)
        path.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            path / LOG_FILE_NAME, maxBytes=LOG_FILE_MAX_BYTES, backupCount=LOG_FILE_BACKUPS
        )
        file_handler.setLevel(level)
        file_handler.setFormatter(logging.Formatter(FILE_FORMAT, datefmt=DATE_FORMAT))
        root.addHandler(file_handler)

    for noisy in ("uvicorn", "uvicorn.access", "stripe"):
        logging.getLogger(noisy).setLevel(logging.WARNING)


def _mask_contact(value: Any) -> Any:
    if not isinstance(value, str) or not value:
        return value
    if "@" in value:
        local, _, domain = value.partition("@")
        return f"{local[:1]}***@{domain}"
    return f"***{value[-2:]}" if len(value) > 2 else "***"


def sanitize_log_data(data: dict) -> dict:
    """
    Copy of `data` that is safe to log.

    Secret-like keys are redacted, contact details are masked, nested dicts
    (Stripe metadata, event objects) are handled the same way.
    """
    sanitized = {}
    for key, value in data.items():
        name = str(key).lower()
        if any(marker in name for marker in SECRET_MARKERS):
            sanitized[key] = REDACTED
        elif name in CONTACT_FIELDS:
            sanitized[key] = _mask_contact(value)
        elif isinstance(value, dict):
            sanitized[key] = sanitize_log_data(value)
        else:
            sanitized[key] = value
    return sanitized
