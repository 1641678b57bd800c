"""
Unit tests for log setup and log data sanitizing.
"""
import logging

import pytest

from fieldjobs.core.logging_config import REDACTED, sanitize_log_data, setup_logging


@pytest.fixture
def root_logger():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield root
    for handler in root.handlers:
        handler.close()
    root.handlers[:] = handlers
    root.setLevel(level)


def test_secrets_are_redacted():
    data = {"stripe_webhook_secret": "whsec_1", "Authorization": "Bearer abc", "user_id": "42"}

    sanitized = sanitize_log_data(data)

    assert sanitized["stripe_webhook_secret"] == REDACTED
    assert sanitized["Authorization"] == REDACTED
    assert sanitized["user_id"] == "42"
    assert data["stripe_webhook_secret"] == "whsec_1"


def test_contact_details_are_masked():
    sanitized = sanitize_log_data({"email": "sparky@example.com", "phone": "555-0100"})

    assert sanitized["email"] == "s***@example.com"
    assert sanitized["phone"] == "***00"


def test_nested_metadata_is_sanitized():
    sanitized = sanitize_log_data({"metadata": {"user_id": "7", "contact_email": "boss@acme.com", "token": "t"}})

    assert sanitized["metadata"] == {"user_id": "7", "contact_email": "b***@acme.com", "token": REDACTED}


def test_setup_logging_writes_rotating_file(root_logger, tmp_path):
    setup_logging("debug", str(tmp_path))

    assert root_logger.level == logging.DEBUG
    assert (tmp_path / "fieldjobs.log").exists()
    assert logging.getLogger("stripe").level == logging.WARNING


def test_setup_logging_console_only(root_logger, tmp_path):
    setup_logging("warning", None)

    assert len(root_logger.handlers) == 1
    assert root_logger.level == logging.WARNING
