"""
Outbound email over SMTP.

Without EMAIL_SMTP_HOST configured, messages are logged instead of sent.
Delivery is retried up to EMAIL_MAX_ATTEMPTS times; a final failure is
logged and reported through the return value, never raised.
"""
import logging
import smtplib
import time
from email.message import EmailMessage

from fieldjobs.core import config

logger = logging.getLogger(__name__)

RETRY_DELAY_SECONDS = 1.0


def smtp_enabled() -> bool:
    return bool(config.EMAIL_SMTP_HOST)


def build_message(to_email: str, subject: str, html_body: str, text_body: str) -> EmailMessage:
    msg = EmailMessage()
    msg["Subject"] = subject
    msg["From"] = f"FieldJobs <{config.EMAIL_FROM}>"
    msg["To"] = to_email.strip().lower()
    if config.EMAIL_REPLY_TO:
        msg["Reply-To"] = config.EMAIL_REPLY_TO
    msg.set_content(text_body)
    msg.add_alternative(html_body, subtype="html")
    return msg


def _deliver(msg: EmailMessage) -> None:
    use_ssl = config.EMAIL_SMTP_PORT == 465 or config.EMAIL_SMTP_USE_SSL
    if use_ssl:
        with smtplib.SMTP_SSL(config.EMAIL_SMTP_HOST, config.EMAIL_SMTP_PORT, timeout=config.EMAIL_SMTP_TIMEOUT_SECONDS) as server:
            if config.EMAIL_SMTP_USERNAME:
                server.login(config.EMAIL_SMTP_USERNAME, config.EMAIL_SMTP_PASSWORD)
            server.send_message(msg)
    else:
        with smtplib.SMTP(config.EMAIL_SMTP_HOST, config.EMAIL_SMTP_PORT, timeout=config.EMAIL_SMTP_TIMEOUT_SECONDS) as server:
            server.starttls()
            if config.EMAIL_SMTP_USERNAME:
                server.login(config.EMAIL_SMTP_USERNAME, config.EMAIL_SMTP_PASSWORD)
            server.send_message(msg)


def send_email(to_email: str, subject: str, html_body: str, text_body: str) -> bool:
    """
    Send one transactional email.

    Returns:
        True when delivered (or logged because SMTP is not configured),
        False after the last failed attempt.
    """
    if not to_email:
        logger.warning(f"Email skipped, no recipient: subject='{subject}'")
        return False

    if not smtp_enabled():
        logger.info(f"SMTP not configured, email would be sent: to={to_email}, subject='{subject}'")
        return True

    msg = build_message(to_email, subject, html_body, text_body)
    attempts = max(1, config.EMAIL_MAX_ATTEMPTS)

    for attempt in range(1, attempts + 1):
        try:
            _deliver(msg)
            logger.info(f"Email sent: to={to_email}, subject='{subject}', attempt={attempt}")
            return True
        except smtplib.SMTPAuthenticationError:
            # Credentials will not fix themselves between attempts
            logger.exception("SMTP auth failed for %s", config.EMAIL_SMTP_USERNAME)
            return False
        except (smtplib.SMTPException, OSError) as e:
            logger.warning(f"Email attempt {attempt}/{attempts} to {to_email} failed: {e}")
            if attempt < attempts:
                time.sleep(RETRY_DELAY_SECONDS * attempt)

    logger.error(f"Email delivery gave up: to={to_email}, subject='{subject}'")
    return False
