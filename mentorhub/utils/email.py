"""
Outbound session email.

Notification rows are turned into a SessionEmail here and delivered over
SMTP. Delivery is best-effort: send_email logs and returns False instead of
raising.
"""

from __future__ import annotations

import logging
import smtplib
from dataclasses import dataclass
from email.message import EmailMessage
from typing import Optional

from mentorhub.config import Settings, settings as default_settings

logger = logging.getLogger(__name__)

DEFAULT_SUBJECT = "New notification from MentorHub"

SUBJECT_BY_EVENT = {
    "session_booked": "New session booking on MentorHub",
    "session_cancelled": "Session cancelled on MentorHub",
    "session_started": "Your mentor has started the session",
    "session_completed": "Session completed on MentorHub",
    "session_no_show": "Session marked as no-show on MentorHub",
}


@dataclass(frozen=True)
class SessionEmail:
    to_email: str
    subject: str
    body_text: str


def compose_session_email(
    *,
    to_email: str,
    recipient_name: Optional[str],
    event_type: str,
    message: str,
    session_id: Optional[int],
) -> SessionEmail:
    name = (recipient_name or "").strip() or "there"
    body_text = (
        f"Hi {name},\n\n"
        f"{message}\n\n"
        f"Event: {event_type}\n"
        f"Session ID: {session_id or 'N/A'}\n\n"
        "Open MentorHub to view details."
    )
    return SessionEmail(
        to_email=to_email,
        subject=SUBJECT_BY_EVENT.get(event_type, DEFAULT_SUBJECT),
        body_text=body_text,
    )


def is_email_enabled(config: Optional[Settings] = None) -> bool:
    """Return True when email notifications are configured and enabled."""
    config = config or default_settings
    return bool(
        config.EMAIL_NOTIFICATIONS_ENABLED and config.SMTP_SERVER and config.EMAIL_FROM
    )


def _open_smtp(config: Settings) -> smtplib.SMTP:
    smtp_class = smtplib.SMTP_SSL if config.SMTP_USE_SSL else smtplib.SMTP
    return smtp_class(
        config.SMTP_SERVER,
        config.SMTP_PORT,
        timeout=config.SMTP_TIMEOUT_SECONDS,
    )


def send_email(email: SessionEmail, config: Optional[Settings] = None) -> bool:
    """Deliver one SessionEmail; True on success."""
    config = config or default_settings
    if not is_email_enabled(config):
        return False

    msg = EmailMessage()
    msg["From"] = config.EMAIL_FROM
    msg["To"] = email.to_email
    msg["Subject"] = email.subject
    msg.set_content(email.body_text)

    try:
        with _open_smtp(config) as server:
            if config.SMTP_USE_TLS and not config.SMTP_USE_SSL:
                server.starttls()
            if config.EMAIL_PASSWORD:
                server.login(config.SMTP_USERNAME or config.EMAIL_FROM, config.EMAIL_PASSWORD)
            server.send_message(msg)
        return True
    except (smtplib.SMTPException, OSError) as exc:
        logger.warning("Email send failed for '%s': %s", email.to_email, exc)
        return False
