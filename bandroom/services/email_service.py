"""
Email service using SendGrid for session invites.
"""

import os
import logging
from typing import Dict
from html import escape
from sendgrid import SendGridAPIClient
from sendgrid.helpers.mail import Mail, Email, To, Content
from dotenv import load_dotenv

# Load environment variables
load_dotenv()

logger = logging.getLogger(__name__)


def get_bool_env(key: str, default: bool = True) -> bool:
    """
    Parse a boolean environment variable from a string value.

    .env files store all values as strings, so "true", "True", "1" and "yes"
    map to True and everything else to False.

    Args:
        key: Environment variable name
        default: Default value if the variable is not set

    Returns:
        bool: Parsed boolean value
    """
    value = os.getenv(key)
    if value is None:
        return default
    return value.lower() in ("true", "1", "yes")


def _get_config() -> Dict:
    """Read SendGrid configuration at call time."""
    return {
        "api_key": os.getenv("SENDGRID_API_KEY"),
        "from_email": os.getenv("SENDGRID_FROM_EMAIL", "noreply@bandroom.app"),
        "enabled": get_bool_env("ENABLE_EMAIL", default=True),
        "band_name": os.getenv("BAND_NAME", "Sleepy Hollows"),
    }


def is_enabled() -> bool:
    cfg = _get_config()
    return bool(cfg["enabled"] and cfg["api_key"])


def build_invite_html(name: str, session_details: Dict) -> str:
    """HTML body for a jam session invite."""
    band_name = escape(_get_config()["band_name"])
    greeting = escape(name or "there")
    date = escape(str(session_details.get("date_formatted") or ""))
    time = escape(str(session_details.get("time_formatted") or ""))
    missing = session_details.get("missing_capability")
    song_count = session_details.get("song_count")

    lines = [
        f"<h2>You're invited to jam at {band_name}!</h2>",
        f"<p>Hi {greeting},</p>",
        f"<p>We have a session on <strong>{date}</strong> at <strong>{time}</strong>",
    ]
    if missing:
        lines.append(f" and we're looking for someone on <strong>{escape(str(missing))}</strong>.</p>")
    else:
        lines.append(".</p>")
    if song_count:
        lines.append(f"<p>There are {int(song_count)} song(s) on the set-list so far.</p>")
    lines.append("<p>Sign in to commit to the session. Hope to see you there! 🎸</p>")
    return "\n".join(lines)


def send_email(to_email: str, subject: str, html_body: str) -> bool:
    """
    Send a single HTML email.

    Returns:
        True if SendGrid accepted the message, False otherwise. Failures are logged,
        never raised.
    """
    cfg = _get_config()
    if not is_enabled():
        logger.warning("Email disabled or SendGrid API key missing; not sending")
        return False

    try:
        message = Mail(
            from_email=Email(cfg["from_email"]),
            to_emails=To(to_email),
            subject=subject,
            html_content=Content("text/html", html_body),
        )

        sg = SendGridAPIClient(cfg["api_key"])
        response = sg.send(message)

        if response.status_code >= 200 and response.status_code < 300:
            logger.info(f"Email sent successfully to {to_email}")
            return True
        else:
            logger.error(f"SendGrid returned status {response.status_code}: {response.body}")
            return False

    except Exception as e:
        logger.error(f"Failed to send email to {to_email}: {str(e)}")
        return False
