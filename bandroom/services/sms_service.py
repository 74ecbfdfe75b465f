"""
SMS service using Twilio for session reminders.
"""

import logging
import os
import re
from typing import Any, Dict

from bandroom.utils.errors import ServiceNotConfiguredError

logger = logging.getLogger(__name__)

# Twilio client (singleton); type is Any to allow lazy import
_twilio_client: Any = None


def _get_config() -> Dict:
    """Read Twilio configuration from environment at call time."""
    return {
        "account_sid": os.getenv("TWILIO_ACCOUNT_SID"),
        "auth_token": os.getenv("TWILIO_AUTH_TOKEN"),
        "from_number": os.getenv("TWILIO_PHONE_NUMBER"),
    }


def is_configured() -> bool:
    return all(_get_config().values())


def get_twilio_client():
    """Get or create the Twilio client. Lazy-imports twilio to avoid import-time dependency."""
    global _twilio_client
    if _twilio_client is None:
        cfg = _get_config()
        if not all(cfg.values()):
            raise ServiceNotConfiguredError("Twilio is not configured")
        from twilio.rest import Client

        _twilio_client = Client(cfg["account_sid"], cfg["auth_token"])
    return _twilio_client


def digits_only(phone: str) -> str:
    return re.sub(r"\D", "", phone or "")


def normalize_phone(phone: str) -> str:
    """
    Convert a stored phone number to E.164.

    10 digits are treated as US numbers (+1 prefix); anything else, including
    11 digits starting with the 1 country code, keeps its digits behind a single +.
    """
    digits = digits_only(phone)
    if len(digits) == 10:
        return f"+1{digits}"
    return f"+{digits}"


def send_sms(to_phone: str, body: str) -> bool:
    """
    Send one SMS.

    Returns:
        True on success, False on delivery failure (logged)

    Raises:
        ServiceNotConfiguredError: If Twilio credentials are missing
    """
    client = get_twilio_client()
    from_number = _get_config()["from_number"]
    to_number = normalize_phone(to_phone)

    from twilio.base.exceptions import TwilioException

    try:
        message = client.messages.create(body=body, from_=from_number, to=to_number)
        logger.info(f"SMS sent to {to_number}: {message.sid}")
        return True
    except TwilioException as e:
        logger.error(f"Failed to send SMS to {to_number}: {e}")
        return False
