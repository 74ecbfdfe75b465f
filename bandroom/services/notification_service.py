"""
Notification dispatcher: SMS reminders to a session's roster and email invites
to candidate members.

Both paths are best effort. Every recipient is attempted independently and its
outcome recorded; one failure never stops the rest of the batch.
"""

import asyncio
import logging
import os
from typing import Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from bandroom.database.models import Session, SessionCommitment, User
from bandroom.services import email_service, sms_service
from bandroom.utils.datetime_utils import format_display_date, format_display_time
from bandroom.utils.errors import ServiceNotConfiguredError

logger = logging.getLogger(__name__)

MIN_PHONE_DIGITS = 10


def build_reminder_message(date: str, start_time: str) -> str:
    band_name = os.getenv("BAND_NAME", "Sleepy Hollows")
    return (
        f"Reminder: You have a session at {band_name} on {format_display_date(date)} "
        f"at {format_display_time(start_time)}. See you there! 🎸"
    )


async def send_session_reminders(
    session: AsyncSession, session_id: str, message: Optional[str] = None
) -> Optional[Dict]:
    """
    Text every committed member of a session.

    Members without a phone number of at least 10 digits are skipped. All
    messages are sent concurrently.

    Args:
        session: Database session
        session_id: Session whose roster gets the reminder
        message: Custom text; defaults to a reminder with the session's date and time

    Returns:
        Tally dict, or None if the session doesn't exist

    Raises:
        ServiceNotConfiguredError: If Twilio isn't configured
        ValueError: If session_id is missing
    """
    if not sms_service.is_configured():
        raise ServiceNotConfiguredError("Twilio configuration missing")
    if not session_id:
        raise ValueError("sessionId is required")

    session_row = await session.get(Session, session_id)
    if session_row is None:
        return None

    result = await session.execute(
        select(User.name, User.phone)
        .join(SessionCommitment, SessionCommitment.user_id == User.id)
        .where(SessionCommitment.session_id == session_id)
    )
    recipients = [
        {"name": name, "phone": phone}
        for name, phone in result
        if len(sms_service.digits_only(phone)) >= MIN_PHONE_DIGITS
    ]

    if not recipients:
        return {"message": "No recipients with valid phone numbers found", "sent_count": 0}

    body = message or build_reminder_message(session_row.date, session_row.start_time)

    async def _send(recipient: Dict) -> bool:
        return await asyncio.to_thread(sms_service.send_sms, recipient["phone"], body)

    outcomes = await asyncio.gather(*[_send(r) for r in recipients], return_exceptions=True)
    sent = 0
    failed = 0
    for recipient, outcome in zip(recipients, outcomes):
        if outcome is True:
            sent += 1
        else:
            failed += 1
            if isinstance(outcome, Exception):
                logger.error(f"SMS to {recipient['name']} raised: {outcome}")

    logger.info(f"Session {session_id} reminders: {sent} sent, {failed} failed")
    return {
        "success": True,
        "sent_count": sent,
        "fail_count": failed,
        "total_recipients": len(recipients),
    }


async def send_session_invites(
    session: AsyncSession, user_ids: List[str], session_details: Dict
) -> Dict:
    """
    Email a session invite to each selected member.

    Recipient addresses come from the user directory, not from the caller.
    Members without an email address are left out of the results.

    Returns:
        {"success": True, "results": [{"email", "status": "sent"|"failed"|"error"}]}

    Raises:
        ValueError: If user_ids is empty or session_details is missing
    """
    if not user_ids:
        raise ValueError("No users selected")
    if not session_details:
        raise ValueError("Session details are required")

    result = await session.execute(
        select(User.name, User.email).where(User.id.in_(user_ids), User.email.is_not(None))
    )
    recipients = [{"name": name, "email": email} for name, email in result if email]

    subject = f"Jam Session Invite: {session_details.get('date_formatted', '')}"

    async def _send(recipient: Dict) -> Dict:
        html = email_service.build_invite_html(recipient["name"], session_details)
        try:
            ok = await asyncio.to_thread(email_service.send_email, recipient["email"], subject, html)
        except Exception as e:
            logger.error(f"Invite to {recipient['email']} raised: {e}")
            return {"email": recipient["email"], "status": "error"}
        return {"email": recipient["email"], "status": "sent" if ok else "failed"}

    results = await asyncio.gather(*[_send(r) for r in recipients])
    return {"success": True, "results": list(results)}
