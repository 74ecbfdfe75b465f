"""
Tests for notification_service plus the SMS and email senders it drives.
"""

from unittest.mock import MagicMock, patch

import pytest

from bandroom.database.models import Session, SessionCommitment
from bandroom.services import email_service, notification_service, sms_service
from bandroom.utils.errors import ServiceNotConfiguredError

TWILIO_ENV = {
    "TWILIO_ACCOUNT_SID": "AC123",
    "TWILIO_AUTH_TOKEN": "secret",
    "TWILIO_PHONE_NUMBER": "+15550000000",
}


class TestPhoneHelpers:
    def test_digits_only(self):
        assert sms_service.digits_only("(555) 123-4567") == "5551234567"
        assert sms_service.digits_only(None) == ""

    def test_normalize_ten_digits(self):
        assert sms_service.normalize_phone("555-123-4567") == "+15551234567"

    def test_normalize_keeps_country_code(self):
        assert sms_service.normalize_phone("+44 20 7946 0958") == "+442079460958"

    def test_normalize_us_number_with_country_code(self):
        assert sms_service.normalize_phone("1 (555) 123-4567") == "+15551234567"


class TestReminderMessage:
    @patch.dict("os.environ", {"BAND_NAME": "The Testers"})
    def test_formats_date_and_time(self):
        message = notification_service.build_reminder_message("2026-03-14", "19:30:00")
        assert message == (
            "Reminder: You have a session at The Testers on March 14 at 7:30 PM. See you there! 🎸"
        )


async def _seed_roster(db_session, make_user):
    await make_user(db_session, "u1", name="Ann", phone="555-123-4567")
    await make_user(db_session, "u2", name="Bo", phone="555-987-6543")
    await make_user(db_session, "u3", name="Cy", phone="12345")
    await make_user(db_session, "u4", name="Di", phone=None)
    db_session.add(Session(id="s1", date="2026-03-14", start_time="19:30:00"))
    await db_session.commit()
    for user_id in ("u1", "u2", "u3", "u4"):
        db_session.add(SessionCommitment(session_id="s1", user_id=user_id))
    await db_session.commit()


@pytest.mark.asyncio
@patch.dict("os.environ", TWILIO_ENV)
async def test_reminders_tally_each_recipient(db_session, make_user):
    await _seed_roster(db_session, make_user)
    sent_to = []

    def fake_send(to_phone, body):
        sent_to.append(to_phone)
        return to_phone != "555-987-6543"

    with patch.object(sms_service, "send_sms", side_effect=fake_send):
        result = await notification_service.send_session_reminders(db_session, "s1")

    assert result == {"success": True, "sent_count": 1, "fail_count": 1, "total_recipients": 2}
    assert sorted(sent_to) == ["555-123-4567", "555-987-6543"]


@pytest.mark.asyncio
@patch.dict("os.environ", TWILIO_ENV)
async def test_reminder_exception_counts_as_failure(db_session, make_user):
    await _seed_roster(db_session, make_user)

    with patch.object(sms_service, "send_sms", side_effect=RuntimeError("boom")):
        result = await notification_service.send_session_reminders(db_session, "s1", "Custom text")

    assert result["sent_count"] == 0
    assert result["fail_count"] == 2


@pytest.mark.asyncio
@patch.dict("os.environ", TWILIO_ENV)
async def test_reminders_without_valid_phones(db_session, make_user):
    await make_user(db_session, "u1", phone="123")
    db_session.add(Session(id="s1", date="2026-03-14"))
    await db_session.commit()
    db_session.add(SessionCommitment(session_id="s1", user_id="u1"))
    await db_session.commit()

    result = await notification_service.send_session_reminders(db_session, "s1")

    assert result == {"message": "No recipients with valid phone numbers found", "sent_count": 0}


@pytest.mark.asyncio
@patch.dict("os.environ", TWILIO_ENV)
async def test_reminders_unknown_session(db_session):
    assert await notification_service.send_session_reminders(db_session, "missing") is None


@pytest.mark.asyncio
@patch.dict("os.environ", {"TWILIO_ACCOUNT_SID": "", "TWILIO_AUTH_TOKEN": "", "TWILIO_PHONE_NUMBER": ""})
async def test_reminders_require_twilio(db_session):
    with pytest.raises(ServiceNotConfiguredError):
        await notification_service.send_session_reminders(db_session, "s1")


@pytest.mark.asyncio
@patch.dict("os.environ", TWILIO_ENV)
async def test_reminders_require_session_id(db_session):
    with pytest.raises(ValueError, match="sessionId is required"):
        await notification_service.send_session_reminders(db_session, "")


@pytest.mark.asyncio
async def test_invites_resolve_addresses_server_side(db_session, make_user):
    await make_user(db_session, "u1", name="Ann", email="ann@example.com")
    await make_user(db_session, "u2", name="Bo", email="bo@example.com")
    details = {"date_formatted": "March 14", "time_formatted": "7:30 PM", "missing_capability": "drums"}

    def fake_send(to_email, subject, html):
        assert subject == "Jam Session Invite: March 14"
        if to_email == "bo@example.com":
            raise RuntimeError("smtp down")
        return True

    with patch.object(email_service, "send_email", side_effect=fake_send):
        result = await notification_service.send_session_invites(db_session, ["u1", "u2", "ghost"], details)

    statuses = {r["email"]: r["status"] for r in result["results"]}
    assert result["success"] is True
    assert statuses == {"ann@example.com": "sent", "bo@example.com": "error"}


@pytest.mark.asyncio
async def test_invites_require_users(db_session):
    with pytest.raises(ValueError, match="No users selected"):
        await notification_service.send_session_invites(db_session, [], {"date_formatted": "x"})


class TestEmailService:
    def test_invite_html_escapes_and_mentions_capability(self):
        html = email_service.build_invite_html(
            "<Ann>", {"date_formatted": "March 14", "time_formatted": "7:30 PM", "missing_capability": "drums"}
        )
        assert "&lt;Ann&gt;" in html
        assert "drums" in html
        assert "March 14" in html

    @patch.dict("os.environ", {"ENABLE_EMAIL": "false", "SENDGRID_API_KEY": "key"})
    def test_send_disabled_returns_false(self):
        assert email_service.send_email("a@example.com", "Hi", "<p>x</p>") is False

    @patch.dict("os.environ", {"ENABLE_EMAIL": "true", "SENDGRID_API_KEY": "key"})
    @patch("bandroom.services.email_service.SendGridAPIClient")
    def test_send_accepted(self, mock_client_cls):
        mock_client_cls.return_value.send.return_value = MagicMock(status_code=202, body="")
        assert email_service.send_email("a@example.com", "Hi", "<p>x</p>") is True
