"""
Tests for analytics_service dashboard metrics.
"""

import pytest

from bandroom.database.models import (
    Capability,
    Session,
    SessionCommitment,
    SessionRecording,
    Song,
    UserCapability,
)
from bandroom.services import analytics_service


@pytest.mark.asyncio
async def test_dashboard_metrics(db_session, session_factory, make_user):
    await make_user(db_session, "u1", name="Ann")
    await make_user(db_session, "u2", name="Bo")
    await make_user(db_session, "u3", name="Cy", status="pending")
    db_session.add_all([
        Capability(id="cap-guitar", name="guitar", icon="🎸"),
        Capability(id="cap-drums", name="drums", icon="🥁"),
        Session(id="s1", date="2026-03-07"),
        Session(id="s2", date="2026-03-14"),
        Session(id="s3", date="2026-05-01"),
        Song(title="One", key="Am"),
        Song(title="Two", key="Am"),
        Song(title="Three", key="G"),
        Song(title="Four"),
    ])
    await db_session.commit()
    db_session.add_all([
        UserCapability(user_id="u1", capability_id="cap-guitar"),
        UserCapability(user_id="u2", capability_id="cap-guitar"),
        UserCapability(user_id="u3", capability_id="cap-drums"),
        SessionCommitment(session_id="s1", user_id="u1"),
        SessionCommitment(session_id="s1", user_id="u2"),
        SessionCommitment(session_id="s2", user_id="u1"),
        SessionCommitment(session_id="s3", user_id="u2"),
        SessionRecording(session_id="s1", url="https://example.com/r1.mp3"),
        SessionRecording(session_id="s3", url="https://example.com/r3.mp3"),
    ])
    await db_session.commit()

    dashboard = await analytics_service.get_dashboard(
        session_factory, start_date="2026-03-01", end_date="2026-03-31"
    )

    assert dashboard["session_count"] == 2
    assert dashboard["approved_member_count"] == 2
    assert [(e["session_id"], e["attendees"]) for e in dashboard["attendance_history"]] == [
        ("s1", 2),
        ("s2", 1),
    ]
    assert dashboard["average_attendance"] == 1.5
    assert dashboard["member_attendance"][0] == {"user_id": "u1", "name": "Ann", "sessions": 2}
    assert dashboard["instrument_distribution"] == [{"name": "guitar", "icon": "🎸", "members": 2}]
    assert dashboard["top_song_keys"][0] == {"key": "Am", "songs": 2}
    assert len(dashboard["top_song_keys"]) == 2
    assert dashboard["recording_count"] == 1


@pytest.mark.asyncio
async def test_dashboard_empty_database(session_factory):
    dashboard = await analytics_service.get_dashboard(session_factory)

    assert dashboard["session_count"] == 0
    assert dashboard["attendance_history"] == []
    assert dashboard["average_attendance"] == 0
