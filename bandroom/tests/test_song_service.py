"""
Tests for song_service: library CRUD, filters and vote toggling.
"""

import pytest
from sqlalchemy import func, select

from bandroom.database.models import Capability, Session, SessionSong, SongVote
from bandroom.services import song_service


@pytest.mark.asyncio
async def test_create_song_defaults(db_session, make_user):
    await make_user(db_session, "u1")
    db_session.add(Capability(id="cap-1", name="piano"))
    await db_session.commit()

    song = await song_service.create_song(
        db_session, "u1", "  Let It Be ", artist="The Beatles", capability_ids=["cap-1"]
    )

    assert song["title"] == "Let It Be"
    assert song["status"] == "active"
    assert [c["name"] for c in song["capabilities"]] == ["piano"]
    assert song["vote_count"] == 0


@pytest.mark.asyncio
async def test_create_song_requires_title(db_session, make_user):
    await make_user(db_session, "u1")
    with pytest.raises(ValueError, match="Title is required"):
        await song_service.create_song(db_session, "u1", "   ")


@pytest.mark.asyncio
async def test_invalid_status_rejected(db_session, make_user):
    await make_user(db_session, "u1")
    with pytest.raises(ValueError, match="Invalid status"):
        await song_service.create_song(db_session, "u1", "Song", status="famous")


@pytest.mark.asyncio
async def test_toggle_vote_twice_restores_state(db_session, make_user):
    await make_user(db_session, "u1")
    song = await song_service.create_song(db_session, "u1", "Song")

    first = await song_service.toggle_vote(db_session, song["id"], "u1")
    second = await song_service.toggle_vote(db_session, song["id"], "u1")

    assert first == {"action": "added", "vote_count": 1}
    assert second == {"action": "removed", "vote_count": 0}
    count = (await db_session.execute(select(func.count()).select_from(SongVote))).scalar()
    assert count == 0


@pytest.mark.asyncio
async def test_list_sorted_by_votes_and_flags_caller(db_session, make_user):
    await make_user(db_session, "u1")
    await make_user(db_session, "u2")
    quiet = await song_service.create_song(db_session, "u1", "A Quiet Song")
    loud = await song_service.create_song(db_session, "u1", "B Loud Song")
    await song_service.toggle_vote(db_session, loud["id"], "u1")
    await song_service.toggle_vote(db_session, loud["id"], "u2")

    songs = await song_service.list_songs(db_session, user_id="u2")

    assert [s["id"] for s in songs] == [loud["id"], quiet["id"]]
    assert songs[0]["vote_count"] == 2
    assert songs[0]["has_voted"] is True
    assert songs[1]["has_voted"] is False


@pytest.mark.asyncio
async def test_available_only_excludes_scheduled(db_session, make_user):
    await make_user(db_session, "u1")
    scheduled = await song_service.create_song(db_session, "u1", "Scheduled")
    free = await song_service.create_song(db_session, "u1", "Free")
    db_session.add(Session(id="s1", date="2026-03-14"))
    db_session.add(SessionSong(session_id="s1", song_id=scheduled["id"], position=0))
    await db_session.commit()

    songs = await song_service.list_songs(db_session, available_only=True)

    assert [s["id"] for s in songs] == [free["id"]]


@pytest.mark.asyncio
async def test_update_replaces_capabilities(db_session, make_user):
    await make_user(db_session, "u1")
    db_session.add(Capability(id="cap-1", name="bass"))
    db_session.add(Capability(id="cap-2", name="drums"))
    await db_session.commit()
    song = await song_service.create_song(db_session, "u1", "Song", capability_ids=["cap-1"])

    updated = await song_service.update_song(
        db_session, song["id"], {"key": "Am", "tempo": "96 BPM"}, capability_ids=["cap-2"]
    )

    assert updated["key"] == "Am"
    assert [c["id"] for c in updated["capabilities"]] == ["cap-2"]


@pytest.mark.asyncio
async def test_vote_on_missing_song(db_session, make_user):
    await make_user(db_session, "u1")
    assert await song_service.toggle_vote(db_session, "missing", "u1") is None
