"""
Tests for backup_service: workbook export and per-table isolated restore.
"""

import io
from datetime import date

import pandas as pd
import pytest
from sqlalchemy import select

from bandroom.database.models import (
    Capability,
    Session,
    SessionCommitment,
    SessionSong,
    Song,
    User,
    UserCapability,
)
from bandroom.services import backup_service


def _workbook(sheets):
    buffer = io.BytesIO()
    with pd.ExcelWriter(buffer, engine="openpyxl") as writer:
        for name, df in sheets.items():
            df.to_excel(writer, sheet_name=name, index=False)
    return buffer.getvalue()


def _restore_sheets(songs_df):
    return {
        "users": pd.DataFrame(
            [{"id": "u1", "name": "Ann", "email": "ann@example.com", "status": "approved", "role": "user"}]
        ),
        "songs": songs_df,
        "capabilities": pd.DataFrame([{"id": "cap-guitar", "name": "guitar", "icon": "🎸"}]),
        "sessions": pd.DataFrame(
            [{"id": "s1", "date": "2026-03-14", "start_time": "19:30:00", "end_time": "00:00:00",
              "is_public": True, "created_by": "u1"}]
        ),
        "user_capabilities": pd.DataFrame([{"id": "uc1", "user_id": "u1", "capability_id": "cap-guitar"}]),
        "session_commitments": pd.DataFrame(
            [{"id": "c1", "session_id": "s1", "user_id": "u1", "status": "confirmed"}]
        ),
        "session_songs": pd.DataFrame(
            [{"id": "ss1", "session_id": "s1", "song_id": None, "song_name": "Jam", "position": 0}]
        ),
        "song_capabilities": pd.DataFrame(columns=["id", "song_id", "capability_id"]),
    }


def test_backup_filename():
    assert backup_service.backup_filename(date(2026, 3, 14)) == "bandroom-backup-2026-03-14.xlsx"


def test_read_workbook_rejects_garbage():
    with pytest.raises(ValueError, match="Invalid workbook"):
        backup_service.read_workbook(b"definitely not a spreadsheet")
    with pytest.raises(ValueError, match="empty"):
        backup_service.read_workbook(b"")


@pytest.mark.asyncio
async def test_export_has_sheet_per_table(db_session, session_factory, make_user):
    await make_user(db_session, "u1", name="Ann")
    db_session.add(Capability(id="cap-1", name="bass"))
    db_session.add(Session(id="s1", date="2026-03-14", created_by="u1"))
    await db_session.commit()

    content = await backup_service.export_workbook(session_factory)
    sheets = backup_service.read_workbook(content)

    assert set(sheets) == set(backup_service.BACKUP_TABLES)
    assert list(sheets["users"]["id"]) == ["u1"]
    assert list(sheets["sessions"]["date"]) == ["2026-03-14"]
    assert sheets["songs"].empty
    # Datetimes are written as ISO strings
    assert "T" in str(sheets["users"]["created_at"][0])


@pytest.mark.asyncio
async def test_restore_isolates_malformed_sheet(db_session):
    """A songs sheet without titles fails alone; every other table is restored."""
    data = _workbook(_restore_sheets(pd.DataFrame([{"id": "song-1", "artist": "Nobody"}])))

    results = await backup_service.restore_workbook(db_session, data)

    assert results["songs"]["status"] == "error"
    for table in ("users", "capabilities", "sessions", "user_capabilities",
                  "session_commitments", "session_songs"):
        assert results[table] == {"status": "success", "count": 1}, table
    assert results["song_capabilities"] == {"status": "skipped", "reason": "empty sheet"}

    assert (await db_session.execute(select(Song))).scalars().all() == []
    assert (await db_session.get(User, "u1")).name == "Ann"
    assert (await db_session.get(Session, "s1")).is_public is True
    assert await db_session.get(UserCapability, "uc1") is not None
    assert await db_session.get(SessionCommitment, "c1") is not None
    session_song = await db_session.get(SessionSong, "ss1")
    assert session_song.song_id is None
    assert session_song.song_name == "Jam"


@pytest.mark.asyncio
async def test_restore_reports_missing_parents(db_session):
    sheets = _restore_sheets(pd.DataFrame([{"id": "song-1", "title": "Tune"}]))
    sheets["user_capabilities"] = pd.DataFrame(
        [{"id": "uc1", "user_id": "ghost", "capability_id": "cap-guitar"}]
    )

    results = await backup_service.restore_workbook(db_session, _workbook(sheets))

    assert results["songs"] == {"status": "success", "count": 1}
    assert results["user_capabilities"]["status"] == "error"
    assert "ghost" in results["user_capabilities"]["error"]
    assert await db_session.get(UserCapability, "uc1") is None


@pytest.mark.asyncio
async def test_restore_skips_missing_sheets_and_upserts(db_session, make_user):
    await make_user(db_session, "u1", name="Old Name")
    sheets = {
        "users": pd.DataFrame(
            [{"id": "u1", "name": "New Name", "email": "u1@example.com", "status": "approved", "role": "user"}]
        )
    }

    results = await backup_service.restore_workbook(db_session, _workbook(sheets))

    assert results["users"] == {"status": "success", "count": 1}
    assert results["songs"] == {"status": "skipped", "reason": "sheet not found"}
    user = (
        await db_session.execute(
            select(User).where(User.id == "u1").execution_options(populate_existing=True)
        )
    ).scalar_one()
    assert user.name == "New Name"


@pytest.mark.asyncio
async def test_restore_rejects_sheet_without_id(db_session):
    sheets = {"capabilities": pd.DataFrame([{"name": "oboe"}])}

    results = await backup_service.restore_workbook(db_session, _workbook(sheets))

    assert results["capabilities"]["status"] == "error"
    assert "id column" in results["capabilities"]["error"]
