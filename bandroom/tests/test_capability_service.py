"""
Tests for capability_service: name formatting, icon sync and catalog CRUD.
"""

import pytest
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from bandroom.database.models import Capability, UserCapability
from bandroom.services import capability_service


class TestFormatCapabilityName:
    def test_hyphens_and_underscores(self):
        assert capability_service.format_capability_name("electric-guitar.png") == "Electric Guitar"
        assert capability_service.format_capability_name("lead_vocals.svg") == "Lead Vocals"

    def test_keeps_existing_case(self):
        assert capability_service.format_capability_name("electric-GUITAR.png") == "Electric GUITAR"

    def test_no_extension(self):
        assert capability_service.format_capability_name("drums") == "Drums"


@pytest.fixture
def icons_dir(tmp_path):
    directory = tmp_path / "icons"
    directory.mkdir()
    for name in ("bass.png", "electric-guitar.svg", "lead_vocals.webp", "notes.txt"):
        (directory / name).write_bytes(b"")
    return directory


class TestListIcons:
    def test_only_icon_extensions(self, icons_dir):
        files = capability_service.list_icon_files(icons_dir)
        assert files == ["bass.png", "electric-guitar.svg", "lead_vocals.webp"]

    def test_missing_directory(self, tmp_path):
        assert capability_service.list_icon_files(tmp_path / "missing") is None
        assert capability_service.list_icons(tmp_path / "missing") == []

    def test_icon_paths(self, icons_dir):
        icons = capability_service.list_icons(icons_dir)
        assert icons[0] == {"name": "Bass", "path": "/icons/bass.png"}


@pytest.mark.asyncio
async def test_sync_is_idempotent(db_session, icons_dir):
    first = await capability_service.sync_from_icon_directory(db_session, icons_dir)
    assert first == {"added": 3, "updated": 0}

    second = await capability_service.sync_from_icon_directory(db_session, icons_dir)
    assert second == {"added": 0, "updated": 0}

    names = (await db_session.execute(select(Capability.name).order_by(Capability.name))).scalars().all()
    assert names == ["Bass", "Electric Guitar", "Lead Vocals"]


@pytest.mark.asyncio
async def test_sync_matches_case_insensitively_and_updates_icon(db_session, icons_dir):
    db_session.add(Capability(id="cap-bass", name="bass", icon="🎸"))
    await db_session.commit()

    result = await capability_service.sync_from_icon_directory(db_session, icons_dir)

    assert result == {"added": 2, "updated": 1}
    bass = await db_session.get(Capability, "cap-bass")
    assert bass.icon == "/icons/bass.png"


@pytest.mark.asyncio
async def test_sync_without_directory(db_session, tmp_path):
    result = await capability_service.sync_from_icon_directory(db_session, tmp_path / "missing")
    assert result == {"message": "No icons directory found", "added": 0, "updated": 0}


@pytest.mark.asyncio
async def test_create_normalizes_name_and_defaults_icon(db_session):
    capability = await capability_service.create_capability(db_session, "  Trumpet ")
    assert capability["name"] == "trumpet"
    assert capability["icon"] == capability_service.DEFAULT_ICON


@pytest.mark.asyncio
async def test_create_duplicate_raises_integrity_error(db_session):
    await capability_service.create_capability(db_session, "sax")
    with pytest.raises(IntegrityError):
        await capability_service.create_capability(db_session, "SAX")


@pytest.mark.asyncio
async def test_delete_assigned_capability_refused(db_session, make_user):
    await make_user(db_session, "u1")
    db_session.add(Capability(id="cap-1", name="violin"))
    db_session.add(UserCapability(user_id="u1", capability_id="cap-1"))
    await db_session.commit()

    with pytest.raises(ValueError, match="assigned"):
        await capability_service.delete_capability(db_session, "cap-1")
    assert await db_session.get(Capability, "cap-1") is not None


@pytest.mark.asyncio
async def test_candidates_are_approved_holders(db_session, make_user):
    await make_user(db_session, "u1", name="Approved", status="approved")
    await make_user(db_session, "u2", name="Pending", status="pending")
    db_session.add(Capability(id="cap-1", name="cello"))
    db_session.add(UserCapability(user_id="u1", capability_id="cap-1"))
    db_session.add(UserCapability(user_id="u2", capability_id="cap-1"))
    await db_session.commit()

    candidates = await capability_service.get_capability_candidates(db_session, "cap-1")
    assert [c["id"] for c in candidates] == ["u1"]
