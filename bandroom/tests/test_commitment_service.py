"""
Tests for commitment_service, including recovery from a failed capability write.
"""

import logging

import pytest
from sqlalchemy import select

from bandroom.database.models import Capability, Session, SessionCommitmentCapability
from bandroom.services import commitment_service
from bandroom.utils.errors import UpstreamError


@pytest.fixture
def seeded(db_session, make_user):
    async def _seed():
        await make_user(db_session, "u1")
        db_session.add(Session(id="s1", date="2026-03-14"))
        db_session.add(Capability(id="cap-guitar", name="guitar"))
        db_session.add(Capability(id="cap-vocals", name="vocals"))
        await db_session.commit()

    return _seed


@pytest.mark.asyncio
async def test_create_commitment_with_capabilities(db_session, seeded):
    await seeded()

    commitment = await commitment_service.create_commitment(
        db_session, "s1", "u1", capability_ids=["cap-guitar", "cap-vocals"]
    )

    assert commitment["status"] == "confirmed"
    assert commitment["capability_ids"] == ["cap-guitar", "cap-vocals"]
    rows = (await db_session.execute(select(SessionCommitmentCapability))).scalars().all()
    assert len(rows) == 2


@pytest.mark.asyncio
async def test_recommit_replaces_capabilities(db_session, seeded):
    await seeded()
    first = await commitment_service.create_commitment(db_session, "s1", "u1", ["cap-guitar"])
    second = await commitment_service.create_commitment(db_session, "s1", "u1", ["cap-vocals"])

    assert first["id"] == second["id"]
    rows = (
        await db_session.execute(select(SessionCommitmentCapability.capability_id))
    ).scalars().all()
    assert rows == ["cap-vocals"]


@pytest.mark.asyncio
async def test_failed_capability_write_leaves_no_commitment(db_session, seeded, caplog):
    await seeded()

    with caplog.at_level(logging.WARNING, logger="bandroom.services.commitment_service"):
        with pytest.raises(UpstreamError):
            await commitment_service.create_commitment(
                db_session, "s1", "u1", capability_ids=["cap-does-not-exist"]
            )

    assert await commitment_service.get_commitment(db_session, "s1", "u1") is None
    assert "Recovered from failed capability write" in caplog.text


@pytest.mark.asyncio
async def test_unknown_session_returns_none(db_session, seeded):
    await seeded()
    assert await commitment_service.create_commitment(db_session, "missing", "u1") is None


@pytest.mark.asyncio
async def test_delete_commitment_cascades_capabilities(db_session, seeded):
    await seeded()
    await commitment_service.create_commitment(db_session, "s1", "u1", ["cap-guitar"])

    assert await commitment_service.delete_commitment(db_session, "s1", "u1") is True
    assert await commitment_service.delete_commitment(db_session, "s1", "u1") is False
    rows = (await db_session.execute(select(SessionCommitmentCapability))).scalars().all()
    assert rows == []
