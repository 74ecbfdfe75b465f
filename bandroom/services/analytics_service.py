"""
Admin dashboard statistics.

Every metric is an independent read on its own session, gathered
concurrently; a failure in any one fails the dashboard.
"""

import asyncio
import logging
from typing import Dict, List, Optional

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import async_sessionmaker

from bandroom.database.models import (
    Capability,
    Session,
    SessionCommitment,
    SessionRecording,
    Song,
    User,
    UserCapability,
    UserStatus,
)

logger = logging.getLogger(__name__)

TOP_MEMBERS_LIMIT = 10
TOP_KEYS_LIMIT = 5


def _in_range(query, start_date: Optional[str], end_date: Optional[str]):
    if start_date:
        query = query.where(Session.date >= start_date)
    if end_date:
        query = query.where(Session.date <= end_date)
    return query


async def _session_count(factory, start_date, end_date) -> int:
    async with factory() as session:
        result = await session.execute(
            _in_range(select(func.count(Session.id)), start_date, end_date)
        )
        return result.scalar() or 0


async def _approved_member_count(factory) -> int:
    async with factory() as session:
        result = await session.execute(
            select(func.count(User.id)).where(User.status == UserStatus.APPROVED.value)
        )
        return result.scalar() or 0


async def _attendance_history(factory, start_date, end_date) -> List[Dict]:
    async with factory() as session:
        query = (
            select(Session.id, Session.date, func.count(SessionCommitment.id))
            .outerjoin(SessionCommitment, SessionCommitment.session_id == Session.id)
            .group_by(Session.id, Session.date)
            .order_by(Session.date)
        )
        result = await session.execute(_in_range(query, start_date, end_date))
        return [
            {"session_id": session_id, "date": date, "attendees": count}
            for session_id, date, count in result
        ]


async def _member_attendance(factory, start_date, end_date) -> List[Dict]:
    async with factory() as session:
        query = (
            select(User.id, User.name, func.count(SessionCommitment.id).label("sessions"))
            .join(SessionCommitment, SessionCommitment.user_id == User.id)
            .join(Session, Session.id == SessionCommitment.session_id)
            .group_by(User.id, User.name)
            .order_by(func.count(SessionCommitment.id).desc())
            .limit(TOP_MEMBERS_LIMIT)
        )
        result = await session.execute(_in_range(query, start_date, end_date))
        return [{"user_id": uid, "name": name, "sessions": count} for uid, name, count in result]


async def _instrument_distribution(factory) -> List[Dict]:
    async with factory() as session:
        result = await session.execute(
            select(Capability.name, Capability.icon, func.count(UserCapability.id))
            .join(UserCapability, UserCapability.capability_id == Capability.id)
            .join(User, User.id == UserCapability.user_id)
            .where(User.status == UserStatus.APPROVED.value)
            .group_by(Capability.id, Capability.name, Capability.icon)
            .order_by(func.count(UserCapability.id).desc())
        )
        return [{"name": name, "icon": icon, "members": count} for name, icon, count in result]


async def _top_song_keys(factory) -> List[Dict]:
    async with factory() as session:
        result = await session.execute(
            select(Song.key, func.count(Song.id))
            .where(Song.key.is_not(None), Song.key != "")
            .group_by(Song.key)
            .order_by(func.count(Song.id).desc())
            .limit(TOP_KEYS_LIMIT)
        )
        return [{"key": key, "songs": count} for key, count in result]


async def _recording_count(factory, start_date, end_date) -> int:
    async with factory() as session:
        query = select(func.count(SessionRecording.id)).join(
            Session, Session.id == SessionRecording.session_id
        )
        result = await session.execute(_in_range(query, start_date, end_date))
        return result.scalar() or 0


async def get_dashboard(
    session_factory: async_sessionmaker,
    start_date: Optional[str] = None,
    end_date: Optional[str] = None,
) -> Dict:
    """
    Collect dashboard metrics for sessions dated within [start_date, end_date].

    Args:
        session_factory: Factory used to open one session per metric
        start_date: Inclusive ISO date lower bound
        end_date: Inclusive ISO date upper bound
    """
    (
        session_count,
        approved_members,
        attendance_history,
        member_attendance,
        instruments,
        song_keys,
        recordings,
    ) = await asyncio.gather(
        _session_count(session_factory, start_date, end_date),
        _approved_member_count(session_factory),
        _attendance_history(session_factory, start_date, end_date),
        _member_attendance(session_factory, start_date, end_date),
        _instrument_distribution(session_factory),
        _top_song_keys(session_factory),
        _recording_count(session_factory, start_date, end_date),
    )

    total_attendance = sum(entry["attendees"] for entry in attendance_history)
    average = round(total_attendance / len(attendance_history), 1) if attendance_history else 0

    return {
        "session_count": session_count,
        "approved_member_count": approved_members,
        "attendance_history": attendance_history,
        "average_attendance": average,
        "member_attendance": member_attendance,
        "instrument_distribution": instruments,
        "top_song_keys": song_keys,
        "recording_count": recordings,
    }
