"""
Session registry: rehearsal scheduling, set-lists, visibility and rosters.
"""

import logging
from typing import Dict, List, Optional

from sqlalchemy import select, delete, or_, func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from bandroom.database.models import (
    Session,
    SessionCommitment,
    SessionCommitmentCapability,
    SessionPhoto,
    SessionRecording,
    SessionSong,
    SessionVisibility,
    User,
    UserCapability,
    UserRole,
)
from bandroom.services import chat_service

logger = logging.getLogger(__name__)

DEFAULT_START_TIME = "19:30:00"
DEFAULT_END_TIME = "00:00:00"


def _session_load_options():
    return (
        selectinload(Session.songs),
        selectinload(Session.visible_to),
        selectinload(Session.commitments)
        .selectinload(SessionCommitment.user)
        .selectinload(User.capabilities)
        .selectinload(UserCapability.capability),
        selectinload(Session.commitments)
        .selectinload(SessionCommitment.capabilities)
        .selectinload(SessionCommitmentCapability.capability),
    )


def can_view_session(session_row: Session, user: Optional[Dict]) -> bool:
    """Admins see everything, public sessions are open, private ones need a visibility row."""
    if user and user.get("role") == UserRole.ADMIN.value:
        return True
    if session_row.is_public:
        return True
    if not user:
        return False
    return any(v.user_id == user["id"] for v in session_row.visible_to)


async def list_sessions(
    session: AsyncSession,
    user: Optional[Dict],
    from_date: Optional[str] = None,
) -> List[Dict]:
    """
    Sessions visible to the user, ordered by date.

    Each session carries its set-list, roster and, for signed-in users, the
    number of chat messages newer than their read threshold.

    Args:
        user: Current user dictionary, or None when anonymous
        from_date: Optional ISO date lower bound (inclusive)
    """
    query = (
        select(Session)
        .options(*_session_load_options())
        .execution_options(populate_existing=True)
    )

    is_admin = bool(user) and user.get("role") == UserRole.ADMIN.value
    if not is_admin:
        visible_ids = select(SessionVisibility.session_id)
        if user:
            visible_ids = visible_ids.where(SessionVisibility.user_id == user["id"])
            query = query.where(
                or_(Session.is_public == True, Session.id.in_(visible_ids))  # noqa: E712
            )
        else:
            query = query.where(Session.is_public == True)  # noqa: E712

    if from_date:
        query = query.where(Session.date >= from_date)

    query = query.order_by(Session.date, Session.start_time)
    result = await session.execute(query)
    sessions = list(result.scalars().all())

    counts = {}
    if user:
        counts = await chat_service.count_new_messages_by_session(
            session, user["id"], [s.id for s in sessions]
        )

    media_counts = await _media_counts(session, [s.id for s in sessions])

    payload = []
    for s in sessions:
        data = _session_to_dict(s)
        data["new_message_count"] = counts.get(s.id, 0)
        data["recording_count"] = media_counts["recordings"].get(s.id, 0)
        data["photo_count"] = media_counts["photos"].get(s.id, 0)
        payload.append(data)
    return payload


async def _media_counts(session: AsyncSession, session_ids: List[str]) -> Dict[str, Dict[str, int]]:
    counts = {"recordings": {}, "photos": {}}
    if not session_ids:
        return counts
    for key, model in (("recordings", SessionRecording), ("photos", SessionPhoto)):
        result = await session.execute(
            select(model.session_id, func.count())
            .where(model.session_id.in_(session_ids))
            .group_by(model.session_id)
        )
        counts[key] = {row[0]: row[1] for row in result}
    return counts


async def get_session(session: AsyncSession, session_id: str) -> Optional[Dict]:
    """Session with its set-list, commitments and capabilities."""
    result = await session.execute(
        select(Session)
        .options(*_session_load_options())
        .where(Session.id == session_id)
        .execution_options(populate_existing=True)
    )
    session_row = result.scalar_one_or_none()
    return _session_to_dict(session_row) if session_row else None


async def get_session_row(session: AsyncSession, session_id: str) -> Optional[Session]:
    result = await session.execute(
        select(Session).options(selectinload(Session.visible_to)).where(Session.id == session_id)
    )
    return result.scalar_one_or_none()


async def create_session(
    session: AsyncSession,
    created_by: str,
    date: str,
    start_time: Optional[str] = None,
    end_time: Optional[str] = None,
    songs: Optional[List[Dict]] = None,
    is_public: bool = True,
    visible_user_ids: Optional[List[str]] = None,
) -> Dict:
    """
    Schedule a session with an optional ordered set-list.

    Args:
        created_by: Creating user ID
        date: ISO date (YYYY-MM-DD)
        start_time: Defaults to 19:30:00
        end_time: Defaults to 00:00:00
        songs: Set-list entries ({song_id?, song_name?, song_url?}) in display order
        is_public: Visible to everyone when True
        visible_user_ids: Users who may see a private session

    Raises:
        ValueError: If date is missing or a set-list entry has neither song_id nor song_name
    """
    if not date:
        raise ValueError("Date is required")

    session_row = Session(
        date=date,
        start_time=start_time or DEFAULT_START_TIME,
        end_time=end_time or DEFAULT_END_TIME,
        is_public=is_public,
        created_by=created_by,
    )
    session.add(session_row)
    await session.flush()

    for position, entry in enumerate(songs or []):
        if not entry.get("song_id") and not entry.get("song_name"):
            raise ValueError("Each song needs a song_id or song_name")
        session.add(
            SessionSong(
                session_id=session_row.id,
                song_id=entry.get("song_id"),
                song_name=entry.get("song_name"),
                song_url=entry.get("song_url"),
                position=position,
            )
        )

    if not is_public:
        for user_id in dict.fromkeys(visible_user_ids or []):
            session.add(SessionVisibility(session_id=session_row.id, user_id=user_id))

    await session.flush()
    session_id = session_row.id
    await session.commit()
    logger.info(f"Created session {session_id} on {date}")
    return await get_session(session, session_id)


async def delete_session(session: AsyncSession, session_id: str) -> bool:
    result = await session.execute(delete(Session).where(Session.id == session_id))
    await session.commit()
    return result.rowcount > 0


def _capability_dict(capability) -> Dict:
    return {"id": capability.id, "name": capability.name, "icon": capability.icon}


def _session_to_dict(session_row: Session) -> Dict:
    commitments = []
    for c in session_row.commitments:
        user = c.user
        commitments.append(
            {
                "id": c.id,
                "user_id": c.user_id,
                "status": c.status,
                "user": {
                    "id": user.id,
                    "name": user.name,
                    "image": user.image,
                    "capabilities": [
                        _capability_dict(uc.capability) for uc in user.capabilities if uc.capability
                    ],
                }
                if user
                else None,
                "capabilities": [
                    _capability_dict(cc.capability) for cc in c.capabilities if cc.capability
                ],
            }
        )

    return {
        "id": session_row.id,
        "date": session_row.date,
        "start_time": session_row.start_time,
        "end_time": session_row.end_time,
        "is_public": session_row.is_public,
        "created_by": session_row.created_by,
        "created_at": session_row.created_at.isoformat() if session_row.created_at else None,
        "songs": [
            {
                "id": s.id,
                "song_id": s.song_id,
                "song_name": s.song_name,
                "song_url": s.song_url,
                "position": s.position,
            }
            for s in session_row.songs
        ],
        "visible_user_ids": [v.user_id for v in session_row.visible_to],
        "commitments": commitments,
    }
