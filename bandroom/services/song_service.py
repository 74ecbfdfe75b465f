"""
Song library: catalog CRUD, required capabilities and community votes.
"""

import logging
from typing import Dict, List, Optional

from sqlalchemy import select, delete, func, or_
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from bandroom.database.models import (
    Session,
    SessionSong,
    Song,
    SongCapability,
    SongStatus,
    SongVote,
)

logger = logging.getLogger(__name__)

SONG_FIELDS = ("title", "artist", "key", "tempo", "resource_url", "status")


async def list_songs(
    session: AsyncSession,
    user_id: Optional[str] = None,
    search: Optional[str] = None,
    status: Optional[str] = None,
    available_only: bool = False,
) -> List[Dict]:
    """
    List library songs, most voted first.

    Args:
        user_id: Current user, used to flag songs they voted for
        search: Case-insensitive match on title or artist
        status: Optional status filter
        available_only: Exclude songs already placed on a session set-list
    """
    query = select(Song).options(
        selectinload(Song.capabilities).selectinload(SongCapability.capability),
        selectinload(Song.votes),
    )
    if search:
        pattern = f"%{search.strip()}%"
        query = query.where(or_(Song.title.ilike(pattern), Song.artist.ilike(pattern)))
    if status:
        query = query.where(Song.status == status)
    if available_only:
        placed = select(SessionSong.song_id).where(SessionSong.song_id.is_not(None))
        query = query.where(Song.id.not_in(placed))
    query = query.order_by(Song.title).execution_options(populate_existing=True)

    result = await session.execute(query)
    songs = list(result.scalars().all())
    placements = await _session_placements(session, [s.id for s in songs])

    payload = [_song_to_dict(s, user_id, placements.get(s.id)) for s in songs]
    payload.sort(key=lambda s: s["vote_count"], reverse=True)
    return payload


async def _session_placements(session: AsyncSession, song_ids: List[str]) -> Dict[str, Dict]:
    """Latest session each song is scheduled on."""
    if not song_ids:
        return {}
    result = await session.execute(
        select(SessionSong.song_id, Session.id, Session.date)
        .join(Session, Session.id == SessionSong.session_id)
        .where(SessionSong.song_id.in_(song_ids))
        .order_by(Session.date)
    )
    placements = {}
    for song_id, session_id, date in result:
        placements[song_id] = {"session_id": session_id, "session_date": date}
    return placements


async def get_song(session: AsyncSession, song_id: str, user_id: Optional[str] = None) -> Optional[Dict]:
    result = await session.execute(
        select(Song)
        .options(
            selectinload(Song.capabilities).selectinload(SongCapability.capability),
            selectinload(Song.votes),
        )
        .where(Song.id == song_id)
        .execution_options(populate_existing=True)
    )
    song = result.scalar_one_or_none()
    if not song:
        return None
    placements = await _session_placements(session, [song.id])
    return _song_to_dict(song, user_id, placements.get(song.id))


async def create_song(
    session: AsyncSession,
    created_by: str,
    title: str,
    artist: Optional[str] = None,
    key: Optional[str] = None,
    tempo: Optional[str] = None,
    resource_url: Optional[str] = None,
    status: Optional[str] = None,
    capability_ids: Optional[List[str]] = None,
) -> Dict:
    """
    Add a song to the library.

    Raises:
        ValueError: If title is missing or status is invalid
    """
    title = (title or "").strip()
    if not title:
        raise ValueError("Title is required")
    status = status or SongStatus.ACTIVE.value
    _validate_status(status)

    song = Song(
        title=title,
        artist=artist,
        key=key,
        tempo=tempo,
        resource_url=resource_url,
        status=status,
        created_by=created_by,
    )
    session.add(song)
    await session.flush()

    for capability_id in dict.fromkeys(capability_ids or []):
        session.add(SongCapability(song_id=song.id, capability_id=capability_id))
    await session.flush()

    song_id = song.id
    await session.commit()
    return await get_song(session, song_id, created_by)


async def update_song(
    session: AsyncSession,
    song_id: str,
    updates: Dict,
    capability_ids: Optional[List[str]] = None,
    user_id: Optional[str] = None,
) -> Optional[Dict]:
    """
    Update song fields and optionally replace its required capabilities.

    Raises:
        ValueError: If status is invalid or title is blanked
    """
    song = await session.get(Song, song_id)
    if song is None:
        return None

    for field in SONG_FIELDS:
        if field in updates:
            value = updates[field]
            if field == "status":
                _validate_status(value)
            if field == "title" and not (value or "").strip():
                raise ValueError("Title is required")
            setattr(song, field, value)

    if capability_ids is not None:
        await session.execute(delete(SongCapability).where(SongCapability.song_id == song_id))
        for capability_id in dict.fromkeys(capability_ids):
            session.add(SongCapability(song_id=song_id, capability_id=capability_id))

    await session.flush()
    await session.commit()
    return await get_song(session, song_id, user_id)


async def toggle_vote(session: AsyncSession, song_id: str, user_id: str) -> Optional[Dict]:
    """
    Vote for a song, or withdraw the vote if already cast.

    Returns:
        {"action": "added"|"removed", "vote_count": int}, or None if the song doesn't exist
    """
    if await session.get(Song, song_id) is None:
        return None

    result = await session.execute(
        select(SongVote).where(SongVote.song_id == song_id, SongVote.user_id == user_id)
    )
    existing = result.scalar_one_or_none()

    if existing:
        await session.delete(existing)
        action = "removed"
    else:
        session.add(SongVote(song_id=song_id, user_id=user_id))
        action = "added"
    await session.flush()

    count_result = await session.execute(
        select(func.count()).select_from(SongVote).where(SongVote.song_id == song_id)
    )
    vote_count = count_result.scalar() or 0
    await session.commit()
    return {"action": action, "vote_count": vote_count}


def _validate_status(status: str):
    if status not in {s.value for s in SongStatus}:
        raise ValueError(f"Invalid status: {status}")


def _song_to_dict(song: Song, user_id: Optional[str], placement: Optional[Dict]) -> Dict:
    return {
        "id": song.id,
        "title": song.title,
        "artist": song.artist,
        "key": song.key,
        "tempo": song.tempo,
        "resource_url": song.resource_url,
        "status": song.status,
        "created_by": song.created_by,
        "created_at": song.created_at.isoformat() if song.created_at else None,
        "capabilities": [
            {"id": sc.capability.id, "name": sc.capability.name, "icon": sc.capability.icon}
            for sc in song.capabilities
            if sc.capability
        ],
        "vote_count": len(song.votes),
        "has_voted": bool(user_id) and any(v.user_id == user_id for v in song.votes),
        "session_id": placement["session_id"] if placement else None,
        "session_date": placement["session_date"] if placement else None,
    }
