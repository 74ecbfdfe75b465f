"""
Chat stream: messages scoped to the global feed (session_id None) or to a
session, emoji reactions, read receipts and unread counts.
"""

import logging
from datetime import datetime
from typing import Dict, List, Optional

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from bandroom.database.models import ChatMessage, ChatReaction, ChatReadReceipt, Session
from bandroom.services import user_service
from bandroom.utils.datetime_utils import utcnow, ensure_utc, latest

logger = logging.getLogger(__name__)

MESSAGE_LIMIT = 100


def _scope_filter(column, session_id: Optional[str]):
    return column.is_(None) if session_id is None else column == session_id


def resolve_read_threshold(
    last_sign_in_at: Optional[datetime], last_read_at: Optional[datetime]
) -> Optional[datetime]:
    """
    Point after which messages count as unread.

    The later of the last sign-in and the read receipt; None when neither exists.
    """
    return latest(last_sign_in_at, last_read_at)


async def list_messages(
    session: AsyncSession, session_id: Optional[str] = None, limit: int = MESSAGE_LIMIT
) -> List[Dict]:
    """
    Most recent messages in a scope, returned oldest first.

    Args:
        session_id: Session scope, or None for the global feed
        limit: Maximum number of messages
    """
    result = await session.execute(
        select(ChatMessage)
        .options(
            selectinload(ChatMessage.user),
            selectinload(ChatMessage.reactions),
        )
        .where(_scope_filter(ChatMessage.session_id, session_id))
        .order_by(ChatMessage.created_at.desc())
        .limit(limit)
        .execution_options(populate_existing=True)
    )
    messages = list(result.scalars().all())
    messages.reverse()
    return [_message_to_dict(m) for m in messages]


async def post_message(
    session: AsyncSession, user_id: str, content: str, session_id: Optional[str] = None
) -> Dict:
    """
    Append a message to a scope.

    Raises:
        ValueError: If content is blank or the session doesn't exist
    """
    content = (content or "").strip()
    if not content:
        raise ValueError("Content is required")

    if session_id is not None and await session.get(Session, session_id) is None:
        raise ValueError("Session not found")

    message = ChatMessage(content=content, user_id=user_id, session_id=session_id, created_at=utcnow())
    session.add(message)
    await session.flush()
    message_id = message.id
    await session.commit()

    result = await session.execute(
        select(ChatMessage)
        .options(selectinload(ChatMessage.user), selectinload(ChatMessage.reactions))
        .where(ChatMessage.id == message_id)
    )
    return _message_to_dict(result.scalar_one())


async def toggle_reaction(
    session: AsyncSession, message_id: str, user_id: str, emoji: str
) -> Optional[Dict]:
    """
    Add the reaction if absent, remove it if present.

    Returns:
        {"action": "added"|"removed"}, or None if the message doesn't exist

    Raises:
        ValueError: If emoji is blank
    """
    if not emoji:
        raise ValueError("Emoji is required")
    if await session.get(ChatMessage, message_id) is None:
        return None

    result = await session.execute(
        select(ChatReaction).where(
            ChatReaction.message_id == message_id,
            ChatReaction.user_id == user_id,
            ChatReaction.emoji == emoji,
        )
    )
    existing = result.scalar_one_or_none()

    if existing:
        await session.delete(existing)
        action = "removed"
    else:
        session.add(ChatReaction(message_id=message_id, user_id=user_id, emoji=emoji))
        action = "added"

    await session.commit()
    return {"action": action}


async def get_read_receipt(
    session: AsyncSession, user_id: str, session_id: Optional[str] = None
) -> Optional[ChatReadReceipt]:
    result = await session.execute(
        select(ChatReadReceipt)
        .where(
            ChatReadReceipt.user_id == user_id,
            _scope_filter(ChatReadReceipt.session_id, session_id),
        )
        .limit(1)
    )
    return result.scalar_one_or_none()


async def mark_read(session: AsyncSession, user_id: str, session_id: Optional[str] = None) -> Dict:
    """
    Record that the user has read a scope up to now.

    The stored timestamp never moves backwards.
    """
    now = utcnow()
    receipt = await get_read_receipt(session, user_id, session_id)

    if receipt is None:
        receipt = ChatReadReceipt(user_id=user_id, session_id=session_id, last_read_at=now)
        session.add(receipt)
    else:
        current = ensure_utc(receipt.last_read_at)
        if current is None or now > current:
            receipt.last_read_at = now

    await session.flush()
    last_read_at = ensure_utc(receipt.last_read_at)
    await session.commit()
    return {"success": True, "last_read_at": last_read_at.isoformat()}


async def count_unread_global(session: AsyncSession, user_id: str) -> int:
    """
    Count global messages newer than the user's read threshold.

    The boundary is strict: a message created exactly at the threshold is not
    counted. Returns 0 when the user has neither signed in nor read the feed.
    """
    last_sign_in_at = await user_service.get_last_sign_in(session, user_id)
    receipt = await get_read_receipt(session, user_id, None)
    threshold = resolve_read_threshold(
        last_sign_in_at, receipt.last_read_at if receipt else None
    )
    if threshold is None:
        return 0

    result = await session.execute(
        select(func.count())
        .select_from(ChatMessage)
        .where(ChatMessage.session_id.is_(None), ChatMessage.created_at > threshold)
    )
    return result.scalar() or 0


async def count_new_messages_by_session(
    session: AsyncSession, user_id: str, session_ids: List[str]
) -> Dict[str, int]:
    """
    Per-session unread counts using the same threshold rule as the global feed,
    with each session's own read receipt.
    """
    if not session_ids:
        return {}

    last_sign_in_at = await user_service.get_last_sign_in(session, user_id)

    receipts_result = await session.execute(
        select(ChatReadReceipt.session_id, ChatReadReceipt.last_read_at).where(
            ChatReadReceipt.user_id == user_id,
            ChatReadReceipt.session_id.in_(session_ids),
        )
    )
    receipts = {row.session_id: row.last_read_at for row in receipts_result}

    messages_result = await session.execute(
        select(ChatMessage.session_id, ChatMessage.created_at).where(
            ChatMessage.session_id.in_(session_ids)
        )
    )

    counts = {session_id: 0 for session_id in session_ids}
    for row in messages_result:
        threshold = resolve_read_threshold(last_sign_in_at, receipts.get(row.session_id))
        if threshold is not None and ensure_utc(row.created_at) > threshold:
            counts[row.session_id] += 1
    return counts


def _message_to_dict(message: ChatMessage) -> Dict:
    user = message.user
    return {
        "id": message.id,
        "content": message.content,
        "user_id": message.user_id,
        "session_id": message.session_id,
        "created_at": ensure_utc(message.created_at).isoformat() if message.created_at else None,
        "user": {"id": user.id, "name": user.name, "image": user.image} if user else None,
        "reactions": [
            {"id": r.id, "emoji": r.emoji, "user_id": r.user_id} for r in message.reactions
        ],
    }
