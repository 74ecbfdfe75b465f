"""
Feedback board: submissions, up/down votes, replies and admin status changes.
"""

import logging
from typing import Dict, List, Optional

from sqlalchemy import select, delete
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from bandroom.database.models import (
    Feedback,
    FeedbackReply,
    FeedbackStatus,
    FeedbackVote,
    VoteType,
)
from bandroom.utils.datetime_utils import utcnow

logger = logging.getLogger(__name__)

CLEAR_VOTE = "none"


async def list_feedback(session: AsyncSession, user_id: Optional[str] = None) -> List[Dict]:
    """All feedback, newest first, with vote tallies, the caller's vote and replies."""
    result = await session.execute(
        select(Feedback)
        .options(
            selectinload(Feedback.user),
            selectinload(Feedback.votes),
            selectinload(Feedback.replies).selectinload(FeedbackReply.user),
        )
        .order_by(Feedback.created_at.desc())
        .execution_options(populate_existing=True)
    )
    return [_feedback_to_dict(f, user_id) for f in result.scalars().all()]


async def create_feedback(session: AsyncSession, user_id: str, category: str, message: str) -> Dict:
    """
    Submit a feedback item with status pending.

    Raises:
        ValueError: If category or message is missing
    """
    category = (category or "").strip()
    message = (message or "").strip()
    if not category or not message:
        raise ValueError("Category and message are required")

    feedback = Feedback(
        user_id=user_id,
        category=category,
        message=message,
        status=FeedbackStatus.PENDING.value,
    )
    session.add(feedback)
    await session.flush()
    data = {
        "id": feedback.id,
        "user_id": user_id,
        "category": category,
        "message": message,
        "status": feedback.status,
    }
    await session.commit()
    return data


async def set_vote(
    session: AsyncSession, feedback_id: str, user_id: str, vote_type: Optional[str]
) -> Optional[Dict]:
    """
    Set, replace or clear a user's vote on a feedback item.

    A user holds at most one vote per item: "up"/"down" upserts it, and
    "none" (or None) removes it.

    Returns:
        {"vote_type": str|None}, or None if the feedback doesn't exist

    Raises:
        ValueError: If vote_type is not up, down or none
    """
    vote_type = vote_type or CLEAR_VOTE
    valid = {v.value for v in VoteType}
    if vote_type != CLEAR_VOTE and vote_type not in valid:
        raise ValueError("vote_type must be 'up', 'down' or 'none'")

    if await session.get(Feedback, feedback_id) is None:
        return None

    if vote_type == CLEAR_VOTE:
        await session.execute(
            delete(FeedbackVote).where(
                FeedbackVote.feedback_id == feedback_id, FeedbackVote.user_id == user_id
            )
        )
        await session.commit()
        return {"vote_type": None}

    result = await session.execute(
        select(FeedbackVote).where(
            FeedbackVote.feedback_id == feedback_id, FeedbackVote.user_id == user_id
        )
    )
    existing = result.scalar_one_or_none()
    if existing:
        existing.vote_type = vote_type
    else:
        session.add(FeedbackVote(feedback_id=feedback_id, user_id=user_id, vote_type=vote_type))

    await session.commit()
    return {"vote_type": vote_type}


async def add_reply(session: AsyncSession, feedback_id: str, user_id: str, message: str) -> Optional[Dict]:
    """
    Append a reply to a feedback item.

    Raises:
        ValueError: If message is blank
    """
    message = (message or "").strip()
    if not message:
        raise ValueError("Message is required")
    if await session.get(Feedback, feedback_id) is None:
        return None

    reply = FeedbackReply(feedback_id=feedback_id, user_id=user_id, message=message)
    session.add(reply)
    await session.flush()
    data = {
        "id": reply.id,
        "feedback_id": feedback_id,
        "user_id": user_id,
        "message": message,
        "created_at": reply.created_at.isoformat() if reply.created_at else None,
    }
    await session.commit()
    return data


async def update_status(session: AsyncSession, feedback_id: str, status: str) -> Optional[Dict]:
    """
    Move a feedback item to a new status.

    Raises:
        ValueError: If status is not a known feedback status
    """
    if status not in {s.value for s in FeedbackStatus}:
        raise ValueError(f"Invalid status: {status}")

    feedback = await session.get(Feedback, feedback_id)
    if feedback is None:
        return None

    feedback.status = status
    feedback.updated_at = utcnow()
    await session.commit()
    logger.info(f"Feedback {feedback_id} moved to {status}")
    return {"id": feedback_id, "status": status}


def _feedback_to_dict(feedback: Feedback, user_id: Optional[str]) -> Dict:
    up = sum(1 for v in feedback.votes if v.vote_type == VoteType.UP.value)
    down = sum(1 for v in feedback.votes if v.vote_type == VoteType.DOWN.value)
    user_vote = next((v.vote_type for v in feedback.votes if v.user_id == user_id), None)
    return {
        "id": feedback.id,
        "category": feedback.category,
        "message": feedback.message,
        "status": feedback.status,
        "created_at": feedback.created_at.isoformat() if feedback.created_at else None,
        "user": {"id": feedback.user.id, "name": feedback.user.name} if feedback.user else None,
        "upvotes": up,
        "downvotes": down,
        "score": up - down,
        "user_vote": user_vote,
        "replies": [
            {
                "id": r.id,
                "message": r.message,
                "created_at": r.created_at.isoformat() if r.created_at else None,
                "user": {"id": r.user.id, "name": r.user.name} if r.user else None,
            }
            for r in feedback.replies
        ],
    }
