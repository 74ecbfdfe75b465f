"""Feedback board routes."""

import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from bandroom.api.auth_dependencies import require_admin, require_user
from bandroom.database.db import get_db_session
from bandroom.models.schemas import (
    FeedbackCreate,
    FeedbackReplyRequest,
    FeedbackStatusUpdate,
    FeedbackVoteRequest,
)
from bandroom.services import feedback_service

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/api/feedback")
async def list_feedback(
    user: dict = Depends(require_user),
    session: AsyncSession = Depends(get_db_session),
):
    try:
        return await feedback_service.list_feedback(session, user_id=user["id"])
    except Exception as e:
        logger.error(f"Error listing feedback: {str(e)}")
        raise HTTPException(status_code=500, detail="Error listing feedback")


@router.post("/api/feedback")
async def create_feedback(
    payload: FeedbackCreate,
    user: dict = Depends(require_user),
    session: AsyncSession = Depends(get_db_session),
):
    try:
        return await feedback_service.create_feedback(
            session, user["id"], payload.category, payload.message
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.error(f"Error submitting feedback: {str(e)}")
        raise HTTPException(status_code=500, detail="Error submitting feedback")


@router.post("/api/feedback/vote")
async def vote_feedback(
    payload: FeedbackVoteRequest,
    user: dict = Depends(require_user),
    session: AsyncSession = Depends(get_db_session),
):
    """Set the caller's vote to up or down, or clear it with none."""
    try:
        result = await feedback_service.set_vote(
            session, payload.feedback_id, user["id"], payload.vote_type
        )
        if result is None:
            raise HTTPException(status_code=404, detail="Feedback not found")
        return result
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error voting on feedback: {str(e)}")
        raise HTTPException(status_code=500, detail="Error voting on feedback")


@router.post("/api/feedback/reply")
async def reply_feedback(
    payload: FeedbackReplyRequest,
    user: dict = Depends(require_user),
    session: AsyncSession = Depends(get_db_session),
):
    try:
        reply = await feedback_service.add_reply(
            session, payload.feedback_id, user["id"], payload.message
        )
        if reply is None:
            raise HTTPException(status_code=404, detail="Feedback not found")
        return reply
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error replying to feedback: {str(e)}")
        raise HTTPException(status_code=500, detail="Error replying to feedback")


@router.patch("/api/feedback/{feedback_id}/status")
async def update_feedback_status(
    feedback_id: str,
    payload: FeedbackStatusUpdate,
    admin: dict = Depends(require_admin),
    session: AsyncSession = Depends(get_db_session),
):
    try:
        result = await feedback_service.update_status(session, feedback_id, payload.status)
        if result is None:
            raise HTTPException(status_code=404, detail="Feedback not found")
        return result
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error updating feedback {feedback_id}: {str(e)}")
        raise HTTPException(status_code=500, detail="Error updating feedback")
