"""Chat routes: global and per-session message feeds, reactions and read receipts."""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from bandroom.api.auth_dependencies import get_current_user_optional, require_approved_user
from bandroom.database.db import get_db_session
from bandroom.models.schemas import ChatMessageCreate, ReactionRequest, ReadReceiptRequest
from bandroom.services import chat_service

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/api/chat/messages")
async def list_messages(
    session_id: Optional[str] = Query(None),
    user: dict = Depends(require_approved_user),
    session: AsyncSession = Depends(get_db_session),
):
    """Latest messages in a scope, oldest first. No session_id means the global feed."""
    try:
        return await chat_service.list_messages(session, session_id=session_id)
    except Exception as e:
        logger.error(f"Error listing chat messages: {str(e)}")
        raise HTTPException(status_code=500, detail="Error loading messages")


@router.post("/api/chat/messages")
async def post_message(
    payload: ChatMessageCreate,
    user: dict = Depends(require_approved_user),
    session: AsyncSession = Depends(get_db_session),
):
    try:
        return await chat_service.post_message(
            session, user["id"], payload.content, session_id=payload.session_id
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.error(f"Error posting chat message: {str(e)}")
        raise HTTPException(status_code=500, detail="Error posting message")


@router.post("/api/chat/reactions")
async def toggle_reaction(
    payload: ReactionRequest,
    user: dict = Depends(require_approved_user),
    session: AsyncSession = Depends(get_db_session),
):
    """Add the caller's emoji reaction, or remove it if already present."""
    try:
        result = await chat_service.toggle_reaction(
            session, payload.message_id, user["id"], payload.emoji
        )
        if result is None:
            raise HTTPException(status_code=404, detail="Message not found")
        return result
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error toggling reaction: {str(e)}")
        raise HTTPException(status_code=500, detail="Error toggling reaction")


@router.post("/api/chat/read")
async def mark_read(
    payload: ReadReceiptRequest,
    user: dict = Depends(require_approved_user),
    session: AsyncSession = Depends(get_db_session),
):
    try:
        return await chat_service.mark_read(session, user["id"], session_id=payload.session_id)
    except Exception as e:
        logger.error(f"Error marking chat read: {str(e)}")
        raise HTTPException(status_code=500, detail="Error marking messages read")


@router.get("/api/chat/unread")
async def unread_count(
    user: Optional[dict] = Depends(get_current_user_optional),
    session: AsyncSession = Depends(get_db_session),
):
    """Unread global messages for the caller; anonymous callers get 0."""
    if user is None:
        return {"count": 0}
    try:
        count = await chat_service.count_unread_global(session, user["id"])
        return {"count": count}
    except Exception as e:
        logger.error(f"Error counting unread messages: {str(e)}")
        raise HTTPException(status_code=500, detail="Error counting unread messages")
