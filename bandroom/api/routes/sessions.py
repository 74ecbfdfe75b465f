"""Rehearsal session routes."""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from bandroom.api.auth_dependencies import get_current_user_optional, is_admin, require_approved_user
from bandroom.database.db import get_db_session
from bandroom.models.schemas import SessionCreate
from bandroom.services import session_service

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/api/sessions")
async def list_sessions(
    from_date: Optional[str] = Query(None),
    user: Optional[dict] = Depends(get_current_user_optional),
    session: AsyncSession = Depends(get_db_session),
):
    """
    Sessions visible to the caller, by date.

    Anonymous callers see public sessions only. Signed-in callers also get a
    ``new_message_count`` per session.
    """
    try:
        return await session_service.list_sessions(session, user, from_date=from_date)
    except Exception as e:
        logger.error(f"Error listing sessions: {str(e)}")
        raise HTTPException(status_code=500, detail="Error listing sessions")


@router.post("/api/sessions")
async def create_session(
    payload: SessionCreate,
    user: dict = Depends(require_approved_user),
    session: AsyncSession = Depends(get_db_session),
):
    try:
        return await session_service.create_session(
            session,
            created_by=user["id"],
            date=payload.date,
            start_time=payload.start_time,
            end_time=payload.end_time,
            songs=[s.model_dump() for s in payload.songs],
            is_public=payload.is_public,
            visible_user_ids=payload.visible_user_ids,
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.error(f"Error creating session: {str(e)}")
        raise HTTPException(status_code=500, detail="Error creating session")


@router.get("/api/sessions/{session_id}")
async def get_session(
    session_id: str,
    user: Optional[dict] = Depends(get_current_user_optional),
    session: AsyncSession = Depends(get_db_session),
):
    """One session with its set-list, commitments and their capabilities."""
    try:
        session_row = await session_service.get_session_row(session, session_id)
        if session_row is None or not session_service.can_view_session(session_row, user):
            raise HTTPException(status_code=404, detail="Session not found")
        return await session_service.get_session(session, session_id)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error loading session {session_id}: {str(e)}")
        raise HTTPException(status_code=500, detail="Error loading session")


@router.delete("/api/sessions/{session_id}")
async def delete_session(
    session_id: str,
    user: dict = Depends(require_approved_user),
    session: AsyncSession = Depends(get_db_session),
):
    """Delete a session. Only its creator or an admin may do this."""
    try:
        session_row = await session_service.get_session_row(session, session_id)
        if session_row is None:
            raise HTTPException(status_code=404, detail="Session not found")
        if not is_admin(user) and session_row.created_by != user["id"]:
            raise HTTPException(status_code=403, detail="Not allowed to delete this session")
        await session_service.delete_session(session, session_id)
        logger.info(f"User {user['id']} deleted session {session_id}")
        return {"success": True}
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error deleting session {session_id}: {str(e)}")
        raise HTTPException(status_code=500, detail="Error deleting session")
