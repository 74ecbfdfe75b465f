"""Session commitment routes."""

import logging

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from bandroom.api.auth_dependencies import is_admin, require_approved_user
from bandroom.database.db import get_db_session
from bandroom.models.schemas import CommitmentCreate
from bandroom.services import commitment_service
from bandroom.utils.errors import UpstreamError

logger = logging.getLogger(__name__)
router = APIRouter()


def _check_can_act_for(user: dict, user_id: str):
    if user_id != user["id"] and not is_admin(user):
        raise HTTPException(status_code=403, detail="Cannot change another member's commitment")


@router.post("/api/commitments")
async def create_commitment(
    payload: CommitmentCreate,
    user: dict = Depends(require_approved_user),
    session: AsyncSession = Depends(get_db_session),
):
    """
    Commit a member to a session with the capabilities they'll bring.

    Re-posting replaces the capability set. Members act for themselves; admins
    may act for anyone.
    """
    _check_can_act_for(user, payload.user_id)
    try:
        commitment = await commitment_service.create_commitment(
            session,
            payload.session_id,
            payload.user_id,
            capability_ids=payload.capability_ids,
            status=payload.status,
        )
        if commitment is None:
            raise HTTPException(status_code=404, detail="Session not found")
        return commitment
    except UpstreamError as e:
        raise HTTPException(status_code=500, detail=str(e))
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error creating commitment: {str(e)}")
        raise HTTPException(status_code=500, detail="Error creating commitment")


@router.delete("/api/commitments")
async def delete_commitment(
    session_id: str = Query(...),
    user_id: str = Query(...),
    user: dict = Depends(require_approved_user),
    session: AsyncSession = Depends(get_db_session),
):
    _check_can_act_for(user, user_id)
    try:
        # Idempotent: withdrawing twice still succeeds
        await commitment_service.delete_commitment(session, session_id, user_id)
        return {"success": True}
    except Exception as e:
        logger.error(f"Error deleting commitment: {str(e)}")
        raise HTTPException(status_code=500, detail="Error deleting commitment")
