"""SMS reminders and email invites."""

import logging

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.ext.asyncio import AsyncSession

from bandroom.api.auth_dependencies import require_admin, require_approved_user
from bandroom.api.routes import limiter
from bandroom.database.db import get_db_session
from bandroom.models.schemas import InviteRequest, ReminderRequest
from bandroom.services import notification_service
from bandroom.utils.errors import ServiceNotConfiguredError

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post("/api/notifications/remind")
@limiter.limit("5/minute")
async def send_reminders(
    request: Request,
    payload: ReminderRequest,
    admin: dict = Depends(require_admin),
    session: AsyncSession = Depends(get_db_session),
):
    """
    Text a reminder to everyone committed to a session.

    Each recipient is attempted independently; the response tallies sent and
    failed messages.
    """
    try:
        result = await notification_service.send_session_reminders(
            session, payload.session_id, payload.message
        )
        if result is None:
            raise HTTPException(status_code=404, detail="Session not found")
        logger.info(f"Admin {admin['id']} sent reminders for session {payload.session_id}")
        return result
    except ServiceNotConfiguredError as e:
        logger.error(f"SMS reminders unavailable: {str(e)}")
        raise HTTPException(status_code=503, detail="SMS is not configured")
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error sending reminders: {str(e)}")
        raise HTTPException(status_code=500, detail="Error sending reminders")


@router.post("/api/notifications/invite")
async def send_invites(
    payload: InviteRequest,
    user: dict = Depends(require_approved_user),
    session: AsyncSession = Depends(get_db_session),
):
    """
    Email a session invite to the selected members.

    Addresses are looked up from the member directory by user id.
    """
    try:
        details = payload.session_details.model_dump() if payload.session_details else None
        return await notification_service.send_session_invites(session, payload.user_ids, details)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.error(f"Error sending invites: {str(e)}")
        raise HTTPException(status_code=500, detail="Error sending invites")
