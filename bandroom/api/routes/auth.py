"""Sign-in sync route."""

import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from bandroom.api.auth_dependencies import get_token_payload
from bandroom.database.db import get_db_session
from bandroom.models.schemas import AuthSyncRequest
from bandroom.services import auth_service, user_service

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post("/api/auth/sync")
async def sync_user(
    payload: AuthSyncRequest,
    token: dict = Depends(get_token_payload),
    session: AsyncSession = Depends(get_db_session),
):
    """
    Create or refresh the directory row for the signed-in identity.

    The identity (email, and optionally a stable user_id) comes from the verified
    token; the body only carries display details. New users start pending.

    Returns:
        { "user": {...}, "access_token": "..." }
    """
    try:
        user = await user_service.sync_signed_in_user(
            session,
            email=token.get("email"),
            name=payload.name or token.get("name"),
            image=payload.image,
            user_id=token.get("user_id"),
        )
        access_token = auth_service.create_access_token({"user_id": user["id"], "email": user["email"]})
        return {"user": user, "access_token": access_token, "token_type": "bearer"}
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.error(f"Error syncing signed-in user: {str(e)}")
        raise HTTPException(status_code=500, detail="Error syncing user")
