"""Capability catalog routes."""

import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from bandroom.api.auth_dependencies import require_admin, require_approved_user, require_user
from bandroom.database.db import get_db_session
from bandroom.services import capability_service

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/api/capabilities")
async def list_capabilities(
    user: dict = Depends(require_user),
    session: AsyncSession = Depends(get_db_session),
):
    try:
        return await capability_service.list_capabilities(session)
    except Exception as e:
        logger.error(f"Error listing capabilities: {str(e)}")
        raise HTTPException(status_code=500, detail="Error listing capabilities")


@router.get("/api/capabilities/icons")
async def list_icons(user: dict = Depends(require_user)):
    """Icon files available for capabilities."""
    return capability_service.list_icons()


@router.post("/api/capabilities/sync")
async def sync_capabilities(
    admin: dict = Depends(require_admin),
    session: AsyncSession = Depends(get_db_session),
):
    """
    Insert a capability for every icon file without one, and refresh icon paths.

    Safe to run repeatedly; an unchanged directory yields zero added/updated.
    """
    try:
        return await capability_service.sync_from_icon_directory(session)
    except Exception as e:
        logger.error(f"Error syncing capabilities: {str(e)}")
        raise HTTPException(status_code=500, detail="Error syncing capabilities")


@router.get("/api/capabilities/{capability_id}/users")
async def list_capability_users(
    capability_id: str,
    user: dict = Depends(require_approved_user),
    session: AsyncSession = Depends(get_db_session),
):
    """Approved members who can fill a capability."""
    try:
        if not await capability_service.get_capability(session, capability_id):
            raise HTTPException(status_code=404, detail="Capability not found")
        return await capability_service.get_capability_candidates(session, capability_id)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error listing users for capability {capability_id}: {str(e)}")
        raise HTTPException(status_code=500, detail="Error listing capability users")
