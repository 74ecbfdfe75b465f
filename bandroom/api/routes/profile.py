"""Current-user profile routes."""

import logging

from fastapi import APIRouter, Depends, File, HTTPException, Request, UploadFile
from sqlalchemy.ext.asyncio import AsyncSession

from bandroom.api.auth_dependencies import require_user
from bandroom.api.routes import limiter
from bandroom.database.db import get_db_session
from bandroom.models.schemas import ProfileUpdateRequest
from bandroom.services import media_service, user_service
from bandroom.utils.errors import ServiceNotConfiguredError, UpstreamError

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/api/profile")
async def get_profile(
    user: dict = Depends(require_user),
    session: AsyncSession = Depends(get_db_session),
):
    """The caller's profile with capabilities."""
    try:
        profile = await user_service.get_user_profile(session, user["id"])
        if not profile:
            raise HTTPException(status_code=404, detail="User not found")
        return profile
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error loading profile for {user['id']}: {str(e)}")
        raise HTTPException(status_code=500, detail="Error loading profile")


@router.patch("/api/profile")
async def update_profile(
    payload: ProfileUpdateRequest,
    user: dict = Depends(require_user),
    session: AsyncSession = Depends(get_db_session),
):
    """
    Update the caller's contact details.

    When ``capabilities`` is present the caller's capability set is replaced.
    """
    try:
        updates = payload.model_dump(exclude_unset=True, exclude={"capabilities"})
        profile = await user_service.update_user(
            session, user["id"], updates, capability_ids=payload.capabilities
        )
        if not profile:
            raise HTTPException(status_code=404, detail="User not found")
        return profile
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error updating profile for {user['id']}: {str(e)}")
        raise HTTPException(status_code=500, detail="Error updating profile")


@router.post("/api/profile/avatar")
@limiter.limit("10/minute")
async def upload_avatar(
    request: Request,
    file: UploadFile = File(...),
    user: dict = Depends(require_user),
    session: AsyncSession = Depends(get_db_session),
):
    """
    Upload or replace the caller's avatar.

    Accepts JPEG, PNG, WebP or HEIC up to 5MB; the image is cropped square,
    resized and stored as JPEG.

    Returns:
        { "image": "<public url>" }
    """
    try:
        file_bytes = await file.read()
        url = await media_service.upload_avatar(session, user["id"], file_bytes, file.content_type)
        if url is None:
            raise HTTPException(status_code=404, detail="User not found")
        return {"image": url}
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except ServiceNotConfiguredError as e:
        logger.error(f"Avatar upload unavailable: {str(e)}")
        raise HTTPException(status_code=503, detail="File storage is not configured")
    except UpstreamError as e:
        logger.error(f"Avatar upload failed for {user['id']}: {str(e)}")
        raise HTTPException(status_code=500, detail="Failed to upload avatar")
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error uploading avatar for {user['id']}: {str(e)}")
        raise HTTPException(status_code=500, detail="Error uploading avatar")
