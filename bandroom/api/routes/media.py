"""Session recordings and photos."""

import logging

from fastapi import APIRouter, Depends, File, Form, HTTPException, Request, UploadFile
from sqlalchemy.ext.asyncio import AsyncSession

from bandroom.api.auth_dependencies import require_approved_user
from bandroom.api.routes import limiter
from bandroom.database.db import get_db_session
from bandroom.models.schemas import PhotoCreate, RecordingCreate, RecordingSignRequest
from bandroom.services import media_service
from bandroom.utils.errors import ServiceNotConfiguredError, UpstreamError

logger = logging.getLogger(__name__)
router = APIRouter()


# ---------------------------------------------------------------------------
# Recordings
# ---------------------------------------------------------------------------


@router.post("/api/recordings/sign")
async def sign_recording_upload(
    payload: RecordingSignRequest,
    user: dict = Depends(require_approved_user),
    session: AsyncSession = Depends(get_db_session),
):
    """
    Presigned URL for uploading a recording directly to storage.

    Returns:
        { "signed_url": ..., "path": ..., "public_url": ... }
    """
    try:
        return await media_service.sign_recording_upload(
            session, payload.session_id, payload.file_name, payload.file_type
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except ServiceNotConfiguredError as e:
        logger.error(f"Recording upload unavailable: {str(e)}")
        raise HTTPException(status_code=503, detail="File storage is not configured")
    except UpstreamError as e:
        raise HTTPException(status_code=500, detail=str(e))
    except Exception as e:
        logger.error(f"Error signing recording upload: {str(e)}")
        raise HTTPException(status_code=500, detail="Error signing upload")


@router.post("/api/recordings")
async def create_recording(
    payload: RecordingCreate,
    user: dict = Depends(require_approved_user),
    session: AsyncSession = Depends(get_db_session),
):
    try:
        return await media_service.create_recording(
            session, payload.session_id, user["id"], payload.url, payload.title
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.error(f"Error saving recording: {str(e)}")
        raise HTTPException(status_code=500, detail="Error saving recording")


@router.get("/api/sessions/{session_id}/recordings")
async def list_recordings(
    session_id: str,
    user: dict = Depends(require_approved_user),
    session: AsyncSession = Depends(get_db_session),
):
    try:
        return await media_service.list_recordings(session, session_id)
    except Exception as e:
        logger.error(f"Error listing recordings for session {session_id}: {str(e)}")
        raise HTTPException(status_code=500, detail="Error listing recordings")


@router.delete("/api/recordings/{recording_id}")
async def delete_recording(
    recording_id: str,
    user: dict = Depends(require_approved_user),
    session: AsyncSession = Depends(get_db_session),
):
    """Delete a recording. Uploader or admin only."""
    try:
        recording = await media_service.get_recording(session, recording_id)
        if recording is None:
            raise HTTPException(status_code=404, detail="Recording not found")
        if not media_service.can_manage(recording.created_by, user):
            raise HTTPException(status_code=403, detail="Not allowed to delete this recording")
        await media_service.delete_recording(session, recording)
        return {"success": True}
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error deleting recording {recording_id}: {str(e)}")
        raise HTTPException(status_code=500, detail="Error deleting recording")


# ---------------------------------------------------------------------------
# Photos
# ---------------------------------------------------------------------------


@router.get("/api/sessions/{session_id}/photos")
async def list_photos(
    session_id: str,
    user: dict = Depends(require_approved_user),
    session: AsyncSession = Depends(get_db_session),
):
    try:
        return await media_service.list_photos(session, session_id)
    except Exception as e:
        logger.error(f"Error listing photos for session {session_id}: {str(e)}")
        raise HTTPException(status_code=500, detail="Error listing photos")


@router.post("/api/photos")
async def create_photo(
    payload: PhotoCreate,
    user: dict = Depends(require_approved_user),
    session: AsyncSession = Depends(get_db_session),
):
    """Register a photo that was already uploaded to storage."""
    try:
        return await media_service.create_photo(
            session, payload.session_id, user["id"], payload.storage_path
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.error(f"Error saving photo: {str(e)}")
        raise HTTPException(status_code=500, detail="Error saving photo")


@router.post("/api/photos/upload")
@limiter.limit("20/minute")
async def upload_photo(
    request: Request,
    session_id: str = Form(...),
    file: UploadFile = File(...),
    user: dict = Depends(require_approved_user),
    session: AsyncSession = Depends(get_db_session),
):
    """
    Upload a session photo. The image is resized and re-encoded as JPEG before
    it is stored.
    """
    try:
        file_bytes = await file.read()
        return await media_service.upload_photo(
            session, session_id, user["id"], file_bytes, file.content_type
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except ServiceNotConfiguredError as e:
        logger.error(f"Photo upload unavailable: {str(e)}")
        raise HTTPException(status_code=503, detail="File storage is not configured")
    except UpstreamError as e:
        raise HTTPException(status_code=500, detail=str(e))
    except Exception as e:
        logger.error(f"Error uploading photo: {str(e)}")
        raise HTTPException(status_code=500, detail="Error uploading photo")


@router.delete("/api/photos/{photo_id}")
async def delete_photo(
    photo_id: str,
    user: dict = Depends(require_approved_user),
    session: AsyncSession = Depends(get_db_session),
):
    """Delete a photo. Uploader or admin only."""
    try:
        photo = await media_service.get_photo(session, photo_id)
        if photo is None:
            raise HTTPException(status_code=404, detail="Photo not found")
        if not media_service.can_manage(photo.user_id, user):
            raise HTTPException(status_code=403, detail="Not allowed to delete this photo")
        await media_service.delete_photo(session, photo)
        return {"success": True}
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error deleting photo {photo_id}: {str(e)}")
        raise HTTPException(status_code=500, detail="Error deleting photo")
