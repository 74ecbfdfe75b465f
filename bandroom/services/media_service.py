"""
Session media: recordings (uploaded directly by clients through signed URLs)
and photos and avatars (uploaded through the API and normalized to JPEG).

Deleting media removes the storage object first, best effort, then the row.
"""

import logging
import re
import time
from typing import Dict, List, Optional

from sqlalchemy import select, delete
from sqlalchemy.ext.asyncio import AsyncSession

from bandroom.database.models import Session, SessionPhoto, SessionRecording, User, UserRole
from bandroom.services import image_service, s3_service

logger = logging.getLogger(__name__)


def can_manage(owner_id: Optional[str], user: Dict) -> bool:
    """Media can be removed by whoever uploaded it, or by an admin."""
    return user.get("role") == UserRole.ADMIN.value or (owner_id is not None and owner_id == user["id"])


def _safe_filename(file_name: str, fallback: str = "recording") -> str:
    name = re.sub(r"[^A-Za-z0-9._-]+", "-", file_name.strip()).strip("-.")
    return name or fallback


async def _require_session(session: AsyncSession, session_id: str):
    if await session.get(Session, session_id) is None:
        raise ValueError("Session not found")


# ---------------------------------------------------------------------------
# Recordings
# ---------------------------------------------------------------------------


async def sign_recording_upload(
    session: AsyncSession, session_id: str, file_name: str, file_type: str
) -> Dict:
    """
    Presigned URL for uploading a recording straight to storage.

    Raises:
        ValueError: If a field is missing or the session doesn't exist
    """
    if not file_name or not file_type:
        raise ValueError("fileName and fileType are required")
    await _require_session(session, session_id)

    key = f"{s3_service.RECORDINGS_PREFIX}/{session_id}/{int(time.time() * 1000)}-{_safe_filename(file_name)}"
    return s3_service.create_signed_upload_url(key, file_type)


async def create_recording(
    session: AsyncSession, session_id: str, user_id: str, url: str, title: Optional[str] = None
) -> Dict:
    """
    Register an uploaded recording.

    Raises:
        ValueError: If url is missing or the session doesn't exist
    """
    if not url:
        raise ValueError("url is required")
    await _require_session(session, session_id)

    recording = SessionRecording(session_id=session_id, created_by=user_id, url=url, title=title)
    session.add(recording)
    await session.flush()
    data = _recording_to_dict(recording)
    await session.commit()
    return data


async def list_recordings(session: AsyncSession, session_id: str) -> List[Dict]:
    result = await session.execute(
        select(SessionRecording)
        .where(SessionRecording.session_id == session_id)
        .order_by(SessionRecording.created_at.desc())
    )
    return [_recording_to_dict(r) for r in result.scalars().all()]


async def get_recording(session: AsyncSession, recording_id: str) -> Optional[SessionRecording]:
    return await session.get(SessionRecording, recording_id)


async def delete_recording(session: AsyncSession, recording: SessionRecording) -> bool:
    """Remove the stored file (failures are logged and skipped), then the row."""
    key = s3_service.key_from_url(recording.url)
    if key:
        if not await s3_service.delete_file(key):
            logger.warning(f"Could not delete storage object for recording {recording.id}; removing row anyway")
    else:
        logger.warning(f"Could not derive storage key for recording {recording.id}: {recording.url}")

    result = await session.execute(delete(SessionRecording).where(SessionRecording.id == recording.id))
    await session.commit()
    return result.rowcount > 0


# ---------------------------------------------------------------------------
# Capability icons
# ---------------------------------------------------------------------------

ICON_CONTENT_TYPES = {"image/png", "image/jpeg", "image/svg+xml", "image/webp"}


def sign_icon_upload(file_name: str, file_type: str) -> Dict:
    """
    Presigned URL for an admin to upload a capability icon under icons/.

    Uploading the same file name again replaces the icon.

    Raises:
        ValueError: If a field is missing or the type isn't an image format icons use
    """
    if not file_name or not file_type:
        raise ValueError("fileName and fileType are required")
    if file_type not in ICON_CONTENT_TYPES:
        raise ValueError(f"Invalid icon type '{file_type}'. Allowed: PNG, JPEG, SVG, WebP")

    key = f"{s3_service.ICONS_PREFIX}/{_safe_filename(file_name, fallback='icon')}"
    return s3_service.create_signed_upload_url(key, file_type)


# ---------------------------------------------------------------------------
# Photos
# ---------------------------------------------------------------------------


async def list_photos(session: AsyncSession, session_id: str) -> List[Dict]:
    result = await session.execute(
        select(SessionPhoto)
        .where(SessionPhoto.session_id == session_id)
        .order_by(SessionPhoto.created_at.desc())
    )
    return [_photo_to_dict(p) for p in result.scalars().all()]


async def create_photo(session: AsyncSession, session_id: str, user_id: str, storage_path: str) -> Dict:
    """
    Register a photo already present in storage.

    Raises:
        ValueError: If storage_path is missing or the session doesn't exist
    """
    if not storage_path:
        raise ValueError("storage_path is required")
    await _require_session(session, session_id)

    photo = SessionPhoto(session_id=session_id, user_id=user_id, storage_path=storage_path)
    session.add(photo)
    await session.flush()
    data = _photo_to_dict(photo)
    await session.commit()
    return data


async def upload_photo(
    session: AsyncSession, session_id: str, user_id: str, file_bytes: bytes, content_type: str
) -> Dict:
    """
    Normalize an uploaded image, store it under session-media/ and register it.

    Raises:
        ValueError: If the image is invalid or the session doesn't exist
        UpstreamError: If storage rejects the upload
    """
    await _require_session(session, session_id)
    processed = image_service.process_session_photo(file_bytes, content_type)

    key = f"{s3_service.SESSION_MEDIA_PREFIX}/{session_id}/{int(time.time() * 1000)}.jpg"
    await s3_service.upload_file(processed, key, "image/jpeg", overwrite=False)
    return await create_photo(session, session_id, user_id, key)


async def get_photo(session: AsyncSession, photo_id: str) -> Optional[SessionPhoto]:
    return await session.get(SessionPhoto, photo_id)


async def delete_photo(session: AsyncSession, photo: SessionPhoto) -> bool:
    """Remove the stored image (failures are logged and skipped), then the row."""
    if not await s3_service.delete_file(photo.storage_path):
        logger.warning(f"Could not delete storage object for photo {photo.id}; removing row anyway")

    result = await session.execute(delete(SessionPhoto).where(SessionPhoto.id == photo.id))
    await session.commit()
    return result.rowcount > 0


def _recording_to_dict(recording: SessionRecording) -> Dict:
    return {
        "id": recording.id,
        "session_id": recording.session_id,
        "created_by": recording.created_by,
        "url": recording.url,
        "title": recording.title,
        "created_at": recording.created_at.isoformat() if recording.created_at else None,
    }


def _photo_to_dict(photo: SessionPhoto) -> Dict:
    return {
        "id": photo.id,
        "session_id": photo.session_id,
        "user_id": photo.user_id,
        "storage_path": photo.storage_path,
        "url": s3_service.public_url(photo.storage_path),
        "created_at": photo.created_at.isoformat() if photo.created_at else None,
    }


# ---------------------------------------------------------------------------
# Avatars
# ---------------------------------------------------------------------------


async def upload_avatar(session: AsyncSession, user_id: str, file_bytes: bytes, content_type: str) -> Optional[str]:
    """
    Store a new avatar for a user and point their profile at it.

    The previous avatar, when it lives in our bucket, is removed best effort.

    Returns:
        Public URL of the new avatar, or None if the user doesn't exist

    Raises:
        ValueError: If the image is invalid
        UpstreamError: If storage rejects the upload
    """
    user = await session.get(User, user_id)
    if user is None:
        return None

    processed = image_service.process_avatar(file_bytes, content_type)
    key = f"{s3_service.AVATARS_PREFIX}/{user_id}/{int(time.time())}.jpg"
    url = await s3_service.upload_file(processed, key, "image/jpeg", overwrite=True)

    previous = user.image
    user.image = url
    await session.commit()

    if previous:
        old_key = s3_service.key_from_url(previous)
        if old_key and old_key.startswith(f"{s3_service.AVATARS_PREFIX}/"):
            await s3_service.delete_file(old_key)

    return url
