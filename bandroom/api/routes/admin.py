"""
Admin routes: member approvals, the user directory, the capability catalog,
backup/restore and the analytics dashboard.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, File, HTTPException, Query, Response, UploadFile
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from bandroom.api.auth_dependencies import require_admin
from bandroom.database.db import get_db_session, get_session_factory
from bandroom.models.schemas import (
    AdminUserUpdateRequest,
    ApprovalRequest,
    CapabilityCreate,
    CapabilityUpdate,
    IconSignRequest,
)
from bandroom.services import (
    analytics_service,
    backup_service,
    capability_service,
    media_service,
    user_service,
)
from bandroom.services.user_service import EDITABLE_ADMIN_FIELDS
from bandroom.utils.errors import ServiceNotConfiguredError, UpstreamError

logger = logging.getLogger(__name__)
router = APIRouter()


# ---------------------------------------------------------------------------
# Approvals and users
# ---------------------------------------------------------------------------


@router.post("/api/admin/approvals")
async def set_approval(
    payload: ApprovalRequest,
    admin: dict = Depends(require_admin),
    session: AsyncSession = Depends(get_db_session),
):
    """
    Approve or reject a batch of users.

    When approving with a non-empty ``capabilities`` list, each user's
    capability set is replaced with it.
    """
    try:
        return await user_service.set_user_status(
            session, payload.user_ids, payload.action, payload.capabilities
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except UpstreamError as e:
        logger.error(f"Approval by {admin['id']} failed: {str(e)}")
        raise HTTPException(status_code=500, detail=str(e))
    except Exception as e:
        logger.error(f"Error updating user status: {str(e)}")
        raise HTTPException(status_code=500, detail="Error updating user status")


@router.get("/api/admin/users")
async def list_users(
    status: Optional[str] = Query(None),
    search: Optional[str] = Query(None),
    admin: dict = Depends(require_admin),
    session: AsyncSession = Depends(get_db_session),
):
    try:
        return await user_service.list_users(session, status=status, search=search)
    except Exception as e:
        logger.error(f"Error listing users: {str(e)}")
        raise HTTPException(status_code=500, detail="Error listing users")


@router.patch("/api/admin/users/{user_id}")
async def update_user(
    user_id: str,
    payload: AdminUserUpdateRequest,
    admin: dict = Depends(require_admin),
    session: AsyncSession = Depends(get_db_session),
):
    try:
        updates = payload.model_dump(exclude_unset=True, exclude={"capabilities"})
        user = await user_service.update_user(
            session,
            user_id,
            updates,
            capability_ids=payload.capabilities,
            allowed_fields=EDITABLE_ADMIN_FIELDS,
        )
        if not user:
            raise HTTPException(status_code=404, detail="User not found")
        return user
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error updating user {user_id}: {str(e)}")
        raise HTTPException(status_code=500, detail="Error updating user")


@router.delete("/api/admin/users/{user_id}")
async def delete_user(
    user_id: str,
    admin: dict = Depends(require_admin),
    session: AsyncSession = Depends(get_db_session),
):
    try:
        if user_id == admin["id"]:
            raise HTTPException(status_code=400, detail="You cannot delete your own account")
        if not await user_service.delete_user(session, user_id):
            raise HTTPException(status_code=404, detail="User not found")
        logger.info(f"Admin {admin['id']} deleted user {user_id}")
        return {"success": True}
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error deleting user {user_id}: {str(e)}")
        raise HTTPException(status_code=500, detail="Error deleting user")


# ---------------------------------------------------------------------------
# Capability catalog
# ---------------------------------------------------------------------------


@router.post("/api/admin/capabilities")
async def create_capability(
    payload: CapabilityCreate,
    admin: dict = Depends(require_admin),
    session: AsyncSession = Depends(get_db_session),
):
    try:
        return await capability_service.create_capability(session, payload.name, payload.icon)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except IntegrityError:
        raise HTTPException(status_code=409, detail="Capability already exists")
    except Exception as e:
        logger.error(f"Error creating capability: {str(e)}")
        raise HTTPException(status_code=500, detail="Error creating capability")


@router.patch("/api/admin/capabilities/{capability_id}")
async def update_capability(
    capability_id: str,
    payload: CapabilityUpdate,
    admin: dict = Depends(require_admin),
    session: AsyncSession = Depends(get_db_session),
):
    try:
        capability = await capability_service.update_capability(
            session, capability_id, name=payload.name, icon=payload.icon
        )
        if not capability:
            raise HTTPException(status_code=404, detail="Capability not found")
        return capability
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except IntegrityError:
        raise HTTPException(status_code=409, detail="Capability already exists")
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error updating capability {capability_id}: {str(e)}")
        raise HTTPException(status_code=500, detail="Error updating capability")


@router.delete("/api/admin/capabilities/{capability_id}")
async def delete_capability(
    capability_id: str,
    admin: dict = Depends(require_admin),
    session: AsyncSession = Depends(get_db_session),
):
    try:
        if not await capability_service.delete_capability(session, capability_id):
            raise HTTPException(status_code=404, detail="Capability not found")
        return {"success": True}
    except ValueError as e:
        # Still held by members
        raise HTTPException(status_code=409, detail=str(e))
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error deleting capability {capability_id}: {str(e)}")
        raise HTTPException(status_code=500, detail="Error deleting capability")


@router.post("/api/admin/capabilities/icon/sign")
async def sign_icon_upload(
    payload: IconSignRequest,
    admin: dict = Depends(require_admin),
):
    """
    Presigned URL for uploading a capability icon directly to storage.

    Returns:
        { "signed_url": ..., "path": ..., "public_url": ... }
    """
    try:
        return media_service.sign_icon_upload(payload.file_name, payload.file_type)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except ServiceNotConfiguredError as e:
        logger.error(f"Icon upload unavailable: {str(e)}")
        raise HTTPException(status_code=503, detail="File storage is not configured")
    except UpstreamError as e:
        raise HTTPException(status_code=500, detail=str(e))
    except Exception as e:
        logger.error(f"Error signing icon upload: {str(e)}")
        raise HTTPException(status_code=500, detail="Error signing upload")


# ---------------------------------------------------------------------------
# Backup / restore
# ---------------------------------------------------------------------------


@router.get("/api/admin/backup")
async def download_backup(
    admin: dict = Depends(require_admin),
    session_factory: async_sessionmaker = Depends(get_session_factory),
):
    """Download every table as an .xlsx workbook, one sheet per table."""
    try:
        content = await backup_service.export_workbook(session_factory)
        filename = backup_service.backup_filename()
        logger.info(f"Admin {admin['id']} downloaded backup {filename}")
        return Response(
            content=content,
            media_type=backup_service.XLSX_CONTENT_TYPE,
            headers={"Content-Disposition": f'attachment; filename="{filename}"'},
        )
    except Exception as e:
        logger.error(f"Error exporting backup: {str(e)}")
        raise HTTPException(status_code=500, detail="Error exporting backup")


@router.post("/api/admin/restore")
async def restore_backup(
    file: UploadFile = File(None),
    admin: dict = Depends(require_admin),
    session: AsyncSession = Depends(get_db_session),
):
    """
    Upsert a backup workbook table by table.

    Returns:
        { "success": true, "results": {table: {"status": ...}} }
    """
    if file is None:
        raise HTTPException(status_code=400, detail="No file uploaded")
    try:
        data = await file.read()
        results = await backup_service.restore_workbook(session, data)
        logger.info(f"Admin {admin['id']} restored backup {file.filename}")
        return {"success": True, "results": results}
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.error(f"Error restoring backup: {str(e)}")
        raise HTTPException(status_code=500, detail="Error restoring backup")


# ---------------------------------------------------------------------------
# Analytics
# ---------------------------------------------------------------------------


@router.get("/api/admin/analytics")
async def get_analytics(
    start_date: Optional[str] = Query(None),
    end_date: Optional[str] = Query(None),
    admin: dict = Depends(require_admin),
    session_factory: async_sessionmaker = Depends(get_session_factory),
):
    try:
        return await analytics_service.get_dashboard(session_factory, start_date, end_date)
    except Exception as e:
        logger.error(f"Error building analytics dashboard: {str(e)}")
        raise HTTPException(status_code=500, detail="Error loading analytics")
