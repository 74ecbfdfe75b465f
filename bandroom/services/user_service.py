"""
User service layer: directory lookups, sign-in sync, profile edits and the
admin approval gate.
"""

from typing import Optional, Dict, List
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import selectinload
from sqlalchemy import select, update, delete, func, or_
from bandroom.utils.datetime_utils import utcnow
from bandroom.utils.errors import UpstreamError
from bandroom.database.models import (
    User,
    UserCapability,
    UserRole,
    UserStatus,
)
import logging

logger = logging.getLogger(__name__)

APPROVAL_ACTIONS = {
    "approve": UserStatus.APPROVED.value,
    "reject": UserStatus.REJECTED.value,
}

ACTION_PAST_TENSE = {"approve": "approved", "reject": "rejected"}

EDITABLE_PROFILE_FIELDS = ("name", "email", "phone", "image")
EDITABLE_ADMIN_FIELDS = EDITABLE_PROFILE_FIELDS + ("status", "role")


async def get_user_by_id(session: AsyncSession, user_id: str) -> Optional[Dict]:
    """
    Get user by ID.

    Args:
        session: Database session
        user_id: User ID

    Returns:
        User dictionary or None if not found
    """
    result = await session.execute(select(User).where(User.id == user_id))
    user = result.scalar_one_or_none()
    return _user_to_dict(user) if user else None


async def get_user_by_email(session: AsyncSession, email: str) -> Optional[Dict]:
    """
    Get user by email address (case-insensitive).

    Returns:
        User dictionary or None if not found
    """
    email = email.strip().lower() if email else None
    if not email:
        return None

    result = await session.execute(
        select(User).where(func.lower(func.trim(User.email)) == email).limit(1)
    )
    user = result.scalar_one_or_none()
    return _user_to_dict(user) if user else None


async def sync_signed_in_user(
    session: AsyncSession,
    email: str,
    name: Optional[str] = None,
    image: Optional[str] = None,
    user_id: Optional[str] = None,
) -> Dict:
    """
    Create or refresh the directory row for an identity that just signed in.

    New users start with status pending. Existing users get their name refreshed
    and last_sign_in_at stamped.

    Raises:
        ValueError: If no email is supplied
    """
    email = email.strip().lower() if email else None
    if not email:
        raise ValueError("Email is required")

    result = await session.execute(select(User).where(func.lower(User.email) == email))
    user = result.scalar_one_or_none()
    now = utcnow()

    if user is None:
        user = User(
            email=email,
            name=name or "Unknown",
            image=image,
            status=UserStatus.PENDING.value,
            role=UserRole.USER.value,
            last_sign_in_at=now,
        )
        if user_id:
            user.id = user_id
        session.add(user)
        logger.info(f"Created pending user for {email}")
    else:
        if name:
            user.name = name
        user.last_sign_in_at = now

    await session.flush()
    user_dict = _user_to_dict(user)
    await session.commit()
    return user_dict


async def get_last_sign_in(session: AsyncSession, user_id: str):
    result = await session.execute(select(User.last_sign_in_at).where(User.id == user_id))
    return result.scalar_one_or_none()


async def get_user_profile(session: AsyncSession, user_id: str) -> Optional[Dict]:
    """User dictionary plus the user's capabilities."""
    result = await session.execute(
        select(User)
        .options(selectinload(User.capabilities).selectinload(UserCapability.capability))
        .where(User.id == user_id)
        .execution_options(populate_existing=True)
    )
    user = result.scalar_one_or_none()
    if not user:
        return None
    return _user_to_dict(user, include_capabilities=True)


async def list_users(
    session: AsyncSession, status: Optional[str] = None, search: Optional[str] = None
) -> List[Dict]:
    """
    List users for the admin directory, newest first.

    Args:
        status: Optional status filter (pending/approved/rejected)
        search: Optional case-insensitive match on name or email
    """
    query = select(User).options(
        selectinload(User.capabilities).selectinload(UserCapability.capability)
    )
    if status and status != "all":
        query = query.where(User.status == status)
    if search:
        pattern = f"%{search.strip()}%"
        query = query.where(or_(User.name.ilike(pattern), User.email.ilike(pattern)))
    query = query.order_by(User.created_at.desc())

    result = await session.execute(query)
    return [_user_to_dict(u, include_capabilities=True) for u in result.scalars().all()]


async def update_user(
    session: AsyncSession,
    user_id: str,
    updates: Dict,
    capability_ids: Optional[List[str]] = None,
    allowed_fields=EDITABLE_PROFILE_FIELDS,
) -> Optional[Dict]:
    """
    Update user fields and optionally replace the capability set.

    Args:
        updates: Field values; keys outside allowed_fields are ignored
        capability_ids: When not None, the user's capabilities are replaced
        allowed_fields: Which columns the caller may touch

    Returns:
        Updated user dictionary with capabilities, or None if not found

    Raises:
        ValueError: On an invalid status/role value
    """
    values = {k: v for k, v in updates.items() if k in allowed_fields}
    if "status" in values and values["status"] not in {s.value for s in UserStatus}:
        raise ValueError(f"Invalid status: {values['status']}")
    if "role" in values and values["role"] not in {r.value for r in UserRole}:
        raise ValueError(f"Invalid role: {values['role']}")
    if "email" in values and values["email"]:
        values["email"] = values["email"].strip().lower()

    exists = await session.execute(select(User.id).where(User.id == user_id))
    if exists.scalar_one_or_none() is None:
        return None

    if values:
        values["updated_at"] = utcnow()
        await session.execute(update(User).where(User.id == user_id).values(**values))

    if capability_ids is not None:
        await _replace_capabilities(session, user_id, capability_ids)

    await session.commit()
    return await get_user_profile(session, user_id)


async def delete_user(session: AsyncSession, user_id: str) -> bool:
    result = await session.execute(delete(User).where(User.id == user_id))
    await session.commit()
    return result.rowcount > 0


async def set_user_status(
    session: AsyncSession,
    user_ids: List[str],
    action: str,
    capability_ids: Optional[List[str]] = None,
) -> Dict:
    """
    Approve or reject a batch of users.

    The status change is committed first. When approving with a non-empty
    capability list, each user's capabilities are then replaced one user at a
    time; a failure part-way leaves earlier users approved with their new
    capabilities.

    Args:
        session: Database session
        user_ids: Non-empty list of user IDs
        action: "approve" or "reject"
        capability_ids: Optional capability IDs to assign on approval

    Returns:
        Dict with success flag, updated users and a summary message

    Raises:
        ValueError: If user_ids is empty or action is unknown
        UpstreamError: If a capability replacement fails
    """
    if not user_ids:
        raise ValueError("userIds must be a non-empty array")
    if action not in APPROVAL_ACTIONS:
        raise ValueError('action must be "approve" or "reject"')

    await session.execute(
        update(User)
        .where(User.id.in_(user_ids))
        .values(status=APPROVAL_ACTIONS[action], updated_at=utcnow())
    )
    await session.commit()

    if action == "approve" and capability_ids:
        for user_id in user_ids:
            try:
                await _replace_capabilities(session, user_id, capability_ids)
                await session.commit()
            except SQLAlchemyError as e:
                await session.rollback()
                logger.error(f"Failed to assign capabilities to user {user_id}: {e}")
                raise UpstreamError("Failed to assign capabilities") from e

    result = await session.execute(
        select(User).where(User.id.in_(user_ids)).execution_options(populate_existing=True)
    )
    updated = [_user_to_dict(u) for u in result.scalars().all()]
    done = ACTION_PAST_TENSE[action]
    logger.info(f"{done.capitalize()} {len(updated)} user(s)")

    return {
        "success": True,
        "updated_users": updated,
        "message": f"Successfully {done} {len(updated)} user(s)",
    }


async def _replace_capabilities(session: AsyncSession, user_id: str, capability_ids: List[str]):
    """Delete-all-then-insert of a user's capability rows (no commit)."""
    await session.execute(delete(UserCapability).where(UserCapability.user_id == user_id))
    for capability_id in dict.fromkeys(capability_ids):
        session.add(UserCapability(user_id=user_id, capability_id=capability_id))
    await session.flush()


def _user_to_dict(user: User, include_capabilities: bool = False) -> Dict:
    """
    Convert a User ORM instance to a dictionary.

    Args:
        user: User ORM instance
        include_capabilities: Include the loaded capabilities list

    Returns:
        User dictionary
    """
    data = {
        "id": user.id,
        "name": user.name,
        "email": user.email,
        "phone": user.phone,
        "image": user.image,
        "status": user.status,
        "role": user.role,
        "last_sign_in_at": user.last_sign_in_at.isoformat() if user.last_sign_in_at else None,
        "created_at": user.created_at.isoformat() if user.created_at else None,
        "updated_at": user.updated_at.isoformat() if user.updated_at else None,
    }
    if include_capabilities:
        data["capabilities"] = [
            {"id": uc.capability.id, "name": uc.capability.name, "icon": uc.capability.icon}
            for uc in user.capabilities
            if uc.capability is not None
        ]
    return data
