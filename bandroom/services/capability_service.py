"""
Capability catalog: admin CRUD, candidate lookup and the icon-directory sync.
"""

import logging
import os
import re
from pathlib import Path
from typing import Dict, List, Optional

from sqlalchemy import select, delete, func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from bandroom.database.models import Capability, User, UserCapability, UserStatus

logger = logging.getLogger(__name__)

ICON_EXTENSIONS = (".png", ".svg", ".webp")
ICON_URL_PREFIX = "/icons"
DEFAULT_ICON = "🎸"


def get_icons_dir() -> Path:
    """Icon directory, read from the environment at call time."""
    return Path(os.getenv("CAPABILITY_ICONS_DIR", "static/icons"))


def format_capability_name(filename: str) -> str:
    """
    Derive a display name from an icon filename.

    Strips the extension, turns '-' and '_' into spaces and upper-cases the
    first letter of every word. Remaining letters are left as they are, so
    "electric-GUITAR.png" becomes "Electric GUITAR".
    """
    stem = filename.rsplit(".", 1)[0] if "." in filename else filename
    spaced = re.sub(r"[-_]", " ", stem)
    return re.sub(r"\b\w", lambda m: m.group(0).upper(), spaced)


def list_icon_files(icons_dir: Optional[Path] = None) -> Optional[List[str]]:
    """Sorted icon filenames, or None when the directory doesn't exist."""
    icons_dir = icons_dir or get_icons_dir()
    if not icons_dir.is_dir():
        return None
    return sorted(
        entry.name
        for entry in icons_dir.iterdir()
        if entry.is_file() and entry.name.lower().endswith(ICON_EXTENSIONS)
    )


def list_icons(icons_dir: Optional[Path] = None) -> List[Dict]:
    files = list_icon_files(icons_dir) or []
    return [{"name": format_capability_name(f), "path": f"{ICON_URL_PREFIX}/{f}"} for f in files]


async def sync_from_icon_directory(session: AsyncSession, icons_dir: Optional[Path] = None) -> Dict:
    """
    Bring the catalog in line with the icon directory.

    Names are matched case-insensitively. Missing capabilities are inserted and
    capabilities whose icon path changed are updated, so a second run over an
    unchanged directory writes nothing.

    Returns:
        Dict with added and updated counts
    """
    files = list_icon_files(icons_dir)
    if files is None:
        logger.warning("Capability sync requested but icons directory is missing")
        return {"message": "No icons directory found", "added": 0, "updated": 0}

    added = 0
    updated = 0
    for filename in files:
        name = format_capability_name(filename)
        icon_path = f"{ICON_URL_PREFIX}/{filename}"

        result = await session.execute(
            select(Capability).where(func.lower(Capability.name) == name.lower()).limit(1)
        )
        existing = result.scalar_one_or_none()

        if existing is None:
            session.add(Capability(name=name, icon=icon_path))
            added += 1
        elif existing.icon != icon_path:
            existing.icon = icon_path
            updated += 1
        # Flush so a later file deriving the same name sees this row
        await session.flush()

    await session.commit()
    logger.info(f"Capability sync complete: {added} added, {updated} updated")
    return {"added": added, "updated": updated}


async def list_capabilities(session: AsyncSession) -> List[Dict]:
    result = await session.execute(select(Capability).order_by(Capability.name))
    return [_capability_to_dict(c) for c in result.scalars().all()]


async def get_capability(session: AsyncSession, capability_id: str) -> Optional[Dict]:
    capability = await session.get(Capability, capability_id)
    return _capability_to_dict(capability) if capability else None


async def create_capability(session: AsyncSession, name: str, icon: Optional[str] = None) -> Dict:
    """
    Create a capability. Names are trimmed and lower-cased.

    Raises:
        ValueError: If the name is blank
        IntegrityError: If a capability with the same name exists
    """
    normalized = (name or "").strip().lower()
    if not normalized:
        raise ValueError("Name is required")

    capability = Capability(name=normalized, icon=icon or DEFAULT_ICON)
    session.add(capability)
    try:
        await session.flush()
    except IntegrityError:
        await session.rollback()
        raise
    data = _capability_to_dict(capability)
    await session.commit()
    return data


async def update_capability(
    session: AsyncSession, capability_id: str, name: Optional[str] = None, icon: Optional[str] = None
) -> Optional[Dict]:
    """
    Update a capability's name and/or icon.

    Raises:
        IntegrityError: If the new name collides with another capability
    """
    capability = await session.get(Capability, capability_id)
    if capability is None:
        return None

    if name is not None:
        normalized = name.strip().lower()
        if not normalized:
            raise ValueError("Name is required")
        capability.name = normalized
    if icon is not None:
        capability.icon = icon

    try:
        await session.flush()
    except IntegrityError:
        await session.rollback()
        raise
    data = _capability_to_dict(capability)
    await session.commit()
    return data


async def is_capability_assigned(session: AsyncSession, capability_id: str) -> bool:
    result = await session.execute(
        select(func.count())
        .select_from(UserCapability)
        .where(UserCapability.capability_id == capability_id)
    )
    return (result.scalar() or 0) > 0


async def delete_capability(session: AsyncSession, capability_id: str) -> bool:
    """
    Delete a capability that no user holds.

    Raises:
        ValueError: If the capability is still assigned to users
    """
    if await is_capability_assigned(session, capability_id):
        raise ValueError("Capability is assigned to users")
    result = await session.execute(delete(Capability).where(Capability.id == capability_id))
    await session.commit()
    return result.rowcount > 0


async def get_capability_candidates(session: AsyncSession, capability_id: str) -> List[Dict]:
    """Approved users holding a capability, for invite lists."""
    result = await session.execute(
        select(User)
        .join(UserCapability, UserCapability.user_id == User.id)
        .where(
            UserCapability.capability_id == capability_id,
            User.status == UserStatus.APPROVED.value,
        )
        .order_by(User.name)
    )
    return [
        {"id": u.id, "name": u.name, "email": u.email, "phone": u.phone}
        for u in result.scalars().all()
    ]


def _capability_to_dict(capability: Capability) -> Dict:
    return {
        "id": capability.id,
        "name": capability.name,
        "icon": capability.icon,
        "created_at": capability.created_at.isoformat() if capability.created_at else None,
    }
