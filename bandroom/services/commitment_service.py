"""
Commitment ledger: which members attend which session, with the capabilities
they bring to it.
"""

import logging
from typing import Dict, List, Optional

from sqlalchemy import select, delete
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from bandroom.database.models import Session, SessionCommitment, SessionCommitmentCapability
from bandroom.utils.errors import UpstreamError

logger = logging.getLogger(__name__)

DEFAULT_COMMITMENT_STATUS = "confirmed"


async def get_commitment(
    session: AsyncSession, session_id: str, user_id: str
) -> Optional[SessionCommitment]:
    result = await session.execute(
        select(SessionCommitment).where(
            SessionCommitment.session_id == session_id,
            SessionCommitment.user_id == user_id,
        )
    )
    return result.scalar_one_or_none()


async def create_commitment(
    session: AsyncSession,
    session_id: str,
    user_id: str,
    capability_ids: Optional[List[str]] = None,
    status: Optional[str] = None,
) -> Optional[Dict]:
    """
    Commit a user to a session with the capabilities they'll bring.

    The commitment upsert and the capability replacement run in one
    transaction. If the capability write fails, the transaction is rolled back
    and a commitment created by this call is removed with a compensating
    delete (a no-op when the rollback already discarded it), so no commitment
    is left without its capability set.

    Args:
        session: Database session
        session_id: Session to attend
        user_id: Attending user
        capability_ids: Capabilities brought to this session
        status: Commitment status, defaults to "confirmed"

    Returns:
        Commitment dictionary, or None if the session doesn't exist

    Raises:
        UpstreamError: If the commitment or its capabilities can't be stored
    """
    if await session.get(Session, session_id) is None:
        return None

    commitment = await get_commitment(session, session_id, user_id)
    created = commitment is None

    try:
        if created:
            commitment = SessionCommitment(
                session_id=session_id,
                user_id=user_id,
                status=status or DEFAULT_COMMITMENT_STATUS,
            )
            session.add(commitment)
        elif status:
            commitment.status = status
        await session.flush()
    except SQLAlchemyError as e:
        await session.rollback()
        logger.error(f"Failed to save commitment for user {user_id} on session {session_id}: {e}")
        raise UpstreamError("Failed to save commitment") from e

    commitment_id = commitment.id

    try:
        await session.execute(
            delete(SessionCommitmentCapability).where(
                SessionCommitmentCapability.commitment_id == commitment_id
            )
        )
        for capability_id in dict.fromkeys(capability_ids or []):
            session.add(
                SessionCommitmentCapability(commitment_id=commitment_id, capability_id=capability_id)
            )
        await session.flush()
        await session.commit()
    except SQLAlchemyError as e:
        await session.rollback()
        logger.error(f"Failed to save capabilities for commitment {commitment_id}: {e}")
        if created:
            await _compensate_commitment(session, commitment_id)
        raise UpstreamError("Failed to save commitment capabilities") from e

    return {
        "id": commitment_id,
        "session_id": session_id,
        "user_id": user_id,
        "status": commitment.status,
        "capability_ids": list(dict.fromkeys(capability_ids or [])),
    }


async def _compensate_commitment(session: AsyncSession, commitment_id: str) -> None:
    """Idempotently remove a commitment whose capability write failed."""
    result = await session.execute(
        delete(SessionCommitment).where(SessionCommitment.id == commitment_id)
    )
    await session.commit()
    logger.warning(
        f"Recovered from failed capability write: removed commitment {commitment_id} "
        f"({result.rowcount} row(s) deleted)"
    )


async def delete_commitment(session: AsyncSession, session_id: str, user_id: str) -> bool:
    """
    Remove a user's commitment to a session.

    Capability rows go with it through the foreign key cascade.
    """
    result = await session.execute(
        delete(SessionCommitment).where(
            SessionCommitment.session_id == session_id,
            SessionCommitment.user_id == user_id,
        )
    )
    await session.commit()
    return result.rowcount > 0
