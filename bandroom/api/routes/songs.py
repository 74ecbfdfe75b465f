"""Song library routes, votes and Gemini-backed suggestions."""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from bandroom.api.auth_dependencies import require_approved_user
from bandroom.api.routes import limiter
from bandroom.database.db import get_db_session
from bandroom.models.schemas import RecommendRequest, SongCreate, SongUpdate
from bandroom.services import recommendation_service, song_service
from bandroom.utils.errors import (
    QuotaExceededError,
    ServiceNotConfiguredError,
    UnparseableResponseError,
    UpstreamError,
)

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/api/songs")
async def list_songs(
    search: Optional[str] = Query(None),
    status: Optional[str] = Query(None),
    available_only: bool = Query(False),
    user: dict = Depends(require_approved_user),
    session: AsyncSession = Depends(get_db_session),
):
    """Library songs, most voted first, flagged with the caller's votes."""
    try:
        return await song_service.list_songs(
            session, user_id=user["id"], search=search, status=status, available_only=available_only
        )
    except Exception as e:
        logger.error(f"Error listing songs: {str(e)}")
        raise HTTPException(status_code=500, detail="Error listing songs")


@router.post("/api/songs")
async def create_song(
    payload: SongCreate,
    user: dict = Depends(require_approved_user),
    session: AsyncSession = Depends(get_db_session),
):
    try:
        return await song_service.create_song(
            session,
            created_by=user["id"],
            title=payload.title,
            artist=payload.artist,
            key=payload.key,
            tempo=payload.tempo,
            resource_url=payload.resource_url,
            status=payload.status,
            capability_ids=payload.capability_ids,
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.error(f"Error creating song: {str(e)}")
        raise HTTPException(status_code=500, detail="Error creating song")


@router.post("/api/songs/recommend")
@limiter.limit("10/minute")
async def recommend_songs(
    request: Request,
    payload: RecommendRequest,
    user: dict = Depends(require_approved_user),
):
    """
    Suggest songs featuring the given capabilities.

    Returns 429 when the Gemini account is out of quota, so the client can show
    a distinct message.
    """
    try:
        recommendations = await recommendation_service.recommend_songs(payload.capabilities)
        return {"recommendations": recommendations}
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except QuotaExceededError as e:
        raise HTTPException(status_code=429, detail=str(e))
    except ServiceNotConfiguredError as e:
        logger.error(f"Recommendations unavailable: {str(e)}")
        raise HTTPException(status_code=503, detail="Song recommendations are not configured")
    except UnparseableResponseError:
        raise HTTPException(status_code=500, detail="Failed to parse AI response")
    except UpstreamError as e:
        raise HTTPException(status_code=500, detail=str(e))
    except Exception as e:
        logger.error(f"Error generating recommendations: {str(e)}")
        raise HTTPException(status_code=500, detail="Failed to generate recommendations")


@router.get("/api/songs/{song_id}")
async def get_song(
    song_id: str,
    user: dict = Depends(require_approved_user),
    session: AsyncSession = Depends(get_db_session),
):
    try:
        song = await song_service.get_song(session, song_id, user["id"])
        if not song:
            raise HTTPException(status_code=404, detail="Song not found")
        return song
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error loading song {song_id}: {str(e)}")
        raise HTTPException(status_code=500, detail="Error loading song")


@router.patch("/api/songs/{song_id}")
async def update_song(
    song_id: str,
    payload: SongUpdate,
    user: dict = Depends(require_approved_user),
    session: AsyncSession = Depends(get_db_session),
):
    try:
        updates = payload.model_dump(exclude_unset=True, exclude={"capability_ids"})
        song = await song_service.update_song(
            session, song_id, updates, capability_ids=payload.capability_ids, user_id=user["id"]
        )
        if not song:
            raise HTTPException(status_code=404, detail="Song not found")
        return song
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error updating song {song_id}: {str(e)}")
        raise HTTPException(status_code=500, detail="Error updating song")


@router.post("/api/songs/{song_id}/vote")
async def toggle_vote(
    song_id: str,
    user: dict = Depends(require_approved_user),
    session: AsyncSession = Depends(get_db_session),
):
    """Cast the caller's vote, or withdraw it if already cast."""
    try:
        result = await song_service.toggle_vote(session, song_id, user["id"])
        if result is None:
            raise HTTPException(status_code=404, detail="Song not found")
        return result
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error voting on song {song_id}: {str(e)}")
        raise HTTPException(status_code=500, detail="Error voting on song")
