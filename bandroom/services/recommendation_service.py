"""
Song suggestions from Gemini based on the capabilities present at a session.
"""

import asyncio
import json
import logging
import os
import re
from typing import Any, Dict, List

from pydantic import TypeAdapter, ValidationError

from bandroom.models.schemas import SongRecommendation
from bandroom.utils.errors import (
    QuotaExceededError,
    ServiceNotConfiguredError,
    UnparseableResponseError,
    UpstreamError,
)

logger = logging.getLogger(__name__)

RECOMMENDATION_COUNT = 5
QUOTA_MESSAGE = (
    "This feature costs actual money. Add credits to the Gemini account for this to work."
)

# Gemini client (singleton); type is Any to allow lazy import
_gemini_client: Any = None


_recommendations_adapter = TypeAdapter(List[SongRecommendation])


def _get_config():
    return {
        "api_key": os.getenv("GEMINI_API_KEY") or os.getenv("GOOGLE_API_KEY"),
        "model": os.getenv("GEMINI_MODEL", "gemini-2.5-flash"),
    }


def get_gemini_client():
    """Get or create Gemini client. Lazy-imports google.genai to avoid import-time dependency."""
    global _gemini_client
    if _gemini_client is None:
        api_key = _get_config()["api_key"]
        if not api_key:
            raise ServiceNotConfiguredError("GEMINI_API_KEY environment variable is not set")
        from google import genai
        _gemini_client = genai.Client(api_key=api_key)
    return _gemini_client


def build_prompt(capabilities: List[str]) -> str:
    return (
        f"Recommend {RECOMMENDATION_COUNT} popular songs that prominently feature the following "
        f"instruments/capabilities: {', '.join(capabilities)}.\n"
        "The songs should be well-known and suitable for a jam session.\n\n"
        "Return the response ONLY as a valid JSON array of objects, without markdown formatting "
        "or code blocks. Each object must have these properties:\n"
        "- title: string\n"
        "- artist: string\n"
        '- key: string (e.g. "Am", "G Major")\n'
        '- tempo: string (e.g. "120 BPM")\n'
        '- youtubeUrl: string (a search URL like "https://www.youtube.com/results?search_query=song+title+artist")\n'
    )


def clean_response_text(text: str) -> str:
    """Strip markdown code fences the model sometimes adds despite instructions."""
    return re.sub(r"```(?:json)?", "", text or "").strip()


def parse_recommendations(text: str) -> List[Dict]:
    """
    Parse the model's reply into recommendation dicts.

    Raises:
        UnparseableResponseError: If the reply isn't a JSON array of the expected shape
    """
    cleaned = clean_response_text(text)
    try:
        parsed = json.loads(cleaned)
        items = _recommendations_adapter.validate_python(parsed)
    except (json.JSONDecodeError, ValidationError) as e:
        logger.error(f"Failed to parse recommendation response: {e}; content: {cleaned[:200]}")
        raise UnparseableResponseError("Failed to parse AI response") from e
    return [item.model_dump() for item in items]


def _is_quota_error(error: Exception) -> bool:
    code = getattr(error, "code", None) or getattr(error, "status_code", None)
    return code == 429 or "RESOURCE_EXHAUSTED" in str(error)


async def recommend_songs(capabilities: List[str]) -> List[Dict]:
    """
    Ask Gemini for songs featuring the given capabilities.

    Raises:
        ValueError: If no capabilities are given
        ServiceNotConfiguredError: If no API key is configured
        QuotaExceededError: If the account is out of quota
        UnparseableResponseError: If the reply can't be parsed
        UpstreamError: For any other API failure
    """
    capabilities = [c for c in (capabilities or []) if c]
    if not capabilities:
        raise ValueError("No capabilities provided")

    client = get_gemini_client()
    model = _get_config()["model"]
    prompt = build_prompt(capabilities)

    def _call() -> str:
        response = client.models.generate_content(model=model, contents=prompt)
        return response.text or ""

    from google.genai import errors as genai_errors

    try:
        raw_text = await asyncio.to_thread(_call)
    except genai_errors.APIError as e:
        if _is_quota_error(e):
            logger.warning(f"Gemini quota exhausted: {e}")
            raise QuotaExceededError(QUOTA_MESSAGE) from e
        logger.error(f"Gemini API error: {e}")
        raise UpstreamError("Failed to generate recommendations") from e

    if not raw_text:
        raise UpstreamError("Failed to generate recommendations")

    return parse_recommendations(raw_text)
