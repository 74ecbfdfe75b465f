"""
Tests for recommendation_service: prompt, response parsing and error mapping.
"""

from unittest.mock import MagicMock, patch

import pytest

from bandroom.services import recommendation_service
from bandroom.utils.errors import (
    QuotaExceededError,
    ServiceNotConfiguredError,
    UnparseableResponseError,
)

VALID_REPLY = """```json
[
  {"title": "Come Together", "artist": "The Beatles", "key": "Dm", "tempo": "82 BPM",
   "youtubeUrl": "https://www.youtube.com/results?search_query=come+together"}
]
```"""


@pytest.fixture(autouse=True)
def reset_client():
    recommendation_service._gemini_client = None
    yield
    recommendation_service._gemini_client = None


class TestParseRecommendations:
    def test_strips_code_fences(self):
        parsed = recommendation_service.parse_recommendations(VALID_REPLY)
        assert parsed == [
            {
                "title": "Come Together",
                "artist": "The Beatles",
                "key": "Dm",
                "tempo": "82 BPM",
                "youtube_url": "https://www.youtube.com/results?search_query=come+together",
            }
        ]

    def test_invalid_json(self):
        with pytest.raises(UnparseableResponseError, match="Failed to parse AI response"):
            recommendation_service.parse_recommendations("Here are some songs: Wonderwall")

    def test_wrong_shape(self):
        with pytest.raises(UnparseableResponseError):
            recommendation_service.parse_recommendations('[{"title": "Only a title"}]')


def test_prompt_lists_capabilities():
    prompt = recommendation_service.build_prompt(["guitar", "drums"])
    assert "guitar, drums" in prompt
    assert "youtubeUrl" in prompt


@pytest.mark.asyncio
async def test_requires_capabilities():
    with pytest.raises(ValueError, match="No capabilities provided"):
        await recommendation_service.recommend_songs([])


@pytest.mark.asyncio
@patch.dict("os.environ", {"GEMINI_API_KEY": "", "GOOGLE_API_KEY": ""})
async def test_requires_api_key():
    with pytest.raises(ServiceNotConfiguredError):
        await recommendation_service.recommend_songs(["guitar"])


@pytest.mark.asyncio
async def test_recommend_parses_reply():
    client = MagicMock()
    client.models.generate_content.return_value = MagicMock(text=VALID_REPLY)

    with patch.object(recommendation_service, "get_gemini_client", return_value=client):
        result = await recommendation_service.recommend_songs(["bass"])

    assert result[0]["title"] == "Come Together"
    _, kwargs = client.models.generate_content.call_args
    assert "bass" in kwargs["contents"]


@pytest.mark.asyncio
async def test_quota_error_is_distinguished():
    from google.genai import errors as genai_errors

    client = MagicMock()
    client.models.generate_content.side_effect = genai_errors.APIError(
        429, {"error": {"code": 429, "message": "quota", "status": "RESOURCE_EXHAUSTED"}}
    )

    with patch.object(recommendation_service, "get_gemini_client", return_value=client):
        with pytest.raises(QuotaExceededError) as exc_info:
            await recommendation_service.recommend_songs(["bass"])

    assert str(exc_info.value) == recommendation_service.QUOTA_MESSAGE
