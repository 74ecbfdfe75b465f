"""
Pydantic models for API request/response validation.

Request models accept both snake_case and the camelCase keys used by the web
client (e.g. ``userIds``, ``sessionId``).
"""

from typing import Optional, List
from pydantic import BaseModel, Field, ConfigDict


class AuthSyncRequest(BaseModel):
    """Profile details from the identity provider at sign-in."""

    name: Optional[str] = None
    image: Optional[str] = None


class ApprovalRequest(BaseModel):
    """Approve or reject a batch of users."""

    model_config = ConfigDict(populate_by_name=True)
    user_ids: List[str] = Field(default_factory=list, alias="userIds")
    action: str
    capabilities: Optional[List[str]] = None


class ProfileUpdateRequest(BaseModel):
    name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    image: Optional[str] = None
    capabilities: Optional[List[str]] = None


class AdminUserUpdateRequest(ProfileUpdateRequest):
    status: Optional[str] = None
    role: Optional[str] = None


class CapabilityCreate(BaseModel):
    name: str
    icon: Optional[str] = None


class CapabilityUpdate(BaseModel):
    name: Optional[str] = None
    icon: Optional[str] = None


class SessionSongInput(BaseModel):
    """Set-list entry; either a library song or a free-form name."""

    song_id: Optional[str] = None
    song_name: Optional[str] = None
    song_url: Optional[str] = None


class SessionCreate(BaseModel):
    date: str
    start_time: Optional[str] = None
    end_time: Optional[str] = None
    songs: List[SessionSongInput] = Field(default_factory=list)
    is_public: bool = True
    visible_user_ids: List[str] = Field(default_factory=list)


class CommitmentCreate(BaseModel):
    session_id: str
    user_id: str
    capability_ids: List[str] = Field(default_factory=list)
    status: Optional[str] = None


class SongCreate(BaseModel):
    title: str
    artist: Optional[str] = None
    key: Optional[str] = None
    tempo: Optional[str] = None
    resource_url: Optional[str] = None
    status: Optional[str] = None
    capability_ids: List[str] = Field(default_factory=list)


class SongUpdate(BaseModel):
    title: Optional[str] = None
    artist: Optional[str] = None
    key: Optional[str] = None
    tempo: Optional[str] = None
    resource_url: Optional[str] = None
    status: Optional[str] = None
    capability_ids: Optional[List[str]] = None


class RecommendRequest(BaseModel):
    capabilities: List[str] = Field(default_factory=list)


class SongRecommendation(BaseModel):
    """One suggested song, as returned by the completion API."""

    model_config = ConfigDict(populate_by_name=True)
    title: str
    artist: str
    key: str
    tempo: str
    youtube_url: str = Field(alias="youtubeUrl")


class ChatMessageCreate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)
    content: str = ""
    session_id: Optional[str] = Field(default=None, alias="sessionId")


class ReactionRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)
    message_id: str = Field(alias="messageId")
    emoji: str


class ReadReceiptRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)
    session_id: Optional[str] = Field(default=None, alias="sessionId")


class FeedbackCreate(BaseModel):
    category: str = ""
    message: str = ""


class FeedbackVoteRequest(BaseModel):
    """vote_type is up, down, or none/null to clear."""

    feedback_id: str
    vote_type: Optional[str] = None


class FeedbackReplyRequest(BaseModel):
    feedback_id: str
    message: str = ""


class FeedbackStatusUpdate(BaseModel):
    status: str


class RecordingSignRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)
    session_id: str = Field(alias="sessionId")
    file_name: str = Field(default="", alias="fileName")
    file_type: str = Field(default="", alias="fileType")


class IconSignRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)
    file_name: str = Field(default="", alias="fileName")
    file_type: str = Field(default="", alias="fileType")


class RecordingCreate(BaseModel):
    session_id: str
    url: str = ""
    title: Optional[str] = None


class PhotoCreate(BaseModel):
    session_id: str
    storage_path: str = ""


class ReminderRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)
    session_id: Optional[str] = Field(default=None, alias="sessionId")
    message: Optional[str] = None


class InviteSessionDetails(BaseModel):
    model_config = ConfigDict(populate_by_name=True)
    date_formatted: str = Field(alias="dateFormatted")
    time_formatted: Optional[str] = Field(default=None, alias="timeFormatted")
    missing_capability: Optional[str] = Field(default=None, alias="missingCapability")
    song_count: Optional[int] = Field(default=None, alias="songCount")


class InviteRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)
    user_ids: List[str] = Field(default_factory=list, alias="userIds")
    session_details: Optional[InviteSessionDetails] = Field(default=None, alias="sessionDetails")
