"""
SQLAlchemy ORM models for the Bandroom rehearsal scheduler.
"""

import enum
import uuid
from sqlalchemy import (
    Column,
    Integer,
    String,
    Text,
    Boolean,
    DateTime,
    ForeignKey,
    UniqueConstraint,
    Index,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from bandroom.database.db import Base
from bandroom.utils.datetime_utils import utcnow


def generate_id() -> str:
    return str(uuid.uuid4())


class UserStatus(str, enum.Enum):
    """User approval status enum."""

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class UserRole(str, enum.Enum):
    """User role enum."""

    ADMIN = "admin"
    USER = "user"


class SongStatus(str, enum.Enum):
    """Song library status enum."""

    ACTIVE = "active"
    ARCHIVED = "archived"
    PROPOSED = "proposed"


class FeedbackStatus(str, enum.Enum):
    """Feedback status enum (admin-mutable only)."""

    PENDING = "pending"
    REJECTED = "rejected"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


class VoteType(str, enum.Enum):
    """Feedback vote type enum."""

    UP = "up"
    DOWN = "down"


class User(Base):
    """Band members. Created with status pending at sign-up."""

    __tablename__ = "users"

    id = Column(String, primary_key=True, default=generate_id)
    name = Column(String, nullable=True)
    email = Column(String, nullable=True, unique=True)
    phone = Column(String, nullable=True)
    image = Column(String, nullable=True)  # Avatar URL
    status = Column(String, nullable=False, default=UserStatus.PENDING.value)
    role = Column(String, nullable=False, default=UserRole.USER.value)
    last_sign_in_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True), default=utcnow, server_default=func.now(), onupdate=utcnow
    )

    capabilities = relationship(
        "UserCapability", back_populates="user", cascade="all, delete-orphan", passive_deletes=True
    )
    commitments = relationship(
        "SessionCommitment", back_populates="user", cascade="all, delete-orphan", passive_deletes=True
    )

    __table_args__ = (
        Index("idx_users_status", "status"),
        Index("idx_users_email", "email"),
    )


class Capability(Base):
    """Skill/instrument tag with a display icon."""

    __tablename__ = "capabilities"

    id = Column(String, primary_key=True, default=generate_id)
    name = Column(String, nullable=False, unique=True)
    icon = Column(String, nullable=True)  # Emoji or /icons/<file> path
    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now())

    __table_args__ = (Index("idx_capabilities_name", "name"),)


class UserCapability(Base):
    """Capabilities a user brings to the band."""

    __tablename__ = "user_capabilities"

    id = Column(String, primary_key=True, default=generate_id)
    user_id = Column(String, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    capability_id = Column(
        String, ForeignKey("capabilities.id", ondelete="CASCADE"), nullable=False
    )
    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now())

    user = relationship("User", back_populates="capabilities")
    capability = relationship("Capability")

    __table_args__ = (
        UniqueConstraint("user_id", "capability_id", name="uq_user_capabilities_user_capability"),
        Index("idx_user_capabilities_user", "user_id"),
    )


class Session(Base):
    """A scheduled rehearsal."""

    __tablename__ = "sessions"

    id = Column(String, primary_key=True, default=generate_id)
    date = Column(String, nullable=False)  # ISO date, e.g. "2026-03-14"
    start_time = Column(String, nullable=False, default="19:30:00")
    end_time = Column(String, nullable=False, default="00:00:00")
    is_public = Column(Boolean, nullable=False, default=True)
    created_by = Column(String, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now())

    creator = relationship("User", foreign_keys=[created_by])
    songs = relationship(
        "SessionSong",
        back_populates="session",
        order_by="SessionSong.position",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
    commitments = relationship(
        "SessionCommitment",
        back_populates="session",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
    visible_to = relationship(
        "SessionVisibility", cascade="all, delete-orphan", passive_deletes=True
    )

    __table_args__ = (Index("idx_sessions_date", "date"),)


class SessionVisibility(Base):
    """Users allowed to see a private session."""

    __tablename__ = "session_visibility"

    id = Column(String, primary_key=True, default=generate_id)
    session_id = Column(String, ForeignKey("sessions.id", ondelete="CASCADE"), nullable=False)
    user_id = Column(String, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)

    __table_args__ = (
        UniqueConstraint("session_id", "user_id", name="uq_session_visibility_session_user"),
    )


class Song(Base):
    """Song library entry."""

    __tablename__ = "songs"

    id = Column(String, primary_key=True, default=generate_id)
    title = Column(String, nullable=False)
    artist = Column(String, nullable=True)
    key = Column(String, nullable=True)
    tempo = Column(String, nullable=True)
    resource_url = Column(String, nullable=True)
    status = Column(String, nullable=False, default=SongStatus.ACTIVE.value)
    created_by = Column(String, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now())

    capabilities = relationship(
        "SongCapability", back_populates="song", cascade="all, delete-orphan", passive_deletes=True
    )
    votes = relationship("SongVote", cascade="all, delete-orphan", passive_deletes=True)

    __table_args__ = (
        Index("idx_songs_title", "title"),
        Index("idx_songs_status", "status"),
    )


class SongCapability(Base):
    """Capabilities a song requires."""

    __tablename__ = "song_capabilities"

    id = Column(String, primary_key=True, default=generate_id)
    song_id = Column(String, ForeignKey("songs.id", ondelete="CASCADE"), nullable=False)
    capability_id = Column(
        String, ForeignKey("capabilities.id", ondelete="CASCADE"), nullable=False
    )

    song = relationship("Song", back_populates="capabilities")
    capability = relationship("Capability")

    __table_args__ = (
        UniqueConstraint("song_id", "capability_id", name="uq_song_capabilities_song_capability"),
    )


class SongVote(Base):
    """One vote per user per song (toggled)."""

    __tablename__ = "song_votes"

    id = Column(String, primary_key=True, default=generate_id)
    song_id = Column(String, ForeignKey("songs.id", ondelete="CASCADE"), nullable=False)
    user_id = Column(String, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now())

    __table_args__ = (UniqueConstraint("song_id", "user_id", name="uq_song_votes_song_user"),)


class SessionSong(Base):
    """Set-list entry. song_id may be null for songs not in the library."""

    __tablename__ = "session_songs"

    id = Column(String, primary_key=True, default=generate_id)
    session_id = Column(String, ForeignKey("sessions.id", ondelete="CASCADE"), nullable=False)
    song_id = Column(String, ForeignKey("songs.id", ondelete="SET NULL"), nullable=True)
    song_name = Column(String, nullable=True)
    song_url = Column(String, nullable=True)
    position = Column(Integer, nullable=False, default=0)

    session = relationship("Session", back_populates="songs")
    song = relationship("Song")

    __table_args__ = (Index("idx_session_songs_session", "session_id"),)


class SessionCommitment(Base):
    """A user's pledge to attend a session."""

    __tablename__ = "session_commitments"

    id = Column(String, primary_key=True, default=generate_id)
    session_id = Column(String, ForeignKey("sessions.id", ondelete="CASCADE"), nullable=False)
    user_id = Column(String, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    status = Column(String, nullable=False, default="confirmed")
    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now())

    session = relationship("Session", back_populates="commitments")
    user = relationship("User", back_populates="commitments")
    capabilities = relationship(
        "SessionCommitmentCapability",
        back_populates="commitment",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    __table_args__ = (
        UniqueConstraint("session_id", "user_id", name="uq_session_commitments_session_user"),
        Index("idx_session_commitments_user", "user_id"),
    )


class SessionCommitmentCapability(Base):
    """Capabilities a user brings to one specific session."""

    __tablename__ = "session_commitment_capabilities"

    id = Column(String, primary_key=True, default=generate_id)
    commitment_id = Column(
        String, ForeignKey("session_commitments.id", ondelete="CASCADE"), nullable=False
    )
    capability_id = Column(
        String, ForeignKey("capabilities.id", ondelete="CASCADE"), nullable=False
    )

    commitment = relationship("SessionCommitment", back_populates="capabilities")
    capability = relationship("Capability")

    __table_args__ = (
        UniqueConstraint(
            "commitment_id", "capability_id", name="uq_commitment_capabilities_commitment_capability"
        ),
    )


class ChatMessage(Base):
    """Chat message. session_id null means the global feed."""

    __tablename__ = "chat_messages"

    id = Column(String, primary_key=True, default=generate_id)
    content = Column(Text, nullable=False)
    user_id = Column(String, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    session_id = Column(String, ForeignKey("sessions.id", ondelete="CASCADE"), nullable=True)
    created_at = Column(
        DateTime(timezone=True), nullable=False, default=utcnow, server_default=func.now()
    )

    user = relationship("User")
    reactions = relationship(
        "ChatReaction", back_populates="message", cascade="all, delete-orphan", passive_deletes=True
    )

    __table_args__ = (Index("idx_chat_messages_session_created", "session_id", "created_at"),)


class ChatReaction(Base):
    """Emoji reaction, unique per message, user and emoji."""

    __tablename__ = "chat_reactions"

    id = Column(String, primary_key=True, default=generate_id)
    message_id = Column(String, ForeignKey("chat_messages.id", ondelete="CASCADE"), nullable=False)
    user_id = Column(String, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    emoji = Column(String, nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now())

    message = relationship("ChatMessage", back_populates="reactions")
    user = relationship("User")

    __table_args__ = (
        UniqueConstraint("message_id", "user_id", "emoji", name="uq_chat_reactions_message_user_emoji"),
    )


class ChatReadReceipt(Base):
    """Latest read timestamp per user and chat scope (null session = global)."""

    __tablename__ = "chat_read_receipts"

    id = Column(String, primary_key=True, default=generate_id)
    user_id = Column(String, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    session_id = Column(String, ForeignKey("sessions.id", ondelete="CASCADE"), nullable=True)
    last_read_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    # NULL session_id rows are deduplicated by the service layer; most databases
    # treat NULLs as distinct in unique constraints.
    __table_args__ = (
        UniqueConstraint("user_id", "session_id", name="uq_chat_read_receipts_user_session"),
    )


class Feedback(Base):
    """User-submitted feedback item."""

    __tablename__ = "feedback"

    id = Column(String, primary_key=True, default=generate_id)
    user_id = Column(String, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    category = Column(String, nullable=False)
    message = Column(Text, nullable=False)
    status = Column(String, nullable=False, default=FeedbackStatus.PENDING.value)
    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True), default=utcnow, server_default=func.now(), onupdate=utcnow
    )

    user = relationship("User")
    votes = relationship("FeedbackVote", cascade="all, delete-orphan", passive_deletes=True)
    replies = relationship(
        "FeedbackReply",
        order_by="FeedbackReply.created_at",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    __table_args__ = (Index("idx_feedback_status", "status"),)


class FeedbackVote(Base):
    """One up/down vote per user per feedback item."""

    __tablename__ = "feedback_votes"

    id = Column(String, primary_key=True, default=generate_id)
    feedback_id = Column(String, ForeignKey("feedback.id", ondelete="CASCADE"), nullable=False)
    user_id = Column(String, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    vote_type = Column(String, nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now())

    __table_args__ = (
        UniqueConstraint("user_id", "feedback_id", name="uq_feedback_votes_user_feedback"),
    )


class FeedbackReply(Base):
    """Immutable reply on a feedback item."""

    __tablename__ = "feedback_replies"

    id = Column(String, primary_key=True, default=generate_id)
    feedback_id = Column(String, ForeignKey("feedback.id", ondelete="CASCADE"), nullable=False)
    user_id = Column(String, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    message = Column(Text, nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now())

    user = relationship("User")


class SessionPhoto(Base):
    """Photo uploaded to a session; storage_path is the object key."""

    __tablename__ = "session_photos"

    id = Column(String, primary_key=True, default=generate_id)
    session_id = Column(String, ForeignKey("sessions.id", ondelete="CASCADE"), nullable=False)
    user_id = Column(String, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    storage_path = Column(String, nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now())

    __table_args__ = (Index("idx_session_photos_session", "session_id"),)


class SessionRecording(Base):
    """Audio/video recording of a session."""

    __tablename__ = "session_recordings"

    id = Column(String, primary_key=True, default=generate_id)
    session_id = Column(String, ForeignKey("sessions.id", ondelete="CASCADE"), nullable=False)
    created_by = Column(String, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    url = Column(String, nullable=False)
    title = Column(String, nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now())

    __table_args__ = (Index("idx_session_recordings_session", "session_id"),)
