"""001_initial_schema

Revision ID: 001
Revises: 
Create Date: 2026-10-19 12:00:00.000000

Creates every table from the current models:
- Directory: users, capabilities, user_capabilities
- Sessions: sessions, session_visibility, session_songs, session_commitments,
  session_commitment_capabilities
- Library: songs, song_capabilities, song_votes
- Chat: chat_messages, chat_reactions, chat_read_receipts
- Feedback: feedback, feedback_votes, feedback_replies
- Media: session_photos, session_recordings
"""
from typing import Sequence, Union

from alembic import op

# revision identifiers, used by Alembic.
revision: str = '001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create all tables from scratch."""
    from bandroom.database.db import Base
    from bandroom.database import models  # noqa: F401

    bind = op.get_bind()
    Base.metadata.create_all(bind=bind, checkfirst=True)


def downgrade() -> None:
    """Drop all tables."""
    from bandroom.database.db import Base
    from bandroom.database import models  # noqa: F401

    bind = op.get_bind()
    Base.metadata.drop_all(bind=bind, checkfirst=True)
