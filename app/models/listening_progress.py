"""
Per-user playback position for an audiobook.
"""
import uuid
from datetime import datetime
from sqlalchemy import Column, String, DateTime, Float, Boolean, ForeignKey, UniqueConstraint

from app.models.audiobook import Base


class ListeningProgress(Base):
    """
    Where a user left off in an audiobook.

    One row per (user, audiobook); rows go away with their audiobook.
    """
    __tablename__ = 'listening_progress'
    __table_args__ = (
        UniqueConstraint('user_id', 'audiobook_id', name='uq_listening_progress_user_audiobook'),
    )

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = Column(String(100), nullable=False)
    audiobook_id = Column(
        String(36),
        ForeignKey('audiobooks.id', ondelete='CASCADE'),
        nullable=False,
    )
    # "current_time" is an SQL keyword, so the column is named differently
    current_time = Column('playback_position', Float, nullable=False, default=0.0)
    completed = Column(Boolean, nullable=False, default=False)
    last_listened_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    def __repr__(self):
        return f'<ListeningProgress {self.user_id}/{self.audiobook_id} at={self.current_time}>'
