"""
Audiobook model for PDF conversion jobs.
"""
import uuid
import enum
from datetime import datetime
from sqlalchemy import Column, String, Text, DateTime, Integer, Float
from sqlalchemy.orm import declarative_base

Base = declarative_base()


class JobStatus(str, enum.Enum):
    """Status states for conversion jobs."""
    pending = 'pending'
    processing = 'processing'
    complete = 'complete'
    error = 'error'


class Audiobook(Base):
    """
    Represents one PDF-to-video conversion job and its output.

    Attributes:
        id: Unique job identifier (UUID)
        user_id: Owner identity supplied by the auth layer
        title: Document title (PDF metadata or file name)
        original_file_name: Name of the uploaded file
        file_path: Path to the stored source PDF
        audio_path: Path to the assembled audio track
        video_path: Path to the final MP4
        pages: Page count of the source PDF
        duration: Audio duration in seconds
        voice: Requested TTS voice
        speed: Requested TTS speed multiplier
        status: Current job status
        progress: Overall progress percentage (0-100)
        error_message: Error details if the conversion failed
        created_at: Job creation timestamp
        updated_at: Last modification timestamp
    """
    __tablename__ = 'audiobooks'

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = Column(String(100), nullable=False, index=True)
    title = Column(Text, nullable=False)
    original_file_name = Column(Text, nullable=False)
    file_path = Column(Text, nullable=False)
    audio_path = Column(Text, nullable=True)
    video_path = Column(Text, nullable=True)
    pages = Column(Integer, nullable=True)
    duration = Column(Float, nullable=True)
    voice = Column(String(50), nullable=False, default='alloy')
    speed = Column(Float, nullable=False, default=1.0)
    status = Column(String(20), nullable=False, default=JobStatus.pending.value)
    progress = Column(Integer, nullable=False, default=0)
    error_message = Column(Text, nullable=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    def __repr__(self):
        return f'<Audiobook {self.id} status={self.status} progress={self.progress}>'
