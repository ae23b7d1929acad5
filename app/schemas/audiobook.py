"""
Pydantic schemas for Audiobook API operations.
"""
from datetime import datetime
from typing import Optional, List
from pydantic import BaseModel, Field, ConfigDict


class ListeningProgressUpdate(BaseModel):
    """Schema for saving a playback position."""
    current_time: float = Field(..., ge=0, description='Playback position in seconds')
    completed: bool = Field(False, description='Whether the user finished the audiobook')


class ListeningProgressResponse(BaseModel):
    """Schema for listening progress response."""
    model_config = ConfigDict(from_attributes=True)

    audiobook_id: str
    current_time: float
    completed: bool
    last_listened_at: datetime


class AudiobookResponse(BaseModel):
    """Schema for audiobook response."""
    model_config = ConfigDict(from_attributes=True)

    id: str
    title: str
    original_file_name: str
    pages: Optional[int]
    duration: Optional[float]
    voice: str
    speed: float
    status: str
    progress: int
    error_message: Optional[str]
    created_at: datetime
    updated_at: datetime
    listening_progress: Optional[ListeningProgressResponse] = None


class AudiobookListResponse(BaseModel):
    """Schema for a user's audiobook list."""
    audiobooks: List[AudiobookResponse]
    total: int
