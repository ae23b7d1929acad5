"""
Pydantic schemas for API request/response validation.
"""
from app.schemas.audiobook import (
    AudiobookResponse,
    AudiobookListResponse,
    ListeningProgressUpdate,
    ListeningProgressResponse,
)
from app.schemas.voice import VoiceResponse, VoiceListResponse

__all__ = [
    'AudiobookResponse',
    'AudiobookListResponse',
    'ListeningProgressUpdate',
    'ListeningProgressResponse',
    'VoiceResponse',
    'VoiceListResponse',
]
