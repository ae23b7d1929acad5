"""
Health check endpoint.
"""
import shutil

from pydantic import BaseModel
from fastapi import APIRouter

from app import config


router = APIRouter(tags=['health'])


class HealthResponse(BaseModel):
    """Health check response schema."""
    status: str
    tts_configured: bool
    ffmpeg_available: bool
    ffprobe_available: bool
    version: str


@router.get('/health', response_model=HealthResponse)
async def health_check() -> HealthResponse:
    """
    Check server health status.

    Reports whether TTS credentials are present and the media tools are on
    PATH. Fast response - no database queries.
    """
    return HealthResponse(
        status='ok',
        tts_configured=bool(config.OPENAI_API_KEY),
        ffmpeg_available=shutil.which(config.FFMPEG_BINARY) is not None,
        ffprobe_available=shutil.which(config.FFPROBE_BINARY) is not None,
        version=config.APP_VERSION,
    )
