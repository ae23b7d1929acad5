"""
Voice endpoints.
"""
from fastapi import APIRouter, HTTPException

from app.config import DEFAULT_VOICE, TTS_VOICES
from app.schemas.voice import VoiceResponse, VoiceListResponse


router = APIRouter(prefix='/voices', tags=['voices'])


def _voice_response(voice_id: str) -> VoiceResponse:
    return VoiceResponse(id=voice_id, display_name=voice_id.capitalize())


@router.get('', response_model=VoiceListResponse)
async def list_voices() -> VoiceListResponse:
    """
    List the voices the speech provider offers.
    """
    return VoiceListResponse(
        voices=[_voice_response(v) for v in TTS_VOICES],
        default=DEFAULT_VOICE,
    )


@router.get('/{voice_id}', response_model=VoiceResponse)
async def get_voice(voice_id: str) -> VoiceResponse:
    """
    Get a single voice.

    Raises:
        404: Voice not found
    """
    if voice_id not in TTS_VOICES:
        raise HTTPException(status_code=404, detail=f'Voice not found: {voice_id}')

    return _voice_response(voice_id)
