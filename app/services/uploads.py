"""
Entry point for newly uploaded documents.

Whatever transport receives the file (multipart form, CLI, queue consumer)
stores it on disk and calls submit_document(). Invalid PDFs are reported to
the caller right here and never reach the background pipeline.
"""
import logging
from pathlib import Path
from typing import Union

from app.config import DEFAULT_SPEED, DEFAULT_VOICE, TTS_VOICES
from app.models.audiobook import Audiobook, JobStatus
from app.services.errors import ExtractionError
from app.services.job_processor import JobProcessor
from app.services.job_store import JobStore
from app.services.pdf_processor import extract_text_async
from app.services.speech import TTSOptions, is_valid_voice

logger = logging.getLogger(__name__)


async def submit_document(
    store: JobStore,
    processor: JobProcessor,
    *,
    user_id: str,
    source_path: Union[str, Path],
    original_file_name: str,
    voice: str = DEFAULT_VOICE,
    speed: float = DEFAULT_SPEED,
) -> Audiobook:
    """
    Register an uploaded PDF and start converting it.

    Raises:
        ValueError: Unknown voice.
        ExtractionError: The file is not a readable PDF; it is deleted.
    """
    if not is_valid_voice(voice):
        raise ValueError(f'Unknown voice {voice!r}; expected one of {", ".join(TTS_VOICES)}')

    source_path = Path(source_path)
    try:
        info = await extract_text_async(source_path)
    except ExtractionError:
        logger.info('Discarding invalid upload %s', original_file_name)
        source_path.unlink(missing_ok=True)
        raise

    audiobook = await store.create(
        user_id=user_id,
        title=info.title or Path(original_file_name).stem,
        original_file_name=original_file_name,
        file_path=str(source_path),
        pages=info.num_pages,
        voice=voice,
        speed=float(speed),
        status=JobStatus.processing.value,
        progress=0,
    )

    processor.submit(audiobook.id, info.text, TTSOptions(voice=voice, speed=float(speed)))
    return audiobook
