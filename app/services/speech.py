"""
Speech synthesis through the OpenAI text-to-speech API.
"""
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Awaitable, Callable, List, Optional, Sequence

from openai import AsyncOpenAI, OpenAIError

from app.config import (
    DEFAULT_SPEED,
    DEFAULT_VOICE,
    MAX_SPEED,
    MIN_SPEED,
    TTS_VOICES,
    PipelineConfig,
)
from app.services.chunking import split_text_into_chunks
from app.services.errors import SynthesisError

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[float], Awaitable[None]]


@dataclass
class TTSOptions:
    """Voice and speed requested for a conversion."""
    voice: str = DEFAULT_VOICE
    speed: float = DEFAULT_SPEED


def clamp_speed(speed: float) -> float:
    """Clamp a speed multiplier into the range the provider accepts."""
    return max(MIN_SPEED, min(MAX_SPEED, speed))


def is_valid_voice(voice: str) -> bool:
    return voice in TTS_VOICES


def chunk_file_name(index: int) -> str:
    """Ordinal file name for the audio of chunk `index`."""
    return f'chunk_{index:03d}.mp3'


class SpeechSynthesizer:
    """
    Converts text chunks to MP3 files, one provider call per chunk.

    No retries are attempted; a failed call surfaces as SynthesisError and
    the caller decides what to do with the files already written.
    """

    def __init__(self, config: PipelineConfig, client: Optional[AsyncOpenAI] = None):
        self.config = config
        self._client = client

    @property
    def is_configured(self) -> bool:
        """Check whether credentials or a client are available."""
        return self._client is not None or bool(self.config.openai_api_key)

    def _get_client(self) -> AsyncOpenAI:
        if self._client is None:
            self._client = AsyncOpenAI(api_key=self.config.openai_api_key)
        return self._client

    async def text_to_speech(self, text: str, options: TTSOptions, output_path: Path) -> Path:
        """
        Synthesize one chunk of text to an audio file.

        Args:
            text: Chunk text, within the provider's input limit
            options: Voice and speed (speed is clamped, never rejected)
            output_path: Where to write the audio

        Returns:
            output_path

        Raises:
            SynthesisError: The provider or transport failed.
        """
        try:
            response = await self._get_client().audio.speech.create(
                model=self.config.tts_model,
                voice=options.voice,
                speed=clamp_speed(options.speed),
                input=text,
            )
            audio = response.content
        except OpenAIError as e:
            raise SynthesisError(f'Failed to convert text to speech: {e}') from e

        output_path.parent.mkdir(parents=True, exist_ok=True)
        output_path.write_bytes(audio)

        return output_path

    async def synthesize_chunks(
        self,
        chunks: Sequence[str],
        options: TTSOptions,
        output_dir: Path,
        on_progress: Optional[ProgressCallback] = None,
    ) -> List[Path]:
        """
        Synthesize chunks in order, reporting percentage progress after each.

        The first failure aborts the batch. Files for chunks that completed
        before it stay on disk.
        """
        audio_files: List[Path] = []
        total = len(chunks)

        for index, chunk in enumerate(chunks):
            output_path = output_dir / chunk_file_name(index)
            await self.text_to_speech(chunk, options, output_path)
            audio_files.append(output_path)
            logger.debug('Synthesized chunk %d/%d (%d chars)', index + 1, total, len(chunk))

            if on_progress is not None:
                await on_progress((index + 1) / total * 100)

        return audio_files

    async def chunked_text_to_speech(
        self,
        text: str,
        options: TTSOptions,
        output_dir: Path,
        on_progress: Optional[ProgressCallback] = None,
    ) -> List[Path]:
        """Chunk text at the configured limit and synthesize every chunk."""
        chunks = split_text_into_chunks(text, self.config.max_chunk_length)
        return await self.synthesize_chunks(chunks, options, output_dir, on_progress)
