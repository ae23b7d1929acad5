"""
Audio assembly, duration probing and video muxing with ffmpeg/ffprobe.
"""
import asyncio
import json
import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import List, Sequence

from app.config import PipelineConfig
from app.services.errors import AssemblyError, MuxError, ProbeError

logger = logging.getLogger(__name__)

CONCAT_LIST_NAME = 'filelist.txt'

# drawtext treats quotes, colons, backslashes and % specially
_LABEL_UNSAFE = re.compile(r'[^\w\s.,-]')


@dataclass
class ProcessResult:
    """Exit status and captured output of an external tool."""
    returncode: int
    stdout: str
    stderr: str


async def run_process(args: List[str]) -> ProcessResult:
    """
    Run an external tool to completion and capture its output.

    Raises:
        OSError: The executable could not be started.
    """
    logger.debug('Running: %s', ' '.join(args))
    process = await asyncio.create_subprocess_exec(
        *args,
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.PIPE,
    )
    stdout, stderr = await process.communicate()
    return ProcessResult(
        returncode=process.returncode,
        stdout=stdout.decode(errors='replace'),
        stderr=stderr.decode(errors='replace'),
    )


def _tail(stderr: str, limit: int = 500) -> str:
    return stderr.strip()[-limit:]


class AudioAssembler:
    """Lossless concatenation of same-codec audio segments, plus duration probing."""

    def __init__(self, config: PipelineConfig):
        self.config = config

    async def concatenate(self, segments: Sequence[Path], output_path: Path) -> Path:
        """
        Concatenate ordered segments into one file without re-encoding.

        Raises:
            AssemblyError: No segments, ffmpeg could not start or exited non-zero.
        """
        if not segments:
            raise AssemblyError('No audio segments to combine')

        output_path.parent.mkdir(parents=True, exist_ok=True)
        list_path = output_path.parent / CONCAT_LIST_NAME
        list_path.write_text(
            '\n'.join(_concat_entry(segment) for segment in segments),
            encoding='utf-8',
        )

        args = [
            self.config.ffmpeg_binary,
            '-f', 'concat',
            '-safe', '0',
            '-i', str(list_path),
            '-c', 'copy',
            '-y',
            str(output_path),
        ]

        try:
            result = await run_process(args)
        except OSError as e:
            raise AssemblyError(f'Failed to start ffmpeg: {e}') from e
        finally:
            list_path.unlink(missing_ok=True)

        if result.returncode != 0:
            logger.error('ffmpeg concat failed: %s', _tail(result.stderr))
            raise AssemblyError(f'FFmpeg process exited with code {result.returncode}')

        return output_path

    async def probe_duration(self, audio_path: Path) -> float:
        """
        Return the duration of an audio file in seconds.

        Raises:
            ProbeError: ffprobe could not start, exited non-zero or printed
                output without a numeric duration.
        """
        args = [
            self.config.ffprobe_binary,
            '-v', 'quiet',
            '-print_format', 'json',
            '-show_format',
            str(audio_path),
        ]

        try:
            result = await run_process(args)
        except OSError as e:
            raise ProbeError(f'Failed to start ffprobe: {e}') from e

        if result.returncode != 0:
            raise ProbeError(f'FFprobe process exited with code {result.returncode}')

        try:
            metadata = json.loads(result.stdout)
            duration = float(metadata['format']['duration'])
        except (ValueError, KeyError, TypeError) as e:
            raise ProbeError(f'Could not read duration from ffprobe output: {e}') from e

        return duration


def _concat_entry(segment: Path) -> str:
    # concat demuxer quoting: close the quote, escape, reopen
    escaped = str(Path(segment).resolve()).replace("'", "'\\''")
    return f"file '{escaped}'"


def document_label(original_file_name: str) -> str:
    """Label shown in the video: the source document's name without extension."""
    return Path(original_file_name).stem


def escape_drawtext(label: str) -> str:
    return _LABEL_UNSAFE.sub('', label).strip()


class VideoMuxer:
    """Renders a static titled background and muxes it with an audio track."""

    def __init__(self, config: PipelineConfig):
        self.config = config

    async def render(self, audio_path: Path, label: str, output_path: Path, duration: float) -> Path:
        """
        Produce an MP4 of the audio over a solid background with the label centred.

        Raises:
            MuxError: ffmpeg could not start or exited non-zero.
        """
        output_path.parent.mkdir(parents=True, exist_ok=True)

        color_source = (
            f'color=c={self.config.video_background}'
            f':size={self.config.video_size}:duration={duration}'
        )
        drawtext = (
            f"drawtext=text='{escape_drawtext(label)}'"
            f':fontcolor={self.config.video_font_color}'
            f':fontsize={self.config.video_font_size}'
            ':x=(w-tw)/2:y=(h-th)/2'
        )
        args = [
            self.config.ffmpeg_binary,
            '-f', 'lavfi',
            '-i', color_source,
            '-i', str(audio_path),
            '-vf', drawtext,
            '-c:v', 'libx264',
            '-c:a', 'aac',
            '-shortest',
            '-y',
            str(output_path),
        ]

        try:
            result = await run_process(args)
        except OSError as e:
            raise MuxError(f'Failed to start ffmpeg: {e}') from e

        if result.returncode != 0:
            logger.error('ffmpeg mux failed: %s', _tail(result.stderr))
            raise MuxError(f'FFmpeg process exited with code {result.returncode}')

        return output_path
