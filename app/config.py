"""
Application configuration and paths.
"""
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

# Application identity
APP_NAME = 'PDFCast'
APP_VERSION = '0.1.0'

# Server configuration
SERVER_HOST = '127.0.0.1'
SERVER_PORT = 5111

# Paths
SCRIPT_DIR = Path(__file__).parent.parent

# Data directory (uploads, audio, video, database)
DATA_DIR = Path(os.environ.get('PDFCAST_DATA_DIR', Path.home() / '.pdfcast'))

# Database configuration
DATABASE_PATH = DATA_DIR / 'pdfcast.db'
DATABASE_URL = f'sqlite+aiosqlite:///{DATABASE_PATH}'

# Uploaded source documents
UPLOAD_DIR = DATA_DIR / 'uploads'

# Per-job audio working directories and assembled tracks
AUDIO_DIR = DATA_DIR / 'audio'

# Final muxed videos
VIDEO_DIR = DATA_DIR / 'video'

# Text-to-speech provider
OPENAI_API_KEY = os.environ.get('OPENAI_API_KEY')
TTS_MODEL = 'tts-1'
TTS_VOICES = ('alloy', 'echo', 'fable', 'onyx', 'nova', 'shimmer')
DEFAULT_VOICE = 'alloy'
DEFAULT_SPEED = 1.0
MIN_SPEED = 0.25
MAX_SPEED = 4.0

# Provider hard input ceiling is 4096 characters
MAX_CHUNK_LENGTH = 4000

# External media tools
FFMPEG_BINARY = 'ffmpeg'
FFPROBE_BINARY = 'ffprobe'

# Generated video track
VIDEO_SIZE = '1280x720'
VIDEO_BACKGROUND = 'black'
VIDEO_FONT_COLOR = 'white'
VIDEO_FONT_SIZE = 48


@dataclass
class PipelineConfig:
    """
    Settings injected into the conversion pipeline components.

    Built from the module constants by default; tests construct it directly
    with temporary directories and fake credentials.
    """
    audio_dir: Path
    video_dir: Path
    openai_api_key: Optional[str] = None
    tts_model: str = TTS_MODEL
    max_chunk_length: int = MAX_CHUNK_LENGTH
    ffmpeg_binary: str = FFMPEG_BINARY
    ffprobe_binary: str = FFPROBE_BINARY
    video_size: str = VIDEO_SIZE
    video_background: str = VIDEO_BACKGROUND
    video_font_color: str = VIDEO_FONT_COLOR
    video_font_size: int = VIDEO_FONT_SIZE

    @classmethod
    def load(cls) -> 'PipelineConfig':
        """Build the configuration from the application settings."""
        return cls(
            audio_dir=AUDIO_DIR,
            video_dir=VIDEO_DIR,
            openai_api_key=OPENAI_API_KEY,
        )


def ensure_directories():
    """Create required directories if they don't exist."""
    DATA_DIR.mkdir(parents=True, exist_ok=True)
    UPLOAD_DIR.mkdir(parents=True, exist_ok=True)
    AUDIO_DIR.mkdir(parents=True, exist_ok=True)
    VIDEO_DIR.mkdir(parents=True, exist_ok=True)
