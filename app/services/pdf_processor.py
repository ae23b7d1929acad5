"""
PDF text extraction and cleanup for speech synthesis.
"""
import asyncio
import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Union

from pypdf import PdfReader

from app.services.errors import ExtractionError

logger = logging.getLogger(__name__)

_NEWLINES = re.compile(r'[\r\n]+')
_DISALLOWED_CHARS = re.compile(r'[^\w\s.,!?;:-]')
_WHITESPACE = re.compile(r'\s+')


@dataclass
class PDFInfo:
    """Text and metadata pulled from a PDF."""
    text: str
    num_pages: int
    title: Optional[str] = None


def extract_text(file_path: Union[str, Path]) -> PDFInfo:
    """
    Extract the full text, page count and title of a PDF.

    Raises:
        ExtractionError: The file is missing, unreadable or not a PDF.
    """
    try:
        reader = PdfReader(str(file_path))
        pages = [page.extract_text() or '' for page in reader.pages]
        metadata = reader.metadata
        title = metadata.title if metadata is not None else None
    except Exception as e:
        raise ExtractionError(f'Failed to extract text from PDF: {e}') from e

    if title is not None:
        title = str(title).strip() or None

    return PDFInfo(text='\n'.join(pages), num_pages=len(pages), title=title)


async def extract_text_async(file_path: Union[str, Path]) -> PDFInfo:
    """Run extract_text in a worker thread to keep the event loop free."""
    loop = asyncio.get_running_loop()
    return await loop.run_in_executor(None, extract_text, file_path)


def validate_pdf(file_path: Union[str, Path]) -> bool:
    """Return whether the file can be extracted as a PDF."""
    try:
        extract_text(file_path)
    except ExtractionError as e:
        logger.info('Rejected %s: %s', file_path, e)
        return False
    return True


def format_text_for_tts(text: str) -> str:
    """
    Clean extracted text into speakable prose.

    Line breaks become sentence ends so paragraphs do not run together,
    anything outside basic punctuation is dropped and whitespace collapses.
    """
    text = _NEWLINES.sub('. ', text)
    text = _DISALLOWED_CHARS.sub('', text)
    text = _WHITESPACE.sub(' ', text)
    return text.strip()
