"""
Pytest fixtures for testing.
"""
from pathlib import Path
from typing import AsyncGenerator, List, Optional
from unittest.mock import MagicMock, patch, AsyncMock

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from pypdf import PdfWriter
from pypdf.generic import DecodedStreamObject, DictionaryObject, NameObject
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker

from app.config import PipelineConfig
from app.models import Base
from app.database import get_db
from app.services.job_store import JobStore
from app.services.job_processor import reset_job_processor


@pytest.fixture
def test_db_url(tmp_path):
    """Generate a per-test database URL."""
    return f'sqlite+aiosqlite:///{tmp_path / "test.db"}'


@pytest_asyncio.fixture(scope='function')
async def test_engine(test_db_url):
    """Create a test database engine."""
    engine = create_async_engine(test_db_url, echo=False)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(test_engine):
    return async_sessionmaker(
        test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )


@pytest_asyncio.fixture(scope='function')
async def test_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Create a test database session."""
    async with session_factory() as session:
        yield session


@pytest.fixture
def job_store(session_factory) -> JobStore:
    return JobStore(session_factory)


@pytest.fixture
def pipeline_config(tmp_path) -> PipelineConfig:
    """Pipeline settings pointing at temporary directories."""
    return PipelineConfig(
        audio_dir=tmp_path / 'audio',
        video_dir=tmp_path / 'video',
        openai_api_key='sk-test',
        max_chunk_length=4000,
    )


@pytest.fixture
def speech_client():
    """Stand-in for openai.AsyncOpenAI returning fake MP3 bytes."""
    client = MagicMock()
    client.audio.speech.create = AsyncMock(return_value=MagicMock(content=b'ID3-fake-mp3'))
    return client


def _escape_pdf_text(value: str) -> str:
    return value.replace('\\', '\\\\').replace('(', '\\(').replace(')', '\\)')


def write_pdf(path: Path, pages: List[List[str]], title: Optional[str] = None) -> Path:
    """Write a PDF whose pages hold the given lines as extractable text."""
    writer = PdfWriter()
    for lines in pages:
        page = writer.add_blank_page(width=595, height=842)
        font_ref = writer._add_object(
            DictionaryObject({
                NameObject('/Type'): NameObject('/Font'),
                NameObject('/Subtype'): NameObject('/Type1'),
                NameObject('/BaseFont'): NameObject('/Helvetica'),
            })
        )
        page[NameObject('/Resources')] = DictionaryObject({
            NameObject('/Font'): DictionaryObject({NameObject('/F1'): font_ref}),
        })

        content = ['BT', '/F1 12 Tf', '72 780 Td', '16 TL']
        for index, line in enumerate(lines):
            content.append(f'({_escape_pdf_text(line)}) Tj')
            if index < len(lines) - 1:
                content.append('T*')
        content.append('ET')

        stream = DecodedStreamObject()
        stream.set_data('\n'.join(content).encode('latin-1'))
        page[NameObject('/Contents')] = writer._add_object(stream)

    if title is not None:
        writer.add_metadata({'/Title': title})

    with open(path, 'wb') as f:
        writer.write(f)
    return path


@pytest.fixture
def sample_pdf(tmp_path) -> Path:
    """A two-page text PDF with a title."""
    return write_pdf(
        tmp_path / 'sample.pdf',
        [
            ['The quick brown fox jumps over the lazy dog.', 'It was a sunny day.'],
            ['Chapter two begins here.', 'The end.'],
        ],
        title='Sample Book',
    )


@pytest.fixture
def not_a_pdf(tmp_path) -> Path:
    path = tmp_path / 'notes.pdf'
    path.write_text('this is plain text, not a PDF')
    return path


@pytest_asyncio.fixture
async def client(session_factory, tmp_path):
    """Create a test client with the database dependency overridden."""
    reset_job_processor()

    # Import app after resetting singletons
    from server import app

    async def override_get_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db

    with patch('app.config.AUDIO_DIR', tmp_path / 'audio'):
        transport = ASGITransport(app=app)
        async with AsyncClient(transport=transport, base_url='http://test') as client:
            yield client

    app.dependency_overrides.clear()
    reset_job_processor()
