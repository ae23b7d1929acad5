#!/usr/bin/env python3
"""
PDFCast FastAPI Server

Converts uploaded PDFs into narrated MP4 audiobooks using OpenAI text-to-speech
and ffmpeg. Provides API endpoints for audiobook status, download, deletion
and listening progress.
"""
import shutil
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI

from app.config import (
    APP_NAME,
    APP_VERSION,
    SERVER_HOST,
    SERVER_PORT,
    OPENAI_API_KEY,
    FFMPEG_BINARY,
    FFPROBE_BINARY,
)
from app.database import init_db, close_db
from app.services.job_processor import get_job_processor
from app.routers import health_router, voices_router, audiobooks_router


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan context manager.

    Startup:
        - Initialize database and create tables
        - Check TTS credentials and media tools
        - Start job processor

    Shutdown:
        - Stop job processor, waiting for running conversions
        - Close database connections
    """
    print(f'Starting {APP_NAME} v{APP_VERSION}...')

    # Initialize database
    print('Initializing database...')
    await init_db()

    if not OPENAI_API_KEY:
        print('OPENAI_API_KEY is not set - conversions will fail at the synthesis stage')

    for binary in (FFMPEG_BINARY, FFPROBE_BINARY):
        if shutil.which(binary) is None:
            print(f'{binary} not found on PATH - conversions will fail at the assembly stage')

    # Start job processor
    print('Starting job processor...')
    job_processor = get_job_processor()
    await job_processor.start()

    print(f'Server ready at http://{SERVER_HOST}:{SERVER_PORT}')
    print('API documentation available at /docs')

    yield

    # Shutdown
    print('Shutting down...')

    # Stop job processor
    await job_processor.stop()

    # Close database
    await close_db()

    print('Shutdown complete.')


# Create FastAPI application
app = FastAPI(
    title=APP_NAME,
    description='Converts PDF documents into narrated MP4 audiobooks.',
    version=APP_VERSION,
    lifespan=lifespan,
)

# Register routers
app.include_router(health_router)
app.include_router(voices_router)
app.include_router(audiobooks_router)


if __name__ == '__main__':
    uvicorn.run(
        app,
        host=SERVER_HOST,
        port=SERVER_PORT,
        reload=False,
        log_level='info',
    )
