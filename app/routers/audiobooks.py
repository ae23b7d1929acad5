"""
Audiobook endpoints: listing, status, download, deletion and listening progress.
"""
import re
from datetime import datetime
from pathlib import Path

from fastapi import APIRouter, Depends, Header, HTTPException
from fastapi.responses import FileResponse
from sqlalchemy import select, delete
from sqlalchemy.ext.asyncio import AsyncSession

from app import config
from app.database import get_db
from app.models import Audiobook, JobStatus, ListeningProgress
from app.schemas.audiobook import (
    AudiobookResponse,
    AudiobookListResponse,
    ListeningProgressUpdate,
    ListeningProgressResponse,
)
from app.services.conversion import remove_job_artifacts


router = APIRouter(prefix='/audiobooks', tags=['audiobooks'])


async def get_user_id(x_user_id: str = Header(None)) -> str:
    """Caller identity, set by the authentication layer in front of the API."""
    if not x_user_id:
        raise HTTPException(status_code=401, detail='Not authenticated')
    return x_user_id


async def _get_owned_audiobook(db: AsyncSession, audiobook_id: str, user_id: str) -> Audiobook:
    audiobook = await db.get(Audiobook, audiobook_id)

    if not audiobook:
        raise HTTPException(status_code=404, detail='Audiobook not found')

    if audiobook.user_id != user_id:
        raise HTTPException(status_code=403, detail='Access denied')

    return audiobook


@router.get('', response_model=AudiobookListResponse)
async def list_audiobooks(
    user_id: str = Depends(get_user_id),
    db: AsyncSession = Depends(get_db),
) -> AudiobookListResponse:
    """
    List the caller's audiobooks, newest first.

    Each entry carries the caller's listening progress when there is any.
    """
    result = await db.execute(
        select(Audiobook, ListeningProgress)
        .outerjoin(
            ListeningProgress,
            (ListeningProgress.audiobook_id == Audiobook.id)
            & (ListeningProgress.user_id == user_id),
        )
        .where(Audiobook.user_id == user_id)
        .order_by(Audiobook.created_at.desc())
    )

    audiobooks = []
    for audiobook, progress in result.all():
        response = AudiobookResponse.model_validate(audiobook)
        if progress is not None:
            response.listening_progress = ListeningProgressResponse.model_validate(progress)
        audiobooks.append(response)

    return AudiobookListResponse(audiobooks=audiobooks, total=len(audiobooks))


@router.get('/{audiobook_id}', response_model=AudiobookResponse)
async def get_audiobook(
    audiobook_id: str,
    user_id: str = Depends(get_user_id),
    db: AsyncSession = Depends(get_db),
) -> AudiobookResponse:
    """
    Get one audiobook.

    Clients poll this for status and progress while a conversion runs.
    """
    audiobook = await _get_owned_audiobook(db, audiobook_id, user_id)
    return AudiobookResponse.model_validate(audiobook)


@router.get('/{audiobook_id}/download')
async def download_audiobook(
    audiobook_id: str,
    user_id: str = Depends(get_user_id),
    db: AsyncSession = Depends(get_db),
):
    """
    Download the finished MP4.

    Raises:
        400: Conversion not complete
        404: Audiobook or video file not found
    """
    audiobook = await _get_owned_audiobook(db, audiobook_id, user_id)

    if audiobook.status != JobStatus.complete.value or not audiobook.video_path:
        raise HTTPException(status_code=400, detail='Audiobook not ready for download')

    if not Path(audiobook.video_path).exists():
        raise HTTPException(status_code=404, detail='File not found')

    filename = f"{re.sub(r'[^a-zA-Z0-9]', '_', audiobook.title)}.mp4"

    return FileResponse(
        path=audiobook.video_path,
        media_type='video/mp4',
        filename=filename,
    )


@router.delete('/{audiobook_id}', status_code=204)
async def delete_audiobook(
    audiobook_id: str,
    user_id: str = Depends(get_user_id),
    db: AsyncSession = Depends(get_db),
):
    """
    Delete an audiobook together with its source, audio and video files.
    """
    audiobook = await _get_owned_audiobook(db, audiobook_id, user_id)

    remove_job_artifacts(audiobook, config.AUDIO_DIR)

    await db.execute(delete(ListeningProgress).where(ListeningProgress.audiobook_id == audiobook_id))
    await db.delete(audiobook)
    await db.commit()


@router.put('/{audiobook_id}/progress', response_model=ListeningProgressResponse)
async def update_listening_progress(
    audiobook_id: str,
    update: ListeningProgressUpdate,
    user_id: str = Depends(get_user_id),
    db: AsyncSession = Depends(get_db),
) -> ListeningProgressResponse:
    """
    Save where the caller is in an audiobook.
    """
    await _get_owned_audiobook(db, audiobook_id, user_id)

    result = await db.execute(
        select(ListeningProgress).where(
            ListeningProgress.user_id == user_id,
            ListeningProgress.audiobook_id == audiobook_id,
        )
    )
    progress = result.scalar_one_or_none()

    if progress is None:
        progress = ListeningProgress(user_id=user_id, audiobook_id=audiobook_id)
        db.add(progress)

    progress.current_time = update.current_time
    progress.completed = update.completed
    progress.last_listened_at = datetime.utcnow()

    await db.commit()
    await db.refresh(progress)

    return ListeningProgressResponse.model_validate(progress)


@router.get('/{audiobook_id}/progress', response_model=ListeningProgressResponse)
async def get_listening_progress(
    audiobook_id: str,
    user_id: str = Depends(get_user_id),
    db: AsyncSession = Depends(get_db),
) -> ListeningProgressResponse:
    """
    Get the caller's saved position in an audiobook.

    Raises:
        404: Audiobook not found or nothing saved yet
    """
    await _get_owned_audiobook(db, audiobook_id, user_id)

    result = await db.execute(
        select(ListeningProgress).where(
            ListeningProgress.user_id == user_id,
            ListeningProgress.audiobook_id == audiobook_id,
        )
    )
    progress = result.scalar_one_or_none()

    if not progress:
        raise HTTPException(status_code=404, detail='No listening progress saved')

    return ListeningProgressResponse.model_validate(progress)
