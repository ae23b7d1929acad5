"""
Persistence for conversion jobs.
"""
from datetime import datetime
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import async_sessionmaker

from app.database import async_session_factory
from app.models.audiobook import Audiobook
from app.services.errors import JobNotFoundError


class JobStore:
    """
    Create, read, update and delete audiobook job records.

    Every call runs in its own session and transaction, so a single update
    is atomic and never clobbers fields it was not given.
    """

    def __init__(self, session_factory: Optional[async_sessionmaker] = None):
        self._session_factory = session_factory or async_session_factory

    async def create(self, **fields) -> Audiobook:
        async with self._session_factory() as session:
            job = Audiobook(**fields)
            session.add(job)
            await session.commit()
            await session.refresh(job)
            return job

    async def get(self, job_id: str) -> Optional[Audiobook]:
        async with self._session_factory() as session:
            return await session.get(Audiobook, job_id)

    async def update(self, job_id: str, **fields) -> Audiobook:
        """
        Apply a partial update and stamp updated_at.

        Raises:
            JobNotFoundError: No record with this id.
        """
        async with self._session_factory() as session:
            job = await session.get(Audiobook, job_id)
            if job is None:
                raise JobNotFoundError(job_id)

            for name, value in fields.items():
                if not hasattr(Audiobook, name):
                    raise AttributeError(f'Audiobook has no field {name!r}')
                setattr(job, name, value)
            job.updated_at = datetime.utcnow()

            await session.commit()
            await session.refresh(job)
            return job

    async def delete(self, job_id: str) -> None:
        async with self._session_factory() as session:
            job = await session.get(Audiobook, job_id)
            if job is not None:
                await session.delete(job)
                await session.commit()

    async def list_for_user(self, user_id: str) -> List[Audiobook]:
        """All of a user's jobs, newest first."""
        async with self._session_factory() as session:
            result = await session.execute(
                select(Audiobook)
                .where(Audiobook.user_id == user_id)
                .order_by(Audiobook.created_at.desc())
            )
            return list(result.scalars().all())
