"""
Background runner for conversion jobs.
"""
import asyncio
import logging
from typing import Dict, List, Optional

from app.config import PipelineConfig
from app.services.conversion import ConversionOrchestrator
from app.services.errors import JobAlreadyRunningError
from app.services.speech import TTSOptions

logger = logging.getLogger(__name__)


class JobProcessor:
    """
    Runs each conversion as its own asyncio task.

    Different jobs run concurrently; a job id can only have one run in
    flight. Every run is tracked by a task handle so callers (and tests)
    can await its terminal state instead of polling the store.
    """

    def __init__(self, orchestrator: Optional[ConversionOrchestrator] = None):
        self._orchestrator = orchestrator
        self._tasks: Dict[str, asyncio.Task] = {}
        self._stopped = False

    @property
    def orchestrator(self) -> ConversionOrchestrator:
        if self._orchestrator is None:
            self._orchestrator = ConversionOrchestrator.from_config(PipelineConfig.load())
        return self._orchestrator

    async def start(self):
        """Start accepting jobs."""
        self._stopped = False

    async def stop(self, timeout: float = 5.0):
        """Stop accepting jobs and wait for running ones, cancelling stragglers."""
        self._stopped = True
        tasks = list(self._tasks.values())
        if not tasks:
            return

        _, pending = await asyncio.wait(tasks, timeout=timeout)
        for task in pending:
            logger.warning('Cancelling unfinished conversion task %s', task.get_name())
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)

    def submit(
        self,
        job_id: str,
        text: Optional[str] = None,
        options: Optional[TTSOptions] = None,
    ) -> asyncio.Task:
        """
        Start converting a job in the background.

        Raises:
            RuntimeError: The processor has been stopped.
            JobAlreadyRunningError: A run for this job id has not finished yet.
        """
        if self._stopped:
            raise RuntimeError('Job processor is stopped')

        existing = self._tasks.get(job_id)
        if existing is not None and not existing.done():
            raise JobAlreadyRunningError(job_id)

        task = asyncio.create_task(
            self.orchestrator.run(job_id, text, options),
            name=f'convert-{job_id}',
        )
        self._tasks[job_id] = task
        task.add_done_callback(lambda t: self._forget(job_id, t))
        logger.info('Queued conversion for job %s', job_id)
        return task

    def _forget(self, job_id: str, task: asyncio.Task):
        if self._tasks.get(job_id) is task:
            del self._tasks[job_id]

    async def wait(self, job_id: str) -> None:
        """Wait for a job's run to finish; returns at once if none is running."""
        task = self._tasks.get(job_id)
        if task is not None:
            await asyncio.shield(task)

    def is_running(self, job_id: str) -> bool:
        task = self._tasks.get(job_id)
        return task is not None and not task.done()

    def active_jobs(self) -> List[str]:
        """Ids of jobs with a run in flight."""
        return [job_id for job_id, task in self._tasks.items() if not task.done()]


# Singleton instance
_job_processor: Optional[JobProcessor] = None


def get_job_processor() -> JobProcessor:
    """Get the job processor singleton instance."""
    global _job_processor
    if _job_processor is None:
        _job_processor = JobProcessor()
    return _job_processor


def reset_job_processor():
    """Reset the job processor singleton (for testing)."""
    global _job_processor
    _job_processor = None
