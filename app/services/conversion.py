"""
Conversion orchestrator: PDF text to narrated MP4.

Runs the pipeline stages strictly in sequence for one job and maps their
progress onto a single 0-100 scale:

    initialization        0-10
    speech synthesis     10-70   (10 + round(p * 0.6) per chunk)
    assembly + probe     70-80
    video muxing         80-99
    finalization           100

Status, progress and errors are persisted through the job store after each
checkpoint and published to an optional listener.
"""
import asyncio
import inspect
import logging
import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import Awaitable, Callable, Optional, Sequence, Union

from app.config import PipelineConfig
from app.models.audiobook import JobStatus
from app.services.chunking import split_text_into_chunks
from app.services.errors import ExtractionError, JobNotFoundError
from app.services.job_store import JobStore
from app.services.media import AudioAssembler, VideoMuxer, document_label
from app.services.pdf_processor import PDFInfo, extract_text_async, format_text_for_tts
from app.services.speech import SpeechSynthesizer, TTSOptions

logger = logging.getLogger(__name__)

INIT_DONE = 10
SYNTHESIS_START = 10
SYNTHESIS_SPAN = 60
ASSEMBLY_START = 70
ASSEMBLY_DONE = 80
MUX_DONE = 99
COMPLETE = 100

ASSEMBLED_AUDIO_NAME = 'complete.mp3'
INTERRUPTED_MESSAGE = 'Conversion interrupted by server shutdown'


@dataclass
class ProgressEvent:
    """A persisted state transition of one job."""
    job_id: str
    status: str
    progress: int
    error_message: Optional[str] = None


ProgressListener = Callable[[ProgressEvent], Union[None, Awaitable[None]]]
Extractor = Callable[[str], Awaitable[PDFInfo]]


def synthesis_progress(percent: float) -> int:
    """Map synthesis progress (0-100) onto the overall 10-70 band."""
    return SYNTHESIS_START + round(percent * SYNTHESIS_SPAN / 100)


class _JobProgress:
    """Single writer for one job's status and progress; never moves progress backwards."""

    def __init__(self, store: JobStore, job_id: str, listener: Optional[ProgressListener]):
        self.store = store
        self.job_id = job_id
        self.listener = listener
        self.progress = 0
        self.status = JobStatus.pending.value

    async def set(self, progress: Optional[int] = None, status: Optional[str] = None, **fields):
        if progress is not None:
            self.progress = max(self.progress, min(COMPLETE, int(progress)))
            fields['progress'] = self.progress
        if status is not None:
            self.status = status
            fields['status'] = status

        job = await self.store.update(self.job_id, **fields)
        self.progress = job.progress
        self.status = job.status
        await self._publish(job.error_message)

    async def _publish(self, error_message: Optional[str]):
        if self.listener is None:
            return
        event = ProgressEvent(self.job_id, self.status, self.progress, error_message)
        try:
            result = self.listener(event)
            if inspect.isawaitable(result):
                await result
        except Exception:
            logger.exception('Progress listener failed for job %s', self.job_id)


class ConversionOrchestrator:
    """
    Sequences extraction, chunking, synthesis, assembly, probing and muxing
    for a single job.

    The orchestrator is the only writer of a job's status, progress and
    error fields during a run. run() never raises: any failure is recorded
    on the job as status 'error' with the exception message, and progress is
    left where the last completed checkpoint put it. Cancellation is recorded
    the same way before it propagates. If the job record is deleted mid-run,
    the run stops and removes the files it created.
    """

    def __init__(
        self,
        store: JobStore,
        synthesizer: SpeechSynthesizer,
        assembler: AudioAssembler,
        muxer: VideoMuxer,
        config: PipelineConfig,
        extractor: Extractor = extract_text_async,
        listener: Optional[ProgressListener] = None,
    ):
        self.store = store
        self.synthesizer = synthesizer
        self.assembler = assembler
        self.muxer = muxer
        self.config = config
        self.extractor = extractor
        self.listener = listener

    @classmethod
    def from_config(cls, config: PipelineConfig, store: Optional[JobStore] = None, **kwargs):
        """Build an orchestrator with the default component implementations."""
        return cls(
            store=store or JobStore(),
            synthesizer=SpeechSynthesizer(config),
            assembler=AudioAssembler(config),
            muxer=VideoMuxer(config),
            config=config,
            **kwargs,
        )

    def job_dir(self, job_id: str) -> Path:
        """Working directory holding a job's chunk audio and assembled track."""
        return self.config.audio_dir / job_id

    def video_path(self, job_id: str) -> Path:
        return self.config.video_dir / f'{job_id}.mp4'

    async def run(
        self,
        job_id: str,
        text: Optional[str] = None,
        options: Optional[TTSOptions] = None,
    ) -> None:
        """
        Convert one job to video.

        Args:
            job_id: Id of an existing job record
            text: Already extracted document text; extracted from the job's
                source file when None
            options: Voice and speed; defaults to the values stored on the job
        """
        progress = _JobProgress(self.store, job_id, self.listener)

        try:
            await self._convert(progress, job_id, text, options)
        except asyncio.CancelledError:
            logger.warning('Job %s interrupted at %d%%', job_id, progress.progress)
            try:
                await progress.set(status=JobStatus.error.value, error_message=INTERRUPTED_MESSAGE)
            except Exception:
                logger.exception('Could not record interruption for job %s', job_id)
            raise
        except JobNotFoundError as e:
            # Record deleted mid-run: drop whatever this run wrote after the delete.
            logger.warning('Job %s vanished during conversion: %s', job_id, e)
            shutil.rmtree(self.job_dir(job_id), ignore_errors=True)
            remove_files([self.video_path(job_id)])
        except Exception as e:
            message = str(e) or e.__class__.__name__
            logger.error('Job %s failed at %d%%: %s', job_id, progress.progress, message)
            try:
                await progress.set(status=JobStatus.error.value, error_message=message)
            except Exception:
                logger.exception('Could not record failure for job %s', job_id)

    async def _convert(
        self,
        progress: _JobProgress,
        job_id: str,
        text: Optional[str],
        options: Optional[TTSOptions],
    ) -> None:
        job = await self.store.get(job_id)
        if job is None:
            raise JobNotFoundError(job_id)

        progress.progress = job.progress or 0
        await progress.set(status=JobStatus.processing.value)

        # Initialization
        if text is None:
            info = await self.extractor(job.file_path)
            text = info.text
            await progress.set(pages=info.num_pages)

        if options is None:
            options = TTSOptions(voice=job.voice, speed=job.speed)

        chunks = split_text_into_chunks(format_text_for_tts(text), self.config.max_chunk_length)
        if not chunks:
            raise ExtractionError('No readable text found in PDF')

        work_dir = self.job_dir(job_id)
        work_dir.mkdir(parents=True, exist_ok=True)
        logger.info('Job %s: %d chunk(s), voice=%s speed=%s', job_id, len(chunks), options.voice, options.speed)
        await progress.set(INIT_DONE)

        # Speech synthesis
        async def on_synthesis_progress(percent: float):
            await progress.set(synthesis_progress(percent))

        segments = await self.synthesizer.synthesize_chunks(
            chunks, options, work_dir, on_progress=on_synthesis_progress,
        )

        # Assembly and duration probe
        await progress.set(ASSEMBLY_START)
        audio_path = work_dir / ASSEMBLED_AUDIO_NAME
        await self.assembler.concatenate(segments, audio_path)
        remove_files(segments)

        duration = await self.assembler.probe_duration(audio_path)
        await progress.set(ASSEMBLY_DONE, audio_path=str(audio_path), duration=duration)

        # Video muxing
        video_path = self.video_path(job_id)
        await self.muxer.render(audio_path, document_label(job.original_file_name), video_path, duration)
        await progress.set(MUX_DONE, video_path=str(video_path))

        # Finalization
        await progress.set(COMPLETE, status=JobStatus.complete.value)
        logger.info('Job %s complete: %.1fs of audio', job_id, duration)


def remove_files(paths: Sequence[Path]) -> None:
    """Delete files, logging rather than raising on failure."""
    for path in paths:
        try:
            Path(path).unlink(missing_ok=True)
        except OSError as e:
            logger.warning('Could not remove %s: %s', path, e)


def remove_job_artifacts(job, audio_dir: Path) -> None:
    """Remove every file a job produced, plus its working directory."""
    remove_files([p for p in (job.file_path, job.audio_path, job.video_path) if p])
    shutil.rmtree(audio_dir / job.id, ignore_errors=True)
