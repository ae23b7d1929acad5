"""
Domain exceptions for the conversion pipeline.
"""
from typing import Optional


class PipelineError(RuntimeError):
    """Raised when a conversion pipeline stage fails."""

    stage = 'pipeline'

    def __init__(self, message: str, stage: Optional[str] = None):
        super().__init__(message)
        if stage is not None:
            self.stage = stage


class ExtractionError(PipelineError):
    """The source PDF could not be read or parsed."""
    stage = 'extraction'


class SynthesisError(PipelineError):
    """The text-to-speech provider call failed."""
    stage = 'synthesis'


class AssemblyError(PipelineError):
    """Audio segments could not be concatenated."""
    stage = 'assembly'


class ProbeError(PipelineError):
    """The duration of an audio file could not be determined."""
    stage = 'probe'


class MuxError(PipelineError):
    """The video could not be encoded."""
    stage = 'mux'


class JobNotFoundError(LookupError):
    """No job record exists for the given id."""

    def __init__(self, job_id: str):
        super().__init__(f'Audiobook not found: {job_id}')
        self.job_id = job_id


class JobAlreadyRunningError(RuntimeError):
    """A conversion run is already in flight for the given job id."""

    def __init__(self, job_id: str):
        super().__init__(f'Conversion already running for job {job_id}')
        self.job_id = job_id
