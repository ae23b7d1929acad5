"""
Tests for the conversion orchestrator state machine.
"""
from pathlib import Path
from unittest.mock import MagicMock, AsyncMock

import pytest
import pytest_asyncio
from openai import OpenAIError

from app.models.audiobook import JobStatus
from app.services.conversion import (
    ConversionOrchestrator,
    ProgressEvent,
    remove_job_artifacts,
    synthesis_progress,
)
from app.services.errors import AssemblyError, MuxError, ProbeError
from app.services.media import AudioAssembler, VideoMuxer
from app.services.pdf_processor import PDFInfo
from app.services.speech import SpeechSynthesizer, TTSOptions


class FakeAssembler:
    """Writes a placeholder track instead of calling ffmpeg."""

    def __init__(self, duration=12.5):
        self.duration = duration
        self.segments = None
        self.concatenate = AsyncMock(side_effect=self._concatenate)
        self.probe_duration = AsyncMock(return_value=duration)

    async def _concatenate(self, segments, output_path):
        self.segments = list(segments)
        output_path.write_bytes(b''.join(Path(s).read_bytes() for s in segments))
        return output_path


class FakeMuxer:
    def __init__(self):
        self.render = AsyncMock(side_effect=self._render)

    async def _render(self, audio_path, label, output_path, duration):
        output_path.parent.mkdir(parents=True, exist_ok=True)
        output_path.write_bytes(b'MP4')
        return output_path


@pytest.fixture
def events():
    return []


@pytest.fixture
def assembler():
    return FakeAssembler()


@pytest.fixture
def muxer():
    return FakeMuxer()


@pytest.fixture
def orchestrator(job_store, pipeline_config, speech_client, assembler, muxer, events):
    return ConversionOrchestrator(
        store=job_store,
        synthesizer=SpeechSynthesizer(pipeline_config, client=speech_client),
        assembler=assembler,
        muxer=muxer,
        config=pipeline_config,
        listener=events.append,
    )


@pytest_asyncio.fixture
async def job(job_store, sample_pdf):
    return await job_store.create(
        user_id='user-1',
        title='Sample Book',
        original_file_name='Sample Book.pdf',
        file_path=str(sample_pdf),
        pages=2,
        voice='nova',
        speed=1.25,
        status=JobStatus.processing.value,
        progress=0,
    )


def progress_values(events):
    return [e.progress for e in events]


class TestSynthesisBand:
    @pytest.mark.parametrize('percent, expected', [
        (0, 10), (25, 25), (50, 40), (100, 70), (100 / 3, 30),
    ])
    def test_maps_into_10_to_70(self, percent, expected):
        assert synthesis_progress(percent) == expected


class TestSuccessfulRun:
    """Runs where every stage succeeds."""

    @pytest.mark.asyncio
    async def test_single_chunk_document(self, orchestrator, job_store, job, events, pipeline_config):
        text = ' '.join(['This sentence is exactly forty-five chars ok.'] * 77)
        assert 3000 < len(text) < 4000

        await orchestrator.run(job.id, text, TTSOptions('nova', 1.25))

        saved = await job_store.get(job.id)
        assert saved.status == JobStatus.complete.value
        assert saved.progress == 100
        assert saved.duration == 12.5
        assert saved.video_path == str(pipeline_config.video_dir / f'{job.id}.mp4')
        assert Path(saved.video_path).exists()
        assert saved.audio_path == str(pipeline_config.audio_dir / job.id / 'complete.mp3')
        assert saved.error_message is None

        assert progress_values(events) == [0, 10, 70, 70, 80, 99, 100]
        assert events[0].status == JobStatus.processing.value
        assert events[-1] == ProgressEvent(job.id, JobStatus.complete.value, 100, None)

    @pytest.mark.asyncio
    async def test_progress_is_monotonic_over_many_chunks(
        self, orchestrator, job_store, job, events, pipeline_config, speech_client,
    ):
        pipeline_config.max_chunk_length = 20
        text = '. '.join(f'Sentence {i} here' for i in range(7))

        await orchestrator.run(job.id, text, TTSOptions())

        values = progress_values(events)
        assert values == sorted(values)
        assert values[-1] == 100
        assert speech_client.audio.speech.create.await_count == 7
        synthesis = [v for v in values if 10 < v < 70]
        assert len(synthesis) == 6

    @pytest.mark.asyncio
    async def test_chunk_files_removed_after_assembly(self, orchestrator, job, assembler, pipeline_config):
        pipeline_config.max_chunk_length = 10
        await orchestrator.run(job.id, 'First one. Second one. Third one', TTSOptions())

        assert len(assembler.segments) == 3
        assert all(not p.exists() for p in assembler.segments)
        assert (pipeline_config.audio_dir / job.id / 'complete.mp3').exists()

    @pytest.mark.asyncio
    async def test_stages_receive_previous_outputs(self, orchestrator, job, assembler, muxer, pipeline_config):
        await orchestrator.run(job.id, 'Hello world.', TTSOptions())

        audio_path = pipeline_config.audio_dir / job.id / 'complete.mp3'
        assembler.probe_duration.assert_awaited_once_with(audio_path)
        muxer.render.assert_awaited_once_with(
            audio_path, 'Sample Book', pipeline_config.video_dir / f'{job.id}.mp4', 12.5,
        )

    @pytest.mark.asyncio
    async def test_options_default_to_job_settings(self, orchestrator, job, speech_client):
        await orchestrator.run(job.id, 'Hello world.')

        kwargs = speech_client.audio.speech.create.call_args.kwargs
        assert kwargs['voice'] == 'nova'
        assert kwargs['speed'] == 1.25

    @pytest.mark.asyncio
    async def test_speed_clamped_for_provider(self, orchestrator, job, speech_client):
        await orchestrator.run(job.id, 'Hello world.', TTSOptions('alloy', 10.0))

        assert speech_client.audio.speech.create.call_args.kwargs['speed'] == 4.0

    @pytest.mark.asyncio
    async def test_extracts_text_when_not_given(self, orchestrator, job_store, job, speech_client):
        await orchestrator.run(job.id)

        saved = await job_store.get(job.id)
        assert saved.status == JobStatus.complete.value
        assert saved.pages == 2
        sent = speech_client.audio.speech.create.call_args.kwargs['input']
        assert 'quick brown fox' in sent

    @pytest.mark.asyncio
    async def test_async_listener_is_awaited(self, job_store, pipeline_config, speech_client, job):
        seen = []

        async def listener(event):
            seen.append(event.progress)

        orchestrator = ConversionOrchestrator(
            store=job_store,
            synthesizer=SpeechSynthesizer(pipeline_config, client=speech_client),
            assembler=FakeAssembler(),
            muxer=FakeMuxer(),
            config=pipeline_config,
            listener=listener,
        )
        await orchestrator.run(job.id, 'Hello.', TTSOptions())

        assert seen[-1] == 100

    @pytest.mark.asyncio
    async def test_failing_listener_does_not_break_run(self, job_store, pipeline_config, speech_client, job):
        orchestrator = ConversionOrchestrator(
            store=job_store,
            synthesizer=SpeechSynthesizer(pipeline_config, client=speech_client),
            assembler=FakeAssembler(),
            muxer=FakeMuxer(),
            config=pipeline_config,
            listener=MagicMock(side_effect=RuntimeError('listener bug')),
        )
        await orchestrator.run(job.id, 'Hello.', TTSOptions())

        assert (await job_store.get(job.id)).status == JobStatus.complete.value


class TestFailedRun:
    """Runs where a stage fails."""

    @pytest.mark.asyncio
    async def test_provider_failure_on_chunk_two_of_three(
        self, orchestrator, job_store, job, events, speech_client, pipeline_config, assembler,
    ):
        pipeline_config.max_chunk_length = 10
        ok = MagicMock(content=b'ID3')
        speech_client.audio.speech.create.side_effect = [ok, OpenAIError('quota exceeded'), ok]

        await orchestrator.run(job.id, 'First one. Second one. Third one', TTSOptions())

        saved = await job_store.get(job.id)
        assert saved.status == JobStatus.error.value
        assert 'quota exceeded' in saved.error_message
        assert saved.progress == 30
        assert speech_client.audio.speech.create.await_count == 2

        work_dir = pipeline_config.audio_dir / job.id
        assert (work_dir / 'chunk_000.mp3').exists()
        assert not (work_dir / 'chunk_002.mp3').exists()
        assembler.concatenate.assert_not_awaited()

        assert events[-1].status == JobStatus.error.value
        assert events[-1].progress == 30

    @pytest.mark.asyncio
    async def test_assembly_failure_keeps_progress(self, orchestrator, job_store, job, assembler):
        assembler.concatenate.side_effect = AssemblyError('FFmpeg process exited with code 1')

        await orchestrator.run(job.id, 'Hello world.', TTSOptions())

        saved = await job_store.get(job.id)
        assert saved.status == JobStatus.error.value
        assert saved.error_message == 'FFmpeg process exited with code 1'
        assert saved.progress == 70
        assert saved.audio_path is None

    @pytest.mark.asyncio
    async def test_probe_failure_after_assembly_removes_chunks(
        self, orchestrator, job_store, job, assembler,
    ):
        assembler.probe_duration.side_effect = ProbeError('bad ffprobe output')

        await orchestrator.run(job.id, 'Hello world.', TTSOptions())

        saved = await job_store.get(job.id)
        assert saved.status == JobStatus.error.value
        assert saved.error_message == 'bad ffprobe output'
        assert saved.progress == 70
        assert all(not p.exists() for p in assembler.segments)

    @pytest.mark.asyncio
    async def test_mux_failure(self, orchestrator, job_store, job, muxer):
        muxer.render.side_effect = MuxError('FFmpeg process exited with code 8')

        await orchestrator.run(job.id, 'Hello world.', TTSOptions())

        saved = await job_store.get(job.id)
        assert saved.status == JobStatus.error.value
        assert saved.progress == 80
        assert saved.duration == 12.5
        assert saved.video_path is None

    @pytest.mark.asyncio
    async def test_no_speakable_text(self, orchestrator, job_store, job, speech_client):
        await orchestrator.run(job.id, '   \n  ', TTSOptions())

        saved = await job_store.get(job.id)
        assert saved.status == JobStatus.error.value
        assert saved.error_message
        speech_client.audio.speech.create.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_extraction_failure(self, orchestrator, job_store, job, not_a_pdf):
        await job_store.update(job.id, file_path=str(not_a_pdf))

        await orchestrator.run(job.id)

        saved = await job_store.get(job.id)
        assert saved.status == JobStatus.error.value
        assert saved.error_message.startswith('Failed to extract text from PDF')
        assert saved.progress == 0

    @pytest.mark.asyncio
    async def test_unexpected_error_without_message(self, orchestrator, job_store, job, muxer):
        muxer.render.side_effect = RuntimeError()

        await orchestrator.run(job.id, 'Hello world.', TTSOptions())

        saved = await job_store.get(job.id)
        assert saved.status == JobStatus.error.value
        assert saved.error_message == 'RuntimeError'

    @pytest.mark.asyncio
    async def test_missing_job_does_not_raise(self, orchestrator, events):
        await orchestrator.run('no-such-job', 'Hello.', TTSOptions())

        assert events == []


class TestArtifactCleanup:
    @pytest.mark.asyncio
    async def test_remove_job_artifacts(self, orchestrator, job_store, job, pipeline_config, sample_pdf):
        await orchestrator.run(job.id, 'Hello world.', TTSOptions())
        saved = await job_store.get(job.id)

        remove_job_artifacts(saved, pipeline_config.audio_dir)

        assert not Path(saved.video_path).exists()
        assert not Path(saved.audio_path).exists()
        assert not sample_pdf.exists()
        assert not (pipeline_config.audio_dir / job.id).exists()

    @pytest.mark.asyncio
    async def test_job_deleted_mid_run_leaves_no_files(
        self, orchestrator, job_store, job, speech_client, pipeline_config, events,
    ):
        async def delete_then_speak(**kwargs):
            await job_store.delete(job.id)
            return MagicMock(content=b'ID3-fake-mp3')

        speech_client.audio.speech.create.side_effect = delete_then_speak

        await orchestrator.run(job.id, 'One. Two.', TTSOptions())

        assert speech_client.audio.speech.create.await_count == 1
        assert not (pipeline_config.audio_dir / job.id).exists()
        assert not (pipeline_config.video_dir / f'{job.id}.mp4').exists()
        assert await job_store.get(job.id) is None
        assert all(e.status != JobStatus.complete.value for e in events)


class TestDefaultComponents:
    def test_from_config_builds_real_components(self, pipeline_config, job_store):
        orchestrator = ConversionOrchestrator.from_config(pipeline_config, store=job_store)

        assert isinstance(orchestrator.synthesizer, SpeechSynthesizer)
        assert isinstance(orchestrator.assembler, AudioAssembler)
        assert isinstance(orchestrator.muxer, VideoMuxer)
        assert orchestrator.store is job_store
