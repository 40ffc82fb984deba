"""Tests for the pipeline orchestrator state machine."""
import asyncio

import pytest

from clippilot.config import Settings
from clippilot.errors import InvalidSource, MediaUnreadable, NotFound, VideoTooLong
from clippilot.models.job import JobStage
from clippilot.pipeline.domain import Transcript
from clippilot.pipeline.orchestrator import PipelineOrchestrator
from clippilot.pipeline.renderer import ClipRenderer
from clippilot.workers.job_runner import JobRunner
from factories import make_options, make_transcript
from fakes import FakeEncoder, FakeExtractor, FakeInspector, FakeProvider


def _settings(**overrides):
    values = {"transcript_timeout_sec": 5.0, "max_video_duration_sec": 3600.0}
    values.update(overrides)
    return Settings(**values)


@pytest.fixture
def build(store, tmp_path):
    def _build(inspector=None, provider=None, **settings_overrides):
        extractor = FakeExtractor(tmp_path)
        orchestrator = PipelineOrchestrator(
            store=store,
            inspector=inspector or FakeInspector(),
            extractor=extractor,
            provider=provider or FakeProvider(make_transcript(0, 300)),
            renderer=ClipRenderer(store, tmp_path / "renders", encoder=FakeEncoder()),
            runner=JobRunner(),
            settings=_settings(**settings_overrides),
        )
        return orchestrator, extractor
    return _build


async def _run(orchestrator, source, options):
    job_id = await orchestrator.submit_job(source, options)
    await orchestrator.runner.wait(job_id)
    return job_id


class TestRunJob:
    """End-to-end runs with fake collaborators."""

    @pytest.mark.asyncio
    async def test_ready_with_clips(self, build, source):
        orchestrator, extractor = build()
        job_id = await _run(orchestrator, source, make_options())

        view = await orchestrator.get_job_status(job_id)
        assert view.status == "ready"
        assert view.stage == "ready"
        assert view.error is None
        assert len(view.clips) == 10
        assert [c["startSec"] for c in view.clips] == sorted(c["startSec"] for c in view.clips)
        assert view.video_meta["durationSec"] == 600.0
        assert extractor.released == extractor.extracted
        assert not extractor.extracted[0].exists()

    @pytest.mark.asyncio
    async def test_no_speech_is_ready_with_no_clips(self, build, source):
        orchestrator, _ = build(provider=FakeProvider(Transcript(segments=[])))
        job_id = await _run(orchestrator, source, make_options())

        view = await orchestrator.get_job_status(job_id)
        assert view.status == "ready"
        assert view.clips == []

    @pytest.mark.asyncio
    async def test_provider_failure(self, build, source):
        orchestrator, extractor = build(provider=FakeProvider(error=RuntimeError("quota")))
        job_id = await _run(orchestrator, source, make_options())

        view = await orchestrator.get_job_status(job_id)
        assert view.status == "failed"
        assert view.stage == "failed"
        assert view.error["errorCode"] == "TRANSCRIPT_UNAVAILABLE"
        assert view.clips == []
        assert len(extractor.released) == 1

    @pytest.mark.asyncio
    async def test_provider_timeout(self, build, source):
        provider = FakeProvider(make_transcript(0, 300), delay=1.0)
        orchestrator, extractor = build(provider=provider, transcript_timeout_sec=0.05)
        job_id = await _run(orchestrator, source, make_options())

        view = await orchestrator.get_job_status(job_id)
        assert view.error["errorCode"] == "TRANSCRIPT_UNAVAILABLE"
        assert len(extractor.released) == 1

    @pytest.mark.asyncio
    async def test_source_unreadable_during_probe(self, build, source):
        inspector = FakeInspector()
        orchestrator, extractor = build(inspector=inspector)
        options = make_options()

        job_id = await orchestrator.submit_job(source, options)
        inspector.error = MediaUnreadable("No decodable video stream found in file")
        await orchestrator.runner.wait(job_id)

        view = await orchestrator.get_job_status(job_id)
        assert view.error["errorCode"] == "MEDIA_UNREADABLE"
        assert extractor.extracted == []

    @pytest.mark.asyncio
    async def test_provider_sees_job_window(self, build, source):
        provider = FakeProvider(make_transcript(0, 300))
        orchestrator, _ = build(provider=provider)
        await _run(orchestrator, source, make_options(time_start_sec=20, time_end_sec=80))

        assert provider.windows[0].start == 20
        assert provider.windows[0].end == 80

    @pytest.mark.asyncio
    async def test_interrupted_job_is_failed(self, build, source, store):
        provider = FakeProvider(make_transcript(0, 300), delay=10.0)
        orchestrator, extractor = build(provider=provider, transcript_timeout_sec=60.0)

        job_id = await orchestrator.submit_job(source, make_options())
        while not provider.windows:
            await asyncio.sleep(0.01)
        await orchestrator.runner.shutdown()

        job = await store.get_job(job_id)
        assert job.stage == JobStage.FAILED
        assert job.error_kind == "INTERNAL"
        assert len(extractor.released) == 1


class TestSubmitJob:
    """Validation that happens before a job is recorded."""

    @pytest.mark.asyncio
    async def test_inverted_window(self, build, source):
        inspector = FakeInspector()
        orchestrator, _ = build(inspector=inspector)

        with pytest.raises(InvalidSource):
            await orchestrator.submit_job(source, make_options(time_start_sec=100, time_end_sec=50))
        assert inspector.calls == 0

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "overrides",
        [
            {"time_end_sec": float("nan")},
            {"time_start_sec": float("nan")},
            {"time_end_sec": float("inf")},
            {"clip_length_preset": "custom", "clip_length_min_sec": float("nan")},
            {"clip_length_preset": "custom", "clip_length_max_sec": float("inf")},
        ],
    )
    async def test_non_finite_values(self, build, source, overrides):
        inspector = FakeInspector()
        orchestrator, _ = build(inspector=inspector)

        with pytest.raises(InvalidSource):
            await orchestrator.submit_job(source, make_options(**overrides))
        assert inspector.calls == 0

    @pytest.mark.asyncio
    async def test_video_too_long(self, build, source):
        orchestrator, _ = build(inspector=FakeInspector(duration=5000.0))

        with pytest.raises(VideoTooLong):
            await orchestrator.submit_job(source, make_options())

    @pytest.mark.asyncio
    async def test_window_past_end_of_video(self, build, source):
        orchestrator, _ = build(inspector=FakeInspector(duration=120.0))

        with pytest.raises(InvalidSource):
            await orchestrator.submit_job(source, make_options(time_end_sec=300))

    @pytest.mark.asyncio
    async def test_invalid_words_per_caption(self, build, source):
        orchestrator, _ = build()

        with pytest.raises(InvalidSource):
            await orchestrator.submit_job(source, make_options(words_per_caption=20))


class TestClipMedia:
    """Media access after a job is ready."""

    @pytest.mark.asyncio
    async def test_stream_clip_media(self, build, source):
        orchestrator, _ = build()
        job_id = await _run(orchestrator, source, make_options())

        chunks = await orchestrator.stream_clip_media(job_id, "clip-1", "low")
        data = b"".join([chunk async for chunk in chunks])
        assert len(data) == 200_000

        view = await orchestrator.get_job_status(job_id)
        assert view.clips[0]["rendered"] is True

    @pytest.mark.asyncio
    async def test_unknown_job(self, build):
        orchestrator, _ = build()
        with pytest.raises(NotFound):
            await orchestrator.get_clip_media("missing", "clip-1")
        with pytest.raises(NotFound):
            await orchestrator.get_job_status("missing")

    @pytest.mark.asyncio
    async def test_unknown_clip(self, build, source):
        orchestrator, _ = build()
        job_id = await _run(orchestrator, source, make_options())

        with pytest.raises(NotFound):
            await orchestrator.get_clip_media(job_id, "clip-99")
