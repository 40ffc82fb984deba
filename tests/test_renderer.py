"""Tests for lazy, per-clip serialized rendering."""
import asyncio

import pytest

from clippilot.errors import InvalidSource, InvalidWindow, NotFound, RenderFailed, SourceMissing
from clippilot.pipeline.renderer import ClipRenderer
from clippilot.utils.ffmpeg import FFmpegError
from factories import make_candidate, make_options
from fakes import FakeThumbnailer


class _FakeEncoder:
    """Writes a small file after a short delay; counts invocations."""

    def __init__(self, delay: float = 0.05, fail: bool = False):
        self.delay = delay
        self.fail = fail
        self.calls = []

    async def __call__(self, source_path, output_path, start, end, aspect_ratio, quality):
        self.calls.append((start, end, aspect_ratio, quality))
        await asyncio.sleep(self.delay)
        output_path.write_bytes(b"partial")
        if self.fail:
            raise FFmpegError("encoder exploded")
        output_path.write_bytes(f"{aspect_ratio}:{quality}".encode())
        return output_path


async def _persisted_clip(store, source, media_info, start=0.0, end=25.0):
    job = await store.create_job(source, make_options(), media_info, "uniform")
    return await store.create_clip(job.id, make_candidate(1, start, end))


@pytest.fixture
def encoder():
    return _FakeEncoder()


@pytest.fixture
def renderer(store, tmp_path, encoder):
    return ClipRenderer(store, tmp_path / "renders", encoder=encoder, thumbnailer=FakeThumbnailer())


@pytest.mark.asyncio
async def test_concurrent_renders_encode_once(renderer, encoder, store, source, media_info):
    clip = await _persisted_clip(store, source, media_info)

    first, second = await asyncio.gather(
        renderer.render(clip, source.path, "9:16", "medium", 600.0),
        renderer.render(clip, source.path, "9:16", "medium", 600.0),
    )

    assert len(encoder.calls) == 1
    assert first == second
    assert first.read_bytes() == b"9:16:medium"
    assert not renderer.in_flight(clip.job_id, clip.id)


@pytest.mark.asyncio
async def test_cached_artifact_is_reused(renderer, encoder, store, source, media_info):
    clip = await _persisted_clip(store, source, media_info)

    first = await renderer.render(clip, source.path, quality="low")
    second = await renderer.render(clip, source.path, quality="low")

    assert first == second
    assert len(encoder.calls) == 1
    stored = await store.get_clip(clip.job_id, clip.id)
    assert stored.clip_file_path == str(first)


@pytest.mark.asyncio
async def test_different_parameters_render_separately(renderer, encoder, store, source, media_info):
    clip = await _persisted_clip(store, source, media_info)

    vertical = await renderer.render(clip, source.path, "9:16", "medium")
    square = await renderer.render(clip, source.path, "1:1", "medium")

    assert vertical != square
    assert square.name == "clip-1_1x1_medium.mp4"
    assert len(encoder.calls) == 2


@pytest.mark.asyncio
async def test_render_failure_leaves_no_artifact(store, tmp_path, source, media_info):
    encoder = _FakeEncoder(fail=True)
    renderer = ClipRenderer(store, tmp_path / "renders", encoder=encoder)
    clip = await _persisted_clip(store, source, media_info)

    with pytest.raises(RenderFailed):
        await renderer.render(clip, source.path, "9:16", "medium")

    stored = await store.get_clip(clip.job_id, clip.id)
    assert stored.clip_file_path is None
    job_dir = tmp_path / "renders" / clip.job_id
    assert list(job_dir.iterdir()) == []

    # A later request retries the encode
    encoder.fail = False
    path = await renderer.render(clip, source.path, "9:16", "medium")
    assert path.is_file()
    assert len(encoder.calls) == 2


@pytest.mark.asyncio
async def test_missing_source(renderer, store, source, media_info):
    clip = await _persisted_clip(store, source, media_info)
    source.path.unlink()

    with pytest.raises(SourceMissing):
        await renderer.render(clip, source.path, "9:16", "medium")


@pytest.mark.asyncio
async def test_window_past_source_duration(renderer, store, source, media_info):
    clip = await _persisted_clip(store, source, media_info, start=590.0, end=615.0)

    with pytest.raises(InvalidWindow):
        await renderer.render(clip, source.path, "9:16", "medium", source_duration=600.0)


@pytest.mark.asyncio
async def test_degenerate_window(renderer, store, source, media_info):
    clip = await _persisted_clip(store, source, media_info, start=30.0, end=30.0)

    with pytest.raises(InvalidWindow):
        await renderer.render(clip, source.path, "9:16", "medium")


@pytest.mark.asyncio
async def test_thumbnail_rendered_once(renderer, store, source, media_info):
    clip = await _persisted_clip(store, source, media_info)

    first = await renderer.render_thumbnail(clip, source.path, 1)
    second = await renderer.render_thumbnail(clip, source.path, 1)

    assert first == second
    assert first.read_bytes().startswith(b"\xff\xd8")
    assert renderer._thumbnailer.calls == [12.5]


@pytest.mark.asyncio
async def test_thumbnail_index_out_of_range(renderer, store, source, media_info):
    clip = await _persisted_clip(store, source, media_info)

    with pytest.raises(NotFound):
        await renderer.render_thumbnail(clip, source.path, 3)


@pytest.mark.asyncio
async def test_unknown_render_parameters(renderer, encoder, store, source, media_info):
    clip = await _persisted_clip(store, source, media_info)

    with pytest.raises(InvalidSource):
        await renderer.render(clip, source.path, "4:3", "medium")
    with pytest.raises(InvalidSource):
        await renderer.render(clip, source.path, "9:16", "ultra")
    assert encoder.calls == []


@pytest.mark.asyncio
async def test_thumbnail_does_not_wait_for_encode(store, tmp_path, source, media_info):
    release = asyncio.Event()

    class _HeldEncoder:
        async def __call__(self, source_path, output_path, start, end, aspect_ratio, quality):
            await release.wait()
            output_path.write_bytes(b"done")
            return output_path

    renderer = ClipRenderer(
        store, tmp_path / "renders", encoder=_HeldEncoder(), thumbnailer=FakeThumbnailer()
    )
    clip = await _persisted_clip(store, source, media_info)

    render = asyncio.create_task(renderer.render(clip, source.path, "9:16", "medium"))
    while not renderer.in_flight(clip.job_id, clip.id):
        await asyncio.sleep(0.01)

    thumbnail = await asyncio.wait_for(renderer.render_thumbnail(clip, source.path, 0), timeout=1.0)
    assert thumbnail.is_file()
    assert renderer.in_flight(clip.job_id, clip.id)

    release.set()
    path = await render
    assert path.read_bytes() == b"done"
