"""Stand-ins for the subprocess and provider seams of the pipeline."""
import asyncio
from contextlib import asynccontextmanager

from clippilot.pipeline.domain import MediaInfo, Transcript


class FakeInspector:
    def __init__(self, duration: float = 600.0, error: Exception = None):
        self.duration = duration
        self.error = error
        self.calls = 0

    async def inspect(self, path):
        self.calls += 1
        if self.error:
            raise self.error
        return MediaInfo(duration_sec=self.duration, width=1920, height=1080, fps=30.0)


class FakeExtractor:
    """Creates a placeholder WAV per run and records its release."""

    def __init__(self, tmp_path):
        self.tmp_path = tmp_path
        self.extracted = []
        self.released = []

    @asynccontextmanager
    async def audio_for(self, source_path, window):
        path = self.tmp_path / f"audio-{len(self.extracted)}.wav"
        path.write_bytes(b"RIFF")
        self.extracted.append(path)
        try:
            yield path
        finally:
            path.unlink(missing_ok=True)
            self.released.append(path)


class FakeProvider:
    name = "fake"

    def __init__(self, transcript: Transcript = None, error: Exception = None, delay: float = 0.0):
        self.transcript = transcript
        self.error = error
        self.delay = delay
        self.windows = []

    async def transcribe(self, audio_path, window):
        self.windows.append(window)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error:
            raise self.error
        return self.transcript


class FakeEncoder:
    async def __call__(self, source_path, output_path, start, end, aspect_ratio, quality):
        output_path.write_bytes(b"x" * 200_000)
        return output_path


class FakeThumbnailer:
    def __init__(self):
        self.calls = []

    async def __call__(self, video_path, output_path, timestamp, aspect_ratio):
        self.calls.append(timestamp)
        output_path.write_bytes(b"\xff\xd8jpeg")
        return output_path
