"""Tests for transcript providers and transcript normalisation."""
import pytest

from clippilot.config import Settings
from clippilot.pipeline.domain import Transcript, TranscriptSegment, Window
from clippilot.pipeline.transcription import (
    UniformTranscriptProvider,
    WhisperTranscriptProvider,
    create_transcript_provider,
)


class _FakeWhisperSegment:
    def __init__(self, start, end, text):
        self.start = start
        self.end = end
        self.text = text


class _FakeInfo:
    language = "en"


class _FakeWhisperModel:
    def transcribe(self, audio_path, vad_filter=True):
        segments = [
            _FakeWhisperSegment(0.0, 4.0, " hello there "),
            _FakeWhisperSegment(4.0, 6.0, "   "),
            _FakeWhisperSegment(6.0, 30.0, "runs past the window"),
        ]
        return iter(segments), _FakeInfo()


@pytest.mark.asyncio
async def test_uniform_provider_covers_window():
    transcript = await UniformTranscriptProvider().transcribe("audio.wav", Window(10, 27))

    assert [(s.start, s.end) for s in transcript.segments] == [(10, 15), (15, 20), (20, 25), (25, 27)]
    assert transcript.language == "en"


@pytest.mark.asyncio
async def test_whisper_provider_offsets_by_window(monkeypatch):
    provider = WhisperTranscriptProvider()
    monkeypatch.setattr(provider, "_load_model", lambda: _FakeWhisperModel())

    transcript = await provider.transcribe("audio.wav", Window(100, 120))

    assert [(s.start, s.end, s.text) for s in transcript.segments] == [
        (100.0, 104.0, "hello there"),
        (106.0, 120.0, "runs past the window"),
    ]
    assert transcript.language == "en"


def test_create_provider_from_settings():
    config = Settings(whisper_model="tiny", whisper_device="cuda")
    provider = create_transcript_provider("whisper", config)

    assert provider.name == "whisper"
    assert provider.model_name == "tiny"
    assert provider.device == "cuda"
    assert create_transcript_provider("uniform").name == "uniform"


def test_create_unknown_provider():
    with pytest.raises(ValueError):
        create_transcript_provider("telepathy")


def test_normalized_sorts_and_trims_overlaps():
    transcript = Transcript(segments=[
        TranscriptSegment(5, 12, "second"),
        TranscriptSegment(0, 8, "first"),
        TranscriptSegment(11, 11, "empty span"),
        TranscriptSegment(13, 14, "  "),
    ])

    normalized = transcript.normalized()
    assert [(s.start, s.end, s.text) for s in normalized.segments] == [
        (0, 8, "first"),
        (8, 12, "second"),
    ]


def test_within_clips_to_window():
    transcript = Transcript(segments=[TranscriptSegment(0, 10, "a"), TranscriptSegment(20, 30, "b")])
    within = transcript.within(Window(5, 25))

    assert [(s.start, s.end) for s in within.segments] == [(5, 10), (20, 25)]
