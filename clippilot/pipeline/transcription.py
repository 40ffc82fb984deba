"""Transcript providers.

A provider converts an extracted audio artifact into a time-aligned
:class:`Transcript`. The audio covers only the job's window, so providers
shift their audio-relative timestamps by ``window.start``.

The provider is chosen once at startup from configuration and injected into
the orchestrator.
"""
import asyncio
import logging
import math
from pathlib import Path
from typing import Optional, Protocol

from clippilot.config import Settings
from clippilot.pipeline.domain import Transcript, TranscriptSegment, Window

logger = logging.getLogger(__name__)


class TranscriptProvider(Protocol):
    """External capability that transcribes audio."""
    
    name: str
    
    async def transcribe(self, audio_path: Path, window: Window) -> Transcript:
        """Return a transcript in absolute source seconds."""
        ...


class WhisperTranscriptProvider:
    """Speech-to-text with faster-whisper, run off the event loop."""
    
    name = "whisper"
    
    def __init__(self, model: str = "small", device: str = "cpu", compute_type: str = "int8"):
        self.model_name = model
        self.device = device
        self.compute_type = compute_type
        self._model = None
        self._load_lock = asyncio.Lock()
    
    def _load_model(self):
        from faster_whisper import WhisperModel
        
        logger.info(f"Loading faster-whisper model {self.model_name} on {self.device}")
        return WhisperModel(self.model_name, device=self.device, compute_type=self.compute_type)
    
    async def _get_model(self):
        async with self._load_lock:
            if self._model is None:
                self._model = await asyncio.to_thread(self._load_model)
        return self._model
    
    def _transcribe_sync(self, model, audio_path: Path, window: Window) -> Transcript:
        segments_iter, info = model.transcribe(str(audio_path), vad_filter=True)
        
        segments = []
        for seg in segments_iter:
            text = (seg.text or "").strip()
            if not text:
                continue
            start = window.start + float(seg.start)
            end = min(window.end, window.start + float(seg.end))
            if end > start:
                segments.append(TranscriptSegment(start=start, end=end, text=text))
        
        return Transcript(segments=segments, language=getattr(info, "language", None))
    
    async def transcribe(self, audio_path: Path, window: Window) -> Transcript:
        model = await self._get_model()
        return await asyncio.to_thread(self._transcribe_sync, model, audio_path, window)


class UniformTranscriptProvider:
    """
    Deterministic placeholder: one segment per ``segment_sec`` of the window.
    
    Useful for development without a speech model; the segment text is a
    fixed sentence mentioning its time range.
    """
    
    name = "uniform"
    
    def __init__(self, segment_sec: float = 5.0):
        self.segment_sec = segment_sec
    
    async def transcribe(self, audio_path: Path, window: Window) -> Transcript:
        count = math.ceil(window.duration / self.segment_sec)
        segments = []
        for i in range(count):
            start = window.start + i * self.segment_sec
            end = min(start + self.segment_sec, window.end)
            segments.append(TranscriptSegment(
                start=start,
                end=end,
                text=(
                    f"This is a transcript segment from {start:.1f}s to {end:.1f}s "
                    f"of the source video."
                ),
            ))
        return Transcript(segments=segments, language="en")


def create_transcript_provider(name: str, config: Optional[Settings] = None) -> TranscriptProvider:
    """
    Build the provider selected by configuration.
    
    Raises:
        ValueError: For an unknown provider name
    """
    name = (name or "").lower()
    if name == "whisper":
        if config is None:
            return WhisperTranscriptProvider()
        return WhisperTranscriptProvider(
            model=config.whisper_model,
            device=config.whisper_device,
            compute_type=config.whisper_compute_type,
        )
    if name == "uniform":
        return UniformTranscriptProvider()
    raise ValueError(f"Unsupported transcript provider: {name}")
