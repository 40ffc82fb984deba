"""Media Inspector and Media Extractor.

Thin wrappers over :mod:`clippilot.utils.ffmpeg` that translate subprocess
failures into pipeline error kinds.
"""
import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator, Optional
from uuid import uuid4

from clippilot.config import settings
from clippilot.errors import ExtractionFailed, InvalidSource, MediaUnreadable
from clippilot.pipeline.domain import MediaInfo, Window
from clippilot.utils import ffmpeg
from clippilot.utils.ffmpeg import FFmpegError

logger = logging.getLogger(__name__)


class MediaInspector:
    """Read-only probe of a source file."""
    
    async def inspect(self, path: str | Path) -> MediaInfo:
        """
        Probe duration, resolution, frame rate and bitrate.
        
        Raises:
            InvalidSource: If the file does not exist
            MediaUnreadable: If there is no decodable video stream
        """
        path = Path(path)
        if not path.is_file():
            raise InvalidSource("Source video not found")
        
        try:
            info = await ffmpeg.get_video_info(path)
        except FFmpegError as e:
            logger.warning(f"Probe failed for {path}: {e}")
            raise MediaUnreadable("No decodable video stream found in file") from e
        
        if info.duration <= 0 or info.width <= 0 or info.height <= 0:
            raise MediaUnreadable("No decodable video stream found in file")
        
        return MediaInfo(
            duration_sec=info.duration,
            width=info.width,
            height=info.height,
            fps=info.fps,
            bitrate=info.bit_rate,
        )


class MediaExtractor:
    """Derives bounded audio artifacts for transcription."""
    
    def __init__(self, audio_dir: Optional[Path] = None):
        self.audio_dir = Path(audio_dir or settings.audio_dir)
    
    async def extract_audio(self, source_path: str | Path, window: Window) -> Path:
        """
        Write the audio of ``window`` to a new temporary file.
        
        The caller owns the returned file; prefer :meth:`audio_for`, which
        releases it.
        
        Raises:
            ExtractionFailed: If the window is degenerate or ffmpeg fails
        """
        if window.start >= window.end:
            raise ExtractionFailed("Cannot extract audio from an empty time window")
        
        source_path = Path(source_path)
        if not source_path.is_file():
            raise ExtractionFailed("Source video is not readable")
        
        output_path = self.audio_dir / f"{uuid4().hex}.wav"
        try:
            return await ffmpeg.extract_audio(source_path, output_path, window.start, window.end)
        except FFmpegError as e:
            output_path.unlink(missing_ok=True)
            logger.warning(f"Audio extraction failed for {source_path}: {e}")
            raise ExtractionFailed("Failed to extract audio from source video") from e
    
    @asynccontextmanager
    async def audio_for(self, source_path: str | Path, window: Window) -> AsyncIterator[Path]:
        """Extract audio and delete it on every exit path."""
        audio_path = await self.extract_audio(source_path, window)
        try:
            yield audio_path
        finally:
            self.release(audio_path)
    
    def release(self, audio_path: Path) -> None:
        """Delete a temporary audio artifact."""
        try:
            Path(audio_path).unlink(missing_ok=True)
            logger.debug(f"Released audio artifact {audio_path}")
        except OSError as e:
            logger.warning(f"Failed to release audio artifact {audio_path}: {e}")
