"""Clip Renderer: lazy, cached, per-clip serialized encoding.

Artifacts live at a deterministic path per (job, clip, aspect ratio, quality),
so an existing file is reused without re-encoding. Encodes write to a hidden
temporary sibling and are moved into place with ``os.replace``; readers never
see a partial file.

At most one render per clip identity is in flight. A second request for the
same clip waits on that clip's lock and then finds the finished artifact.
Different clips never contend.
"""
import asyncio
import logging
import os
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Awaitable, Callable, Dict, Optional, Tuple
from uuid import uuid4

from clippilot.config import settings
from clippilot.errors import InvalidSource, InvalidWindow, NotFound, RenderFailed, SourceMissing
from clippilot.models.clip import Clip
from clippilot.pipeline.domain import ASPECT_RATIOS, QUALITIES
from clippilot.services.job_store import JobStore
from clippilot.utils import ffmpeg
from clippilot.utils.ffmpeg import FFmpegError

logger = logging.getLogger(__name__)

Encoder = Callable[[Path, Path, float, float, str, str], Awaitable[Path]]
Thumbnailer = Callable[[Path, Path, float, str], Awaitable[Path]]

# Tolerance for clip bounds against the probed source duration
_DURATION_TOLERANCE = 0.05


class ClipRenderer:
    """Produces, or reuses, encoded media for clips."""
    
    def __init__(
        self,
        store: JobStore,
        renders_dir: Optional[Path] = None,
        encoder: Optional[Encoder] = None,
        thumbnailer: Optional[Thumbnailer] = None,
    ):
        self.store = store
        self.renders_dir = Path(renders_dir or settings.renders_dir)
        self._encoder = encoder or ffmpeg.render_clip
        self._thumbnailer = thumbnailer or ffmpeg.generate_thumbnail
        self._locks: Dict[Tuple, asyncio.Lock] = {}
        self._lock_users: Dict[Tuple, int] = {}
    
    @asynccontextmanager
    async def _guard(self, key: Tuple):
        """Mutual exclusion for one artifact identity; the entry is dropped when unused."""
        lock = self._locks.get(key)
        if lock is None:
            lock = self._locks[key] = asyncio.Lock()
        self._lock_users[key] = self._lock_users.get(key, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._lock_users[key] -= 1
            if self._lock_users[key] == 0:
                del self._lock_users[key]
                del self._locks[key]
    
    def in_flight(self, job_id: str, clip_id: str) -> bool:
        """Whether a render currently holds the clip's lock."""
        lock = self._locks.get((job_id, clip_id))
        return lock is not None and lock.locked()
    
    def artifact_path(self, job_id: str, clip_id: str, aspect_ratio: str, quality: str) -> Path:
        """Deterministic artifact location for a clip and its parameters."""
        ratio = aspect_ratio.replace(":", "x")
        return self.renders_dir / job_id / f"{clip_id}_{ratio}_{quality}.mp4"
    
    def thumbnail_path(self, job_id: str, clip_id: str, index: int) -> Path:
        return self.renders_dir / job_id / f"{clip_id}_thumb_{index}.{settings.thumbnail_format}"
    
    @staticmethod
    def validate_window(clip: Clip, source_duration: Optional[float]) -> None:
        """
        Raises:
            InvalidWindow: If ``start >= end`` or a bound is outside the source
        """
        if clip.start_sec >= clip.end_sec or clip.start_sec < 0:
            raise InvalidWindow(f"Clip {clip.id} has an invalid time window")
        if source_duration is not None and clip.end_sec > source_duration + _DURATION_TOLERANCE:
            raise InvalidWindow(f"Clip {clip.id} extends past the end of the source video")
    
    async def render(
        self,
        clip: Clip,
        source_path: str | Path,
        aspect_ratio: Optional[str] = None,
        quality: str = "medium",
        source_duration: Optional[float] = None,
    ) -> Path:
        """
        Return the encoded media for a clip, encoding it at most once.
        
        Args:
            clip: Persisted clip
            source_path: Original video
            aspect_ratio: Target frame, defaults to the clip's own
            quality: ``low``, ``medium`` or ``high``
            source_duration: Probed source duration used to bound the window
            
        Raises:
            InvalidSource: For an unknown aspect ratio or quality
            InvalidWindow: For a degenerate or out-of-range window
            SourceMissing: If the original video is gone and no artifact exists
            RenderFailed: If the transcoder fails
        """
        aspect_ratio = aspect_ratio or clip.aspect_ratio
        if aspect_ratio not in ASPECT_RATIOS:
            raise InvalidSource(f"Unknown aspect ratio: {aspect_ratio}")
        if quality not in QUALITIES:
            raise InvalidSource(f"Unknown quality: {quality}")
        self.validate_window(clip, source_duration)
        
        target = self.artifact_path(clip.job_id, clip.id, aspect_ratio, quality)
        source_path = Path(source_path)
        
        async with self._guard((clip.job_id, clip.id)):
            if target.is_file():
                logger.debug(f"Reusing render for clip {clip.job_id}/{clip.id}: {target.name}")
                if clip.clip_file_path is None:
                    await self.store.set_clip_artifact(clip.job_id, clip.id, str(target))
                return target
            
            if not source_path.is_file():
                raise SourceMissing("Source video is no longer available")
            
            target.parent.mkdir(parents=True, exist_ok=True)
            partial = target.with_name(f".{target.stem}.{uuid4().hex}.part.mp4")
            
            logger.info(
                f"Rendering clip {clip.job_id}/{clip.id} "
                f"[{clip.start_sec:.2f}-{clip.end_sec:.2f}] {aspect_ratio} {quality}"
            )
            try:
                await self._encoder(
                    source_path, partial, clip.start_sec, clip.end_sec, aspect_ratio, quality
                )
                os.replace(partial, target)
            except FFmpegError as e:
                logger.error(f"Render failed for clip {clip.job_id}/{clip.id}: {e}")
                raise RenderFailed("Failed to render clip") from e
            except OSError as e:
                logger.error(f"Could not store render for clip {clip.job_id}/{clip.id}: {e}")
                raise RenderFailed("Failed to store rendered clip") from e
            finally:
                partial.unlink(missing_ok=True)
            
            await self.store.set_clip_artifact(clip.job_id, clip.id, str(target))
            logger.info(f"Rendered clip {clip.job_id}/{clip.id} -> {target.name}")
            return target
    
    async def render_thumbnail(self, clip: Clip, source_path: str | Path, index: int) -> Path:
        """
        Return a JPEG at one of the clip's thumbnail candidate timestamps.
        
        Raises:
            NotFound: If ``index`` is not a thumbnail candidate
            SourceMissing: If the original video is gone and no thumbnail exists
            RenderFailed: If ffmpeg fails
        """
        timestamps = clip.thumbnail_list
        if not 0 <= index < len(timestamps):
            raise NotFound("Thumbnail not found")
        
        target = self.thumbnail_path(clip.job_id, clip.id, index)
        source_path = Path(source_path)
        
        # Locked per thumbnail, independent of the clip's encodes
        async with self._guard((clip.job_id, clip.id, "thumb", index)):
            if target.is_file():
                return target
            if not source_path.is_file():
                raise SourceMissing("Source video is no longer available")
            
            target.parent.mkdir(parents=True, exist_ok=True)
            partial = target.with_name(f".{target.stem}.{uuid4().hex}.part{target.suffix}")
            try:
                await self._thumbnailer(source_path, partial, timestamps[index], clip.aspect_ratio)
                os.replace(partial, target)
            except (FFmpegError, OSError) as e:
                logger.warning(f"Thumbnail failed for clip {clip.job_id}/{clip.id}: {e}")
                raise RenderFailed("Failed to generate thumbnail") from e
            finally:
                partial.unlink(missing_ok=True)
            return target
