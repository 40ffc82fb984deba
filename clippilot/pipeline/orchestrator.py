"""Pipeline Orchestrator.

Drives one job through its stages::

    created -> probing -> extracting_audio -> transcribing -> segmenting
            -> persisting -> ready

Any stage failure moves the job straight to ``failed`` with the error kind
and message recorded; later stages are skipped and the temporary audio is
released. Runs execute in the background on the :class:`JobRunner`; callers
poll :meth:`PipelineOrchestrator.get_job_status`.
"""
import asyncio
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import AsyncIterator, List, Optional

from clippilot.config import Settings, settings as default_settings
from clippilot.errors import (
    ClipPilotError,
    ErrorKind,
    InvalidSource,
    NotFound,
    TranscriptUnavailable,
    VideoTooLong,
)
from clippilot.models.job import Job, JobStage, JobStatus
from clippilot.pipeline.domain import ClipOptions, SourceDescriptor
from clippilot.pipeline.media import MediaExtractor, MediaInspector
from clippilot.pipeline.renderer import ClipRenderer
from clippilot.pipeline.scoring import ClipScorer, HeuristicScorer
from clippilot.pipeline.segmentation import segment_transcript
from clippilot.pipeline.transcription import TranscriptProvider
from clippilot.services.job_store import JobStore
from clippilot.workers.job_runner import JobRunner

logger = logging.getLogger(__name__)

STREAM_CHUNK_SIZE = 64 * 1024


@dataclass
class JobStatusView:
    """What a caller sees when polling a job."""
    job_id: str
    status: str
    stage: str
    error: Optional[dict] = None
    video_meta: dict = field(default_factory=dict)
    clips: List[dict] = field(default_factory=list)
    
    def to_dict(self) -> dict:
        return {
            "jobId": self.job_id,
            "status": self.status,
            "stage": self.stage,
            "error": self.error,
            "videoMeta": self.video_meta,
            "clips": self.clips,
        }


class PipelineOrchestrator:
    """Owns job submission, the per-job state machine and clip media access."""
    
    def __init__(
        self,
        store: JobStore,
        inspector: MediaInspector,
        extractor: MediaExtractor,
        provider: TranscriptProvider,
        renderer: ClipRenderer,
        scorer: Optional[ClipScorer] = None,
        runner: Optional[JobRunner] = None,
        settings: Optional[Settings] = None,
    ):
        self.store = store
        self.inspector = inspector
        self.extractor = extractor
        self.provider = provider
        self.renderer = renderer
        self.scorer = scorer or HeuristicScorer()
        self.runner = runner or JobRunner()
        self.settings = settings or default_settings
        self.runner.set_interrupt_handler(self._record_interrupted)
    
    # =========================================================================
    # Submission
    # =========================================================================
    
    async def submit_job(self, source: SourceDescriptor, options: ClipOptions) -> str:
        """
        Validate a request, record the job and start it in the background.
        
        Nothing is recorded when validation fails.
        
        Returns:
            The new job id
        
        Raises:
            InvalidSource: Bad time range or options, missing source, or a
                window ending past the end of the video
            MediaUnreadable: If the source has no decodable video stream
            VideoTooLong: If the source exceeds the duration cap
        """
        options.validate()
        
        media_info = await self.inspector.inspect(source.path)
        
        max_duration = self.settings.max_video_duration_sec
        if media_info.duration_sec > max_duration:
            raise VideoTooLong(f"Video exceeds maximum duration of {max_duration / 60:g} minutes")
        if options.time_end_sec > media_info.duration_sec:
            raise InvalidSource("Time range exceeds video duration")
        
        job = await self.store.create_job(source, options, media_info, self.provider.name)
        self.runner.start(job.id, self.run_job(job.id, source.path, options))
        return job.id
    
    # =========================================================================
    # State machine
    # =========================================================================
    
    async def run_job(self, job_id: str, source_path: str | Path, options: ClipOptions) -> None:
        """
        Run every stage of a job once. Failures are recorded, never raised.
        
        Interruption (task cancellation) records an INTERNAL failure and
        re-raises so the runner can finish shutting down.
        """
        window = options.window
        logger.info(f"Job {job_id}: starting pipeline for {window}")
        
        try:
            await self._advance(job_id, JobStage.PROBING)
            media_info = await self.inspector.inspect(source_path)
            await self.store.update_media_info(job_id, media_info)
            if window.end > media_info.duration_sec:
                raise InvalidSource("Time range exceeds video duration")
            
            await self._advance(job_id, JobStage.EXTRACTING_AUDIO)
            async with self.extractor.audio_for(source_path, window) as audio_path:
                await self._advance(job_id, JobStage.TRANSCRIBING)
                transcript = await self._transcribe(job_id, audio_path, options)
            
            await self._advance(job_id, JobStage.SEGMENTING)
            candidates = segment_transcript(
                transcript,
                options,
                scorer=self.scorer,
                gap_sec=self.settings.clip_gap_sec,
                max_clips=self.settings.max_clips_per_job,
            )
            
            await self._advance(job_id, JobStage.PERSISTING)
            if not await self.store.complete_job(job_id, candidates):
                logger.warning(f"Job {job_id}: no longer processing, discarding {len(candidates)} clips")
                return
            
            logger.info(f"Job {job_id}: ready with {len(candidates)} clips")
        
        except asyncio.CancelledError:
            await self._fail(job_id, ErrorKind.INTERNAL, "Job was interrupted")
            raise
        except ClipPilotError as e:
            await self._fail(job_id, e.kind, e.message)
        except Exception as e:
            logger.exception(f"Job {job_id}: unexpected error: {e}")
            await self._fail(job_id, ErrorKind.INTERNAL, "Internal error")
    
    async def _advance(self, job_id: str, stage: JobStage) -> None:
        logger.info(f"Job {job_id}: {stage.value}")
        await self.store.set_stage(job_id, stage)
    
    async def _transcribe(self, job_id: str, audio_path: Path, options: ClipOptions):
        timeout = self.settings.transcript_timeout_sec
        try:
            transcript = await asyncio.wait_for(
                self.provider.transcribe(audio_path, options.window),
                timeout=timeout,
            )
        except asyncio.TimeoutError as e:
            raise TranscriptUnavailable(f"Transcript provider timed out after {timeout:g}s") from e
        except ClipPilotError:
            raise
        except Exception as e:
            logger.warning(f"Job {job_id}: transcript provider {self.provider.name} failed: {e}")
            raise TranscriptUnavailable("Transcript provider failed") from e
        
        logger.info(f"Job {job_id}: transcript has {len(transcript.segments)} segments")
        return transcript
    
    async def _fail(self, job_id: str, kind: ErrorKind | str, message: str) -> None:
        kind = kind.value if isinstance(kind, ErrorKind) else kind
        logger.error(f"Job {job_id} failed: {kind}: {message}")
        await self.store.fail_job(job_id, kind, message)
    
    async def _record_interrupted(self, job_id: str) -> None:
        await self.store.fail_job(job_id, ErrorKind.INTERNAL.value, "Job was interrupted")
    
    # =========================================================================
    # Queries
    # =========================================================================
    
    async def _require_job(self, job_id: str) -> Job:
        job = await self.store.get_job(job_id)
        if job is None:
            raise NotFound("Job not found")
        return job
    
    async def get_job_status(self, job_id: str) -> JobStatusView:
        """
        Current status of a job. Clips are listed only once it is ready.
        
        Raises:
            NotFound: For an unknown job id
        """
        job = await self._require_job(job_id)
        
        clips = []
        if job.status == JobStatus.READY:
            clips = [clip.to_dict() for clip in await self.store.get_clips_by_job(job_id)]
        
        error = None
        if job.status == JobStatus.FAILED:
            error = {"errorCode": job.error_kind, "message": job.error_message}
        
        return JobStatusView(
            job_id=job.id,
            status=job.status.value,
            stage=job.stage.value,
            error=error,
            video_meta=job.video_meta(),
            clips=clips,
        )
    
    async def get_clip_media(
        self,
        job_id: str,
        clip_id: str,
        quality: Optional[str] = None,
        aspect_ratio: Optional[str] = None,
    ) -> Path:
        """
        Rendered media for a clip, rendering it on first access.
        
        Raises:
            NotFound: For an unknown job or clip
            InvalidWindow / SourceMissing / RenderFailed: From the renderer
        """
        job = await self._require_job(job_id)
        clip = await self.store.get_clip(job_id, clip_id)
        if clip is None:
            raise NotFound("Clip not found")
        
        return await self.renderer.render(
            clip,
            job.source_path,
            aspect_ratio=aspect_ratio,
            quality=quality or self.settings.render_quality,
            source_duration=job.video_duration,
        )
    
    async def stream_clip_media(
        self,
        job_id: str,
        clip_id: str,
        quality: Optional[str] = None,
    ) -> AsyncIterator[bytes]:
        """
        Render (or reuse) the clip, then return an iterator over its bytes.
        
        Errors surface here, before any byte is produced.
        """
        path = await self.get_clip_media(job_id, clip_id, quality)
        return _iter_file(path)
    
    async def get_clip_thumbnail(self, job_id: str, clip_id: str, index: int) -> Path:
        """
        JPEG at one of the clip's thumbnail candidate timestamps.
        
        Raises:
            NotFound: For an unknown job, clip or thumbnail index
        """
        job = await self._require_job(job_id)
        clip = await self.store.get_clip(job_id, clip_id)
        if clip is None:
            raise NotFound("Clip not found")
        
        return await self.renderer.render_thumbnail(clip, job.source_path, index)


async def _iter_file(path: Path) -> AsyncIterator[bytes]:
    with open(path, "rb") as f:
        while True:
            chunk = await asyncio.to_thread(f.read, STREAM_CHUNK_SIZE)
            if not chunk:
                break
            yield chunk
