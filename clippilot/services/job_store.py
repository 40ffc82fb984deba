"""Job Store: the single source of truth for job and clip state.

Every mutation runs in its own transaction. Readers never see a job flip to
``ready`` before its clips are visible, because :meth:`JobStore.complete_job`
inserts the clips and changes the status in the same commit.
"""
import json
import logging
from datetime import datetime
from typing import List, Optional
from uuid import uuid4

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import async_sessionmaker
from sqlalchemy.orm import selectinload

from clippilot.db.database import async_session_maker
from clippilot.models.clip import Clip
from clippilot.models.job import Job, JobStage, JobStatus, SourceType
from clippilot.pipeline.domain import ClipCandidate, ClipOptions, MediaInfo, SourceDescriptor

logger = logging.getLogger(__name__)


def _clip_row(job_id: str, candidate: ClipCandidate) -> Clip:
    return Clip(
        job_id=job_id,
        id=candidate.id,
        title=candidate.title,
        start_sec=candidate.start_sec,
        end_sec=candidate.end_sec,
        duration_sec=candidate.duration,
        aspect_ratio=candidate.aspect_ratio,
        template=candidate.template,
        has_captions=candidate.has_captions,
        has_meme_hook=candidate.has_meme_hook,
        engagement=candidate.scores.engagement,
        clarity=candidate.scores.clarity,
        hook=candidate.scores.hook,
        captions=json.dumps([c.to_dict() for c in candidate.captions]),
        thumbnail_timestamps=json.dumps(candidate.thumbnail_candidates),
        clip_file_path=None,
    )


class JobStore:
    """Persistence for jobs and their clips."""
    
    def __init__(self, session_maker: async_sessionmaker = None):
        self._session_maker = session_maker or async_session_maker
    
    # =========================================================================
    # Jobs
    # =========================================================================
    
    async def create_job(
        self,
        source: SourceDescriptor,
        options: ClipOptions,
        media_info: MediaInfo,
        provider_name: str,
    ) -> Job:
        """Record a new job in the ``processing`` status."""
        job = Job(
            id=uuid4().hex,
            source_type=SourceType(source.type),
            source_path=str(source.path),
            source_url=source.url,
            title=source.title,
            source_platform=source.platform,
            options=json.dumps(options.to_dict()),
            video_duration=media_info.duration_sec,
            width=media_info.width,
            height=media_info.height,
            fps=media_info.fps,
            bitrate=media_info.bitrate,
            provider_name=provider_name,
            status=JobStatus.PROCESSING,
            stage=JobStage.CREATED,
        )
        async with self._session_maker() as session:
            session.add(job)
            await session.commit()
        
        logger.info(f"Created job {job.id} for {source.title}")
        return job
    
    async def get_job(self, job_id: str, with_clips: bool = False) -> Optional[Job]:
        """Get a job by ID, optionally with its clips loaded."""
        async with self._session_maker() as session:
            query = select(Job).where(Job.id == job_id)
            if with_clips:
                query = query.options(selectinload(Job.clips))
            result = await session.execute(query)
            return result.scalar_one_or_none()
    
    async def set_stage(self, job_id: str, stage: JobStage) -> bool:
        """Advance a processing job to ``stage``. No-op for terminal jobs."""
        async with self._session_maker() as session:
            result = await session.execute(
                update(Job)
                .where(Job.id == job_id, Job.status == JobStatus.PROCESSING)
                .values(stage=stage, updated_at=datetime.utcnow())
            )
            await session.commit()
            return result.rowcount > 0
    
    async def update_media_info(self, job_id: str, media_info: MediaInfo) -> None:
        """Refresh the probed video metadata of a job."""
        async with self._session_maker() as session:
            await session.execute(
                update(Job)
                .where(Job.id == job_id)
                .values(
                    video_duration=media_info.duration_sec,
                    width=media_info.width,
                    height=media_info.height,
                    fps=media_info.fps,
                    bitrate=media_info.bitrate,
                    updated_at=datetime.utcnow(),
                )
            )
            await session.commit()
    
    async def fail_job(self, job_id: str, kind: str, message: str) -> bool:
        """
        Move a processing job to ``failed``.
        
        Returns:
            False if the job was already terminal (terminal states never revert)
        """
        async with self._session_maker() as session:
            result = await session.execute(
                update(Job)
                .where(Job.id == job_id, Job.status == JobStatus.PROCESSING)
                .values(
                    status=JobStatus.FAILED,
                    stage=JobStage.FAILED,
                    error_kind=kind,
                    error_message=message,
                    updated_at=datetime.utcnow(),
                )
            )
            await session.commit()
            return result.rowcount > 0
    
    async def complete_job(self, job_id: str, candidates: List[ClipCandidate]) -> bool:
        """
        Persist all clips of a job and mark it ``ready`` in one transaction.
        
        Returns:
            False if the job was no longer processing; nothing is written then
        """
        async with self._session_maker() as session:
            result = await session.execute(
                update(Job)
                .where(Job.id == job_id, Job.status == JobStatus.PROCESSING)
                .values(
                    status=JobStatus.READY,
                    stage=JobStage.READY,
                    updated_at=datetime.utcnow(),
                )
            )
            if result.rowcount == 0:
                await session.rollback()
                return False
            
            for candidate in sorted(candidates, key=lambda c: c.start_sec):
                session.add(_clip_row(job_id, candidate))
            await session.commit()
        
        logger.info(f"Job {job_id} ready with {len(candidates)} clips")
        return True
    
    # =========================================================================
    # Clips
    # =========================================================================
    
    async def create_clip(self, job_id: str, candidate: ClipCandidate) -> Clip:
        """Insert a single clip."""
        return (await self.create_clips(job_id, [candidate]))[0]
    
    async def create_clips(self, job_id: str, candidates: List[ClipCandidate]) -> List[Clip]:
        """
        Insert several clips atomically.
        
        Raises:
            ValueError: If a clip id already exists in the job or the job is unknown
        """
        rows = [_clip_row(job_id, c) for c in candidates]
        async with self._session_maker() as session:
            session.add_all(rows)
            try:
                await session.commit()
            except IntegrityError as e:
                await session.rollback()
                raise ValueError(f"Cannot create clips for job {job_id}: {e.orig}") from e
        return rows
    
    async def get_clips_by_job(self, job_id: str) -> List[Clip]:
        """List the clips of a job in ascending start-time order."""
        async with self._session_maker() as session:
            result = await session.execute(
                select(Clip)
                .where(Clip.job_id == job_id)
                .order_by(Clip.start_sec, Clip.id)
            )
            return list(result.scalars().all())
    
    async def get_clip(self, job_id: str, clip_id: str) -> Optional[Clip]:
        """Get a clip by its job and clip ID."""
        async with self._session_maker() as session:
            return await session.get(Clip, (job_id, clip_id))
    
    async def set_clip_artifact(self, job_id: str, clip_id: str, path: str) -> bool:
        """
        Record the rendered artifact of a clip.
        
        The reference goes from absent to present exactly once; later calls
        leave the stored value untouched and return False.
        """
        async with self._session_maker() as session:
            result = await session.execute(
                update(Clip)
                .where(
                    Clip.job_id == job_id,
                    Clip.id == clip_id,
                    Clip.clip_file_path.is_(None),
                )
                .values(clip_file_path=path)
            )
            await session.commit()
            return result.rowcount > 0
