"""API routes."""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, File, Query, Request, UploadFile
from fastapi.responses import FileResponse, StreamingResponse

from clippilot.api.schemas import (
    HealthResponse,
    JobCreateRequest,
    JobCreateResponse,
    UploadResponse,
)
from clippilot.errors import InvalidSource
from clippilot.models.job import JobStatus
from clippilot.pipeline.domain import Quality
from clippilot.pipeline.orchestrator import PipelineOrchestrator
from clippilot.services.source_service import SourceService
from clippilot.utils.ffmpeg import check_ffmpeg_available, check_ffprobe_available

router = APIRouter()
logger = logging.getLogger(__name__)


def get_orchestrator(request: Request) -> PipelineOrchestrator:
    return request.app.state.orchestrator


def get_source_service(request: Request) -> SourceService:
    return request.app.state.source_service


# =============================================================================
# Health & System
# =============================================================================

@router.get("/health", response_model=HealthResponse)
async def health_check(orchestrator: PipelineOrchestrator = Depends(get_orchestrator)):
    """Check API health and dependencies."""
    ffmpeg_ok = check_ffmpeg_available()
    ffprobe_ok = check_ffprobe_available()
    
    return HealthResponse(
        status="healthy" if ffmpeg_ok and ffprobe_ok else "degraded",
        transcript_provider=orchestrator.provider.name,
        ffmpeg=ffmpeg_ok,
        ffprobe=ffprobe_ok,
    )


# =============================================================================
# Uploads
# =============================================================================

@router.post("/uploads", response_model=UploadResponse)
async def upload_video(
    file: UploadFile = File(...),
    sources: SourceService = Depends(get_source_service),
):
    """Store an uploaded video for a later job."""
    try:
        stored = await sources.save_upload(file)
    finally:
        await file.close()
    return UploadResponse(**stored)


# =============================================================================
# Jobs
# =============================================================================

@router.post("/jobs", response_model=JobCreateResponse)
async def create_job(
    data: JobCreateRequest,
    orchestrator: PipelineOrchestrator = Depends(get_orchestrator),
    sources: SourceService = Depends(get_source_service),
):
    """Create a clip job and start processing it in the background."""
    options = data.options.to_options().validate()
    
    if data.source.type == "file":
        if not data.source.file_id:
            raise InvalidSource("fileId is required for file sources")
        source = sources.resolve_upload(data.source.file_id)
    else:
        if not data.source.url:
            raise InvalidSource("url is required for url sources")
        source = await sources.resolve_url(data.source.url)
    
    job_id = await orchestrator.submit_job(source, options)
    return JobCreateResponse(job_id=job_id, status=JobStatus.PROCESSING.value)


@router.get("/jobs/{job_id}")
async def get_job(job_id: str, orchestrator: PipelineOrchestrator = Depends(get_orchestrator)):
    """Poll a job's status, metadata and clips."""
    view = await orchestrator.get_job_status(job_id)
    return view.to_dict()


@router.get("/jobs/{job_id}/clips/{clip_id}/media")
async def get_clip_media(
    job_id: str,
    clip_id: str,
    quality: Optional[Quality] = Query(None),
    orchestrator: PipelineOrchestrator = Depends(get_orchestrator),
):
    """Stream a clip's MP4, rendering it on first access."""
    chunks = await orchestrator.stream_clip_media(job_id, clip_id, quality)
    return StreamingResponse(
        chunks,
        media_type="video/mp4",
        headers={"Content-Disposition": f'inline; filename="{clip_id}.mp4"'},
    )


@router.get("/jobs/{job_id}/clips/{clip_id}/thumbnails/{index}")
async def get_clip_thumbnail(
    job_id: str,
    clip_id: str,
    index: int,
    orchestrator: PipelineOrchestrator = Depends(get_orchestrator),
):
    """Get a thumbnail candidate image for a clip."""
    path = await orchestrator.get_clip_thumbnail(job_id, clip_id, index)
    return FileResponse(path, media_type="image/jpeg")
