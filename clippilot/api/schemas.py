"""Pydantic schemas for API requests and responses.

Field names follow the Python side; aliases carry the camelCase names used
on the wire.
"""
from typing import Literal, Optional
from pydantic import BaseModel, Field

from clippilot.pipeline.domain import ClipOptions


# =============================================================================
# Job Schemas
# =============================================================================

class SourceRequest(BaseModel):
    """Where the source video comes from."""
    type: Literal["file", "url"]
    file_id: Optional[str] = Field(None, alias="fileId", description="ID returned by /uploads")
    url: Optional[str] = Field(None, description="Remote video URL")
    
    class Config:
        populate_by_name = True


class ClipOptionsRequest(BaseModel):
    """Clip generation options."""
    time_start_sec: float = Field(..., alias="timeStartSec")
    time_end_sec: float = Field(..., alias="timeEndSec")
    clip_length_preset: Literal["short", "medium", "long", "custom"] = Field(
        "short", alias="clipLengthPreset"
    )
    clip_length_min_sec: Optional[float] = Field(None, alias="clipLengthMinSec")
    clip_length_max_sec: Optional[float] = Field(None, alias="clipLengthMaxSec")
    aspect_ratio: Literal["9:16", "16:9", "1:1", "auto"] = Field("9:16", alias="aspectRatio")
    template: Literal["clean", "creator", "meme"] = "clean"
    meme_hook: bool = Field(False, alias="memeHook")
    game_mode: bool = Field(False, alias="gameMode")
    hook_title: bool = Field(False, alias="hookTitle")
    call_to_action: bool = Field(False, alias="callToAction")
    background_music: bool = Field(False, alias="backgroundMusic")
    captions_enabled: bool = Field(True, alias="captionsEnabled")
    words_per_caption: int = Field(5, alias="wordsPerCaption")
    highlight_keywords: bool = Field(False, alias="highlightKeywords")
    auto_thumbnail: bool = Field(True, alias="autoThumbnail")
    
    class Config:
        populate_by_name = True
    
    def to_options(self) -> ClipOptions:
        return ClipOptions(**self.model_dump())


class JobCreateRequest(BaseModel):
    """Request to create a clip job."""
    source: SourceRequest
    options: ClipOptionsRequest


class JobCreateResponse(BaseModel):
    """Job creation response."""
    job_id: str = Field(..., alias="jobId")
    status: str
    
    class Config:
        populate_by_name = True


# =============================================================================
# Upload Schemas
# =============================================================================

class UploadResponse(BaseModel):
    """Stored upload."""
    file_id: str = Field(..., alias="fileId")
    size: int
    original_name: Optional[str] = Field(None, alias="originalName")
    
    class Config:
        populate_by_name = True


# =============================================================================
# System Schemas
# =============================================================================

class HealthResponse(BaseModel):
    """Health check response."""
    status: str
    transcript_provider: str = Field(..., alias="transcriptProvider")
    ffmpeg: bool
    ffprobe: bool
    
    class Config:
        populate_by_name = True
