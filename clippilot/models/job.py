"""Job model: one processing run over one source video."""
import enum
import json
from datetime import datetime
from sqlalchemy import Column, Integer, String, DateTime, Enum, Float, Text
from sqlalchemy.orm import relationship

from clippilot.db.database import Base


class SourceType(str, enum.Enum):
    """Source type enumeration."""
    FILE = "file"
    URL = "url"


class JobStatus(str, enum.Enum):
    """Externally visible job status. Terminal once READY or FAILED."""
    PROCESSING = "processing"
    READY = "ready"
    FAILED = "failed"


class JobStage(str, enum.Enum):
    """Pipeline state machine stage."""
    CREATED = "created"
    PROBING = "probing"
    EXTRACTING_AUDIO = "extracting_audio"
    TRANSCRIBING = "transcribing"
    SEGMENTING = "segmenting"
    PERSISTING = "persisting"
    READY = "ready"
    FAILED = "failed"


class Job(Base):
    """Job model for one clip production run."""
    
    __tablename__ = "jobs"
    
    id = Column(String(32), primary_key=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)
    
    # Source information
    source_type = Column(Enum(SourceType), nullable=False)
    source_path = Column(String(4096), nullable=False)  # Resolved local file
    source_url = Column(String(2048), nullable=True)  # For URL sources
    title = Column(String(512), nullable=True)
    source_platform = Column(String(255), nullable=True)
    
    # Requested options (JSON)
    options = Column(Text, nullable=False)
    
    # Video metadata
    video_duration = Column(Float, nullable=True)
    width = Column(Integer, nullable=True)
    height = Column(Integer, nullable=True)
    fps = Column(Float, nullable=True)
    bitrate = Column(Integer, nullable=True)
    
    provider_name = Column(String(64), nullable=False)
    
    # Status
    status = Column(Enum(JobStatus), default=JobStatus.PROCESSING, nullable=False)
    stage = Column(Enum(JobStage), default=JobStage.CREATED, nullable=False)
    error_kind = Column(String(64), nullable=True)
    error_message = Column(String(4096), nullable=True)
    
    # Relationships
    clips = relationship(
        "Clip",
        back_populates="job",
        cascade="all, delete-orphan",
        order_by="Clip.start_sec",
    )
    
    def __repr__(self):
        return f"<Job(id={self.id}, status={self.status}, stage={self.stage})>"
    
    @property
    def options_dict(self) -> dict:
        return json.loads(self.options) if self.options else {}
    
    def video_meta(self) -> dict:
        """Video metadata as reported to callers."""
        return {
            "durationSec": self.video_duration,
            "width": self.width,
            "height": self.height,
            "fps": self.fps,
            "bitrate": self.bitrate,
            "title": self.title,
            "sourcePlatform": self.source_platform,
        }
