"""Clip model: one scored candidate highlight of a job."""
import json
from sqlalchemy import Column, String, Float, Boolean, ForeignKey, Text
from sqlalchemy.orm import relationship

from clippilot.db.database import Base


class Clip(Base):
    """Clip model. Identity is unique within its job."""
    
    __tablename__ = "clips"
    
    job_id = Column(String(32), ForeignKey("jobs.id", ondelete="CASCADE"), primary_key=True)
    id = Column(String(64), primary_key=True)
    
    title = Column(String(512), nullable=False)
    
    # Time range in the source video
    start_sec = Column(Float, nullable=False, index=True)
    end_sec = Column(Float, nullable=False)
    duration_sec = Column(Float, nullable=False)
    
    aspect_ratio = Column(String(8), nullable=False)
    template = Column(String(32), nullable=False)
    has_captions = Column(Boolean, default=False, nullable=False)
    has_meme_hook = Column(Boolean, default=False, nullable=False)
    
    # Scores
    engagement = Column(Float, nullable=False)
    clarity = Column(Float, nullable=False)
    hook = Column(Float, nullable=False)
    
    # JSON payloads
    captions = Column(Text, nullable=False, default="[]")
    thumbnail_timestamps = Column(Text, nullable=False, default="[]")
    
    # Rendered artifact, set once on first render
    clip_file_path = Column(String(4096), nullable=True)
    
    # Relationships
    job = relationship("Job", back_populates="clips")
    
    def __repr__(self):
        return f"<Clip(job={self.job_id}, id={self.id}, {self.start_sec:.2f}-{self.end_sec:.2f})>"
    
    @property
    def caption_list(self) -> list:
        return json.loads(self.captions or "[]")
    
    @property
    def thumbnail_list(self) -> list:
        return json.loads(self.thumbnail_timestamps or "[]")
    
    def to_dict(self):
        """Convert to dictionary."""
        return {
            "id": self.id,
            "jobId": self.job_id,
            "title": self.title,
            "startSec": self.start_sec,
            "endSec": self.end_sec,
            "durationSec": self.duration_sec,
            "aspectRatio": self.aspect_ratio,
            "template": self.template,
            "hasCaptions": self.has_captions,
            "hasMemeHook": self.has_meme_hook,
            "scores": {
                "engagement": self.engagement,
                "clarity": self.clarity,
                "hook": self.hook,
            },
            "captions": self.caption_list,
            "thumbnailCandidates": self.thumbnail_list,
            "rendered": self.clip_file_path is not None,
        }
