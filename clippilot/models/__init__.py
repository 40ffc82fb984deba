# Models module
from clippilot.models.job import Job, JobStage, JobStatus, SourceType
from clippilot.models.clip import Clip

__all__ = ["Job", "JobStage", "JobStatus", "SourceType", "Clip"]
