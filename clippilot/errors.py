"""Error kinds surfaced by the clip pipeline.

Every failure that reaches a caller is one of a fixed set of kinds plus a
human-readable message. Infrastructure errors (``FFmpegError``, ``YtdlpError``)
are translated into these kinds by the pipeline wrappers.
"""
import enum
import logging

logger = logging.getLogger(__name__)


class ErrorKind(str, enum.Enum):
    """Boundary error codes."""
    INVALID_SOURCE = "INVALID_SOURCE"
    MEDIA_UNREADABLE = "MEDIA_UNREADABLE"
    EXTRACTION_FAILED = "EXTRACTION_FAILED"
    TRANSCRIPT_UNAVAILABLE = "TRANSCRIPT_UNAVAILABLE"
    RENDER_FAILED = "RENDER_FAILED"
    SOURCE_MISSING = "SOURCE_MISSING"
    VIDEO_TOO_LONG = "VIDEO_TOO_LONG"
    INVALID_WINDOW = "INVALID_WINDOW"
    DOWNLOAD_FAILED = "DOWNLOAD_FAILED"
    NOT_FOUND = "NOT_FOUND"
    INTERNAL = "INTERNAL"


class ClipPilotError(Exception):
    """Base class for pipeline errors."""
    
    kind: ErrorKind = ErrorKind.INTERNAL
    
    def __init__(self, message: str):
        super().__init__(message)
        self.message = message
    
    def to_dict(self) -> dict:
        """Convert to the boundary payload."""
        return {"errorCode": self.kind.value, "message": self.message}


class InvalidSource(ClipPilotError):
    kind = ErrorKind.INVALID_SOURCE


class MediaUnreadable(ClipPilotError):
    kind = ErrorKind.MEDIA_UNREADABLE


class ExtractionFailed(ClipPilotError):
    kind = ErrorKind.EXTRACTION_FAILED


class TranscriptUnavailable(ClipPilotError):
    kind = ErrorKind.TRANSCRIPT_UNAVAILABLE


class RenderFailed(ClipPilotError):
    kind = ErrorKind.RENDER_FAILED


class SourceMissing(ClipPilotError):
    kind = ErrorKind.SOURCE_MISSING


class VideoTooLong(ClipPilotError):
    kind = ErrorKind.VIDEO_TOO_LONG


class InvalidWindow(ClipPilotError):
    kind = ErrorKind.INVALID_WINDOW


class DownloadFailed(ClipPilotError):
    kind = ErrorKind.DOWNLOAD_FAILED


class NotFound(ClipPilotError):
    kind = ErrorKind.NOT_FOUND


class Internal(ClipPilotError):
    kind = ErrorKind.INTERNAL


def to_error_payload(exc: BaseException) -> dict:
    """
    Convert any exception into ``{errorCode, message}``.
    
    Unexpected exceptions are reported as INTERNAL with a generic message so
    no stack traces or filesystem paths leak to callers.
    """
    if isinstance(exc, ClipPilotError):
        return exc.to_dict()
    logger.debug(f"Mapping unexpected {type(exc).__name__} to INTERNAL")
    return {"errorCode": ErrorKind.INTERNAL.value, "message": "Internal error"}
