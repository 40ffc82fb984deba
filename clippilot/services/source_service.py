"""Source resolution: turns uploads and URLs into local source files."""
import logging
import re
from pathlib import Path
from typing import Optional
from uuid import uuid4

from clippilot.config import settings
from clippilot.errors import DownloadFailed, InvalidSource
from clippilot.pipeline.domain import SourceDescriptor
from clippilot.utils.ytdlp import YtdlpError, download_video, is_valid_url, source_platform

logger = logging.getLogger(__name__)

ALLOWED_VIDEO_TYPES = (
    "video/mp4",
    "video/quicktime",
    "video/x-msvideo",
    "video/x-matroska",
    "video/webm",
    "video/mpeg",
)
UPLOAD_CHUNK_SIZE = 1024 * 1024

_FILE_ID_RE = re.compile(r"^[0-9a-f]{32}(\.[A-Za-z0-9]{1,8})?$")


class SourceService:
    """Stores uploads and downloads remote videos into the data directories."""
    
    def __init__(
        self,
        uploads_dir: Optional[Path] = None,
        downloads_dir: Optional[Path] = None,
        max_upload_bytes: Optional[int] = None,
    ):
        self.uploads_dir = Path(uploads_dir or settings.uploads_dir)
        self.downloads_dir = Path(downloads_dir or settings.downloads_dir)
        self.max_upload_bytes = max_upload_bytes or settings.max_upload_bytes
    
    async def save_upload(self, upload) -> dict:
        """
        Store an uploaded video under a fresh file id.
        
        Args:
            upload: Object with ``filename``, ``content_type`` and an async
                ``read(size)``, such as FastAPI's ``UploadFile``
            
        Returns:
            ``{fileId, size, originalName}``
            
        Raises:
            InvalidSource: For non-video types or files over the size limit
        """
        filename = upload.filename
        if upload.content_type not in ALLOWED_VIDEO_TYPES:
            raise InvalidSource("Invalid file type. Only video files are allowed.")
        
        suffix = Path(filename or "").suffix.lower()
        if not re.fullmatch(r"\.[a-z0-9]{1,8}", suffix):
            suffix = ".mp4"
        file_id = f"{uuid4().hex}{suffix}"
        dest_path = self.uploads_dir / file_id
        self.uploads_dir.mkdir(parents=True, exist_ok=True)
        
        size = 0
        try:
            with open(dest_path, "wb") as f:
                while True:
                    chunk = await upload.read(UPLOAD_CHUNK_SIZE)
                    if not chunk:
                        break
                    size += len(chunk)
                    if size > self.max_upload_bytes:
                        raise InvalidSource(
                            f"File exceeds the {self.max_upload_bytes // (1024 * 1024)}MB upload limit"
                        )
                    f.write(chunk)
        except BaseException:
            dest_path.unlink(missing_ok=True)
            raise
        
        logger.info(f"Stored upload {file_id} ({size} bytes)")
        return {"fileId": file_id, "size": size, "originalName": filename}
    
    def resolve_upload(self, file_id: str) -> SourceDescriptor:
        """
        Map an upload file id to its stored path.
        
        Raises:
            InvalidSource: If the id is malformed or no such upload exists
        """
        if not file_id or not _FILE_ID_RE.match(file_id):
            raise InvalidSource("Invalid file id")
        path = self.uploads_dir / file_id
        if not path.is_file():
            raise InvalidSource("Uploaded file not found")
        return SourceDescriptor(type="file", path=path, title=path.name, platform="file")
    
    async def resolve_url(self, url: str) -> SourceDescriptor:
        """
        Download a remote video into the downloads directory.
        
        Raises:
            InvalidSource: If the URL is not an absolute http(s) URL
            DownloadFailed: If yt-dlp cannot fetch it
        """
        if not url or not is_valid_url(url):
            raise InvalidSource("Invalid video URL")
        
        try:
            path = await download_video(url, self.downloads_dir, uuid4().hex)
        except YtdlpError as e:
            logger.warning(f"Download failed for {url}: {e}")
            raise DownloadFailed("Failed to download video from URL") from e
        
        return SourceDescriptor(
            type="url",
            path=path,
            url=url,
            title=path.name,
            platform=source_platform(url),
        )
