"""yt-dlp utilities for remote video sources."""
import asyncio
import logging
import re
from pathlib import Path
from typing import Optional
from urllib.parse import urlparse

from clippilot.config import settings

logger = logging.getLogger(__name__)


class YtdlpError(Exception):
    """yt-dlp related error."""
    pass


def is_valid_url(url: str) -> bool:
    """Check that a URL is an absolute http(s) URL."""
    parsed = urlparse(url)
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


def source_platform(url: str) -> str:
    """Hostname of a URL, used as the source platform label."""
    return urlparse(url).hostname or "url"


async def download_video(
    url: str,
    output_dir: Path,
    filename: str,
) -> Path:
    """
    Download a remote video, capped at 720p for processing efficiency.
    
    Args:
        url: Video page URL
        output_dir: Directory to save the video
        filename: Base filename without extension
        
    Returns:
        Path to downloaded video file
        
    Raises:
        YtdlpError: If the download fails
    """
    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)
    
    output_template = str(output_dir / f"{filename}.%(ext)s")
    
    cmd = [
        settings.ytdlp_path,
        "-f", "bv*[height<=720][ext=mp4]+ba[ext=m4a]/b[height<=720]/bv*+ba/b",
        "--merge-output-format", "mp4",
        "-o", output_template,
        "--no-playlist",
        "--newline",
        "--force-overwrites",
        url
    ]
    
    logger.info(f"Running yt-dlp command: {' '.join(cmd)}")
    
    proc = await asyncio.create_subprocess_exec(
        *cmd,
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.STDOUT
    )
    
    downloaded_path: Optional[Path] = None
    merged_path: Optional[Path] = None
    output_lines = []
    
    while True:
        line = await proc.stdout.readline()
        if not line:
            break
        
        line_str = line.decode("utf-8", errors="ignore").strip()
        output_lines.append(line_str)
        
        # Track the merged output path (more reliable than Destination)
        if "Merging formats into" in line_str:
            merge_match = re.search(r'Merging formats into "(.+)"', line_str)
            if merge_match:
                merged_path = Path(merge_match.group(1))
        
        # Track destination (fallback)
        elif "Destination:" in line_str:
            dest_match = re.search(r"Destination:\s+(.+)", line_str)
            if dest_match:
                downloaded_path = Path(dest_match.group(1))
    
    await proc.wait()
    
    if proc.returncode != 0:
        logger.error("yt-dlp failed with output:\n" + "\n".join(output_lines[-20:]))
        raise YtdlpError("Download failed - check URL and try again")
    
    for candidate in (merged_path, downloaded_path):
        if candidate is not None and candidate.exists():
            return candidate
    
    # Fall back to whatever matches the template
    matches = sorted(p for p in output_dir.glob(f"{filename}.*") if p.suffix != ".part")
    if matches:
        return matches[0]
    
    raise YtdlpError("Download finished but no output file was found")
