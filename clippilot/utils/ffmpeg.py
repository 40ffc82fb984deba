"""FFmpeg and ffprobe utilities."""
import asyncio
import json
import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from clippilot.config import settings


# Output frame for each aspect ratio; "auto" keeps the source frame
ASPECT_DIMENSIONS: Dict[str, Tuple[int, int]] = {
    "9:16": (1080, 1920),
    "16:9": (1920, 1080),
    "1:1": (1080, 1080),
}

# (video bitrate, audio bitrate)
QUALITY_BITRATES: Dict[str, Tuple[str, str]] = {
    "low": ("1M", "64k"),
    "medium": ("2.5M", "128k"),
    "high": ("5M", "192k"),
}


@dataclass
class VideoInfo:
    """Video metadata container."""
    duration: float
    width: int
    height: int
    fps: float
    video_codec: str
    audio_codec: Optional[str]
    format_name: str
    bit_rate: Optional[int]


class FFmpegError(Exception):
    """FFmpeg related error."""
    pass


def check_ffmpeg_available() -> bool:
    """Check if ffmpeg is available."""
    return shutil.which(settings.ffmpeg_path) is not None


def check_ffprobe_available() -> bool:
    """Check if ffprobe is available."""
    return shutil.which(settings.ffprobe_path) is not None


def parse_frame_rate(value: Optional[str]) -> float:
    """Parse an ffprobe ``r_frame_rate`` such as ``30000/1001``."""
    if not value:
        return 30.0
    if "/" in value:
        num, den = value.split("/", 1)
        try:
            return float(num) / float(den) if float(den) > 0 else 30.0
        except ValueError:
            return 30.0
    try:
        return float(value)
    except ValueError:
        return 30.0


def parse_probe_output(data: dict) -> VideoInfo:
    """
    Build VideoInfo from ffprobe's JSON output.
    
    Raises:
        FFmpegError: If there is no video stream
    """
    video_stream = None
    audio_stream = None
    for stream in data.get("streams", []):
        if stream.get("codec_type") == "video" and video_stream is None:
            video_stream = stream
        elif stream.get("codec_type") == "audio" and audio_stream is None:
            audio_stream = stream
    
    if not video_stream:
        raise FFmpegError("No video stream found")
    
    fmt = data.get("format", {})
    
    # Get duration
    duration = float(fmt.get("duration", 0) or 0)
    if duration == 0:
        duration = float(video_stream.get("duration", 0) or 0)
    
    return VideoInfo(
        duration=duration,
        width=int(video_stream.get("width", 0)),
        height=int(video_stream.get("height", 0)),
        fps=parse_frame_rate(video_stream.get("r_frame_rate")),
        video_codec=video_stream.get("codec_name", "unknown"),
        audio_codec=audio_stream.get("codec_name") if audio_stream else None,
        format_name=fmt.get("format_name", "unknown"),
        bit_rate=int(fmt.get("bit_rate", 0) or 0) or None,
    )


async def get_video_info(video_path: str | Path) -> VideoInfo:
    """
    Get video metadata using ffprobe.
    
    Args:
        video_path: Path to video file
        
    Returns:
        VideoInfo with video metadata
        
    Raises:
        FFmpegError: If ffprobe fails
    """
    video_path = Path(video_path)
    if not video_path.exists():
        raise FFmpegError(f"Video file not found: {video_path}")
    
    cmd = [
        settings.ffprobe_path,
        "-v", "quiet",
        "-print_format", "json",
        "-show_format",
        "-show_streams",
        str(video_path)
    ]
    
    try:
        proc = await asyncio.create_subprocess_exec(
            *cmd,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE
        )
        stdout, stderr = await proc.communicate()
        
        if proc.returncode != 0:
            raise FFmpegError(f"ffprobe failed: {stderr.decode(errors='ignore')}")
        
        return parse_probe_output(json.loads(stdout.decode()))
    except json.JSONDecodeError as e:
        raise FFmpegError(f"Failed to parse ffprobe output: {e}")
    except FFmpegError:
        raise
    except Exception as e:
        raise FFmpegError(f"ffprobe error: {e}")


async def extract_audio(
    video_path: str | Path,
    output_path: str | Path,
    start_time: float,
    end_time: float,
) -> Path:
    """
    Extract a mono 16 kHz WAV track for ``[start_time, end_time)``.
    
    Returns:
        Path to the audio file
    """
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    
    cmd = [
        settings.ffmpeg_path,
        "-y",
        "-ss", f"{start_time:.3f}",
        "-i", str(video_path),
        "-t", f"{end_time - start_time:.3f}",
        "-vn",
        "-acodec", "pcm_s16le",
        "-ac", "1",
        "-ar", "16000",
        str(output_path)
    ]
    
    proc = await asyncio.create_subprocess_exec(
        *cmd,
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.PIPE
    )
    
    _, stderr = await proc.communicate()
    
    if proc.returncode != 0:
        raise FFmpegError(f"Audio extraction failed: {stderr.decode(errors='ignore')}")
    
    return output_path


def build_aspect_filter(aspect_ratio: str) -> Optional[str]:
    """Scale-and-crop filter for an aspect ratio, or None for ``auto``."""
    dims = ASPECT_DIMENSIONS.get(aspect_ratio)
    if dims is None:
        return None
    width, height = dims
    return (
        f"scale={width}:{height}:force_original_aspect_ratio=increase,"
        f"crop={width}:{height},setsar=1"
    )


def build_render_command(
    source_path: str | Path,
    output_path: str | Path,
    start_time: float,
    end_time: float,
    aspect_ratio: str = "auto",
    quality: str = "medium",
) -> List[str]:
    """Build the ffmpeg command that trims, reframes and encodes one clip."""
    video_bitrate, audio_bitrate = QUALITY_BITRATES.get(quality, QUALITY_BITRATES["medium"])
    
    cmd = [
        settings.ffmpeg_path,
        "-y",
        "-ss", f"{start_time:.3f}",
        "-i", str(source_path),
        "-t", f"{end_time - start_time:.3f}",
    ]
    
    video_filter = build_aspect_filter(aspect_ratio)
    if video_filter:
        cmd += ["-vf", video_filter]
    
    cmd += [
        "-c:v", settings.render_video_codec,
        "-preset", settings.render_preset,
        "-b:v", video_bitrate,
        "-c:a", settings.render_audio_codec,
        "-b:a", audio_bitrate,
        "-pix_fmt", "yuv420p",
        "-movflags", "+faststart",
        "-f", "mp4",
        str(output_path)
    ]
    return cmd


async def render_clip(
    source_path: str | Path,
    output_path: str | Path,
    start_time: float,
    end_time: float,
    aspect_ratio: str = "auto",
    quality: str = "medium",
) -> Path:
    """
    Encode one clip from the source video.
    
    Args:
        source_path: Path to source video
        output_path: Path for output file
        start_time: Start time in seconds
        end_time: End time in seconds
        aspect_ratio: Target frame (``9:16``, ``16:9``, ``1:1`` or ``auto``)
        quality: ``low``, ``medium`` or ``high``
        
    Returns:
        Path to the encoded clip
    """
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    
    cmd = build_render_command(
        source_path, output_path, start_time, end_time, aspect_ratio, quality
    )
    
    proc = await asyncio.create_subprocess_exec(
        *cmd,
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.PIPE
    )
    
    _, stderr = await proc.communicate()
    
    if proc.returncode != 0:
        raise FFmpegError(f"Render failed: {stderr.decode(errors='ignore')[-2000:]}")
    
    return output_path


async def generate_thumbnail(
    video_path: str | Path,
    output_path: str | Path,
    timestamp: float,
    aspect_ratio: str = "auto",
) -> Path:
    """
    Generate a thumbnail from a video at a specific timestamp.
    
    Args:
        video_path: Path to video file
        output_path: Path to save thumbnail
        timestamp: Time in seconds to capture
        aspect_ratio: Frame the thumbnail like the clip
        
    Returns:
        Path to generated thumbnail
    """
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    
    cmd = [
        settings.ffmpeg_path,
        "-y",  # Overwrite
        "-ss", f"{timestamp:.3f}",
        "-i", str(video_path),
        "-vframes", "1",
    ]
    video_filter = build_aspect_filter(aspect_ratio)
    if video_filter:
        cmd += ["-vf", video_filter]
    cmd += ["-q:v", "2", "-f", "image2", str(output_path)]
    
    proc = await asyncio.create_subprocess_exec(
        *cmd,
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.PIPE
    )
    
    _, stderr = await proc.communicate()
    
    if proc.returncode != 0:
        raise FFmpegError(f"Thumbnail generation failed: {stderr.decode(errors='ignore')}")
    
    return output_path
