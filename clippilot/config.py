"""Application configuration."""
from pathlib import Path
from typing import Literal
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings."""
    
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8"
    )
    
    # App settings
    app_name: str = "ClipPilot"
    debug: bool = False
    
    # Server settings
    host: str = "0.0.0.0"
    port: int = 8000
    
    # Database
    database_url: str = "sqlite+aiosqlite:///./data/clippilot.db"
    
    # Data directories
    data_dir: Path = Path("./data")
    uploads_dir: Path = Path("./data/uploads")
    downloads_dir: Path = Path("./data/downloads")
    audio_dir: Path = Path("./data/audio")
    renders_dir: Path = Path("./data/renders")
    
    # Source limits
    max_video_duration_sec: float = 3600.0
    max_upload_bytes: int = 500 * 1024 * 1024
    
    # Transcript provider (selected once at startup)
    transcript_provider: Literal["whisper", "uniform"] = "whisper"
    whisper_model: str = "small"
    whisper_device: str = "cpu"
    whisper_compute_type: str = "int8"
    transcript_timeout_sec: float = 900.0
    
    # Segmentation
    clip_gap_sec: float = 5.0
    max_clips_per_job: int = 10
    
    # FFmpeg settings
    ffmpeg_path: str = "ffmpeg"
    ffprobe_path: str = "ffprobe"
    
    # yt-dlp settings
    ytdlp_path: str = "yt-dlp"
    
    # Render settings
    render_quality: Literal["low", "medium", "high"] = "medium"
    render_video_codec: str = "libx264"
    render_audio_codec: str = "aac"
    render_preset: str = "veryfast"
    
    # Thumbnail settings
    thumbnail_format: str = "jpg"
    
    # Frontend
    frontend_url: str = "http://localhost:5173"


settings = Settings()

# Ensure directories exist
for _dir in (
    settings.data_dir,
    settings.uploads_dir,
    settings.downloads_dir,
    settings.audio_dir,
    settings.renders_dir,
):
    _dir.mkdir(parents=True, exist_ok=True)
