"""
Configuration management for the YT-Trimmer clip pipeline.
"""

import shutil
from pathlib import Path
from typing import List, Optional
from pydantic_settings import BaseSettings
from pydantic import Field
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()


class Settings(BaseSettings):
    """Application settings with environment variable support."""

    # Project paths
    output_dir: Path = Field(default_factory=lambda: Path("output"))
    logs_dir: Path = Field(default_factory=lambda: Path("logs"))

    # External engines
    ytdlp_binary: str = Field(default_factory=lambda: shutil.which("yt-dlp") or "yt-dlp")
    ffmpeg_binary: str = Field(default_factory=lambda: shutil.which("ffmpeg") or "ffmpeg")
    cookies_file: Optional[Path] = Field(default=None, description="Netscape cookies file passed to yt-dlp")
    resolver_timeout_seconds: int = Field(default=60, ge=1)
    engine_timeout_seconds: int = Field(default=1800, ge=1, description="Kill ffmpeg after this many seconds")

    # Clip policy
    max_duration_seconds: int = Field(default=600, ge=1, description="Longest accepted interval")
    max_intervals: int = Field(default=10, ge=1, le=50)
    supported_formats: List[str] = Field(default=["mp4", "mp3"])
    supported_qualities: List[str] = Field(default=["360", "720", "1080"])
    default_quality: str = Field(default="720")
    min_output_bytes: int = Field(default=1000, ge=0, description="Smallest plausible single-clip output")

    # Progress reporting
    progress_threshold: float = Field(default=5.0, ge=0, description="Minimum percent advance between clip updates")
    diagnostic_max_chars: int = Field(default=500, ge=0)
    error_message_max_chars: int = Field(default=200, ge=20)
    sse_poll_interval: float = Field(default=0.5, gt=0)

    # Task execution and retention
    max_concurrent_tasks: int = Field(default=4, ge=1, le=64)
    task_retention_seconds: int = Field(default=300, ge=0)
    auto_delete_after_download: bool = Field(default=True)
    stale_file_max_age_seconds: int = Field(default=3600, ge=60)
    cleanup_interval_seconds: int = Field(default=60, ge=1)

    # HTTP server
    host: str = Field(default="0.0.0.0")
    port: int = Field(default=3000)

    # Logging settings
    log_level: str = Field(default="INFO", description="Logging level")
    log_format: str = Field(default="json", description="Log format: json or text")
    log_to_file: bool = Field(default=True)

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = False


# Global settings instance
settings = Settings()


def get_settings() -> Settings:
    """Get the global settings instance."""
    return settings


def create_directories(active: Optional[Settings] = None) -> None:
    """Create output and log directories if they don't exist."""
    active = active or settings
    for directory in (active.output_dir, active.logs_dir):
        directory.mkdir(parents=True, exist_ok=True)
