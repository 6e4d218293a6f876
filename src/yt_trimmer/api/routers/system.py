from __future__ import annotations

import time
from shutil import which

from fastapi import APIRouter, Depends, HTTPException

from ... import __version__
from ...config import Settings
from ...services.pipeline import ClipPipeline
from ...utils.validation import sanitize_youtube_url
from ..deps import get_app_settings, get_pipeline


router = APIRouter(tags=["system"])


def _check_tool(binary: str) -> dict:
    return {"binary": binary, "installed": which(binary) is not None}


def _output_stats(settings: Settings) -> dict:
    total = 0
    file_count = 0
    try:
        for item in settings.output_dir.iterdir():
            if item.is_file():
                file_count += 1
                total += item.stat().st_size
    except OSError:
        pass
    return {
        "output_dir": str(settings.output_dir),
        "file_count": file_count,
        "total_size_mb": round(total / (1024 * 1024), 2),
    }


@router.get("/health")
def health(
    pipeline: ClipPipeline = Depends(get_pipeline),
    settings: Settings = Depends(get_app_settings),
) -> dict:
    return {
        "status": "OK",
        "message": "YT-Trimmer is running",
        "version": __version__,
        "timestamp": time.time(),
        "tasks": len(pipeline.registry),
        "output": _output_stats(settings),
        "tools": {
            "ffmpeg": _check_tool(settings.ffmpeg_binary),
            "yt_dlp": _check_tool(settings.ytdlp_binary),
        },
    }


@router.get("/video-info")
def video_info(
    url: str = "",
    pipeline: ClipPipeline = Depends(get_pipeline),
    settings: Settings = Depends(get_app_settings),
) -> dict:
    source_url = sanitize_youtube_url(url)
    if not source_url:
        raise HTTPException(status_code=400, detail="Invalid YouTube URL")

    data = pipeline.resolver.fetch_info(source_url).to_dict()
    data["formats"] = {"video": list(settings.supported_qualities), "audio": ["mp3"]}
    return {"success": True, "data": data}
