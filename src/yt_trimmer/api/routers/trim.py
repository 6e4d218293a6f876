from __future__ import annotations

import json
from pathlib import Path
from typing import Iterable, List, Optional, Union

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import FileResponse, StreamingResponse
from starlette.background import BackgroundTask

from ...config import Settings
from ...logging_config import get_logger
from ...models import ClipRequest, FormatConstraint, Interval, OutputFormat, TaskMode
from ...services.pipeline import ClipPipeline
from ...services.task_registry import RegistryViolation, Subscription, TaskRegistry
from ...utils.file_utils import remove_files, safe_filename
from ...utils.time_utils import InvalidInterval, InvalidTimeFormat
from ...utils.validation import choose_option, sanitize_youtube_url
from ..deps import get_app_settings, get_pipeline
from ..schemas import MultiTrimRequest, TaskAcceptedResponse, TrimRequest


router = APIRouter(tags=["trim"])
logger = get_logger(__name__)


def _constraint(settings: Settings, fmt: Optional[str], quality: Optional[Union[str, int]]) -> FormatConstraint:
    fmt = choose_option(fmt, settings.supported_formats, settings.supported_formats[0])
    quality = choose_option(
        None if quality is None else str(quality),
        settings.supported_qualities,
        settings.default_quality,
    )
    return FormatConstraint(output_format=OutputFormat(fmt), quality=int(quality))


def _source_url(url: str) -> str:
    sanitized = sanitize_youtube_url(url)
    if not sanitized:
        raise HTTPException(status_code=400, detail="Invalid YouTube URL")
    return sanitized


@router.post("/trim", response_model=TaskAcceptedResponse)
def trim(
    payload: TrimRequest,
    pipeline: ClipPipeline = Depends(get_pipeline),
    settings: Settings = Depends(get_app_settings),
) -> TaskAcceptedResponse:
    source_url = _source_url(payload.url)
    try:
        interval = Interval.parse(payload.start, payload.end, settings.max_duration_seconds)
    except (InvalidTimeFormat, InvalidInterval) as exc:
        raise HTTPException(status_code=400, detail=str(exc))

    request = ClipRequest(
        source_url=source_url,
        intervals=[interval],
        base_filename=safe_filename(payload.filename or "", default="video-trimmed"),
        mode=TaskMode.SINGLE,
        constraint=_constraint(settings, payload.format, payload.quality),
    )
    task_id = pipeline.submit(request)
    return TaskAcceptedResponse(
        taskId=task_id,
        message="Processing started. Connect to the progress stream for updates.",
    )


def _intervals(raw: List[List[str]], settings: Settings) -> List[Interval]:
    if not raw:
        raise HTTPException(status_code=400, detail="At least one time range is required")
    if len(raw) > settings.max_intervals:
        raise HTTPException(status_code=400, detail=f"Maximum {settings.max_intervals} time ranges allowed")

    intervals = []
    for index, pair in enumerate(raw, start=1):
        if len(pair) != 2:
            raise HTTPException(status_code=400, detail=f"Time range #{index}: expected [start, end]")
        try:
            intervals.append(Interval.parse(pair[0], pair[1], settings.max_duration_seconds))
        except (InvalidTimeFormat, InvalidInterval) as exc:
            raise HTTPException(status_code=400, detail=f"Time range #{index}: {exc}")
    return intervals


@router.post("/multi-trim", response_model=TaskAcceptedResponse)
def multi_trim(
    payload: MultiTrimRequest,
    pipeline: ClipPipeline = Depends(get_pipeline),
    settings: Settings = Depends(get_app_settings),
) -> TaskAcceptedResponse:
    source_url = _source_url(payload.url)
    intervals = _intervals(payload.intervals, settings)

    request = ClipRequest(
        source_url=source_url,
        intervals=intervals,
        base_filename=safe_filename(payload.filename or "", default="video-multi"),
        mode=TaskMode.MULTI,
        constraint=_constraint(settings, payload.format, payload.quality),
        concatenate=payload.concat,
    )
    task_id = pipeline.submit(request)
    return TaskAcceptedResponse(
        taskId=task_id,
        message=f"Processing {len(intervals)} time range(s). Connect to the progress stream for updates.",
    )


def _sse(payload: dict) -> str:
    return f"data: {json.dumps(payload)}\n\n"


def _event_stream(registry: TaskRegistry, subscription: Subscription, poll_interval: float) -> Iterable[str]:
    try:
        yield _sse({"taskId": subscription.task_id, "status": "connected", "progress": 0})
        for event in subscription.events(poll_interval):
            if event is None:
                yield ": keep-alive\n\n"
                continue
            yield _sse(event.to_dict())
    finally:
        registry.unsubscribe(subscription)


@router.get("/progress/{task_id}")
def progress_stream(
    task_id: str,
    pipeline: ClipPipeline = Depends(get_pipeline),
    settings: Settings = Depends(get_app_settings),
) -> StreamingResponse:
    try:
        subscription = pipeline.registry.subscribe(task_id)
    except RegistryViolation:
        raise HTTPException(status_code=404, detail="Task not found")
    return StreamingResponse(
        _event_stream(pipeline.registry, subscription, settings.sse_poll_interval),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "Connection": "keep-alive"},
    )


def _delete_after_download(registry: TaskRegistry, path: Path) -> None:
    registry.forget_file(path.name)
    if remove_files([path]):
        logger.info("Deleted file after download", filename=path.name)


@router.get("/download/{filename}")
def download(
    filename: str,
    pipeline: ClipPipeline = Depends(get_pipeline),
    settings: Settings = Depends(get_app_settings),
) -> FileResponse:
    path = pipeline.registry.published_file(filename)
    if path is None or not path.exists():
        raise HTTPException(status_code=404, detail="File not found")

    media_type = "audio/mpeg" if path.suffix == ".mp3" else "video/mp4"
    background = None
    if settings.auto_delete_after_download:
        background = BackgroundTask(_delete_after_download, pipeline.registry, path)
    return FileResponse(path, media_type=media_type, filename=path.name, background=background)
