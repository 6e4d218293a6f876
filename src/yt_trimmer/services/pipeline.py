"""
Task pipeline orchestration.

A task moves through ``starting -> downloading -> trimming -> (cleaning) ->
complete`` and can drop into ``error`` from any non-terminal state. Each
task runs on a worker thread of a bounded pool; inside a task every step is
sequential, so the two resolved stream URLs are shared safely by all of its
intervals.

Files are only ever handed out through a published ``complete`` event. Any
failure deletes everything the task wrote before ``error`` is published.
"""

import itertools
import threading
import time
import uuid
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass, field
from functools import partial
from pathlib import Path
from typing import Dict, List, Optional

from ..config import Settings, get_settings
from ..exceptions import PipelineError
from ..logging_config import LoggerMixin
from ..models import ClipRequest, ProgressEvent, TaskMode, TaskState
from ..utils.file_utils import ensure_directory, get_file_size, remove_files
from ..utils.progress import SINGLE_CLIP_BAND, interval_band
from .clip_executor import ClipExecutor
from .concatenator import Concatenator
from .stream_resolver import StreamResolver
from .task_registry import RegistryViolation, TaskRegistry


MERGE_PERCENT = 90


class VerificationError(PipelineError):
    """The engine reported success but the output is missing or implausibly small."""
    pass


class OutputNamer:
    """
    Hands out final output paths that no other in-flight task holds.

    Names derive from the request's base filename. When a name is taken,
    either reserved by a running task or already on disk, ``-1``, ``-2``, ...
    is appended to the base until the whole set of names is free.
    """

    def __init__(self, output_dir: Path):
        self.output_dir = Path(output_dir)
        self._reserved = set()
        self._lock = threading.Lock()

    @staticmethod
    def _names(base: str, extension: str, parts: Optional[int]) -> List[str]:
        if parts is None:
            return [f"{base}.{extension}"]
        return [f"{base}_part{i}.{extension}" for i in range(1, parts + 1)]

    def reserve(self, base: str, extension: str, parts: Optional[int] = None) -> List[Path]:
        with self._lock:
            for n in itertools.count():
                candidate = base if n == 0 else f"{base}-{n}"
                names = self._names(candidate, extension, parts)
                if any(name in self._reserved or (self.output_dir / name).exists() for name in names):
                    continue
                self._reserved.update(names)
                return [self.output_dir / name for name in names]

    def release(self, paths: List[Path]) -> None:
        with self._lock:
            for path in paths:
                self._reserved.discard(Path(path).name)


@dataclass
class _TaskRun:
    """Per-run bookkeeping: what the task reserved and what it may have written."""
    task_id: str
    request: ClipRequest
    reserved: List[Path] = field(default_factory=list)
    produced: List[Path] = field(default_factory=list)


class ClipPipeline(LoggerMixin):
    """
    Drives clip tasks end to end.

    ``submit`` accepts a request and returns immediately; ``run`` is the
    synchronous state machine executed by the worker pool.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        registry: Optional[TaskRegistry] = None,
        resolver: Optional[StreamResolver] = None,
        executor: Optional[ClipExecutor] = None,
        concatenator: Optional[Concatenator] = None,
    ):
        self.settings = settings if settings is not None else get_settings()
        self.output_dir = ensure_directory(self.settings.output_dir)
        if registry is None:
            registry = TaskRegistry(
                retention_seconds=self.settings.task_retention_seconds,
                file_retention_seconds=self.settings.stale_file_max_age_seconds,
            )
        self.registry = registry
        self.resolver = resolver if resolver is not None else StreamResolver(self.settings)
        self.executor = executor if executor is not None else ClipExecutor(self.settings)
        self.concatenator = concatenator if concatenator is not None else Concatenator(self.settings)
        self.namer = OutputNamer(self.output_dir)

        self._pool = ThreadPoolExecutor(
            max_workers=self.settings.max_concurrent_tasks,
            thread_name_prefix="clip-task",
        )
        self._futures: Dict[str, Future] = {}
        self._futures_lock = threading.Lock()

        self.logger.info(
            "ClipPipeline initialized",
            output_dir=str(self.output_dir),
            workers=self.settings.max_concurrent_tasks,
        )

    # ---------------------------
    # Submission
    # ---------------------------

    @staticmethod
    def new_task_id(mode: TaskMode) -> str:
        prefix = "task" if mode is TaskMode.SINGLE else "multi"
        return f"{prefix}_{int(time.time() * 1000)}_{uuid.uuid4().hex[:9]}"

    def submit(self, request: ClipRequest) -> str:
        """
        Accept a request and schedule it.

        Returns:
            The task id; progress is read through ``registry.subscribe``
        """
        task_id = self.new_task_id(request.mode)
        self.registry.register(task_id, request.mode)
        self._publish(task_id, TaskState.STARTING, 0, "Task accepted")

        self.logger.info(
            "Processing clip request",
            task_id=task_id,
            mode=request.mode.value,
            intervals=[str(i) for i in request.intervals],
            format=request.constraint.output_format.value,
            quality=request.constraint.quality,
            concat=request.concatenate,
        )

        future = self._pool.submit(self.run, task_id, request)
        with self._futures_lock:
            self._futures[task_id] = future
        future.add_done_callback(partial(self._on_task_done, task_id))
        return task_id

    def _on_task_done(self, task_id: str, future: Future) -> None:
        with self._futures_lock:
            self._futures.pop(task_id, None)
        error = future.exception()
        if error is not None:
            self.logger.error("Task worker crashed", task_id=task_id, error=str(error))

    def join(self, task_id: str, timeout: Optional[float] = None) -> None:
        """Block until a submitted task has finished (no-op if already done)."""
        with self._futures_lock:
            future = self._futures.get(task_id)
        if future is not None:
            future.result(timeout=timeout)

    def shutdown(self, wait: bool = True) -> None:
        self._pool.shutdown(wait=wait)

    # ---------------------------
    # Execution
    # ---------------------------

    def run(self, task_id: str, request: ClipRequest) -> Optional[List[Path]]:
        """
        Execute one task to its terminal event.

        Every exception is caught here and becomes a single ``error`` event
        after the task's files are deleted.

        Returns:
            The published output paths, or None if the task failed
        """
        task = _TaskRun(task_id=task_id, request=request)
        try:
            if request.mode is TaskMode.SINGLE:
                return self._run_single(task)
            return self._run_multi(task)
        except Exception as exc:
            self.logger.error(
                "Task failed",
                task_id=task_id,
                error=str(exc),
                error_type=type(exc).__name__,
                exc_info=not isinstance(exc, PipelineError),
            )
            removed = remove_files(task.produced)
            if removed:
                self.logger.info("Cleaned up task outputs", task_id=task_id, count=len(removed))
            try:
                self._publish(task_id, TaskState.ERROR, 0, self._error_message(exc))
            except RegistryViolation as violation:
                self.logger.error("Could not publish task failure", task_id=task_id, error=str(violation))
            return None
        finally:
            self.namer.release(task.reserved)

    def _run_single(self, task: _TaskRun) -> List[Path]:
        request = task.request
        interval = request.intervals[0]

        self._publish(task.task_id, TaskState.DOWNLOADING, 5, "Fetching video information...")
        self._publish(task.task_id, TaskState.DOWNLOADING, 10, "Resolving stream URLs...")
        stream = self.resolver.resolve(request.source_url, request.constraint)
        self._publish(task.task_id, TaskState.DOWNLOADING, 20, "Stream URLs obtained")

        output = self._reserve(task, request.base_filename)[0]

        self._publish(task.task_id, TaskState.TRIMMING, 30, "Processing and trimming video...")
        task.produced.append(output)
        self.executor.clip(
            stream,
            interval,
            request.constraint,
            output,
            band=SINGLE_CLIP_BAND,
            on_progress=partial(self._clip_progress, task.task_id, "Trimming video"),
        )

        self._publish(task.task_id, TaskState.CLEANING, 95, "Verifying output file...")
        size = self._verify(output, self.settings.min_output_bytes)
        self.logger.info("File verified", task_id=task.task_id, size=size)

        return self._complete(task, [output], "Done! File ready for download")

    def _run_multi(self, task: _TaskRun) -> List[Path]:
        request = task.request
        total = len(request.intervals)

        self._publish(task.task_id, TaskState.DOWNLOADING, 5, "Resolving stream URLs...")
        stream = self.resolver.resolve(request.source_url, request.constraint)

        merged = None
        if request.merges_output:
            merged = self._reserve(task, request.base_filename)[0]
            parts = [
                self.output_dir / f"temp_{task.task_id}_part{i}.{request.extension}"
                for i in range(1, total + 1)
            ]
        elif request.concatenate:
            parts = self._reserve(task, request.base_filename)
        else:
            parts = self._reserve(task, request.base_filename, parts=total)

        for index, (interval, part) in enumerate(zip(request.intervals, parts)):
            band = interval_band(index, total)
            label = f"Trimming part {index + 1} of {total}"
            self._publish(task.task_id, TaskState.TRIMMING, int(band[0]), f"{label}...")
            task.produced.append(part)
            self.executor.clip(
                stream,
                interval,
                request.constraint,
                part,
                band=band,
                on_progress=partial(self._clip_progress, task.task_id, label),
            )
            self._verify(part, 1)
            self.logger.info(f"Part {index + 1} completed", task_id=task.task_id)

        if merged is None:
            if len(parts) == 1:
                return self._complete(task, parts, "Done! File ready for download")
            return self._complete(task, parts, f"Done! {total} files ready for download")

        self._publish(task.task_id, TaskState.TRIMMING, MERGE_PERCENT, "Merging all parts...")
        task.produced.append(merged)
        self.concatenator.concat(
            parts,
            merged,
            manifest_path=self.output_dir / f"temp_{task.task_id}_concat.txt",
        )
        self._verify(merged, 1)
        return self._complete(task, [merged], "Done! File ready for download")

    # ---------------------------
    # Helpers
    # ---------------------------

    def _reserve(self, task: _TaskRun, base: str, parts: Optional[int] = None) -> List[Path]:
        paths = self.namer.reserve(base, task.request.extension, parts=parts)
        task.reserved.extend(paths)
        return paths

    def _complete(self, task: _TaskRun, outputs: List[Path], message: str) -> List[Path]:
        names = [path.name for path in outputs]
        self._publish(
            task.task_id,
            TaskState.COMPLETE,
            100,
            message,
            filename=names[0],
            files=names,
            output_paths=outputs,
        )
        self.logger.info("Task completed successfully", task_id=task.task_id, outputs=names)
        return outputs

    def _clip_progress(self, task_id: str, label: str, percent: int, fraction: float) -> None:
        self._publish(task_id, TaskState.TRIMMING, percent, f"{label}... {round(fraction * 100)}%")

    def _publish(self, task_id: str, state: TaskState, percent: int, message: str, **extra) -> ProgressEvent:
        output_paths = extra.pop("output_paths", None)
        event = ProgressEvent(task_id=task_id, state=state, percent=percent, message=message, **extra)
        return self.registry.publish(task_id, event, output_paths=output_paths)

    @staticmethod
    def _verify(path: Path, min_bytes: int) -> int:
        if not path.exists():
            raise VerificationError(f"Output file {path.name} was not created")
        size = get_file_size(path)
        if size < max(min_bytes, 1):
            raise VerificationError(f"Output file {path.name} is too small ({size} bytes), clipping probably failed")
        return size

    def _error_message(self, exc: Exception) -> str:
        limit = self.settings.error_message_max_chars
        message = f"Error: {str(exc) or type(exc).__name__}"
        if len(message) > limit:
            message = message[:limit - 3] + "..."
        return message
