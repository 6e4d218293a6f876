"""
Task registry and progress bus.

The registry is the single owner of task state. Pipeline workers publish
events into it; at most one observer per task reads them back through a
``Subscription``. Publishing never waits on the observer: events go into an
unbounded queue, so a stalled or vanished client cannot hold up a worker.
"""

import queue
import threading
import time
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Dict, Iterator, List, Optional, Sequence, Tuple

from ..exceptions import PipelineError
from ..logging_config import LoggerMixin
from ..models import ProgressEvent, TaskMode, TaskState
from ..utils.file_utils import remove_files


class RegistryViolation(PipelineError):
    """A caller broke the registry contract (unknown task, publish after terminal, ...)."""
    pass


_CLOSED = object()


class Subscription:
    """
    A live, single-use view of one task's events.

    The last known event (if any) is queued at creation so an observer that
    joins late starts from the current state.
    """

    def __init__(self, task_id: str, snapshot: Optional[ProgressEvent] = None):
        self.task_id = task_id
        self._queue: "queue.Queue" = queue.Queue()
        self._closed = threading.Event()
        if snapshot is not None:
            self._queue.put_nowait(snapshot)

    @property
    def closed(self) -> bool:
        return self._closed.is_set()

    def deliver(self, event: ProgressEvent) -> None:
        if not self._closed.is_set():
            self._queue.put_nowait(event)

    def close(self) -> None:
        if not self._closed.is_set():
            self._closed.set()
            self._queue.put_nowait(_CLOSED)

    def events(self, poll_interval: Optional[float] = None) -> Iterator[Optional[ProgressEvent]]:
        """
        Iterate events until the terminal one or until the subscription closes.

        With ``poll_interval`` set, ``None`` is yielded whenever nothing
        arrived within that many seconds, which lets a streaming response send
        keep-alives and notice a dropped client.
        """
        while True:
            try:
                item = self._queue.get(timeout=poll_interval)
            except queue.Empty:
                yield None
                continue
            if item is _CLOSED:
                return
            yield item
            if item.is_terminal:
                return


@dataclass
class TaskRecord:
    """Live state of one task."""
    task_id: str
    mode: TaskMode
    state: TaskState = TaskState.STARTING
    last_progress: int = 0
    outputs: List[str] = field(default_factory=list)
    last_event: Optional[ProgressEvent] = None
    created_at: float = field(default_factory=time.time)
    finished_at: Optional[float] = None
    subscriber: Optional[Subscription] = field(default=None, repr=False)
    lock: threading.Lock = field(default_factory=threading.Lock, repr=False)


class TaskRegistry(LoggerMixin):
    """
    Holds task records, their observers and the files they published.

    A registry-wide lock guards only the id-to-record map; each record has
    its own lock, so tasks never contend with each other for state updates.
    """

    def __init__(self, retention_seconds: float = 300, file_retention_seconds: float = 3600):
        self.retention_seconds = retention_seconds
        self.file_retention_seconds = file_retention_seconds
        self._tasks: Dict[str, TaskRecord] = {}
        self._files: Dict[str, Tuple[str, Path, float]] = {}
        self._lock = threading.Lock()

    # ---------------------------
    # Task records
    # ---------------------------

    def register(self, task_id: str, mode: TaskMode) -> TaskRecord:
        record = TaskRecord(task_id=task_id, mode=mode)
        with self._lock:
            if task_id in self._tasks:
                raise RegistryViolation(f"Task {task_id} is already registered")
            self._tasks[task_id] = record
        return record

    def get_task(self, task_id: str) -> Optional[TaskRecord]:
        with self._lock:
            return self._tasks.get(task_id)

    def _require(self, task_id: str) -> TaskRecord:
        record = self.get_task(task_id)
        if record is None:
            raise RegistryViolation(f"Unknown task {task_id}")
        return record

    def get_snapshot(self, task_id: str) -> Optional[ProgressEvent]:
        record = self.get_task(task_id)
        if record is None:
            return None
        with record.lock:
            return record.last_event

    def __len__(self) -> int:
        with self._lock:
            return len(self._tasks)

    # ---------------------------
    # Publishing
    # ---------------------------

    def publish(
        self,
        task_id: str,
        event: ProgressEvent,
        output_paths: Optional[Sequence[Path]] = None,
    ) -> ProgressEvent:
        """
        Record ``event`` as the task's current state and deliver it.

        The percentage is clamped to 0-100 and never allowed to fall below
        the last published value. ``output_paths`` accompanies a ``complete``
        event and makes those files retrievable by name.

        Returns:
            The event as recorded

        Raises:
            RegistryViolation: If the task is unknown or already terminal
        """
        record = self._require(task_id)
        with record.lock:
            if record.state.is_terminal:
                raise RegistryViolation(
                    f"Task {task_id} already finished with '{record.state.value}'; "
                    f"refusing '{event.state.value}'"
                )
            percent = max(record.last_progress, min(max(int(event.percent), 0), 100))
            recorded = replace(event, task_id=task_id, percent=percent)

            record.state = recorded.state
            record.last_progress = percent
            record.last_event = recorded
            if recorded.is_terminal:
                record.finished_at = time.time()
                if recorded.state is TaskState.COMPLETE:
                    record.outputs = list(recorded.files or ([recorded.filename] if recorded.filename else []))
            # files must be retrievable before an observer hears "complete"
            if recorded.state is TaskState.COMPLETE and output_paths:
                now = time.time()
                with self._lock:
                    for path in output_paths:
                        path = Path(path)
                        self._files[path.name] = (task_id, path, now)
            subscriber = record.subscriber
            if subscriber is not None:
                subscriber.deliver(recorded)

        self.logger.info(
            f"[Task {task_id}] {recorded.message}",
            task_id=task_id,
            status=recorded.state.value,
            progress=percent,
        )
        return recorded

    # ---------------------------
    # Observers
    # ---------------------------

    def subscribe(self, task_id: str) -> Subscription:
        """
        Attach the single observer for ``task_id``.

        An existing observer is closed first.

        Raises:
            RegistryViolation: If the task is unknown
        """
        record = self._require(task_id)
        with record.lock:
            previous = record.subscriber
            if previous is not None:
                previous.close()
                self.logger.debug("Previous observer severed", task_id=task_id)
            subscription = Subscription(task_id, record.last_event)
            record.subscriber = subscription
        self.logger.debug("Observer attached", task_id=task_id)
        return subscription

    def unsubscribe(self, subscription: Subscription) -> None:
        """
        Detach an observer. The task itself keeps running.

        A task that has already finished is evicted right away, since nobody
        is left to read its state.
        """
        subscription.close()
        record = self.get_task(subscription.task_id)
        if record is None:
            return
        with record.lock:
            if record.subscriber is not subscription:
                return
            record.subscriber = None
            finished = record.state.is_terminal
        self.logger.debug("Observer detached", task_id=subscription.task_id)
        if finished:
            self._evict(subscription.task_id)

    # ---------------------------
    # Download handoff and retention
    # ---------------------------

    def published_file(self, filename: str) -> Optional[Path]:
        """Path of a file named by a published ``complete`` event, if any."""
        with self._lock:
            entry = self._files.get(filename)
        return entry[1] if entry else None

    def forget_file(self, filename: str) -> None:
        with self._lock:
            self._files.pop(filename, None)

    def _evict(self, task_id: str) -> None:
        with self._lock:
            self._tasks.pop(task_id, None)
        self.logger.debug("Task evicted", task_id=task_id)

    def purge_expired(self, now: Optional[float] = None) -> int:
        """
        Evict finished tasks past their grace period and expire old files.

        Expired published files are deleted from disk as well.

        Returns:
            Number of task records evicted
        """
        now = time.time() if now is None else now
        with self._lock:
            records = list(self._tasks.values())
            expired_files = [
                (name, path) for name, (_, path, published_at) in self._files.items()
                if published_at + self.file_retention_seconds < now
            ]
            for name, _ in expired_files:
                self._files.pop(name, None)

        expired_tasks = []
        for record in records:
            with record.lock:
                if record.finished_at is not None and record.finished_at + self.retention_seconds < now:
                    if record.subscriber is not None:
                        record.subscriber.close()
                    expired_tasks.append(record.task_id)
        for task_id in expired_tasks:
            self._evict(task_id)

        if expired_files:
            remove_files(path for _, path in expired_files)
        return len(expired_tasks)
