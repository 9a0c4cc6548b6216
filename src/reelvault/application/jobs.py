"""Background job queue.

Jobs run one at a time on a single worker thread, in submission order. Each job
has a JobStatus that the API layer can poll.
"""

from __future__ import annotations

import logging
import queue
import threading
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum

logger = logging.getLogger(__name__)


class JobStatus(Enum):
    """Job lifecycle states."""

    READY = "ready"
    RUNNING = "running"
    FINISHED = "finished"
    FAILED = "failed"
    CANCELLED = "cancelled"


@dataclass
class Job:
    """A unit of background work."""

    id: int
    description: str
    fn: Callable[[], None]
    status: JobStatus = JobStatus.READY
    added_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    started_at: datetime | None = None
    ended_at: datetime | None = None
    error: str | None = None


class JobManager:
    """Single-worker FIFO job queue."""

    _STOP = object()

    def __init__(self) -> None:
        self._queue: queue.Queue[object] = queue.Queue()
        self._jobs: dict[int, Job] = {}
        self._next_id = 1
        self._lock = threading.Lock()
        self._worker = threading.Thread(target=self._run, name="job-manager", daemon=True)
        self._stopped = False
        self._worker.start()

    def add(self, description: str, fn: Callable[[], None]) -> int:
        """Queue a job and return its id."""
        with self._lock:
            if self._stopped:
                raise RuntimeError("job manager is stopped")
            job = Job(id=self._next_id, description=description, fn=fn)
            self._next_id += 1
            self._jobs[job.id] = job
        self._queue.put(job)
        logger.debug("Queued job %d: %s", job.id, description)
        return job.id

    def get_job(self, job_id: int) -> Job | None:
        with self._lock:
            return self._jobs.get(job_id)

    def get_queue(self) -> list[Job]:
        """Jobs that have not finished yet, oldest first."""
        with self._lock:
            return [
                j
                for j in self._jobs.values()
                if j.status in (JobStatus.READY, JobStatus.RUNNING)
            ]

    def cancel(self, job_id: int) -> bool:
        """Cancel a job that has not started yet."""
        with self._lock:
            job = self._jobs.get(job_id)
            if job is None or job.status is not JobStatus.READY:
                return False
            job.status = JobStatus.CANCELLED
            return True

    def stop(self, timeout: float = 10.0) -> None:
        """Stop accepting jobs and wait for the running one to finish."""
        with self._lock:
            if self._stopped:
                return
            self._stopped = True
        self._queue.put(self._STOP)
        self._worker.join(timeout)
        if self._worker.is_alive():
            logger.warning("Job manager did not stop within %.1fs", timeout)

    def _run(self) -> None:
        while True:
            item = self._queue.get()
            if item is self._STOP:
                return
            if isinstance(item, Job):
                self._execute(item)

    def _execute(self, job: Job) -> None:
        with self._lock:
            if job.status is JobStatus.CANCELLED:
                return
            job.status = JobStatus.RUNNING
            job.started_at = datetime.now(UTC)

        try:
            job.fn()
        except Exception as e:
            logger.exception("Job %d (%s) failed: %s", job.id, job.description, e)
            status, error = JobStatus.FAILED, str(e)
        else:
            status, error = JobStatus.FINISHED, None

        with self._lock:
            job.status = status
            job.error = error
            job.ended_at = datetime.now(UTC)
