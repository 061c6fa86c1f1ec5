# WORKFLOW: Process-wide registry of import and validation jobs.
# Used by: Import pipeline (job lifecycle), register endpoints (progress, cancel)
# Components:
# 1. CancellationToken - Cooperative cancellation flag checked between parcels
# 2. ValidationJob - Counters and state of one job, guarded by its own lock
# 3. JobProgress - Immutable snapshot handed to readers
# 4. JobRegistry - handle -> job and register -> active job maps, guarded by one lock
#
# Job lifecycle: CREATED -> RUNNING -> FINISHED | FAILED | CANCELLED
# Unknown handles are reported as None / False, never as exceptions.

import logging
import threading
import time
import uuid
from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Optional, Tuple

from core.config import settings
from core.exceptions import JobConflictError

logger = logging.getLogger(__name__)


class JobState(str, Enum):
    CREATED = "created"
    RUNNING = "running"
    FINISHED = "finished"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in (JobState.FINISHED, JobState.FAILED, JobState.CANCELLED)


class JobKind(str, Enum):
    IMPORT = "import"
    VALIDATION = "validation"


class CancellationToken:
    """Cancellation flag shared between the registry and the job loop."""

    def __init__(self):
        self._event = threading.Event()
        self._lock = threading.Lock()

    def cancel(self) -> bool:
        """Set the flag; True only for the call that actually set it."""
        with self._lock:
            if self._event.is_set():
                return False
            self._event.set()
            return True

    @property
    def is_cancelled(self) -> bool:
        return self._event.is_set()


@dataclass(frozen=True)
class JobProgress:
    handle_id: str
    register_id: int
    kind: JobKind
    state: JobState
    total: int
    processed: int
    failed_parcels: int
    error: Optional[str]

    @property
    def finished(self) -> bool:
        return self.state.is_terminal


class ValidationJob:
    """One import or validation run over a register's parcels."""

    def __init__(self, register_id: int, kind: JobKind):
        self.handle_id = str(uuid.uuid4())
        self.register_id = register_id
        self.kind = kind
        self.token = CancellationToken()
        self.finished_at: Optional[float] = None
        self._lock = threading.Lock()
        self._state = JobState.CREATED
        self._total = 0
        self._processed = 0
        self._failed_parcels = 0
        self._error: Optional[str] = None

    @property
    def state(self) -> JobState:
        with self._lock:
            return self._state

    def start(self, total: int) -> None:
        with self._lock:
            self._total = total
            self._state = JobState.RUNNING

    def advance(self, failed: bool = False) -> None:
        """Count one parcel as processed; counters never pass the total."""
        with self._lock:
            if self._processed < self._total:
                self._processed += 1
            if failed:
                self._failed_parcels += 1

    def failed_parcels(self) -> int:
        with self._lock:
            return self._failed_parcels

    def finish(self) -> None:
        self._terminate(JobState.FINISHED)

    def fail(self, error: str) -> None:
        self._terminate(JobState.FAILED, error)

    def mark_cancelled(self) -> None:
        self._terminate(JobState.CANCELLED)

    def _terminate(self, state: JobState, error: Optional[str] = None) -> None:
        with self._lock:
            if self._state.is_terminal:
                return
            self._state = state
            if error is not None:
                self._error = error
            self.finished_at = time.monotonic()

    def request_cancel(self) -> bool:
        """Compare-and-set of the cancellation flag; False once the job is terminal."""
        with self._lock:
            if self._state.is_terminal:
                return False
            return self.token.cancel()

    def snapshot(self) -> JobProgress:
        with self._lock:
            return JobProgress(
                handle_id=self.handle_id,
                register_id=self.register_id,
                kind=self.kind,
                state=self._state,
                total=self._total,
                processed=self._processed,
                failed_parcels=self._failed_parcels,
                error=self._error,
            )


class JobRegistry:
    """Synchronized map of job handles; injected wherever jobs are started or queried."""

    def __init__(self, retention_seconds: Optional[int] = None):
        self.retention_seconds = settings.job_retention_seconds if retention_seconds is None else retention_seconds
        self._lock = threading.Lock()
        self._jobs: Dict[str, ValidationJob] = {}
        self._active_by_register: Dict[int, str] = {}

    def create(self, register_id: int, kind: JobKind) -> Tuple[ValidationJob, bool]:
        """
        Register a job for a register.

        Args:
            register_id: Register the job works on
            kind: Import or validation

        Returns:
            (job, created) - an already running job of the same kind is returned
            with created=False

        Raises:
            JobConflictError: a job of another kind is running for the register
        """
        with self._lock:
            self._prune_locked()
            active_handle = self._active_by_register.get(register_id)
            if active_handle is not None:
                active = self._jobs.get(active_handle)
                if active is not None and not active.state.is_terminal:
                    if active.kind != kind:
                        raise JobConflictError(register_id, active.kind.value)
                    return active, False

            job = ValidationJob(register_id, kind)
            self._jobs[job.handle_id] = job
            self._active_by_register[register_id] = job.handle_id
            logger.info(f"Created {kind.value} job {job.handle_id} for register {register_id}")
            return job, True

    def get(self, handle_id: str) -> Optional[ValidationJob]:
        with self._lock:
            return self._jobs.get(handle_id)

    def progress(self, handle_id: str) -> Optional[JobProgress]:
        job = self.get(handle_id)
        return job.snapshot() if job is not None else None

    def cancel(self, handle_id: str) -> bool:
        job = self.get(handle_id)
        if job is None:
            return False
        cancelled = job.request_cancel()
        if cancelled:
            logger.info(f"Cancellation requested for job {handle_id}")
        return cancelled

    def release(self, job: ValidationJob) -> None:
        """Drop the register -> job link once the job is terminal."""
        with self._lock:
            if self._active_by_register.get(job.register_id) == job.handle_id:
                del self._active_by_register[job.register_id]

    def handles(self) -> List[str]:
        with self._lock:
            return list(self._jobs)

    def _prune_locked(self) -> None:
        now = time.monotonic()
        expired = [
            handle for handle, job in self._jobs.items()
            if job.finished_at is not None and now - job.finished_at > self.retention_seconds
        ]
        for handle in expired:
            job = self._jobs.pop(handle)
            if self._active_by_register.get(job.register_id) == handle:
                del self._active_by_register[job.register_id]
        if expired:
            logger.debug(f"Pruned {len(expired)} finished jobs")
