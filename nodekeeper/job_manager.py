"""In-memory registry of background jobs run by the agent."""

from __future__ import annotations

import copy
import logging
import threading
from collections.abc import Callable
from datetime import datetime, timedelta, timezone
from typing import Any

from nodekeeper.types import JobInfo, JobStatus

logger = logging.getLogger(__name__)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class JobManager:
    """Thread-safe store of jobs keyed by job id."""

    def __init__(self, clock: Callable[[], datetime] | None = None) -> None:
        self._clock = clock or _utc_now
        self._jobs: dict[str, JobInfo] = {}
        self._lock = threading.Lock()

    def create_job(self, operation_type: str, target_name: str) -> str:
        """Register a running job and return its id."""
        now = self._clock()
        job_id = f"{operation_type}_{target_name}_{int(now.timestamp())}"
        job = JobInfo(
            job_id=job_id,
            operation_type=operation_type,
            target_name=target_name,
            status=JobStatus.RUNNING,
            started_at=now,
        )
        with self._lock:
            self._jobs[job_id] = job
        logger.info("Created job %s: %s for %s", job_id, operation_type, target_name)
        return job_id

    def complete_job(self, job_id: str, result: Any) -> None:
        """Mark a job completed with its result; unknown ids are ignored."""
        with self._lock:
            job = self._jobs.get(job_id)
            if job is None:
                return
            job.status = JobStatus.COMPLETED
            job.completed_at = self._clock()
            job.result = result
        logger.info("Job %s completed successfully", job_id)

    def fail_job(self, job_id: str, error_message: str) -> None:
        """Mark a job failed with a message; unknown ids are ignored."""
        with self._lock:
            job = self._jobs.get(job_id)
            if job is None:
                return
            job.status = JobStatus.FAILED
            job.completed_at = self._clock()
            job.error_message = error_message
        logger.warning("Job %s failed: %s", job_id, error_message)

    def get_job_status(self, job_id: str) -> JobInfo | None:
        """Return a copy of the job, or None if it is unknown."""
        with self._lock:
            job = self._jobs.get(job_id)
            return copy.deepcopy(job) if job is not None else None

    def cleanup_old_jobs(self, max_hours: int) -> int:
        """Drop jobs started at or before max_hours ago; return how many."""
        cutoff = self._clock() - timedelta(hours=max_hours)
        with self._lock:
            stale = [job_id for job_id, job in self._jobs.items() if job.started_at <= cutoff]
            for job_id in stale:
                job = self._jobs.pop(job_id)
                logger.info("Cleaned up old job: %s (%s)", job_id, job.operation_type)
        if stale:
            logger.info("Cleaned up %d old jobs older than %dh", len(stale), max_hours)
        return len(stale)

    def get_running_jobs(self) -> list[JobInfo]:
        """Return copies of all jobs still running."""
        with self._lock:
            return [
                copy.deepcopy(job)
                for job in self._jobs.values()
                if job.status is JobStatus.RUNNING
            ]