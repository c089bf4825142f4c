"""Durable job stores backing the delivery queue.

A job is written to the store before it becomes visible to workers, so a
crash between enqueue and dispatch does not lose it. Stores raise
``StoreUnavailableError`` for infrastructure failures.
"""

import threading
from abc import ABC, abstractmethod

from django.db import DatabaseError
from django.db.models import Q

import structlog

from delivery.enums import JobState
from delivery.exceptions import StoreUnavailableError
from delivery.schemas import QueueJob

logger = structlog.get_logger(__name__)

UNFINISHED_STATES = (JobState.WAITING, JobState.ACTIVE, JobState.DELAYED)


def is_unfinished(job: QueueJob) -> bool:
    return job.state in UNFINISHED_STATES or (
        job.state == JobState.FAILED and job.retry_pending
    )


class JobStore(ABC):
    """Persistence interface for queue jobs, keyed by job id."""

    @abstractmethod
    def save(self, job: QueueJob) -> None:
        """Insert or replace a job."""

    @abstractmethod
    def delete(self, job_id: str) -> None:
        """Remove a job; unknown ids are ignored."""

    @abstractmethod
    def load_unfinished(self) -> list[QueueJob]:
        """Return jobs a restarted process must resume, oldest first.

        These are waiting, active and delayed jobs plus failed jobs whose
        retry was still pending.
        """


class InMemoryJobStore(JobStore):
    """Process-local store for tests and single-process development."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._jobs: dict[str, QueueJob] = {}

    def save(self, job: QueueJob) -> None:
        with self._lock:
            self._jobs[job.id] = job.model_copy(deep=True)

    def delete(self, job_id: str) -> None:
        with self._lock:
            self._jobs.pop(job_id, None)

    def load_unfinished(self) -> list[QueueJob]:
        with self._lock:
            jobs = [
                job.model_copy(deep=True)
                for job in self._jobs.values()
                if is_unfinished(job)
            ]
        return sorted(jobs, key=lambda job: job.enqueued_at)

    def get(self, job_id: str) -> QueueJob | None:
        """Return a copy of the stored job, if any."""
        with self._lock:
            job = self._jobs.get(job_id)
            return job.model_copy(deep=True) if job else None


class DjangoJobStore(JobStore):
    """Stores jobs in the ``delivery_jobs`` table."""

    def save(self, job: QueueJob) -> None:
        from delivery.models import DeliveryJobRecord  # noqa: PLC0415

        try:
            DeliveryJobRecord.objects.update_or_create(
                job_id=job.id,
                defaults={
                    "notification_id": job.notification.id,
                    "channel": job.notification.channel.value,
                    "priority": job.notification.priority.value,
                    "state": job.state.value,
                    "attempts_made": job.attempts_made,
                    "retry_pending": job.retry_pending,
                    "failure_reason": job.failure_reason,
                    "payload": job.model_dump(mode="json"),
                    "enqueued_at": job.enqueued_at,
                    "updated_at": job.updated_at,
                },
            )
        except DatabaseError as e:
            logger.error("job_store_save_failed", job_id=job.id, error=str(e))
            raise StoreUnavailableError(
                f"Failed to save job {job.id}", cause=e
            ) from e

    def delete(self, job_id: str) -> None:
        from delivery.models import DeliveryJobRecord  # noqa: PLC0415

        try:
            DeliveryJobRecord.objects.filter(job_id=job_id).delete()
        except DatabaseError as e:
            logger.error("job_store_delete_failed", job_id=job_id, error=str(e))
            raise StoreUnavailableError(
                f"Failed to delete job {job_id}", cause=e
            ) from e

    def load_unfinished(self) -> list[QueueJob]:
        from delivery.models import DeliveryJobRecord  # noqa: PLC0415

        try:
            records = list(
                DeliveryJobRecord.objects.filter(
                    Q(state__in=[state.value for state in UNFINISHED_STATES])
                    | Q(state=JobState.FAILED.value, retry_pending=True)
                ).order_by("enqueued_at")
            )
        except DatabaseError as e:
            logger.error("job_store_load_failed", error=str(e))
            raise StoreUnavailableError(
                "Failed to load unfinished jobs", cause=e
            ) from e
        return [QueueJob.model_validate(record.payload) for record in records]
