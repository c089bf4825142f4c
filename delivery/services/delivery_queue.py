"""Delivery queue: priority lanes drained by a bounded worker pool.

Jobs are written to the job store before they become visible to workers.
Workers pull the highest-priority waiting job, FIFO within a lane, with a
weighted skip counter that bounds starvation of lower lanes. A failed send is
handed synchronously to the failure handler (the retry scheduler) before the
worker takes its next job.
"""

import threading
import time
from collections import deque
from collections.abc import Callable
from datetime import UTC, datetime, timedelta
from typing import Protocol
from uuid import uuid4

import structlog

from delivery.constants import (
    DEFAULT_MAX_LANE_SKIPS,
    DEFAULT_WORKER_COUNT,
    UNKNOWN_ERROR,
)
from delivery.enums import JobState, Priority
from delivery.exceptions import (
    InvalidJobStateError,
    JobNotFoundError,
    PermanentAbandonment,
    QueuePausedError,
    StoreUnavailableError,
    TransientSendFailure,
)
from delivery.logging import bind_job_id, clear_job_id
from delivery.schemas import (
    EnqueueOptions,
    HourlyStat,
    JobStatus,
    Notification,
    QueueJob,
    QueueMetrics,
)
from delivery.services.channel_sender import ChannelSender, SendResult, deliver
from delivery.services.job_store import InMemoryJobStore, JobStore

logger = structlog.get_logger(__name__)

FailureHandler = Callable[[Notification, TransientSendFailure], None]


def _utcnow() -> datetime:
    return datetime.now(UTC)


class QueueListener(Protocol):
    """Observer of job outcomes, registered with ``add_listener``."""

    def on_job_completed(self, job: QueueJob) -> None:
        """Called when a job completes, on dispatch or after a retry."""
        ...

    def on_job_failed(self, job: QueueJob, failure: TransientSendFailure) -> None:
        """Called when a dispatch send fails, before the retry hand-off."""
        ...


class DeliveryQueue:
    """Owner of the job state table.

    All mutation happens under one lock; channel sends and store writes for
    claims and outcomes happen outside it. The queue also implements the
    retry listener interface so retry outcomes are written back by the queue
    itself.
    """

    def __init__(
        self,
        sender: ChannelSender,
        store: JobStore | None = None,
        failure_handler: FailureHandler | None = None,
        worker_count: int = DEFAULT_WORKER_COUNT,
        max_lane_skips: int = DEFAULT_MAX_LANE_SKIPS,
        clock: Callable[[], datetime] = _utcnow,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        """Initialize the delivery queue.

        Args:
            sender: Channel sender used for dispatch
            store: Durable job store; defaults to an in-memory store
            failure_handler: Receives every failed dispatch synchronously
            worker_count: Number of worker threads started by ``start``
            max_lane_skips: Dispatches a non-empty lane may be passed over
            clock: Returns the current UTC time
            sleep: Used between store-level enqueue retries
        """
        self.worker_count = worker_count
        self.max_lane_skips = max_lane_skips
        self._sender = sender
        self._store = store or InMemoryJobStore()
        self._failure_handler = failure_handler
        self._clock = clock
        self._sleep = sleep

        self._lock = threading.RLock()
        self._work_available = threading.Condition(self._lock)
        self._jobs: dict[str, QueueJob] = {}
        self._by_notification: dict[str, str] = {}
        self._lanes: dict[Priority, deque[str]] = {p: deque() for p in Priority}
        self._lane_skips: dict[Priority, int] = dict.fromkeys(Priority, 0)
        self._delayed: list[str] = []
        self._paused = False
        self._stopping = False

        # hour bucket -> [count, success, failure]
        self._hourly: dict[datetime, list[int]] = {}
        self._total_attempts = 0
        self._failed_attempts = 0
        self._processing_ms_total = 0.0
        self._processed_count = 0

        self._listeners: list[QueueListener] = []
        self._workers: list[threading.Thread] = []

    def add_listener(self, listener: QueueListener) -> None:
        self._listeners.append(listener)

    def set_failure_handler(self, handler: FailureHandler) -> None:
        self._failure_handler = handler

    # Enqueue

    def enqueue(
        self, notification: Notification, options: EnqueueOptions | None = None
    ) -> str:
        """Accept a notification and return its job id.

        The job is persisted before workers can see it. Store writes are
        retried according to ``options``.

        Raises:
            QueuePausedError: If the queue is paused.
            StoreUnavailableError: If the job could not be persisted.
        """
        if self._paused:
            raise QueuePausedError()

        options = options or EnqueueOptions()
        now = self._clock()
        job = QueueJob(
            id=str(uuid4()),
            notification=notification,
            options=options,
            enqueued_at=now,
            updated_at=now,
        )
        self._persist_with_retry(job)

        with self._work_available:
            self._jobs[job.id] = job
            self._by_notification[notification.id] = job.id
            self._lanes[notification.priority].append(job.id)
            self._work_available.notify()

        logger.info(
            "job_enqueued",
            job_id=job.id,
            notification_id=notification.id,
            channel=notification.channel.value,
            priority=notification.priority.value,
        )
        return job.id

    def _persist_with_retry(self, job: QueueJob) -> None:
        attempts = job.options.attempts
        for attempt in range(1, attempts + 1):
            try:
                self._store.save(job)
                return
            except StoreUnavailableError as e:
                logger.warning(
                    "job_persist_failed",
                    job_id=job.id,
                    attempt=attempt,
                    max_attempts=attempts,
                    error=e.message,
                )
                if attempt == attempts:
                    raise
                self._sleep(job.options.backoff.delay_seconds(attempt))

    # Dispatch

    def process_next(
        self, block: bool = False, timeout: float | None = None
    ) -> QueueJob | None:
        """Claim and execute the next job.

        Args:
            block: Wait for a dispatchable job
            timeout: Maximum wait in seconds when blocking

        Returns:
            Snapshot of the processed job, or None if nothing was dispatched.
        """
        job_id = self._claim(block, timeout)
        if job_id is None:
            return None
        return self._execute(job_id)

    def _claim(self, block: bool, timeout: float | None) -> str | None:
        deadline = time.monotonic() + timeout if timeout is not None else None
        with self._work_available:
            while True:
                now = self._clock()
                self._promote_delayed(now)
                if not self._paused and not self._stopping:
                    priority = self._select_lane()
                    if priority is not None:
                        job_id = self._lanes[priority].popleft()
                        job = self._jobs[job_id]
                        job.state = JobState.ACTIVE
                        job.processed_at = now
                        job.updated_at = now
                        snapshot = job.model_copy(deep=True)
                        break

                if not block or self._stopping:
                    return None
                wait = self._next_wakeup(now)
                if deadline is not None:
                    remaining = deadline - time.monotonic()
                    if remaining <= 0:
                        return None
                    wait = remaining if wait is None else min(wait, remaining)
                self._work_available.wait(timeout=wait)

        try:
            self._store.save(snapshot)
        except StoreUnavailableError as e:
            self._handle_claim_failure(job_id, e)
            return None
        return job_id

    def _select_lane(self) -> Priority | None:
        """Pick the lane to serve next; caller holds the lock.

        The highest non-empty lane is served unless a lower non-empty lane
        has been passed over ``max_lane_skips`` times in a row. Then the most
        starved lane is served (ties go to the higher priority).
        """
        non_empty = [p for p in Priority.by_rank() if self._lanes[p]]
        if not non_empty:
            return None

        starved = [
            p for p in non_empty[1:] if self._lane_skips[p] >= self.max_lane_skips
        ]
        chosen = (
            max(starved, key=lambda p: (self._lane_skips[p], p.rank))
            if starved
            else non_empty[0]
        )
        for priority in Priority:
            if priority is chosen or not self._lanes[priority]:
                self._lane_skips[priority] = 0
            else:
                self._lane_skips[priority] += 1
        return chosen

    def _promote_delayed(self, now: datetime) -> None:
        due = [
            job_id
            for job_id in self._delayed
            if self._jobs[job_id].available_at is None
            or self._jobs[job_id].available_at <= now
        ]
        if not due:
            return
        self._delayed = [job_id for job_id in self._delayed if job_id not in due]
        # Delayed jobs go back to the front of their lane, oldest first
        due.sort(key=lambda i: self._jobs[i].enqueued_at, reverse=True)
        for job_id in due:
            job = self._jobs[job_id]
            job.state = JobState.WAITING
            job.available_at = None
            job.updated_at = now
            self._lanes[job.notification.priority].appendleft(job_id)

    def _next_wakeup(self, now: datetime) -> float | None:
        times = [
            self._jobs[job_id].available_at
            for job_id in self._delayed
            if self._jobs[job_id].available_at is not None
        ]
        if not times:
            return None
        return max((min(times) - now).total_seconds(), 0.0)

    def _handle_claim_failure(self, job_id: str, error: StoreUnavailableError) -> None:
        now = self._clock()
        with self._work_available:
            job = self._jobs[job_id]
            job.dispatch_failures += 1
            job.updated_at = now
            if job.dispatch_failures >= job.options.attempts:
                job.state = JobState.FAILED
                job.failure_reason = error.message
                job.finished_at = now
                logger.error(
                    "job_dispatch_failed",
                    job_id=job_id,
                    dispatch_failures=job.dispatch_failures,
                    error=error.message,
                )
                return

            delay = job.options.backoff.delay_seconds(job.dispatch_failures)
            job.state = JobState.DELAYED
            job.available_at = now + timedelta(seconds=delay)
            self._delayed.append(job_id)
            self._work_available.notify()
            logger.warning(
                "job_dispatch_delayed",
                job_id=job_id,
                dispatch_failures=job.dispatch_failures,
                delay_seconds=delay,
                error=error.message,
            )

    def _execute(self, job_id: str) -> QueueJob:
        with self._lock:
            job = self._jobs[job_id]
            job.attempts_made += 1
            notification = job.notification

        started = time.monotonic()
        bind_job_id(job_id)
        try:
            result = deliver(self._sender, notification)
        finally:
            clear_job_id()
        elapsed_ms = (time.monotonic() - started) * 1000

        now = self._clock()
        with self._lock:
            self._record_attempt(now, result)
            self._processing_ms_total += elapsed_ms
            self._processed_count += 1
            job.updated_at = now
            job.finished_at = now
            if result.success:
                job.state = JobState.COMPLETED
                job.failure_reason = None
            else:
                job.state = JobState.FAILED
                job.failure_reason = result.error
                job.retry_pending = self._failure_handler is not None
            snapshot = job.model_copy(deep=True)

        self._checkpoint(snapshot)

        if result.success:
            logger.info(
                "job_completed",
                job_id=job_id,
                notification_id=notification.id,
                processing_time_ms=round(elapsed_ms, 2),
            )
            for listener in self._listeners:
                listener.on_job_completed(snapshot)
            return snapshot

        failure = TransientSendFailure(
            result.error or UNKNOWN_ERROR,
            channel=notification.channel.value,
            timed_out=result.timed_out,
        )
        logger.warning(
            "job_failed",
            job_id=job_id,
            notification_id=notification.id,
            error=failure.message,
            timed_out=failure.timed_out,
        )
        for listener in self._listeners:
            listener.on_job_failed(snapshot, failure)
        if self._failure_handler is not None:
            self._failure_handler(notification, failure)
        return snapshot

    def _record_attempt(self, now: datetime, result: SendResult) -> None:
        hour = now.replace(minute=0, second=0, microsecond=0)
        bucket = self._hourly.setdefault(hour, [0, 0, 0])
        bucket[0] += 1
        self._total_attempts += 1
        if result.success:
            bucket[1] += 1
        else:
            bucket[2] += 1
            self._failed_attempts += 1

    def _checkpoint(self, job: QueueJob) -> None:
        """Persist a state change the caller cannot undo."""
        try:
            self._store.save(job)
        except StoreUnavailableError as e:
            logger.error("job_checkpoint_failed", job_id=job.id, error=e.message)

    # Retry listener

    def on_retry_attempted(
        self, notification: Notification, result: SendResult
    ) -> None:
        with self._lock:
            self._record_attempt(self._clock(), result)
            job_id = self._by_notification.get(notification.id)
            if job_id is not None and job_id in self._jobs:
                self._jobs[job_id].attempts_made += 1

    def on_retry_succeeded(self, notification: Notification, attempts: int) -> None:
        now = self._clock()
        with self._lock:
            job = self._job_for(notification.id)
            if job is None:
                return
            job.state = JobState.COMPLETED
            job.retry_pending = False
            job.failure_reason = None
            job.finished_at = now
            job.updated_at = now
            snapshot = job.model_copy(deep=True)

        self._checkpoint(snapshot)
        logger.info(
            "job_completed_after_retry", job_id=snapshot.id, retry_attempts=attempts
        )
        for listener in self._listeners:
            listener.on_job_completed(snapshot)

    def on_retry_abandoned(
        self, notification: Notification, abandonment: PermanentAbandonment
    ) -> None:
        now = self._clock()
        with self._lock:
            job = self._job_for(notification.id)
            if job is None:
                return
            job.state = JobState.FAILED
            job.retry_pending = False
            job.abandoned = True
            job.failure_reason = abandonment.last_error or job.failure_reason
            job.updated_at = now
            snapshot = job.model_copy(deep=True)

        self._checkpoint(snapshot)
        logger.error(
            "job_abandoned",
            job_id=snapshot.id,
            attempts=abandonment.attempts,
            error=abandonment.last_error,
        )

    def _job_for(self, notification_id: str) -> QueueJob | None:
        job_id = self._by_notification.get(notification_id)
        job = self._jobs.get(job_id) if job_id else None
        if job is None:
            logger.debug(
                "retry_outcome_for_unknown_job", notification_id=notification_id
            )
        return job

    # Queries

    def _effective_state(self, job: QueueJob) -> JobState:
        if self._paused and job.state == JobState.WAITING:
            return JobState.PAUSED
        return job.state

    def get_job(self, job_id: str) -> QueueJob:
        """Return a snapshot of a job.

        Raises:
            JobNotFoundError: If the id is unknown or was purged.
        """
        with self._lock:
            job = self._jobs.get(job_id)
            if job is None:
                raise JobNotFoundError(job_id)
            return job.model_copy(
                deep=True, update={"state": self._effective_state(job)}
            )

    def get_job_status(self, job_id: str) -> JobStatus:
        job = self.get_job(job_id)
        return JobStatus(
            job_id=job.id,
            state=job.state,
            attempts_made=job.attempts_made,
            error=job.failure_reason,
        )

    def get_failed_jobs(self) -> list[QueueJob]:
        """Return failed jobs, oldest first, including abandoned ones."""
        with self._lock:
            return [
                job.model_copy(deep=True)
                for job in sorted(self._jobs.values(), key=lambda j: j.enqueued_at)
                if job.state == JobState.FAILED
            ]

    def get_queue_stats(self) -> QueueMetrics:
        """Return a consistent snapshot of the queue."""
        with self._lock:
            by_state: dict[str, int] = {}
            by_channel: dict[str, int] = {}
            by_priority: dict[str, int] = {}
            retry_jobs = 0
            abandoned_jobs = 0
            for job in self._jobs.values():
                state = self._effective_state(job).value
                by_state[state] = by_state.get(state, 0) + 1
                channel = job.notification.channel.value
                by_channel[channel] = by_channel.get(channel, 0) + 1
                priority = job.notification.priority.value
                by_priority[priority] = by_priority.get(priority, 0) + 1
                retry_jobs += job.retry_pending
                abandoned_jobs += job.abandoned

            return QueueMetrics(
                total_jobs=len(self._jobs),
                waiting_jobs=by_state.get(JobState.WAITING.value, 0)
                + by_state.get(JobState.PAUSED.value, 0),
                active_jobs=by_state.get(JobState.ACTIVE.value, 0),
                completed_jobs=by_state.get(JobState.COMPLETED.value, 0),
                failed_jobs=by_state.get(JobState.FAILED.value, 0),
                delayed_jobs=by_state.get(JobState.DELAYED.value, 0),
                retry_jobs=retry_jobs,
                abandoned_jobs=abandoned_jobs,
                total_attempts=self._total_attempts,
                failed_attempts=self._failed_attempts,
                average_processing_time_ms=(
                    self._processing_ms_total / self._processed_count
                    if self._processed_count
                    else 0.0
                ),
                paused=self._paused,
                jobs_by_channel=by_channel,
                jobs_by_priority=by_priority,
                jobs_by_state=by_state,
                hourly_stats=[
                    HourlyStat(
                        hour=hour,
                        count=count,
                        success_count=success,
                        failure_count=failure,
                    )
                    for hour, (count, success, failure) in sorted(self._hourly.items())
                ],
            )

    # Administration

    def pause(self) -> None:
        """Stop new dispatches; active jobs run to completion."""
        with self._lock:
            self._paused = True
        logger.info("queue_paused")

    def resume(self) -> None:
        with self._work_available:
            self._paused = False
            self._work_available.notify_all()
        logger.info("queue_resumed")

    def is_paused(self) -> bool:
        return self._paused

    def clean_failed(self) -> int:
        """Purge failed jobs with no pending retry from memory and store.

        Returns:
            Number of purged jobs.

        Raises:
            StoreUnavailableError: If a store delete failed; jobs deleted
                before the failure are purged.
        """
        with self._lock:
            job_ids = [
                job.id
                for job in self._jobs.values()
                if job.state == JobState.FAILED and not job.retry_pending
            ]

        purged = 0
        try:
            for job_id in job_ids:
                self._store.delete(job_id)
                with self._lock:
                    job = self._jobs.pop(job_id, None)
                    if job is not None:
                        self._by_notification.pop(job.notification.id, None)
                purged += 1
        finally:
            logger.info("failed_jobs_purged", purged=purged)
        return purged

    def retry_job(self, job_id: str) -> None:
        """Put a failed job back into its lane for a fresh dispatch.

        Raises:
            JobNotFoundError: If the id is unknown.
            InvalidJobStateError: If the job is not failed or a retry is pending.
            StoreUnavailableError: If the job could not be persisted.
        """
        now = self._clock()
        with self._lock:
            job = self._jobs.get(job_id)
            if job is None:
                raise JobNotFoundError(job_id)
            if job.state != JobState.FAILED:
                raise InvalidJobStateError(
                    job_id, job.state.value, "Only failed jobs can be retried"
                )
            if job.retry_pending:
                raise InvalidJobStateError(
                    job_id, job.state.value, "A retry is already scheduled"
                )
            updated = job.model_copy(
                deep=True,
                update={
                    "state": JobState.WAITING,
                    "failure_reason": None,
                    "abandoned": False,
                    "dispatch_failures": 0,
                    "finished_at": None,
                    "available_at": None,
                    "updated_at": now,
                },
            )

        self._store.save(updated)

        with self._work_available:
            current = self._jobs.get(job_id)
            if current is None or current.state != JobState.FAILED:
                raise InvalidJobStateError(
                    job_id, current.state.value if current else "purged"
                )
            self._jobs[job_id] = updated
            self._lanes[updated.notification.priority].append(job_id)
            self._work_available.notify()
        logger.info("job_requeued", job_id=job_id)

    def remove_job(self, job_id: str) -> None:
        """Remove a job that is still waiting.

        Raises:
            JobNotFoundError: If the id is unknown.
            InvalidJobStateError: If the job is not waiting.
        """
        with self._lock:
            job = self._jobs.get(job_id)
            if job is None:
                raise JobNotFoundError(job_id)
            if job.state != JobState.WAITING:
                raise InvalidJobStateError(
                    job_id, job.state.value, "Only waiting jobs can be removed"
                )
            self._lanes[job.notification.priority].remove(job_id)
            del self._jobs[job_id]
            self._by_notification.pop(job.notification.id, None)

        self._store.delete(job_id)
        logger.info("job_removed", job_id=job_id)

    def recover(self) -> int:
        """Reload unfinished jobs from the store.

        Jobs that were active when the process stopped are dispatched again
        (at-least-once). Failed jobs whose retry was still pending are handed
        back to the failure handler and start a new retry cycle; without a
        handler they stay failed and become eligible for a manual retry.

        Returns:
            Number of recovered jobs.

        Raises:
            StoreUnavailableError: If the store could not be read.
        """
        stored = self._store.load_unfinished()
        now = self._clock()
        recovered = 0
        retries: list[QueueJob] = []
        released: list[QueueJob] = []
        with self._work_available:
            for job in stored:
                if job.id in self._jobs:
                    continue
                job.updated_at = now
                self._jobs[job.id] = job
                self._by_notification[job.notification.id] = job.id
                recovered += 1
                if job.state == JobState.FAILED:
                    if self._failure_handler is None:
                        job.retry_pending = False
                        released.append(job.model_copy(deep=True))
                    else:
                        retries.append(job.model_copy(deep=True))
                    continue
                job.state = JobState.WAITING
                job.available_at = None
                self._lanes[job.notification.priority].append(job.id)
            self._work_available.notify_all()

        for job in released:
            self._checkpoint(job)
        for job in retries:
            self._failure_handler(
                job.notification,
                TransientSendFailure(
                    job.failure_reason or UNKNOWN_ERROR,
                    channel=job.notification.channel.value,
                ),
            )
        logger.info("jobs_recovered", recovered=recovered, retries=len(retries))
        return recovered

    # Worker pool

    def start(self) -> None:
        """Start the worker threads."""
        with self._lock:
            if self._workers:
                return
            self._stopping = False
            self._workers = [
                threading.Thread(
                    target=self._worker_loop,
                    name=f"DeliveryWorker-{n}",
                    daemon=True,
                )
                for n in range(1, self.worker_count + 1)
            ]
        for worker in self._workers:
            worker.start()
        logger.info("delivery_workers_started", worker_count=self.worker_count)

    def stop(self, timeout: float = 5.0) -> None:
        """Stop the worker threads after their current job."""
        with self._work_available:
            self._stopping = True
            self._work_available.notify_all()
            workers, self._workers = self._workers, []
        for worker in workers:
            worker.join(timeout=timeout)
        logger.info("delivery_workers_stopped")

    @property
    def is_running(self) -> bool:
        return any(worker.is_alive() for worker in self._workers)

    def _worker_loop(self) -> None:
        while not self._stopping:
            try:
                self.process_next(block=True, timeout=1.0)
            except Exception as e:
                logger.error("delivery_worker_error", error=str(e), exc_info=True)
