"""Error taxonomy for the delivery engine.

Every error carries a ``kind`` tag so callers can switch on the taxonomy
without isinstance chains:

- ``transient_send_failure``: a channel send failed or timed out. Passed to
  the retry scheduler as a value, never raised to the enqueuing caller.
- ``permanent_abandonment``: the retry budget is exhausted. Recorded on the
  job and reported through the audit sink and metrics surface.
- ``operational``: paused queue, unknown job id, unavailable store or an
  administrative action on a job in the wrong state. Raised synchronously.
- ``configuration``: invalid thresholds or backoff parameters. Raised at
  construction time.
"""

from typing import ClassVar


class DeliveryError(Exception):
    """Base exception for all delivery engine errors."""

    kind: ClassVar[str] = "delivery_error"

    def __init__(self, message: str):
        """Initialize delivery error.

        Args:
            message: Human-readable error message
        """
        self.message = message
        super().__init__(message)


class TransientSendFailure(DeliveryError):
    """A channel sender returned an error or exceeded its timeout."""

    kind: ClassVar[str] = "transient_send_failure"

    def __init__(
        self, message: str, channel: str | None = None, timed_out: bool = False
    ):
        """Initialize transient send failure.

        Args:
            message: Error reported by the channel sender
            channel: Channel the send was attempted on
            timed_out: Whether the send exceeded its deadline
        """
        self.channel = channel
        self.timed_out = timed_out
        super().__init__(message)


class PermanentAbandonment(DeliveryError):
    """A notification exhausted its retry budget."""

    kind: ClassVar[str] = "permanent_abandonment"

    def __init__(self, notification_id: str, attempts: int, last_error: str):
        """Initialize permanent abandonment.

        Args:
            notification_id: ID of the abandoned notification
            attempts: Failed attempts made before giving up
            last_error: Error message of the final attempt
        """
        self.notification_id = notification_id
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(
            f"Notification {notification_id} abandoned after {attempts} attempts: "
            f"{last_error}"
        )


class QueueOperationalError(DeliveryError):
    """Base class for errors returned synchronously to queue callers."""

    kind: ClassVar[str] = "operational"


class QueuePausedError(QueueOperationalError):
    """The queue is paused and refuses new jobs."""

    def __init__(self, message: str = "Queue is paused"):
        super().__init__(message)


class JobNotFoundError(QueueOperationalError):
    """No job exists for the given id."""

    def __init__(self, job_id: str):
        """Initialize job not found error.

        Args:
            job_id: ID of the job that was not found
        """
        self.job_id = job_id
        super().__init__(f"Job with ID {job_id} not found")


class StoreUnavailableError(QueueOperationalError):
    """The durable job store could not be reached."""

    def __init__(
        self, message: str = "Job store unavailable", cause: Exception | None = None
    ):
        """Initialize store unavailable error.

        Args:
            message: Error message
            cause: Underlying store exception, if any
        """
        self.cause = cause
        super().__init__(message)


class InvalidJobStateError(QueueOperationalError):
    """An administrative action was requested on a job in the wrong state."""

    def __init__(self, job_id: str, state: str, detail: str | None = None):
        """Initialize invalid job state error.

        Args:
            job_id: ID of the job
            state: Current state of the job
            detail: Additional details about the conflict
        """
        self.job_id = job_id
        self.state = state
        self.detail = detail
        super().__init__(f"Job {job_id} is in state '{state}'")


class ConfigurationError(DeliveryError, ValueError):
    """Invalid engine configuration, detected at construction time."""

    kind: ClassVar[str] = "configuration"
