"""DeliveryJobRecord model: durable backing store for queue jobs.

The in-memory job table of the delivery queue is authoritative while the
process runs. This table lets a restarted process recover jobs that were
waiting, active or delayed when it stopped, or failed with a retry
still owed.
"""

from typing import ClassVar

from django.db import models


class DeliveryJobRecord(models.Model):
    """Persisted snapshot of a queue job, keyed by job id.

    Attributes:
        job_id: Queue job identifier.
        notification_id: Identifier of the wrapped notification.
        channel: Delivery channel (EMAIL, SMS, PUSH, IN_APP).
        priority: Priority lane (LOW, MEDIUM, HIGH, URGENT).
        state: Job lifecycle state.
        attempts_made: Channel send attempts so far.
        retry_pending: Failed, with a retry still owed.
        failure_reason: Last failure message, if any.
        payload: Full JSON serialization of the job.
        enqueued_at: When the job was accepted.
        updated_at: When the record was last written.
    """

    job_id = models.CharField(max_length=64, primary_key=True)
    notification_id = models.CharField(max_length=64, db_index=True)
    channel = models.CharField(max_length=20)
    priority = models.CharField(max_length=20)
    state = models.CharField(max_length=20, db_index=True)
    attempts_made = models.IntegerField(default=0)
    retry_pending = models.BooleanField(default=False)
    failure_reason = models.TextField(null=True, blank=True)
    payload = models.JSONField()
    enqueued_at = models.DateTimeField()
    updated_at = models.DateTimeField()

    class Meta:
        """Django model metadata."""

        db_table = "delivery_jobs"
        ordering: ClassVar[list[str]] = ["enqueued_at"]
        indexes: ClassVar[list] = [
            models.Index(
                fields=["state", "enqueued_at"], name="delivery_jobs_state_idx"
            ),
        ]

    def __str__(self) -> str:
        """Return string representation of the job record."""
        return f"{self.channel} - {self.state}"

    def __repr__(self) -> str:
        """Return detailed representation of the job record."""
        return (
            f"<DeliveryJobRecord(job_id={self.job_id}, "
            f"channel={self.channel}, "
            f"state={self.state})>"
        )
