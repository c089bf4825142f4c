"""Test doubles and data factories for the delivery engine."""

import threading
from datetime import UTC, datetime, timedelta

from faker import Faker

from delivery.enums import Channel, Priority
from delivery.schemas import Notification
from delivery.services.channel_sender import SendResult

fake = Faker()


def make_notification(
    channel=Channel.EMAIL, priority=Priority.MEDIUM, **overrides
) -> Notification:
    """Build a notification with realistic fake content."""
    values = {
        "recipient_id": fake.email() if channel == Channel.EMAIL else fake.uuid4(),
        "channel": channel,
        "priority": priority,
        "subject": fake.sentence(nb_words=4),
        "content": fake.paragraph(),
    }
    values.update(overrides)
    return Notification(**values)


class FakeClock:
    """Manually advanced UTC clock."""

    def __init__(self, start=None):
        self.now = start or datetime(2024, 3, 14, 10, 0, tzinfo=UTC)

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)
        return self.now


class ScriptedSender:
    """Channel sender that replays scripted outcomes.

    Each entry is ``True`` for success or an error string for failure. Once
    the script is exhausted every send succeeds.
    """

    def __init__(self, *outcomes):
        self._outcomes = list(outcomes)
        self._lock = threading.Lock()
        self.calls = []

    def send(self, channel, recipient_id, subject, content, metadata):
        with self._lock:
            self.calls.append((channel, recipient_id, subject, content, dict(metadata)))
            outcome = self._outcomes.pop(0) if self._outcomes else True
        if outcome is True:
            return SendResult.ok()
        return SendResult.failed(outcome)

    def script(self, *outcomes):
        with self._lock:
            self._outcomes = list(outcomes)

    @property
    def call_count(self):
        return len(self.calls)


class RecordingAuditSink:
    """Audit sink that keeps every event in memory."""

    def __init__(self):
        self.events = []

    def log_event(self, action, entity_type, entity_id, details, status, error=None):
        self.events.append(
            {
                "action": action,
                "entity_type": entity_type,
                "entity_id": entity_id,
                "details": details,
                "status": status,
                "error": error,
            }
        )

    def actions(self):
        return [event["action"] for event in self.events]

    def of(self, action):
        return [event for event in self.events if event["action"] == action]
