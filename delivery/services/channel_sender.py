"""Channel sender boundary.

The core treats EMAIL, SMS, PUSH and IN_APP uniformly through the
``ChannelSender`` protocol. Channel-specific formatting and validation live
in the adapters under ``delivery.services.channels``.
"""

import itertools
import threading
from collections.abc import Mapping
from concurrent.futures import Future
from concurrent.futures import TimeoutError as FuturesTimeoutError
from typing import Any, Protocol

import structlog

from delivery.enums import Channel
from delivery.schemas import BaseSchemaModel, Notification

logger = structlog.get_logger(__name__)


class SendResult(BaseSchemaModel):
    """Outcome of a single channel send."""

    success: bool
    error: str | None = None
    timed_out: bool = False

    @classmethod
    def ok(cls) -> "SendResult":
        return cls(success=True)

    @classmethod
    def failed(cls, error: str, timed_out: bool = False) -> "SendResult":
        return cls(success=False, error=error, timed_out=timed_out)


class ChannelSender(Protocol):
    """Transport for one or more delivery channels."""

    def send(
        self,
        channel: Channel,
        recipient_id: str,
        subject: str,
        content: str,
        metadata: Mapping[str, Any],
    ) -> SendResult:
        """Deliver a message and report the outcome."""
        ...


class ChannelRouter:
    """Routes each send to the sender registered for its channel."""

    def __init__(self, senders: Mapping[Channel, ChannelSender] | None = None) -> None:
        self._senders: dict[Channel, ChannelSender] = dict(senders or {})

    def register(self, channel: Channel, sender: ChannelSender) -> None:
        """Register (or replace) the sender for a channel."""
        self._senders[channel] = sender

    @property
    def channels(self) -> list[Channel]:
        return list(self._senders)

    def send(
        self,
        channel: Channel,
        recipient_id: str,
        subject: str,
        content: str,
        metadata: Mapping[str, Any],
    ) -> SendResult:
        sender = self._senders.get(channel)
        if sender is None:
            logger.error("channel_sender_not_registered", channel=channel.value)
            return SendResult.failed(
                f"No sender registered for channel {channel.value}"
            )
        return sender.send(channel, recipient_id, subject, content, metadata)


class TimedChannelSender:
    """Bounds every send by a deadline.

    Each send runs on its own daemon thread, so a hung send never delays the
    ones after it and the deadline covers only the send itself. A send that
    outlives the deadline is reported as a timed-out failure. Its future is
    cancelled, so a send whose thread had not started yet never runs; one
    already inside the transport finishes in the background and its result
    is discarded. Exceptions raised by the wrapped sender are converted to
    failed results.
    """

    def __init__(self, sender: ChannelSender, timeout_seconds: float) -> None:
        """Initialize the timed sender.

        Args:
            sender: Wrapped channel sender
            timeout_seconds: Maximum duration of a single send
        """
        self._sender = sender
        self.timeout_seconds = timeout_seconds
        self._lock = threading.Lock()
        self._overdue: set[Future] = set()
        self._closed = False
        self._counter = itertools.count(1)

    @property
    def overdue_sends(self) -> int:
        """Sends that missed their deadline and are still running."""
        with self._lock:
            return len(self._overdue)

    def send(
        self,
        channel: Channel,
        recipient_id: str,
        subject: str,
        content: str,
        metadata: Mapping[str, Any],
    ) -> SendResult:
        if self._closed:
            return SendResult.failed("Channel sender is shut down")

        future: Future = Future()

        def run() -> None:
            if not future.set_running_or_notify_cancel():
                return
            try:
                future.set_result(
                    self._sender.send(channel, recipient_id, subject, content, metadata)
                )
            except Exception as e:
                future.set_exception(e)
            finally:
                with self._lock:
                    self._overdue.discard(future)

        threading.Thread(
            target=run, name=f"channel-send-{next(self._counter)}", daemon=True
        ).start()

        try:
            result = future.result(timeout=self.timeout_seconds)
        except FuturesTimeoutError:
            if not future.cancel():
                with self._lock:
                    if not future.done():
                        self._overdue.add(future)
            logger.warning(
                "channel_send_timed_out",
                channel=channel.value,
                timeout_seconds=self.timeout_seconds,
                overdue_sends=self.overdue_sends,
            )
            return SendResult.failed(
                f"Send timed out after {self.timeout_seconds:g}s", timed_out=True
            )
        except Exception as e:
            logger.error(
                "channel_send_raised",
                channel=channel.value,
                error=str(e),
                error_type=type(e).__name__,
            )
            return SendResult.failed(str(e) or type(e).__name__)
        return result

    def shutdown(self) -> None:
        """Refuse new sends; overdue sends finish in the background."""
        self._closed = True
        if self.overdue_sends:
            logger.warning("channel_sender_shutdown", overdue_sends=self.overdue_sends)


def deliver(sender: ChannelSender, notification: Notification) -> SendResult:
    """Send a notification through ``sender``, never raising.

    Args:
        sender: Channel sender to use
        notification: Notification to deliver

    Returns:
        The send result; sender exceptions become failed results.
    """
    try:
        return sender.send(
            notification.channel,
            notification.recipient_id,
            notification.subject,
            notification.content,
            notification.metadata.as_dict(),
        )
    except Exception as e:
        logger.error(
            "channel_send_raised",
            notification_id=notification.id,
            channel=notification.channel.value,
            error=str(e),
            error_type=type(e).__name__,
        )
        return SendResult.failed(str(e) or type(e).__name__)
