"""Audit sink boundary.

Audit writing is an external concern. The engine reports lifecycle events
(retry outcomes, alerts, administrative actions) through ``AuditSink`` and
never lets a failing sink block or fail a delivery.
"""

from typing import Protocol

import structlog

from delivery.enums import AuditStatus

logger = structlog.get_logger(__name__)


class AuditSink(Protocol):
    """Receives audit events from the engine."""

    def log_event(
        self,
        action: str,
        entity_type: str,
        entity_id: str,
        details: str,
        status: AuditStatus,
        error: str | None = None,
    ) -> None:
        """Record one audit event."""
        ...


class StructlogAuditSink:
    """Writes audit events to the ``delivery.audit`` structlog logger."""

    def __init__(self) -> None:
        self._logger = structlog.get_logger("delivery.audit")

    def log_event(
        self,
        action: str,
        entity_type: str,
        entity_id: str,
        details: str,
        status: AuditStatus,
        error: str | None = None,
    ) -> None:
        log = (
            self._logger.info if status == AuditStatus.SUCCESS else self._logger.warning
        )
        log(
            "audit_event",
            action=action,
            entity_type=entity_type,
            entity_id=entity_id,
            details=details,
            status=status.value,
            error=error,
        )


class GuardedAuditSink:
    """Fire-and-forget wrapper: sink failures are logged and dropped."""

    def __init__(self, sink: AuditSink) -> None:
        self._sink = sink

    def log_event(
        self,
        action: str,
        entity_type: str,
        entity_id: str,
        details: str,
        status: AuditStatus,
        error: str | None = None,
    ) -> None:
        try:
            self._sink.log_event(action, entity_type, entity_id, details, status, error)
        except Exception as e:
            logger.warning(
                "audit_log_failed",
                action=action,
                entity_id=entity_id,
                error=str(e),
            )
