"""
Audit Logger

DESIGN DECISION: Every state change on a profile is logged.
This provides:
1. Traceability of ledger, archive and budget changes
2. Debugging capability for sync and storage fallbacks
3. A history the user can inspect

The audit logger:
- Logs locally through structlog (JSON lines)
- Gracefully handles failures (never crashes the action being logged)
- Tags every event with the profile it belongs to
"""

import logging
import sys
from typing import Optional

import structlog

from finance_tracker.models.audit import AuditEvent, AuditEventBuilder, AuditSeverity


# Configure structlog for local logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)

logger = structlog.get_logger(__name__)


def configure_logging(level: str = "INFO") -> None:
    """Route structlog output to stderr at the given level."""
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stderr,
        level=getattr(logging, level.upper(), logging.INFO),
    )


class AuditLogger:
    """
    Central audit logging service.

    Keeps an in-memory trail of the events of this process and writes each
    one to the structured local log.
    """

    def __init__(self, keep_history: int = 500):
        """
        Initialize audit logger.

        Args:
            keep_history: How many recent events to keep in memory.
        """
        self._logger = structlog.get_logger("finance_tracker.audit")
        self._history: list[AuditEvent] = []
        self._keep_history = keep_history

    @property
    def history(self) -> list[AuditEvent]:
        """Recent events, oldest first."""
        return list(self._history)

    def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Returns True if the event was written to the local log.
        """
        self._history.append(event)
        if len(self._history) > self._keep_history:
            del self._history[: len(self._history) - self._keep_history]

        log_dict = event.to_log_dict()
        try:
            if event.severity == AuditSeverity.ERROR:
                self._logger.error("audit_event", **log_dict)
            elif event.severity == AuditSeverity.WARNING:
                self._logger.warning("audit_event", **log_dict)
            else:
                self._logger.info("audit_event", **log_dict)
        except Exception as e:
            # Logging must never break the action being logged
            logger.error(
                "audit_log_failed",
                error=str(e),
                event_id=str(event.event_id),
                event_type=event.event_type.value,
            )
            return False
        return True

    def log_transaction_added(
        self,
        profile: str,
        transaction_id: int,
        transaction_type: str,
        amount: str,
        category: str,
    ) -> None:
        self.log(AuditEventBuilder.transaction_added(
            profile=profile,
            transaction_id=transaction_id,
            transaction_type=transaction_type,
            amount=amount,
            category=category,
        ))

    def log_transaction_removed(self, profile: str, transaction_id: int) -> None:
        self.log(AuditEventBuilder.transaction_removed(profile, transaction_id))

    def log_transaction_rejected(self, profile: str, kind: str, message: str) -> None:
        self.log(AuditEventBuilder.transaction_rejected(profile, kind, message))

    def log_ledger_cleared(self, profile: str, removed_count: int) -> None:
        self.log(AuditEventBuilder.ledger_cleared(profile, removed_count))

    def log_archive_created(
        self,
        profile: str,
        key: str,
        transaction_count: int,
        replaced: bool = False,
    ) -> None:
        self.log(AuditEventBuilder.archive_created(
            profile=profile,
            key=key,
            transaction_count=transaction_count,
            replaced=replaced,
        ))

    def log_archive_removed(self, profile: str, key: str) -> None:
        self.log(AuditEventBuilder.archive_removed(profile, key))

    def log_budget_set(self, profile: str, category: str, amount: str) -> None:
        self.log(AuditEventBuilder.budget_set(profile, category, amount))

    def log_budget_removed(self, profile: str, category: str) -> None:
        self.log(AuditEventBuilder.budget_removed(profile, category))

    def log_profile_switched(self, previous: Optional[str], profile: str) -> None:
        self.log(AuditEventBuilder.profile_switched(previous, profile))

    def log_profile_unlock_failed(self, profile: str) -> None:
        self.log(AuditEventBuilder.profile_unlock_failed(profile))

    def log_snapshot_exported(
        self,
        profile: str,
        transaction_count: int,
        archive_count: int,
    ) -> None:
        self.log(AuditEventBuilder.snapshot_exported(
            profile, transaction_count, archive_count
        ))

    def log_snapshot_imported(
        self,
        profile: str,
        source_profile: str,
        transaction_count: int,
        archive_count: int,
    ) -> None:
        self.log(AuditEventBuilder.snapshot_imported(
            profile=profile,
            source_profile=source_profile,
            transaction_count=transaction_count,
            archive_count=archive_count,
        ))

    def log_snapshot_rejected(self, profile: str, error_message: str) -> None:
        self.log(AuditEventBuilder.snapshot_rejected(profile, error_message))

    def log_migration_applied(self, profile: str, name: str) -> None:
        self.log(AuditEventBuilder.migration_applied(profile, name))

    def log_remote_sync_failed(
        self,
        collection: str,
        profile: str,
        operation: str,
        error_message: str,
    ) -> None:
        self.log(AuditEventBuilder.remote_sync_failed(
            collection=collection,
            profile=profile,
            operation=operation,
            error_message=error_message,
        ))

    def log_storage_corrupt(self, key: str, profile: str, error_message: str) -> None:
        self.log(AuditEventBuilder.storage_corrupt(key, profile, error_message))
