"""
Audit Models for Finance Tracker

Every state change on a profile is recorded as an activity event.
This provides:
1. Traceability of ledger, archive and budget changes
2. Debugging information when sync or storage misbehaves
3. Ability to reconstruct what happened to a profile

DESIGN DECISION: Audit events are append-only and local-only.
Losing an audit event never fails the action it describes.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


class AuditEventType(str, Enum):
    """Types of events we audit."""
    # Ledger
    TRANSACTION_ADDED = "transaction_added"
    TRANSACTION_REMOVED = "transaction_removed"
    TRANSACTION_REJECTED = "transaction_rejected"
    LEDGER_CLEARED = "ledger_cleared"

    # Archives
    ARCHIVE_CREATED = "archive_created"
    ARCHIVE_REPLACED = "archive_replaced"
    ARCHIVE_REMOVED = "archive_removed"

    # Budgets
    BUDGET_SET = "budget_set"
    BUDGET_REMOVED = "budget_removed"

    # Profiles
    PROFILE_SWITCHED = "profile_switched"
    PROFILE_UNLOCK_FAILED = "profile_unlock_failed"

    # Data transfer
    SNAPSHOT_EXPORTED = "snapshot_exported"
    SNAPSHOT_IMPORTED = "snapshot_imported"
    SNAPSHOT_REJECTED = "snapshot_rejected"

    # Persistence
    MIGRATION_APPLIED = "migration_applied"
    REMOTE_SYNC_FAILED = "remote_sync_failed"
    STORAGE_CORRUPT = "storage_corrupt"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


class AuditEvent(BaseModel):
    """
    A single audit event.

    Every significant action creates one of these.
    """

    event_id: UUID = Field(default_factory=uuid4)
    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="When the event occurred (UTC)"
    )

    event_type: AuditEventType
    severity: AuditSeverity = AuditSeverity.INFO

    # Which profile namespace this happened in
    profile: Optional[str] = None

    # What entity is this about? (transaction id, archive key, category ...)
    entity_type: Optional[str] = None
    entity_id: Optional[str] = None

    description: str = Field(..., max_length=500)
    details: dict[str, Any] = Field(default_factory=dict)

    error_message: Optional[str] = None

    is_user_action: bool = False

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "profile": self.profile,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "description": self.description,
            "details": self.details,
            "error_message": self.error_message,
            "is_user_action": self.is_user_action,
        }


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.transaction_added(profile, transaction_id, ...)
        event = AuditEventBuilder.archive_created(profile, key, count)
    """

    @staticmethod
    def transaction_added(
        profile: str,
        transaction_id: int,
        transaction_type: str,
        amount: str,
        category: str,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSACTION_ADDED,
            profile=profile,
            entity_type="transaction",
            entity_id=str(transaction_id),
            description=f"{transaction_type.capitalize()} added: {category} {amount}",
            details={
                "type": transaction_type,
                "amount": amount,
                "category": category,
            },
            is_user_action=True,
        )

    @staticmethod
    def transaction_removed(profile: str, transaction_id: int) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSACTION_REMOVED,
            profile=profile,
            entity_type="transaction",
            entity_id=str(transaction_id),
            description=f"Transaction {transaction_id} removed",
            is_user_action=True,
        )

    @staticmethod
    def transaction_rejected(profile: str, kind: str, message: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSACTION_REJECTED,
            severity=AuditSeverity.WARNING,
            profile=profile,
            entity_type="transaction",
            description=f"Transaction rejected: {kind}",
            error_message=message,
            details={"kind": kind},
            is_user_action=True,
        )

    @staticmethod
    def ledger_cleared(profile: str, removed_count: int) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.LEDGER_CLEARED,
            profile=profile,
            entity_type="ledger",
            description=f"Ledger cleared ({removed_count} transactions)",
            details={"removed_count": removed_count},
            is_user_action=True,
        )

    @staticmethod
    def archive_created(
        profile: str,
        key: str,
        transaction_count: int,
        replaced: bool = False,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=(
                AuditEventType.ARCHIVE_REPLACED
                if replaced
                else AuditEventType.ARCHIVE_CREATED
            ),
            profile=profile,
            entity_type="archive",
            entity_id=key,
            description=(
                f"Archive {key} {'replaced' if replaced else 'created'} "
                f"with {transaction_count} transactions"
            ),
            details={"transaction_count": transaction_count},
            is_user_action=True,
        )

    @staticmethod
    def archive_removed(profile: str, key: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ARCHIVE_REMOVED,
            profile=profile,
            entity_type="archive",
            entity_id=key,
            description=f"Archive {key} removed",
            is_user_action=True,
        )

    @staticmethod
    def budget_set(profile: str, category: str, amount: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.BUDGET_SET,
            profile=profile,
            entity_type="budget",
            entity_id=category,
            description=f"Budget for {category} set to {amount}",
            details={"amount": amount},
            is_user_action=True,
        )

    @staticmethod
    def budget_removed(profile: str, category: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.BUDGET_REMOVED,
            profile=profile,
            entity_type="budget",
            entity_id=category,
            description=f"Budget for {category} removed",
            is_user_action=True,
        )

    @staticmethod
    def profile_switched(previous: Optional[str], profile: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.PROFILE_SWITCHED,
            profile=profile,
            entity_type="profile",
            entity_id=profile,
            description=f"Switched profile from {previous or 'none'} to {profile}",
            details={"previous": previous},
            is_user_action=True,
        )

    @staticmethod
    def profile_unlock_failed(profile: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.PROFILE_UNLOCK_FAILED,
            severity=AuditSeverity.WARNING,
            profile=profile,
            entity_type="profile",
            entity_id=profile,
            description=f"Incorrect PIN entered for {profile}",
            is_user_action=True,
        )

    @staticmethod
    def snapshot_exported(profile: str, transaction_count: int, archive_count: int) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SNAPSHOT_EXPORTED,
            profile=profile,
            entity_type="snapshot",
            description="Profile data exported",
            details={
                "transaction_count": transaction_count,
                "archive_count": archive_count,
            },
            is_user_action=True,
        )

    @staticmethod
    def snapshot_imported(
        profile: str,
        source_profile: str,
        transaction_count: int,
        archive_count: int,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SNAPSHOT_IMPORTED,
            profile=profile,
            entity_type="snapshot",
            description=f"Profile data imported from {source_profile} export",
            details={
                "source_profile": source_profile,
                "transaction_count": transaction_count,
                "archive_count": archive_count,
            },
            is_user_action=True,
        )

    @staticmethod
    def snapshot_rejected(profile: str, error_message: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SNAPSHOT_REJECTED,
            severity=AuditSeverity.WARNING,
            profile=profile,
            entity_type="snapshot",
            description="Import rejected: invalid file format",
            error_message=error_message,
            is_user_action=True,
        )

    @staticmethod
    def migration_applied(profile: str, name: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.MIGRATION_APPLIED,
            profile=profile,
            entity_type="migration",
            entity_id=name,
            description=f"Migration {name} applied",
        )

    @staticmethod
    def remote_sync_failed(
        collection: str,
        profile: str,
        operation: str,
        error_message: str,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.REMOTE_SYNC_FAILED,
            severity=AuditSeverity.WARNING,
            profile=profile,
            entity_type="collection",
            entity_id=collection,
            description=f"Remote {operation} failed for {collection}, continuing locally",
            error_message=error_message,
            details={"operation": operation},
        )

    @staticmethod
    def storage_corrupt(key: str, profile: str, error_message: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.STORAGE_CORRUPT,
            severity=AuditSeverity.ERROR,
            profile=profile,
            entity_type="local_key",
            entity_id=key,
            description=f"Local data for {key} is unreadable, using default",
            error_message=error_message,
        )
