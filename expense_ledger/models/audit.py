"""
Audit Models for the Expense Ledger

Every mutation of the ledger, every import and every analysis request
produces an audit event. This provides:
1. Traceability of how the ledger reached its current state
2. Debugging information when an import drops records or a save fails
3. A record of blocked mutations against locked sessions

DESIGN DECISION: Audit logs are append-only. We never delete or modify them.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


class AuditEventType(str, Enum):
    """Types of events we audit."""
    # Expense mutations
    EXPENSE_ADDED = "expense_added"
    EXPENSE_UPDATED = "expense_updated"
    EXPENSE_RELOCATED = "expense_relocated"
    EXPENSE_DELETED = "expense_deleted"
    MUTATION_BLOCKED = "mutation_blocked"

    # Containers
    LOCK_TOGGLED = "lock_toggled"
    BUDGET_SET = "budget_set"
    GROUP_EVENT_CREATED = "group_event_created"
    MEMBER_ADDED = "member_added"
    MEMBER_REMOVED = "member_removed"

    # Bulk data movement
    BACKUP_MERGED = "backup_merged"
    IMPORT_COMPLETED = "import_completed"
    IMPORT_FAILED = "import_failed"
    EXPORT_CREATED = "export_created"

    # Analysis
    ANALYSIS_COMPLETED = "analysis_completed"
    ANALYSIS_FAILED = "analysis_failed"

    # System events
    PERSIST_FAILED = "persist_failed"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


class AuditEvent(BaseModel):
    """
    A single audit event.

    This is the core unit of our audit trail.
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=datetime.now,
        description="When the event occurred"
    )

    # Event classification
    event_type: AuditEventType
    severity: AuditSeverity = AuditSeverity.INFO

    # What the event is about: 'expense', 'session', 'group_event', 'import'...
    entity_type: Optional[str] = None
    entity_id: Optional[str] = None

    description: str = Field(
        ...,
        max_length=500,
        description="Human-readable description of what happened"
    )
    details: dict[str, Any] = Field(default_factory=dict)

    is_user_action: bool = Field(
        default=False,
        description="Was this triggered by a user action?"
    )

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "description": self.description,
            "details": self.details,
            "is_user_action": self.is_user_action,
        }


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.expense_added(expense_id, "2024-03", 50000)
        event = AuditEventBuilder.mutation_blocked("delete", "session", "2024-03")
    """

    @staticmethod
    def expense_added(
        expense_id: str,
        container_id: str,
        amount: str,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXPENSE_ADDED,
            entity_type="expense",
            entity_id=expense_id,
            description=f"Expense added to {container_id}",
            details={"container_id": container_id, "amount": amount},
            is_user_action=True,
        )

    @staticmethod
    def expense_updated(expense_id: str, container_id: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXPENSE_UPDATED,
            entity_type="expense",
            entity_id=expense_id,
            description=f"Expense updated in {container_id}",
            details={"container_id": container_id},
            is_user_action=True,
        )

    @staticmethod
    def expense_relocated(
        expense_id: str,
        from_month: str,
        to_month: str,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXPENSE_RELOCATED,
            entity_type="expense",
            entity_id=expense_id,
            description=f"Expense moved from {from_month} to {to_month}",
            details={"from_month": from_month, "to_month": to_month},
            is_user_action=True,
        )

    @staticmethod
    def expense_deleted(expense_id: str, container_id: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXPENSE_DELETED,
            entity_type="expense",
            entity_id=expense_id,
            description=f"Expense deleted from {container_id}",
            details={"container_id": container_id},
            is_user_action=True,
        )

    @staticmethod
    def mutation_blocked(
        operation: str,
        container_type: str,
        container_id: str,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.MUTATION_BLOCKED,
            severity=AuditSeverity.WARNING,
            entity_type=container_type,
            entity_id=container_id,
            description=f"Refused {operation}: {container_type} {container_id} is locked",
            details={"operation": operation},
        )

    @staticmethod
    def lock_toggled(
        container_type: str,
        container_id: str,
        locked: bool,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.LOCK_TOGGLED,
            entity_type=container_type,
            entity_id=container_id,
            description=f"{container_type.capitalize()} {container_id} {'locked' if locked else 'unlocked'}",
            details={"locked": locked},
            is_user_action=True,
        )

    @staticmethod
    def budget_set(month: str, budget: Optional[str]) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.BUDGET_SET,
            entity_type="session",
            entity_id=month,
            description=f"Budget for {month} set to {budget}",
            details={"budget": budget},
            is_user_action=True,
        )

    @staticmethod
    def group_event_created(event_id: str, name: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.GROUP_EVENT_CREATED,
            entity_type="group_event",
            entity_id=event_id,
            description=f"Group event created: {name}",
            details={"name": name},
            is_user_action=True,
        )

    @staticmethod
    def member_changed(event_id: str, member_name: str, added: bool) -> AuditEvent:
        return AuditEvent(
            event_type=(
                AuditEventType.MEMBER_ADDED if added else AuditEventType.MEMBER_REMOVED
            ),
            entity_type="group_event",
            entity_id=event_id,
            description=f"Member {'added' if added else 'removed'}: {member_name}",
            details={"member": member_name},
            is_user_action=True,
        )

    @staticmethod
    def backup_merged(months: list[str], expense_count: int) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.BACKUP_MERGED,
            entity_type="import",
            description=f"Backup merged: {len(months)} months, {expense_count} expenses",
            details={"months": months, "expense_count": expense_count},
            is_user_action=True,
        )

    @staticmethod
    def import_completed(
        source: str,
        imported: int,
        skipped: int,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.IMPORT_COMPLETED,
            entity_type="import",
            description=f"Imported {imported} records from {source}",
            details={"source": source, "imported": imported, "skipped": skipped},
            is_user_action=True,
        )

    @staticmethod
    def import_failed(source: str, error_message: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.IMPORT_FAILED,
            severity=AuditSeverity.WARNING,
            entity_type="import",
            description=f"Import from {source} failed",
            details={"source": source, "error": error_message},
        )

    @staticmethod
    def export_created(filename: str, expense_count: int) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXPORT_CREATED,
            entity_type="export",
            description=f"Export prepared: {filename}",
            details={"filename": filename, "expense_count": expense_count},
            is_user_action=True,
        )

    @staticmethod
    def analysis_completed(mood: str, expense_count: int) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ANALYSIS_COMPLETED,
            entity_type="analysis",
            description=f"Spending analysis completed ({mood})",
            details={"mood": mood, "expense_count": expense_count},
        )

    @staticmethod
    def analysis_failed(reason: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ANALYSIS_FAILED,
            severity=AuditSeverity.WARNING,
            entity_type="analysis",
            description="Spending analysis fell back to the offline message",
            details={"reason": reason},
        )

    @staticmethod
    def persist_failed(blob: str, error_message: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.PERSIST_FAILED,
            severity=AuditSeverity.ERROR,
            entity_type="storage",
            entity_id=blob,
            description=f"Could not persist {blob}; keeping in-memory state",
            details={"error": error_message},
        )
