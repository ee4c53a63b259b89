"""
Abstract Storage Interface

DESIGN DECISION: We define an abstract interface for durable storage.
This allows us to:
1. Keep the ledger on local JSON files today
2. Use in-memory storage for testing
3. Swap in a different backend later without touching the Ledger Store

The persisted state is three independent blobs:
- the month-key -> MonthlySession map (personal mode)
- the GroupEvent list (group mode)
- the light/dark theme preference

Storage calls are synchronous: every mutation writes before the next
user action is processed.
"""

from abc import ABC, abstractmethod
from collections.abc import Mapping, Sequence
from typing import Optional

from expense_ledger.models.audit import AuditEvent
from expense_ledger.models.ledger import GroupEvent, MonthlySession, Theme


class LedgerStorageInterface(ABC):
    """
    Abstract interface for ledger persistence.

    Any storage implementation must implement these methods.
    """

    @abstractmethod
    def load_sessions(self) -> dict[str, MonthlySession]:
        """
        Load the personal session map.

        Returns:
            Mapping of month-key to session (empty if nothing was stored)

        Raises:
            CorruptDataError: If stored data cannot be read back
        """
        pass

    @abstractmethod
    def save_sessions(self, sessions: Mapping[str, MonthlySession]) -> None:
        """
        Replace the stored session map.

        Raises:
            StorageWriteError: If the write fails
        """
        pass

    @abstractmethod
    def load_group_events(self) -> list[GroupEvent]:
        """Load the group event list (empty if nothing was stored)."""
        pass

    @abstractmethod
    def save_group_events(self, events: Sequence[GroupEvent]) -> None:
        """Replace the stored group event list."""
        pass

    @abstractmethod
    def load_theme(self) -> Optional[Theme]:
        """Load the theme preference, None if never saved."""
        pass

    @abstractmethod
    def save_theme(self, theme: Theme) -> None:
        pass


class AuditStorageInterface(ABC):
    """
    Abstract interface for audit log storage.

    Audit logs are append-only - we never delete or modify them.
    """

    @abstractmethod
    def append_event(self, event: AuditEvent) -> bool:
        """
        Append an audit event to the log.

        Returns:
            True if logged successfully
        """
        pass

    @abstractmethod
    def get_recent_events(self, limit: int = 100) -> list[AuditEvent]:
        """
        Get the most recent audit events (newest first).
        """
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class CorruptDataError(StorageError):
    """Stored data exists but cannot be parsed back into the ledger models."""
    pass


class StorageWriteError(StorageError):
    """A write to durable storage failed."""
    pass
