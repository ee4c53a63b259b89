"""
In-memory storage, used by tests and when no data directory is wanted.

Blobs are kept in their JSON shape (not as live model objects), so a
load always returns fresh objects, exactly like reading a file back.
"""

from collections.abc import Mapping, Sequence
from typing import Any, Optional

from pydantic import ValidationError

from expense_ledger.models.audit import AuditEvent
from expense_ledger.models.ledger import GroupEvent, MonthlySession, Theme
from expense_ledger.services.storage.interface import (
    AuditStorageInterface,
    CorruptDataError,
    LedgerStorageInterface,
)
from expense_ledger.services.storage.serialization import (
    events_from_json,
    events_to_json,
    sessions_from_json,
    sessions_to_json,
)


class InMemoryLedgerStorage(LedgerStorageInterface):

    def __init__(
        self,
        sessions: Optional[dict[str, Any]] = None,
        group_events: Optional[list[Any]] = None,
        theme: Optional[Theme] = None,
    ):
        self.sessions_blob = sessions
        self.group_events_blob = group_events
        self.theme = theme
        self.write_count = 0

    def load_sessions(self) -> dict[str, MonthlySession]:
        if self.sessions_blob is None:
            return {}
        try:
            return sessions_from_json(self.sessions_blob)
        except ValidationError as e:
            raise CorruptDataError(f"Invalid session data: {e}") from e

    def save_sessions(self, sessions: Mapping[str, MonthlySession]) -> None:
        self.sessions_blob = sessions_to_json(sessions)
        self.write_count += 1

    def load_group_events(self) -> list[GroupEvent]:
        if self.group_events_blob is None:
            return []
        try:
            return events_from_json(self.group_events_blob)
        except ValidationError as e:
            raise CorruptDataError(f"Invalid group event data: {e}") from e

    def save_group_events(self, events: Sequence[GroupEvent]) -> None:
        self.group_events_blob = events_to_json(events)
        self.write_count += 1

    def load_theme(self) -> Optional[Theme]:
        return self.theme

    def save_theme(self, theme: Theme) -> None:
        self.theme = theme


class InMemoryAuditStorage(AuditStorageInterface):

    def __init__(self):
        self.events: list[AuditEvent] = []

    def append_event(self, event: AuditEvent) -> bool:
        self.events.append(event)
        return True

    def get_recent_events(self, limit: int = 100) -> list[AuditEvent]:
        return list(reversed(self.events))[:limit]
