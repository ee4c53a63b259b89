"""
Ledger Store

The single owner of every expense in the application.

RESPONSIBILITIES:
- Hold the month-key -> MonthlySession map (personal mode)
- Hold the GroupEvent list (group mode)
- Track which container the user is looking at (current month / event)
- Apply add / update / delete / lock mutations
- Persist after every mutation

CRITICAL INVARIANTS:
1. A locked session (isCompleted) or archived event (isArchived) is frozen.
   add / update / delete against it are refused, no matter who calls.
   Refusals are silent no-ops for the caller (None / False) and are
   written to the audit log.
2. Only the store creates month-key -> session associations.
3. An empty collection is never written over stored data, and a blob that
   failed to load is not written at all until the user discards it
   (discard_unreadable). A store that failed to load cannot wipe the
   user's file.
4. Callers get copies. Mutating a returned Expense does not touch the ledger.

Lifecycle:
    store = LedgerStore(storage)
    store.load()      # once, at startup
    store.add_expense(draft)   # each mutation saves
"""

from collections.abc import Iterable
from datetime import datetime
from decimal import Decimal
from typing import Optional, Union

import structlog

from expense_ledger.audit import AuditLogger
from expense_ledger.models.audit import AuditEvent, AuditEventBuilder
from expense_ledger.models.ledger import (
    Expense,
    ExpenseDraft,
    GroupEvent,
    GroupEventDraft,
    GroupMember,
    MonthlySession,
    Theme,
    ViewMode,
    month_key,
    new_id,
    shift_month,
)
from expense_ledger.queries import SpendingSummary, summarize
from expense_ledger.services.storage import LedgerStorageInterface, StorageError


Container = Union[MonthlySession, GroupEvent]


class LedgerError(Exception):
    """Base exception for ledger operations."""
    pass


class UnknownEventError(LedgerError):
    """No group event with the given id."""
    pass


class NoActiveEventError(LedgerError):
    """A group-mode operation was requested with no event selected."""
    pass


class LedgerStore:
    """
    In-memory ledger backed by a durable storage collaborator.

    All mutations run to completion synchronously, one at a time.
    """

    def __init__(
        self,
        storage: LedgerStorageInterface,
        audit_logger: Optional[AuditLogger] = None,
        today: Optional[datetime] = None,
    ):
        self._storage = storage
        self._audit_logger = audit_logger
        self._logger = structlog.get_logger(__name__)

        self._sessions: dict[str, MonthlySession] = {}
        self._events: list[GroupEvent] = []
        self._theme = Theme.LIGHT
        self._unreadable: set[str] = set()

        self.mode = ViewMode.PERSONAL
        self.current_month = month_key(today or datetime.now())
        self.active_event_id: Optional[str] = None

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    def load(self) -> None:
        """
        Load state from durable storage.

        Individual expenses that no longer validate are dropped by the
        storage layer; the rest of their month still loads. A blob that
        fails to load as a whole is logged, left empty in memory and
        marked unreadable: it is never saved over until the user calls
        discard_unreadable().
        """
        try:
            self._sessions = self._storage.load_sessions()
        except StorageError as e:
            self._unreadable.add("sessions")
            self._logger.error("sessions_load_failed", error=str(e))

        try:
            self._events = self._storage.load_group_events()
        except StorageError as e:
            self._unreadable.add("group_events")
            self._logger.error("group_events_load_failed", error=str(e))

        try:
            self._theme = self._storage.load_theme() or Theme.LIGHT
        except StorageError as e:
            self._logger.error("theme_load_failed", error=str(e))

        self._logger.info(
            "ledger_loaded",
            sessions=len(self._sessions),
            group_events=len(self._events),
            unreadable=sorted(self._unreadable),
        )

    @property
    def unreadable_blobs(self) -> list[str]:
        """Stored blobs that failed to load and are protected from writes."""
        return sorted(self._unreadable)

    def discard_unreadable(self) -> list[str]:
        """
        Give up on blobs that failed to load and resume saving them.

        The in-memory state replaces whatever is stored. Returns the
        blobs that were discarded.
        """
        discarded = sorted(self._unreadable)
        self._unreadable.clear()
        if discarded:
            self._logger.warning("unreadable_blobs_discarded", blobs=discarded)
            self._persist_sessions()
            self._persist_events()
        return discarded

    def _writable(self, blob: str) -> bool:
        if blob not in self._unreadable:
            return True
        self._audit(AuditEventBuilder.persist_failed(
            blob, "stored data could not be read; refusing to overwrite it",
        ))
        return False

    def _persist_sessions(self) -> None:
        if not self._sessions or not self._writable("sessions"):
            return
        try:
            self._storage.save_sessions(self._sessions)
        except StorageError as e:
            self._audit(AuditEventBuilder.persist_failed("sessions", str(e)))

    def _persist_events(self) -> None:
        if not self._events or not self._writable("group_events"):
            return
        try:
            self._storage.save_group_events(self._events)
        except StorageError as e:
            self._audit(AuditEventBuilder.persist_failed("group_events", str(e)))

    def _persist(self) -> None:
        if self.mode == ViewMode.GROUP:
            self._persist_events()
        else:
            self._persist_sessions()

    def _audit(self, event: AuditEvent) -> None:
        if self._audit_logger:
            self._audit_logger.log(event)

    def _blocked(self, operation: str, container: Container) -> None:
        container_type = "session" if isinstance(container, MonthlySession) else "group_event"
        self._audit(AuditEventBuilder.mutation_blocked(operation, container_type, container.id))

    # =========================================================================
    # READ VIEWS
    # =========================================================================

    @property
    def theme(self) -> Theme:
        return self._theme

    @property
    def month_keys(self) -> list[str]:
        return sorted(self._sessions)

    def get_session(self, key: str) -> Optional[MonthlySession]:
        session = self._sessions.get(key)
        return session.model_copy(deep=True) if session else None

    def sessions_snapshot(self) -> dict[str, MonthlySession]:
        return {key: session.model_copy(deep=True) for key, session in self._sessions.items()}

    @property
    def group_events(self) -> list[GroupEvent]:
        return [event.model_copy(deep=True) for event in self._events]

    def get_event(self, event_id: str) -> Optional[GroupEvent]:
        event = self._find_event(event_id)
        return event.model_copy(deep=True) if event else None

    @property
    def active_event(self) -> Optional[GroupEvent]:
        if self.active_event_id is None:
            return None
        return self.get_event(self.active_event_id)

    def current_expenses(self) -> list[Expense]:
        """Expenses of the container currently in view (copies)."""
        container = self._current_container()
        if container is None:
            return []
        return [expense.model_copy() for expense in container.expenses]

    def is_current_locked(self) -> bool:
        container = self._current_container()
        return bool(container and container.is_locked)

    def current_summary(self) -> SpendingSummary:
        container = self._current_container()
        budget = container.budget if isinstance(container, MonthlySession) else None
        return summarize(container.expenses if container else [], budget)

    # =========================================================================
    # NAVIGATION
    # =========================================================================

    def change_month(self, delta: int) -> str:
        self.current_month = shift_month(self.current_month, delta)
        return self.current_month

    def set_month(self, key: str) -> None:
        # Validates the key format
        self.current_month = shift_month(key, 0)

    def switch_mode(self, mode: ViewMode) -> None:
        self.mode = mode

    def select_event(self, event_id: str) -> GroupEvent:
        event = self._find_event(event_id)
        if event is None:
            raise UnknownEventError(f"No group event with id {event_id}")
        self.active_event_id = event.id
        self.mode = ViewMode.GROUP
        return event.model_copy(deep=True)

    # =========================================================================
    # INTERNAL LOOKUP
    # =========================================================================

    def _find_event(self, event_id: Optional[str]) -> Optional[GroupEvent]:
        for event in self._events:
            if event.id == event_id:
                return event
        return None

    def _require_active_event(self) -> GroupEvent:
        event = self._find_event(self.active_event_id)
        if event is None:
            raise NoActiveEventError("No group event is selected")
        return event

    def _current_container(self) -> Optional[Container]:
        if self.mode == ViewMode.GROUP:
            return self._find_event(self.active_event_id)
        return self._sessions.get(self.current_month)

    def _session_for(self, key: str) -> MonthlySession:
        session = self._sessions.get(key)
        if session is None:
            session = MonthlySession(id=key)
            self._sessions[key] = session
        return session

    def _place(self, draft: ExpenseDraft) -> Optional[Expense]:
        """
        Put a new expense at the front of its container without saving.

        Personal mode routes by the month of the expense's own date.
        Group mode routes to the selected event.
        Returns None if the target is locked.
        """
        if self.mode == ViewMode.GROUP:
            container: Container = self._require_active_event()
        else:
            existing = self._sessions.get(draft.month_key)
            if existing is not None and existing.is_locked:
                self._blocked("add", existing)
                return None
            container = self._session_for(draft.month_key)

        if container.is_locked:
            self._blocked("add", container)
            return None

        expense = Expense.from_draft(draft)
        container.expenses.insert(0, expense)
        return expense

    # =========================================================================
    # MUTATIONS
    # =========================================================================

    def add_expense(self, draft: ExpenseDraft) -> Optional[Expense]:
        """
        Add a new expense with a fresh id.

        Returns:
            A copy of the stored expense, or None if the target is locked.

        Raises:
            NoActiveEventError: In group mode with no event selected
        """
        expense = self._place(draft)
        if expense is None:
            return None

        self._persist()
        self._audit(AuditEventBuilder.expense_added(
            expense_id=expense.id,
            container_id=self._container_id_for(expense),
            amount=str(expense.amount),
        ))
        return expense.model_copy()

    def import_expenses(self, drafts: Iterable[ExpenseDraft]) -> int:
        """
        Bulk add. Drafts whose target is locked are skipped; the rest land.

        Saves once at the end. Returns how many were stored.
        """
        stored = 0
        for draft in drafts:
            if self._place(draft) is not None:
                stored += 1
        if stored:
            self._persist()
        return stored

    def _container_id_for(self, expense: Expense) -> str:
        if self.mode == ViewMode.GROUP:
            return self.active_event_id or ""
        return expense.month_key

    def update_expense(self, updated: Expense) -> bool:
        """
        Replace an expense (matched by id).

        In personal mode an edit that moves the date into another month
        relocates the expense: removed from the origin session, appended to
        the destination session (created if needed).

        Returns False when nothing changed: unknown id, or origin or
        destination locked.
        """
        updated = Expense.model_validate(updated.model_dump())

        if self.mode == ViewMode.GROUP:
            event = self._require_active_event()
            if event.is_locked:
                self._blocked("update", event)
                return False
            index = self._index_of(event.expenses, updated.id)
            if index is None:
                return False
            event.expenses[index] = updated
            self._persist_events()
            self._audit(AuditEventBuilder.expense_updated(updated.id, event.id))
            return True

        origin = self._session_containing(updated.id)
        if origin is None:
            return False
        if origin.is_locked:
            self._blocked("update", origin)
            return False

        index = self._index_of(origin.expenses, updated.id)
        old_key = month_key(origin.expenses[index].date)
        new_key = updated.month_key

        if old_key == new_key or origin.id == new_key:
            origin.expenses[index] = updated
            self._persist_sessions()
            self._audit(AuditEventBuilder.expense_updated(updated.id, origin.id))
            return True

        destination = self._sessions.get(new_key)
        if destination is not None and destination.is_locked:
            self._blocked("update", destination)
            return False

        del origin.expenses[index]
        self._session_for(new_key).expenses.append(updated)
        self._persist_sessions()
        self._audit(AuditEventBuilder.expense_relocated(updated.id, origin.id, new_key))
        return True

    def _session_containing(self, expense_id: str) -> Optional[MonthlySession]:
        # Most edits happen in the month on screen
        current = self._sessions.get(self.current_month)
        if current is not None and self._index_of(current.expenses, expense_id) is not None:
            return current
        for session in self._sessions.values():
            if self._index_of(session.expenses, expense_id) is not None:
                return session
        return None

    @staticmethod
    def _index_of(expenses: list[Expense], expense_id: str) -> Optional[int]:
        for index, expense in enumerate(expenses):
            if expense.id == expense_id:
                return index
        return None

    def delete_expense(self, expense_id: str) -> bool:
        """
        Remove an expense from the container in view.

        Confirmation is the caller's job. Returns False when locked or
        when the id is not in the current container.
        """
        container = self._current_container()
        if container is None:
            return False
        if container.is_locked:
            self._blocked("delete", container)
            return False

        index = self._index_of(container.expenses, expense_id)
        if index is None:
            return False

        del container.expenses[index]
        self._persist()
        self._audit(AuditEventBuilder.expense_deleted(expense_id, container.id))
        return True

    def toggle_lock(self) -> bool:
        """
        Flip the lock flag of the container in view.

        Locking is reversible at any time. Returns the new state.
        """
        if self.mode == ViewMode.GROUP:
            event = self._require_active_event()
            event.is_archived = not event.is_archived
            locked = event.is_archived
            self._persist_events()
            self._audit(AuditEventBuilder.lock_toggled("group_event", event.id, locked))
            return locked

        session = self._session_for(self.current_month)
        session.is_completed = not session.is_completed
        self._persist_sessions()
        self._audit(AuditEventBuilder.lock_toggled("session", session.id, session.is_completed))
        return session.is_completed

    def set_budget(self, budget: Optional[Decimal]) -> bool:
        """Set or clear the current month's budget. Refused when locked."""
        session = self._sessions.get(self.current_month)
        if session is not None and session.is_locked:
            self._blocked("set_budget", session)
            return False

        session = self._session_for(self.current_month)
        session.budget = Decimal(budget) if budget is not None else None
        self._persist_sessions()
        self._audit(AuditEventBuilder.budget_set(
            session.id,
            str(session.budget) if session.budget is not None else None,
        ))
        return True

    def create_group_event(self, draft: GroupEventDraft) -> GroupEvent:
        """Open a new group event (fresh id, no expenses) at the front of the list."""
        event = GroupEvent(id=new_id(), expenses=[], **draft.model_dump())
        self._events.insert(0, event)
        self._persist_events()
        self._audit(AuditEventBuilder.group_event_created(event.id, event.name))
        return event.model_copy(deep=True)

    def add_member(self, name: str) -> Optional[GroupMember]:
        event = self._require_active_event()
        if event.is_locked:
            self._blocked("add_member", event)
            return None
        member = GroupMember(name=name)
        event.members.append(member)
        self._persist_events()
        self._audit(AuditEventBuilder.member_changed(event.id, member.name, added=True))
        return member.model_copy()

    def remove_member(self, member_id: str) -> bool:
        event = self._require_active_event()
        if event.is_locked:
            self._blocked("remove_member", event)
            return False
        for index, member in enumerate(event.members):
            if member.id == member_id:
                del event.members[index]
                self._persist_events()
                self._audit(AuditEventBuilder.member_changed(event.id, member.name, added=False))
                return True
        return False

    def merge_sessions(self, sessions: dict[str, MonthlySession]) -> Optional[str]:
        """
        Merge a full backup into the session map.

        Imported month-keys replace existing ones wholesale; other months
        are kept. The latest imported month becomes the month in view.

        Returns:
            The month-key now in view, or None if nothing was merged.
        """
        if not sessions:
            return None

        for key, session in sessions.items():
            self._sessions[key] = session.model_copy(deep=True)

        latest = max(sessions)
        self.current_month = latest
        self.mode = ViewMode.PERSONAL
        self._persist_sessions()
        self._audit(AuditEventBuilder.backup_merged(
            sorted(sessions),
            sum(len(session.expenses) for session in sessions.values()),
        ))
        return latest

    # =========================================================================
    # PREFERENCES
    # =========================================================================

    def set_theme(self, theme: Theme) -> None:
        self._theme = theme
        try:
            self._storage.save_theme(theme)
        except StorageError as e:
            self._audit(AuditEventBuilder.persist_failed("theme", str(e)))

    def toggle_theme(self) -> Theme:
        self.set_theme(Theme.LIGHT if self._theme == Theme.DARK else Theme.DARK)
        return self._theme
