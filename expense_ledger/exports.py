"""
Export Snapshots

Builds the downloadable JSON files: the whole personal session map, or one
group event. The personal snapshot is a valid full backup, so importing it
back restores exactly those months.
"""

import json
import re
import unicodedata
from typing import Any, NamedTuple, Optional

from expense_ledger.audit import AuditLogger
from expense_ledger.models.audit import AuditEventBuilder
from expense_ledger.models.ledger import GroupEvent
from expense_ledger.services.storage.serialization import sessions_to_json
from expense_ledger.store import LedgerStore


class ExportBundle(NamedTuple):
    filename: str
    content: str
    expense_count: int = 0

    @property
    def data(self) -> bytes:
        return self.content.encode("utf-8")


def slugify(text: str) -> str:
    """ASCII-fold, lowercase, collapse everything else to '-'."""
    # NFKD leaves đ/Đ intact
    text = text.replace("đ", "d").replace("Đ", "D")
    folded = unicodedata.normalize("NFKD", text).encode("ascii", "ignore").decode("ascii")
    slug = re.sub(r"[^a-z0-9]+", "-", folded.lower()).strip("-")
    return slug or "event"


def _dump(payload: Any) -> str:
    return json.dumps(payload, indent=2, ensure_ascii=False)


def record_export(audit_logger: Optional[AuditLogger], bundle: ExportBundle) -> None:
    """Audit a bundle once it has actually been handed to the user."""
    if audit_logger:
        audit_logger.log(AuditEventBuilder.export_created(bundle.filename, bundle.expense_count))


def build_personal_export(
    store: LedgerStore,
    audit_logger: Optional[AuditLogger] = None,
) -> ExportBundle:
    """Snapshot every monthly session, named after the month in view."""
    sessions = store.sessions_snapshot()
    bundle = ExportBundle(
        filename=f"meomap-backup-{store.current_month}.json",
        content=_dump(sessions_to_json(sessions)),
        expense_count=sum(len(s.expenses) for s in sessions.values()),
    )
    record_export(audit_logger, bundle)
    return bundle


def build_event_export(
    event: GroupEvent,
    audit_logger: Optional[AuditLogger] = None,
) -> ExportBundle:
    """Snapshot one group event, named after the event."""
    bundle = ExportBundle(
        filename=f"meomap-event-{slugify(event.name)}.json",
        content=_dump(event.to_json_dict()),
        expense_count=len(event.expenses),
    )
    record_export(audit_logger, bundle)
    return bundle
