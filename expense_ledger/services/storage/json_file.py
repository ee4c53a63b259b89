"""
Local JSON File Storage Implementation

DESIGN DECISION: The ledger is small (one person, a few thousand expenses
at most), so each blob is a single human-readable JSON file:
1. Users can open and back up their data directly
2. No database setup required
3. The file format is the same one the export feature produces

Writes are atomic: the new content goes to a temp file in the same
directory and is then renamed over the target with os.replace(). A crash
mid-write leaves the previous file intact.
"""

import json
import os
import tempfile
from collections.abc import Mapping, Sequence
from pathlib import Path
from typing import Any, Optional

import structlog
from pydantic import ValidationError

from expense_ledger.config import StorageSettings, get_settings
from expense_ledger.models.audit import AuditEvent
from expense_ledger.models.ledger import GroupEvent, MonthlySession, Theme
from expense_ledger.services.storage.interface import (
    AuditStorageInterface,
    CorruptDataError,
    LedgerStorageInterface,
    StorageWriteError,
)
from expense_ledger.services.storage.serialization import (
    events_from_json,
    events_to_json,
    sessions_from_json,
    sessions_to_json,
)


logger = structlog.get_logger(__name__)


def atomic_write_text(target: Path, content: str) -> None:
    """
    Atomically replace `target` with `content`.

    Raises:
        StorageWriteError: If any step fails (the temp file is removed)
    """
    tmp_path: Optional[str] = None
    try:
        target.parent.mkdir(parents=True, exist_ok=True)
        with tempfile.NamedTemporaryFile(
            mode="w",
            encoding="utf-8",
            dir=target.parent,
            prefix=f".{target.name}.",
            suffix=".tmp",
            delete=False,
        ) as tmp_file:
            tmp_path = tmp_file.name
            tmp_file.write(content)
            tmp_file.flush()
            os.fsync(tmp_file.fileno())

        os.replace(tmp_path, target)
        tmp_path = None
    except OSError as e:
        raise StorageWriteError(f"Failed to write {target}: {e}") from e
    finally:
        if tmp_path and os.path.exists(tmp_path):
            try:
                os.unlink(tmp_path)
            except OSError:
                logger.warning("temp_file_cleanup_failed", path=tmp_path)


class JsonFileLedgerStorage(LedgerStorageInterface):
    """
    JSON file implementation of ledger storage.

    One file per blob under the configured data directory.
    Missing files load as empty state.
    """

    def __init__(
        self,
        settings: Optional[StorageSettings] = None,
        data_dir: Optional[Path] = None,
    ):
        self._settings = settings or get_settings().storage
        self._data_dir = Path(data_dir or self._settings.data_dir)

    @property
    def sessions_path(self) -> Path:
        return self._data_dir / self._settings.sessions_file

    @property
    def group_events_path(self) -> Path:
        return self._data_dir / self._settings.group_events_file

    @property
    def preferences_path(self) -> Path:
        return self._data_dir / self._settings.preferences_file

    def _read_json(self, path: Path) -> Any:
        if not path.exists():
            return None
        try:
            return json.loads(path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            raise CorruptDataError(f"Cannot read {path}: {e}") from e

    def _write_json(self, path: Path, payload: Any) -> None:
        atomic_write_text(
            path,
            json.dumps(payload, ensure_ascii=False, indent=2),
        )
        logger.debug("ledger_blob_written", path=str(path))

    def load_sessions(self) -> dict[str, MonthlySession]:
        data = self._read_json(self.sessions_path)
        if data is None:
            return {}
        try:
            return sessions_from_json(data)
        except ValidationError as e:
            raise CorruptDataError(f"Invalid session data in {self.sessions_path}: {e}") from e

    def save_sessions(self, sessions: Mapping[str, MonthlySession]) -> None:
        self._write_json(self.sessions_path, sessions_to_json(sessions))

    def load_group_events(self) -> list[GroupEvent]:
        data = self._read_json(self.group_events_path)
        if data is None:
            return []
        try:
            return events_from_json(data)
        except ValidationError as e:
            raise CorruptDataError(f"Invalid group event data in {self.group_events_path}: {e}") from e

    def save_group_events(self, events: Sequence[GroupEvent]) -> None:
        self._write_json(self.group_events_path, events_to_json(events))

    def load_theme(self) -> Optional[Theme]:
        data = self._read_json(self.preferences_path)
        if not isinstance(data, dict):
            return None
        try:
            return Theme(data.get("theme"))
        except ValueError:
            return None

    def save_theme(self, theme: Theme) -> None:
        self._write_json(self.preferences_path, {"theme": theme.value})


class JsonLinesAuditStorage(AuditStorageInterface):
    """
    Append-only audit log, one JSON object per line.
    """

    def __init__(self, path: Path):
        self._path = Path(path)

    def append_event(self, event: AuditEvent) -> bool:
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            with self._path.open("a", encoding="utf-8") as handle:
                handle.write(event.model_dump_json() + "\n")
        except OSError as e:
            raise StorageWriteError(f"Failed to append audit event: {e}") from e
        return True

    def get_recent_events(self, limit: int = 100) -> list[AuditEvent]:
        if not self._path.exists():
            return []

        events = []
        lines = self._path.read_text(encoding="utf-8").splitlines()
        for line in reversed(lines):
            if not line.strip():
                continue
            try:
                events.append(AuditEvent.model_validate_json(line))
            except ValidationError:
                # Skip malformed rows
                continue
            if len(events) >= limit:
                break
        return events
