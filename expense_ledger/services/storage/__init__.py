"""
Storage Services Package

Provides abstract interfaces and concrete implementations for durable storage.
Currently implements local JSON files as the backend, but designed to be swappable.
"""

from expense_ledger.services.storage.interface import (
    AuditStorageInterface,
    CorruptDataError,
    LedgerStorageInterface,
    StorageError,
    StorageWriteError,
)
from expense_ledger.services.storage.json_file import (
    JsonFileLedgerStorage,
    JsonLinesAuditStorage,
    atomic_write_text,
)
from expense_ledger.services.storage.memory import (
    InMemoryAuditStorage,
    InMemoryLedgerStorage,
)
from expense_ledger.services.storage.serialization import (
    events_from_json,
    events_to_json,
    salvage_container,
    salvage_sessions,
    sessions_from_json,
    sessions_to_json,
)

__all__ = [
    # Interfaces
    "AuditStorageInterface",
    "LedgerStorageInterface",
    # Exceptions
    "CorruptDataError",
    "StorageError",
    "StorageWriteError",
    # JSON file implementation
    "JsonFileLedgerStorage",
    "JsonLinesAuditStorage",
    "atomic_write_text",
    # In-memory implementation
    "InMemoryAuditStorage",
    "InMemoryLedgerStorage",
    # Serialization
    "events_from_json",
    "events_to_json",
    "salvage_container",
    "salvage_sessions",
    "sessions_from_json",
    "sessions_to_json",
]
