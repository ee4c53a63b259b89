"""
JSON shapes of the persisted blobs.

Shared by every storage backend, the export builder and the backup
import, so a file written by one can always be read by the others.

Older data may hold expenses the current models reject (a zero or
negative amount, a missing date). Those expenses are dropped one by one
and logged; the month or event around them still loads. Only a broken
container (bad month-key, wrong shape) fails the blob.
"""

from collections.abc import Mapping, Sequence
from typing import Any, Optional, TypeVar

import structlog
from pydantic import TypeAdapter, ValidationError

from expense_ledger.models.ledger import Expense, GroupEvent, MonthlySession


logger = structlog.get_logger(__name__)

_SESSIONS_ADAPTER = TypeAdapter(dict[str, MonthlySession])
_EVENTS_ADAPTER = TypeAdapter(list[GroupEvent])

ContainerT = TypeVar("ContainerT", MonthlySession, GroupEvent)


def _salvage_expenses(raw: Any, container_id: Optional[str]) -> tuple[Any, int]:
    if not isinstance(raw, list):
        # Not a list: leave it for the container model to reject
        return raw, 0

    kept: list[Expense] = []
    dropped = 0
    for item in raw:
        try:
            kept.append(Expense.model_validate(item))
        except ValidationError as e:
            dropped += 1
            logger.warning(
                "invalid_expense_dropped",
                container_id=container_id,
                error_count=e.error_count(),
            )
    return kept, dropped


def salvage_container(
    model: type[ContainerT],
    value: Any,
    container_id: Optional[str] = None,
) -> tuple[ContainerT, int]:
    """
    Validate one session or event, dropping expenses that fail on their own.

    `container_id`, when given, overrides the id stored inside `value`.

    Returns:
        The container and the number of expenses dropped

    Raises:
        pydantic.ValidationError: If the container itself is invalid
    """
    dropped = 0
    if isinstance(value, Mapping):
        value = dict(value)
        if "expenses" in value:
            value["expenses"], dropped = _salvage_expenses(
                value["expenses"],
                container_id or value.get("id"),
            )
        if container_id is not None:
            value["id"] = container_id
    return model.model_validate(value), dropped


def sessions_to_json(sessions: Mapping[str, MonthlySession]) -> dict[str, Any]:
    return {key: session.to_json_dict() for key, session in sessions.items()}


def salvage_sessions(data: Any) -> tuple[dict[str, MonthlySession], int]:
    """
    Parse a session map keyed by month-key.

    Returns:
        The sessions and the total number of expenses dropped

    Raises:
        pydantic.ValidationError: If the data is not a session map
    """
    if not isinstance(data, Mapping):
        # Raises with the adapter's own error for the wrong shape
        _SESSIONS_ADAPTER.validate_python(data)

    sessions: dict[str, MonthlySession] = {}
    dropped = 0
    for key, value in data.items():
        sessions[key], count = salvage_container(MonthlySession, value, container_id=key)
        dropped += count
    return sessions, dropped


def sessions_from_json(data: Any) -> dict[str, MonthlySession]:
    return salvage_sessions(data)[0]


def events_to_json(events: Sequence[GroupEvent]) -> list[dict[str, Any]]:
    return [event.to_json_dict() for event in events]


def events_from_json(data: Any) -> list[GroupEvent]:
    """
    Raises:
        pydantic.ValidationError: If the data is not an event list
    """
    if not isinstance(data, list):
        _EVENTS_ADAPTER.validate_python(data)
    return [salvage_container(GroupEvent, value)[0] for value in data]
