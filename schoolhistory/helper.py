"""Helpers that record inserts, updates and deletes as history events."""

from __future__ import annotations

import dataclasses
import json
from collections.abc import Mapping
from datetime import date, datetime, time
from enum import Enum
from typing import Any

from schoolhistory.history import HistoryEvent, HistoryUsecase


def _encode(obj: Any) -> Any:
    if dataclasses.is_dataclass(obj) and not isinstance(obj, type):
        return {f.name: getattr(obj, f.name) for f in dataclasses.fields(obj)}
    if isinstance(obj, (datetime, date, time)):
        return obj.isoformat()
    if isinstance(obj, Enum):
        return obj.value
    if isinstance(obj, (set, frozenset)):
        return list(obj)
    if isinstance(obj, Mapping):
        return dict(obj)
    attrs = getattr(obj, "__dict__", None)
    if attrs is not None:
        return {name: value for name, value in attrs.items() if not name.startswith("_")}
    raise TypeError(f"cannot convert {type(obj).__name__} to a mapping")


def to_mapping(data: Any) -> dict[str, Any] | None:
    """Turn an object into a plain JSON-compatible dict, or None for None."""
    if data is None:
        return None
    result = json.loads(json.dumps(data, default=_encode))
    if result is None:
        return None
    if not isinstance(result, dict):
        raise TypeError(f"{type(data).__name__} does not encode to an object")
    return result


class HistoryHelper:
    """Records data changes through a history use case."""

    def __init__(self, usecase: HistoryUsecase) -> None:
        self._usecase = usecase

    def track_insert(
        self, table_name: str, record_id: str, new_data: Any, user_id: str
    ) -> HistoryEvent:
        new_map = to_mapping(new_data)
        return self._usecase.publish_history_event(
            table_name, record_id, "INSERT", None, new_map, user_id, None
        )

    def track_update(
        self, table_name: str, record_id: str, old_data: Any, new_data: Any, user_id: str
    ) -> HistoryEvent:
        old_map = to_mapping(old_data)
        new_map = to_mapping(new_data)
        return self._usecase.publish_history_event(
            table_name, record_id, "UPDATE", old_map, new_map, user_id, None
        )

    def track_delete(
        self, table_name: str, record_id: str, old_data: Any, user_id: str
    ) -> HistoryEvent:
        old_map = to_mapping(old_data)
        return self._usecase.publish_history_event(
            table_name, record_id, "DELETE", old_map, None, user_id, None
        )