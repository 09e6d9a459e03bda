"""History events, history records and the use case that ties them together."""

from __future__ import annotations

import json
import logging
import re
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Protocol

log = logging.getLogger(__name__)

_ZERO_TIME = datetime(1, 1, 1, tzinfo=timezone.utc)

_TIMESTAMP_RE = re.compile(
    r"^(\d{4})-(\d{2})-(\d{2})T(\d{2}):(\d{2}):(\d{2})(?:\.(\d+))?(Z|[+-]\d{2}:\d{2})$"
)

_STRING_FIELDS = ("id", "table_name", "record_id", "action", "user_id")
_MAP_FIELDS = ("old_data", "new_data", "metadata")


def _format_timestamp(ts: datetime) -> str:
    """Render a datetime as RFC 3339 with trailing zeros of the fraction trimmed."""
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    text = (
        f"{ts.year:04d}-{ts.month:02d}-{ts.day:02d}"
        f"T{ts.hour:02d}:{ts.minute:02d}:{ts.second:02d}"
    )
    if ts.microsecond:
        text += f".{ts.microsecond:06d}".rstrip("0")
    offset = ts.utcoffset() or timedelta(0)
    if offset == timedelta(0):
        return text + "Z"
    sign = "+" if offset > timedelta(0) else "-"
    minutes = abs(int(offset.total_seconds())) // 60
    return f"{text}{sign}{minutes // 60:02d}:{minutes % 60:02d}"


def _parse_timestamp(text: str) -> datetime:
    match = _TIMESTAMP_RE.match(text)
    if match is None:
        raise ValueError(f"invalid timestamp: {text!r}")
    year, month, day, hour, minute, second, fraction, zone = match.groups()
    micro = int((fraction or "0")[:6].ljust(6, "0"))
    if zone == "Z":
        tz = timezone.utc
    else:
        sign = 1 if zone[0] == "+" else -1
        hours, minutes = int(zone[1:3]), int(zone[4:6])
        tz = timezone(sign * timedelta(hours=hours, minutes=minutes))
    return datetime(
        int(year), int(month), int(day), int(hour), int(minute), int(second), micro, tzinfo=tz
    )


@dataclass
class HistoryEvent:
    """A change to one record, as it travels over the message bus."""

    id: str
    table_name: str
    record_id: str
    action: str
    old_data: dict[str, Any] | None = None
    new_data: dict[str, Any] | None = None
    user_id: str = ""
    timestamp: datetime = _ZERO_TIME
    metadata: dict[str, Any] | None = None

    def to_json(self) -> bytes:
        """Encode the event; empty optional fields are left out."""
        doc: dict[str, Any] = {
            "id": self.id,
            "table_name": self.table_name,
            "record_id": self.record_id,
            "action": self.action,
        }
        if self.old_data:
            doc["old_data"] = self.old_data
        if self.new_data:
            doc["new_data"] = self.new_data
        if self.user_id:
            doc["user_id"] = self.user_id
        doc["timestamp"] = _format_timestamp(self.timestamp)
        if self.metadata:
            doc["metadata"] = self.metadata
        return json.dumps(doc, ensure_ascii=False, separators=(",", ":")).encode("utf-8")

    @classmethod
    def from_json(cls, data: bytes | str) -> HistoryEvent:
        """Decode an event; missing fields take their empty values."""
        try:
            doc = json.loads(data)
        except ValueError as exc:
            raise ValueError(f"invalid history event: {exc}") from exc
        if doc is None:
            doc = {}
        if not isinstance(doc, dict):
            raise ValueError("history event must be a JSON object")

        values: dict[str, Any] = {}
        for name in _STRING_FIELDS:
            value = doc.get(name)
            if value is None:
                value = ""
            elif not isinstance(value, str):
                raise ValueError(f"field {name!r} must be a string")
            values[name] = value
        for name in _MAP_FIELDS:
            value = doc.get(name)
            if value is not None and not isinstance(value, dict):
                raise ValueError(f"field {name!r} must be an object")
            values[name] = value

        raw_ts = doc.get("timestamp")
        if raw_ts is None:
            values["timestamp"] = _ZERO_TIME
        elif isinstance(raw_ts, str):
            values["timestamp"] = _parse_timestamp(raw_ts)
        else:
            raise ValueError("field 'timestamp' must be a string")
        return cls(**values)


@dataclass
class History:
    """A stored history record."""

    id: str
    table_name: str
    record_id: str
    action: str
    old_data: dict[str, Any] | None = None
    new_data: dict[str, Any] | None = None
    user_id: str = ""
    created_at: datetime = _ZERO_TIME
    metadata: dict[str, Any] | None = None


class HistoryRepo(Protocol):
    """Storage for history records."""

    def create_history(self, history: History) -> History: ...

    def get_history_by_record_id(self, table_name: str, record_id: str) -> list[History]: ...

    def get_history_by_table_name(self, table_name: str) -> list[History]: ...


class HistoryEventPublisher(Protocol):
    """Anything that can send a history event on its way."""

    def publish_history_event(self, event: HistoryEvent) -> None: ...


class HistoryUsecase:
    """Publishes change events and turns received events into stored records."""

    def __init__(self, repo: HistoryRepo, publisher: HistoryEventPublisher) -> None:
        self._repo = repo
        self._publisher = publisher

    def publish_history_event(
        self,
        table_name: str,
        record_id: str,
        action: str,
        old_data: dict[str, Any] | None = None,
        new_data: dict[str, Any] | None = None,
        user_id: str = "",
        metadata: dict[str, Any] | None = None,
    ) -> HistoryEvent:
        """Build a new event with a fresh id and the current time, and publish it."""
        event = HistoryEvent(
            id=str(uuid.uuid4()),
            table_name=table_name,
            record_id=record_id,
            action=action,
            old_data=old_data,
            new_data=new_data,
            user_id=user_id,
            timestamp=datetime.now(timezone.utc),
            metadata=metadata,
        )
        self._publisher.publish_history_event(event)
        return event

    def create_history_from_event(self, event_data: bytes | str) -> History:
        """Decode an encoded event and store it as a history record."""
        try:
            event = HistoryEvent.from_json(event_data)
        except ValueError as exc:
            log.error("Failed to unmarshal history event: %s", exc)
            raise

        history = History(
            id=event.id,
            table_name=event.table_name,
            record_id=event.record_id,
            action=event.action,
            old_data=event.old_data,
            new_data=event.new_data,
            user_id=event.user_id,
            created_at=event.timestamp,
            metadata=event.metadata,
        )
        try:
            self._repo.create_history(history)
        except Exception as exc:
            log.error("Failed to create history record: %s", exc)
            raise

        log.info(
            "History record created successfully for table: %s, record: %s",
            history.table_name,
            history.record_id,
        )
        return history

    def get_history_by_record_id(self, table_name: str, record_id: str) -> list[History]:
        return self._repo.get_history_by_record_id(table_name, record_id)

    def get_history_by_table_name(self, table_name: str) -> list[History]:
        return self._repo.get_history_by_table_name(table_name)