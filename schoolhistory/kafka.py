"""Publishing history events to a Kafka topic."""

from __future__ import annotations

import dataclasses
import logging
import os
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Protocol

from schoolhistory.history import HistoryEvent

log = logging.getLogger(__name__)

KAFKA_BROKERS = ("localhost:9092",)
KAFKA_TOPIC = "history-topic"


@dataclass
class ProducerMessage:
    """One message handed to a Kafka producer."""

    topic: str
    key: bytes
    value: bytes
    headers: list[tuple[bytes, bytes]] = field(default_factory=list)


class SyncProducer(Protocol):
    """A producer that sends a message and waits for its partition and offset."""

    def send_message(self, message: ProducerMessage) -> tuple[int, int]: ...

    def close(self) -> None: ...


def postgres_dsn_from_env(environ: Mapping[str, str] | None = None) -> str:
    """Build a PostgreSQL connection string from the DB_* environment variables."""
    env = os.environ if environ is None else environ
    host = env.get("DB_HOST", "") or "localhost"
    user = env.get("DB_USER", "")
    secret = env.get("DB_PASS", "")
    dbname = env.get("DB_NAME", "")
    port = env.get("DB_PORT", "") or "5432"
    sslmode = env.get("DB_SSLMODE", "") or "disable"
    return (
        f"host={host} user={user} password={secret} dbname={dbname} "
        f"port={port} sslmode={sslmode}"
    )


class KafkaProducer:
    """Sends history events to one topic, keyed by record id."""

    def __init__(self, producer: SyncProducer, topic: str = KAFKA_TOPIC) -> None:
        self._producer = producer
        self.topic = topic

    def __enter__(self) -> KafkaProducer:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def publish_history_event(self, event: HistoryEvent) -> None:
        """Encode the event as JSON and send it, with table and action headers."""
        try:
            payload = event.to_json()
        except (TypeError, ValueError) as exc:
            log.error("Failed to marshal history event: %s", exc)
            raise

        message = ProducerMessage(
            topic=self.topic,
            key=event.record_id.encode("utf-8"),
            value=payload,
            headers=[
                (b"table_name", event.table_name.encode("utf-8")),
                (b"action", event.action.encode("utf-8")),
            ],
        )
        try:
            partition, offset = self._producer.send_message(message)
        except Exception as exc:
            log.error("Failed to publish history event: %s", exc)
            raise

        log.info(
            "History event published successfully - Partition: %d, Offset: %d",
            partition,
            offset,
        )

    def close(self) -> None:
        self._producer.close()


class KafkaHistoryPublisher:
    """A history event publisher that goes through a Kafka producer."""

    def __init__(self, producer: KafkaProducer) -> None:
        self._producer = producer

    def publish_history_event(self, event: HistoryEvent) -> None:
        self._producer.publish_history_event(dataclasses.replace(event))