"""Consuming history events from Kafka and serving stored history."""

from __future__ import annotations

import logging
import threading
from collections.abc import Iterable
from dataclasses import dataclass, field

from schoolhistory.history import History, HistoryUsecase
from schoolhistory.kafka import KAFKA_BROKERS, KAFKA_TOPIC

log = logging.getLogger(__name__)

KAFKA_GROUP_ID = "history-consumer-group"

__all__ = [
    "KAFKA_BROKERS",
    "KAFKA_GROUP_ID",
    "KAFKA_TOPIC",
    "ConsumedMessage",
    "HistoryConsumer",
    "HistoryService",
]


@dataclass
class ConsumedMessage:
    """One message read from a topic partition."""

    value: bytes
    partition: int = 0
    offset: int = 0
    topic: str = KAFKA_TOPIC
    key: bytes = b""
    headers: list[tuple[bytes, bytes]] = field(default_factory=list)


class HistoryConsumer:
    """Reads encoded history events and stores them through a use case."""

    def __init__(
        self,
        usecase: HistoryUsecase,
        topic: str = KAFKA_TOPIC,
        group_id: str = KAFKA_GROUP_ID,
    ) -> None:
        self._usecase = usecase
        self.topic = topic
        self.group_id = group_id
        self.marked: dict[tuple[str, int], int] = {}
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None
        self._source: Iterable[ConsumedMessage | None] | None = None
        self._lock = threading.Lock()

    def process_message(self, message: ConsumedMessage) -> History | None:
        """Store one event; failures are logged and the message is marked anyway."""
        log.info(
            "Processing history event from partition %d, offset %d",
            message.partition,
            message.offset,
        )
        history: History | None = None
        try:
            history = self._usecase.create_history_from_event(message.value)
        except Exception as exc:
            log.error("Failed to process history event: %s", exc)
        with self._lock:
            self.marked[(message.topic, message.partition)] = message.offset + 1
        return history

    def consume(self, messages: Iterable[ConsumedMessage | None]) -> int:
        """Process messages until the source ends, yields None, or the consumer stops.

        Returns the number of messages processed.
        """
        count = 0
        for message in messages:
            if self._stop.is_set():
                log.info("Consumer claim context cancelled")
                break
            if message is None:
                break
            self.process_message(message)
            count += 1
        return count

    def _run(self, source: Iterable[ConsumedMessage | None]) -> None:
        log.info("History consumer session setup")
        try:
            self.consume(source)
        except Exception as exc:
            log.error("Error consuming messages: %s", exc)
        finally:
            log.info("History consumer session cleanup")

    def start(self, source: Iterable[ConsumedMessage | None]) -> None:
        """Consume from a message source in a background thread."""
        if self._thread is not None and self._thread.is_alive():
            raise RuntimeError("history consumer is already running")
        self._stop.clear()
        self._source = source
        self._thread = threading.Thread(
            target=self._run, args=(source,), name="history-consumer", daemon=True
        )
        self._thread.start()
        log.info("History consumer started for topic: %s, group: %s", self.topic, self.group_id)

    def stop(self) -> None:
        """Signal the background thread to stop, wait for it and close the source."""
        log.info("Stopping history consumer...")
        self._stop.set()
        if self._thread is not None:
            self._thread.join()
            self._thread = None
        closer = getattr(self._source, "close", None)
        if callable(closer):
            try:
                closer()
            except Exception as exc:
                log.error("Error closing consumer: %s", exc)
        self._source = None
        log.info("History consumer stopped")

    def __enter__(self) -> HistoryConsumer:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.stop()


class HistoryService:
    """Read access to stored history."""

    def __init__(self, usecase: HistoryUsecase) -> None:
        self._usecase = usecase

    def get_history_by_record_id(self, table_name: str, record_id: str) -> list[History]:
        return self._usecase.get_history_by_record_id(table_name, record_id)

    def get_history_by_table_name(self, table_name: str) -> list[History]:
        return self._usecase.get_history_by_table_name(table_name)