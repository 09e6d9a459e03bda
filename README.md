# schoolhistory

Record-level change history for an application's tables.

An insert, update or delete of a record is turned into a `HistoryEvent`,
handed to a publisher, read back by a consumer and stored as a `History`
record. Stored history can be read per record or per table, newest first.

## Install

```
pip install schoolhistory
```

With the test dependencies:

```
pip install "schoolhistory[test]"
```

## Modules

- `schoolhistory.history`
  - `HistoryEvent`: a change event. `to_json()` encodes it as compact JSON
    bytes, leaving out empty `old_data`, `new_data`, `user_id` and `metadata`;
    the timestamp is written in RFC 3339 form. `HistoryEvent.from_json(data)`
    decodes it and raises `ValueError` on malformed input.
  - `History`: a stored record (`created_at` in place of `timestamp`).
  - `HistoryRepo` and `HistoryEventPublisher`: the protocols a store and a
    publisher must satisfy.
  - `HistoryUsecase(repo, publisher)`: `publish_history_event(...)` builds an
    event with a fresh UUID and the current UTC time, publishes it and returns
    it; `create_history_from_event(event_data)` decodes event JSON, stores it
    and returns the `History`; `get_history_by_record_id` and
    `get_history_by_table_name` read from the repo.
- `schoolhistory.repo`
  - `SqliteHistoryRepo(path=":memory:")`: a `HistoryRepo` kept in SQLite.
    Queries return records newest first. A duplicate id raises
    `sqlite3.IntegrityError`. Usable as a context manager; `close()` closes it.
- `schoolhistory.helper`
  - `to_mapping(data)`: turns dicts, dataclasses and plain objects (public
    attributes) into a JSON-compatible dict; `None` gives `None`, and values
    that do not encode to an object raise `TypeError`.
  - `HistoryHelper(usecase)`: `track_insert`, `track_update` and
    `track_delete` publish `INSERT`, `UPDATE` and `DELETE` events.
- `schoolhistory.kafka`
  - `KafkaProducer(producer, topic="history-topic")`: wraps any object with
    `send_message(message) -> (partition, offset)` and `close()`. Events are
    sent as `ProducerMessage` values keyed by record id, with `table_name`
    and `action` headers.
  - `KafkaHistoryPublisher(producer)`: a `HistoryEventPublisher` over a
    `KafkaProducer`.
  - `postgres_dsn_from_env(environ=None)`: builds a PostgreSQL connection
    string from `DB_HOST`, `DB_USER`, `DB_PASS`, `DB_NAME`, `DB_PORT` and
    `DB_SSLMODE`, defaulting host to `localhost`, port to `5432` and sslmode
    to `disable`.
- `schoolhistory.config`
  - `GatewayConfig` and `RedisSettings`, built by
    `load_gateway_config(data)` from a parsed mapping or by
    `load_gateway_config_file(path)` from YAML. Missing values fall back to
    HTTP `0.0.0.0:8001`, gRPC `0.0.0.0:9001`, service endpoint
    `localhost:9000` and a local PostgreSQL source.
  - `make_redis_client(settings)`: a `redis.Redis` client for a TCP address
    (default `localhost:6379`) or, with network `unix`, a socket path.
    Timeouts are duration strings such as `"200ms"` or `"0.2s"`; the larger
    of the read and write timeouts becomes the socket timeout.
- `schoolhistory.consumer`
  - `ConsumedMessage`: one message read from a topic partition.
  - `HistoryConsumer(usecase, topic, group_id)`: `process_message(message)`
    stores one event, logging failures, and records the next offset per
    `(topic, partition)` in `marked`; `consume(messages)` processes an
    iterable until it ends, yields `None` or the consumer is stopped, and
    returns the count; `start(source)` consumes in a background thread and
    `stop()` waits for it and closes the source if it has `close()`.
  - `HistoryService(usecase)`: read access to stored history.
- `schoolhistory.caching`
  - `JsonCache(client, ttl)`: JSON values in Redis with a fixed time to live.
    `get` returns `None` on a miss, a Redis error or undecodable data;
    `set`, `delete`, and `invalidate(pattern)`, which deletes matching keys
    and returns how many.
  - `paginate(page, page_size)`: `(offset, limit)`, with non-positive values
    falling back to page 1 of 10.
  - `class_cache_key`, `student_cache_key`, `student_list_cache_key`.

## Example

```python
from schoolhistory.history import HistoryUsecase
from schoolhistory.repo import SqliteHistoryRepo
from schoolhistory.helper import HistoryHelper
from schoolhistory.consumer import ConsumedMessage, HistoryConsumer, HistoryService


class InMemoryPublisher:
    def __init__(self):
        self.events = []

    def publish_history_event(self, event):
        self.events.append(event)


repo = SqliteHistoryRepo(":memory:")
publisher = InMemoryPublisher()
usecase = HistoryUsecase(repo, publisher)

helper = HistoryHelper(usecase)
helper.track_insert("student", "1", {"name": "An", "class_id": 2}, "system")

consumer = HistoryConsumer(usecase, "history-topic", "history-consumer-group")
for offset, event in enumerate(publisher.events):
    consumer.process_message(
        ConsumedMessage(value=event.to_json(), partition=0, offset=offset)
    )

service = HistoryService(usecase)
for record in service.get_history_by_record_id("student", "1"):
    print(record.action, record.new_data)

repo.close()
```

## What it does not do

- It ships no Kafka client. `KafkaProducer` needs a producer object you
  supply, and `HistoryConsumer` reads from any iterable of `ConsumedMessage`.
- It has no HTTP or gRPC server, no gateway process and no command-line
  entry point; `GatewayConfig` only holds the settings.
- It does not manage class, student or teacher records; it provides the
  history, caching, key and paging pieces such services use.
- History storage is SQLite only.