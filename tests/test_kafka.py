import pytest

from schoolhistory.history import HistoryEvent, HistoryUsecase
from schoolhistory.kafka import (
    KafkaHistoryPublisher,
    KafkaProducer,
    ProducerMessage,
    postgres_dsn_from_env,
)
from schoolhistory.repo import SqliteHistoryRepo


class RecordingProducer:
    def __init__(self):
        self.sent = []
        self.closed = False

    def send_message(self, message):
        self.sent.append(message)
        return 0, len(self.sent) - 1

    def close(self):
        self.closed = True


class FailingProducer:
    def send_message(self, message):
        raise ConnectionError("broker down")

    def close(self):
        pass


def _event():
    return HistoryEvent(
        id="evt-1",
        table_name="class",
        record_id="7",
        action="INSERT",
        new_data={"name": "A1", "grade": 10},
        user_id="system",
    )


def test_message_carries_topic_key_and_headers():
    raw = RecordingProducer()
    producer = KafkaProducer(raw, "history-topic")
    producer.publish_history_event(_event())
    assert len(raw.sent) == 1
    msg = raw.sent[0]
    assert isinstance(msg, ProducerMessage)
    assert msg.topic == "history-topic"
    assert msg.key == b"7"
    assert msg.headers == [(b"table_name", b"class"), (b"action", b"INSERT")]


def test_message_value_round_trips():
    raw = RecordingProducer()
    event = _event()
    KafkaProducer(raw, "t").publish_history_event(event)
    assert HistoryEvent.from_json(raw.sent[0].value) == event


def test_default_topic_is_history_topic():
    raw = RecordingProducer()
    KafkaProducer(raw).publish_history_event(_event())
    assert raw.sent[0].topic == "history-topic"


def test_send_failure_propagates():
    producer = KafkaProducer(FailingProducer(), "t")
    with pytest.raises(ConnectionError):
        producer.publish_history_event(_event())


def test_unencodable_event_is_not_sent():
    raw = RecordingProducer()
    event = _event()
    event.new_data = {"x": object()}
    with pytest.raises(TypeError):
        KafkaProducer(raw, "t").publish_history_event(event)
    assert raw.sent == []


def test_close_and_context_manager_close_underlying():
    raw = RecordingProducer()
    with KafkaProducer(raw, "t") as producer:
        producer.publish_history_event(_event())
    assert raw.closed is True


def test_publisher_forwards_an_equal_copy():
    raw = RecordingProducer()
    publisher = KafkaHistoryPublisher(KafkaProducer(raw, "t"))
    event = _event()
    publisher.publish_history_event(event)
    assert HistoryEvent.from_json(raw.sent[0].value) == event


def test_usecase_to_repo_round_trip():
    raw = RecordingProducer()
    publisher = KafkaHistoryPublisher(KafkaProducer(raw, "t"))
    with SqliteHistoryRepo() as repo:
        usecase = HistoryUsecase(repo, publisher)
        event = usecase.publish_history_event(
            "student", "3", "UPDATE", {"name": "a"}, {"name": "b"}, "system", None
        )
        usecase.create_history_from_event(raw.sent[0].value)
        stored = usecase.get_history_by_record_id("student", "3")
    assert [h.id for h in stored] == [event.id]
    assert stored[0].old_data == {"name": "a"}
    assert stored[0].new_data == {"name": "b"}


def test_dsn_defaults_from_empty_environment():
    assert postgres_dsn_from_env({}) == (
        "host=localhost user= password= dbname= port=5432 sslmode=disable"
    )


def test_dsn_uses_environment_values():
    db_pass = "password"
    env = {
        "DB_HOST": "db",
        "DB_USER": "user",
        "DB_PASS": db_pass,
        "DB_NAME": "school",
        "DB_PORT": "6543",
        "DB_SSLMODE": "require",
    }
    dsn = postgres_dsn_from_env(env)
    assert dsn == (
        "host=db user=user password=password dbname=school port=6543 sslmode=require"
    )


def test_dsn_reads_os_environ(monkeypatch):
    monkeypatch.setenv("DB_HOST", "dbhost")
    monkeypatch.delenv("DB_PORT", raising=False)
    dsn = postgres_dsn_from_env()
    assert dsn.startswith("host=dbhost ")
    assert "port=5432" in dsn