from datetime import datetime, timezone

import pytest

from slot_telemetry.core.storage import StorageError
from slot_telemetry.models.event import BigWinRecord, FreeSpinsRecord, SpinRecord, VisitRecord
from slot_telemetry.services.ingestion import IngestionService, build_record, utc_timestamp
from slot_telemetry.services.validation import EventRejected, RejectionReason, validate_envelope


class FailingStorage:
    def __init__(self):
        self.attempts = 0

    def load(self):
        raise StorageError("unavailable")

    def save(self, state):
        self.attempts += 1
        raise StorageError("disk full")


@pytest.fixture
def service(store, storage):
    return IngestionService(store, storage)


def test_utc_timestamp_format():
    now = datetime(2024, 3, 1, 9, 30, 15, 123456, tzinfo=timezone.utc)
    assert utc_timestamp(now) == "2024-03-01T09:30:15.123Z"


def test_visit_sanitized(service):
    record = service.ingest({"eventType": "visit", "data": {"sessionId": "a<script>"}})

    assert isinstance(record, VisitRecord)
    assert record.session_id == "ascript"
    assert record.user_agent == ""
    assert record.timestamp.endswith("Z")


def test_visit_fields_truncated(service):
    record = service.ingest({
        "eventType": "visit",
        "data": {
            "sessionId": "s" * 80,
            "userAgent": "u" * 400,
            "screenSize": "1" * 40,
            "referrer": "r" * 250,
        }
    })
    assert len(record.session_id) == 50
    assert len(record.user_agent) == 300
    assert len(record.screen_size) == 20
    assert len(record.referrer) == 200


def test_spin_record(service, store):
    record = service.ingest({
        "eventType": "spin",
        "data": {"sessionId": "s1", "bet": "2.5", "win": 10, "symbols": ["<wild>"] * 20}
    })

    assert isinstance(record, SpinRecord)
    assert record.bet == 2.5
    assert record.win == 10
    assert record.symbols == ("wild",) * 18
    assert store.snapshot().spins == (record,)


def test_free_spins_record(service):
    record = service.ingest({
        "eventType": "freeSpins",
        "data": {"sessionId": "s1", "mode": "super\"mode", "totalWin": 300, "spinsCount": 500}
    })
    assert isinstance(record, FreeSpinsRecord)
    assert record.mode == "supermode"
    assert record.spins_count == 0


@pytest.mark.parametrize("tier, expected", [
    ("mega", "mega"),
    ("epic", "epic"),
    ("legendary", "big"),
    (None, "big"),
    (["mega"], "big"),
])
def test_big_win_tier_defaults_to_big(service, tier, expected):
    data = {"sessionId": "s1", "amount": 1000}
    if tier is not None:
        data["tier"] = tier
    record = service.ingest({"eventType": "bigWin", "data": data})

    assert isinstance(record, BigWinRecord)
    assert record.tier == expected


def test_rejected_event_is_not_stored(service, store, data_file):
    with pytest.raises(EventRejected) as exc_info:
        service.ingest({"eventType": "spin", "data": {"bet": "abc"}})

    assert exc_info.value.reason is RejectionReason.INVALID_NUMERIC_FIELD
    assert store.counts()["spin"] == 0
    assert not data_file.exists()


def test_ingest_writes_through(service, storage):
    service.ingest({"eventType": "visit", "data": {"sessionId": "abc"}})
    service.ingest({"eventType": "spin", "data": {"sessionId": "abc", "bet": 1, "win": 0}})

    persisted = storage.load()
    assert [v.session_id for v in persisted.visits] == ["abc"]
    assert len(persisted.spins) == 1


def test_save_failure_keeps_event(store):
    storage = FailingStorage()
    service = IngestionService(store, storage)

    record = service.ingest({"eventType": "visit", "data": {"sessionId": "abc"}})

    assert storage.attempts == 1
    assert store.snapshot().visits == (record,)


def test_failed_save_caught_up_by_next_save(store, storage):
    """Every save writes the full state"""
    service = IngestionService(store, FailingStorage())
    service.ingest({"eventType": "visit", "data": {"sessionId": "first"}})

    service = IngestionService(store, storage)
    service.ingest({"eventType": "visit", "data": {"sessionId": "second"}})

    assert [v.session_id for v in storage.load().visits] == ["first", "second"]


def test_build_record_uses_given_timestamp():
    event = validate_envelope({"eventType": "bigWin", "data": {"amount": "5"}})
    record = build_record(event, "2024-01-01T00:00:00.000Z")
    assert record.timestamp == "2024-01-01T00:00:00.000Z"
    assert record.session_id == ""
    assert record.amount == 5
