import pytest

from slot_telemetry.core.storage import JsonFileStorage
from slot_telemetry.main import app
from slot_telemetry.middleware.rate_limit import rate_limiter
from slot_telemetry.models.event import EventKind
from slot_telemetry.api.deps import attach_state
from slot_telemetry.services.event_store import EventStore

SMALL_CAPS = {
    EventKind.VISIT: 5,
    EventKind.SPIN: 5,
    EventKind.FREE_SPINS: 3,
    EventKind.BIG_WIN: 3,
}


@pytest.fixture
def data_file(tmp_path):
    return tmp_path / "data" / "analytics.json"


@pytest.fixture
def storage(data_file):
    return JsonFileStorage(data_file)


@pytest.fixture
def store():
    return EventStore(SMALL_CAPS)


@pytest.fixture(autouse=True)
def _reset_rate_limiter(monkeypatch):
    """Rate limiter buckets are module-level; isolate each test"""
    rate_limiter.reset()
    monkeypatch.setattr(rate_limiter, "rate", 10_000)
    yield
    rate_limiter.reset()


@pytest.fixture
def telemetry_app(storage):
    """The FastAPI app wired to a fresh store and a temp-dir storage"""
    attach_state(
        app,
        EventStore({kind: 1000 for kind in EventKind}),
        storage
    )
    return app
