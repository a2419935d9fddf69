# State persistence

import os
import tempfile
import threading
from pathlib import Path
from typing import Protocol

from pydantic import ValidationError
import redis
import structlog

from slot_telemetry.core.config import Settings
from slot_telemetry.models.event import StoreState

logger = structlog.get_logger()


class StorageError(Exception):
    """Persisted state could not be read or written"""


class StateNotFoundError(StorageError):
    pass


class StateCorruptError(StorageError):
    pass


class StateStorage(Protocol):
    """Key-value blob store holding the whole event store as one document"""

    def load(self) -> StoreState:
        ...

    def save(self, state: StoreState) -> None:
        ...


def serialize_state(state: StoreState) -> str:
    return state.model_dump_json(by_alias=True, indent=2)


def deserialize_state(raw: str | bytes) -> StoreState:
    try:
        return StoreState.model_validate_json(raw)
    except ValidationError as e:
        raise StateCorruptError(f"persisted state failed validation ({e.error_count()} errors)") from e


class JsonFileStorage:
    """Whole-state JSON document on local disk, replaced atomically on save"""

    def __init__(self, path: str | Path):
        self.path = Path(path)

    def load(self) -> StoreState:
        try:
            raw = self.path.read_bytes()
        except FileNotFoundError as e:
            raise StateNotFoundError("no persisted state") from e
        except OSError as e:
            raise StorageError("persisted state unreadable") from e
        return deserialize_state(raw)

    def save(self, state: StoreState) -> None:
        payload = serialize_state(state)
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(
                dir=self.path.parent, prefix=f".{self.path.name}.", suffix=".tmp"
            )
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    f.write(payload)
                os.replace(tmp_path, self.path)
            except BaseException:
                Path(tmp_path).unlink(missing_ok=True)
                raise
        except OSError as e:
            raise StorageError("failed to write state") from e


class RedisStorage:
    """Whole-state JSON document stored under a single Redis key"""

    def __init__(self, client: "redis.Redis", key: str):
        self.client = client
        self.key = key

    def load(self) -> StoreState:
        try:
            raw = self.client.get(self.key)
        except redis.RedisError as e:
            raise StorageError("redis unavailable") from e
        if raw is None:
            raise StateNotFoundError("no persisted state")
        return deserialize_state(raw)

    def save(self, state: StoreState) -> None:
        try:
            self.client.set(self.key, serialize_state(state))
        except redis.RedisError as e:
            raise StorageError("failed to write state") from e


def build_storage(settings: Settings) -> StateStorage:
    """Pick the configured storage backend"""
    if settings.storage_backend == "redis":
        if not settings.redis_url:
            raise ValueError("storage_backend=redis requires redis_url")
        client = redis.from_url(settings.redis_url, decode_responses=False)
        logger.info("state_storage_redis", key=settings.redis_state_key)
        return RedisStorage(client, settings.redis_state_key)

    logger.info("state_storage_file")
    return JsonFileStorage(settings.data_file)


def load_state_or_empty(storage: StateStorage) -> StoreState:
    """
    Load persisted state, substituting an empty state on any failure.

    Ingestion must stay available even when durable state is not, so
    missing or corrupt documents are logged and replaced, never raised.
    """
    try:
        state = storage.load()
    except StateNotFoundError:
        logger.info("state_not_found_using_empty")
        return StoreState()
    except StorageError as e:
        # Don't log error details that could expose file paths
        logger.warning("state_load_failed_using_empty", error_type=type(e).__name__)
        return StoreState()

    logger.info(
        "state_loaded",
        visits=len(state.visits),
        spins=len(state.spins),
        free_spins=len(state.free_spins),
        big_wins=len(state.big_wins)
    )
    return state


class StateWriter:
    """
    Writes full snapshots through to storage, one save at a time.

    The snapshot is taken inside the lock, so every save captures state at
    least as new as the mutation that triggered it.
    """

    def __init__(self, storage: StateStorage):
        self.storage = storage
        self._lock = threading.Lock()

    def write(self, snapshot_fn) -> bool:
        with self._lock:
            state = snapshot_fn()
            try:
                self.storage.save(state)
            except StorageError as e:
                logger.error("state_save_failed", error=str(e))
                return False
        return True
