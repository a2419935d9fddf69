import threading
from collections import deque
from typing import Generic, Iterable, TypeVar

from slot_telemetry.core.config import Settings
from slot_telemetry.models.event import (
    EventKind,
    EventRecord,
    RECORD_TYPES,
    STATE_FIELDS,
    StoreState,
)
import structlog

logger = structlog.get_logger()

T = TypeVar("T")


class RetentionWindow(Generic[T]):
    """
    Fixed-capacity, oldest-first sliding window.

    Appending past capacity drops from the front so only the most
    recent `capacity` items survive, in their original order.
    """

    def __init__(self, capacity: int):
        if capacity < 1:
            raise ValueError("capacity must be at least 1")
        self.capacity = capacity
        self._items: deque[T] = deque(maxlen=capacity)
        self._lock = threading.Lock()

    def append(self, item: T) -> int:
        """Append one item, returning how many were evicted (0 or 1)"""
        with self._lock:
            evicted = 1 if len(self._items) == self.capacity else 0
            self._items.append(item)
            return evicted

    def replace(self, items: Iterable[T]) -> None:
        """Swap the whole window for `items`, keeping the newest `capacity`"""
        with self._lock:
            self._items = deque(items, maxlen=self.capacity)

    def clear(self) -> None:
        with self._lock:
            self._items.clear()

    def snapshot(self) -> tuple[T, ...]:
        with self._lock:
            return tuple(self._items)

    def __len__(self) -> int:
        return len(self._items)


class EventStore:
    """
    Four bounded append-only event logs, one per event kind.

    Appends to the same kind are serialized by that kind's window lock;
    different kinds never contend with each other.
    """

    def __init__(self, caps: dict[EventKind, int]):
        missing = set(EventKind) - set(caps)
        if missing:
            raise ValueError(f"missing retention caps for: {sorted(k.value for k in missing)}")
        self._windows: dict[EventKind, RetentionWindow] = {
            kind: RetentionWindow(caps[kind]) for kind in EventKind
        }

    @classmethod
    def from_settings(cls, settings: Settings) -> "EventStore":
        return cls({
            EventKind.VISIT: settings.max_visits,
            EventKind.SPIN: settings.max_spins,
            EventKind.FREE_SPINS: settings.max_free_spins,
            EventKind.BIG_WIN: settings.max_big_wins,
        })

    def capacity(self, kind: EventKind) -> int:
        return self._windows[kind].capacity

    def append(self, kind: EventKind, record: EventRecord) -> None:
        if not isinstance(record, RECORD_TYPES[kind]):
            raise TypeError(f"{type(record).__name__} cannot be stored as {kind.value}")

        self._windows[kind].append(record)

    def snapshot(self) -> StoreState:
        """Point-in-time, read-only view of all four logs"""
        return StoreState.model_construct(**{
            STATE_FIELDS[kind]: window.snapshot()
            for kind, window in self._windows.items()
        })

    def restore(self, state: StoreState) -> None:
        """Replace the store contents with `state`, applying retention caps"""
        for kind, window in self._windows.items():
            records = state.records(kind)
            window.replace(records)
            if len(records) > window.capacity:
                logger.info(
                    "restored_state_trimmed",
                    kind=kind.value,
                    loaded=len(records),
                    kept=window.capacity
                )

    def reset(self) -> None:
        for window in self._windows.values():
            window.clear()

    def counts(self) -> dict[str, int]:
        return {kind.value: len(window) for kind, window in self._windows.items()}
