from datetime import datetime, timezone
from typing import Any

from slot_telemetry.core.storage import StateStorage, StateWriter
from slot_telemetry.models.event import (
    BIG_WIN_TIERS,
    BigWinRecord,
    EventKind,
    EventRecord,
    FreeSpinsRecord,
    SpinRecord,
    VisitRecord,
)
from slot_telemetry.services.event_store import EventStore
from slot_telemetry.services import sanitizer
from slot_telemetry.services.validation import ValidatedEvent, validate_envelope
import structlog

logger = structlog.get_logger()


def utc_timestamp(now: datetime | None = None) -> str:
    """Server-assigned ISO-8601 timestamp, millisecond precision, Z suffix"""
    now = now or datetime.now(timezone.utc)
    return now.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def build_record(event: ValidatedEvent, timestamp: str) -> EventRecord:
    """Sanitize a validated event into its stored record"""
    data = event.data
    session_id = sanitizer.sanitize(data.get("sessionId"), sanitizer.MAX_SESSION_ID)

    if event.kind is EventKind.VISIT:
        return VisitRecord(
            timestamp=timestamp,
            session_id=session_id,
            user_agent=sanitizer.sanitize(data.get("userAgent"), sanitizer.MAX_USER_AGENT),
            screen_size=sanitizer.sanitize(data.get("screenSize"), sanitizer.MAX_SCREEN_SIZE),
            referrer=sanitizer.sanitize(data.get("referrer"), sanitizer.MAX_REFERRER),
        )

    if event.kind is EventKind.SPIN:
        return SpinRecord(
            timestamp=timestamp,
            session_id=session_id,
            bet=event.numbers["bet"],
            win=event.numbers["win"],
            symbols=sanitizer.sanitize_symbols(data.get("symbols")),
        )

    if event.kind is EventKind.FREE_SPINS:
        return FreeSpinsRecord(
            timestamp=timestamp,
            session_id=session_id,
            mode=sanitizer.sanitize(data.get("mode"), sanitizer.MAX_MODE),
            total_win=event.numbers["totalWin"],
            spins_count=event.numbers["spinsCount"],
        )

    tier = data.get("tier")
    return BigWinRecord(
        timestamp=timestamp,
        session_id=session_id,
        tier=tier if tier in BIG_WIN_TIERS else "big",
        amount=event.numbers["amount"],
    )


class IngestionService:
    """Validate, sanitize, append and persist telemetry events"""

    def __init__(self, store: EventStore, storage: StateStorage):
        self.store = store
        self.writer = StateWriter(storage)

    def ingest(self, payload: Any) -> EventRecord:
        """
        Ingest one /track payload.

        The event counts as accepted once it is appended in memory; a failed
        save is logged and the next successful save catches up, since every
        save writes the full state.

        Raises:
            EventRejected: if the payload fails validation
        """
        event = validate_envelope(payload)
        record = build_record(event, utc_timestamp())

        self.store.append(event.kind, record)
        saved = self.writer.write(self.store.snapshot)

        logger.info(
            "event_ingested",
            event_type=event.kind.value,
            session_id=record.session_id,
            persisted=saved
        )
        return record
