import math
import re
from dataclasses import dataclass
from enum import Enum
from typing import Any

from slot_telemetry.models.event import EventKind


class RejectionReason(str, Enum):
    INVALID_REQUEST = "invalid_request"
    INVALID_EVENT_TYPE = "invalid_event_type"
    INVALID_DATA_FIELDS = "invalid_data_fields"
    MISSING_REQUIRED_FIELD = "missing_required_field"
    INVALID_NUMERIC_FIELD = "invalid_numeric_field"


# Generic messages only; nothing here names internals beyond the public schema
REJECTION_MESSAGES: dict[RejectionReason, str] = {
    RejectionReason.INVALID_REQUEST: "Invalid request",
    RejectionReason.INVALID_EVENT_TYPE: "Invalid event type",
    RejectionReason.INVALID_DATA_FIELDS: "Invalid data fields",
    RejectionReason.MISSING_REQUIRED_FIELD: "Missing required field",
    RejectionReason.INVALID_NUMERIC_FIELD: "Invalid numeric field",
}


class EventRejected(Exception):
    """Raised when a /track payload fails validation"""

    def __init__(self, reason: RejectionReason):
        self.reason = reason
        self.message = REJECTION_MESSAGES[reason]
        super().__init__(self.message)


ENVELOPE_KEYS = frozenset({"eventType", "data"})

EVENT_SCHEMAS: dict[EventKind, frozenset[str]] = {
    EventKind.VISIT: frozenset({"sessionId", "userAgent", "screenSize", "referrer"}),
    EventKind.SPIN: frozenset({"sessionId", "bet", "win", "symbols"}),
    EventKind.FREE_SPINS: frozenset({"sessionId", "mode", "totalWin", "spinsCount"}),
    EventKind.BIG_WIN: frozenset({"sessionId", "tier", "amount"}),
}

BET_RANGE = (0.0, 10_000.0)
WIN_RANGE = (0.0, 10_000_000.0)
SPINS_COUNT_RANGE = (0.0, 100.0)

# Leading decimal literal, the way a lenient float parser reads "12.5px"
_FLOAT_PREFIX = re.compile(r"\s*([+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?)")


@dataclass(frozen=True)
class ValidatedEvent:
    """A structurally valid event with its numeric fields already parsed"""

    kind: EventKind
    data: dict[str, Any]
    numbers: dict[str, float]


def parse_number(value: Any) -> float | None:
    """
    Permissive string-to-float conversion.

    Numbers pass through, strings are read up to their first non-numeric
    character. Anything else, and any non-finite result, is None.
    """
    if isinstance(value, bool):
        return None
    if isinstance(value, str):
        match = _FLOAT_PREFIX.match(value)
        if not match:
            return None
        value = match.group(1)
    elif not isinstance(value, (int, float)):
        return None

    try:
        number = float(value)
    except (ValueError, OverflowError):
        # ints beyond float range overflow instead of becoming inf
        return None

    if not math.isfinite(number):
        return None
    return number


def validate_number(value: Any, bounds: tuple[float, float]) -> float | None:
    """Parse value and check it is within the inclusive bounds"""
    number = parse_number(value)
    low, high = bounds
    if number is None or number < low or number > high:
        return None
    return number


def _require_number(data: dict, field: str, bounds: tuple[float, float]) -> float:
    number = validate_number(data.get(field), bounds)
    if number is None:
        raise EventRejected(RejectionReason.INVALID_NUMERIC_FIELD)
    return number


def validate_envelope(payload: Any) -> ValidatedEvent:
    """
    Check a raw /track body before anything is sanitized or stored.

    Structural checks run first (envelope shape, event type, allow-listed
    data keys), then the per-kind required fields.

    Raises:
        EventRejected: with the reason the payload was refused
    """
    if not isinstance(payload, dict):
        raise EventRejected(RejectionReason.INVALID_REQUEST)
    if not set(payload) <= ENVELOPE_KEYS:
        raise EventRejected(RejectionReason.INVALID_REQUEST)

    event_type = payload.get("eventType")
    if not isinstance(event_type, str) or not event_type:
        raise EventRejected(RejectionReason.INVALID_EVENT_TYPE)

    data = payload.get("data")
    if not isinstance(data, dict):
        raise EventRejected(RejectionReason.INVALID_DATA_FIELDS)

    try:
        kind = EventKind(event_type)
    except ValueError:
        raise EventRejected(RejectionReason.INVALID_EVENT_TYPE)

    if not set(data) <= EVENT_SCHEMAS[kind]:
        raise EventRejected(RejectionReason.INVALID_DATA_FIELDS)

    numbers: dict[str, float] = {}

    if kind is EventKind.VISIT:
        if not data.get("sessionId"):
            raise EventRejected(RejectionReason.MISSING_REQUIRED_FIELD)

    elif kind is EventKind.SPIN:
        numbers["bet"] = _require_number(data, "bet", BET_RANGE)
        numbers["win"] = _require_number(data, "win", WIN_RANGE)

    elif kind is EventKind.FREE_SPINS:
        numbers["totalWin"] = _require_number(data, "totalWin", WIN_RANGE)
        # Lenient: a bad spinsCount falls back to 0 instead of rejecting
        numbers["spinsCount"] = validate_number(data.get("spinsCount"), SPINS_COUNT_RANGE) or 0.0

    elif kind is EventKind.BIG_WIN:
        numbers["amount"] = _require_number(data, "amount", WIN_RANGE)

    return ValidatedEvent(kind=kind, data=data, numbers=numbers)
