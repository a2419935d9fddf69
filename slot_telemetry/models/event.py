# Stored telemetry records

from enum import Enum
from typing import Literal, Union
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class EventKind(str, Enum):
    """The four telemetry categories accepted by /track"""

    VISIT = "visit"
    SPIN = "spin"
    FREE_SPINS = "freeSpins"
    BIG_WIN = "bigWin"


BigWinTier = Literal["big", "mega", "epic"]
BIG_WIN_TIERS: tuple[str, ...] = ("big", "mega", "epic")


class _Record(BaseModel):
    """Immutable record, persisted with camelCase keys"""

    model_config = ConfigDict(
        frozen=True,
        alias_generator=to_camel,
        populate_by_name=True,
    )

    timestamp: str
    session_id: str = ""


class VisitRecord(_Record):
    user_agent: str = ""
    screen_size: str = ""
    referrer: str = ""


class SpinRecord(_Record):
    bet: float
    win: float
    symbols: tuple[str, ...] = ()


class FreeSpinsRecord(_Record):
    mode: str = ""
    total_win: float
    spins_count: float = 0


class BigWinRecord(_Record):
    tier: BigWinTier = "big"
    amount: float


EventRecord = Union[VisitRecord, SpinRecord, FreeSpinsRecord, BigWinRecord]

RECORD_TYPES: dict[EventKind, type] = {
    EventKind.VISIT: VisitRecord,
    EventKind.SPIN: SpinRecord,
    EventKind.FREE_SPINS: FreeSpinsRecord,
    EventKind.BIG_WIN: BigWinRecord,
}


class StoreState(BaseModel):
    """
    Full contents of the event store.

    This is both the persisted document ({visits, spins, freeSpins, bigWins})
    and the read-only snapshot handed to the aggregator.
    """

    model_config = ConfigDict(
        frozen=True,
        alias_generator=to_camel,
        populate_by_name=True,
    )

    visits: tuple[VisitRecord, ...] = Field(default_factory=tuple)
    spins: tuple[SpinRecord, ...] = Field(default_factory=tuple)
    free_spins: tuple[FreeSpinsRecord, ...] = Field(default_factory=tuple)
    big_wins: tuple[BigWinRecord, ...] = Field(default_factory=tuple)

    def records(self, kind: EventKind) -> tuple:
        return getattr(self, STATE_FIELDS[kind])


STATE_FIELDS: dict[EventKind, str] = {
    EventKind.VISIT: "visits",
    EventKind.SPIN: "spins",
    EventKind.FREE_SPINS: "free_spins",
    EventKind.BIG_WIN: "big_wins",
}
