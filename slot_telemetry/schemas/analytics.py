from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel
from typing import Dict, List

from slot_telemetry.models.event import BigWinRecord, SpinRecord


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class BigWinCounts(_CamelModel):
    """Big win records per tier"""
    big: int = 0
    mega: int = 0
    epic: int = 0


class StatsResponse(_CamelModel):
    """Aggregate statistics over the retained window"""
    total_visits: int
    unique_sessions: int
    total_spins: int
    total_wagered: float
    total_won: float
    house_edge: float
    avg_bet: float
    top_symbols: List[tuple[str, int]]
    big_win_counts: BigWinCounts
    free_spins_trigger_rate: float
    spins_by_hour: Dict[int, int]
    last_updated: str


class SessionResponse(_CamelModel):
    """Derived per-session rollup"""
    session_id: str
    start_time: str
    user_agent: str
    screen_size: str
    spins: int
    wagered: float
    won: float
    net_result: float
    device: str


class SpinsPageResponse(_CamelModel):
    """One page of spins, newest first"""
    spins: List[SpinRecord]
    page: int
    limit: int
    total: int
    total_pages: int


BigWinResponse = BigWinRecord
