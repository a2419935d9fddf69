import math
from collections import Counter
from datetime import datetime, timedelta, timezone
from typing import List, Dict, Any

from slot_telemetry.models.event import BIG_WIN_TIERS, StoreState
import structlog

logger = structlog.get_logger()

TOP_SYMBOLS_LIMIT = 10
DEFAULT_LIMIT = 50
MAX_LIMIT = 200


def clamp_limit(limit: int | None, default: int = DEFAULT_LIMIT, maximum: int = MAX_LIMIT) -> int:
    """Clamp a client-supplied page size into [1, maximum]"""
    if limit is None:
        return default
    return min(max(1, limit), maximum)


def clamp_page(page: int | None) -> int:
    if page is None:
        return 1
    return max(1, page)


def parse_timestamp(value: str) -> datetime:
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


def _percent(numerator: float, denominator: float) -> float:
    if denominator == 0:
        return 0.0
    return round(numerator / denominator * 100, 2)


class AnalyticsService:
    """
    Derived statistics over one store snapshot.

    Every figure is recomputed from the snapshot on each call; there is no
    cache to invalidate.
    """

    def __init__(self, snapshot: StoreState, now: datetime | None = None):
        self.snapshot = snapshot
        self.now = now or datetime.now(timezone.utc)

    def get_stats(self) -> Dict[str, Any]:
        """Totals, rates, histograms and rankings for the stats endpoint"""
        visits = self.snapshot.visits
        spins = self.snapshot.spins

        total_spins = len(spins)
        total_wagered = sum(spin.bet for spin in spins)
        total_won = sum(spin.win for spin in spins)

        stats = {
            "total_visits": len(visits),
            "unique_sessions": len({visit.session_id for visit in visits}),
            "total_spins": total_spins,
            "total_wagered": round(total_wagered, 2),
            "total_won": round(total_won, 2),
            "house_edge": _percent(total_wagered - total_won, total_wagered),
            "avg_bet": round(total_wagered / total_spins, 2) if total_spins else 0.0,
            "top_symbols": self.get_top_symbols(),
            "big_win_counts": self.get_big_win_counts(),
            "free_spins_trigger_rate": _percent(len(self.snapshot.free_spins), total_spins),
            "spins_by_hour": self.get_spins_by_hour(),
            "last_updated": self.now.isoformat(),
        }

        logger.info("stats_computed", total_spins=total_spins, total_visits=len(visits))
        return stats

    def get_top_symbols(self, limit: int = TOP_SYMBOLS_LIMIT) -> List[tuple[str, int]]:
        """Most frequent symbols; ties keep first-seen order"""
        counts = Counter(
            symbol
            for spin in self.snapshot.spins
            for symbol in spin.symbols
        )
        # most_common sorts stably, and Counter keeps insertion order
        return counts.most_common(limit)

    def get_big_win_counts(self) -> Dict[str, int]:
        counts = dict.fromkeys(BIG_WIN_TIERS, 0)
        for big_win in self.snapshot.big_wins:
            if big_win.tier in counts:
                counts[big_win.tier] += 1
        return counts

    def get_spins_by_hour(self) -> Dict[int, int]:
        """Spins from the last 24 hours, bucketed by local hour of day"""
        buckets = dict.fromkeys(range(24), 0)
        cutoff = self.now - timedelta(hours=24)

        for spin in self.snapshot.spins:
            occurred_at = parse_timestamp(spin.timestamp)
            if occurred_at > cutoff:
                buckets[occurred_at.astimezone().hour] += 1

        return buckets

    def get_sessions(self, limit: int | None = None) -> List[Dict[str, Any]]:
        """
        Session rollups, newest first.

        A session is anchored on its first Visit; spins for session ids
        that never sent a Visit are not attributed.
        """
        sessions: Dict[str, Dict[str, Any]] = {}

        for visit in self.snapshot.visits:
            if visit.session_id not in sessions:
                sessions[visit.session_id] = {
                    "session_id": visit.session_id,
                    "start_time": visit.timestamp,
                    "user_agent": visit.user_agent,
                    "screen_size": visit.screen_size,
                    "spins": 0,
                    "wagered": 0.0,
                    "won": 0.0,
                }

        for spin in self.snapshot.spins:
            session = sessions.get(spin.session_id)
            if session is not None:
                session["spins"] += 1
                session["wagered"] += spin.bet
                session["won"] += spin.win

        ordered = sorted(
            sessions.values(),
            key=lambda s: parse_timestamp(s["start_time"]),
            reverse=True
        )[:clamp_limit(limit)]

        return [
            {
                **session,
                "wagered": round(session["wagered"], 2),
                "won": round(session["won"], 2),
                "net_result": round(session["won"] - session["wagered"], 2),
                "device": "Mobile" if "Mobile" in session["user_agent"] else "Desktop",
            }
            for session in ordered
        ]

    def get_spins(self, page: int | None = None, limit: int | None = None) -> Dict[str, Any]:
        """Most-recent-first spins, 1-indexed pages"""
        page = clamp_page(page)
        limit = clamp_limit(limit)
        offset = (page - 1) * limit

        spins = self.snapshot.spins
        total = len(spins)
        newest_first = spins[::-1]

        return {
            "spins": list(newest_first[offset:offset + limit]),
            "page": page,
            "limit": limit,
            "total": total,
            "total_pages": math.ceil(total / limit),
        }

    def get_big_wins(self, limit: int | None = None) -> List[Any]:
        """Most-recent-first big wins"""
        return list(self.snapshot.big_wins[::-1][:clamp_limit(limit)])
