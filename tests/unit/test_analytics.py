import math
from datetime import datetime, timedelta, timezone

import pytest

from slot_telemetry.models.event import (
    BigWinRecord,
    FreeSpinsRecord,
    SpinRecord,
    StoreState,
    VisitRecord,
)
from slot_telemetry.services.analytics import AnalyticsService, clamp_limit, clamp_page

NOW = datetime(2024, 3, 2, 12, 0, 0, tzinfo=timezone.utc)


def ts(dt: datetime) -> str:
    return dt.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def spin(bet, win, session_id="s1", symbols=(), at=None):
    return SpinRecord(timestamp=ts(at or NOW), session_id=session_id, bet=bet, win=win, symbols=symbols)


def visit(session_id, at, user_agent="Mozilla/5.0 (X11; Linux)"):
    return VisitRecord(timestamp=ts(at), session_id=session_id, user_agent=user_agent, screen_size="1920x1080")


class TestStats:

    def test_empty_store_has_zero_rates(self):
        stats = AnalyticsService(StoreState(), now=NOW).get_stats()

        assert stats["house_edge"] == 0
        assert stats["avg_bet"] == 0
        assert stats["free_spins_trigger_rate"] == 0
        for key in ("house_edge", "avg_bet", "free_spins_trigger_rate"):
            assert math.isfinite(stats[key])
        assert stats["top_symbols"] == []
        assert stats["big_win_counts"] == {"big": 0, "mega": 0, "epic": 0}
        assert stats["spins_by_hour"] == {hour: 0 for hour in range(24)}

    def test_house_edge_example(self):
        """3 losing spins and one 100 win on a 10 bet"""
        spins = tuple([spin(10, 0)] * 3 + [spin(10, 100)])
        stats = AnalyticsService(StoreState(spins=spins), now=NOW).get_stats()

        assert stats["total_spins"] == 4
        assert stats["total_wagered"] == 40
        assert stats["total_won"] == 100
        assert stats["house_edge"] == -150.00
        assert stats["avg_bet"] == 10

    def test_zero_wager_spins_do_not_divide_by_zero(self):
        spins = (spin(0, 0), spin(0, 5))
        stats = AnalyticsService(StoreState(spins=spins), now=NOW).get_stats()
        assert stats["house_edge"] == 0
        assert stats["avg_bet"] == 0

    def test_visits_and_unique_sessions(self):
        visits = (visit("a", NOW), visit("b", NOW), visit("a", NOW))
        stats = AnalyticsService(StoreState(visits=visits), now=NOW).get_stats()
        assert stats["total_visits"] == 3
        assert stats["unique_sessions"] == 2

    def test_free_spins_trigger_rate(self):
        spins = tuple(spin(1, 0) for _ in range(8))
        free_spins = (FreeSpinsRecord(timestamp=ts(NOW), total_win=5),)
        stats = AnalyticsService(StoreState(spins=spins, free_spins=free_spins), now=NOW).get_stats()
        assert stats["free_spins_trigger_rate"] == 12.5

    def test_free_spins_without_spins(self):
        free_spins = (FreeSpinsRecord(timestamp=ts(NOW), total_win=5),)
        stats = AnalyticsService(StoreState(free_spins=free_spins), now=NOW).get_stats()
        assert stats["free_spins_trigger_rate"] == 0

    def test_big_win_counts(self):
        big_wins = tuple(
            BigWinRecord(timestamp=ts(NOW), tier=tier, amount=100)
            for tier in ["big", "mega", "mega", "epic", "mega"]
        )
        stats = AnalyticsService(StoreState(big_wins=big_wins), now=NOW).get_stats()
        assert stats["big_win_counts"] == {"big": 1, "mega": 3, "epic": 1}

    def test_last_updated_is_query_time(self):
        stats = AnalyticsService(StoreState(), now=NOW).get_stats()
        assert stats["last_updated"] == NOW.isoformat()


class TestTopSymbols:

    def test_sorted_by_count_descending(self):
        spins = (
            spin(1, 0, symbols=("fries", "burger", "burger")),
            spin(1, 0, symbols=("burger", "shake", "fries")),
        )
        top = AnalyticsService(StoreState(spins=spins), now=NOW).get_top_symbols()
        assert top == [("burger", 3), ("fries", 2), ("shake", 1)]

    def test_ties_keep_first_seen_order(self):
        spins = (spin(1, 0, symbols=("pickle", "onion", "cheese")),)
        top = AnalyticsService(StoreState(spins=spins), now=NOW).get_top_symbols()
        assert [symbol for symbol, _ in top] == ["pickle", "onion", "cheese"]

    def test_truncated_to_ten(self):
        symbols = tuple(f"sym{i}" for i in range(15))
        spins = (spin(1, 0, symbols=symbols), spin(1, 0, symbols=symbols[:3]))
        top = AnalyticsService(StoreState(spins=spins), now=NOW).get_top_symbols()

        assert len(top) == 10
        counts = [count for _, count in top]
        assert counts == sorted(counts, reverse=True)
        assert top[:3] == [("sym0", 2), ("sym1", 2), ("sym2", 2)]


class TestSpinsByHour:

    def test_only_last_24_hours(self):
        spins = (
            spin(1, 0, at=NOW - timedelta(hours=1)),
            spin(1, 0, at=NOW - timedelta(hours=23, minutes=59)),
            spin(1, 0, at=NOW - timedelta(hours=24)),
            spin(1, 0, at=NOW - timedelta(days=3)),
        )
        buckets = AnalyticsService(StoreState(spins=spins), now=NOW).get_spins_by_hour()

        assert len(buckets) == 24
        assert sum(buckets.values()) == 2

    def test_buckets_by_local_hour(self):
        at = NOW - timedelta(minutes=30)
        spins = (spin(1, 0, at=at), spin(1, 0, at=at))
        buckets = AnalyticsService(StoreState(spins=spins), now=NOW).get_spins_by_hour()
        assert buckets[at.astimezone().hour] == 2


class TestSessions:

    def test_rollup(self):
        state = StoreState(
            visits=(
                visit("a", NOW - timedelta(hours=2), user_agent="Mozilla/5.0 (iPhone) Mobile Safari"),
                visit("b", NOW - timedelta(hours=1)),
                visit("a", NOW),
            ),
            spins=(
                spin(10, 0, session_id="a"),
                spin(5, 30, session_id="a"),
                spin(2, 0, session_id="b"),
                spin(50, 0, session_id="no-visit"),
            ),
        )
        sessions = AnalyticsService(state, now=NOW).get_sessions()

        assert [s["session_id"] for s in sessions] == ["b", "a"]

        a = sessions[1]
        assert a["start_time"] == ts(NOW - timedelta(hours=2))
        assert a["device"] == "Mobile"
        assert a["spins"] == 2
        assert a["wagered"] == 15
        assert a["won"] == 30
        assert a["net_result"] == 15

        b = sessions[0]
        assert b["device"] == "Desktop"
        assert b["net_result"] == -2

    def test_limit(self):
        visits = tuple(visit(f"s{i}", NOW - timedelta(minutes=i)) for i in range(10))
        service = AnalyticsService(StoreState(visits=visits), now=NOW)

        assert [s["session_id"] for s in service.get_sessions(3)] == ["s0", "s1", "s2"]
        assert len(service.get_sessions(0)) == 1
        assert len(service.get_sessions()) == 10


class TestSpinsPage:

    @pytest.fixture
    def service(self):
        spins = tuple(spin(1, 0, session_id=f"s{i}") for i in range(7))
        return AnalyticsService(StoreState(spins=spins), now=NOW)

    def test_newest_first(self, service):
        page = service.get_spins(1, 3)
        assert [s.session_id for s in page["spins"]] == ["s6", "s5", "s4"]
        assert page["total"] == 7
        assert page["total_pages"] == 3
        assert page["page"] == 1
        assert page["limit"] == 3

    def test_last_partial_page(self, service):
        page = service.get_spins(3, 3)
        assert [s.session_id for s in page["spins"]] == ["s0"]

    def test_past_the_end(self, service):
        assert service.get_spins(10, 3)["spins"] == []

    def test_defaults_and_clamping(self, service):
        page = service.get_spins(-4, 1000)
        assert page["page"] == 1
        assert page["limit"] == 200
        assert page["total_pages"] == 1

    def test_empty(self):
        page = AnalyticsService(StoreState(), now=NOW).get_spins()
        assert page == {"spins": [], "page": 1, "limit": 50, "total": 0, "total_pages": 0}


def test_big_wins_newest_first():
    big_wins = tuple(BigWinRecord(timestamp=ts(NOW), session_id=f"s{i}", amount=i) for i in range(5))
    service = AnalyticsService(StoreState(big_wins=big_wins), now=NOW)

    assert [w.session_id for w in service.get_big_wins(2)] == ["s4", "s3"]
    assert len(service.get_big_wins()) == 5


@pytest.mark.parametrize("limit, expected", [(None, 50), (0, 1), (-3, 1), (1, 1), (120, 120), (201, 200)])
def test_clamp_limit(limit, expected):
    assert clamp_limit(limit) == expected


@pytest.mark.parametrize("page, expected", [(None, 1), (0, 1), (-1, 1), (5, 5)])
def test_clamp_page(page, expected):
    assert clamp_page(page) == expected
