import asyncio

from plex_recap.aggregator import ContentAggregate
from plex_recap.leaderboards import (
    UserWatchTotal,
    build_title_leaderboard,
    build_title_leaderboards,
    build_watch_time_leaderboard,
)


class FakeTitleRankings:
    def __init__(self, totals: dict[str, list[UserWatchTotal]], failing: set[str] | None = None, slow: set[str] | None = None):
        self.totals = totals
        self.failing = failing or set()
        self.slow = slow or set()
        self.calls: list[tuple[int, str]] = []

    async def fetch_title_user_totals(self, year: int, content_ref: str) -> list[UserWatchTotal]:
        self.calls.append((year, content_ref))
        if content_ref in self.failing:
            raise RuntimeError(f"lookup failed for {content_ref}")
        if content_ref in self.slow:
            await asyncio.sleep(5)
        return self.totals.get(content_ref, [])


def _totals() -> list[UserWatchTotal]:
    return [
        UserWatchTotal(user_id="1", display_name="alice", total_seconds=3600, movies_seconds=1200, shows_seconds=2400, play_count=4),
        UserWatchTotal(user_id="2", display_name="bob", total_seconds=7200),
        UserWatchTotal(user_id="3", display_name="carol", total_seconds=30),
        UserWatchTotal(user_id="4", display_name="dave", total_seconds=0),
        UserWatchTotal(user_id="", display_name="ghost", total_seconds=9000),
    ]


def test_watch_time_leaderboard_ranks_and_drops_idle_users() -> None:
    board = build_watch_time_leaderboard(_totals(), requesting_user_id="1")

    assert [entry.display_name for entry in board.entries] == ["bob", "alice"]
    assert board.total_users == 2
    assert board.requesting_user_position == 2
    alice = board.entries[1]
    assert alice.total_watch_minutes == 60
    assert alice.movies_watch_minutes == 20
    assert alice.shows_watch_minutes == 40
    assert alice.play_count == 4


def test_watch_time_leaderboard_without_requesting_user() -> None:
    board = build_watch_time_leaderboard(_totals(), requesting_user_id="99")

    assert board.requesting_user_position is None
    assert "userPosition" not in board.to_dict()


def test_watch_time_leaderboard_is_sorted_non_increasing() -> None:
    totals = [UserWatchTotal(user_id=str(i), display_name=f"user{i}", total_seconds=(i * 37 % 11 + 1) * 600) for i in range(12)]

    board = build_watch_time_leaderboard(totals, requesting_user_id=None)
    minutes = [entry.total_watch_minutes for entry in board.entries]

    assert minutes == sorted(minutes, reverse=True)
    assert board.total_users == 12


def test_watch_time_leaderboard_to_dict() -> None:
    board = build_watch_time_leaderboard(_totals()[:2], requesting_user_id="2")

    assert board.to_dict() == {
        "leaderboard": [
            {
                "userId": "2",
                "displayName": "bob",
                "totalWatchTime": 120,
                "moviesWatchTime": 0,
                "showsWatchTime": 0,
                "playCount": 0,
            },
            {
                "userId": "1",
                "displayName": "alice",
                "totalWatchTime": 60,
                "moviesWatchTime": 20,
                "showsWatchTime": 40,
                "playCount": 4,
            },
        ],
        "totalUsers": 2,
        "userPosition": 1,
    }


def test_title_leaderboard_counts_watchers() -> None:
    board = build_title_leaderboard("Epic", "42", _totals(), requesting_user_id="2")

    assert board.title == "Epic"
    assert board.content_ref == "42"
    assert board.total_watchers == 2
    assert board.requesting_user_position == 1


def test_title_leaderboards_skip_items_without_reference() -> None:
    rankings = FakeTitleRankings({})
    items = [ContentAggregate(title="No Ref"), ContentAggregate(title="Empty Ref", content_ref="")]

    boards = asyncio.run(build_title_leaderboards(items, rankings, year=2024, requesting_user_id="1"))

    assert boards == []
    assert rankings.calls == []


def test_title_leaderboards_keep_input_order_and_omit_failures() -> None:
    rankings = FakeTitleRankings(
        {"a": _totals(), "c": [UserWatchTotal(user_id="1", display_name="alice", total_seconds=600)]},
        failing={"b"},
    )
    items = [
        ContentAggregate(title="A", content_ref="a"),
        ContentAggregate(title="B", content_ref="b"),
        ContentAggregate(title="Unlinked"),
        ContentAggregate(title="C", content_ref="c"),
    ]

    boards = asyncio.run(build_title_leaderboards(items, rankings, year=2024, requesting_user_id="1"))

    assert [board.title for board in boards] == ["A", "C"]
    assert sorted(ref for _, ref in rankings.calls) == ["a", "b", "c"]
    assert all(year == 2024 for year, _ in rankings.calls)
    assert boards[1].requesting_user_position == 1


def test_title_leaderboards_drop_timed_out_lookups() -> None:
    rankings = FakeTitleRankings({"fast": _totals()}, slow={"slow"})
    items = [ContentAggregate(title="Slow", content_ref="slow"), ContentAggregate(title="Fast", content_ref="fast")]

    boards = asyncio.run(
        build_title_leaderboards(items, rankings, year=2024, requesting_user_id=None, timeout=0.05)
    )

    assert [board.title for board in boards] == ["Fast"]
