import random
from datetime import datetime, timezone
from zoneinfo import ZoneInfo

from plex_recap.aggregator import build_content_summary, build_monthly_rollups
from plex_recap.models import WatchEvent


def _ts(*args: int) -> int:
    return int(datetime(*args, tzinfo=timezone.utc).timestamp())


def _movie(
    title: str,
    seconds: int,
    occurred_at: int,
    year: int | None = None,
    rating: float | None = None,
    content_ref: str | None = None,
) -> WatchEvent:
    return WatchEvent(
        content_kind="movie",
        title=title,
        show_title=None,
        year=year,
        rating=rating,
        content_ref=content_ref,
        show_ref=None,
        watched_seconds=seconds,
        occurred_at=occurred_at,
    )


def _episode(show: str, seconds: int, occurred_at: int, show_ref: str | None = None) -> WatchEvent:
    return WatchEvent(
        content_kind="episode",
        title="Episode",
        show_title=show,
        year=None,
        rating=None,
        content_ref=None,
        show_ref=show_ref,
        watched_seconds=seconds,
        occurred_at=occurred_at,
    )


def test_empty_input_yields_zero_summary() -> None:
    summary = build_content_summary([])

    assert summary.movies == []
    assert summary.shows == []
    assert summary.total_watch_minutes == 0
    assert summary.movies_watched_count == 0
    assert summary.shows_watched_count == 0
    assert summary.episodes_watched_count == 0


def test_repeated_movie_rolls_up_into_one_aggregate() -> None:
    events = [_movie("Favorite Movie", 7200, _ts(2024, 3, day), year=2010, content_ref="9") for day in (1, 2, 3)]

    summary = build_content_summary(events)

    assert summary.movies_watched_count == 1
    top = summary.movies[0]
    assert top.title == "Favorite Movie"
    assert top.total_watch_minutes == 360
    assert top.play_count == 3
    assert top.content_ref == "9"


def test_single_episode_counts_show_and_episode() -> None:
    summary = build_content_summary([_episode("Test Show", 2400, _ts(2024, 5, 1))])

    assert summary.shows_watched_count == 1
    assert summary.episodes_watched_count == 1
    assert summary.shows[0].to_dict() == {
        "title": "Test Show",
        "watchTime": 40,
        "playCount": 1,
        "episodesWatched": 1,
    }


def test_rewatched_episodes_increment_every_view() -> None:
    events = [_episode("Loop", 1800, _ts(2024, 1, 1)) for _ in range(3)]

    summary = build_content_summary(events)

    assert summary.shows_watched_count == 1
    assert summary.shows[0].episodes_watched == 3
    assert summary.episodes_watched_count == 3


def test_minutes_are_floored_per_event() -> None:
    events = [_movie("Short", 90, _ts(2024, 1, 1)), _movie("Short", 90, _ts(2024, 1, 2))]

    summary = build_content_summary(events)

    assert summary.movies[0].total_watch_minutes == 2
    assert summary.total_watch_minutes == 2


def test_first_seen_metadata_is_kept() -> None:
    events = [
        _movie("Remake", 3600, _ts(2024, 1, 1), year=None, rating=None, content_ref=None),
        _movie("Remake", 3600, _ts(2024, 1, 2), year=1998, rating=6.0, content_ref="1"),
        _movie("Remake", 3600, _ts(2024, 1, 3), year=2022, rating=9.0, content_ref="2"),
    ]

    top = build_content_summary(events).movies[0]

    assert top.year == 1998
    assert top.rating == 6.0
    assert top.content_ref == "1"


def test_mixed_totals_and_ordering() -> None:
    events = [
        _movie("Short Film", 1800, _ts(2024, 1, 1)),
        _movie("Epic", 10800, _ts(2024, 1, 2)),
        _episode("Show A", 3000, _ts(2024, 1, 3), show_ref="55"),
        _episode("Show B", 6000, _ts(2024, 1, 4)),
        _episode("Show A", 3000, _ts(2024, 1, 5)),
    ]

    summary = build_content_summary(events)

    assert [movie.title for movie in summary.movies] == ["Epic", "Short Film"]
    assert [show.title for show in summary.shows] == ["Show A", "Show B"]
    assert summary.shows[0].content_ref == "55"
    assert summary.movies_watch_minutes == 210
    assert summary.shows_watch_minutes == 200
    assert summary.total_watch_minutes == 410
    assert summary.movies_watched_count == len(summary.movies)
    assert summary.shows_watched_count == len(summary.shows)


def test_ties_keep_first_seen_order() -> None:
    events = [_movie("B", 600, _ts(2024, 1, 1)), _movie("A", 600, _ts(2024, 1, 2))]

    assert [movie.title for movie in build_content_summary(events).movies] == ["B", "A"]


def test_aggregation_is_order_independent() -> None:
    events = [_movie(f"Movie {i % 4}", 600 + i * 60, _ts(2024, 1 + i % 12, 1)) for i in range(20)]
    events += [_episode(f"Show {i % 3}", 1200 + i, _ts(2024, 1 + i % 12, 2)) for i in range(15)]
    shuffled = list(events)
    random.Random(7).shuffle(shuffled)

    original = build_content_summary(events)
    reordered = build_content_summary(shuffled)

    assert original.total_watch_minutes == reordered.total_watch_minutes
    assert original.movies_watched_count == reordered.movies_watched_count
    assert original.shows_watched_count == reordered.shows_watched_count
    assert original.episodes_watched_count == reordered.episodes_watched_count
    assert {m.title: m.total_watch_minutes for m in original.movies} == {
        m.title: m.total_watch_minutes for m in reordered.movies
    }


def test_monthly_rollups_are_ordered_and_sparse() -> None:
    events = [
        _movie("February Film", 5400, _ts(2024, 2, 10, 20, 0)),
        _movie("January Film", 7200, _ts(2024, 1, 5, 19, 0)),
        _episode("January Show", 1800, _ts(2024, 1, 6, 21, 0)),
    ]

    months = build_monthly_rollups(events, year=2024)

    assert [month.month_name for month in months] == ["January", "February"]
    january, february = months
    assert january.total_watch_minutes == 150
    assert january.top_movie is not None and january.top_movie.title == "January Film"
    assert january.top_show is not None and january.top_show.title == "January Show"
    assert february.total_watch_minutes == 90
    assert february.top_show is None
    assert "topShow" not in february.to_dict()


def test_monthly_top_content_is_scoped_to_the_month() -> None:
    events = [
        _movie("Big In March", 20000, _ts(2024, 3, 1)),
        _movie("Small In April", 600, _ts(2024, 4, 1)),
        _movie("Big In March", 600, _ts(2024, 4, 2)),
        _movie("Small In April", 600, _ts(2024, 4, 3)),
    ]

    april = build_monthly_rollups(events, year=2024)[1]

    assert april.month == 4
    assert april.top_movie is not None
    assert april.top_movie.title == "Small In April"
    assert april.top_movie.play_count == 2


def test_monthly_boundaries_do_not_bleed() -> None:
    events = [
        _movie("End Of January", 3600, _ts(2024, 1, 31, 23, 59)),
        _movie("Start Of February", 3600, _ts(2024, 2, 1, 0, 0)),
        _movie("New Year's Eve", 3600, _ts(2024, 12, 31, 12, 0)),
        _movie("Last Year", 3600, _ts(2023, 12, 31, 12, 0)),
    ]

    months = {month.month: month for month in build_monthly_rollups(events, year=2024)}

    assert sorted(months) == [1, 2, 12]
    assert months[1].top_movie.title == "End Of January"
    assert months[2].top_movie.title == "Start Of February"
    assert months[12].top_movie.title == "New Year's Eve"
    assert months[1].total_watch_minutes == 60


def test_monthly_rollups_use_configured_timezone() -> None:
    # 2024-03-01 03:00 UTC is still February 29th in Los Angeles.
    events = [_movie("Leap Night", 3600, _ts(2024, 3, 1, 3, 0))]

    assert build_monthly_rollups(events, year=2024)[0].month == 3
    assert build_monthly_rollups(events, year=2024, tz=ZoneInfo("America/Los_Angeles"))[0].month == 2
