from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import timezone, tzinfo
from typing import Any

from plex_recap.models import WatchEvent

MONTH_NAMES = (
    "January",
    "February",
    "March",
    "April",
    "May",
    "June",
    "July",
    "August",
    "September",
    "October",
    "November",
    "December",
)


@dataclass
class ContentAggregate:
    title: str
    year: int | None = None
    rating: float | None = None
    content_ref: str | None = None
    total_watch_minutes: int = 0
    play_count: int = 0

    def to_dict(self) -> dict[str, Any]:
        return _drop_none(
            {
                "title": self.title,
                "watchTime": self.total_watch_minutes,
                "playCount": self.play_count,
                "year": self.year,
                "rating": self.rating,
                "ratingKey": self.content_ref,
            }
        )


@dataclass
class ShowAggregate(ContentAggregate):
    episodes_watched: int = 0

    def to_dict(self) -> dict[str, Any]:
        payload = super().to_dict()
        payload["episodesWatched"] = self.episodes_watched
        return payload


@dataclass(frozen=True)
class ContentSummary:
    movies: list[ContentAggregate] = field(default_factory=list)
    shows: list[ShowAggregate] = field(default_factory=list)
    total_watch_minutes: int = 0
    movies_watch_minutes: int = 0
    shows_watch_minutes: int = 0
    movies_watched_count: int = 0
    shows_watched_count: int = 0
    episodes_watched_count: int = 0


@dataclass(frozen=True)
class MonthlyAggregate:
    month: int
    month_name: str
    total_watch_minutes: int
    top_movie: ContentAggregate | None = None
    top_show: ShowAggregate | None = None

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "month": self.month,
            "monthName": self.month_name,
            "watchTime": self.total_watch_minutes,
        }
        if self.top_movie is not None:
            payload["topMovie"] = self.top_movie.to_dict()
        if self.top_show is not None:
            payload["topShow"] = self.top_show.to_dict()
        return payload



def _drop_none(payload: dict[str, Any]) -> dict[str, Any]:
    return {key: value for key, value in payload.items() if value is not None}



def _ranked(aggregates: Iterable[ContentAggregate]) -> list:
    # sorted() is stable, so equal minutes keep first-seen order
    return sorted(aggregates, key=lambda aggregate: aggregate.total_watch_minutes, reverse=True)



def _fold(target: ContentAggregate, event: WatchEvent, ref: str | None) -> None:
    target.total_watch_minutes += event.watch_minutes
    target.play_count += 1
    if target.year is None:
        target.year = event.year
    if target.rating is None:
        target.rating = event.rating
    if target.content_ref is None:
        target.content_ref = ref



def build_content_summary(events: Iterable[WatchEvent]) -> ContentSummary:
    movies: dict[str, ContentAggregate] = {}
    shows: dict[str, ShowAggregate] = {}
    movies_watch_minutes = 0
    shows_watch_minutes = 0
    episodes_watched_count = 0

    for event in events:
        if event.watched_seconds <= 0:
            continue

        if event.content_kind == "movie":
            movie = movies.get(event.title)
            if movie is None:
                movie = movies[event.title] = ContentAggregate(title=event.title)
            _fold(movie, event, event.content_ref)
            movies_watch_minutes += event.watch_minutes
        elif event.content_kind == "episode":
            show_title = event.group_title
            show = shows.get(show_title)
            if show is None:
                show = shows[show_title] = ShowAggregate(title=show_title)
            _fold(show, event, event.show_ref)
            show.episodes_watched += 1
            shows_watch_minutes += event.watch_minutes
            episodes_watched_count += 1

    return ContentSummary(
        movies=_ranked(movies.values()),
        shows=_ranked(shows.values()),
        total_watch_minutes=movies_watch_minutes + shows_watch_minutes,
        movies_watch_minutes=movies_watch_minutes,
        shows_watch_minutes=shows_watch_minutes,
        movies_watched_count=len(movies),
        shows_watched_count=len(shows),
        episodes_watched_count=episodes_watched_count,
    )



def build_monthly_rollups(
    events: Iterable[WatchEvent],
    year: int,
    tz: tzinfo = timezone.utc,
) -> list[MonthlyAggregate]:
    """
    Bucket ``events`` by calendar month of ``year`` in ``tz``.

    Each month with at least one event gets its own content summary so the
    month's top movie and show are ranked against that month only. Events
    from any other calendar year are ignored, and empty months are omitted.
    """
    by_month: dict[int, list[WatchEvent]] = {}
    for event in events:
        if event.watched_seconds <= 0:
            continue
        event_year, month = event.calendar_month(tz)
        if event_year != year:
            continue
        by_month.setdefault(month, []).append(event)

    outputs: list[MonthlyAggregate] = []
    for month in sorted(by_month):
        summary = build_content_summary(by_month[month])
        outputs.append(
            MonthlyAggregate(
                month=month,
                month_name=MONTH_NAMES[month - 1],
                total_watch_minutes=summary.total_watch_minutes,
                top_movie=summary.movies[0] if summary.movies else None,
                top_show=summary.shows[0] if summary.shows else None,
            )
        )

    return outputs
