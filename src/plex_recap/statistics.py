from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from plex_recap.aggregator import ContentAggregate, MonthlyAggregate, ShowAggregate
from plex_recap.catalog import CatalogSummary
from plex_recap.leaderboards import TitleLeaderboard, WatchTimeLeaderboard
from plex_recap.request_stats import RequestStats


@dataclass(frozen=True)
class TitleLeaderboards:
    movies: list[TitleLeaderboard] = field(default_factory=list)
    shows: list[TitleLeaderboard] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "movies": [board.to_dict() for board in self.movies],
            "shows": [board.to_dict() for board in self.shows],
        }


@dataclass(frozen=True)
class YearlyStatistics:
    """
    Everything a recap is written from.

    The optional sections stay ``None`` when their source was not configured
    or failed; ``to_dict`` leaves their keys out entirely so consumers can
    branch on key presence.
    """

    year: int
    user_id: str
    total_watch_minutes: int
    movies_watch_minutes: int
    shows_watch_minutes: int
    movies_watched: int
    shows_watched: int
    episodes_watched: int
    top_movies: list[ContentAggregate] = field(default_factory=list)
    top_shows: list[ShowAggregate] = field(default_factory=list)
    watch_time_by_month: list[MonthlyAggregate] = field(default_factory=list)
    server_stats: CatalogSummary | None = None
    request_stats: RequestStats | None = None
    watch_time_leaderboard: WatchTimeLeaderboard | None = None
    title_leaderboards: TitleLeaderboards | None = None

    def available_sections(self) -> list[str]:
        sections = ["history"]
        if self.server_stats is not None:
            sections.append("serverStats")
        if self.request_stats is not None:
            sections.append("requestStats")
        if self.watch_time_leaderboard is not None:
            sections.append("watchTimeLeaderboard")
        if self.title_leaderboards is not None:
            sections.append("titleLeaderboards")
        return sections

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "year": self.year,
            "totalWatchTime": {
                "total": self.total_watch_minutes,
                "movies": self.movies_watch_minutes,
                "shows": self.shows_watch_minutes,
            },
            "moviesWatched": self.movies_watched,
            "showsWatched": self.shows_watched,
            "episodesWatched": self.episodes_watched,
            "topMovies": [movie.to_dict() for movie in self.top_movies],
            "topShows": [show.to_dict() for show in self.top_shows],
            "watchTimeByMonth": [month.to_dict() for month in self.watch_time_by_month],
        }

        if self.server_stats is not None:
            payload["serverStats"] = self.server_stats.to_dict()
        if self.request_stats is not None:
            payload["requestStats"] = self.request_stats.to_dict()

        leaderboards: dict[str, Any] = {}
        if self.watch_time_leaderboard is not None:
            leaderboards["watchTime"] = self.watch_time_leaderboard.to_dict()
        if self.title_leaderboards is not None:
            leaderboards["topContent"] = self.title_leaderboards.to_dict()
        if leaderboards:
            payload["leaderboards"] = leaderboards

        return payload
