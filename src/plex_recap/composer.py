from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import timezone, tzinfo
from typing import Protocol, TypeVar

from plex_recap.aggregator import ContentAggregate, ContentSummary, build_content_summary, build_monthly_rollups
from plex_recap.catalog import CatalogSummary, LibrarySection, summarize_catalog
from plex_recap.leaderboards import (
    TitleRankingSource,
    UserWatchTotal,
    WatchTimeLeaderboard,
    build_title_leaderboards,
    build_watch_time_leaderboard,
)
from plex_recap.models import RecapUser, ViewingHistory, normalize_history
from plex_recap.request_stats import RequestListing, RequestStats, summarize_requests
from plex_recap.statistics import TitleLeaderboards, YearlyStatistics

T = TypeVar("T")


class HistorySource(Protocol):
    async def fetch_history(self, user: RecapUser, year: int) -> ViewingHistory: ...


class RankingSource(TitleRankingSource, Protocol):
    async def fetch_user_totals(self, year: int) -> list[UserWatchTotal]: ...


class CatalogSource(Protocol):
    async def fetch_library_sections(self) -> list[LibrarySection]: ...


class RequestSource(Protocol):
    async def fetch_requests(self, user: RecapUser) -> RequestListing: ...


@dataclass(frozen=True)
class BuildResult:
    success: bool
    statistics: YearlyStatistics | None = None
    error: str | None = None


class StatisticsComposer:
    def __init__(
        self,
        history_source: HistorySource,
        logger: logging.Logger,
        ranking_source: RankingSource | None = None,
        catalog_source: CatalogSource | None = None,
        request_source: RequestSource | None = None,
        tz: tzinfo = timezone.utc,
        source_timeout_seconds: float = 300.0,
        top_content_limit: int = 10,
        leaderboard_title_limit: int = 5,
        server_name: str | None = None,
    ) -> None:
        self._history = history_source
        self._rankings = ranking_source
        self._catalog = catalog_source
        self._requests = request_source
        self._logger = logger
        self._tz = tz
        self._timeout = source_timeout_seconds
        self._top_content_limit = top_content_limit
        self._leaderboard_title_limit = leaderboard_title_limit
        self._server_name = server_name

    async def build(self, user: RecapUser, year: int) -> BuildResult:
        self._logger.info("recap_build_start", extra={"year": year, "email": user.email})

        try:
            history = await asyncio.wait_for(self._history.fetch_history(user, year), timeout=self._timeout)
        except Exception as error:  # noqa: BLE001
            reason = self._describe(error)
            self._logger.error("history_fetch_failed", extra={"reason": reason, "year": year})
            return BuildResult(success=False, error=reason)

        self._logger.info("history_fetched", extra={"count": len(history.records), "year": year})

        try:
            statistics = await self._compose(user, year, history)
        except Exception as error:  # noqa: BLE001
            self._logger.exception("recap_build_failed", extra={"year": year})
            return BuildResult(success=False, error=f"Failed to build statistics: {error}")

        self._logger.info(
            "recap_build_finished",
            extra={
                "year": year,
                "total_watch_minutes": statistics.total_watch_minutes,
                "sources": ", ".join(statistics.available_sections()),
            },
        )
        return BuildResult(success=True, statistics=statistics)

    async def _compose(self, user: RecapUser, year: int, history: ViewingHistory) -> YearlyStatistics:
        events = normalize_history(history.records, year=year, tz=self._tz)
        summary = build_content_summary(events)
        months = build_monthly_rollups(events, year=year, tz=self._tz)

        top_movies = summary.movies[: self._top_content_limit]
        top_shows = summary.shows[: self._top_content_limit]

        server_stats, request_stats, watch_time, title_boards = await asyncio.gather(
            self._optional("catalog", self._catalog_factory()),
            self._optional("requests", self._requests_factory(user, year)),
            self._optional("watch_time_leaderboard", self._watch_time_factory(year, history.user_id)),
            # each title lookup carries its own timeout
            self._optional(
                "title_leaderboards",
                self._title_leaderboards_factory(summary, year, history.user_id),
                bounded=False,
            ),
        )

        return YearlyStatistics(
            year=year,
            user_id=history.user_id,
            total_watch_minutes=summary.total_watch_minutes,
            movies_watch_minutes=summary.movies_watch_minutes,
            shows_watch_minutes=summary.shows_watch_minutes,
            movies_watched=summary.movies_watched_count,
            shows_watched=summary.shows_watched_count,
            episodes_watched=summary.episodes_watched_count,
            top_movies=top_movies,
            top_shows=top_shows,
            watch_time_by_month=months,
            server_stats=server_stats,
            request_stats=request_stats,
            watch_time_leaderboard=watch_time,
            title_leaderboards=title_boards,
        )

    async def _optional(
        self,
        source: str,
        factory: Callable[[], Awaitable[T]] | None,
        bounded: bool = True,
    ) -> T | None:
        if factory is None:
            self._logger.info("optional_source_disabled", extra={"source": source})
            return None

        try:
            return await asyncio.wait_for(factory(), timeout=self._timeout if bounded else None)
        except Exception as error:  # noqa: BLE001
            self._logger.warning("optional_source_failed", extra={"source": source, "reason": self._describe(error)})
            return None

    def _catalog_factory(self) -> Callable[[], Awaitable[CatalogSummary]] | None:
        catalog = self._catalog
        if catalog is None:
            return None

        async def _run() -> CatalogSummary:
            sections = await catalog.fetch_library_sections()
            return summarize_catalog(sections, server_name=self._server_name)

        return _run

    def _requests_factory(self, user: RecapUser, year: int) -> Callable[[], Awaitable[RequestStats]] | None:
        requests = self._requests
        if requests is None:
            return None

        async def _run() -> RequestStats:
            listing = await requests.fetch_requests(user)
            return summarize_requests(listing, year=year, tz=self._tz)

        return _run

    def _watch_time_factory(self, year: int, user_id: str) -> Callable[[], Awaitable[WatchTimeLeaderboard]] | None:
        rankings = self._rankings
        if rankings is None:
            return None

        async def _run() -> WatchTimeLeaderboard:
            totals = await rankings.fetch_user_totals(year)
            return build_watch_time_leaderboard(totals, requesting_user_id=user_id)

        return _run

    def _title_leaderboards_factory(
        self,
        summary: ContentSummary,
        year: int,
        user_id: str,
    ) -> Callable[[], Awaitable[TitleLeaderboards]] | None:
        rankings = self._rankings
        if rankings is None:
            return None

        async def _for(items: list[ContentAggregate]) -> list:
            return await build_title_leaderboards(
                items[: self._leaderboard_title_limit],
                ranking_source=rankings,
                year=year,
                requesting_user_id=user_id,
                timeout=self._timeout,
            )

        async def _run() -> TitleLeaderboards:
            movies, shows = await asyncio.gather(_for(summary.movies), _for(summary.shows))
            return TitleLeaderboards(movies=movies, shows=shows)

        return _run

    def _describe(self, error: Exception) -> str:
        if isinstance(error, TimeoutError):
            return f"timed out after {self._timeout:g}s"
        return str(error) or type(error).__name__
