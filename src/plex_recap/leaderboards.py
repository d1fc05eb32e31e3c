from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from typing import Any, Protocol

from plex_recap.aggregator import ContentAggregate

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class UserWatchTotal:
    """Per-user raw totals as reported by a ranking source, in seconds."""

    user_id: str
    display_name: str
    total_seconds: int
    movies_seconds: int = 0
    shows_seconds: int = 0
    play_count: int = 0


@dataclass(frozen=True)
class LeaderboardEntry:
    user_id: str
    display_name: str
    total_watch_minutes: int
    movies_watch_minutes: int
    shows_watch_minutes: int
    play_count: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "userId": self.user_id,
            "displayName": self.display_name,
            "totalWatchTime": self.total_watch_minutes,
            "moviesWatchTime": self.movies_watch_minutes,
            "showsWatchTime": self.shows_watch_minutes,
            "playCount": self.play_count,
        }


@dataclass(frozen=True)
class WatchTimeLeaderboard:
    entries: list[LeaderboardEntry] = field(default_factory=list)
    requesting_user_position: int | None = None
    total_users: int = 0

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "leaderboard": [entry.to_dict() for entry in self.entries],
            "totalUsers": self.total_users,
        }
        if self.requesting_user_position is not None:
            payload["userPosition"] = self.requesting_user_position
        return payload


@dataclass(frozen=True)
class TitleLeaderboard:
    title: str
    content_ref: str
    entries: list[LeaderboardEntry] = field(default_factory=list)
    requesting_user_position: int | None = None
    total_watchers: int = 0

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "title": self.title,
            "ratingKey": self.content_ref,
            "leaderboard": [entry.to_dict() for entry in self.entries],
            "totalWatchers": self.total_watchers,
        }
        if self.requesting_user_position is not None:
            payload["userPosition"] = self.requesting_user_position
        return payload


class TitleRankingSource(Protocol):
    async def fetch_title_user_totals(self, year: int, content_ref: str) -> list[UserWatchTotal]: ...



def _rank_entries(totals: Iterable[UserWatchTotal]) -> list[LeaderboardEntry]:
    entries: list[LeaderboardEntry] = []
    for total in totals:
        if not total.user_id:
            continue
        total_minutes = max(0, total.total_seconds) // 60
        if total_minutes == 0:
            continue
        entries.append(
            LeaderboardEntry(
                user_id=total.user_id,
                display_name=total.display_name,
                total_watch_minutes=total_minutes,
                movies_watch_minutes=max(0, total.movies_seconds) // 60,
                shows_watch_minutes=max(0, total.shows_seconds) // 60,
                play_count=total.play_count,
            )
        )

    entries.sort(key=lambda entry: entry.total_watch_minutes, reverse=True)
    return entries



def _position_of(entries: Sequence[LeaderboardEntry], user_id: str | None) -> int | None:
    if not user_id:
        return None
    for index, entry in enumerate(entries):
        if entry.user_id == user_id:
            return index + 1
    return None



def build_watch_time_leaderboard(
    totals: Iterable[UserWatchTotal],
    requesting_user_id: str | None,
) -> WatchTimeLeaderboard:
    entries = _rank_entries(totals)
    return WatchTimeLeaderboard(
        entries=entries,
        requesting_user_position=_position_of(entries, requesting_user_id),
        total_users=len(entries),
    )



def build_title_leaderboard(
    title: str,
    content_ref: str,
    totals: Iterable[UserWatchTotal],
    requesting_user_id: str | None,
) -> TitleLeaderboard:
    entries = _rank_entries(totals)
    return TitleLeaderboard(
        title=title,
        content_ref=content_ref,
        entries=entries,
        requesting_user_position=_position_of(entries, requesting_user_id),
        total_watchers=len(entries),
    )



async def build_title_leaderboards(
    items: Iterable[ContentAggregate],
    ranking_source: TitleRankingSource,
    year: int,
    requesting_user_id: str | None,
    timeout: float | None = None,
) -> list[TitleLeaderboard]:
    """
    Rank every user against each item that carries a content reference.

    Lookups run concurrently and independently: a failed or timed out lookup
    drops only its own title. Items without a reference never reach the
    ranking source.
    """
    targets = [item for item in items if item.content_ref]
    if not targets:
        return []

    async def _lookup(item: ContentAggregate) -> TitleLeaderboard:
        totals = await asyncio.wait_for(
            ranking_source.fetch_title_user_totals(year, item.content_ref),
            timeout=timeout,
        )
        return build_title_leaderboard(item.title, item.content_ref, totals, requesting_user_id)

    results = await asyncio.gather(*(_lookup(item) for item in targets), return_exceptions=True)

    leaderboards: list[TitleLeaderboard] = []
    for item, result in zip(targets, results):
        if isinstance(result, BaseException):
            if not isinstance(result, Exception):
                raise result
            logger.warning(
                "title_leaderboard_failed",
                extra={"title": item.title, "content_ref": item.content_ref, "error": repr(result)},
            )
            continue
        leaderboards.append(result)

    return leaderboards
