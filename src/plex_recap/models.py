from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime, timezone, tzinfo
from typing import Any

logger = logging.getLogger(__name__)

CONTENT_KINDS = {"movie", "episode"}


@dataclass(frozen=True)
class WatchEvent:
    content_kind: str
    title: str
    show_title: str | None
    year: int | None
    rating: float | None
    content_ref: str | None
    show_ref: str | None
    watched_seconds: int
    occurred_at: int

    @property
    def watch_minutes(self) -> int:
        return self.watched_seconds // 60

    @property
    def group_title(self) -> str:
        if self.content_kind == "episode":
            return self.show_title or self.title
        return self.title

    def local_datetime(self, tz: tzinfo = timezone.utc) -> datetime:
        return datetime.fromtimestamp(self.occurred_at, tz=tz)

    def calendar_month(self, tz: tzinfo = timezone.utc) -> tuple[int, int]:
        local = self.local_datetime(tz)
        return local.year, local.month


@dataclass(frozen=True)
class RecapUser:
    """The person a recap is built for, as known to the media server."""

    email: str | None
    plex_user_id: str | None = None
    username: str | None = None


@dataclass(frozen=True)
class ViewingHistory:
    # user_id is the monitoring service's own id, used to find the user in rankings
    user_id: str
    records: list[dict[str, Any]]


def calendar_year(occurred_at: int, tz: tzinfo = timezone.utc) -> int:
    """Calendar year of an epoch timestamp in ``tz``; 0 for a missing timestamp."""
    if occurred_at <= 0:
        return 0
    return datetime.fromtimestamp(occurred_at, tz=tz).year



def _to_int(value: Any) -> int:
    if value is None or value == "":
        return 0
    if isinstance(value, bool):
        raise ValueError(f"Unexpected boolean value: {value}")
    return int(float(value))



def _optional_int(value: Any) -> int | None:
    try:
        parsed = _to_int(value)
    except (TypeError, ValueError):
        return None
    return parsed or None



def _optional_float(value: Any) -> float | None:
    if value is None or value == "":
        return None
    try:
        parsed = float(value)
    except (TypeError, ValueError):
        return None
    return parsed or None



def _optional_ref(value: Any) -> str | None:
    if value is None or value == "":
        return None
    return str(value)



def _extract_watched_seconds(payload: dict[str, Any]) -> int:
    for key in ("viewed_duration", "duration"):
        seconds = _optional_int(payload.get(key))
        if seconds is not None and seconds > 0:
            return seconds
    return 0



def parse_watch_event(payload: dict[str, Any], tz: tzinfo = timezone.utc) -> WatchEvent:
    if not isinstance(payload, dict):
        raise ValueError(f"Unsupported history record: {type(payload).__name__}")

    content_kind = payload.get("media_type")
    if content_kind not in CONTENT_KINDS:
        raise ValueError(f"Unsupported media type: {content_kind}")

    watched_seconds = _extract_watched_seconds(payload)
    if watched_seconds // 60 <= 0:
        raise ValueError(f"No usable watch duration: {watched_seconds}s")

    occurred_at = _to_int(payload.get("date") or payload.get("started"))
    if calendar_year(occurred_at, tz) == 0:
        raise ValueError("Missing watch timestamp")

    title = payload.get("title")
    grandparent_title = payload.get("grandparent_title")
    if content_kind == "movie":
        display_title = str(title or grandparent_title or "Unknown")
        show_title = None
        show_ref = None
    else:
        display_title = str(title or "Unknown")
        show_title = str(grandparent_title or title or "Unknown")
        show_ref = _optional_ref(payload.get("grandparent_rating_key"))

    return WatchEvent(
        content_kind=content_kind,
        title=display_title,
        show_title=show_title,
        year=_optional_int(payload.get("year")) or _optional_int(payload.get("original_year")),
        rating=_optional_float(payload.get("rating")) or _optional_float(payload.get("user_rating")),
        content_ref=_optional_ref(payload.get("rating_key")),
        show_ref=show_ref,
        watched_seconds=watched_seconds,
        occurred_at=occurred_at,
    )



def normalize_watch_event(
    payload: dict[str, Any],
    year: int,
    tz: tzinfo = timezone.utc,
) -> WatchEvent | None:
    """
    Coerce one raw history record into a ``WatchEvent`` for ``year``.

    Returns ``None`` instead of raising for anything unusable: unknown media
    types, durations under one minute, missing or unparseable timestamps and
    records whose calendar year (in ``tz``) is not ``year``.
    """
    try:
        event = parse_watch_event(payload, tz=tz)
    except (TypeError, ValueError, OverflowError, OSError):
        return None

    if calendar_year(event.occurred_at, tz) != year:
        return None
    return event



def normalize_history(
    records: Iterable[dict[str, Any]],
    year: int,
    tz: tzinfo = timezone.utc,
) -> list[WatchEvent]:
    events: list[WatchEvent] = []
    dropped = 0
    for record in records:
        event = normalize_watch_event(record, year=year, tz=tz)
        if event is None:
            dropped += 1
            continue
        events.append(event)

    logger.debug("history_normalized", extra={"kept": len(events), "dropped": dropped, "year": year})
    return events
