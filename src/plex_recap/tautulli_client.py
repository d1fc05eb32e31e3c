from __future__ import annotations

import logging
from datetime import datetime, timedelta, tzinfo
from typing import Any

import httpx

from plex_recap.config import Settings
from plex_recap.exceptions import UpstreamError, UserNotFoundError
from plex_recap.leaderboards import UserWatchTotal
from plex_recap.models import RecapUser, ViewingHistory

HISTORY_PAGE_SIZE = 1000


class TautulliClient:
    """History and ranking source backed by the Tautulli v2 API."""

    def __init__(
        self,
        settings: Settings,
        logger: logging.Logger,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self._logger = logger
        self._api_key = settings.tautulli_api_key
        self._tz = settings.tzinfo
        self._http = http_client or httpx.AsyncClient(
            base_url=settings.tautulli_url,
            timeout=settings.http_timeout_seconds,
        )

    async def close(self) -> None:
        await self._http.aclose()

    async def fetch_history(self, user: RecapUser, year: int) -> ViewingHistory:
        users = _as_rows(await self._command("get_users"))
        tautulli_user = _match_user(users, user)
        if tautulli_user is None:
            available = ", ".join(
                f"{row.get('username') or row.get('friendly_name') or 'Unknown'} ({row.get('email') or 'no email'})"
                for row in users
            )
            raise UserNotFoundError(
                f"User not found in Tautulli. Plex user id: {user.plex_user_id}, "
                f"email: {user.email or 'none'}. Available users: {available or 'none'}"
            )

        user_id = str(tautulli_user.get("user_id"))
        records: list[dict[str, Any]] = []
        start = 0

        # Tautulli's after/before filters are unreliable; the year is filtered during normalization.
        while True:
            data = await self._command(
                "get_history",
                user_id=user_id,
                start=start,
                length=HISTORY_PAGE_SIZE,
            )
            page = _as_rows(data)
            records.extend(page)

            records_total = _to_int(data.get("recordsTotal")) if isinstance(data, dict) else 0
            if len(page) < HISTORY_PAGE_SIZE or len(records) >= records_total:
                break
            start += HISTORY_PAGE_SIZE

        self._logger.debug("tautulli_history_loaded", extra={"user_id": user_id, "count": len(records), "year": year})
        return ViewingHistory(user_id=user_id, records=records)

    async def fetch_user_totals(self, year: int) -> list[UserWatchTotal]:
        start, end = _year_bounds(year, self._tz)
        # time_range counts back from today, so after/before pin past years
        window_end = min(end, datetime.now(self._tz))
        days = max(1, (window_end - start).days + 1)

        stats = await self._command(
            "get_home_stats",
            time_range=days,
            after=start.date().isoformat(),
            before=end.date().isoformat(),
            stats_type="duration",
            stats_count=1000,
        )
        totals: list[UserWatchTotal] = []
        for row in _user_rows(stats if isinstance(stats, list) else []):
            user_id = row.get("user_id") if row.get("user_id") is not None else row.get("user")
            totals.append(
                UserWatchTotal(
                    user_id=str(user_id) if user_id is not None else "",
                    display_name=str(row.get("friendly_name") or row.get("user") or row.get("username") or "Unknown"),
                    total_seconds=_to_int(row.get("total_duration") or row.get("duration")),
                    movies_seconds=_to_int(row.get("movies_duration")),
                    shows_seconds=_to_int(row.get("shows_duration")),
                    play_count=_to_int(row.get("total_plays")),
                )
            )
        return totals

    async def fetch_title_user_totals(self, year: int, content_ref: str) -> list[UserWatchTotal]:
        start, end = _year_bounds(year, self._tz)

        stats = await self._command(
            "get_item_user_stats",
            rating_key=content_ref,
            time_range=f"{int(start.timestamp())},{int(end.timestamp())}",
        )
        totals: list[UserWatchTotal] = []
        for row in _as_rows(stats):
            user_id = row.get("user_id")
            totals.append(
                UserWatchTotal(
                    user_id=str(user_id) if user_id is not None else "",
                    display_name=str(row.get("friendly_name") or row.get("username") or "Unknown"),
                    total_seconds=_to_int(row.get("total_duration") or row.get("duration") or row.get("time")),
                    play_count=_to_int(row.get("plays")),
                )
            )
        return totals

    async def _command(self, cmd: str, **params: Any) -> Any:
        query = {"apikey": self._api_key, "cmd": cmd, **params}
        try:
            response = await self._http.get("/api/v2", params=query, headers={"Accept": "application/json"})
        except httpx.HTTPError as error:
            raise UpstreamError(f"Tautulli request {cmd} failed: {error}") from error

        if response.status_code >= 400:
            raise UpstreamError(
                f"Tautulli request {cmd} failed status={response.status_code}, detail={_response_detail(response)}"
            )

        try:
            payload = response.json()
        except ValueError as error:
            raise UpstreamError(f"Tautulli returned invalid JSON for {cmd}") from error

        envelope = payload.get("response") if isinstance(payload, dict) else None
        if not isinstance(envelope, dict):
            raise UpstreamError(f"Unexpected Tautulli response format for {cmd}")
        if envelope.get("result") == "error":
            raise UpstreamError(envelope.get("message") or "Tautulli API error")
        return envelope.get("data")



def _match_user(users: list[dict[str, Any]], user: RecapUser) -> dict[str, Any] | None:
    email = (user.email or "").lower()
    if email:
        for row in users:
            if str(row.get("email") or "").lower() == email:
                return row

    names = {value.lower() for value in (user.username, user.email) if value}
    if names:
        for row in users:
            if str(row.get("username") or "").lower() in names or str(row.get("friendly_name") or "").lower() in names:
                return row

    if user.plex_user_id:
        for row in users:
            if user.plex_user_id in {str(row.get("plex_id")), str(row.get("user_id"))}:
                return row
    return None



def _as_rows(data: Any) -> list[dict[str, Any]]:
    if isinstance(data, list):
        return [row for row in data if isinstance(row, dict)]
    if isinstance(data, dict):
        for key in ("data", "users"):
            if isinstance(data.get(key), list):
                return [row for row in data[key] if isinstance(row, dict)]
    return []



def _is_user_row(row: dict[str, Any]) -> bool:
    return bool(row.get("user") or row.get("friendly_name") or row.get("user_id"))



def _user_rows(stats: list[Any]) -> list[dict[str, Any]]:
    blocks = [stat for stat in stats if isinstance(stat, dict) and isinstance(stat.get("rows"), list)]

    for block in blocks:
        rows = _as_rows(block["rows"])
        if rows and "user" in str(block.get("stat_id") or "").lower():
            return rows

    for block in blocks:
        rows = [row for row in _as_rows(block["rows"]) if _is_user_row(row)]
        if rows:
            return rows

    return []



def _year_bounds(year: int, tz: tzinfo) -> tuple[datetime, datetime]:
    start = datetime(year, 1, 1, tzinfo=tz)
    end = datetime(year + 1, 1, 1, tzinfo=tz) - timedelta(seconds=1)
    return start, end



def _to_int(value: Any) -> int:
    try:
        return int(float(value))
    except (TypeError, ValueError):
        return 0



def _response_detail(response: httpx.Response) -> str:
    text = response.text.strip()
    if not text:
        return "<empty>"
    return text[:512]
