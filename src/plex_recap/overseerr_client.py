from __future__ import annotations

import logging
from typing import Any

import httpx

from plex_recap.config import Settings
from plex_recap.exceptions import UpstreamError
from plex_recap.models import RecapUser
from plex_recap.request_stats import RequestListing

REQUEST_PAGE_SIZE = 100


class OverseerrClient:
    """Request source reading media requests from Overseerr."""

    def __init__(
        self,
        settings: Settings,
        logger: logging.Logger,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        if not settings.overseerr_enabled:
            raise RuntimeError("Overseerr is not configured (OVERSEERR_URL / OVERSEERR_API_KEY)")
        self._logger = logger
        self._http = http_client or httpx.AsyncClient(
            base_url=f"{settings.overseerr_url}/api/v1",
            timeout=settings.http_timeout_seconds,
            headers={"Accept": "application/json", "X-Api-Key": settings.overseerr_api_key or ""},
        )

    async def close(self) -> None:
        await self._http.aclose()

    async def fetch_requests(self, user: RecapUser) -> RequestListing:
        requester_id = await self._find_user_id(user.email)

        requests: list[dict[str, Any]] = []
        page = 0
        while True:
            try:
                payload = await self._get(
                    "/request",
                    params={
                        "take": REQUEST_PAGE_SIZE,
                        "skip": page * REQUEST_PAGE_SIZE,
                        "sort": "added",
                        "filter": "all",
                    },
                )
            except UpstreamError:
                if page == 0:
                    raise
                # later pages are best effort; keep what was already read
                self._logger.warning("overseerr_pagination_stopped", extra={"page": page + 1})
                break

            results = [row for row in payload.get("results") or [] if isinstance(row, dict)]
            requests.extend(results)
            if len(results) < REQUEST_PAGE_SIZE:
                break
            page += 1

        return RequestListing(requests=requests, requester_id=requester_id, requester_email=user.email)

    async def _find_user_id(self, email: str | None) -> int | None:
        if not email:
            return None
        try:
            payload = await self._get("/user", params={"take": 1000})
        except UpstreamError as error:
            self._logger.warning("overseerr_user_lookup_failed", extra={"error": str(error)})
            return None

        for row in payload.get("results") or []:
            if str(row.get("email") or "").lower() == email.lower():
                user_id = row.get("id")
                return int(user_id) if user_id is not None else None
        return None

    async def _get(self, path: str, params: dict[str, Any] | None = None) -> dict[str, Any]:
        try:
            response = await self._http.get(path, params=params)
        except httpx.HTTPError as error:
            raise UpstreamError(f"Overseerr request {path} failed: {error}") from error

        if response.status_code >= 400:
            raise UpstreamError(f"Overseerr request {path} failed status={response.status_code}")

        try:
            payload = response.json()
        except ValueError as error:
            raise UpstreamError(f"Overseerr returned invalid JSON for {path}") from error
        if not isinstance(payload, dict):
            raise UpstreamError(f"Unexpected Overseerr response format for {path}")
        return payload
