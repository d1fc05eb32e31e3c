from __future__ import annotations

import logging
from typing import Any

import httpx

from plex_recap.catalog import LibraryItem, LibrarySection
from plex_recap.config import Settings
from plex_recap.exceptions import UpstreamError

EPISODE_TYPE = 4


class PlexClient:
    """Catalog source listing every library section of a Plex Media Server."""

    def __init__(
        self,
        settings: Settings,
        logger: logging.Logger,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        if not settings.plex_enabled:
            raise RuntimeError("Plex is not configured (PLEX_URL / PLEX_TOKEN)")
        self._logger = logger
        self._http = http_client or httpx.AsyncClient(
            base_url=settings.plex_url or "",
            timeout=settings.http_timeout_seconds,
            headers={"Accept": "application/json", "X-Plex-Token": settings.plex_token or ""},
        )

    async def close(self) -> None:
        await self._http.aclose()

    async def fetch_library_sections(self) -> list[LibrarySection]:
        container = await self._get("/library/sections")
        directories = container.get("Directory") or []
        if not isinstance(directories, list):
            raise UpstreamError("Invalid response format from Plex: expected a list of sections")

        sections: list[LibrarySection] = []
        attempted = 0
        for directory in directories:
            section_type = directory.get("type")
            if section_type not in {"movie", "show"}:
                continue

            attempted += 1
            key = directory.get("key")
            title = str(directory.get("title") or f"Section {key}")
            try:
                sections.extend(await self._load_section(str(key), section_type, title))
            except UpstreamError as error:
                self._logger.warning("library_section_failed", extra={"section": title, "error": str(error)})

        # an all-failed listing must not look like an empty server
        if attempted and not sections:
            raise UpstreamError("No Plex library section could be listed")
        return sections

    async def _load_section(self, key: str, section_type: str, title: str) -> list[LibrarySection]:
        container = await self._get(f"/library/sections/{key}/all")
        listed = [_library_item(entry) for entry in container.get("Metadata") or []]
        primary = LibrarySection(
            section_type=section_type,
            title=title,
            items=listed,
            total_count=_optional_int(container.get("totalSize")),
        )
        if section_type != "show":
            return [primary]

        # Show entries carry no files; episodes are listed separately.
        try:
            episodes = await self._get(f"/library/sections/{key}/all", params={"type": EPISODE_TYPE})
        except UpstreamError as error:
            self._logger.warning("library_episodes_failed", extra={"section": title, "error": str(error)})
            return [primary]
        episode_section = LibrarySection(
            section_type="episode",
            title=title,
            items=[_library_item(entry) for entry in episodes.get("Metadata") or []],
        )
        return [primary, episode_section]

    async def _get(self, path: str, params: dict[str, Any] | None = None) -> dict[str, Any]:
        try:
            response = await self._http.get(path, params=params)
        except httpx.HTTPError as error:
            raise UpstreamError(f"Plex request {path} failed: {error}") from error

        if response.status_code >= 400:
            raise UpstreamError(f"Plex request {path} failed status={response.status_code}")

        try:
            payload = response.json()
        except ValueError as error:
            raise UpstreamError(f"Plex returned invalid JSON for {path}") from error

        container = payload.get("MediaContainer") if isinstance(payload, dict) else None
        if not isinstance(container, dict):
            raise UpstreamError(f"Unexpected Plex response format for {path}")
        return container



def _library_item(entry: dict[str, Any]) -> LibraryItem:
    sizes: list[int] = []
    for media in entry.get("Media") or []:
        for part in media.get("Part") or []:
            size = _optional_int(part.get("size"))
            if size:
                sizes.append(size)
    return LibraryItem(title=str(entry.get("title") or "Unknown"), file_sizes=tuple(sizes))



def _optional_int(value: Any) -> int | None:
    if value is None:
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None
