from __future__ import annotations

import math
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Any

BYTE_UNITS = ("Bytes", "KB", "MB", "GB", "TB", "PB", "EB")


@dataclass(frozen=True)
class LibraryItem:
    title: str
    file_sizes: tuple[int, ...] = ()


@dataclass(frozen=True)
class LibrarySection:
    section_type: str
    title: str = ""
    items: list[LibraryItem] = field(default_factory=list)
    # Server-reported item count; listings can be paginated and shorter.
    total_count: int | None = None

    @property
    def item_count(self) -> int:
        if self.total_count is not None:
            return self.total_count
        return len(self.items)


@dataclass(frozen=True)
class CatalogSummary:
    movies_count: int
    shows_count: int
    episodes_count: int
    total_bytes: int
    total_bytes_formatted: str
    server_name: str | None = None

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "totalStorage": self.total_bytes,
            "totalStorageFormatted": self.total_bytes_formatted,
            "librarySize": {
                "movies": self.movies_count,
                "shows": self.shows_count,
                "episodes": self.episodes_count,
            },
        }
        if self.server_name:
            payload["serverName"] = self.server_name
        return payload



def format_bytes(num_bytes: float) -> str:
    """Render a byte count on a base-1024 ladder, e.g. ``1536 -> "1.5 KB"``."""
    if not num_bytes or not math.isfinite(num_bytes):
        return "0 Bytes"

    magnitude = abs(num_bytes)
    if magnitude < 1:
        index = 0
    else:
        index = min(int(math.log(magnitude, 1024)), len(BYTE_UNITS) - 1)
        # log() can land just below an exact power of 1024
        if index + 1 < len(BYTE_UNITS) and magnitude >= 1024 ** (index + 1):
            index += 1
        elif index > 0 and magnitude < 1024**index:
            index -= 1

    scaled = round(num_bytes / 1024**index, 2)
    rendered = f"{scaled:.2f}".rstrip("0").rstrip(".")
    return f"{rendered} {BYTE_UNITS[index]}"



def summarize_catalog(sections: Iterable[LibrarySection], server_name: str | None = None) -> CatalogSummary:
    movies_count = 0
    shows_count = 0
    episodes_count = 0
    total_bytes = 0

    for section in sections:
        if section.section_type == "movie":
            movies_count += section.item_count
        elif section.section_type == "show":
            shows_count += section.item_count
        elif section.section_type == "episode":
            episodes_count += section.item_count

        for item in section.items:
            total_bytes += sum(item.file_sizes)

    return CatalogSummary(
        movies_count=movies_count,
        shows_count=shows_count,
        episodes_count=episodes_count,
        total_bytes=total_bytes,
        total_bytes_formatted=format_bytes(total_bytes),
        server_name=server_name,
    )
