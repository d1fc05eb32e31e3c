from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import datetime, timezone, tzinfo
from typing import Any

PENDING_STATUSES = {1}
APPROVED_STATUSES = {2, 3}
TOP_GENRES_LIMIT = 5


@dataclass(frozen=True)
class RequestListing:
    """Raw media requests from the request-management service."""

    requests: list[dict[str, Any]] = field(default_factory=list)
    requester_id: int | None = None
    requester_email: str | None = None


@dataclass(frozen=True)
class GenreCount:
    genre: str
    count: int


@dataclass(frozen=True)
class RequestStats:
    total_requests: int
    total_server_requests: int
    approved_requests: int
    pending_requests: int
    top_requested_genres: list[GenreCount] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "totalRequests": self.total_requests,
            "totalServerRequests": self.total_server_requests,
            "approvedRequests": self.approved_requests,
            "pendingRequests": self.pending_requests,
            "topRequestedGenres": [{"genre": item.genre, "count": item.count} for item in self.top_requested_genres],
        }



def _created_year(request: dict[str, Any], tz: tzinfo) -> int | None:
    raw = request.get("createdAt")
    if not raw or not isinstance(raw, str):
        return None
    if raw.endswith("Z"):
        raw = raw[:-1] + "+00:00"
    try:
        created = datetime.fromisoformat(raw)
    except ValueError:
        return None
    if created.tzinfo is None:
        created = created.replace(tzinfo=timezone.utc)
    return created.astimezone(tz).year



def _is_requester(request: dict[str, Any], listing: RequestListing) -> bool:
    requested_by = request.get("requestedBy") or {}
    if listing.requester_id is not None:
        return requested_by.get("id") == listing.requester_id
    if listing.requester_email:
        email = requested_by.get("email") or request.get("email")
        return isinstance(email, str) and email.lower() == listing.requester_email.lower()
    return False



def _genre_names(request: dict[str, Any]) -> Iterable[str]:
    genres = (request.get("media") or {}).get("genres")
    if not isinstance(genres, list):
        return
    for genre in genres:
        name = genre.get("name") if isinstance(genre, dict) else genre
        if name:
            yield str(name)



def summarize_requests(listing: RequestListing, year: int, tz: tzinfo = timezone.utc) -> RequestStats:
    server_requests = [request for request in listing.requests if _created_year(request, tz) == year]
    user_requests = [request for request in server_requests if _is_requester(request, listing)]

    genre_counts: dict[str, int] = {}
    for request in user_requests:
        for name in _genre_names(request):
            genre_counts[name] = genre_counts.get(name, 0) + 1

    top_genres = sorted(genre_counts.items(), key=lambda pair: pair[1], reverse=True)[:TOP_GENRES_LIMIT]

    return RequestStats(
        total_requests=len(user_requests),
        total_server_requests=len(server_requests),
        approved_requests=sum(1 for request in user_requests if request.get("status") in APPROVED_STATUSES),
        pending_requests=sum(1 for request in user_requests if request.get("status") in PENDING_STATUSES),
        top_requested_genres=[GenreCount(genre=name, count=count) for name, count in top_genres],
    )
