from __future__ import annotations

import logging
import time
from typing import Any

import httpx

from ..cache import cache_places, get_cached_places
from ..errors import ConfigMissing, UpstreamTransient
from ..metrics import places_cache_lookups_total
from ..settings import settings
from .types import Place

logger = logging.getLogger(__name__)

NEARBY_SEARCH_PATH = "/nearbysearch/json"
ACCEPTED_STATUSES = {"OK", "ZERO_RESULTS"}


class PlacesUnavailable(UpstreamTransient):
    provider = "google_places"


def _place_from_result(item: dict[str, Any]) -> Place:
    rating = item.get("rating")
    try:
        rating = float(rating) if rating is not None else None
    except (TypeError, ValueError):
        rating = None
    return Place(
        name=str(item.get("name") or "Unknown"),
        address=str(item.get("vicinity") or item.get("formatted_address") or ""),
        rating=rating,
        place_id=item.get("place_id") or None,
    )


class PlacesClient:
    """Google Places legacy Nearby Search with a 24h result cache.

    Results are cached per (lat, lng, type, radius); expired keys are refetched
    on their next lookup.
    """

    def __init__(
        self,
        api_key: str | None = None,
        *,
        base_url: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.api_key = api_key if api_key is not None else settings.GOOGLE_PLACES_API_KEY
        self.base_url = (base_url or settings.PLACES_API_BASE).rstrip("/")
        self.timeout = timeout if timeout is not None else settings.PLACES_TIMEOUT_SECONDS
        self._transport = transport

    async def nearby(self, lat: float, lng: float, place_type: str, radius: int) -> list[Place]:
        if not self.api_key:
            raise ConfigMissing("GOOGLE_PLACES_API_KEY not configured")

        cached = get_cached_places(lat, lng, place_type, radius)
        if cached is not None:
            places_cache_lookups_total.labels(result="hit").inc()
            return cached
        places_cache_lookups_total.labels(result="miss").inc()

        params = {
            "location": f"{lat},{lng}",
            "radius": radius,
            "type": place_type,
            "key": self.api_key,
        }
        started = time.perf_counter()
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                resp = await client.get(f"{self.base_url}{NEARBY_SEARCH_PATH}", params=params)
                resp.raise_for_status()
                data = resp.json()
        except httpx.HTTPStatusError as exc:
            raise PlacesUnavailable(
                f"Places HTTP {exc.response.status_code}", status=exc.response.status_code
            ) from exc
        except httpx.HTTPError as exc:
            raise PlacesUnavailable(f"Places request failed: {exc}") from exc
        except ValueError as exc:
            raise PlacesUnavailable("Invalid JSON from Places") from exc

        status = data.get("status")
        if status not in ACCEPTED_STATUSES:
            raise PlacesUnavailable(
                f"Places error: {status} {data.get('error_message') or ''}".strip()
            )

        places = [_place_from_result(item) for item in data.get("results") or []]
        cache_places(lat, lng, place_type, radius, places)
        logger.info(
            "Places nearby type=%s origin=(%.4f,%.4f) radius=%sm results=%d latency=%.1fms",
            place_type,
            lat,
            lng,
            radius,
            len(places),
            (time.perf_counter() - started) * 1000,
        )
        return places


def format_places_reply(label: str, places: list[Place], limit: int | None = None) -> str | None:
    if not places:
        return None
    limit = settings.PLACES_MAX_RESULTS if limit is None else limit
    lines: list[str] = []
    for idx, place in enumerate(places[: max(0, limit)], start=1):
        line = f"{idx}. {place.name}"
        if place.rating:
            line += f" — ⭐ {place.rating:g}"
        line += f"\n{place.address}"
        if place.maps_url:
            line += f"\n{place.maps_url}"
        lines.append(line)
    return f"Here are some nearby {label}:\n\n" + "\n\n".join(lines)


__all__ = ["PlacesClient", "PlacesUnavailable", "format_places_reply"]
