"""Fan-out of per-category place searches around a point."""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Iterable, Sequence

from ...config import settings
from ...models.domain import Charger, Coordinate, NearbyPlace, NearbyService
from ..geospatial import bounds_around, distance_meters, offset_meters
from .places_client import PlaceHit, PlacesProvider

logger = logging.getLogger(__name__)

# (id, name, category, north offset in meters) placed around the query center
FALLBACK_PLACES = (
    ("fallback-coffee-shop", "Coffee Shop", "restaurant", 50),
    ("fallback-gas-station", "Gas Station", "gas_station", 75),
)


class NearbyAggregator:
    """Collects places of several categories around a point.

    One provider query runs per category on a thread pool. A category that
    fails is logged and skipped, so callers always get whatever the other
    categories produced.
    """

    def __init__(
        self,
        provider: PlacesProvider | None,
        categories: Sequence[str] | None = None,
        max_parallel_requests: int | None = None,
        fallback_enabled: bool | None = None,
    ) -> None:
        self.provider = provider
        self.categories = tuple(categories) if categories is not None else settings.nearby_categories
        self.max_parallel_requests = (
            max_parallel_requests if max_parallel_requests is not None else settings.nearby_max_parallel_requests
        )
        self.fallback_enabled = fallback_enabled if fallback_enabled is not None else settings.nearby_fallback_enabled

    def _search_category(self, category: str, center: Coordinate, radius_m: float) -> list[PlaceHit]:
        return self.provider.search(category, bounds_around(center, radius_m))

    def nearby_places(
        self,
        center: Coordinate,
        radius_m: float | None = None,
        categories: Sequence[str] | None = None,
        limit: int | None = None,
    ) -> list[NearbyPlace]:
        """Places around ``center`` sorted by distance, closest first.

        Each place id appears once. When nothing at all comes back, the
        built-in fallback list is returned if enabled.
        """
        radius = radius_m if radius_m is not None else settings.nearby_default_radius_m
        wanted = tuple(categories) if categories else self.categories
        if not wanted:
            return []
        found: dict[str, NearbyPlace] = {}
        if self.provider is None:
            logger.warning("Places provider not configured, skipping live search")
        else:
            self._collect(found, wanted, center, radius)

        places = sorted(found.values(), key=lambda place: (place.distance_m, place.id))
        if not places and self.fallback_enabled:
            logger.info(f"No places found around {center}, using fallback list")
            places = fallback_places(center)
        if limit is not None:
            places = places[: max(0, limit)]
        return places

    def _collect(
        self,
        found: dict[str, NearbyPlace],
        wanted: Sequence[str],
        center: Coordinate,
        radius: float,
    ) -> None:
        failed = 0
        workers = max(1, min(self.max_parallel_requests, len(wanted)))
        with ThreadPoolExecutor(max_workers=workers) as executor:
            future_to_category = {
                executor.submit(self._search_category, category, center, radius): category for category in wanted
            }
            for future in as_completed(future_to_category):
                category = future_to_category[future]
                try:
                    hits = future.result()
                except Exception as e:
                    failed += 1
                    logger.warning(f"Nearby search for category {category} failed: {e}")
                    continue
                for place in _to_places(hits, category, center):
                    current = found.get(place.id)
                    if current is None or place.distance_m < current.distance_m:
                        found[place.id] = place

        if failed:
            logger.info(f"Nearby search around {center} finished with {failed}/{len(wanted)} categories failing")

    def services_for_charger(self, charger: Charger, radius_m: float | None = None) -> list[NearbyService]:
        """Nearby places of a charger shaped as its service records."""
        return [
            NearbyService(
                id=place.id,
                charger_id=charger.id,
                name=place.name,
                category=place.category.upper(),
                distance_m=place.distance_m,
            )
            for place in self.nearby_places(charger.location, radius_m)
        ]


def _to_places(hits: Iterable[PlaceHit], category: str, center: Coordinate) -> Iterable[NearbyPlace]:
    for hit in hits:
        if not hit.id:
            continue
        yield NearbyPlace(
            id=hit.id,
            name=hit.name,
            category=hit.types[0] if hit.types else category,
            distance_m=int(distance_meters(center, hit.location)),
            location=hit.location,
        )


def fallback_places(center: Coordinate) -> list[NearbyPlace]:
    return [
        NearbyPlace(
            id=place_id,
            name=name,
            category=category,
            distance_m=offset,
            location=offset_meters(center, offset, 0.0),
        )
        for place_id, name, category, offset in FALLBACK_PLACES
    ]
