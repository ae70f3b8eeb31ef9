"""HTTP client for the Google Places API (New)."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Protocol

import httpx

from ...config import settings
from ...models.domain import Bounds, Coordinate

# Only the fields the aggregator reads; Places bills per requested field.
FIELD_MASK = "places.id,places.displayName,places.location,places.types"
MAX_RESULTS_PER_CATEGORY = 20

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class PlaceHit:
    id: str
    name: str
    location: Coordinate
    types: tuple[str, ...] = ()


class PlacesProvider(Protocol):
    def search(self, category: str, bias: Bounds) -> list[PlaceHit]:
        """Places of ``category`` near ``bias``; hits may fall outside it."""
        ...


class GooglePlacesClient:
    def __init__(
        self,
        api_key: str | None = None,
        base_url: str | None = None,
        timeout: float | None = None,
        max_retries: int | None = None,
        backoff_seconds: float | None = None,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.api_key = api_key or settings.places_api_key
        if not self.api_key:
            raise ValueError("Places API key is not configured (set CHARGIST_PLACES_API_KEY).")
        self.base_url = (base_url or settings.places_base_url).rstrip("/")
        self.timeout = timeout if timeout is not None else settings.places_timeout_seconds
        self.max_retries = max_retries if max_retries is not None else settings.places_max_retries
        self.backoff_seconds = backoff_seconds if backoff_seconds is not None else settings.places_backoff_seconds
        self._transport = transport

    def _get_client(self) -> httpx.Client:
        # one client per call; searches run on several worker threads at once
        return httpx.Client(
            timeout=httpx.Timeout(self.timeout, connect=5.0),
            transport=self._transport,
        )

    def _headers(self) -> dict[str, str]:
        return {
            "Content-Type": "application/json",
            "X-Goog-Api-Key": self.api_key,
            "X-Goog-FieldMask": FIELD_MASK,
        }

    @staticmethod
    def _payload(category: str, bias: Bounds) -> dict:
        return {
            "textQuery": category.replace("_", " "),
            "includedType": category,
            "maxResultCount": MAX_RESULTS_PER_CATEGORY,
            "locationBias": {
                "rectangle": {
                    "low": {"latitude": bias.south, "longitude": bias.west},
                    "high": {"latitude": bias.north, "longitude": bias.east},
                }
            },
        }

    def search(self, category: str, bias: Bounds) -> list[PlaceHit]:
        """Text search restricted to one place type.

        A non-success HTTP status gives an empty list. Transport failures are
        retried with exponential backoff and raised once retries run out.
        """
        url = f"{self.base_url}/places:searchText"
        client = self._get_client()
        try:
            attempt = 0
            while True:
                try:
                    response = client.post(url, json=self._payload(category, bias), headers=self._headers())
                    break
                except httpx.TransportError as e:
                    attempt += 1
                    if attempt > self.max_retries:
                        logger.warning(f"Places search for {category} failed after {self.max_retries} retries: {e}")
                        raise ConnectionError(f"Places API unreachable at {self.base_url}: {e}") from e
                    wait_time = self.backoff_seconds * (2 ** (attempt - 1))
                    logger.debug(
                        f"Places network error, retrying in {wait_time:.1f}s (attempt {attempt}/{self.max_retries}): {e}"
                    )
                    time.sleep(wait_time)
        finally:
            client.close()

        if not response.is_success:
            logger.info(f"Places search for {category} returned HTTP {response.status_code}")
            return []
        return [hit for hit in (_parse_place(item) for item in response.json().get("places", [])) if hit]

    def check_health(self) -> bool:
        """Issue a minimal search to confirm the key and endpoint work."""
        probe = Bounds(south=0.0, west=0.0, north=0.001, east=0.001)
        url = f"{self.base_url}/places:searchText"
        try:
            with self._get_client() as client:
                response = client.post(url, json=self._payload("cafe", probe), headers=self._headers())
            return response.is_success
        except httpx.HTTPError as e:
            logger.warning(f"Places health check failed: {e}")
            return False


def _parse_place(item: dict) -> PlaceHit | None:
    location = item.get("location") or {}
    if "latitude" not in location or "longitude" not in location:
        return None
    display = item.get("displayName") or {}
    return PlaceHit(
        id=str(item.get("id", "")),
        name=str(display.get("text") or ""),
        location=Coordinate(float(location["latitude"]), float(location["longitude"])),
        types=tuple(item.get("types") or ()),
    )
