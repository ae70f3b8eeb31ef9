"""Nearby place aggregation."""

from .aggregator import NearbyAggregator, fallback_places
from .places_client import GooglePlacesClient, PlaceHit, PlacesProvider

__all__ = [
    "GooglePlacesClient",
    "NearbyAggregator",
    "PlaceHit",
    "PlacesProvider",
    "fallback_places",
]
