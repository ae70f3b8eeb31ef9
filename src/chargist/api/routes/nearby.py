"""Nearby place endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query, status

from ...config import settings
from ...models.domain import Coordinate
from ...schemas.nearby import NearbyPlaceModel, NearbyPlacesResponse
from ...services.nearby import NearbyAggregator
from ..deps import get_aggregator

router = APIRouter(prefix="/nearby", tags=["nearby"])


@router.get("", response_model=NearbyPlacesResponse, status_code=status.HTTP_200_OK)
def nearby_places(
    lat: float = Query(..., ge=-90.0, le=90.0),
    lng: float = Query(..., ge=-180.0, le=180.0),
    radius: float | None = Query(default=None, gt=0.0, le=50_000.0, description="Search radius in meters."),
    categories: list[str] | None = Query(default=None, description="Place types; defaults to the configured set."),
    limit: int | None = Query(default=None, ge=1, le=200),
    aggregator: NearbyAggregator = Depends(get_aggregator),
) -> NearbyPlacesResponse:
    """Places around a point, closest first.

    Categories that fail upstream are skipped rather than failing the request.
    """
    center = Coordinate(lat, lng)
    wanted = list(categories) if categories else list(aggregator.categories)
    places = aggregator.nearby_places(center, radius, wanted, limit)
    return NearbyPlacesResponse(
        latitude=lat,
        longitude=lng,
        radius_m=radius if radius is not None else settings.nearby_default_radius_m,
        categories=wanted,
        places=[NearbyPlaceModel.from_domain(place) for place in places],
    )
