"""Pydantic response models for nearby place endpoints."""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel

from ..models.domain import NearbyPlace
from .chargers import CoordinateModel


class NearbyPlaceModel(BaseModel):
    id: str
    name: str
    category: str
    distance_m: int
    location: Optional[CoordinateModel] = None

    @classmethod
    def from_domain(cls, place: NearbyPlace) -> "NearbyPlaceModel":
        location = None
        if place.location is not None:
            location = CoordinateModel(latitude=place.location.latitude, longitude=place.location.longitude)
        return cls(
            id=place.id,
            name=place.name,
            category=place.category,
            distance_m=place.distance_m,
            location=location,
        )


class NearbyPlacesResponse(BaseModel):
    latitude: float
    longitude: float
    radius_m: float
    categories: list[str]
    places: list[NearbyPlaceModel]
