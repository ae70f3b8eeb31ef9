"""Domain models for chargers, their slots and the things around them."""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional


def now_ms() -> int:
    """Current wall-clock time in epoch milliseconds."""
    return int(time.time() * 1000)


class ChargingSpeed(str, Enum):
    FAST = "FAST"
    MEDIUM = "MEDIUM"
    SLOW = "SLOW"


class ConnectorType(str, Enum):
    CCS2 = "CCS2"
    TYPE2 = "TYPE2"


class SortKey(str, Enum):
    DISTANCE = "distance"
    PRICE = "price"
    AVAILABILITY = "availability"
    NAME = "name"


@dataclass(frozen=True, slots=True)
class Coordinate:
    """A latitude/longitude pair in decimal degrees."""

    latitude: float
    longitude: float

    def __post_init__(self) -> None:
        if not -90.0 <= self.latitude <= 90.0:
            raise ValueError(f"Latitude {self.latitude} is outside [-90, 90]")
        if not -180.0 <= self.longitude <= 180.0:
            raise ValueError(f"Longitude {self.longitude} is outside [-180, 180]")


@dataclass(frozen=True, slots=True)
class Bounds:
    """Axis-aligned viewport rectangle.

    Both axes are inclusive. A rectangle whose west edge lies east of its east
    edge wraps across the antimeridian.
    """

    south: float
    west: float
    north: float
    east: float

    def __post_init__(self) -> None:
        if self.south > self.north:
            raise ValueError(f"South edge {self.south} lies north of north edge {self.north}")

    @property
    def crosses_antimeridian(self) -> bool:
        return self.west > self.east

    def contains(self, point: Coordinate) -> bool:
        if not self.south <= point.latitude <= self.north:
            return False
        if self.crosses_antimeridian:
            return point.longitude >= self.west or point.longitude <= self.east
        return self.west <= point.longitude <= self.east


@dataclass(frozen=True, slots=True)
class PaymentSystem:
    id: str
    name: str


@dataclass(slots=True)
class Charger:
    """A physical charging station, the root aggregate of the directory."""

    id: str
    name: str
    location: Coordinate
    created_by: str
    image_ref: Optional[str] = None
    favorite_users: frozenset[str] = field(default_factory=frozenset)
    created_at: int = field(default_factory=now_ms)
    updated_at: int = field(default_factory=now_ms)
    payment_systems: tuple[PaymentSystem, ...] = ()

    def is_favorite_for(self, user_id: str) -> bool:
        return user_id in self.favorite_users


@dataclass(slots=True)
class ChargingSlot:
    id: str
    charger_id: str
    speed: ChargingSpeed
    connector_type: ConnectorType
    price: float
    is_available: bool = True
    is_damaged: bool = False
    updated_at: int = field(default_factory=now_ms)

    @property
    def is_usable(self) -> bool:
        return self.is_available and not self.is_damaged


@dataclass(slots=True)
class NearbyService:
    id: str
    charger_id: str
    name: str
    category: str
    distance_m: int


@dataclass(slots=True)
class Rating:
    id: str
    charger_id: str
    user_id: str
    stars: int
    created_at: int = field(default_factory=now_ms)
    updated_at: int = field(default_factory=now_ms)


@dataclass(frozen=True, slots=True)
class RatingSummary:
    average: Optional[float]
    count: int
    histogram: tuple[int, int, int, int, int] = (0, 0, 0, 0, 0)

    @classmethod
    def from_ratings(cls, ratings: list[Rating]) -> "RatingSummary":
        if not ratings:
            return cls(average=None, count=0)
        histogram = [0, 0, 0, 0, 0]
        for rating in ratings:
            histogram[rating.stars - 1] += 1
        average = sum(rating.stars for rating in ratings) / len(ratings)
        return cls(average=round(average, 2), count=len(ratings), histogram=tuple(histogram))


@dataclass(slots=True)
class ChargerWithDetails:
    """Read-side composite of a charger and everything hanging off it."""

    charger: Charger
    slots: list[ChargingSlot]
    services: list[NearbyService]
    rating: RatingSummary

    @property
    def payment_systems(self) -> tuple[PaymentSystem, ...]:
        return self.charger.payment_systems


@dataclass(slots=True)
class NearbyPlace:
    id: str
    name: str
    category: str
    distance_m: int
    location: Optional[Coordinate] = None
