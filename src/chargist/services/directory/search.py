"""In-memory filter and sort pipeline behind directory search."""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Optional, Sequence

from ...errors import ValidationError
from ...models.domain import (
    Charger,
    ChargerWithDetails,
    ChargingSlot,
    ChargingSpeed,
    Coordinate,
    SortKey,
)
from ..geospatial import distance_meters


@dataclass(slots=True)
class SearchCriteria:
    query: Optional[str] = None
    speed: Optional[ChargingSpeed] = None
    available: Optional[bool] = None
    max_price: Optional[float] = None
    payment_systems: Optional[Sequence[str]] = None
    sort_key: SortKey = SortKey.DISTANCE
    origin: Optional[Coordinate] = None

    def validate(self) -> "SearchCriteria":
        if self.max_price is not None and (math.isnan(self.max_price) or self.max_price < 0):
            raise ValidationError("max_price", "must be a non-negative number")
        return self

    @property
    def normalized_query(self) -> Optional[str]:
        if self.query is None or not self.query.strip():
            return None
        return self.query.strip().casefold()

    @property
    def has_slot_criteria(self) -> bool:
        return self.speed is not None or self.available is not None or self.max_price is not None


def charger_matches(charger: Charger, criteria: SearchCriteria) -> bool:
    """Charger-level criteria: name prefix and accepted payment systems."""
    query = criteria.normalized_query
    if query is not None and not charger.name.casefold().startswith(query):
        return False
    if criteria.payment_systems:
        accepted = {system.id.casefold() for system in charger.payment_systems}
        accepted |= {system.name.casefold() for system in charger.payment_systems}
        if not all(wanted.casefold() in accepted for wanted in criteria.payment_systems):
            return False
    return True


def slot_matches(slot: ChargingSlot, criteria: SearchCriteria) -> bool:
    if criteria.speed is not None and slot.speed is not criteria.speed:
        return False
    if criteria.available is not None and slot.is_usable != criteria.available:
        return False
    if criteria.max_price is not None and slot.price > criteria.max_price:
        return False
    return True


def details_match(details: ChargerWithDetails, criteria: SearchCriteria) -> bool:
    """One slot has to satisfy every slot-level criterion at once."""
    if not criteria.has_slot_criteria:
        return True
    return any(slot_matches(slot, criteria) for slot in details.slots)


def _sort_key(details: ChargerWithDetails, criteria: SearchCriteria) -> tuple:
    charger = details.charger
    if criteria.sort_key is SortKey.PRICE:
        if not details.slots:
            return (1, 0.0, charger.id)
        return (0, min(slot.price for slot in details.slots), charger.id)
    if criteria.sort_key is SortKey.AVAILABILITY:
        return (-sum(1 for slot in details.slots if slot.is_usable), charger.id)
    if criteria.sort_key is SortKey.NAME:
        return (charger.name.casefold(), charger.id)
    if criteria.origin is None:
        return (0.0, charger.id)
    return (distance_meters(criteria.origin, charger.location), charger.id)


def sort_results(results: Sequence[ChargerWithDetails], criteria: SearchCriteria) -> list[ChargerWithDetails]:
    return sorted(results, key=lambda details: _sort_key(details, criteria))


def run_search(candidates: Sequence[ChargerWithDetails], criteria: SearchCriteria) -> list[ChargerWithDetails]:
    matched = [
        details
        for details in candidates
        if charger_matches(details.charger, criteria) and details_match(details, criteria)
    ]
    return sort_results(matched, criteria)
