"""GeoJSON/WKT export utilities for map overlays."""

from __future__ import annotations

from typing import Any, Dict, List, Mapping, Optional, Sequence

from ...models.domain import Bounds, Charger, ChargingSlot


def marker_color(usable_slots: int, total_slots: int) -> str:
    """Pick a marker color from slot availability."""
    if total_slots == 0:
        return "#9e9e9e"
    if usable_slots == 0:
        return "#e0003e"
    if usable_slots < total_slots:
        return "#e0af00"
    return "#38e000"


def charger_to_feature(charger: Charger, slots: Sequence[ChargingSlot] = ()) -> Dict[str, Any]:
    """Convert one charger to a GeoJSON Point feature.

    Args:
        charger: Charger to export
        slots: Its charging slots, used for the count properties

    Returns:
        GeoJSON Feature (coordinates in lon, lat order as per RFC 7946)
    """
    usable = sum(1 for slot in slots if slot.is_usable)
    return {
        "type": "Feature",
        "id": charger.id,
        "geometry": {
            "type": "Point",
            "coordinates": [charger.location.longitude, charger.location.latitude],
        },
        "properties": {
            "name": charger.name,
            "imageRef": charger.image_ref,
            "favoriteCount": len(charger.favorite_users),
            "slotCount": len(slots),
            "usableSlotCount": usable,
            "paymentSystems": [system.name for system in charger.payment_systems],
            "markerColor": marker_color(usable, len(slots)),
            "updatedAt": charger.updated_at,
        },
    }


def chargers_to_feature_collection(
    chargers: Sequence[Charger],
    slots_by_charger: Optional[Mapping[str, Sequence[ChargingSlot]]] = None,
) -> Dict[str, Any]:
    """Convert chargers to a GeoJSON FeatureCollection.

    Args:
        chargers: Chargers to export, in output order
        slots_by_charger: Optional charger id -> slots mapping

    Returns:
        GeoJSON FeatureCollection dict
    """
    slots_by_charger = slots_by_charger or {}
    features: List[Dict[str, Any]] = [
        charger_to_feature(charger, slots_by_charger.get(charger.id, ())) for charger in chargers
    ]
    return {"type": "FeatureCollection", "features": features}


def _box_wkt(south: float, west: float, north: float, east: float) -> str:
    ring = [(west, south), (east, south), (east, north), (west, north), (west, south)]
    return "((" + ",".join(f"{lon} {lat}" for lon, lat in ring) + "))"


def bounds_to_wkt(bounds: Bounds) -> str:
    """Convert a bounds rectangle to WKT.

    A rectangle crossing the antimeridian is split into two boxes and
    returned as a MULTIPOLYGON.
    """
    if bounds.crosses_antimeridian:
        east_box = _box_wkt(bounds.south, bounds.west, bounds.north, 180.0)
        west_box = _box_wkt(bounds.south, -180.0, bounds.north, bounds.east)
        return f"MULTIPOLYGON({east_box},{west_box})"
    return "POLYGON" + _box_wkt(bounds.south, bounds.west, bounds.north, bounds.east)
