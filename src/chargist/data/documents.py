"""Row <-> domain mapping for the remote document store."""

from __future__ import annotations

from typing import Any

from ..models.domain import (
    Charger,
    ChargingSlot,
    ChargingSpeed,
    ConnectorType,
    Coordinate,
    NearbyService,
    PaymentSystem,
    Rating,
)

CHARGERS_TABLE = "chargers"
SLOTS_TABLE = "charging_slots"
SERVICES_TABLE = "nearby_services"
RATINGS_TABLE = "ratings"


def charger_to_row(charger: Charger) -> dict[str, Any]:
    return {
        "id": charger.id,
        "name": charger.name,
        "latitude": charger.location.latitude,
        "longitude": charger.location.longitude,
        "image_ref": charger.image_ref,
        "favorite_users": sorted(charger.favorite_users),
        "created_by": charger.created_by,
        "created_at": charger.created_at,
        "updated_at": charger.updated_at,
        "payment_systems": [{"id": system.id, "name": system.name} for system in charger.payment_systems],
    }


def charger_from_row(row: dict[str, Any]) -> Charger:
    return Charger(
        id=str(row["id"]),
        name=str(row["name"]),
        location=Coordinate(float(row["latitude"]), float(row["longitude"])),
        created_by=str(row.get("created_by") or ""),
        image_ref=row.get("image_ref"),
        favorite_users=frozenset(row.get("favorite_users") or ()),
        created_at=int(row.get("created_at") or 0),
        updated_at=int(row.get("updated_at") or 0),
        payment_systems=tuple(
            PaymentSystem(id=str(item["id"]), name=str(item["name"]))
            for item in (row.get("payment_systems") or ())
        ),
    )


def slot_to_row(slot: ChargingSlot) -> dict[str, Any]:
    return {
        "id": slot.id,
        "charger_id": slot.charger_id,
        "speed": slot.speed.value,
        "connector_type": slot.connector_type.value,
        "price": slot.price,
        "is_available": slot.is_available,
        "is_damaged": slot.is_damaged,
        "updated_at": slot.updated_at,
    }


def slot_from_row(row: dict[str, Any]) -> ChargingSlot:
    return ChargingSlot(
        id=str(row["id"]),
        charger_id=str(row["charger_id"]),
        speed=ChargingSpeed(row["speed"]),
        connector_type=ConnectorType(row["connector_type"]),
        price=float(row["price"]),
        is_available=bool(row.get("is_available", True)),
        is_damaged=bool(row.get("is_damaged", False)),
        updated_at=int(row.get("updated_at") or 0),
    )


def service_to_row(service: NearbyService) -> dict[str, Any]:
    return {
        "id": service.id,
        "charger_id": service.charger_id,
        "name": service.name,
        "category": service.category,
        "distance_m": service.distance_m,
    }


def service_from_row(row: dict[str, Any]) -> NearbyService:
    return NearbyService(
        id=str(row["id"]),
        charger_id=str(row["charger_id"]),
        name=str(row["name"]),
        category=str(row["category"]),
        distance_m=int(row["distance_m"]),
    )


def rating_to_row(rating: Rating) -> dict[str, Any]:
    return {
        "id": rating.id,
        "charger_id": rating.charger_id,
        "user_id": rating.user_id,
        "stars": rating.stars,
        "created_at": rating.created_at,
        "updated_at": rating.updated_at,
    }


def rating_from_row(row: dict[str, Any]) -> Rating:
    return Rating(
        id=str(row["id"]),
        charger_id=str(row["charger_id"]),
        user_id=str(row["user_id"]),
        stars=int(row["stars"]),
        created_at=int(row.get("created_at") or 0),
        updated_at=int(row.get("updated_at") or 0),
    )
