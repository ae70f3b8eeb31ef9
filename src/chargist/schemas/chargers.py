"""Pydantic request/response models for charger endpoints."""

from __future__ import annotations

from typing import Optional, Sequence

from pydantic import BaseModel, Field

from ..models.domain import (
    Charger,
    ChargerWithDetails,
    ChargingSlot,
    ChargingSpeed,
    ConnectorType,
    NearbyService,
    Rating,
    RatingSummary,
)


class CoordinateModel(BaseModel):
    latitude: float = Field(..., ge=-90.0, le=90.0)
    longitude: float = Field(..., ge=-180.0, le=180.0)


class PaymentSystemModel(BaseModel):
    id: str
    name: str


class ChargerModel(BaseModel):
    id: str
    name: str
    location: CoordinateModel
    image_ref: Optional[str] = None
    created_by: str
    created_at: int
    updated_at: int
    favorite_users: list[str]
    favorite_count: int
    is_favorite: Optional[bool] = Field(
        default=None, description="Whether the requesting user favorited this charger (when known)."
    )
    payment_systems: list[PaymentSystemModel] = Field(default_factory=list)

    @classmethod
    def from_domain(cls, charger: Charger, user_id: Optional[str] = None) -> "ChargerModel":
        return cls(
            id=charger.id,
            name=charger.name,
            location=CoordinateModel(latitude=charger.location.latitude, longitude=charger.location.longitude),
            image_ref=charger.image_ref,
            created_by=charger.created_by,
            created_at=charger.created_at,
            updated_at=charger.updated_at,
            favorite_users=sorted(charger.favorite_users),
            favorite_count=len(charger.favorite_users),
            is_favorite=charger.is_favorite_for(user_id) if user_id else None,
            payment_systems=[PaymentSystemModel(id=system.id, name=system.name) for system in charger.payment_systems],
        )


class ChargerCreateRequest(BaseModel):
    name: str = Field(..., description="Display name of the charger.")
    location: CoordinateModel
    image_ref: Optional[str] = Field(default=None, description="Reference to an uploaded photo.")
    payment_systems: Sequence[PaymentSystemModel] = Field(default_factory=list)


class SlotModel(BaseModel):
    id: str
    charger_id: str
    speed: ChargingSpeed
    connector_type: ConnectorType
    price: float
    is_available: bool
    is_damaged: bool
    is_usable: bool
    updated_at: int

    @classmethod
    def from_domain(cls, slot: ChargingSlot) -> "SlotModel":
        return cls(
            id=slot.id,
            charger_id=slot.charger_id,
            speed=slot.speed,
            connector_type=slot.connector_type,
            price=slot.price,
            is_available=slot.is_available,
            is_damaged=slot.is_damaged,
            is_usable=slot.is_usable,
            updated_at=slot.updated_at,
        )


class SlotCreateRequest(BaseModel):
    speed: ChargingSpeed
    connector_type: ConnectorType
    price: float = Field(..., ge=0.0, description="Price per kWh.")


class SlotUpdateRequest(BaseModel):
    speed: Optional[ChargingSpeed] = None
    is_available: Optional[bool] = None
    is_damaged: Optional[bool] = None
    price: Optional[float] = Field(default=None, ge=0.0)


class DamageReportRequest(BaseModel):
    damaged: bool = True


class ServiceModel(BaseModel):
    id: str
    charger_id: str
    name: str
    category: str
    distance_m: int

    @classmethod
    def from_domain(cls, service: NearbyService) -> "ServiceModel":
        return cls(
            id=service.id,
            charger_id=service.charger_id,
            name=service.name,
            category=service.category,
            distance_m=service.distance_m,
        )


class ServiceCreateRequest(BaseModel):
    name: str
    category: str
    distance_m: int = Field(..., ge=0)


class RatingRequest(BaseModel):
    stars: int = Field(..., ge=1, le=5)


class RatingModel(BaseModel):
    id: str
    charger_id: str
    user_id: str
    stars: int
    created_at: int
    updated_at: int

    @classmethod
    def from_domain(cls, rating: Rating) -> "RatingModel":
        return cls(
            id=rating.id,
            charger_id=rating.charger_id,
            user_id=rating.user_id,
            stars=rating.stars,
            created_at=rating.created_at,
            updated_at=rating.updated_at,
        )


class RatingSummaryModel(BaseModel):
    average: Optional[float]
    count: int
    histogram: list[int]

    @classmethod
    def from_domain(cls, summary: RatingSummary) -> "RatingSummaryModel":
        return cls(average=summary.average, count=summary.count, histogram=list(summary.histogram))


class ChargerDetailsModel(BaseModel):
    charger: ChargerModel
    slots: list[SlotModel]
    services: list[ServiceModel]
    rating: RatingSummaryModel

    @classmethod
    def from_domain(cls, details: ChargerWithDetails, user_id: Optional[str] = None) -> "ChargerDetailsModel":
        return cls(
            charger=ChargerModel.from_domain(details.charger, user_id),
            slots=[SlotModel.from_domain(slot) for slot in details.slots],
            services=[ServiceModel.from_domain(service) for service in details.services],
            rating=RatingSummaryModel.from_domain(details.rating),
        )


class FavoriteRequest(BaseModel):
    favorite: bool


class SlotWithChargerModel(BaseModel):
    charger: ChargerModel
    slot: SlotModel

