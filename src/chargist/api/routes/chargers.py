"""Charger directory endpoints."""

from __future__ import annotations

import json
import logging
from typing import Iterator, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from fastapi.responses import StreamingResponse

from ...config import settings
from ...errors import StoreError
from ...models.domain import Bounds, ChargingSpeed, Coordinate, PaymentSystem, SortKey
from ...schemas.chargers import (
    ChargerCreateRequest,
    ChargerDetailsModel,
    ChargerModel,
    FavoriteRequest,
    RatingModel,
    RatingRequest,
    ServiceCreateRequest,
    ServiceModel,
    SlotCreateRequest,
    SlotModel,
)
from ...services.directory import ChargerDirectory
from ...services.export import chargers_to_feature_collection
from ...services.nearby import NearbyAggregator
from ..deps import (
    get_aggregator,
    get_directory,
    optional_user,
    require_user,
    to_http_error,
    unwrap_or_raise,
)

SSE_KEEPALIVE_SECONDS = 15.0

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/chargers", tags=["chargers"])


def bounds_query(
    south: float | None = Query(default=None, ge=-90.0, le=90.0),
    west: float | None = Query(default=None, ge=-180.0, le=180.0),
    north: float | None = Query(default=None, ge=-90.0, le=90.0),
    east: float | None = Query(default=None, ge=-180.0, le=180.0),
) -> Optional[Bounds]:
    """Viewport from query parameters; all four edges or none."""
    edges = (south, west, north, east)
    if all(edge is None for edge in edges):
        return None
    if any(edge is None for edge in edges):
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail="south, west, north and east must be given together",
        )
    try:
        return Bounds(south=south, west=west, north=north, east=east)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc)) from exc


def _snapshot(directory: ChargerDirectory, bounds: Optional[Bounds]):
    stream = directory.chargers_in_bounds(bounds) if bounds else directory.all_chargers()
    with stream.open() as subscription:
        try:
            return subscription.get(timeout=settings.store_timeout_seconds)
        except StoreError as exc:
            raise to_http_error(exc) from exc
        except TimeoutError as exc:
            raise HTTPException(status_code=status.HTTP_504_GATEWAY_TIMEOUT, detail=str(exc)) from exc


@router.get("", response_model=List[ChargerModel], status_code=status.HTTP_200_OK)
def list_chargers(
    bounds: Optional[Bounds] = Depends(bounds_query),
    directory: ChargerDirectory = Depends(get_directory),
    user_id: Optional[str] = Depends(optional_user),
) -> List[ChargerModel]:
    """Current chargers, optionally restricted to a viewport."""
    return [ChargerModel.from_domain(charger, user_id) for charger in _snapshot(directory, bounds)]


def _bounds_events(
    directory: ChargerDirectory,
    bounds: Optional[Bounds],
    max_events: Optional[int],
    user_id: Optional[str],
) -> Iterator[str]:
    stream = directory.chargers_in_bounds(bounds) if bounds else directory.all_chargers()
    sent = 0
    with stream.open() as subscription:
        while max_events is None or sent < max_events:
            try:
                chargers = subscription.get(timeout=SSE_KEEPALIVE_SECONDS)
            except TimeoutError:
                yield ": keepalive\n\n"
                continue
            except StopIteration:
                return
            except StoreError as exc:
                logger.warning(f"Live charger feed ended: {exc}")
                yield f"event: error\ndata: {json.dumps({'kind': exc.kind.value, 'message': exc.message})}\n\n"
                return
            payload = [ChargerModel.from_domain(charger, user_id).model_dump() for charger in chargers]
            yield f"data: {json.dumps(payload)}\n\n"
            sent += 1


@router.get("/live", status_code=status.HTTP_200_OK)
def live_chargers(
    bounds: Optional[Bounds] = Depends(bounds_query),
    max_events: int | None = Query(default=None, ge=1, description="Close the feed after this many snapshots."),
    directory: ChargerDirectory = Depends(get_directory),
    user_id: Optional[str] = Depends(optional_user),
) -> StreamingResponse:
    """Server-sent events: one full snapshot per change inside the viewport."""
    return StreamingResponse(
        _bounds_events(directory, bounds, max_events, user_id),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache"},
    )


@router.get("/geojson", status_code=status.HTTP_200_OK)
def chargers_geojson(
    bounds: Optional[Bounds] = Depends(bounds_query),
    directory: ChargerDirectory = Depends(get_directory),
) -> dict:
    chargers = _snapshot(directory, bounds)
    try:
        slots = {charger.id: directory.store.fetch_slots(charger.id) for charger in chargers}
    except StoreError as exc:
        raise to_http_error(exc) from exc
    return chargers_to_feature_collection(chargers, slots)


@router.post("", response_model=ChargerModel, status_code=status.HTTP_201_CREATED)
def create_charger(
    payload: ChargerCreateRequest,
    directory: ChargerDirectory = Depends(get_directory),
    user_id: str = Depends(require_user),
) -> ChargerModel:
    result = directory.create_charger(
        name=payload.name,
        location=Coordinate(payload.location.latitude, payload.location.longitude),
        image_ref=payload.image_ref,
        creator_id=user_id,
        payment_systems=[PaymentSystem(id=system.id, name=system.name) for system in payload.payment_systems],
    )
    return ChargerModel.from_domain(unwrap_or_raise(result), user_id)


@router.get("/search", response_model=List[ChargerDetailsModel], status_code=status.HTTP_200_OK)
def search_chargers(
    q: str | None = Query(default=None, description="Case-insensitive name prefix."),
    speed: ChargingSpeed | None = Query(default=None),
    available: bool | None = Query(default=None, description="Require a usable (true) or unusable (false) slot."),
    max_price: float | None = Query(default=None, ge=0.0),
    sort: SortKey | None = Query(default=None),
    lat: float | None = Query(default=None, ge=-90.0, le=90.0, description="Origin for distance sorting."),
    lng: float | None = Query(default=None, ge=-180.0, le=180.0),
    payment: list[str] | None = Query(default=None, description="Payment systems that must all be accepted."),
    directory: ChargerDirectory = Depends(get_directory),
    user_id: Optional[str] = Depends(optional_user),
) -> List[ChargerDetailsModel]:
    if (lat is None) != (lng is None):
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail="lat and lng must be given together")
    origin = Coordinate(lat, lng) if lat is not None else None
    result = directory.search(
        query=q,
        speed=speed,
        available=available,
        max_price=max_price,
        sort_key=sort,
        origin=origin,
        payment_systems=payment,
    )
    return [ChargerDetailsModel.from_domain(details, user_id) for details in unwrap_or_raise(result)]


@router.get("/{charger_id}", response_model=ChargerDetailsModel, status_code=status.HTTP_200_OK)
def get_charger(
    charger_id: str,
    directory: ChargerDirectory = Depends(get_directory),
    user_id: Optional[str] = Depends(optional_user),
) -> ChargerDetailsModel:
    """Current detail view; 404 until the charger exists."""
    charger = unwrap_or_raise(directory.get_charger(charger_id))
    with directory.charger_with_details(charger.id).open() as subscription:
        try:
            result = subscription.get(timeout=settings.store_timeout_seconds)
        except StopIteration as exc:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Charger {charger_id} not found") from exc
        except TimeoutError as exc:
            raise HTTPException(status_code=status.HTTP_504_GATEWAY_TIMEOUT, detail=str(exc)) from exc
    return ChargerDetailsModel.from_domain(unwrap_or_raise(result), user_id)


@router.delete("/{charger_id}", status_code=status.HTTP_200_OK)
def delete_charger(
    charger_id: str,
    directory: ChargerDirectory = Depends(get_directory),
    _user_id: str = Depends(require_user),
) -> dict:
    deleted = unwrap_or_raise(directory.delete_charger(charger_id))
    return {"deleted": deleted}


@router.post("/{charger_id}/favorite", response_model=ChargerModel, status_code=status.HTTP_200_OK)
def toggle_favorite(
    charger_id: str,
    directory: ChargerDirectory = Depends(get_directory),
    user_id: str = Depends(require_user),
) -> ChargerModel:
    return ChargerModel.from_domain(unwrap_or_raise(directory.toggle_favorite(charger_id, user_id)), user_id)


@router.put("/{charger_id}/favorite", response_model=ChargerModel, status_code=status.HTTP_200_OK)
def set_favorite(
    charger_id: str,
    payload: FavoriteRequest,
    directory: ChargerDirectory = Depends(get_directory),
    user_id: str = Depends(require_user),
) -> ChargerModel:
    result = directory.set_favorite(charger_id, user_id, payload.favorite)
    return ChargerModel.from_domain(unwrap_or_raise(result), user_id)


@router.post("/{charger_id}/slots", response_model=SlotModel, status_code=status.HTTP_201_CREATED)
def create_slot(
    charger_id: str,
    payload: SlotCreateRequest,
    directory: ChargerDirectory = Depends(get_directory),
    _user_id: str = Depends(require_user),
) -> SlotModel:
    result = directory.create_slot(charger_id, payload.speed, payload.connector_type, payload.price)
    return SlotModel.from_domain(unwrap_or_raise(result))


@router.post("/{charger_id}/services", response_model=ServiceModel, status_code=status.HTTP_201_CREATED)
def add_service(
    charger_id: str,
    payload: ServiceCreateRequest,
    directory: ChargerDirectory = Depends(get_directory),
    _user_id: str = Depends(require_user),
) -> ServiceModel:
    result = directory.add_service(charger_id, payload.name, payload.category, payload.distance_m)
    return ServiceModel.from_domain(unwrap_or_raise(result))


@router.delete("/{charger_id}/services/{service_id}", response_model=ServiceModel, status_code=status.HTTP_200_OK)
def remove_service(
    charger_id: str,
    service_id: str,
    directory: ChargerDirectory = Depends(get_directory),
    _user_id: str = Depends(require_user),
) -> ServiceModel:
    return ServiceModel.from_domain(unwrap_or_raise(directory.remove_service(charger_id, service_id)))


@router.post("/{charger_id}/ratings", response_model=RatingModel, status_code=status.HTTP_201_CREATED)
def rate_charger(
    charger_id: str,
    payload: RatingRequest,
    directory: ChargerDirectory = Depends(get_directory),
    user_id: str = Depends(require_user),
) -> RatingModel:
    return RatingModel.from_domain(unwrap_or_raise(directory.rate_charger(charger_id, user_id, payload.stars)))


@router.get("/{charger_id}/nearby", response_model=List[ServiceModel], status_code=status.HTTP_200_OK)
def charger_nearby(
    charger_id: str,
    radius: float | None = Query(default=None, gt=0.0, le=50_000.0, description="Search radius in meters."),
    directory: ChargerDirectory = Depends(get_directory),
    aggregator: NearbyAggregator = Depends(get_aggregator),
) -> List[ServiceModel]:
    """Live places around a charger, shaped as service records (not stored)."""
    charger = unwrap_or_raise(directory.get_charger(charger_id))
    return [ServiceModel.from_domain(service) for service in aggregator.services_for_charger(charger, radius)]
