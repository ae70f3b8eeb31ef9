"""Health endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, status

from ...config import settings
from ...data.store import ChargerStore
from ..deps import get_places_client, get_store

router = APIRouter(tags=["health"])


@router.get("/health", status_code=status.HTTP_200_OK)
def health_root() -> dict:
    """Simple health check endpoint that doesn't require any dependencies."""
    return {"status": "ok"}


@router.get("/health/store", status_code=status.HTTP_200_OK)
def health_store(store: ChargerStore = Depends(get_store)) -> dict:
    """Check that the charger store answers."""
    return {"service": "store", "backend": settings.store_backend, "healthy": store.ping()}


@router.get("/health/places", status_code=status.HTTP_200_OK)
def health_places() -> dict:
    """Check the places provider."""
    client = get_places_client()
    if client is None:
        return {
            "service": "places",
            "configured": False,
            "healthy": False,
            "message": "Places API key not configured. Set CHARGIST_PLACES_API_KEY.",
        }
    return {"service": "places", "configured": True, "healthy": client.check_health()}
