"""Shared FastAPI dependencies and error mapping for the routers."""

from __future__ import annotations

import logging
from functools import lru_cache
from typing import Optional, TypeVar

from fastapi import Header, HTTPException, status

from ..config import settings
from ..data.factory import create_store
from ..data.store import ChargerStore
from ..errors import StoreError, StoreErrorKind, ValidationError
from ..models.result import Result
from ..services.directory import ChargerDirectory
from ..services.nearby import GooglePlacesClient, NearbyAggregator

T = TypeVar("T")

logger = logging.getLogger(__name__)

_STATUS_BY_KIND = {
    StoreErrorKind.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    StoreErrorKind.PERMISSION_DENIED: status.HTTP_403_FORBIDDEN,
    StoreErrorKind.NETWORK: status.HTTP_503_SERVICE_UNAVAILABLE,
    StoreErrorKind.UNKNOWN: status.HTTP_500_INTERNAL_SERVER_ERROR,
}


@lru_cache()
def get_store() -> ChargerStore:
    return create_store()


@lru_cache()
def get_directory() -> ChargerDirectory:
    return ChargerDirectory(get_store())


@lru_cache()
def get_places_client() -> GooglePlacesClient | None:
    """Places client if an API key is configured, None otherwise."""
    if not settings.places_api_key:
        logging.warning("Places API key not configured; nearby search will use the fallback list")
        return None
    return GooglePlacesClient()


@lru_cache()
def get_aggregator() -> NearbyAggregator:
    return NearbyAggregator(get_places_client())


def optional_user(x_user_id: Optional[str] = Header(default=None, alias="X-User-Id")) -> Optional[str]:
    if x_user_id is None or not x_user_id.strip():
        return None
    return x_user_id.strip()


def require_user(x_user_id: Optional[str] = Header(default=None, alias="X-User-Id")) -> str:
    user_id = optional_user(x_user_id)
    if user_id is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="X-User-Id header is required")
    return user_id


def to_http_error(error: BaseException) -> HTTPException:
    if isinstance(error, ValidationError):
        return HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail={"field": error.field, "message": error.message},
        )
    if isinstance(error, StoreError):
        return HTTPException(status_code=_STATUS_BY_KIND[error.kind], detail=error.message)
    logger.error(f"Unexpected error: {error!r}")
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(error))


def unwrap_or_raise(result: Result[T]) -> T:
    """Return the value of ``result`` or raise the matching HTTPException."""
    if result.error is not None:
        raise to_http_error(result.error) from result.error
    return result.value  # type: ignore[return-value]
