"""Per-user endpoints."""

from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends, HTTPException, status

from ...config import settings
from ...errors import StoreError
from ...schemas.chargers import ChargerModel
from ...services.directory import ChargerDirectory
from ..deps import get_directory, to_http_error

router = APIRouter(prefix="/users", tags=["users"])


@router.get("/{user_id}/favorites", response_model=List[ChargerModel], status_code=status.HTTP_200_OK)
def list_favorites(
    user_id: str,
    directory: ChargerDirectory = Depends(get_directory),
) -> List[ChargerModel]:
    with directory.favorites_for(user_id).open() as subscription:
        try:
            chargers = subscription.get(timeout=settings.store_timeout_seconds)
        except StoreError as exc:
            raise to_http_error(exc) from exc
        except TimeoutError as exc:
            raise HTTPException(status_code=status.HTTP_504_GATEWAY_TIMEOUT, detail=str(exc)) from exc
    return [ChargerModel.from_domain(charger, user_id) for charger in chargers]
