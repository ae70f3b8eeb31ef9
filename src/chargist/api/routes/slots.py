"""Charging slot endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, status

from ...schemas.chargers import (
    ChargerModel,
    DamageReportRequest,
    SlotModel,
    SlotUpdateRequest,
    SlotWithChargerModel,
)
from ...services.directory import ChargerDirectory
from ..deps import get_directory, require_user, unwrap_or_raise

router = APIRouter(prefix="/slots", tags=["slots"])


@router.patch("/{slot_id}", response_model=SlotModel, status_code=status.HTTP_200_OK)
def update_slot(
    slot_id: str,
    payload: SlotUpdateRequest,
    directory: ChargerDirectory = Depends(get_directory),
    _user_id: str = Depends(require_user),
) -> SlotModel:
    """Partial update; fields left out keep their current value."""
    result = directory.update_slot(
        slot_id,
        speed=payload.speed,
        is_available=payload.is_available,
        is_damaged=payload.is_damaged,
        price=payload.price,
    )
    return SlotModel.from_domain(unwrap_or_raise(result))


@router.post("/{slot_id}/damage", response_model=SlotModel, status_code=status.HTTP_200_OK)
def report_damage(
    slot_id: str,
    payload: DamageReportRequest,
    directory: ChargerDirectory = Depends(get_directory),
    _user_id: str = Depends(require_user),
) -> SlotModel:
    return SlotModel.from_domain(unwrap_or_raise(directory.report_damage(slot_id, payload.damaged)))


@router.get("/{slot_id}/charger", response_model=SlotWithChargerModel, status_code=status.HTTP_200_OK)
def charger_for_slot(
    slot_id: str,
    directory: ChargerDirectory = Depends(get_directory),
) -> SlotWithChargerModel:
    charger, slot = unwrap_or_raise(directory.charger_for_slot(slot_id))
    return SlotWithChargerModel(charger=ChargerModel.from_domain(charger), slot=SlotModel.from_domain(slot))
