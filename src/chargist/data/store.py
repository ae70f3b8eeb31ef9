"""Contract for charger document stores."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Optional

from ..models.domain import (
    Charger,
    ChargingSlot,
    ChargingSpeed,
    NearbyService,
    Rating,
)
from ..services.streams import Stream


class ChargerStore(ABC):
    """Remote collection of chargers with nested slots, services and ratings.

    Every operation may raise ``StoreError``. ``subscribe_*`` methods return
    live streams that push a full snapshot on subscribe and again after every
    change that affects the result.
    """

    def ping(self) -> bool:
        """Whether the backing store currently answers requests."""
        return True

    # ------------------------------------------------------------------ live queries

    @abstractmethod
    def subscribe_all(self) -> Stream[list[Charger]]:
        raise NotImplementedError

    @abstractmethod
    def subscribe_favorites(self, user_id: str) -> Stream[list[Charger]]:
        raise NotImplementedError

    @abstractmethod
    def subscribe_charger(self, charger_id: str) -> Stream[Optional[Charger]]:
        """Live view of one charger; ``None`` while the document does not exist."""
        raise NotImplementedError

    @abstractmethod
    def subscribe_slots(self, charger_id: str) -> Stream[list[ChargingSlot]]:
        raise NotImplementedError

    @abstractmethod
    def subscribe_services(self, charger_id: str) -> Stream[list[NearbyService]]:
        raise NotImplementedError

    @abstractmethod
    def subscribe_ratings(self, charger_id: str) -> Stream[list[Rating]]:
        raise NotImplementedError

    # ------------------------------------------------------------------ one-shot reads

    @abstractmethod
    def get(self, charger_id: str) -> Charger:
        raise NotImplementedError

    @abstractmethod
    def fetch_all(self) -> list[Charger]:
        raise NotImplementedError

    @abstractmethod
    def fetch_slots(self, charger_id: str) -> list[ChargingSlot]:
        raise NotImplementedError

    @abstractmethod
    def fetch_services(self, charger_id: str) -> list[NearbyService]:
        raise NotImplementedError

    @abstractmethod
    def fetch_ratings(self, charger_id: str) -> list[Rating]:
        raise NotImplementedError

    @abstractmethod
    def get_slot(self, slot_id: str) -> ChargingSlot:
        raise NotImplementedError

    # ------------------------------------------------------------------ writes

    @abstractmethod
    def create(self, charger: Charger) -> Charger:
        """Write ``charger`` under its pre-assigned id, overwriting any previous copy."""
        raise NotImplementedError

    @abstractmethod
    def delete(self, charger_id: str) -> None:
        """Remove a charger together with its slots, services and ratings."""
        raise NotImplementedError

    @abstractmethod
    def set_favorite(self, charger_id: str, user_id: str, desired: bool) -> Charger:
        """Add or remove ``user_id`` from the favorite set and return the result."""
        raise NotImplementedError

    @abstractmethod
    def create_slot(self, slot: ChargingSlot) -> ChargingSlot:
        raise NotImplementedError

    @abstractmethod
    def update_slot(
        self,
        slot_id: str,
        *,
        speed: Optional[ChargingSpeed] = None,
        is_available: Optional[bool] = None,
        is_damaged: Optional[bool] = None,
        price: Optional[float] = None,
    ) -> ChargingSlot:
        raise NotImplementedError

    def report_damage(self, slot_id: str, damaged: bool) -> ChargingSlot:
        """Flag or clear damage on a slot; a damaged slot is never available."""
        return self.update_slot(slot_id, is_damaged=damaged, is_available=not damaged)

    @abstractmethod
    def add_service(self, service: NearbyService) -> NearbyService:
        raise NotImplementedError

    @abstractmethod
    def remove_service(self, charger_id: str, service_id: str) -> NearbyService:
        raise NotImplementedError

    @abstractmethod
    def add_rating(self, rating: Rating) -> Rating:
        raise NotImplementedError
