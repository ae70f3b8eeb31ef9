"""In-process charger store with live queries."""

from __future__ import annotations

import logging
import threading
from dataclasses import replace
from typing import Any, Callable, Optional

from ..errors import StoreError
from ..models.domain import (
    Charger,
    ChargingSlot,
    ChargingSpeed,
    NearbyService,
    Rating,
    now_ms,
)
from ..services.streams import Observer, Stream, Unsubscribe
from .store import ChargerStore

logger = logging.getLogger(__name__)


class _Watcher:
    """One live query registration."""

    def __init__(self, query: Callable[[], Any], observer: Observer) -> None:
        self.query = query
        self.observer = observer
        self.active = True
        self.lock = threading.Lock()
        self.last_version = -1
        self.last_value: Any = None


class InMemoryChargerStore(ChargerStore):
    """Thread-safe document store keeping everything in dictionaries.

    Each mutation bumps a version number and re-runs every registered query.
    A watcher receives the new snapshot only if its result changed, and never
    receives an older version after a newer one.
    """

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._version = 0
        self._chargers: dict[str, Charger] = {}
        self._slots: dict[str, ChargingSlot] = {}
        self._services: dict[str, NearbyService] = {}
        self._ratings: dict[str, Rating] = {}
        self._watchers: list[_Watcher] = []

    # ------------------------------------------------------------------ live machinery

    def _watch(self, query: Callable[[], Any]) -> Stream[Any]:
        def subscribe(observer: Observer) -> Unsubscribe:
            watcher = _Watcher(query, observer)
            with self._lock:
                self._watchers.append(watcher)
                version = self._version
                value = query()
            self._deliver(watcher, version, value, force=True)

            def unsubscribe() -> None:
                with self._lock:
                    watcher.active = False
                    if watcher in self._watchers:
                        self._watchers.remove(watcher)

            return unsubscribe

        return Stream(subscribe)

    @staticmethod
    def _deliver(watcher: _Watcher, version: int, value: Any, force: bool = False) -> None:
        with watcher.lock:
            if not watcher.active or version <= watcher.last_version:
                return
            changed = force or value != watcher.last_value
            watcher.last_version = version
            watcher.last_value = value
            if changed:
                watcher.observer.next(value)

    def _commit(self) -> None:
        """Bump the version and push fresh snapshots. Caller holds ``self._lock``."""
        self._version += 1
        version = self._version
        pending = [(watcher, watcher.query()) for watcher in self._watchers]
        # release before delivering so listeners may call back into the store
        self._lock.release()
        try:
            for watcher, value in pending:
                self._deliver(watcher, version, value)
        finally:
            self._lock.acquire()

    # ------------------------------------------------------------------ queries

    def _all(self) -> list[Charger]:
        return sorted(self._chargers.values(), key=lambda charger: charger.id)

    def _favorites(self, user_id: str) -> list[Charger]:
        return [charger for charger in self._all() if user_id in charger.favorite_users]

    def _slots_for(self, charger_id: str) -> list[ChargingSlot]:
        slots = [slot for slot in self._slots.values() if slot.charger_id == charger_id]
        return sorted(slots, key=lambda slot: (slot.speed.value, slot.id))

    def _services_for(self, charger_id: str) -> list[NearbyService]:
        services = [service for service in self._services.values() if service.charger_id == charger_id]
        return sorted(services, key=lambda service: (service.distance_m, service.id))

    def _ratings_for(self, charger_id: str) -> list[Rating]:
        ratings = [rating for rating in self._ratings.values() if rating.charger_id == charger_id]
        return sorted(ratings, key=lambda rating: rating.id)

    def subscribe_all(self) -> Stream[list[Charger]]:
        return self._watch(self._all)

    def subscribe_favorites(self, user_id: str) -> Stream[list[Charger]]:
        return self._watch(lambda: self._favorites(user_id))

    def subscribe_charger(self, charger_id: str) -> Stream[Optional[Charger]]:
        return self._watch(lambda: self._chargers.get(charger_id))

    def subscribe_slots(self, charger_id: str) -> Stream[list[ChargingSlot]]:
        return self._watch(lambda: self._slots_for(charger_id))

    def subscribe_services(self, charger_id: str) -> Stream[list[NearbyService]]:
        return self._watch(lambda: self._services_for(charger_id))

    def subscribe_ratings(self, charger_id: str) -> Stream[list[Rating]]:
        return self._watch(lambda: self._ratings_for(charger_id))

    def get(self, charger_id: str) -> Charger:
        with self._lock:
            charger = self._chargers.get(charger_id)
        if charger is None:
            raise StoreError.not_found(f"Charger {charger_id}")
        return charger

    def fetch_all(self) -> list[Charger]:
        with self._lock:
            return self._all()

    def fetch_slots(self, charger_id: str) -> list[ChargingSlot]:
        with self._lock:
            return self._slots_for(charger_id)

    def fetch_services(self, charger_id: str) -> list[NearbyService]:
        with self._lock:
            return self._services_for(charger_id)

    def fetch_ratings(self, charger_id: str) -> list[Rating]:
        with self._lock:
            return self._ratings_for(charger_id)

    def get_slot(self, slot_id: str) -> ChargingSlot:
        with self._lock:
            slot = self._slots.get(slot_id)
        if slot is None:
            raise StoreError.not_found(f"Charging slot {slot_id}")
        return slot

    # ------------------------------------------------------------------ writes

    def _require_charger(self, charger_id: str) -> Charger:
        charger = self._chargers.get(charger_id)
        if charger is None:
            raise StoreError.not_found(f"Charger {charger_id}")
        return charger

    def create(self, charger: Charger) -> Charger:
        with self._lock:
            self._chargers[charger.id] = charger
            self._commit()
        logger.debug(f"Stored charger {charger.id}")
        return charger

    def delete(self, charger_id: str) -> None:
        with self._lock:
            self._require_charger(charger_id)
            del self._chargers[charger_id]
            for table in (self._slots, self._services, self._ratings):
                for key in [key for key, row in table.items() if row.charger_id == charger_id]:
                    del table[key]
            self._commit()

    def set_favorite(self, charger_id: str, user_id: str, desired: bool) -> Charger:
        with self._lock:
            charger = self._require_charger(charger_id)
            if (user_id in charger.favorite_users) == desired:
                return charger
            if desired:
                favorites = charger.favorite_users | {user_id}
            else:
                favorites = charger.favorite_users - {user_id}
            updated = replace(charger, favorite_users=frozenset(favorites), updated_at=now_ms())
            self._chargers[charger_id] = updated
            self._commit()
        return updated

    def create_slot(self, slot: ChargingSlot) -> ChargingSlot:
        with self._lock:
            self._require_charger(slot.charger_id)
            self._slots[slot.id] = slot
            self._commit()
        return slot

    def update_slot(
        self,
        slot_id: str,
        *,
        speed: Optional[ChargingSpeed] = None,
        is_available: Optional[bool] = None,
        is_damaged: Optional[bool] = None,
        price: Optional[float] = None,
    ) -> ChargingSlot:
        with self._lock:
            slot = self._slots.get(slot_id)
            if slot is None:
                raise StoreError.not_found(f"Charging slot {slot_id}")
            updated = replace(
                slot,
                speed=speed if speed is not None else slot.speed,
                is_available=is_available if is_available is not None else slot.is_available,
                is_damaged=is_damaged if is_damaged is not None else slot.is_damaged,
                price=price if price is not None else slot.price,
                updated_at=now_ms(),
            )
            self._slots[slot_id] = updated
            self._commit()
        return updated

    def add_service(self, service: NearbyService) -> NearbyService:
        with self._lock:
            self._require_charger(service.charger_id)
            self._services[service.id] = service
            self._commit()
        return service

    def remove_service(self, charger_id: str, service_id: str) -> NearbyService:
        with self._lock:
            service = self._services.get(service_id)
            if service is None or service.charger_id != charger_id:
                raise StoreError.not_found(f"Nearby service {service_id}")
            del self._services[service_id]
            self._commit()
        return service

    def add_rating(self, rating: Rating) -> Rating:
        with self._lock:
            self._require_charger(rating.charger_id)
            self._ratings[rating.id] = rating
            self._commit()
        return rating
