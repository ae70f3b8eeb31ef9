"""Charger store backed by Supabase tables."""

from __future__ import annotations

import logging
import threading
import time
from typing import Any, Callable, Optional, TypeVar

import httpx
from postgrest.exceptions import APIError
from supabase import Client

from ..config import settings
from ..db.supabase import get_supabase_client
from ..errors import StoreError, StoreErrorKind
from ..models.domain import (
    Charger,
    ChargingSlot,
    ChargingSpeed,
    NearbyService,
    Rating,
    now_ms,
)
from ..services.streams import Observer, Stream, Unsubscribe
from .documents import (
    CHARGERS_TABLE,
    RATINGS_TABLE,
    SERVICES_TABLE,
    SLOTS_TABLE,
    charger_from_row,
    charger_to_row,
    rating_from_row,
    rating_to_row,
    service_from_row,
    service_to_row,
    slot_from_row,
    slot_to_row,
)
from .store import ChargerStore

T = TypeVar("T")

logger = logging.getLogger(__name__)

# PostgREST / Postgres error codes
_NOT_FOUND_CODES = {"PGRST116", "23503"}
_PERMISSION_CODES = {"42501", "PGRST301", "PGRST302"}

_UNSET = object()


def translate_error(exc: BaseException) -> StoreError:
    """Map a client/transport exception onto the store error taxonomy."""
    if isinstance(exc, StoreError):
        return exc
    if isinstance(exc, (httpx.TransportError, ConnectionError, TimeoutError)):
        return StoreError(StoreErrorKind.NETWORK, f"Store unreachable: {exc}")
    if isinstance(exc, APIError):
        code = str(exc.code or "")
        message = exc.message or str(exc)
        if code in _NOT_FOUND_CODES:
            return StoreError(StoreErrorKind.NOT_FOUND, message)
        if code in _PERMISSION_CODES:
            return StoreError(StoreErrorKind.PERMISSION_DENIED, message)
        return StoreError(StoreErrorKind.UNKNOWN, f"{code}: {message}" if code else message)
    return StoreError(StoreErrorKind.UNKNOWN, str(exc))


class SupabaseChargerStore(ChargerStore):
    """Chargers and their sub-collections in PostgREST tables.

    Point operations retry network failures with exponential backoff. Writes
    carry caller-assigned ids and are upserts, so a retried write cannot
    duplicate a row. Live queries are re-read by a watcher thread every
    ``poll_interval`` seconds and only changed snapshots are pushed.
    """

    def __init__(
        self,
        client: Client | None = None,
        *,
        poll_interval: float | None = None,
        max_retries: int | None = None,
        backoff_seconds: float | None = None,
    ) -> None:
        self._client = client or get_supabase_client()
        if self._client is None:
            raise ValueError("Supabase is not configured (set CHARGIST_SUPABASE_URL and CHARGIST_SUPABASE_KEY).")
        self.poll_interval = poll_interval if poll_interval is not None else settings.store_poll_interval_seconds
        self.max_retries = max_retries if max_retries is not None else settings.store_max_retries
        self.backoff_seconds = backoff_seconds if backoff_seconds is not None else settings.store_backoff_seconds

    # ------------------------------------------------------------------ plumbing

    def _call(self, description: str, request: Callable[[], T]) -> T:
        attempt = 0
        while True:
            try:
                return request()
            except Exception as exc:
                error = translate_error(exc)
                if error.kind is not StoreErrorKind.NETWORK:
                    raise error from exc
                attempt += 1
                if attempt > self.max_retries:
                    logger.warning(f"{description} failed after {self.max_retries} retries: {exc}")
                    raise error from exc
                wait_time = self.backoff_seconds * (2 ** (attempt - 1))
                logger.debug(
                    f"{description} network error, retrying in {wait_time:.1f}s "
                    f"(attempt {attempt}/{self.max_retries}): {exc}"
                )
                time.sleep(wait_time)

    def _rows(self, description: str, request: Callable[[], Any]) -> list[dict[str, Any]]:
        response = self._call(description, request)
        return list(response.data or [])

    def _records(
        self, description: str, request: Callable[[], Any], from_row: Callable[[dict[str, Any]], T]
    ) -> list[T]:
        """Run ``request`` and map every returned row; a malformed row is an UNKNOWN store error."""
        rows = self._rows(description, request)
        try:
            return [from_row(row) for row in rows]
        except (KeyError, TypeError, ValueError) as exc:
            logger.error(f"{description} returned a malformed row: {exc}")
            raise StoreError(StoreErrorKind.UNKNOWN, f"Malformed row from {description}: {exc}") from exc

    def _live(self, description: str, fetch: Callable[[], Any]) -> Stream[Any]:
        def subscribe(observer: Observer) -> Unsubscribe:
            stop = threading.Event()

            def run() -> None:
                last: Any = _UNSET
                while not stop.is_set():
                    try:
                        value = fetch()
                    except Exception as exc:
                        error = translate_error(exc)
                        logger.warning(f"Live query {description} stopped: {error}")
                        observer.error(error)
                        return
                    if stop.is_set():
                        return
                    if last is _UNSET or value != last:
                        last = value
                        observer.next(value)
                    stop.wait(self.poll_interval)

            thread = threading.Thread(target=run, name=f"chargist-live-{description}", daemon=True)
            thread.start()
            return stop.set

        return Stream(subscribe)

    def _table(self, name: str):
        return self._client.table(name)

    def ping(self) -> bool:
        """Check connectivity by reading a single charger id."""
        try:
            self._rows(
                "health check",
                lambda: self._table(CHARGERS_TABLE).select("id").limit(1).execute(),
            )
            return True
        except StoreError:
            return False

    # ------------------------------------------------------------------ live queries

    def subscribe_all(self) -> Stream[list[Charger]]:
        return self._live("chargers", self.fetch_all)

    def subscribe_favorites(self, user_id: str) -> Stream[list[Charger]]:
        return self._live(f"favorites:{user_id}", lambda: self._fetch_favorites(user_id))

    def subscribe_charger(self, charger_id: str) -> Stream[Optional[Charger]]:
        return self._live(f"charger:{charger_id}", lambda: self._find(charger_id))

    def subscribe_slots(self, charger_id: str) -> Stream[list[ChargingSlot]]:
        return self._live(f"slots:{charger_id}", lambda: self.fetch_slots(charger_id))

    def subscribe_services(self, charger_id: str) -> Stream[list[NearbyService]]:
        return self._live(f"services:{charger_id}", lambda: self.fetch_services(charger_id))

    def subscribe_ratings(self, charger_id: str) -> Stream[list[Rating]]:
        return self._live(f"ratings:{charger_id}", lambda: self.fetch_ratings(charger_id))

    # ------------------------------------------------------------------ reads

    def _find(self, charger_id: str) -> Charger | None:
        chargers = self._records(
            f"get charger {charger_id}",
            lambda: self._table(CHARGERS_TABLE).select("*").eq("id", charger_id).limit(1).execute(),
            charger_from_row,
        )
        return chargers[0] if chargers else None

    def get(self, charger_id: str) -> Charger:
        charger = self._find(charger_id)
        if charger is None:
            raise StoreError.not_found(f"Charger {charger_id}")
        return charger

    def fetch_all(self) -> list[Charger]:
        return self._records(
            "list chargers",
            lambda: self._table(CHARGERS_TABLE).select("*").order("id").execute(),
            charger_from_row,
        )

    def _fetch_favorites(self, user_id: str) -> list[Charger]:
        return self._records(
            f"list favorites of {user_id}",
            lambda: self._table(CHARGERS_TABLE)
            .select("*")
            .contains("favorite_users", [user_id])
            .order("id")
            .execute(),
            charger_from_row,
        )

    def fetch_slots(self, charger_id: str) -> list[ChargingSlot]:
        slots = self._records(
            f"list slots of {charger_id}",
            lambda: self._table(SLOTS_TABLE).select("*").eq("charger_id", charger_id).order("id").execute(),
            slot_from_row,
        )
        return sorted(slots, key=lambda slot: (slot.speed.value, slot.id))

    def fetch_services(self, charger_id: str) -> list[NearbyService]:
        return self._records(
            f"list services of {charger_id}",
            lambda: self._table(SERVICES_TABLE)
            .select("*")
            .eq("charger_id", charger_id)
            .order("distance_m")
            .order("id")
            .execute(),
            service_from_row,
        )

    def fetch_ratings(self, charger_id: str) -> list[Rating]:
        return self._records(
            f"list ratings of {charger_id}",
            lambda: self._table(RATINGS_TABLE).select("*").eq("charger_id", charger_id).order("id").execute(),
            rating_from_row,
        )

    def get_slot(self, slot_id: str) -> ChargingSlot:
        slots = self._records(
            f"get slot {slot_id}",
            lambda: self._table(SLOTS_TABLE).select("*").eq("id", slot_id).limit(1).execute(),
            slot_from_row,
        )
        if not slots:
            raise StoreError.not_found(f"Charging slot {slot_id}")
        return slots[0]

    # ------------------------------------------------------------------ writes

    def create(self, charger: Charger) -> Charger:
        chargers = self._records(
            f"upsert charger {charger.id}",
            lambda: self._table(CHARGERS_TABLE).upsert(charger_to_row(charger)).execute(),
            charger_from_row,
        )
        return chargers[0] if chargers else charger

    def delete(self, charger_id: str) -> None:
        # slots, services and ratings go with it (ON DELETE CASCADE)
        rows = self._rows(
            f"delete charger {charger_id}",
            lambda: self._table(CHARGERS_TABLE).delete().eq("id", charger_id).execute(),
        )
        if not rows:
            raise StoreError.not_found(f"Charger {charger_id}")

    def set_favorite(self, charger_id: str, user_id: str, desired: bool) -> Charger:
        # array_append/array_remove run server-side so concurrent users never overwrite each other
        chargers = self._records(
            f"set favorite {charger_id}/{user_id}={desired}",
            lambda: self._client.rpc(
                "chargers_set_favorite",
                {"p_charger_id": charger_id, "p_user_id": user_id, "p_desired": desired},
            ).execute(),
            charger_from_row,
        )
        if not chargers:
            raise StoreError.not_found(f"Charger {charger_id}")
        return chargers[0]

    def create_slot(self, slot: ChargingSlot) -> ChargingSlot:
        slots = self._records(
            f"upsert slot {slot.id}",
            lambda: self._table(SLOTS_TABLE).upsert(slot_to_row(slot)).execute(),
            slot_from_row,
        )
        return slots[0] if slots else slot

    def update_slot(
        self,
        slot_id: str,
        *,
        speed: Optional[ChargingSpeed] = None,
        is_available: Optional[bool] = None,
        is_damaged: Optional[bool] = None,
        price: Optional[float] = None,
    ) -> ChargingSlot:
        updates: dict[str, Any] = {"updated_at": now_ms()}
        if speed is not None:
            updates["speed"] = speed.value
        if is_available is not None:
            updates["is_available"] = is_available
        if is_damaged is not None:
            updates["is_damaged"] = is_damaged
        if price is not None:
            updates["price"] = price
        slots = self._records(
            f"update slot {slot_id}",
            lambda: self._table(SLOTS_TABLE).update(updates).eq("id", slot_id).execute(),
            slot_from_row,
        )
        if not slots:
            raise StoreError.not_found(f"Charging slot {slot_id}")
        return slots[0]

    def add_service(self, service: NearbyService) -> NearbyService:
        services = self._records(
            f"upsert service {service.id}",
            lambda: self._table(SERVICES_TABLE).upsert(service_to_row(service)).execute(),
            service_from_row,
        )
        return services[0] if services else service

    def remove_service(self, charger_id: str, service_id: str) -> NearbyService:
        services = self._records(
            f"delete service {service_id}",
            lambda: self._table(SERVICES_TABLE)
            .delete()
            .eq("id", service_id)
            .eq("charger_id", charger_id)
            .execute(),
            service_from_row,
        )
        if not services:
            raise StoreError.not_found(f"Nearby service {service_id}")
        return services[0]

    def add_rating(self, rating: Rating) -> Rating:
        ratings = self._records(
            f"upsert rating {rating.id}",
            lambda: self._table(RATINGS_TABLE).upsert(rating_to_row(rating)).execute(),
            rating_from_row,
        )
        return ratings[0] if ratings else rating
