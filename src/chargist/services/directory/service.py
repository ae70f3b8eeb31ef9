"""Charger directory: live views, search and mutations over a ChargerStore."""

from __future__ import annotations

import logging
import math
import uuid
from typing import Callable, Optional, Sequence, TypeVar

from ...config import settings
from ...data.store import ChargerStore
from ...errors import StoreError, StoreErrorKind, ValidationError
from ...models.domain import (
    Bounds,
    Charger,
    ChargerWithDetails,
    ChargingSlot,
    ChargingSpeed,
    ConnectorType,
    Coordinate,
    NearbyService,
    PaymentSystem,
    Rating,
    RatingSummary,
    SortKey,
    now_ms,
)
from ...models.result import Result
from ..streams import Observer, Stream, Unsubscribe
from .index import filter_in_bounds
from .search import SearchCriteria, charger_matches, run_search

T = TypeVar("T")

logger = logging.getLogger(__name__)


def new_id() -> str:
    return str(uuid.uuid4())


def _require_text(field: str, value: Optional[str]) -> str:
    if value is None or not value.strip():
        raise ValidationError(field, "must not be blank")
    return value.strip()


def _require_price(price: float) -> float:
    if price is None or math.isnan(price) or math.isinf(price) or price < 0:
        raise ValidationError("price", "must be a non-negative number")
    return float(price)


def _as_store_error(exc: BaseException) -> StoreError:
    if isinstance(exc, StoreError):
        return exc
    return StoreError(StoreErrorKind.UNKNOWN, str(exc))


class ChargerDirectory:
    """Orchestrates charger reads and writes for the map, detail and search screens.

    Mutations and ``search`` return a ``Result``; they never raise store or
    validation errors. Live views are ``Stream`` objects whose subscriptions
    must be closed by the consumer.
    """

    def __init__(
        self,
        store: ChargerStore,
        *,
        index_threshold: int | None = None,
        id_factory: Callable[[], str] = new_id,
    ) -> None:
        self.store = store
        self.index_threshold = index_threshold if index_threshold is not None else settings.index_threshold
        self._new_id = id_factory

    def _attempt(self, description: str, operation: Callable[[], T]) -> Result[T]:
        try:
            return Result.success(operation())
        except ValidationError as exc:
            logger.info(f"{description} rejected: {exc}")
            return Result.failure(exc)
        except StoreError as exc:
            logger.warning(f"{description} failed: {exc.kind.value}: {exc.message}")
            return Result.failure(exc)

    # ------------------------------------------------------------------ live views

    def all_chargers(self) -> Stream[list[Charger]]:
        return self.store.subscribe_all()

    def chargers_in_bounds(self, bounds: Bounds) -> Stream[list[Charger]]:
        """Every snapshot of the collection, re-filtered to ``bounds``."""
        threshold = self.index_threshold
        return self.store.subscribe_all().map(lambda chargers: filter_in_bounds(chargers, bounds, threshold))

    def favorites_for(self, user_id: str) -> Stream[list[Charger]]:
        return self.store.subscribe_favorites(user_id)

    def charger_with_details(self, charger_id: str) -> Stream[Result[ChargerWithDetails]]:
        """Live composite of a charger with its slots, services and ratings.

        Nothing is emitted until the charger document exists. A store failure,
        or the charger disappearing after it was seen, ends the stream with a
        single failed Result.
        """
        combined = Stream.combine_latest(
            [
                self.store.subscribe_charger(charger_id),
                self.store.subscribe_slots(charger_id),
                self.store.subscribe_services(charger_id),
                self.store.subscribe_ratings(charger_id),
            ],
            lambda charger, slots, services, ratings: None
            if charger is None
            else ChargerWithDetails(
                charger=charger,
                slots=list(slots),
                services=list(services),
                rating=RatingSummary.from_ratings(list(ratings)),
            ),
        )

        def subscribe(observer: Observer[Result[ChargerWithDetails]]) -> Unsubscribe:
            seen = False

            def on_next(details: Optional[ChargerWithDetails]) -> None:
                nonlocal seen
                if details is None:
                    if seen:
                        observer.next(Result.failure(StoreError.not_found(f"Charger {charger_id}")))
                        observer.complete()
                    return
                seen = True
                observer.next(Result.success(details))

            def on_error(exc: BaseException) -> None:
                logger.warning(f"Detail stream for charger {charger_id} failed: {exc}")
                observer.next(Result.failure(_as_store_error(exc)))
                observer.complete()

            return combined.listen(on_next, on_error, observer.complete)

        return Stream(subscribe)

    # ------------------------------------------------------------------ chargers

    def get_charger(self, charger_id: str) -> Result[Charger]:
        return self._attempt(f"Get charger {charger_id}", lambda: self.store.get(charger_id))

    def create_charger(
        self,
        name: Optional[str],
        location: Optional[Coordinate],
        image_ref: Optional[str],
        creator_id: str,
        payment_systems: Sequence[PaymentSystem] = (),
    ) -> Result[Charger]:
        try:
            clean_name = _require_text("name", name)
            if location is None:
                raise ValidationError("location", "is required")
            creator = _require_text("creator_id", creator_id)
        except ValidationError as exc:
            return Result.failure(exc)

        created = now_ms()
        charger = Charger(
            id=self._new_id(),
            name=clean_name,
            location=location,
            created_by=creator,
            image_ref=image_ref,
            favorite_users=frozenset(),
            created_at=created,
            updated_at=created,
            payment_systems=tuple(payment_systems),
        )
        return self._attempt(f"Create charger {charger.id}", lambda: self.store.create(charger))

    def delete_charger(self, charger_id: str) -> Result[str]:
        def delete() -> str:
            self.store.delete(charger_id)
            return charger_id

        return self._attempt(f"Delete charger {charger_id}", delete)

    # ------------------------------------------------------------------ favorites

    def set_favorite(self, charger_id: str, user_id: str, desired: bool) -> Result[Charger]:
        try:
            user = _require_text("user_id", user_id)
        except ValidationError as exc:
            return Result.failure(exc)
        return self._attempt(
            f"Set favorite {charger_id}/{user}",
            lambda: self.store.set_favorite(charger_id, user, desired),
        )

    def toggle_favorite(self, charger_id: str, user_id: str) -> Result[Charger]:
        """Flip ``user_id``'s membership in the charger's favorite set.

        The returned charger is the store's post-write state.
        """
        try:
            user = _require_text("user_id", user_id)
        except ValidationError as exc:
            return Result.failure(exc)

        def toggle() -> Charger:
            current = self.store.get(charger_id)
            return self.store.set_favorite(charger_id, user, not current.is_favorite_for(user))

        return self._attempt(f"Toggle favorite {charger_id}/{user}", toggle)

    # ------------------------------------------------------------------ slots

    def create_slot(
        self,
        charger_id: str,
        speed: ChargingSpeed,
        connector: ConnectorType,
        price: float,
    ) -> Result[ChargingSlot]:
        try:
            clean_price = _require_price(price)
        except ValidationError as exc:
            return Result.failure(exc)
        slot = ChargingSlot(
            id=self._new_id(),
            charger_id=charger_id,
            speed=ChargingSpeed(speed),
            connector_type=ConnectorType(connector),
            price=clean_price,
            is_available=True,
            is_damaged=False,
        )
        return self._attempt(f"Create slot on {charger_id}", lambda: self.store.create_slot(slot))

    def update_slot(
        self,
        slot_id: str,
        *,
        speed: Optional[ChargingSpeed] = None,
        is_available: Optional[bool] = None,
        is_damaged: Optional[bool] = None,
        price: Optional[float] = None,
    ) -> Result[ChargingSlot]:
        try:
            clean_price = _require_price(price) if price is not None else None
        except ValidationError as exc:
            return Result.failure(exc)
        return self._attempt(
            f"Update slot {slot_id}",
            lambda: self.store.update_slot(
                slot_id,
                speed=speed,
                is_available=is_available,
                is_damaged=is_damaged,
                price=clean_price,
            ),
        )

    def report_damage(self, slot_id: str, damaged: bool) -> Result[ChargingSlot]:
        return self._attempt(f"Report damage on slot {slot_id}", lambda: self.store.report_damage(slot_id, damaged))

    def charger_for_slot(self, slot_id: str) -> Result[tuple[Charger, ChargingSlot]]:
        def lookup() -> tuple[Charger, ChargingSlot]:
            slot = self.store.get_slot(slot_id)
            return self.store.get(slot.charger_id), slot

        return self._attempt(f"Find charger of slot {slot_id}", lookup)

    # ------------------------------------------------------------------ services and ratings

    def add_service(self, charger_id: str, name: str, category: str, distance_m: int) -> Result[NearbyService]:
        try:
            clean_name = _require_text("name", name)
            clean_category = _require_text("category", category)
            if distance_m is None or distance_m < 0:
                raise ValidationError("distance_m", "must be a non-negative integer")
        except ValidationError as exc:
            return Result.failure(exc)
        service = NearbyService(
            id=self._new_id(),
            charger_id=charger_id,
            name=clean_name,
            category=clean_category,
            distance_m=int(distance_m),
        )
        return self._attempt(f"Add service to {charger_id}", lambda: self.store.add_service(service))

    def remove_service(self, charger_id: str, service_id: str) -> Result[NearbyService]:
        return self._attempt(
            f"Remove service {service_id} from {charger_id}",
            lambda: self.store.remove_service(charger_id, service_id),
        )

    def rate_charger(self, charger_id: str, user_id: str, stars: int) -> Result[Rating]:
        """Record ``user_id``'s rating; rating again replaces the earlier one."""
        try:
            user = _require_text("user_id", user_id)
            if isinstance(stars, bool) or not isinstance(stars, int) or not 1 <= stars <= 5:
                raise ValidationError("stars", "must be an integer between 1 and 5")
        except ValidationError as exc:
            return Result.failure(exc)

        def rate() -> Rating:
            self.store.get(charger_id)
            previous = next(
                (rating for rating in self.store.fetch_ratings(charger_id) if rating.user_id == user),
                None,
            )
            timestamp = now_ms()
            rating = Rating(
                id=previous.id if previous else self._new_id(),
                charger_id=charger_id,
                user_id=user,
                stars=stars,
                created_at=previous.created_at if previous else timestamp,
                updated_at=timestamp,
            )
            return self.store.add_rating(rating)

        return self._attempt(f"Rate charger {charger_id}", rate)

    # ------------------------------------------------------------------ search

    def search(
        self,
        query: Optional[str] = None,
        speed: Optional[ChargingSpeed] = None,
        available: Optional[bool] = None,
        max_price: Optional[float] = None,
        sort_key: Optional[SortKey] = None,
        *,
        origin: Optional[Coordinate] = None,
        payment_systems: Optional[Sequence[str]] = None,
    ) -> Result[list[ChargerWithDetails]]:
        """One-shot filtered and sorted view of the current collection.

        Ties in the sort order are broken by charger id. No match gives an
        empty list, not an error.
        """
        try:
            criteria = SearchCriteria(
                query=query,
                speed=speed,
                available=available,
                max_price=max_price,
                payment_systems=payment_systems,
                sort_key=sort_key or SortKey.DISTANCE,
                origin=origin,
            ).validate()
        except ValidationError as exc:
            return Result.failure(exc)

        def run() -> list[ChargerWithDetails]:
            empty_rating = RatingSummary.from_ratings([])
            candidates = [
                ChargerWithDetails(
                    charger=charger,
                    slots=self.store.fetch_slots(charger.id),
                    services=[],
                    rating=empty_rating,
                )
                for charger in self.store.fetch_all()
                # charger-level criteria first so excluded chargers skip the slot fetch
                if charger_matches(charger, criteria)
            ]
            results = run_search(candidates, criteria)
            for details in results:
                details.services = self.store.fetch_services(details.charger.id)
                details.rating = RatingSummary.from_ratings(self.store.fetch_ratings(details.charger.id))
            logger.debug(f"Search matched {len(results)} of {len(candidates)} candidate chargers")
            return results

        return self._attempt("Search chargers", run)

