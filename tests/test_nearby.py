import json

import httpx
import pytest

from src.chargist.models.domain import Bounds, Coordinate
from src.chargist.services.geospatial import offset_meters
from src.chargist.services.nearby import GooglePlacesClient, NearbyAggregator, PlaceHit
from tests.factories import make_charger

CENTER = Coordinate(38.7369, -9.1366)


class DummyPlaces:
    """Provider answering from a fixed table, optionally failing some categories."""

    def __init__(self, hits_by_category: dict[str, list[PlaceHit]], failing: set[str] | None = None) -> None:
        self.hits_by_category = hits_by_category
        self.failing = failing or set()
        self.calls: list[tuple[str, Bounds]] = []

    def search(self, category: str, bias: Bounds) -> list[PlaceHit]:
        self.calls.append((category, bias))
        if category in self.failing:
            raise ConnectionError(f"{category} unreachable")
        return list(self.hits_by_category.get(category, []))


def _hit(place_id: str, name: str, north_m: float) -> PlaceHit:
    return PlaceHit(id=place_id, name=name, location=offset_meters(CENTER, north_m, 0.0))


def test_failing_category_is_skipped() -> None:
    provider = DummyPlaces(
        {"cafe": [_hit("p-cafe", "Bica", 120)], "store": [_hit("p-store", "Mini", 40)]},
        failing={"restaurant"},
    )
    aggregator = NearbyAggregator(provider, categories=["restaurant", "cafe", "store"], fallback_enabled=False)

    places = aggregator.nearby_places(CENTER, 500)

    assert [place.id for place in places] == ["p-store", "p-cafe"]
    assert {category for category, _ in provider.calls} == {"restaurant", "cafe", "store"}


def test_results_sorted_and_distances_truncated() -> None:
    provider = DummyPlaces({"cafe": [_hit("far", "Far", 300.7), _hit("near", "Near", 10.9)]})
    places = NearbyAggregator(provider, categories=["cafe"]).nearby_places(CENTER, 500)
    assert [place.id for place in places] == ["near", "far"]
    assert all(isinstance(place.distance_m, int) for place in places)
    assert places[0].distance_m in (10, 11)
    assert places[0].category == "cafe"


def test_duplicate_place_ids_keep_closest() -> None:
    provider = DummyPlaces(
        {
            "restaurant": [_hit("shared", "Tasca", 200)],
            "cafe": [_hit("shared", "Tasca", 90), _hit("other", "Other", 150)],
        }
    )
    places = NearbyAggregator(provider, categories=["restaurant", "cafe"]).nearby_places(CENTER, 500)
    ids = [place.id for place in places]
    assert ids == ["shared", "other"]
    assert len(ids) == len(set(ids))
    assert places[0].category == "cafe"


def test_category_comes_from_provider_type_when_present() -> None:
    typed = PlaceHit(id="typed", name="Bica", location=offset_meters(CENTER, 30, 0.0), types=("coffee_shop", "cafe"))
    provider = DummyPlaces({"cafe": [typed, _hit("untyped", "Other", 60)]})
    places = NearbyAggregator(provider, categories=["cafe"]).nearby_places(CENTER, 500)
    assert [(place.id, place.category) for place in places] == [("typed", "coffee_shop"), ("untyped", "cafe")]


def test_equal_distances_break_ties_by_id() -> None:
    provider = DummyPlaces({"cafe": [_hit("b", "B", 50), _hit("a", "A", 50)]})
    places = NearbyAggregator(provider, categories=["cafe"]).nearby_places(CENTER, 500)
    assert [place.id for place in places] == ["a", "b"]


def test_fallback_when_everything_fails() -> None:
    provider = DummyPlaces({}, failing={"restaurant", "gas_station"})
    aggregator = NearbyAggregator(provider, categories=["restaurant", "gas_station"], fallback_enabled=True)
    places = aggregator.nearby_places(CENTER, 500)
    assert [(place.name, place.distance_m) for place in places] == [("Coffee Shop", 50), ("Gas Station", 75)]


def test_no_fallback_when_disabled() -> None:
    provider = DummyPlaces({}, failing={"cafe"})
    assert NearbyAggregator(provider, categories=["cafe"], fallback_enabled=False).nearby_places(CENTER, 500) == []


def test_unconfigured_provider_uses_fallback() -> None:
    places = NearbyAggregator(None, categories=["cafe"], fallback_enabled=True).nearby_places(CENTER, 500)
    assert [place.id for place in places] == ["fallback-coffee-shop", "fallback-gas-station"]


def test_limit_and_bias_rectangle() -> None:
    provider = DummyPlaces({"cafe": [_hit(f"p{index}", f"P{index}", 10 * index) for index in range(1, 6)]})
    places = NearbyAggregator(provider, categories=["cafe"]).nearby_places(CENTER, 250, limit=2)
    assert [place.id for place in places] == ["p1", "p2"]
    _, bias = provider.calls[0]
    assert bias.contains(CENTER)
    assert bias.north - bias.south == pytest.approx(2 * 250 / 111_195, rel=0.01)


def test_services_for_charger_uppercases_category() -> None:
    provider = DummyPlaces({"gas_station": [_hit("g1", "Galp", 80)]})
    charger = make_charger("A", "Alpha", CENTER.latitude, CENTER.longitude)
    services = NearbyAggregator(provider, categories=["gas_station"]).services_for_charger(charger, 500)
    assert [(service.charger_id, service.name, service.category) for service in services] == [
        ("A", "Galp", "GAS_STATION")
    ]


# ---------------------------------------------------------------------- Google Places client


def _client(handler, **kwargs) -> GooglePlacesClient:
    return GooglePlacesClient(
        api_key="test-key",
        base_url="https://places.example.test/v1",
        backoff_seconds=0.0,
        transport=httpx.MockTransport(handler),
        **kwargs,
    )


def test_places_client_sends_typed_biased_search() -> None:
    captured: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        captured.append(request)
        return httpx.Response(
            200,
            json={
                "places": [
                    {
                        "id": "abc",
                        "displayName": {"text": "Bica Cafe"},
                        "location": {"latitude": 38.737, "longitude": -9.137},
                        "types": ["cafe"],
                    },
                    {"id": "no-location", "displayName": {"text": "Ghost"}},
                ]
            },
        )

    bias = Bounds(south=38.73, west=-9.14, north=38.74, east=-9.13)
    hits = _client(handler).search("cafe", bias)

    assert [(hit.id, hit.name) for hit in hits] == [("abc", "Bica Cafe")]
    request = captured[0]
    assert request.url.path.endswith("/places:searchText")
    assert request.headers["X-Goog-Api-Key"] == "test-key"
    assert "places.location" in request.headers["X-Goog-FieldMask"]
    body = json.loads(request.content)
    assert body["includedType"] == "cafe"
    assert body["locationBias"]["rectangle"]["low"] == {"latitude": 38.73, "longitude": -9.14}


def test_places_client_non_success_status_is_empty() -> None:
    hits = _client(lambda request: httpx.Response(403, json={"error": "denied"})).search(
        "cafe", Bounds(south=0.0, west=0.0, north=1.0, east=1.0)
    )
    assert hits == []


def test_places_client_retries_then_raises() -> None:
    attempts = []

    def handler(request: httpx.Request) -> httpx.Response:
        attempts.append(request)
        raise httpx.ConnectError("unreachable", request=request)

    with pytest.raises(ConnectionError):
        _client(handler, max_retries=2).search("cafe", Bounds(south=0.0, west=0.0, north=1.0, east=1.0))
    assert len(attempts) == 3


def test_places_client_requires_key(monkeypatch) -> None:
    from src.chargist.services.nearby import places_client

    monkeypatch.setattr(places_client.settings, "places_api_key", None)
    with pytest.raises(ValueError):
        GooglePlacesClient()
