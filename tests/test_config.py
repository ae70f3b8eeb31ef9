from src.chargist.config import Settings
from src.chargist.data.factory import create_store
from src.chargist.data.memory_store import InMemoryChargerStore

import pytest


def test_defaults() -> None:
    settings = Settings(_env_file=None)
    assert settings.store_backend == "memory"
    assert settings.store_timeout_seconds == 30.0
    assert settings.places_timeout_seconds == 10.0
    assert settings.nearby_default_radius_m == 500
    assert settings.nearby_categories == ("restaurant", "store", "gas_station", "cafe")


def test_categories_from_comma_separated_env(monkeypatch) -> None:
    monkeypatch.setenv("CHARGIST_NEARBY_CATEGORIES", "cafe, pharmacy")
    assert Settings(_env_file=None).nearby_categories == ("cafe", "pharmacy")


def test_categories_from_json_env(monkeypatch) -> None:
    monkeypatch.setenv("CHARGIST_NEARBY_CATEGORIES", '["cafe"]')
    assert Settings(_env_file=None).nearby_categories == ("cafe",)


def test_store_factory() -> None:
    assert isinstance(create_store("memory"), InMemoryChargerStore)
    with pytest.raises(ValueError):
        create_store("cassandra")
