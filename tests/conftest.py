import itertools

import pytest

from src.chargist.data.memory_store import InMemoryChargerStore
from src.chargist.services.directory import ChargerDirectory


@pytest.fixture
def store() -> InMemoryChargerStore:
    return InMemoryChargerStore()


@pytest.fixture
def directory(store: InMemoryChargerStore) -> ChargerDirectory:
    counter = itertools.count(1)
    return ChargerDirectory(store, index_threshold=0, id_factory=lambda: f"id-{next(counter)}")
