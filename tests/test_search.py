import pytest

from src.chargist.errors import ValidationError
from src.chargist.models.domain import ChargerWithDetails, ChargingSpeed, RatingSummary, SortKey
from src.chargist.services.directory import SearchCriteria, run_search
from tests.factories import make_charger, make_slot


def _details(charger_id: str, name: str, *slots) -> ChargerWithDetails:
    return ChargerWithDetails(
        charger=make_charger(charger_id, name, 38.7, -9.1),
        slots=list(slots),
        services=[],
        rating=RatingSummary.from_ratings([]),
    )


@pytest.fixture
def candidates() -> list[ChargerWithDetails]:
    return [
        _details("a", "Zeta", make_slot("a1", "a"), make_slot("a2", "a")),
        _details("b", "alpha", make_slot("b1", "b", available=False)),
        _details("c", "Mid", make_slot("c1", "c", ChargingSpeed.SLOW, damaged=True), make_slot("c2", "c")),
        _details("d", "Empty"),
    ]


def _ids(results) -> list[str]:
    return [details.charger.id for details in results]


def test_unavailable_filter_requires_an_unusable_slot(candidates) -> None:
    assert _ids(run_search(candidates, SearchCriteria(available=False))) == ["b", "c"]


def test_sort_by_availability_puts_most_usable_first(candidates) -> None:
    assert _ids(run_search(candidates, SearchCriteria(sort_key=SortKey.AVAILABILITY))) == ["a", "c", "b", "d"]


def test_sort_by_name_ignores_case(candidates) -> None:
    assert _ids(run_search(candidates, SearchCriteria(sort_key=SortKey.NAME))) == ["b", "d", "c", "a"]


def test_slot_filters_exclude_chargers_without_slots(candidates) -> None:
    assert "d" not in _ids(run_search(candidates, SearchCriteria(max_price=10.0)))


def test_validate_rejects_nan_price() -> None:
    with pytest.raises(ValidationError):
        SearchCriteria(max_price=float("nan")).validate()
