import threading

import httpx
import pytest
from postgrest.exceptions import APIError

from src.chargist.data import supabase_store
from src.chargist.data.documents import charger_from_row, charger_to_row, slot_to_row
from src.chargist.data.supabase_store import SupabaseChargerStore, translate_error
from src.chargist.errors import StoreError, StoreErrorKind
from src.chargist.services.directory import ChargerDirectory
from tests.factories import make_charger, make_slot


class FakeResponse:
    def __init__(self, data):
        self.data = data


class FakeQuery:
    """Just enough of the PostgREST builder chain for the store."""

    def __init__(self, client: "FakeSupabase", table: str) -> None:
        self.client = client
        self.table = table
        self.filters: list = []
        self.action = "select"
        self.payload = None

    def select(self, *_columns):
        self.action = "select"
        return self

    def eq(self, column, value):
        self.filters.append(lambda row: row.get(column) == value)
        return self

    def contains(self, column, values):
        self.filters.append(lambda row: set(values) <= set(row.get(column) or ()))
        return self

    def order(self, column):
        return self

    def limit(self, _count):
        return self

    def upsert(self, row):
        self.action, self.payload = "upsert", row
        return self

    def update(self, updates):
        self.action, self.payload = "update", updates
        return self

    def delete(self):
        self.action = "delete"
        return self

    def execute(self):
        self.client.executed.append((self.table, self.action))
        if self.client.failures:
            raise self.client.failures.pop(0)
        rows = self.client.tables.setdefault(self.table, [])
        matching = [row for row in rows if all(check(row) for check in self.filters)]
        if self.action == "upsert":
            rows[:] = [row for row in rows if row["id"] != self.payload["id"]] + [dict(self.payload)]
            return FakeResponse([dict(self.payload)])
        if self.action == "update":
            for row in matching:
                row.update(self.payload)
            return FakeResponse([dict(row) for row in matching])
        if self.action == "delete":
            rows[:] = [row for row in rows if row not in matching]
            return FakeResponse(matching)
        return FakeResponse(sorted((dict(row) for row in matching), key=lambda row: row["id"]))


class FakeRpc:
    def __init__(self, client: "FakeSupabase", name: str, params: dict) -> None:
        self.client = client
        self.name = name
        self.params = params

    def execute(self):
        self.client.rpc_calls.append((self.name, self.params))
        for row in self.client.tables.get("chargers", []):
            if row["id"] == self.params["p_charger_id"]:
                users = set(row["favorite_users"])
                if self.params["p_desired"]:
                    users.add(self.params["p_user_id"])
                else:
                    users.discard(self.params["p_user_id"])
                row["favorite_users"] = sorted(users)
                return FakeResponse([dict(row)])
        return FakeResponse([])


class FakeSupabase:
    def __init__(self) -> None:
        self.tables: dict[str, list[dict]] = {}
        self.failures: list[BaseException] = []
        self.executed: list[tuple[str, str]] = []
        self.rpc_calls: list[tuple[str, dict]] = []

    def table(self, name: str) -> FakeQuery:
        return FakeQuery(self, name)

    def rpc(self, name: str, params: dict) -> FakeRpc:
        return FakeRpc(self, name, params)


@pytest.fixture
def fake() -> FakeSupabase:
    return FakeSupabase()


@pytest.fixture
def remote(fake: FakeSupabase) -> SupabaseChargerStore:
    return SupabaseChargerStore(fake, poll_interval=0.01, max_retries=2, backoff_seconds=0.0)


def _api_error(code: str) -> APIError:
    return APIError({"message": f"error {code}", "code": code, "hint": None, "details": None})


@pytest.mark.parametrize(
    "exc, kind",
    [
        (httpx.ConnectError("down"), StoreErrorKind.NETWORK),
        (httpx.ReadTimeout("slow"), StoreErrorKind.NETWORK),
        (_api_error("PGRST116"), StoreErrorKind.NOT_FOUND),
        (_api_error("42501"), StoreErrorKind.PERMISSION_DENIED),
        (_api_error("23505"), StoreErrorKind.UNKNOWN),
        (RuntimeError("weird"), StoreErrorKind.UNKNOWN),
    ],
)
def test_translate_error(exc, kind) -> None:
    assert translate_error(exc).kind is kind


def test_charger_row_mapping_round_trips() -> None:
    charger = make_charger("c1", "Alpha", 38.7, -9.1, favorite_users=frozenset({"b", "a"}))
    row = charger_to_row(charger)
    assert row["favorite_users"] == ["a", "b"]
    assert charger_from_row(row) == charger


def test_get_missing_row_is_not_found(remote) -> None:
    with pytest.raises(StoreError) as excinfo:
        remote.get("ghost")
    assert excinfo.value.kind is StoreErrorKind.NOT_FOUND


def test_network_errors_are_retried(remote, fake) -> None:
    fake.tables["chargers"] = [charger_to_row(make_charger("c1", "Alpha", 1.0, 1.0))]
    fake.failures = [httpx.ConnectError("blip"), httpx.ConnectError("blip")]
    assert remote.get("c1").name == "Alpha"
    assert len(fake.executed) == 3


def test_network_errors_exhaust_retries(remote, fake) -> None:
    fake.failures = [httpx.ConnectError("down")] * 3
    with pytest.raises(StoreError) as excinfo:
        remote.fetch_all()
    assert excinfo.value.kind is StoreErrorKind.NETWORK


def test_permission_errors_are_not_retried(remote, fake) -> None:
    fake.failures = [_api_error("42501")]
    with pytest.raises(StoreError) as excinfo:
        remote.fetch_all()
    assert excinfo.value.kind is StoreErrorKind.PERMISSION_DENIED
    assert len(fake.executed) == 1


def test_set_favorite_goes_through_server_function(remote, fake) -> None:
    remote.create(make_charger("c1", "Alpha", 1.0, 1.0))
    updated = remote.set_favorite("c1", "u1", True)
    assert updated.favorite_users == frozenset({"u1"})
    assert fake.rpc_calls == [("chargers_set_favorite", {"p_charger_id": "c1", "p_user_id": "u1", "p_desired": True})]


def test_set_favorite_on_missing_charger(remote) -> None:
    with pytest.raises(StoreError) as excinfo:
        remote.set_favorite("ghost", "u1", True)
    assert excinfo.value.kind is StoreErrorKind.NOT_FOUND


def test_report_damage_updates_both_flags(remote, fake) -> None:
    fake.tables["charging_slots"] = [slot_to_row(make_slot("s1", "c1"))]
    slot = remote.report_damage("s1", True)
    assert slot.is_damaged and not slot.is_available
    assert fake.tables["charging_slots"][0]["is_available"] is False


def test_favorites_filter(remote, fake) -> None:
    fake.tables["chargers"] = [
        charger_to_row(make_charger("c1", "Alpha", 1.0, 1.0, favorite_users=frozenset({"u1"}))),
        charger_to_row(make_charger("c2", "Beta", 1.0, 1.0)),
    ]
    with remote.subscribe_favorites("u1").open() as subscription:
        assert [charger.id for charger in subscription.get(timeout=2)] == ["c1"]


def test_live_query_pushes_changes(remote, fake) -> None:
    with remote.subscribe_all().open() as subscription:
        assert subscription.get(timeout=2) == []
        fake.tables["chargers"] = [charger_to_row(make_charger("c1", "Alpha", 1.0, 1.0))]
        assert [charger.id for charger in subscription.get(timeout=2)] == ["c1"]


def test_live_query_error_ends_stream(remote, fake) -> None:
    fake.failures = [_api_error("42501")]
    with remote.subscribe_all().open() as subscription:
        with pytest.raises(StoreError) as excinfo:
            subscription.get(timeout=2)
    assert excinfo.value.kind is StoreErrorKind.PERMISSION_DENIED


def test_unconfigured_client_rejected(monkeypatch) -> None:
    monkeypatch.setattr(supabase_store, "get_supabase_client", lambda: None)
    with pytest.raises(ValueError):
        SupabaseChargerStore()


def _out_of_range_row() -> dict:
    row = charger_to_row(make_charger("bad", "Broken", 1.0, 1.0))
    row["latitude"] = 95.0
    return row


def test_malformed_row_is_unknown_store_error(remote, fake) -> None:
    fake.tables["chargers"] = [_out_of_range_row()]
    with pytest.raises(StoreError) as excinfo:
        remote.fetch_all()
    assert excinfo.value.kind is StoreErrorKind.UNKNOWN


def test_live_query_with_malformed_row_ends_stream(remote, fake) -> None:
    fake.tables["chargers"] = [_out_of_range_row()]
    errors: list[StoreError] = []
    finished = threading.Event()

    def on_error(error: StoreError) -> None:
        errors.append(error)
        finished.set()

    release = remote.subscribe_all().listen(lambda value: None, on_error=on_error)
    try:
        assert finished.wait(timeout=2)
    finally:
        release()
    assert [error.kind for error in errors] == [StoreErrorKind.UNKNOWN]


def test_directory_over_malformed_row_returns_failure(remote, fake) -> None:
    fake.tables["chargers"] = [_out_of_range_row()]
    result = ChargerDirectory(remote).toggle_favorite("bad", "u1")
    assert not result.ok
    assert result.error.kind is StoreErrorKind.UNKNOWN
    assert fake.rpc_calls == []
