import threading

import pytest

from src.chargist.services.streams import Observer, Stream


class ManualSource:
    """Hand-driven upstream that records subscribe/unsubscribe calls."""

    def __init__(self) -> None:
        self.observers: list[Observer] = []
        self.released = 0

    def stream(self) -> Stream:
        def subscribe(observer: Observer):
            self.observers.append(observer)

            def unsubscribe() -> None:
                self.released += 1
                self.observers.remove(observer)

            return unsubscribe

        return Stream(subscribe)

    def push(self, value) -> None:
        for observer in list(self.observers):
            observer.next(value)

    def fail(self, exc: BaseException) -> None:
        for observer in list(self.observers):
            observer.error(exc)


def test_just_emits_values_then_completes() -> None:
    seen: list[int] = []
    done = []
    Stream.just(1, 2, 3).listen(seen.append, on_complete=lambda: done.append(True))
    assert seen == [1, 2, 3]
    assert done == [True]


def test_map_and_filter() -> None:
    seen: list[int] = []
    Stream.just(1, 2, 3, 4).filter(lambda value: value % 2 == 0).map(lambda value: value * 10).listen(seen.append)
    assert seen == [20, 40]


def test_subscription_iterates_until_completion() -> None:
    with Stream.just("a", "b").open() as subscription:
        assert list(subscription) == ["a", "b"]


def test_leaving_with_block_releases_upstream() -> None:
    source = ManualSource()
    with source.stream().open() as subscription:
        source.push(1)
        assert subscription.get(timeout=1) == 1
    assert source.released == 1
    assert source.observers == []


def test_leaving_with_block_on_exception_releases_upstream() -> None:
    source = ManualSource()
    with pytest.raises(RuntimeError):
        with source.stream().open():
            raise RuntimeError("consumer failed")
    assert source.released == 1


def test_error_is_delivered_once_then_stream_ends() -> None:
    source = ManualSource()
    boom = ValueError("boom")
    with source.stream().open() as subscription:
        observer = source.observers[0]
        source.fail(boom)
        observer.next("late")
        with pytest.raises(ValueError):
            subscription.get(timeout=1)
        with pytest.raises(StopIteration):
            subscription.get(timeout=1)


def test_observer_ignores_values_after_terminal_signal() -> None:
    seen = []
    errors = []
    observer = Observer(seen.append, errors.append)
    observer.next(1)
    observer.complete()
    observer.next(2)
    observer.error(RuntimeError("late"))
    assert seen == [1]
    assert errors == []


def test_get_times_out_without_values() -> None:
    source = ManualSource()
    with source.stream().open() as subscription:
        with pytest.raises(TimeoutError):
            subscription.get(timeout=0.01)


def test_close_wakes_blocked_reader() -> None:
    source = ManualSource()
    subscription = source.stream().open()
    outcome = []

    def reader() -> None:
        try:
            subscription.get(timeout=5)
        except StopIteration:
            outcome.append("stopped")

    thread = threading.Thread(target=reader)
    thread.start()
    subscription.close()
    thread.join(timeout=5)
    assert outcome == ["stopped"]
    assert source.released == 1


def test_combine_latest_waits_for_every_input() -> None:
    left, right = ManualSource(), ManualSource()
    seen = []
    unsubscribe = Stream.combine_latest([left.stream(), right.stream()], lambda a, b: (a, b)).listen(seen.append)

    left.push(1)
    assert seen == []
    right.push("x")
    left.push(2)
    assert seen == [(1, "x"), (2, "x")]

    unsubscribe()
    assert left.released == 1
    assert right.released == 1


def test_combine_latest_propagates_error_and_releases_inputs() -> None:
    left, right = ManualSource(), ManualSource()
    errors = []
    Stream.combine_latest([left.stream(), right.stream()], lambda a, b: a + b).listen(
        lambda value: None, errors.append
    )
    left.fail(ConnectionError("down"))
    assert len(errors) == 1
    assert isinstance(errors[0], ConnectionError)
    assert left.released == 1
    assert right.released == 1


def test_first_returns_first_value_and_releases() -> None:
    source = ManualSource()
    stream = source.stream().map(lambda value: value + 1)

    result = []
    thread = threading.Thread(target=lambda: result.append(stream.first(timeout=5)))
    thread.start()
    while not source.observers:
        pass
    source.push(41)
    thread.join(timeout=5)
    assert result == [42]
    assert source.released == 1
