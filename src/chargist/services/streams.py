"""Push-based live streams with scoped, cancellable subscriptions.

A ``Stream`` is cold: nothing happens until someone listens. Every listener
gets its own upstream registration, and releasing the listener releases that
registration. Producers push full snapshots; consumers never poll.

Two ways to consume a stream:

* ``stream.listen(on_next, on_error, on_complete)`` returns an unsubscribe
  callable, for callback-style consumers.
* ``with stream.open() as subscription: for snapshot in subscription: ...``
  blocks on each snapshot and releases the upstream when the block exits,
  whether by completion, ``break``, ``return`` or an exception.

A stream delivers at most one terminal signal (error or completion). Nothing
is delivered after it.
"""

from __future__ import annotations

import logging
import queue
import threading
from typing import Any, Callable, Generic, Optional, Sequence, TypeVar

T = TypeVar("T")
U = TypeVar("U")

Unsubscribe = Callable[[], None]

logger = logging.getLogger(__name__)

_MISSING = object()


class Observer(Generic[T]):
    """Serializes delivery to one listener and enforces a single terminal signal."""

    def __init__(
        self,
        on_next: Callable[[T], None],
        on_error: Optional[Callable[[BaseException], None]] = None,
        on_complete: Optional[Callable[[], None]] = None,
    ) -> None:
        self._on_next = on_next
        self._on_error = on_error
        self._on_complete = on_complete
        self._lock = threading.RLock()
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def next(self, value: T) -> None:
        with self._lock:
            if self._closed:
                return
            self._on_next(value)

    def error(self, exc: BaseException) -> None:
        with self._lock:
            if self._closed:
                return
            self._closed = True
            if self._on_error is not None:
                self._on_error(exc)
            else:
                logger.warning(f"Stream terminated with unhandled error: {exc!r}")

    def complete(self) -> None:
        with self._lock:
            if self._closed:
                return
            self._closed = True
            if self._on_complete is not None:
                self._on_complete()

    def close(self) -> None:
        with self._lock:
            self._closed = True


class _Handle:
    """Holds an upstream teardown that must run exactly once."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._teardown: Optional[Unsubscribe] = None
        self._released = False

    def attach(self, teardown: Unsubscribe) -> None:
        with self._lock:
            if not self._released:
                self._teardown = teardown
                return
        # released while the source was still subscribing
        teardown()

    def release(self) -> None:
        with self._lock:
            if self._released:
                return
            self._released = True
            teardown, self._teardown = self._teardown, None
        if teardown is not None:
            teardown()


class Stream(Generic[T]):
    """Cold push-based source of successive values."""

    def __init__(self, subscribe: Callable[[Observer[T]], Unsubscribe]) -> None:
        self._subscribe = subscribe

    # ------------------------------------------------------------------ factories

    @classmethod
    def just(cls, *values: T) -> "Stream[T]":
        """Emit ``values`` in order, then complete."""

        def subscribe(observer: Observer[T]) -> Unsubscribe:
            for value in values:
                observer.next(value)
            observer.complete()
            return lambda: None

        return cls(subscribe)

    @classmethod
    def failed(cls, exc: BaseException) -> "Stream[T]":
        def subscribe(observer: Observer[T]) -> Unsubscribe:
            observer.error(exc)
            return lambda: None

        return cls(subscribe)

    # ------------------------------------------------------------------ consuming

    def listen(
        self,
        on_next: Callable[[T], None],
        on_error: Optional[Callable[[BaseException], None]] = None,
        on_complete: Optional[Callable[[], None]] = None,
    ) -> Unsubscribe:
        """Register callbacks and return the call that releases the registration.

        The upstream is also released automatically after an error or completion.
        """
        handle = _Handle()

        def _error(exc: BaseException) -> None:
            handle.release()
            if on_error is not None:
                on_error(exc)
            else:
                logger.warning(f"Stream terminated with unhandled error: {exc!r}")

        def _complete() -> None:
            handle.release()
            if on_complete is not None:
                on_complete()

        observer: Observer[T] = Observer(on_next, _error, _complete)

        def unsubscribe() -> None:
            observer.close()
            handle.release()

        handle.attach(self._subscribe(observer))
        return unsubscribe

    def open(self) -> "Subscription[T]":
        return Subscription(self)

    def first(self, timeout: Optional[float] = None) -> T:
        """Block for the first value and release the subscription."""
        with self.open() as subscription:
            return subscription.get(timeout=timeout)

    # ------------------------------------------------------------------ operators

    def map(self, fn: Callable[[T], U]) -> "Stream[U]":
        def subscribe(observer: Observer[U]) -> Unsubscribe:
            def on_next(value: T) -> None:
                try:
                    mapped = fn(value)
                except Exception as exc:
                    observer.error(exc)
                    return
                observer.next(mapped)

            return self.listen(on_next, observer.error, observer.complete)

        return Stream(subscribe)

    def filter(self, predicate: Callable[[T], bool]) -> "Stream[T]":
        def subscribe(observer: Observer[T]) -> Unsubscribe:
            def on_next(value: T) -> None:
                try:
                    keep = predicate(value)
                except Exception as exc:
                    observer.error(exc)
                    return
                if keep:
                    observer.next(value)

            return self.listen(on_next, observer.error, observer.complete)

        return Stream(subscribe)

    @staticmethod
    def combine_latest(streams: Sequence["Stream[Any]"], combiner: Callable[..., U]) -> "Stream[U]":
        """Emit ``combiner(*latest)`` whenever any input emits, once all have emitted."""

        def subscribe(observer: Observer[U]) -> Unsubscribe:
            lock = threading.Lock()
            latest: list[Any] = [_MISSING] * len(streams)
            completed = [False] * len(streams)
            unsubscribers: list[Unsubscribe] = []

            def make_on_next(index: int) -> Callable[[Any], None]:
                def on_next(value: Any) -> None:
                    with lock:
                        latest[index] = value
                        if any(item is _MISSING for item in latest):
                            return
                        try:
                            combined = combiner(*latest)
                        except Exception as exc:
                            observer.error(exc)
                            return
                        observer.next(combined)

                return on_next

            def make_on_complete(index: int) -> Callable[[], None]:
                def on_complete() -> None:
                    with lock:
                        completed[index] = True
                        if all(completed):
                            observer.complete()

                return on_complete

            for index, stream in enumerate(streams):
                if observer.closed:
                    break
                unsubscribers.append(
                    stream.listen(make_on_next(index), observer.error, make_on_complete(index))
                )

            def teardown() -> None:
                for unsubscribe in unsubscribers:
                    unsubscribe()

            return teardown

        return Stream(subscribe)


_VALUE, _ERROR, _DONE = range(3)


class Subscription(Generic[T]):
    """Blocking iterator over a stream, releasing the upstream on close."""

    def __init__(self, stream: Stream[T]) -> None:
        self._queue: queue.Queue = queue.Queue()
        self._closed = False
        self._finished = False
        self._unsubscribe = stream.listen(self._on_next, self._on_error, self._on_complete)

    def _on_next(self, value: T) -> None:
        self._queue.put((_VALUE, value))

    def _on_error(self, exc: BaseException) -> None:
        self._queue.put((_ERROR, exc))

    def _on_complete(self) -> None:
        self._queue.put((_DONE, None))

    @property
    def closed(self) -> bool:
        return self._closed

    def get(self, timeout: Optional[float] = None) -> T:
        """Next snapshot.

        Raises the stream's terminal error once, ``StopIteration`` when the
        stream has ended, and ``TimeoutError`` if nothing arrives in time.
        """
        if self._finished or self._closed:
            raise StopIteration
        try:
            kind, payload = self._queue.get(timeout=timeout)
        except queue.Empty:
            raise TimeoutError(f"No snapshot received within {timeout}s") from None
        if kind == _VALUE:
            return payload
        self._finished = True
        self.close()
        if kind == _ERROR:
            raise payload
        raise StopIteration

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._unsubscribe()
        # wake a reader blocked in get()
        self._queue.put((_DONE, None))

    def __iter__(self) -> "Subscription[T]":
        return self

    def __next__(self) -> T:
        return self.get()

    def __enter__(self) -> "Subscription[T]":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()
