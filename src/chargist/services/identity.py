"""Signed-in user tracking."""

from __future__ import annotations

import logging
import threading
from typing import Optional, Protocol

from .streams import Observer, Stream, Unsubscribe

logger = logging.getLogger(__name__)


class IdentityProvider(Protocol):
    @property
    def current_user_id(self) -> Optional[str]:
        ...

    def changes(self) -> Stream[Optional[str]]:
        ...


class SessionIdentity:
    """In-process identity: whoever signed in last is the current user."""

    def __init__(self, user_id: Optional[str] = None) -> None:
        self._lock = threading.Lock()
        self._user_id = user_id
        self._observers: list[Observer[Optional[str]]] = []

    @property
    def current_user_id(self) -> Optional[str]:
        return self._user_id

    def sign_in(self, user_id: str) -> None:
        if not user_id or not user_id.strip():
            raise ValueError("user_id must not be blank")
        self._set(user_id.strip())

    def sign_out(self) -> None:
        self._set(None)

    def _set(self, user_id: Optional[str]) -> None:
        with self._lock:
            if user_id == self._user_id:
                return
            self._user_id = user_id
            observers = list(self._observers)
        logger.info(f"Session user changed to {user_id or '<signed out>'}")
        for observer in observers:
            observer.next(user_id)

    def changes(self) -> Stream[Optional[str]]:
        """Current user id on subscribe, then every change."""

        def subscribe(observer: Observer[Optional[str]]) -> Unsubscribe:
            with self._lock:
                self._observers.append(observer)
                current = self._user_id
            observer.next(current)

            def unsubscribe() -> None:
                with self._lock:
                    if observer in self._observers:
                        self._observers.remove(observer)

            return unsubscribe

        return Stream(subscribe)
