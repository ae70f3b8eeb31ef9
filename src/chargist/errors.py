"""Error taxonomy shared by the store adapters and the directory."""

from __future__ import annotations

from enum import Enum


class StoreErrorKind(str, Enum):
    NETWORK = "network"
    NOT_FOUND = "not_found"
    PERMISSION_DENIED = "permission_denied"
    UNKNOWN = "unknown"


class StoreError(Exception):
    """Raised by every remote-store operation that did not complete."""

    def __init__(self, kind: StoreErrorKind, message: str = "") -> None:
        super().__init__(message or kind.value)
        self.kind = kind
        self.message = message or kind.value

    @classmethod
    def not_found(cls, what: str) -> "StoreError":
        return cls(StoreErrorKind.NOT_FOUND, f"{what} not found")

    def __repr__(self) -> str:
        return f"StoreError(kind={self.kind.value!r}, message={self.message!r})"


class ValidationError(ValueError):
    """Input rejected before any store call was made."""

    def __init__(self, field: str, message: str) -> None:
        super().__init__(f"{field}: {message}")
        self.field = field
        self.message = message
