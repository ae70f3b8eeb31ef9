"""Tagged success/error result returned by directory operations."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Generic, Optional, TypeVar, Union

from ..errors import StoreError, ValidationError

T = TypeVar("T")

DirectoryError = Union[StoreError, ValidationError]


@dataclass(frozen=True, slots=True)
class Result(Generic[T]):
    value: Optional[T] = None
    error: Optional[DirectoryError] = None

    @classmethod
    def success(cls, value: T) -> "Result[T]":
        return cls(value=value)

    @classmethod
    def failure(cls, error: DirectoryError) -> "Result[T]":
        return cls(error=error)

    @property
    def ok(self) -> bool:
        return self.error is None

    def unwrap(self) -> T:
        """Return the value or raise the carried error."""
        if self.error is not None:
            raise self.error
        return self.value  # type: ignore[return-value]
