"""
Explicit success/failure values returned by the generation service.

Expected failures (validation, provider, not-found) come back as ``Err``;
anything else is a fault and propagates as an exception.
"""

from dataclasses import dataclass
from typing import Generic, TypeVar, Union

from src.yorkiebook.utils.errors import APIError

T = TypeVar("T")


@dataclass(frozen=True)
class Ok(Generic[T]):
    value: T

    @property
    def ok(self) -> bool:
        return True

    def unwrap(self) -> T:
        return self.value


@dataclass(frozen=True)
class Err:
    error: APIError

    @property
    def ok(self) -> bool:
        return False

    def unwrap(self):
        """Raise the carried error so the HTTP error handlers can render it."""
        raise self.error


Result = Union[Ok[T], Err]
