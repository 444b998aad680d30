"""
Tagged results for the API boundary.

Domain services raise AuthError subclasses; capture() turns a call into
Ok(value) or Err(kind, message) so callers branch on a closed ErrorKind
set instead of matching message strings.
"""

from collections.abc import Callable
from dataclasses import dataclass
from typing import Generic, TypeVar

from .exceptions import AuthError, ErrorKind

T = TypeVar("T")


@dataclass(frozen=True)
class Ok(Generic[T]):
    value: T


@dataclass(frozen=True)
class Err:
    kind: ErrorKind
    message: str

    @classmethod
    def from_error(cls, error: AuthError) -> "Err":
        return cls(kind=error.kind, message=error.message)


Result = Ok[T] | Err


def capture(func: Callable[[], T]) -> "Result[T]":
    """Run func, mapping domain errors to Err. Other exceptions propagate."""
    try:
        return Ok(func())
    except AuthError as e:
        return Err.from_error(e)
