"""
Result Container.

``Result[T, E]`` is either ``Success[T]`` or ``Failure[E]``.  Every
fallible operation in the auth core returns one of these instead of
raising, so the outcome is visible in the signature and at the call site.

Value-mapping (``map`` / ``flat_map``) never touches a failure: the same
``Failure`` instance is propagated untouched.  ``get_or_throw`` is the
only way a failure turns back into an exception.

Usage::

    result = auth_service.sign_in(SignInParams(email=email, password=pw))
    if result.is_failure():
        show(sanitize_auth_error(result.error, "login"))
    else:
        session = result.value
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Generic, Iterable, NoReturn, TypeVar, Union

T = TypeVar("T")
U = TypeVar("U")
E = TypeVar("E")
F = TypeVar("F")

__all__ = [
    "Failure",
    "Result",
    "Success",
    "combine",
    "failure",
    "success",
    "try_catch",
]


@dataclass(frozen=True)
class Success(Generic[T]):
    """The successful branch of a ``Result``."""

    value: T

    @property
    def ok(self) -> bool:
        return True

    def is_success(self) -> bool:
        return True

    def is_failure(self) -> bool:
        return False

    def map(self, fn: Callable[[T], U]) -> "Success[U]":
        return Success(fn(self.value))

    def flat_map(self, fn: Callable[[T], "Result[U, E]"]) -> "Result[U, E]":
        return fn(self.value)

    def map_error(self, fn: Callable[[object], F]) -> "Success[T]":
        return self

    def get_or_throw(self) -> T:
        return self.value

    def get_or_else(self, default: T) -> T:
        return self.value


@dataclass(frozen=True)
class Failure(Generic[E]):
    """The failed branch of a ``Result``."""

    error: E

    @property
    def ok(self) -> bool:
        return False

    def is_success(self) -> bool:
        return False

    def is_failure(self) -> bool:
        return True

    def map(self, fn: Callable[[object], U]) -> "Failure[E]":
        return self

    def flat_map(self, fn: Callable[[object], "Result[U, E]"]) -> "Failure[E]":
        return self

    def map_error(self, fn: Callable[[E], F]) -> "Failure[F]":
        """Transform the error channel.  The only way to change a failure."""
        return Failure(fn(self.error))

    def get_or_throw(self) -> NoReturn:
        """Re-raise the wrapped error.

        Non-exception payloads are wrapped in a ``RuntimeError`` so the
        caller always receives something raisable.
        """
        if isinstance(self.error, BaseException):
            raise self.error
        raise RuntimeError(repr(self.error))

    def get_or_else(self, default: U) -> U:
        return default


Result = Union[Success[T], Failure[E]]


def success(value: T) -> Success[T]:
    return Success(value)


def failure(error: E) -> Failure[E]:
    return Failure(error)


def combine(results: Iterable["Result[T, E]"]) -> "Result[list[T], E]":
    """Collect a sequence of results into one.

    Short-circuits on the first failure (in input order) and returns it
    unchanged.  An empty input yields ``Success([])``.
    """
    values: list[T] = []
    for result in results:
        if isinstance(result, Failure):
            return result
        values.append(result.value)
    return Success(values)


def try_catch(fn: Callable[[], T]) -> "Result[T, Exception]":
    """Run *fn* and capture any raised ``Exception`` as a ``Failure``."""
    try:
        return Success(fn())
    except Exception as exc:
        return Failure(exc)
