"""
Result type for the crawl pipeline.

Every adapter boundary returns a Result[T]: either Success(value) or
Failure(FailureDescription). Steps are chained with flat_map, so a failed
fetch never reaches the decoder and a failed decode never reaches the policy.

    fetch ──flat_map──▶ split ──flat_map──▶ decode ──flat_map──▶ check
      │                   │                   │                    │
      └──────── Failure passes straight through to the caller ─────┘

Success and Failure each implement the operators for their own track;
Result only holds the constructors shared by both.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Callable, Generic, Optional, TypeVar

from railway.failure import ErrorCode, FailureDescription

T = TypeVar("T")
U = TypeVar("U")
R = TypeVar("R")


class Result(ABC, Generic[T]):
    """
    Success or Failure.

        >>> Result.success(b"ROOT1").map(bytes.hex).value()
        '524f4f5431'
    """

    __slots__ = ()

    @staticmethod
    def success(value: T) -> Result[T]:
        return Success(value)

    @staticmethod
    def failure(
        code: ErrorCode,
        message: str,
        exception: Optional[BaseException] = None,
    ) -> Result[T]:
        return Failure(FailureDescription(code=code, message=message, exception=exception))

    @staticmethod
    def failure_from(error: FailureDescription) -> Result[T]:
        return Failure(error)

    @staticmethod
    def from_computation(
        computation: Callable[[], T],
        error_code: ErrorCode,
        error_message: str,
    ) -> Result[T]:
        """
        Run `computation` and capture any exception as a Failure.

        A computation returning None also fails, since Success never holds None.
        """
        try:
            return Success(computation())
        except Exception as e:
            return Result.failure(error_code, error_message, e)

    @abstractmethod
    def is_success(self) -> bool: ...

    def is_failure(self) -> bool:
        return not self.is_success()

    @abstractmethod
    def value(self) -> T:
        """The wrapped value; ValueError on a Failure."""

    @abstractmethod
    def error(self) -> FailureDescription:
        """The failure description; ValueError on a Success."""

    @abstractmethod
    def map(self, mapper: Callable[[T], U]) -> Result[U]: ...

    @abstractmethod
    def flat_map(self, mapper: Callable[[T], Result[U]]) -> Result[U]: ...

    @abstractmethod
    def map_failure(self, mapper: Callable[[FailureDescription], FailureDescription]) -> Result[T]: ...

    @abstractmethod
    def peek_failure(self, action: Callable[[FailureDescription], Any]) -> Result[T]: ...

    @abstractmethod
    def either(
        self,
        on_success: Callable[[T], R],
        on_failure: Callable[[FailureDescription], R],
    ) -> R: ...

    def __bool__(self) -> bool:
        return self.is_success()


class Success(Result[T]):
    __slots__ = ("_value",)
    __match_args__ = ("_value",)

    def __init__(self, value: T) -> None:
        if value is None:
            raise TypeError("Success value must not be None")
        self._value = value

    def is_success(self) -> bool:
        return True

    def value(self) -> T:
        return self._value

    def error(self) -> FailureDescription:
        raise ValueError(f"Cannot get error from a Success: {self._value!r}")

    def map(self, mapper: Callable[[T], U]) -> Result[U]:
        return Success(mapper(self._value))

    def flat_map(self, mapper: Callable[[T], Result[U]]) -> Result[U]:
        return mapper(self._value)

    def map_failure(self, mapper: Callable[[FailureDescription], FailureDescription]) -> Result[T]:
        return self

    def peek_failure(self, action: Callable[[FailureDescription], Any]) -> Result[T]:
        return self

    def either(
        self,
        on_success: Callable[[T], R],
        on_failure: Callable[[FailureDescription], R],
    ) -> R:
        return on_success(self._value)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Result):
            return NotImplemented
        return isinstance(other, Success) and other._value == self._value

    def __hash__(self) -> int:
        return hash((Success, self._value))

    def __repr__(self) -> str:
        return f"Success({self._value!r})"


class Failure(Result[T]):
    """Equality looks at code and message only; exception and timestamp are ignored."""

    __slots__ = ("_error",)
    __match_args__ = ("_error",)

    def __init__(self, error: FailureDescription) -> None:
        if error is None:
            raise TypeError("Failure error must not be None")
        self._error = error

    def is_success(self) -> bool:
        return False

    def value(self) -> T:
        raise ValueError(f"Cannot get value from a Failure: {self._error.message}")

    def error(self) -> FailureDescription:
        return self._error

    def map(self, mapper: Callable[[T], U]) -> Result[U]:
        return Failure(self._error)

    def flat_map(self, mapper: Callable[[T], Result[U]]) -> Result[U]:
        return Failure(self._error)

    def map_failure(self, mapper: Callable[[FailureDescription], FailureDescription]) -> Result[T]:
        return Failure(mapper(self._error))

    def peek_failure(self, action: Callable[[FailureDescription], Any]) -> Result[T]:
        action(self._error)
        return self

    def either(
        self,
        on_success: Callable[[T], R],
        on_failure: Callable[[FailureDescription], R],
    ) -> R:
        return on_failure(self._error)

    def _key(self) -> tuple[ErrorCode, str]:
        return self._error.code, self._error.message

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Result):
            return NotImplemented
        return isinstance(other, Failure) and other._key() == self._key()

    def __hash__(self) -> int:
        return hash((Failure, *self._key()))

    def __repr__(self) -> str:
        return f"Failure({self._error.code.value}: {self._error.message!r})"
