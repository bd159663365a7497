"""
pytest helpers that unwrap a Result or fail with a readable message.

    blobs = ResultAssertions.assert_success(splitter.split(container))
    ResultAssertions.assert_failure(splitter.split(b"junk"), ErrorCode.TECHNICAL_ERROR)
"""

from __future__ import annotations

from typing import TypeVar

from railway.failure import ErrorCode, FailureDescription
from railway.result import Result

T = TypeVar("T")


def _suffix(message: str) -> str:
    return f" — {message}" if message else ""


class ResultAssertions:
    @staticmethod
    def assert_success(result: Result[T], message: str = "") -> T:
        """Return the value of a Success."""
        if result.is_failure():
            error = result.error()
            raise AssertionError(
                f"Expected Success but got Failure({error.code.value}: {error.message!r}){_suffix(message)}"
            )
        return result.value()

    @staticmethod
    def assert_failure(
        result: Result[T],
        expected_code: ErrorCode | None = None,
        message: str = "",
    ) -> FailureDescription:
        """Return the description of a Failure, checking its code when one is given."""
        if result.is_success():
            raise AssertionError(f"Expected Failure but got Success({result.value()!r}){_suffix(message)}")
        error = result.error()
        if expected_code is not None and error.code != expected_code:
            raise AssertionError(
                f"Expected error code {expected_code.value} but got "
                f"{error.code.value}: {error.message!r}{_suffix(message)}"
            )
        return error

    @staticmethod
    def assert_failure_message_contains(result: Result[T], substring: str) -> None:
        """Case-insensitive substring check on the failure message."""
        error = ResultAssertions.assert_failure(result)
        if substring.lower() not in error.message.lower():
            raise AssertionError(
                f"Expected failure message to contain {substring!r} but message was: {error.message!r}"
            )
