"""
Tests for Result, Success and Failure.

Each operator is exercised on both tracks with the values the crawler
actually passes through it: fetched bytes, decoded subjects, key identifiers.
"""

from __future__ import annotations

import pytest

from railway import ErrorCode, Failure, FailureDescription, Result, Success

NOT_FOUND = Result.failure(ErrorCode.NOT_FOUND, "http://ca.example/a.p7c: 404")


class TestTracks:
    def test_success_holds_its_value(self):
        result = Result.success(b"\x30\x82")
        assert result.is_success() and not result.is_failure()
        assert result.value() == b"\x30\x82"
        assert result

    def test_empty_collections_are_valid_values(self):
        assert Result.success([]).value() == []

    def test_failure_holds_code_message_and_cause(self):
        cause = ConnectionError("refused")
        result = Result.failure(ErrorCode.EXTERNAL_SERVICE_ERROR, "unreachable", cause)
        assert result.is_failure() and not result
        assert result.error().code is ErrorCode.EXTERNAL_SERVICE_ERROR
        assert result.error().exception is cause

    def test_failure_from_keeps_the_description(self):
        desc = FailureDescription(ErrorCode.BUSINESS_RULE_ERROR, "self_signed")
        assert Result.failure_from(desc).error() is desc

    @pytest.mark.parametrize("track", [Success, Failure])
    def test_none_is_rejected(self, track):
        with pytest.raises(TypeError, match="must not be None"):
            track(None)

    def test_value_of_failure_raises(self):
        with pytest.raises(ValueError, match="Cannot get value from a Failure: .*404"):
            NOT_FOUND.value()

    def test_error_of_success_raises(self):
        with pytest.raises(ValueError, match="Cannot get error from a Success"):
            Result.success("CN=Agency CA").error()


class TestComposition:
    def test_map_applies_on_success_only(self):
        assert Result.success(b"ROOT1").map(bytes.hex).value() == "524f4f5431"
        assert NOT_FOUND.map(bytes.hex) == NOT_FOUND

    def test_flat_map_stops_at_first_failure(self):
        """
        GIVEN fetch → decode → check where decode fails
        WHEN the steps are chained with flat_map
        THEN check never runs and the decode failure comes out.
        """
        calls: list[str] = []

        def decode(raw: bytes) -> Result[str]:
            calls.append("decode")
            return Result.failure(ErrorCode.TECHNICAL_ERROR, "malformed_certificate")

        def check(subject: str) -> Result[str]:
            calls.append("check")
            return Result.success(subject)

        result = Result.success(b"junk").flat_map(decode).flat_map(check)

        assert result.error().message == "malformed_certificate"
        assert calls == ["decode"]

    def test_map_failure_rewrites_failure_only(self):
        def relabel(err: FailureDescription) -> FailureDescription:
            return FailureDescription(ErrorCode.TIMEOUT_ERROR, f"anchor: {err.message}", err.exception)

        assert NOT_FOUND.map_failure(relabel).error().message.startswith("anchor: ")
        assert Result.success(1).map_failure(relabel).value() == 1

    def test_peek_failure_sees_failures_only(self):
        seen: list[str] = []
        assert NOT_FOUND.peek_failure(lambda e: seen.append(e.message)) is NOT_FOUND
        Result.success(1).peek_failure(lambda e: seen.append("unexpected"))
        assert seen == ["http://ca.example/a.p7c: 404"]

    def test_either_picks_the_branch(self):
        def describe(result: Result[str]) -> str:
            return result.either(lambda s: f"accepted {s}", lambda e: f"skipped {e.code.value}")

        assert describe(Result.success("CN=Agency CA")) == "accepted CN=Agency CA"
        assert describe(NOT_FOUND) == "skipped NOT_FOUND"


class TestFromComputation:
    def test_returned_value_is_a_success(self):
        result = Result.from_computation(lambda: b"DER", ErrorCode.NOT_FOUND, "unreadable")
        assert result.value() == b"DER"

    def test_exception_becomes_the_cause(self):
        def read() -> bytes:
            raise FileNotFoundError("root.crt")

        error = Result.from_computation(read, ErrorCode.NOT_FOUND, "root.crt unreadable").error()
        assert error.message == "root.crt unreadable"
        assert isinstance(error.exception, FileNotFoundError)

    def test_none_result_is_a_failure(self):
        result = Result.from_computation(lambda: None, ErrorCode.TECHNICAL_ERROR, "no value")
        assert isinstance(result.error().exception, TypeError)


class TestMatchingAndEquality:
    def test_structural_pattern_matching(self):
        match NOT_FOUND:
            case Failure(err):
                assert err.code is ErrorCode.NOT_FOUND
            case Success(_):
                pytest.fail("expected Failure")

    def test_failures_compare_on_code_and_message(self):
        with_cause = Result.failure(ErrorCode.NOT_FOUND, NOT_FOUND.error().message, OSError())
        assert with_cause == NOT_FOUND
        assert Result.failure(ErrorCode.TIMEOUT_ERROR, NOT_FOUND.error().message) != NOT_FOUND
        assert Result.success(1) != Result.failure(ErrorCode.NOT_FOUND, "1")

    def test_results_are_hashable(self):
        assert len({Result.success(1), Result.success(1), NOT_FOUND}) == 2

    def test_repr(self):
        assert repr(Result.success(42)) == "Success(42)"
        assert repr(NOT_FOUND) == "Failure(NOT_FOUND: 'http://ca.example/a.p7c: 404')"
