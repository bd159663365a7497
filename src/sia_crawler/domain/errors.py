"""
Error taxonomy — typed causes carried inside railway failures.

Adapters never let these escape: they are attached as the `exception` of a
FailureDescription so callers can tell failure kinds apart without parsing
messages (see `failure_kind`).

  FetchError          location unreachable or answered with an error status
  DecodeError         EMPTY_INPUT | MALFORMED_CERTIFICATE | MALFORMED_PKCS7
  ValidationRejected  the policy verdict for a decoded certificate
  FatalCrawlError     ANCHOR_UNREACHABLE | ANCHOR_UNDECODABLE | NO_ANCHOR_SIA
"""

from __future__ import annotations

from enum import Enum, unique

from railway import FailureDescription

from sia_crawler.domain.models import Verdict


@unique
class DecodeErrorKind(Enum):
    EMPTY_INPUT = "empty_input"
    MALFORMED_CERTIFICATE = "malformed_certificate"
    MALFORMED_PKCS7 = "malformed_pkcs7"


@unique
class FatalErrorKind(Enum):
    ANCHOR_UNREACHABLE = "anchor_unreachable"
    ANCHOR_UNDECODABLE = "anchor_undecodable"
    NO_ANCHOR_SIA = "no_anchor_sia"


class CrawlError(Exception):
    """Base class for every error raised or carried by sia_crawler."""


class FetchError(CrawlError):
    def __init__(self, location: str, reason: str) -> None:
        super().__init__(f"Unable to fetch {location}: {reason}")
        self.location = location
        self.reason = reason


class DecodeError(CrawlError):
    def __init__(self, kind: DecodeErrorKind, source: str | None, detail: str = "") -> None:
        message = f"{kind.value} ({source or '<bytes>'})"
        super().__init__(f"{message}: {detail}" if detail else message)
        self.kind = kind
        self.source = source


class ValidationRejected(CrawlError):
    def __init__(self, verdict: Verdict, subject: str) -> None:
        super().__init__(f"{verdict.value}: {subject}")
        self.kind = verdict
        self.subject = subject


class FatalCrawlError(CrawlError):
    def __init__(self, kind: FatalErrorKind, anchor: str, cause: str = "") -> None:
        super().__init__(f"{kind.value} for trust anchor {anchor}" + (f": {cause}" if cause else ""))
        self.kind = kind
        self.anchor = anchor


def failure_kind(error: FailureDescription) -> Enum | None:
    """The typed kind behind a failure, or None if the failure is untyped."""
    return getattr(error.exception, "kind", None)


def describe_cause(error: FailureDescription) -> FailureDescription:
    """Append the carried exception's text to the failure message."""
    if error.exception is None:
        return error
    return FailureDescription(error.code, f"{error.message}: {error.exception}", error.exception)
