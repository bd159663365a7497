"""
What travels on the failure track.

The ErrorCode says which kind of boundary failed; the exception, when set,
is the typed cause (FetchError, DecodeError, ...) that callers inspect.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum, unique
from typing import Optional


@unique
class ErrorCode(Enum):
    NOT_FOUND = "NOT_FOUND"
    """Local file or remote resource is missing."""

    BUSINESS_RULE_ERROR = "BUSINESS_RULE_ERROR"
    """The validation policy rejected a certificate."""

    TECHNICAL_ERROR = "TECHNICAL_ERROR"
    """Undecodable bytes or a local I/O problem."""

    EXTERNAL_SERVICE_ERROR = "EXTERNAL_SERVICE_ERROR"
    """Remote server unreachable or answered with an error status."""

    TIMEOUT_ERROR = "TIMEOUT_ERROR"
    """Remote server did not answer in time."""


@dataclass(frozen=True, slots=True)
class FailureDescription:
    """
    >>> FailureDescription(ErrorCode.NOT_FOUND, "ca.p7c not found").code
    <ErrorCode.NOT_FOUND: 'NOT_FOUND'>
    """

    code: ErrorCode
    message: str
    exception: Optional[BaseException] = field(default=None, repr=False)
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))
