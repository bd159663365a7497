"""
Domain models — immutable data structures for decoded certificates and crawl state.

Certificates and per-certificate derived data are frozen dataclasses.
The only mutable structure is CrawlFrontier, which is owned by exactly
one crawl run and never shared.
"""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum, unique
from pathlib import Path
from urllib.parse import urlsplit, urlunsplit

from asn1crypto import pem

_URL_SCHEMES = ("http:", "https:", "ftp:")


@dataclass(frozen=True, slots=True)
class Certificate:
    """
    A decoded X.509 certificate.

    `subject` and `issuer` hold one string per RDN in encoded order
    (e.g. "C=US", "O=U.S. Government", "CN=Federal Common Policy CA").
    `extensions` maps the dotted extension OID to the raw DER of its extnValue.
    `der` is the original certificate encoding, kept for bundle writing.
    """

    der: bytes = field(repr=False)
    subject: tuple[str, ...] = ()
    issuer: tuple[str, ...] = ()
    subject_key_identifier: bytes | None = None
    authority_key_identifier: bytes | None = None
    not_before: datetime | None = None
    not_after: datetime | None = None
    extensions: dict[str, bytes] = field(default_factory=dict, repr=False)
    source: str | None = None

    @property
    def subject_dn(self) -> str:
        return ",".join(self.subject)

    @property
    def issuer_dn(self) -> str:
        return ",".join(self.issuer)

    @property
    def ski_hex(self) -> str | None:
        return self.subject_key_identifier.hex() if self.subject_key_identifier else None

    @property
    def aki_hex(self) -> str | None:
        return self.authority_key_identifier.hex() if self.authority_key_identifier else None

    @property
    def pem(self) -> str:
        """PEM armored `CERTIFICATE` block, 64-character lines, trailing newline."""
        return pem.armor("CERTIFICATE", self.der).decode("ascii")


@dataclass(frozen=True, slots=True)
class ExtensionInfo:
    """Crawl-relevant facts derived once from a certificate's extensions."""

    sia_repository_uri: str | None = None
    has_required_policy: bool = False


@unique
class Verdict(Enum):
    """
    Outcome of the validation policy.

    Exactly one verdict holds for any certificate; rejection reasons are
    listed in the order the policy checks them.
    """

    ACCEPTED = "accepted"
    SELF_SIGNED = "self_signed"
    CROSS_CERTIFIED = "cross_certified"
    MISSING_REQUIRED_POLICY = "missing_required_policy"
    EXCLUDED_BY_SUBJECT = "excluded_by_subject"

    @property
    def accepted(self) -> bool:
        return self is Verdict.ACCEPTED


@dataclass(frozen=True, slots=True)
class FetchedResource:
    """Bytes retrieved for a location, with the name used as a format hint."""

    location: str
    content: bytes = field(repr=False)
    name: str = ""


@dataclass(frozen=True, slots=True)
class AcceptedCertificate:
    """One bundle entry: the certificate, its PEM text and where it was found."""

    certificate: Certificate
    pem: str = field(repr=False)
    source: str | None = None


@dataclass(frozen=True, slots=True)
class RejectedCertificate:
    """A certificate that decoded fine but failed the validation policy."""

    subject: str
    verdict: Verdict
    source: str | None = None


@dataclass(frozen=True, slots=True)
class CrawlFailure:
    """A non-fatal fetch or decode failure for one location or candidate."""

    location: str
    message: str


@dataclass(frozen=True, slots=True)
class CrawlReport:
    """
    Everything one crawl run produced.

    `bundle` is in discovery order with the trust anchor first.
    `visited` lists every location fetched, anchor included.
    """

    bundle: list[AcceptedCertificate] = field(default_factory=list)
    rejected: list[RejectedCertificate] = field(default_factory=list)
    failures: list[CrawlFailure] = field(default_factory=list)
    visited: list[str] = field(default_factory=list)

    @property
    def trust_anchor(self) -> Certificate | None:
        return self.bundle[0].certificate if self.bundle else None

    @property
    def accepted_count(self) -> int:
        return len(self.bundle)


def is_url(location: str) -> bool:
    """True for http/https/ftp locations that do not name an existing local file."""
    return location.lower().startswith(_URL_SCHEMES) and not Path(location).is_file()


def normalize_location(location: str) -> str:
    """
    Canonical form used for frontier deduplication.

    URLs get a lower-case scheme and host and lose any fragment;
    local paths are resolved to an absolute path.
    """
    if is_url(location):
        parts = urlsplit(location.strip())
        return urlunsplit(
            (parts.scheme.lower(), parts.netloc.lower(), parts.path or "/", parts.query, "")
        )
    return str(Path(location).expanduser().resolve())


class CrawlFrontier:
    """
    FIFO queue of pending locations with crawl-wide deduplication.

    A location is enqueued at most once for the lifetime of the frontier,
    which bounds the crawl even when SIA pointers form cycles.
    """

    def __init__(self) -> None:
        self._pending: deque[str] = deque()
        self._seen: set[str] = set()
        self._visited: list[str] = []

    def mark_seen(self, location: str) -> None:
        """Record a location as known without queueing it (used for the anchor)."""
        self._seen.add(normalize_location(location))

    def push(self, location: str) -> bool:
        """Enqueue a location; returns False if it was already seen."""
        key = normalize_location(location)
        if key in self._seen:
            return False
        self._seen.add(key)
        self._pending.append(location)
        return True

    def pop(self) -> str:
        location = self._pending.popleft()
        self._visited.append(location)
        return location

    @property
    def visited(self) -> list[str]:
        return list(self._visited)

    def __len__(self) -> int:
        return len(self._pending)

    def __bool__(self) -> bool:
        return bool(self._pending)
