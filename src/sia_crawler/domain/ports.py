"""
Ports — Protocol-based interfaces for infrastructure adapters.

These define WHAT the crawl engine needs without specifying HOW it's done.
Following hexagonal architecture:

  Domain ← Ports (protocols) ← Adapters (implementations)

Each port is a Protocol (structural typing) so adapters — and test fakes —
satisfy the contract simply by implementing the methods.

Crawl flow:
  1. ResourceFetcher      → bytes for the anchor and every SIA location
  2. ContainerSplitter    → PKCS7 certs-only container → candidate PEM blobs
  3. CertificateDecoder   → candidate bytes → Certificate
  4. BundleWriter         → accepted certificates → bundle file
"""

from __future__ import annotations

from pathlib import Path
from typing import Protocol, runtime_checkable

from railway.result import Result

from sia_crawler.domain.models import AcceptedCertificate, Certificate, FetchedResource


@runtime_checkable
class ResourceFetcher(Protocol):
    """
    Port: resolve a location (local path or URL) to bytes.

    Failures carry a FetchError; they are fatal only for the trust anchor.
    """

    def fetch(self, location: str) -> Result[FetchedResource]: ...


@runtime_checkable
class CertificateDecoder(Protocol):
    """
    Port: decode one PEM, DER or bare Base64 certificate.

    Failures carry a DecodeError (EMPTY_INPUT or MALFORMED_CERTIFICATE).
    """

    def decode(self, data: bytes, source: str | None = None) -> Result[Certificate]: ...


@runtime_checkable
class ContainerSplitter(Protocol):
    """
    Port: split a PKCS7 certs-only container into PEM certificate blobs.

    Order of the returned blobs is the order inside the container.
    Failures carry a DecodeError (MALFORMED_PKCS7).
    """

    def split(self, data: bytes, source: str | None = None) -> Result[list[bytes]]: ...


@runtime_checkable
class BundleWriter(Protocol):
    """
    Port: persist the accepted certificates as a bundle file.

    Returns the path written. The target is replaced atomically, so a
    failed write leaves any previous bundle untouched.
    """

    def write(self, bundle: list[AcceptedCertificate], destination: Path) -> Result[Path]: ...


@runtime_checkable
class CertificateArchive(Protocol):
    """Port: keep a per-certificate copy of each accepted certificate."""

    def store(self, certificate: Certificate) -> Result[Path]: ...
