"""
PKCS7 splitter adapter — certs-only SignedData → individual PEM certificates.

Adapter layer — implements the ContainerSplitter port using asn1crypto
(ContentInfo → SignedData → certificates) and asn1crypto.pem for armor.

CA repositories publish .p7c/.p7b files in several shapes:
  - binary DER
  - PEM with `-----BEGIN PKCS7-----` armor
  - bare Base64, or armor with irregular line lengths

Text input that does not unarmor cleanly is re-armored once: armor lines
and whitespace are stripped, the Base64 payload is folded at 64 characters
and wrapped in `-----BEGIN/END PKCS7-----`, then decoding is retried.

Output order is the order of the certificates inside the container.
"""

from __future__ import annotations

import structlog
from asn1crypto import cms, core, pem
from railway import ErrorCode
from railway.result import Result

from sia_crawler.adapters.encoding import looks_binary, strip_armor
from sia_crawler.domain.errors import DecodeError, DecodeErrorKind, describe_cause

log = structlog.get_logger()

PKCS7_HEADER = b"-----BEGIN PKCS7-----"
PKCS7_FOOTER = b"-----END PKCS7-----"
_LINE_LENGTH = 64


def reformat_pkcs7_armor(data: bytes) -> bytes:
    """Re-wrap a Base64 PKCS7 payload with proper armor and 64-character lines."""
    payload = strip_armor(data)
    lines = [payload[i : i + _LINE_LENGTH] for i in range(0, len(payload), _LINE_LENGTH)]
    return b"\n".join([PKCS7_HEADER, *lines, PKCS7_FOOTER]) + b"\n"


def _unarmor(data: bytes, source: str | None) -> bytes:
    """Strict PEM decode; anything but a single well-formed armored block fails."""
    try:
        _, _, der_bytes = pem.unarmor(data.strip())
        return der_bytes
    except (ValueError, TypeError) as e:
        raise DecodeError(DecodeErrorKind.MALFORMED_PKCS7, source, str(e)) from e


def _certificates_from_der(der_bytes: bytes, source: str | None) -> list[bytes]:
    """Walk SignedData.certificates and armor each X.509 certificate as PEM."""
    try:
        content_info = cms.ContentInfo.load(der_bytes)
        content_type = content_info["content_type"].native
        if content_type != "signed_data":
            raise ValueError(f"expected signed_data, got {content_type}")
        certificates = content_info["content"]["certificates"]
        if isinstance(certificates, core.Void):
            return []

        blobs: list[bytes] = []
        for choice in certificates:
            if choice.name != "certificate":
                log.debug("pkcs7.skipping_non_x509", source=source, choice=choice.name)
                continue
            blobs.append(pem.armor("CERTIFICATE", choice.chosen.dump()))
        return blobs
    except (ValueError, TypeError, KeyError) as e:
        raise DecodeError(DecodeErrorKind.MALFORMED_PKCS7, source, str(e)) from e


class Pkcs7ContainerSplitter:
    """
    Split a PKCS7 certs-only container into PEM certificate blobs.

    Implements the ContainerSplitter port. Never validates certificates —
    it only yields candidates for the crawl engine.
    """

    def split(self, data: bytes, source: str | None = None) -> Result[list[bytes]]:
        return Result.from_computation(
            lambda: self._do_split(data, source),
            ErrorCode.TECHNICAL_ERROR,
            "Failed to split PKCS7 container",
        ).map_failure(describe_cause)

    def _do_split(self, data: bytes, source: str | None) -> list[bytes]:
        if not data or not data.strip():
            raise DecodeError(DecodeErrorKind.EMPTY_INPUT, source)

        if looks_binary(data):
            blobs = _certificates_from_der(data, source)
        else:
            try:
                blobs = _certificates_from_der(_unarmor(data, source), source)
            except DecodeError as first_error:
                log.debug("pkcs7.reformatting", source=source, error=str(first_error))
                reformatted = reformat_pkcs7_armor(data)
                blobs = _certificates_from_der(_unarmor(reformatted, source), source)

        log.debug("pkcs7.split", source=source, certificates=len(blobs))
        return blobs
