"""
Content sniffing — tell PEM, DER and bare Base64 apart, and containers from certificates.

Adapter layer helper shared by the decoder, the PKCS7 splitter and the crawl
engine. Classification looks at the bytes first; a filename suffix is only
consulted for unarmored Base64, where the bytes alone are ambiguous.

  -----BEGIN PKCS7-----          → PKCS7 container
  -----BEGIN CERTIFICATE-----    → one or more certificates
  DER ContentInfo(signedData)    → PKCS7 container
  other DER                      → single certificate
  bare Base64 (+ .p7b/.p7c name) → PKCS7 container, else decoded and re-sniffed
"""

from __future__ import annotations

import base64
import binascii
import re
from enum import Enum, unique

from asn1crypto import cms, pem

PKCS7_SUFFIXES = (".p7b", ".p7c")
CERTIFICATE_SUFFIXES = (".crt", ".cer", ".pem", ".der")

_SIGNED_DATA_OID = "1.2.840.113549.1.7.2"
_ARMOR_LINE = re.compile(rb"^-----(BEGIN|END) [A-Z0-9 ]+-----\s*$", re.MULTILINE)
_CERTIFICATE_BLOCK = re.compile(
    rb"-----BEGIN CERTIFICATE-----\s.*?-----END CERTIFICATE-----", re.DOTALL
)
_TEXT_BYTES = frozenset(range(0x20, 0x7F)) | {0x09, 0x0A, 0x0D}


@unique
class EncodingFormat(Enum):
    PEM = "pem"
    DER = "der"
    BASE64 = "base64"
    UNKNOWN = "unknown"


@unique
class ContentKind(Enum):
    PKCS7 = "pkcs7"
    CERTIFICATE = "certificate"


def looks_binary(data: bytes, sample_size: int = 512) -> bool:
    """
    Non-text heuristic: any NUL byte, or more than 30% non-printable bytes
    in the leading sample.
    """
    sample = data[:sample_size]
    if not sample:
        return False
    if b"\x00" in sample:
        return True
    odd = sum(1 for byte in sample if byte not in _TEXT_BYTES)
    return odd / len(sample) > 0.3


def sniff_format(data: bytes) -> EncodingFormat:
    if not data.strip():
        return EncodingFormat.UNKNOWN
    if pem.detect(data):
        return EncodingFormat.PEM
    if looks_binary(data):
        return EncodingFormat.DER
    return EncodingFormat.BASE64


def strip_armor(data: bytes) -> bytes:
    """Remove every `-----BEGIN/END ...-----` line and all whitespace."""
    return b"".join(_ARMOR_LINE.sub(b"", data).split())


def decode_base64(data: bytes) -> bytes:
    """Decode Base64 text, ignoring armor lines and whitespace. Raises ValueError."""
    payload = strip_armor(data)
    try:
        return base64.b64decode(payload, validate=True)
    except binascii.Error as e:
        raise ValueError(f"Invalid Base64 payload: {e}") from e


def certificate_blocks(data: bytes) -> list[bytes]:
    """Every PEM `CERTIFICATE` block in `data`, in file order."""
    return [match.group(0) + b"\n" for match in _CERTIFICATE_BLOCK.finditer(data)]


def is_signed_data(der: bytes) -> bool:
    """True if `der` parses as a CMS ContentInfo wrapping signedData."""
    try:
        content_info = cms.ContentInfo.load(der)
        return content_info["content_type"].dotted == _SIGNED_DATA_OID
    except (ValueError, TypeError, KeyError):
        return False


def classify(data: bytes, name: str = "") -> ContentKind:
    """Decide whether fetched bytes are a PKCS7 container or certificate(s)."""
    fmt = sniff_format(data)
    if fmt is EncodingFormat.PEM:
        if b"-----BEGIN PKCS7-----" in data:
            return ContentKind.PKCS7
        return ContentKind.CERTIFICATE
    if fmt is EncodingFormat.DER:
        return ContentKind.PKCS7 if is_signed_data(data) else ContentKind.CERTIFICATE
    if fmt is EncodingFormat.BASE64:
        if name.lower().endswith(PKCS7_SUFFIXES):
            return ContentKind.PKCS7
        try:
            decoded = decode_base64(data)
        except ValueError:
            return ContentKind.CERTIFICATE
        return ContentKind.PKCS7 if is_signed_data(decoded) else ContentKind.CERTIFICATE
    return ContentKind.PKCS7 if name.lower().endswith(PKCS7_SUFFIXES) else ContentKind.CERTIFICATE
