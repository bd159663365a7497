"""
X.509 decoder adapter — raw bytes → Certificate.

Adapter layer — implements the CertificateDecoder port using:
  - cryptography (PyCA): typed metadata (subject, issuer, SKI, AKI, validity)
  - asn1crypto: the raw extension list (OID → extnValue DER), so extension
    decoding stays in ExtensionExtractor and sees the original encoding

Pipeline:
  bytes
    → sniff: PEM armor / DER / bare Base64
    → DER bytes
    → cryptography: x509.load_der_x509_certificate() for metadata
    → asn1crypto: tbs_certificate.extensions for raw extnValues
    → Certificate (domain model)

Decoding is pure; nothing is written to disk here.
"""

from __future__ import annotations

import structlog
from asn1crypto import core, pem
from asn1crypto import x509 as asn1_x509
from cryptography import x509
from cryptography.x509.extensions import ExtensionNotFound
from cryptography.x509.oid import NameOID
from railway import ErrorCode
from railway.result import Result

from sia_crawler.adapters.encoding import (
    EncodingFormat,
    certificate_blocks,
    decode_base64,
    sniff_format,
)
from sia_crawler.domain.errors import DecodeError, DecodeErrorKind, describe_cause
from sia_crawler.domain.models import Certificate

log = structlog.get_logger()


# ─────────────────────── X.509 Metadata Extraction ───────────────────────


def _extract_ski(cert: x509.Certificate) -> bytes | None:
    """Subject Key Identifier digest, or None if absent."""
    try:
        ext = cert.extensions.get_extension_for_class(x509.SubjectKeyIdentifier)
        return ext.value.digest
    except (ExtensionNotFound, ValueError):
        return None


def _extract_aki(cert: x509.Certificate) -> bytes | None:
    """Authority Key Identifier keyIdentifier, or None if absent."""
    try:
        ext = cert.extensions.get_extension_for_class(x509.AuthorityKeyIdentifier)
        return ext.value.key_identifier
    except (ExtensionNotFound, ValueError):
        return None


_ATTRIBUTE_NAMES = {NameOID.EMAIL_ADDRESS: "emailAddress"}


def _attribute_string(attr: x509.NameAttribute) -> str:
    name = _ATTRIBUTE_NAMES.get(attr.oid, attr.rfc4514_attribute_name)
    value = attr.value if isinstance(attr.value, str) else attr.value.hex()
    return f"{name}={value}"


def rdn_strings(name: x509.Name) -> tuple[str, ...]:
    """
    One `attr=value` string per RDN, in the order they are encoded.

    Values are not escaped, so `O=Entrust, Inc.` reads as written and
    exclusion patterns can match it literally. Multi-valued RDNs join
    their attributes with `+`.
    """
    return tuple("+".join(_attribute_string(attr) for attr in rdn) for rdn in name.rdns)


def _raw_extensions(der_bytes: bytes) -> dict[str, bytes]:
    """Map each extension's dotted OID to the DER bytes inside its extnValue."""
    tbs = asn1_x509.Certificate.load(der_bytes)["tbs_certificate"]
    extensions = tbs["extensions"]
    if isinstance(extensions, core.Void):
        return {}
    return {ext["extn_id"].dotted: ext["extn_value"].contents for ext in extensions}


def _to_der(data: bytes, hint: EncodingFormat, source: str | None) -> bytes:
    fmt = sniff_format(data) if hint is EncodingFormat.UNKNOWN else hint
    if fmt is EncodingFormat.UNKNOWN:
        raise DecodeError(DecodeErrorKind.EMPTY_INPUT, source)
    try:
        if fmt is EncodingFormat.DER:
            return data
        if fmt is EncodingFormat.PEM:
            blocks = certificate_blocks(data)
            if blocks:
                _, _, der_bytes = pem.unarmor(blocks[0])
                return der_bytes
        return decode_base64(data)
    except ValueError as e:
        raise DecodeError(DecodeErrorKind.MALFORMED_CERTIFICATE, source, str(e)) from e


def _der_to_certificate(der_bytes: bytes, source: str | None) -> Certificate:
    """
    Convert DER-encoded X.509 bytes into a Certificate.

    Missing extensions (SKI, AKI) result in None fields — they do NOT cause
    failures; the validation policy decides what they mean.
    """
    try:
        cert = x509.load_der_x509_certificate(der_bytes)
        record = Certificate(
            der=der_bytes,
            subject=rdn_strings(cert.subject),
            issuer=rdn_strings(cert.issuer),
            subject_key_identifier=_extract_ski(cert),
            authority_key_identifier=_extract_aki(cert),
            not_before=cert.not_valid_before_utc,
            not_after=cert.not_valid_after_utc,
            extensions=_raw_extensions(der_bytes),
            source=source,
        )
    except (ValueError, TypeError, KeyError) as e:
        raise DecodeError(DecodeErrorKind.MALFORMED_CERTIFICATE, source, str(e)) from e

    if record.subject_key_identifier is None:
        log.debug("certificate.missing_ski", subject=record.subject_dn, source=source)
    return record


# ─────────────────────── Public Decoder Class ───────────────────────


class X509CertificateDecoder:
    """
    Decode PEM, DER or bare Base64 bytes into a Certificate.

    Implements the CertificateDecoder port.
    All exceptions are caught at this adapter boundary; the failure carries a
    DecodeError whose kind is EMPTY_INPUT or MALFORMED_CERTIFICATE.
    """

    def decode(
        self,
        data: bytes,
        source: str | None = None,
        hint: EncodingFormat = EncodingFormat.UNKNOWN,
    ) -> Result[Certificate]:
        return Result.from_computation(
            lambda: self._do_decode(data, source, hint),
            ErrorCode.TECHNICAL_ERROR,
            "Failed to decode certificate",
        ).map_failure(describe_cause)

    def _do_decode(self, data: bytes, source: str | None, hint: EncodingFormat) -> Certificate:
        if not data or not data.strip():
            raise DecodeError(DecodeErrorKind.EMPTY_INPUT, source)
        der_bytes = _to_der(data, hint, source)
        if not der_bytes:
            raise DecodeError(DecodeErrorKind.EMPTY_INPUT, source)
        return _der_to_certificate(der_bytes, source)
