"""
Unit tests for content sniffing — PEM vs DER vs bare Base64, container vs certificate.
"""

from __future__ import annotations

import base64

import pytest

from sia_crawler.adapters.encoding import (
    ContentKind,
    EncodingFormat,
    certificate_blocks,
    classify,
    decode_base64,
    is_signed_data,
    looks_binary,
    sniff_format,
    strip_armor,
)
from tests.conftest import make_certificate, make_pkcs7, pkcs7_pem, to_pem


@pytest.fixture(scope="module")
def cert_der() -> bytes:
    return make_certificate("Sniff CA", ski=b"S1", aki=b"R1")


class TestSniffFormat:
    def test_pem(self, cert_der: bytes) -> None:
        assert sniff_format(to_pem(cert_der)) is EncodingFormat.PEM

    def test_der(self, cert_der: bytes) -> None:
        assert sniff_format(cert_der) is EncodingFormat.DER

    def test_bare_base64(self, cert_der: bytes) -> None:
        assert sniff_format(base64.b64encode(cert_der)) is EncodingFormat.BASE64

    def test_blank_input_is_unknown(self) -> None:
        assert sniff_format(b"  \n") is EncodingFormat.UNKNOWN

    def test_text_is_not_binary(self) -> None:
        assert not looks_binary(b"-----BEGIN CERTIFICATE-----\nMIIB\n")


class TestClassify:
    """
    GIVEN fetched bytes in every shape a CA repository publishes
    WHEN classified
    THEN containers and certificates are told apart by content.
    """

    def test_armored_pkcs7(self, cert_der: bytes) -> None:
        assert classify(pkcs7_pem(cert_der)) is ContentKind.PKCS7

    def test_der_pkcs7_regardless_of_name(self, cert_der: bytes) -> None:
        assert classify(make_pkcs7(cert_der), "issuedto.crt") is ContentKind.PKCS7

    def test_der_certificate_regardless_of_name(self, cert_der: bytes) -> None:
        assert classify(cert_der, "caCertsIssuedBy.p7c") is ContentKind.CERTIFICATE

    def test_pem_certificate(self, cert_der: bytes) -> None:
        assert classify(to_pem(cert_der)) is ContentKind.CERTIFICATE

    def test_bare_base64_pkcs7_by_content(self, cert_der: bytes) -> None:
        assert classify(base64.b64encode(make_pkcs7(cert_der))) is ContentKind.PKCS7

    def test_suffix_is_hint_for_unparseable_base64(self) -> None:
        """
        GIVEN Base64-looking text that does not decode
        WHEN classified with a .p7c name
        THEN the suffix decides: PKCS7.
        """
        assert classify(b"not base64 at all!", "ca.p7c") is ContentKind.PKCS7
        assert classify(b"not base64 at all!", "ca.crt") is ContentKind.CERTIFICATE


class TestHelpers:
    def test_certificate_blocks_in_file_order(self, cert_der: bytes) -> None:
        other = make_certificate("Other CA", ski=b"O1", aki=b"R1")
        text = b"subject= x\n" + to_pem(cert_der) + b"\nissuer= y\n" + to_pem(other)
        blocks = certificate_blocks(text)
        assert blocks == [to_pem(cert_der), to_pem(other)]

    def test_strip_armor_removes_lines_and_whitespace(self) -> None:
        assert strip_armor(b"-----BEGIN PKCS7-----\nAB CD\r\nEF\n-----END PKCS7-----\n") == b"ABCDEF"

    def test_decode_base64_rejects_garbage(self) -> None:
        with pytest.raises(ValueError, match="Invalid Base64"):
            decode_base64(b"@@@@")

    def test_is_signed_data(self, cert_der: bytes) -> None:
        assert is_signed_data(make_pkcs7(cert_der))
        assert not is_signed_data(cert_der)
        assert not is_signed_data(b"\x00\x01")
