"""
Shared test fixtures and helpers for the sia-crawler test suite.

Certificates are generated on the fly with cryptography's builder; the SKI
and AKI values are arbitrary labels (b"ROOT1", b"A1") so tests can describe
certificate graphs the way a PKI diagram would. PKCS7 certs-only containers
are assembled with asn1crypto.

FakeFetcher serves bytes from a dict, so crawl tests run the real decoder,
splitter and extractor without touching the network.
"""

from __future__ import annotations

from collections.abc import Iterable
from datetime import UTC, datetime

import pytest
from asn1crypto import cms, pem
from asn1crypto import x509 as asn1_x509
from cryptography import x509
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.hazmat.primitives.serialization import Encoding
from cryptography.x509.oid import NameOID, SubjectInformationAccessOID
from railway import ErrorCode
from railway.result import Result

from sia_crawler.domain.errors import FetchError
from sia_crawler.domain.models import FetchedResource

REQUIRED_OID = "2.16.840.1.101.3.2.1.3.13"
OTHER_OID = "2.16.840.1.101.3.2.1.3.6"

NOT_BEFORE = datetime(2020, 1, 1, tzinfo=UTC)
NOT_AFTER = datetime(2040, 10, 14, 20, 35, 4, tzinfo=UTC)

_SIGNING_KEY = ec.generate_private_key(ec.SECP256R1())


def _name(
    common_name: str, org_unit: str | None = None, organization: str = "U.S. Government"
) -> x509.Name:
    attributes = [
        x509.NameAttribute(NameOID.COUNTRY_NAME, "US"),
        x509.NameAttribute(NameOID.ORGANIZATION_NAME, organization),
    ]
    if org_unit:
        attributes.append(x509.NameAttribute(NameOID.ORGANIZATIONAL_UNIT_NAME, org_unit))
    attributes.append(x509.NameAttribute(NameOID.COMMON_NAME, common_name))
    return x509.Name(attributes)


def make_certificate(
    common_name: str,
    *,
    ski: bytes | None = None,
    aki: bytes | None = None,
    issuer_cn: str | None = None,
    sia: str | None = None,
    policies: Iterable[str] = (REQUIRED_OID,),
    org_unit: str | None = "FPKI",
    email: str | None = None,
    organization: str = "U.S. Government",
) -> bytes:
    """DER bytes of a CA certificate with the given identifiers and extensions."""
    subject = _name(common_name, org_unit, organization)
    if email:
        subject = x509.Name([*subject, x509.NameAttribute(NameOID.EMAIL_ADDRESS, email)])
    issuer = _name(issuer_cn, org_unit, organization) if issuer_cn else subject

    builder = (
        x509.CertificateBuilder()
        .subject_name(subject)
        .issuer_name(issuer)
        .public_key(_SIGNING_KEY.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(NOT_BEFORE)
        .not_valid_after(NOT_AFTER)
        .add_extension(x509.BasicConstraints(ca=True, path_length=None), critical=True)
    )
    if ski is not None:
        builder = builder.add_extension(x509.SubjectKeyIdentifier(ski), critical=False)
    if aki is not None:
        builder = builder.add_extension(
            x509.AuthorityKeyIdentifier(
                key_identifier=aki,
                authority_cert_issuer=None,
                authority_cert_serial_number=None,
            ),
            critical=False,
        )
    if sia is not None:
        builder = builder.add_extension(
            x509.SubjectInformationAccess(
                [
                    x509.AccessDescription(
                        SubjectInformationAccessOID.CA_REPOSITORY,
                        x509.UniformResourceIdentifier(sia),
                    )
                ]
            ),
            critical=False,
        )
    policies = list(policies)
    if policies:
        builder = builder.add_extension(
            x509.CertificatePolicies(
                [x509.PolicyInformation(x509.ObjectIdentifier(oid), None) for oid in policies]
            ),
            critical=False,
        )
    return builder.sign(_SIGNING_KEY, hashes.SHA256()).public_bytes(Encoding.DER)


def to_pem(der: bytes) -> bytes:
    return pem.armor("CERTIFICATE", der)


def make_pkcs7(*certificates: bytes) -> bytes:
    """DER bytes of a certs-only SignedData holding the given DER certificates."""
    signed_data = cms.SignedData(
        {
            "version": "v1",
            "digest_algorithms": [],
            "encap_content_info": {"content_type": "data"},
            "certificates": [
                cms.CertificateChoices(name="certificate", value=asn1_x509.Certificate.load(der))
                for der in certificates
            ],
            "signer_infos": [],
        }
    )
    return cms.ContentInfo({"content_type": "signed_data", "content": signed_data}).dump()


def pkcs7_pem(*certificates: bytes) -> bytes:
    return pem.armor("PKCS7", make_pkcs7(*certificates))


class FakeFetcher:
    """ResourceFetcher serving canned bytes; unknown locations are NOT_FOUND."""

    def __init__(self, resources: dict[str, bytes]) -> None:
        self.resources = dict(resources)
        self.calls: list[str] = []

    def fetch(self, location: str) -> Result[FetchedResource]:
        self.calls.append(location)
        content = self.resources.get(location)
        if content is None:
            error = FetchError(location, "404 Not Found")
            return Result.failure(ErrorCode.NOT_FOUND, str(error), error)
        name = location.rstrip("/").rsplit("/", 1)[-1]
        return Result.success(FetchedResource(location=location, content=content, name=name))


@pytest.fixture()
def anchor_der() -> bytes:
    """Self-signed trust anchor: SKI=ROOT1, SIA → http://ca.example/a.p7c."""
    return make_certificate(
        "Federal Common Policy CA",
        ski=b"ROOT1",
        aki=b"ROOT1",
        sia="http://ca.example/a.p7c",
        policies=(),
    )


@pytest.fixture()
def intermediate_der() -> bytes:
    """Issued by the anchor, asserts the required policy, SIA → b.crt."""
    return make_certificate(
        "Agency CA A",
        ski=b"A1",
        aki=b"ROOT1",
        issuer_cn="Federal Common Policy CA",
        sia="http://ca.example/b.crt",
    )
