"""
Extension extractor — decode the two extensions that drive the crawl.

Adapter layer — uses asn1crypto to decode the raw extnValue bytes kept on
each Certificate:

  Subject Information Access (1.3.6.1.5.5.7.1.11)
    SubjectInfoAccessSyntax ::= SEQUENCE OF AccessDescription
    → first CA Repository (1.3.6.1.5.5.7.48.5) URI starting with "http"

  Certificate Policies (2.5.29.32)
    CertificatePolicies ::= SEQUENCE OF PolicyInformation
    → is the required policy identifier present?

Absent extensions are not errors: no SIA means "nothing further to crawl
from here", no policies means "does not assert the required policy".
"""

from __future__ import annotations

import structlog
from asn1crypto import x509 as asn1_x509

from sia_crawler.domain.models import Certificate, ExtensionInfo

log = structlog.get_logger()

SUBJECT_INFO_ACCESS_OID = "1.3.6.1.5.5.7.1.11"
CERTIFICATE_POLICIES_OID = "2.5.29.32"
CA_REPOSITORY_OID = "1.3.6.1.5.5.7.48.5"
CA_ISSUERS_OID = "1.3.6.1.5.5.7.48.2"

# id-fpki-common-authentication
DEFAULT_REQUIRED_POLICY_OID = "2.16.840.1.101.3.2.1.3.13"


def repository_uris(cert: Certificate) -> list[str]:
    """Every CA Repository URI in the SIA extension, in encoded order."""
    raw = cert.extensions.get(SUBJECT_INFO_ACCESS_OID)
    if raw is None:
        return []
    try:
        access_descriptions = asn1_x509.SubjectInfoAccessSyntax.load(raw)
        uris = []
        for description in access_descriptions:
            if description["access_method"].dotted != CA_REPOSITORY_OID:
                continue
            location = description["access_location"]
            if location.name == "uniform_resource_identifier":
                uris.append(location.native)
        return uris
    except (ValueError, TypeError, KeyError) as e:
        log.debug("extension.sia_undecodable", subject=cert.subject_dn, error=str(e))
        return []


def extract_sia(cert: Certificate) -> str | None:
    """The first http(s) CA Repository URI, or None."""
    for uri in repository_uris(cert):
        if uri.startswith("http"):
            return uri
    return None


def policy_identifiers(cert: Certificate) -> list[str]:
    """Dotted policy OIDs asserted by the certificate, in encoded order."""
    raw = cert.extensions.get(CERTIFICATE_POLICIES_OID)
    if raw is None:
        return []
    try:
        policies = asn1_x509.CertificatePolicies.load(raw)
        return [policy["policy_identifier"].dotted for policy in policies]
    except (ValueError, TypeError, KeyError) as e:
        log.debug("extension.policies_undecodable", subject=cert.subject_dn, error=str(e))
        return []


def has_required_policy(cert: Certificate, required_oid: str) -> bool:
    return required_oid in policy_identifiers(cert)


class ExtensionExtractor:
    """Bind the configured required policy OID to the extraction functions."""

    def __init__(self, required_policy_oid: str = DEFAULT_REQUIRED_POLICY_OID) -> None:
        self._required_policy_oid = required_policy_oid

    @property
    def required_policy_oid(self) -> str:
        return self._required_policy_oid

    def sia_uri(self, cert: Certificate) -> str | None:
        return extract_sia(cert)

    def has_required_policy(self, cert: Certificate) -> bool:
        return has_required_policy(cert, self._required_policy_oid)

    def extension_info(self, cert: Certificate) -> ExtensionInfo:
        return ExtensionInfo(
            sia_repository_uri=extract_sia(cert),
            has_required_policy=self.has_required_policy(cert),
        )
