"""
Validation policy — decides which discovered CA certificates join the bundle.

Domain layer — PURE BUSINESS LOGIC. No I/O; the policy-OID test is
injected as a predicate so this module never touches ASN.1.

Rules, first match wins:
  1. SELF_SIGNED              AKI absent, or AKI == own SKI
  2. CROSS_CERTIFIED          SKI == trust-anchor SKI
  3. MISSING_REQUIRED_POLICY  required certificate policy OID not asserted
  4. EXCLUDED_BY_SUBJECT      an exclude pattern matches the joined subject DN
  5. ACCEPTED

The trust anchor never goes through this policy.
"""

from __future__ import annotations

import re
from collections.abc import Callable, Iterable

from railway import ErrorCode
from railway.result import Result

from sia_crawler.domain.errors import ValidationRejected
from sia_crawler.domain.models import Certificate, Verdict


class ValidationPolicy:
    """
    Accept/reject decision for one crawl run.

    Built once the trust anchor is decoded; the anchor SKI is fixed for the
    lifetime of the instance. Exclude patterns are regular expressions
    searched anywhere in the subject DN, so plain substrings work as-is.
    """

    def __init__(
        self,
        trust_anchor_ski: bytes | None,
        has_required_policy: Callable[[Certificate], bool],
        exclude_patterns: Iterable[str] = (),
    ) -> None:
        self._trust_anchor_ski = trust_anchor_ski
        self._has_required_policy = has_required_policy
        self._exclude = [re.compile(pattern) for pattern in exclude_patterns]

    @property
    def trust_anchor_ski(self) -> bytes | None:
        return self._trust_anchor_ski

    def evaluate(self, cert: Certificate) -> Verdict:
        if _is_self_signed(cert):
            return Verdict.SELF_SIGNED
        if self._is_cross_certified(cert):
            return Verdict.CROSS_CERTIFIED
        if not self._has_required_policy(cert):
            return Verdict.MISSING_REQUIRED_POLICY
        if self.excluded_by(cert) is not None:
            return Verdict.EXCLUDED_BY_SUBJECT
        return Verdict.ACCEPTED

    def check(self, cert: Certificate) -> Result[Certificate]:
        """Railway form of `evaluate`: rejection becomes a BUSINESS_RULE_ERROR failure."""
        verdict = self.evaluate(cert)
        if verdict.accepted:
            return Result.success(cert)
        rejection = ValidationRejected(verdict, cert.subject_dn)
        return Result.failure(ErrorCode.BUSINESS_RULE_ERROR, str(rejection), rejection)

    def excluded_by(self, cert: Certificate) -> str | None:
        """The first exclude pattern matching the subject DN, if any."""
        subject = cert.subject_dn
        for pattern in self._exclude:
            if pattern.search(subject):
                return pattern.pattern
        return None

    def _is_cross_certified(self, cert: Certificate) -> bool:
        if self._trust_anchor_ski is None or cert.subject_key_identifier is None:
            return False
        return cert.subject_key_identifier == self._trust_anchor_ski


def _is_self_signed(cert: Certificate) -> bool:
    aki = cert.authority_key_identifier
    return aki is None or aki == cert.subject_key_identifier
