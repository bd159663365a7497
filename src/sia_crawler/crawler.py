"""
Crawl engine — breadth-first walk of the SIA graph from one trust anchor.

Orchestrates the ports; all I/O goes through injected adapters.

  Init → FetchingAnchor → ExpandingFrontier → Draining → Done

The anchor steps are a railway: any failure there is fatal and
short-circuits the crawl with a FatalCrawlError.

  fetch(anchor) → decode → accept unconditionally → push anchor SIA

The drain loop handles each location on its own:

  pop → fetch → classify → split/blocks → decode → policy → accept | reject
                                                              ↓
                                                    archive + push SIA

Failures inside the drain loop are recorded in the report and logged at
DEBUG; they never stop the crawl. Rejected certificates are not recursed.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field

import structlog
from railway import ErrorCode, FailureDescription
from railway.result import Result

from sia_crawler.adapters.encoding import ContentKind, certificate_blocks, classify
from sia_crawler.adapters.extensions import ExtensionExtractor
from sia_crawler.domain.errors import FatalCrawlError, FatalErrorKind, failure_kind
from sia_crawler.domain.models import (
    AcceptedCertificate,
    Certificate,
    CrawlFailure,
    CrawlFrontier,
    CrawlReport,
    FetchedResource,
    RejectedCertificate,
)
from sia_crawler.domain.policy import ValidationPolicy
from sia_crawler.domain.ports import (
    CertificateArchive,
    CertificateDecoder,
    ContainerSplitter,
    ResourceFetcher,
)

log = structlog.get_logger()


@dataclass
class _CrawlRun:
    """Mutable state of one crawl; created per call, never shared."""

    anchor_location: str
    policy: ValidationPolicy
    frontier: CrawlFrontier = field(default_factory=CrawlFrontier)
    bundle: list[AcceptedCertificate] = field(default_factory=list)
    rejected: list[RejectedCertificate] = field(default_factory=list)
    failures: list[CrawlFailure] = field(default_factory=list)

    def report(self) -> CrawlReport:
        return CrawlReport(
            bundle=list(self.bundle),
            rejected=list(self.rejected),
            failures=list(self.failures),
            visited=[self.anchor_location, *self.frontier.visited],
        )


def _fatal(kind: FatalErrorKind, anchor: str, code: ErrorCode, cause: str = "") -> FailureDescription:
    error = FatalCrawlError(kind, anchor, cause)
    return FailureDescription(code, str(error), error)


class CrawlEngine:
    """
    Build the list of accepted CA certificates reachable from a trust anchor.

    Stateless between calls: every `crawl()` creates its own frontier,
    bundle and policy, so one engine can serve repeated runs.
    """

    def __init__(
        self,
        fetcher: ResourceFetcher,
        decoder: CertificateDecoder,
        splitter: ContainerSplitter,
        extractor: ExtensionExtractor,
        exclude_patterns: Iterable[str] = (),
        archive: CertificateArchive | None = None,
    ) -> None:
        self._fetcher = fetcher
        self._decoder = decoder
        self._splitter = splitter
        self._extractor = extractor
        self._exclude_patterns = tuple(exclude_patterns)
        self._archive = archive

    def crawl(self, anchor_location: str) -> Result[CrawlReport]:
        """
        Crawl from `anchor_location` until the frontier is empty.

        Returns Result.failure carrying a FatalCrawlError when the anchor
        cannot be fetched, cannot be decoded, or has no SIA repository URI.
        """
        log.info("crawl.starting", anchor=anchor_location)
        return (
            self._fetch_anchor(anchor_location)
            .flat_map(lambda resource: self._decode_anchor(anchor_location, resource))
            .flat_map(lambda anchor: self._start_run(anchor_location, anchor))
            .map(self._drain)
        )

    # ─────────────────────── Anchor ───────────────────────

    def _fetch_anchor(self, anchor_location: str) -> Result[FetchedResource]:
        return self._fetcher.fetch(anchor_location).map_failure(
            lambda err: _fatal(
                FatalErrorKind.ANCHOR_UNREACHABLE, anchor_location, err.code, err.message
            )
        )

    def _decode_anchor(self, anchor_location: str, resource: FetchedResource) -> Result[Certificate]:
        return self._decoder.decode(resource.content, anchor_location).map_failure(
            lambda err: _fatal(
                FatalErrorKind.ANCHOR_UNDECODABLE,
                anchor_location,
                ErrorCode.TECHNICAL_ERROR,
                err.message,
            )
        )

    def _start_run(self, anchor_location: str, anchor: Certificate) -> Result[_CrawlRun]:
        sia_uri = self._extractor.sia_uri(anchor)
        if sia_uri is None:
            return Result.failure_from(
                _fatal(FatalErrorKind.NO_ANCHOR_SIA, anchor_location, ErrorCode.BUSINESS_RULE_ERROR)
            )

        run = _CrawlRun(
            anchor_location=anchor_location,
            policy=ValidationPolicy(
                trust_anchor_ski=anchor.subject_key_identifier,
                has_required_policy=self._extractor.has_required_policy,
                exclude_patterns=self._exclude_patterns,
            ),
        )
        run.frontier.mark_seen(anchor_location)
        self._accept(run, anchor, anchor_location)
        log.info(
            "crawl.anchor_accepted",
            subject=anchor.subject_dn,
            ski=anchor.ski_hex,
            sia=sia_uri,
        )
        return Result.success(run)

    # ─────────────────────── Drain loop ───────────────────────

    def _drain(self, run: _CrawlRun) -> CrawlReport:
        while run.frontier:
            location = run.frontier.pop()
            self._fetcher.fetch(location).either(
                lambda resource: self._process(run, resource),
                lambda err: self._record_failure(run, location, err),
            )

        report = run.report()
        log.info(
            "crawl.complete",
            anchor=run.anchor_location,
            accepted=len(report.bundle),
            rejected=len(report.rejected),
            failures=len(report.failures),
            visited=len(report.visited),
        )
        return report

    def _process(self, run: _CrawlRun, resource: FetchedResource) -> None:
        for candidate in self._candidates(run, resource):
            (
                self._decoder.decode(candidate, resource.location)
                .flat_map(run.policy.check)
                .either(
                    lambda cert: self._accept(run, cert, resource.location),
                    lambda err: self._reject(run, resource.location, err),
                )
            )

    def _candidates(self, run: _CrawlRun, resource: FetchedResource) -> list[bytes]:
        kind = classify(resource.content, resource.name)
        if kind is ContentKind.PKCS7:
            return self._splitter.split(resource.content, resource.location).either(
                lambda blobs: blobs,
                lambda err: self._record_failure(run, resource.location, err) or [],
            )
        return certificate_blocks(resource.content) or [resource.content]

    def _accept(self, run: _CrawlRun, cert: Certificate, location: str) -> None:
        run.bundle.append(AcceptedCertificate(certificate=cert, pem=cert.pem, source=location))
        log.debug("certificate.accepted", subject=cert.subject_dn, source=location)

        if self._archive is not None:
            self._archive.store(cert).peek_failure(
                lambda err: log.warning("archive.store_failed", subject=cert.subject_dn, error=err.message)
            )

        sia_uri = self._extractor.sia_uri(cert)
        if sia_uri is not None and run.frontier.push(sia_uri):
            log.debug("crawl.enqueued", location=sia_uri, pending=len(run.frontier))

    def _reject(self, run: _CrawlRun, location: str, err: FailureDescription) -> None:
        if err.code is not ErrorCode.BUSINESS_RULE_ERROR:
            self._record_failure(run, location, err)
            return
        verdict = failure_kind(err)
        subject = getattr(err.exception, "subject", "")
        run.rejected.append(RejectedCertificate(subject=subject, verdict=verdict, source=location))
        log.debug("certificate.rejected", subject=subject, verdict=verdict.value, source=location)

    def _record_failure(self, run: _CrawlRun, location: str, err: FailureDescription) -> None:
        run.failures.append(CrawlFailure(location=location, message=err.message))
        log.debug("crawl.skipped", location=location, code=err.code.value, error=err.message)
