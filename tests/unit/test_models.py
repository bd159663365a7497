"""
Unit tests for domain models — value objects and the crawl frontier.

Verifies frozen dataclass behavior, computed properties, location
normalization and the enqueue-at-most-once frontier invariant.
"""

from __future__ import annotations

from pathlib import Path

import pytest

from sia_crawler.domain.models import (
    AcceptedCertificate,
    Certificate,
    CrawlFrontier,
    CrawlReport,
    Verdict,
    is_url,
    normalize_location,
)
from tests.conftest import make_certificate


class TestCertificate:
    """Verify Certificate value object behavior."""

    def test_frozen_prevents_mutation(self) -> None:
        """
        GIVEN a frozen Certificate
        WHEN attempting to modify a field
        THEN an AttributeError is raised.
        """
        cert = Certificate(der=b"\x30\x00")
        with pytest.raises(AttributeError):
            cert.source = "modified"  # type: ignore[misc]

    def test_dn_joins_rdns_with_commas(self) -> None:
        """
        GIVEN subject and issuer RDN tuples
        WHEN subject_dn / issuer_dn are read
        THEN the RDNs are joined with "," in encoded order.
        """
        cert = Certificate(der=b"", subject=("C=US", "O=Gov", "CN=A"), issuer=("C=US", "CN=Root"))
        assert cert.subject_dn == "C=US,O=Gov,CN=A"
        assert cert.issuer_dn == "C=US,CN=Root"

    def test_key_identifiers_as_hex(self) -> None:
        """
        GIVEN SKI/AKI bytes
        WHEN ski_hex / aki_hex are read
        THEN lower-case hex is returned, or None when absent.
        """
        cert = Certificate(der=b"", subject_key_identifier=b"\x01\xab")
        assert cert.ski_hex == "01ab"
        assert cert.aki_hex is None

    def test_pem_is_armored_certificate(self) -> None:
        """
        GIVEN a Certificate built from real DER
        WHEN pem is read
        THEN it is a single CERTIFICATE block ending with a newline.
        """
        cert = Certificate(der=make_certificate("Test CA", ski=b"T1", aki=b"R1"))
        assert cert.pem.startswith("-----BEGIN CERTIFICATE-----\n")
        assert cert.pem.endswith("-----END CERTIFICATE-----\n")
        assert all(len(line) <= 64 for line in cert.pem.splitlines())


class TestVerdict:
    def test_only_accepted_is_accepted(self) -> None:
        """
        GIVEN every Verdict
        WHEN .accepted is read
        THEN only ACCEPTED reports True.
        """
        assert [v for v in Verdict if v.accepted] == [Verdict.ACCEPTED]


class TestCrawlReport:
    def test_trust_anchor_is_first_bundle_entry(self) -> None:
        """
        GIVEN a report whose bundle has two entries
        WHEN trust_anchor and accepted_count are read
        THEN the first certificate and 2 are returned.
        """
        first = Certificate(der=b"1", subject=("CN=Root",))
        second = Certificate(der=b"2", subject=("CN=A",))
        report = CrawlReport(
            bundle=[AcceptedCertificate(first, "pem1"), AcceptedCertificate(second, "pem2")]
        )
        assert report.trust_anchor is first
        assert report.accepted_count == 2

    def test_empty_report_has_no_anchor(self) -> None:
        assert CrawlReport().trust_anchor is None


class TestLocations:
    """Verify URL detection and normalization used for deduplication."""

    @pytest.mark.parametrize(
        "location",
        ["http://ca.example/a.p7c", "HTTPS://ca.example/b.crt", "ftp://ca.example/c.cer"],
    )
    def test_urls_are_detected(self, location: str) -> None:
        assert is_url(location)

    def test_local_path_is_not_url(self, tmp_path: Path) -> None:
        """
        GIVEN an existing local file
        WHEN is_url is called
        THEN it is treated as a path.
        """
        path = tmp_path / "anchor.crt"
        path.write_bytes(b"x")
        assert not is_url(str(path))

    def test_url_scheme_and_host_are_lowercased(self) -> None:
        """
        GIVEN two spellings of the same URL
        WHEN normalized
        THEN they compare equal and the fragment is dropped.
        """
        assert normalize_location("HTTP://CA.Example/a.p7c#frag") == normalize_location(
            "http://ca.example/a.p7c"
        )

    def test_url_path_is_case_sensitive(self) -> None:
        assert normalize_location("http://ca.example/A.p7c") != normalize_location(
            "http://ca.example/a.p7c"
        )

    def test_relative_and_absolute_paths_match(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        """
        GIVEN a relative path and the same file as an absolute path
        WHEN normalized
        THEN both resolve to the same key.
        """
        monkeypatch.chdir(tmp_path)
        assert normalize_location("anchor.crt") == normalize_location(str(tmp_path / "anchor.crt"))


class TestCrawlFrontier:
    """Verify FIFO order and at-most-once enqueueing."""

    def test_fifo_order(self) -> None:
        """
        GIVEN three pushed locations
        WHEN popped
        THEN they come back in push order.
        """
        frontier = CrawlFrontier()
        for location in ("http://x/1", "http://x/2", "http://x/3"):
            frontier.push(location)
        assert [frontier.pop() for _ in range(3)] == ["http://x/1", "http://x/2", "http://x/3"]

    def test_location_is_enqueued_at_most_once(self) -> None:
        """
        GIVEN a location already pushed and popped
        WHEN it is pushed again (also in another spelling)
        THEN push returns False and the frontier stays empty.
        """
        frontier = CrawlFrontier()
        assert frontier.push("http://ca.example/a.p7c")
        frontier.pop()
        assert not frontier.push("http://ca.example/a.p7c")
        assert not frontier.push("HTTP://CA.EXAMPLE/a.p7c")
        assert not frontier

    def test_marked_seen_location_is_never_enqueued(self) -> None:
        """
        GIVEN the anchor location marked as seen
        WHEN an SIA pointer back to it is pushed
        THEN it is not enqueued.
        """
        frontier = CrawlFrontier()
        frontier.mark_seen("http://ca.example/root.crt")
        assert not frontier.push("http://ca.example/root.crt")
        assert len(frontier) == 0

    def test_visited_records_popped_locations(self) -> None:
        frontier = CrawlFrontier()
        frontier.push("http://x/1")
        frontier.push("http://x/2")
        frontier.pop()
        assert frontier.visited == ["http://x/1"]
        assert len(frontier) == 1
