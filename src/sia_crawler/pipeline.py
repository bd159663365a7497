"""
Pipeline — one full bundle rebuild as a railway.

  crawl(anchor)
    → write(bundle, destination)
      → number of certificates written

Each stage returns Result[T]; a fatal crawl short-circuits before the
writer runs, so the previous bundle on disk is left untouched.
"""

from __future__ import annotations

from pathlib import Path

from railway.result import Result

from sia_crawler.crawler import CrawlEngine
from sia_crawler.domain.models import CrawlReport
from sia_crawler.domain.ports import BundleWriter


def _write_report(report: CrawlReport, writer: BundleWriter, destination: Path) -> Result[int]:
    return writer.write(report.bundle, destination).map(lambda _: report.accepted_count)


def run_pipeline(
    engine: CrawlEngine,
    writer: BundleWriter,
    anchor: str,
    destination: Path,
) -> Result[int]:
    """
    Crawl from `anchor` and write the resulting bundle to `destination`.

    Returns Result[int] with the number of certificates in the bundle,
    or the failure of the first stage that failed.
    """
    return engine.crawl(anchor).flat_map(
        lambda report: _write_report(report, writer, destination)
    )
