"""
Application entry point — `sia-crawler`.

Composition root: creates concrete adapters, injects them into the crawl
engine and runs one rebuild.

This is the ONLY place where concrete classes are instantiated.
Everything else depends on Protocol interfaces.

Responsibilities:
  1. Parse the command line and load settings (flags override environment)
  2. Configure structlog
  3. Create the fetcher, decoder, splitter, extractor, archive and writer
  4. Run the pipeline once
  5. Map fatal crawl failures to `FATAL:` on stderr and exit status 1
"""

from __future__ import annotations

import argparse
import logging
import shutil
import sys
from pathlib import Path

import structlog
from pydantic import ValidationError
from railway.result import Result

from sia_crawler import __version__
from sia_crawler.adapters.bundle_writer import PemBundleWriter, WorkDirArchive
from sia_crawler.adapters.extensions import ExtensionExtractor
from sia_crawler.adapters.fetcher import HttpResourceFetcher
from sia_crawler.adapters.pkcs7_splitter import Pkcs7ContainerSplitter
from sia_crawler.adapters.x509_decoder import X509CertificateDecoder
from sia_crawler.config import AppSettings, BundleSettings, CrawlSettings
from sia_crawler.crawler import CrawlEngine
from sia_crawler.domain.errors import FatalCrawlError
from sia_crawler.pipeline import run_pipeline


def configure_structlog(log_level: str = "INFO") -> None:
    """Human-readable console logging, filtered at `log_level`."""
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.StackInfoRenderer(),
            structlog.dev.set_exc_info,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.dev.ConsoleRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(
            getattr(logging, log_level.upper(), logging.INFO)
        ),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=False,
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="sia-crawler",
        description=(
            "Build a CA bundle by following Subject Information Access "
            "repository pointers from a trust anchor."
        ),
    )
    parser.add_argument("anchor", nargs="?", help="Trust anchor certificate (path or URL)")
    parser.add_argument("-o", "--output", type=Path, help="Bundle file to write")
    parser.add_argument("--work-dir", type=Path, help="Directory for downloads and archived certificates")
    parser.add_argument(
        "--delete-work-dir",
        action="store_true",
        default=None,
        help="Remove the work directory after each run",
    )
    parser.add_argument(
        "--exclude",
        metavar="PATTERN",
        nargs="+",
        help="Subject DN patterns to exclude (replaces the configured list)",
    )
    parser.add_argument("--policy-oid", metavar="OID", help="Required certificate policy OID")
    parser.add_argument("-v", "--verbose", action="store_true", help="Log every skipped item")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser


def apply_overrides(settings: AppSettings, args: argparse.Namespace) -> AppSettings:
    """
    Return settings with command-line flags applied.

    Sub-settings are re-validated so flag values go through the same checks
    as environment values. Raises ValidationError on bad input.
    """
    crawl: dict[str, object] = {}
    if args.anchor:
        crawl["anchor"] = args.anchor
    if args.policy_oid:
        crawl["required_policy_oid"] = args.policy_oid
    if args.exclude is not None:
        crawl["exclude_subjects"] = args.exclude

    bundle: dict[str, object] = {}
    if args.output is not None:
        bundle["output"] = args.output
    if args.work_dir is not None:
        bundle["work_dir"] = args.work_dir
    if args.delete_work_dir:
        bundle["delete_work_dir"] = True

    return settings.model_copy(
        update={
            "crawl": CrawlSettings.model_validate(settings.crawl.model_dump() | crawl),
            "bundle": BundleSettings.model_validate(settings.bundle.model_dump() | bundle),
            "log_level": "DEBUG" if args.verbose else settings.log_level,
        }
    )


def _create_engine(settings: AppSettings) -> CrawlEngine:
    """Instantiate all concrete adapters and inject them into the engine."""
    work_dir = settings.bundle.work_dir
    fetcher = HttpResourceFetcher(
        cache_dir=work_dir,
        timeout=settings.fetch.timeout_seconds,
        user_agent=settings.fetch.user_agent,
    )
    archive = WorkDirArchive(work_dir) if settings.bundle.archive_certificates else None
    return CrawlEngine(
        fetcher=fetcher,
        decoder=X509CertificateDecoder(),
        splitter=Pkcs7ContainerSplitter(),
        extractor=ExtensionExtractor(settings.crawl.required_policy_oid),
        exclude_patterns=settings.crawl.exclude_subjects,
        archive=archive,
    )


def rebuild(engine: CrawlEngine, settings: AppSettings) -> Result[int]:
    """One full crawl and bundle write, followed by optional work-dir cleanup."""
    try:
        return run_pipeline(
            engine=engine,
            writer=PemBundleWriter(),
            anchor=settings.crawl.anchor,
            destination=settings.bundle.output,
        )
    finally:
        if settings.bundle.delete_work_dir:
            shutil.rmtree(settings.bundle.work_dir, ignore_errors=True)


def _report_outcome(result: Result[int], settings: AppSettings) -> int:
    log = structlog.get_logger()
    if result.is_success():
        log.info(
            "app.bundle_ready",
            output=str(settings.bundle.output),
            certificates=result.value(),
        )
        return 0

    error = result.error()
    if isinstance(error.exception, FatalCrawlError):
        log.error(
            "crawl.fatal",
            anchor=error.exception.anchor,
            kind=error.exception.kind.value,
            error=error.message,
        )
    else:
        log.error("app.run_failed", code=error.code.value, error=error.message)
    print(f"FATAL: {error.message}", file=sys.stderr)  # noqa: T201
    return 1


def main(argv: list[str] | None = None) -> int:
    """Parse flags, wire dependencies and rebuild the bundle once."""
    args = build_parser().parse_args(argv)
    try:
        settings = apply_overrides(AppSettings(), args)
    except ValidationError as e:
        print(f"FATAL: Configuration error — {e}", file=sys.stderr)  # noqa: T201
        return 1

    configure_structlog(settings.log_level)
    log = structlog.get_logger()
    log.info(
        "app.starting",
        version=__version__,
        anchor=settings.crawl.anchor,
        work_dir=str(settings.bundle.work_dir),
        output=str(settings.bundle.output),
    )

    return _report_outcome(rebuild(_create_engine(settings), settings), settings)


if __name__ == "__main__":
    sys.exit(main())
