"""
Resource fetcher adapter — local paths, http(s) and ftp locations → bytes.

Adapter layer — implements the ResourceFetcher port:
  - local files: read in place
  - http/https: httpx (sync), proxies from the standard environment
    variables, tenacity retry on transient network errors, and a mirror
    cache so re-runs only download what changed (If-Modified-Since → 304)
  - ftp: urllib, which is the only client in the stack that speaks FTP

All errors are captured into Result failures carrying a FetchError —
no exceptions leak to the crawl engine.
"""

from __future__ import annotations

import hashlib
import os
import urllib.request
from datetime import UTC, datetime
from email.utils import format_datetime, parsedate_to_datetime
from pathlib import Path
from urllib.parse import urlsplit

import httpx
import structlog
from railway import ErrorCode
from railway.result import Result
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from sia_crawler import __version__
from sia_crawler.domain.errors import FetchError
from sia_crawler.domain.models import FetchedResource, is_url

log = structlog.get_logger()

DEFAULT_USER_AGENT = f"SIACrawler {__version__}"


def _resource_name(url: str) -> str:
    """Last path segment of a URL (used as the format hint)."""
    return urlsplit(url).path.rstrip("/").rsplit("/", 1)[-1]


class HttpResourceFetcher:
    """
    Fetch certificates and PKCS7 containers by location.

    Implements the ResourceFetcher port. When `cache_dir` is set, every
    downloaded URL is mirrored to `<cache_dir>/<host>/<path>` and the copy's
    mtime is sent as If-Modified-Since on the next fetch.
    """

    def __init__(
        self,
        cache_dir: Path | None = None,
        timeout: float = 10,
        user_agent: str = DEFAULT_USER_AGENT,
    ) -> None:
        self._cache_dir = cache_dir
        self._timeout = timeout
        self._user_agent = user_agent

    def fetch(self, location: str) -> Result[FetchedResource]:
        """
        Resolve a location to bytes.

        Returns Result.failure(NOT_FOUND) for a missing local file,
        TIMEOUT_ERROR when the server does not answer in time, and
        EXTERNAL_SERVICE_ERROR for any other network or status error.
        """
        if not is_url(location):
            return self._read_file(location)
        if urlsplit(location).scheme.lower() == "ftp":
            return self._fetch_ftp(location)
        return self._fetch_http(location)

    # ─────────────────────── Local files ───────────────────────

    def _read_file(self, location: str) -> Result[FetchedResource]:
        path = Path(location).expanduser()
        if not path.is_file():
            error = FetchError(location, "file not found")
            return Result.failure(ErrorCode.NOT_FOUND, str(error), error)
        try:
            content = path.read_bytes()
        except OSError as e:
            error = FetchError(location, str(e))
            return Result.failure(ErrorCode.NOT_FOUND, str(error), error)
        log.debug("fetch.read_file", path=str(path), size_bytes=len(content))
        return Result.success(FetchedResource(location=location, content=content, name=path.name))

    # ─────────────────────── HTTP ───────────────────────

    def _fetch_http(self, url: str) -> Result[FetchedResource]:
        try:
            content = self._do_http_get(url)
        except httpx.TimeoutException:
            error = FetchError(url, f"timed out after {self._timeout}s")
            return Result.failure(ErrorCode.TIMEOUT_ERROR, str(error), error)
        except (httpx.HTTPError, httpx.InvalidURL, OSError) as e:
            error = FetchError(url, str(e))
            return Result.failure(ErrorCode.EXTERNAL_SERVICE_ERROR, str(error), error)
        return Result.success(FetchedResource(location=url, content=content, name=_resource_name(url)))

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=0.1, max=30),
        retry=retry_if_exception_type((httpx.TimeoutException, httpx.NetworkError)),
        reraise=True,
    )
    def _do_http_get(self, url: str) -> bytes:
        """HTTP GET with retry — exceptions are mapped by _fetch_http."""
        cached = self._cache_path(url)
        headers = {"User-Agent": self._user_agent}
        if cached is not None and cached.is_file():
            modified = datetime.fromtimestamp(cached.stat().st_mtime, UTC)
            headers["If-Modified-Since"] = format_datetime(modified, usegmt=True)

        with httpx.Client(timeout=self._timeout, follow_redirects=True) as client:
            response = client.get(url, headers=headers)

        if response.status_code == 304 and cached is not None and cached.is_file():
            log.debug("fetch.not_modified", url=url, cached=str(cached))
            return cached.read_bytes()

        response.raise_for_status()
        data = response.content
        log.debug("fetch.downloaded", url=url, size_bytes=len(data))
        if cached is not None:
            self._mirror(cached, data, response.headers.get("Last-Modified"))
        return data

    def _cache_path(self, url: str) -> Path | None:
        if self._cache_dir is None:
            return None
        parts = urlsplit(url)
        segments = [s for s in parts.path.split("/") if s not in ("", ".", "..")]
        if not segments or parts.path.endswith("/"):
            segments.append("index")
        if parts.query:
            digest = hashlib.sha256(parts.query.encode("utf-8")).hexdigest()[:16]
            segments[-1] = f"{segments[-1]}__{digest}"
        return self._cache_dir.joinpath(parts.netloc.replace(":", "_") or "_", *segments)

    @staticmethod
    def _mirror(path: Path, data: bytes, last_modified: str | None) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(data)
        if not last_modified:
            return
        try:
            timestamp = parsedate_to_datetime(last_modified).timestamp()
        except (TypeError, ValueError):
            return
        os.utime(path, (timestamp, timestamp))

    # ─────────────────────── FTP ───────────────────────

    def _fetch_ftp(self, url: str) -> Result[FetchedResource]:
        try:
            with urllib.request.urlopen(url, timeout=self._timeout) as response:  # noqa: S310
                content = response.read()
        except OSError as e:
            error = FetchError(url, str(e))
            return Result.failure(ErrorCode.EXTERNAL_SERVICE_ERROR, str(error), error)
        log.debug("fetch.downloaded", url=url, size_bytes=len(content))
        return Result.success(FetchedResource(location=url, content=content, name=_resource_name(url)))
