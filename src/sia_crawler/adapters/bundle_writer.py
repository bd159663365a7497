"""
Bundle output adapters — the ca-bundle file and the per-certificate archive.

Adapter layer — implements the BundleWriter and CertificateArchive ports.

Bundle format, one entry per accepted certificate in discovery order:

    subject= C=US,O=U.S. Government,OU=FPKI,CN=Federal Common Policy CA G2
    issuer= C=US,O=U.S. Government,OU=FPKI,CN=Federal Common Policy CA G2
    not_after= Sun Oct 14 20:35:04 2040
    -----BEGIN CERTIFICATE-----
    ...
    -----END CERTIFICATE-----
    <blank line>

The bundle is written to a temporary file next to the destination and moved
into place with os.replace, so readers never see a half-written bundle.
"""

from __future__ import annotations

import os
import re
import tempfile
from pathlib import Path

import structlog
from railway import ErrorCode
from railway.result import Result

from sia_crawler.domain.models import AcceptedCertificate, Certificate

log = structlog.get_logger()

_LEAF_PREFIX = re.compile(r"CN=|OU=")
_UNSAFE_FILENAME = re.compile(r"[^\w.,=@+-]")


def format_entry(entry: AcceptedCertificate) -> str:
    cert = entry.certificate
    not_after = cert.not_after.ctime() if cert.not_after else "UNDEFINED"
    return (
        f"subject= {cert.subject_dn}\n"
        f"issuer= {cert.issuer_dn}\n"
        f"not_after= {not_after}\n"
        f"{entry.pem}\n"
    )


def render_bundle(bundle: list[AcceptedCertificate]) -> str:
    return "".join(format_entry(entry) for entry in bundle)


class PemBundleWriter:
    """
    Write accepted certificates as a human-annotated PEM bundle.

    Implements the BundleWriter port.
    """

    def write(self, bundle: list[AcceptedCertificate], destination: Path) -> Result[Path]:
        return Result.from_computation(
            lambda: self._do_write(bundle, destination),
            ErrorCode.TECHNICAL_ERROR,
            f"Failed to write bundle to {destination}",
        )

    def _do_write(self, bundle: list[AcceptedCertificate], destination: Path) -> Path:
        destination = destination.expanduser()
        destination.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(prefix=".ca_bundle.", dir=destination.parent)
        try:
            with os.fdopen(fd, "w", encoding="utf-8", newline="\n") as fh:
                fh.write(render_bundle(bundle))
            os.replace(tmp_name, destination)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise
        log.info("bundle.written", path=str(destination), certificates=len(bundle))
        return destination


# ─────────────────────── Work-dir archive ───────────────────────


def leaf_name(rdns: tuple[str, ...]) -> str:
    """
    Filename-friendly form of the last RDN: whitespace removed and the
    first `CN=` / `OU=` prefix dropped.
    """
    if not rdns:
        return "unknown"
    leaf = "".join(rdns[-1].split())
    leaf = _LEAF_PREFIX.sub("", leaf, count=1)
    return _UNSAFE_FILENAME.sub("_", leaf) or "unknown"


class WorkDirArchive:
    """
    Keep a PEM copy of every accepted certificate in the crawl work dir.

    Implements the CertificateArchive port. Files are named
    `<subject>--<issuer>.cer`. A file already holding the same certificate is
    reused; a different certificate with the same names gets `-2`, `-3`, ...
    after the subject.
    """

    def __init__(self, directory: Path) -> None:
        self._directory = directory

    def store(self, certificate: Certificate) -> Result[Path]:
        return Result.from_computation(
            lambda: self._do_store(certificate),
            ErrorCode.TECHNICAL_ERROR,
            f"Failed to archive certificate {certificate.subject_dn}",
        )

    def _do_store(self, certificate: Certificate) -> Path:
        self._directory.mkdir(parents=True, exist_ok=True)
        subject = leaf_name(certificate.subject)
        issuer = leaf_name(certificate.issuer)
        path = self._directory / f"{subject}--{issuer}.cer"
        counter = 1
        while path.exists():
            if path.read_bytes() == certificate.pem.encode("ascii"):
                log.debug("archive.unchanged", path=str(path))
                return path
            counter += 1
            path = self._directory / f"{subject}-{counter}--{issuer}.cer"
        path.write_text(certificate.pem, encoding="ascii")
        log.debug("archive.stored", path=str(path))
        return path
