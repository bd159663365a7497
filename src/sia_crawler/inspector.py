"""
Bundle inspector — `ca-bundle-inspect`.

Reads a bundle written by sia-crawler (or any concatenated PEM file),
prints selected certificate fields, and optionally extracts every
certificate into its own `.crt` file with a manifest.

Field values come from two parsers:
  - cryptography: names, serial, validity, version
  - asn1crypto:   algorithms and every extension value

Each CertField maps to one accessor returning `str | None`; None is shown
as UNDEFINED in verbose mode and omitted otherwise.
"""

from __future__ import annotations

import argparse
import re
import sys
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass
from enum import Enum, unique
from pathlib import Path

import structlog
from asn1crypto import core, pem
from asn1crypto import x509 as asn1_x509
from cryptography import x509

from sia_crawler.adapters.encoding import certificate_blocks
from sia_crawler.adapters.extensions import CA_REPOSITORY_OID, SUBJECT_INFO_ACCESS_OID
from sia_crawler.adapters.x509_decoder import rdn_strings
from sia_crawler.main import configure_structlog

log = structlog.get_logger()

UNDEFINED = "UNDEFINED"
MANIFEST_NAME = "manifest.txt"
_MANIFEST_SEPARATOR = "\n----------------------------------------\n\n"
_LEAF_PREFIX = re.compile(r"OU=|CN=")


@dataclass(frozen=True, slots=True)
class ParsedCertificate:
    """One bundle certificate, loaded by both parsers."""

    pem: str
    crypto: x509.Certificate
    asn1: asn1_x509.Certificate

    @classmethod
    def from_pem(cls, block: str) -> ParsedCertificate:
        _, _, der = pem.unarmor(block.encode("ascii"))
        return cls(
            pem=block,
            crypto=x509.load_der_x509_certificate(der),
            asn1=asn1_x509.Certificate.load(der),
        )


def parse_bundle(text: str) -> list[str]:
    """PEM certificate blocks in file order; header lines between them are ignored."""
    return [block.decode("ascii") for block in certificate_blocks(text.encode("utf-8"))]


# ─────────────────────── Field accessors ───────────────────────


def _dn(name: x509.Name) -> str:
    return ",".join(rdn_strings(name))


def _join(values: Iterable[object]) -> str | None:
    items = [str(value) for value in values]
    return ", ".join(items) if items else None


def _hex(value: bytes | None) -> str | None:
    return value.hex() if value else None


def _basic_constraints(cert: ParsedCertificate) -> str | None:
    value = cert.asn1.basic_constraints_value
    if value is None:
        return None
    text = "CA:TRUE" if value["ca"].native else "CA:FALSE"
    path_len = value["path_len_constraint"].native
    return f"{text}, pathlen:{path_len}" if path_len is not None else text


def _key_usage(cert: ParsedCertificate) -> str | None:
    value = cert.asn1.key_usage_value
    return _join(sorted(value.native)) if value is not None else None


def _extended_key_usage(cert: ParsedCertificate) -> str | None:
    value = cert.asn1.extended_key_usage_value
    return _join(value.native) if value is not None else None


def _subject_alt_name(cert: ParsedCertificate) -> str | None:
    value = cert.asn1.subject_alt_name_value
    if value is None:
        return None
    return _join(f"{general_name.name}:{general_name.native}" for general_name in value)


def _certificate_policies(cert: ParsedCertificate) -> str | None:
    value = cert.asn1.certificate_policies_value
    if value is None:
        return None
    return _join(policy["policy_identifier"].dotted for policy in value)


def _subject_info_access(cert: ParsedCertificate) -> str | None:
    extensions = cert.asn1["tbs_certificate"]["extensions"]
    if isinstance(extensions, core.Void):
        return None
    for extension in extensions:
        if extension["extn_id"].dotted != SUBJECT_INFO_ACCESS_OID:
            continue
        descriptions = asn1_x509.SubjectInfoAccessSyntax.load(extension["extn_value"].contents)
        return _join(
            description["access_location"].native
            for description in descriptions
            if description["access_method"].dotted == CA_REPOSITORY_OID
        )
    return None


def _subject_email(cert: ParsedCertificate) -> str | None:
    emails = [
        attribute.value
        for attribute in cert.crypto.subject.get_attributes_for_oid(x509.NameOID.EMAIL_ADDRESS)
    ]
    san = cert.asn1.subject_alt_name_value
    if san is not None:
        emails.extend(name.native for name in san if name.name == "rfc822_name")
    return _join(emails)


def _public_key_size(cert: ParsedCertificate) -> str | None:
    return str(cert.asn1.public_key.bit_size)


_ACCESSORS: dict[str, Callable[[ParsedCertificate], str | None]] = {
    "subject": lambda c: _dn(c.crypto.subject),
    "issuer": lambda c: _dn(c.crypto.issuer),
    "serial": lambda c: format(c.crypto.serial_number, "x"),
    "not_before": lambda c: c.crypto.not_valid_before_utc.ctime(),
    "not_after": lambda c: c.crypto.not_valid_after_utc.ctime(),
    "version": lambda c: c.crypto.version.name,
    "signature_algorithm": lambda c: c.asn1["signature_algorithm"]["algorithm"].native,
    "public_key_algorithm": lambda c: c.asn1.public_key.algorithm,
    "public_key_size": _public_key_size,
    "key_usage": _key_usage,
    "extended_key_usage": _extended_key_usage,
    "subject_alt_name": _subject_alt_name,
    "basic_constraints": _basic_constraints,
    "certificate_policies": _certificate_policies,
    "subject_key_identifier": lambda c: _hex(c.asn1.key_identifier),
    "authority_key_identifier": lambda c: _hex(c.asn1.authority_key_identifier),
    "subject_info_access": _subject_info_access,
    "subject_email": _subject_email,
}


@unique
class CertField(Enum):
    """Every field the inspector can print, in display order."""

    SUBJECT = "subject"
    ISSUER = "issuer"
    SERIAL = "serial"
    NOT_BEFORE = "not_before"
    NOT_AFTER = "not_after"
    VERSION = "version"
    SIGNATURE_ALGORITHM = "signature_algorithm"
    PUBLIC_KEY_ALGORITHM = "public_key_algorithm"
    PUBLIC_KEY_SIZE = "public_key_size"
    KEY_USAGE = "key_usage"
    EXTENDED_KEY_USAGE = "extended_key_usage"
    SUBJECT_ALT_NAME = "subject_alt_name"
    BASIC_CONSTRAINTS = "basic_constraints"
    CERTIFICATE_POLICIES = "certificate_policies"
    SUBJECT_KEY_IDENTIFIER = "subject_key_identifier"
    AUTHORITY_KEY_IDENTIFIER = "authority_key_identifier"
    SUBJECT_INFO_ACCESS = "subject_info_access"
    SUBJECT_EMAIL = "subject_email"

    def read(self, cert: ParsedCertificate) -> str | None:
        """The field value, or None when absent or unreadable."""
        try:
            return _ACCESSORS[self.value](cert)
        except (ValueError, TypeError, KeyError, AttributeError) as e:
            log.debug("inspect.field_unreadable", field=self.value, error=str(e))
            return None


DEFAULT_FIELDS = (CertField.SUBJECT, CertField.ISSUER, CertField.NOT_BEFORE, CertField.NOT_AFTER)


def describe(
    cert: ParsedCertificate,
    fields: Sequence[CertField] = (),
    verbose: bool = False,
) -> list[str]:
    """
    `name: value` lines for one certificate.

    With no explicit fields, verbose mode shows every field and normal mode
    shows DEFAULT_FIELDS. Absent values appear as UNDEFINED only when verbose.
    """
    selected = fields or (tuple(CertField) if verbose else DEFAULT_FIELDS)
    lines = []
    for field in selected:
        value = field.read(cert)
        if value is None and not verbose:
            continue
        lines.append(f"{field.value}: {value if value is not None else UNDEFINED}")
    return lines


# ─────────────────────── Extraction ───────────────────────


def extract_name(cert: ParsedCertificate) -> str:
    """Last subject RDN with spaces turned into `_` and the first CN=/OU= dropped."""
    rdns = rdn_strings(cert.crypto.subject)
    if not rdns:
        return "unknown"
    leaf = rdns[-1].replace(" ", "_")
    leaf = _LEAF_PREFIX.sub("", leaf, count=1).replace("/", "_")
    return leaf or "unknown"


def _unique_path(directory: Path, stem: str) -> Path:
    path = directory / f"{stem}.crt"
    counter = 0
    while path.exists():
        counter += 1
        path = directory / f"{stem}_{counter}.crt"
    return path


def extract(certs: Sequence[ParsedCertificate], directory: Path, numbered: bool = False) -> list[Path]:
    """
    Write each certificate to its own `.crt` file plus a manifest.

    Numbered mode prefixes the 1-based position as four digits
    (`0001-<name>.crt`); otherwise name collisions get `_1`, `_2`, ...
    """
    directory.mkdir(parents=True, exist_ok=True)
    written: list[Path] = []
    manifest: list[str] = []
    for position, cert in enumerate(certs, start=1):
        name = extract_name(cert)
        if numbered:
            path = directory / f"{position:04d}-{name}.crt"
        else:
            path = _unique_path(directory, name)
        path.write_text(cert.pem, encoding="ascii")
        written.append(path)

        entry = [f"file: {path.name}"]
        entry += describe(cert, (CertField.SUBJECT, CertField.ISSUER, CertField.NOT_AFTER), verbose=True)
        manifest.append("\n".join(entry) + "\n" + _MANIFEST_SEPARATOR)

    (directory / MANIFEST_NAME).write_text("".join(manifest), encoding="utf-8")
    log.info("inspect.extracted", directory=str(directory), certificates=len(written))
    return written


def load_certificates(text: str) -> list[ParsedCertificate]:
    """Parse every block, skipping (and logging) the ones that do not decode."""
    certs = []
    for index, block in enumerate(parse_bundle(text)):
        try:
            certs.append(ParsedCertificate.from_pem(block))
        except (ValueError, TypeError) as e:
            log.warning("inspect.undecodable_block", index=index, error=str(e))
    return certs


# ─────────────────────── CLI ───────────────────────


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="ca-bundle-inspect",
        description="Print certificate fields from a CA bundle, or split it into files.",
    )
    parser.add_argument("-f", "--bundle", "--file", dest="bundle", type=Path, required=True)
    target = parser.add_mutually_exclusive_group()
    target.add_argument("--extract", metavar="DIR", type=Path, help="Write each certificate to DIR")
    target.add_argument(
        "-x",
        dest="extract_default",
        action="store_true",
        help="Extract into <bundle-name>_certs",
    )
    parser.add_argument("-n", dest="numbered", action="store_true", help="Number extracted files")
    parser.add_argument("-v", "--verbose", action="store_true", help="Show every field")
    parser.add_argument(
        "--field",
        dest="fields",
        action="append",
        default=[],
        choices=[field.value for field in CertField],
        metavar="NAME",
        help="Field to print (repeatable)",
    )
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    configure_structlog("DEBUG" if args.verbose else "WARNING")

    try:
        text = args.bundle.read_text(encoding="utf-8", errors="replace")
    except OSError as e:
        print(f"Error: cannot read {args.bundle}: {e}", file=sys.stderr)  # noqa: T201
        return 1

    certs = load_certificates(text)
    directory = args.extract
    if args.extract_default:
        directory = Path(f"{args.bundle.name}_certs")

    if directory is not None:
        written = extract(certs, directory, numbered=args.numbered)
        print(f"Extracted {len(written)} certificates to {directory}")  # noqa: T201
        return 0

    fields = [CertField(name) for name in args.fields]
    for cert in certs:
        print()  # noqa: T201
        for line in describe(cert, fields, args.verbose):
            print(line)  # noqa: T201
    return 0


if __name__ == "__main__":
    sys.exit(main())
