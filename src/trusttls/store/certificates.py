"""Issued certificate persistence.

Layout::

    {base}/live/{domain}/cert.pem|chain.pem|fullchain.pem|privkey.pem
    {base}/archive/{domain}/{YYYYMMDD-HHMMSS}/<same files>

The live copy is authoritative.  The archive copy is best effort: a
failure there is logged and otherwise ignored.
"""

from __future__ import annotations

import base64
import binascii
import logging
import re
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path
from typing import TYPE_CHECKING

from cryptography import x509

from trusttls.errors import InvalidCertificate, InvalidPEM, NotFound
from trusttls.store.paths import default_base_dir, ensure_dir, path_component, write_file

if TYPE_CHECKING:
    from trusttls.providers.base import CertificateResource

log = logging.getLogger(__name__)

CERT_FILE = "cert.pem"
CHAIN_FILE = "chain.pem"
FULLCHAIN_FILE = "fullchain.pem"
KEY_FILE = "privkey.pem"

ARCHIVE_TIMESTAMP_FORMAT = "%Y%m%d-%H%M%S"

_PEM_BLOCK_RE = re.compile(
    rb"-----BEGIN (?P<label>[A-Z0-9 ]+)-----"
    rb"(?P<body>[\s\S]*?)"
    rb"-----END (?P=label)-----",
)


@dataclass(frozen=True)
class CertificatePaths:
    """Deterministic file locations for one domain's live certificate."""

    cert: Path
    key: Path
    chain: Path
    fullchain: Path


class CertificateStore:
    """Owns the ``live/`` and ``archive/`` subtrees of a base directory.

    Parameters
    ----------
    base_dir:
        Root of the trusttls storage tree.
    clock:
        Returns the current time; used for archive directory names.

    """

    def __init__(
        self,
        base_dir: str | Path | None = None,
        *,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.base_dir = Path(base_dir) if base_dir else default_base_dir()
        self._clock = clock or (lambda: datetime.now(UTC))

    def live_dir(self, domain: str) -> Path:
        return self.base_dir / "live" / path_component(domain, "domain")

    def paths(self, domain: str) -> CertificatePaths:
        directory = self.live_dir(domain)
        return CertificatePaths(
            cert=directory / CERT_FILE,
            key=directory / KEY_FILE,
            chain=directory / CHAIN_FILE,
            fullchain=directory / FULLCHAIN_FILE,
        )

    def save(self, domain: str, resource: CertificateResource) -> Path:
        """Write *resource* to the live directory, then archive a copy.

        Returns the live directory.
        """
        artifacts = _artifacts(resource)

        live = ensure_dir(self.live_dir(domain))
        for name, data in artifacts.items():
            write_file(live / name, data)
        log.info("Stored certificate for %s in %s", domain, live, extra={"domain": domain})

        stamp = self._clock().strftime(ARCHIVE_TIMESTAMP_FORMAT)
        archive = self.base_dir / "archive" / domain / stamp
        try:
            ensure_dir(archive)
            for name, data in artifacts.items():
                write_file(archive / name, data)
        except OSError:
            log.warning(
                "Could not archive certificate for %s to %s",
                domain,
                archive,
                exc_info=True,
                extra={"domain": domain},
            )
        return live

    def load_expiry(self, domain: str) -> datetime:
        """Read the live leaf certificate for *domain* and return its expiry."""
        path = self.paths(domain).cert
        try:
            data = path.read_bytes()
        except FileNotFoundError as exc:
            msg = f"no certificate stored for {domain}"
            raise NotFound(msg) from exc
        return parse_expiry(data)


def _artifacts(resource: CertificateResource) -> dict[str, bytes]:
    artifacts = {
        CERT_FILE: resource.certificate,
        CHAIN_FILE: resource.issuer_certificate,
        FULLCHAIN_FILE: resource.full_chain,
    }
    if resource.private_key:
        artifacts[KEY_FILE] = resource.private_key
    return artifacts


def decode_first_pem_block(pem_bytes: bytes) -> bytes:
    """Return the DER payload of the first PEM block in *pem_bytes*.

    Raises
    ------
    InvalidPEM
        If no BEGIN/END pair is present or the body is not base64.

    """
    match = _PEM_BLOCK_RE.search(pem_bytes)
    if match is None:
        msg = "no PEM block found"
        raise InvalidPEM(msg)
    body = b"".join(match.group("body").split())
    try:
        return base64.b64decode(body, validate=True)
    except binascii.Error as exc:
        msg = f"PEM block body is not valid base64: {exc}"
        raise InvalidPEM(msg) from exc


def parse_expiry(pem_bytes: bytes) -> datetime:
    """Return the ``notAfter`` of the first certificate in *pem_bytes*.

    Raises
    ------
    InvalidPEM
        If no PEM block decodes.
    InvalidCertificate
        If the block is not an X.509 certificate.

    """
    der = decode_first_pem_block(pem_bytes)
    try:
        cert = x509.load_der_x509_certificate(der)
    except ValueError as exc:
        msg = f"failed to parse certificate: {exc}"
        raise InvalidCertificate(msg) from exc
    return cert.not_valid_after_utc
