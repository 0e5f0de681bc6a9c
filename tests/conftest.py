"""Root conftest for the trusttls test suite."""

from __future__ import annotations

import logging
import sys
from datetime import UTC, datetime, timedelta
from pathlib import Path

import pytest
from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.x509.oid import NameOID

# ---------------------------------------------------------------------------
# Make ``src/`` importable without installing the package
# ---------------------------------------------------------------------------
_SRC = str(Path(__file__).resolve().parent.parent / "src")
if _SRC not in sys.path:
    sys.path.insert(0, _SRC)


# ---------------------------------------------------------------------------
# Certificates
# ---------------------------------------------------------------------------


def make_cert_pem(
    common_name: str = "example.com",
    *,
    not_after: datetime | None = None,
) -> bytes:
    """Return a self-signed PEM certificate expiring at *not_after*."""
    key = ec.generate_private_key(ec.SECP256R1())
    now = datetime.now(UTC)
    not_after = not_after or now + timedelta(days=90)
    subject = x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, common_name)])
    cert = (
        x509.CertificateBuilder()
        .subject_name(subject)
        .issuer_name(subject)
        .public_key(key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(min(now, not_after) - timedelta(days=1))
        .not_valid_after(not_after)
        .sign(key, hashes.SHA256())
    )
    return cert.public_bytes(serialization.Encoding.PEM)


@pytest.fixture()
def cert_factory():
    """Factory fixture wrapping :func:`make_cert_pem`."""
    return make_cert_pem


# ---------------------------------------------------------------------------
# Settings
# ---------------------------------------------------------------------------


@pytest.fixture()
def settings(tmp_path: Path):
    """Default settings rooted at a temporary base directory."""
    from trusttls.config.settings import build_settings

    return build_settings({"storage": {"base_dir": str(tmp_path / "trusttls")}})


# ---------------------------------------------------------------------------
# Logging cleanup: configure_logging() detaches the ``trusttls`` logger
# from the root logger, which would hide records from ``caplog``.
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def reset_trusttls_logger():
    yield
    logger = logging.getLogger("trusttls")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    logger.propagate = True
    logger.setLevel(logging.NOTSET)
