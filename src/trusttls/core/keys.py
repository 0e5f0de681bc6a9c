"""Key pair and CSR generation.

RSA keys are never smaller than 2048 bits; undersized or missing sizes
are raised to the minimum.  ECDSA keys use P-384 when 384 is requested
and P-256 otherwise.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec, rsa
from cryptography.x509.oid import NameOID

from trusttls.core.types import KeyKind
from trusttls.errors import UnsupportedKeyType, ValidationError

if TYPE_CHECKING:
    from collections.abc import Sequence

log = logging.getLogger(__name__)

MIN_RSA_KEY_SIZE = 2048
_RSA_PUBLIC_EXPONENT = 65537

_EC_CURVES: dict[int, type[ec.EllipticCurve]] = {
    256: ec.SECP256R1,
    384: ec.SECP384R1,
}

PrivateKey = rsa.RSAPrivateKey | ec.EllipticCurvePrivateKey


def generate_key(kind: str = KeyKind.RSA, size: int | None = None) -> PrivateKey:
    """Generate a private key of the given *kind*.

    Parameters
    ----------
    kind:
        ``"rsa"`` or ``"ecdsa"``.
    size:
        RSA modulus bits or ECDSA curve bits.  ``None`` or ``0`` picks
        the default for the kind.

    Raises
    ------
    UnsupportedKeyType
        If *kind* is not RSA or ECDSA.

    """
    normalized = (kind or KeyKind.RSA).lower()
    if normalized == KeyKind.RSA:
        bits = max(size or 0, MIN_RSA_KEY_SIZE)
        log.debug("Generating RSA-%d key", bits)
        return rsa.generate_private_key(
            public_exponent=_RSA_PUBLIC_EXPONENT,
            key_size=bits,
        )
    if normalized == KeyKind.ECDSA:
        curve_cls = _EC_CURVES.get(size or 256, ec.SECP256R1)
        log.debug("Generating ECDSA key on %s", curve_cls.name)
        return ec.generate_private_key(curve_cls())
    msg = f"unknown key type: {kind}"
    raise UnsupportedKeyType(msg)


def build_csr(
    common_name: str,
    dns_names: Sequence[str],
    key: PrivateKey,
) -> str:
    """Build a PEM-encoded PKCS#10 request signed with SHA-256."""
    if not common_name:
        msg = "common name is required to build a CSR"
        raise ValidationError(msg)

    builder = x509.CertificateSigningRequestBuilder().subject_name(
        x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, common_name)]),
    )
    names = list(dict.fromkeys(dns_names or [common_name]))
    builder = builder.add_extension(
        x509.SubjectAlternativeName([x509.DNSName(n) for n in names]),
        critical=False,
    )
    csr = builder.sign(key, hashes.SHA256())
    return csr.public_bytes(serialization.Encoding.PEM).decode("ascii")


def csr_to_der(csr_pem: str) -> bytes:
    """Convert a PEM CSR to DER for ACME finalisation."""
    csr = x509.load_pem_x509_csr(csr_pem.encode("ascii"))
    return csr.public_bytes(serialization.Encoding.DER)


def marshal_key_to_pem(key: object) -> bytes:
    """Serialise *key* as ``RSA PRIVATE KEY`` or ``EC PRIVATE KEY`` PEM.

    Raises
    ------
    UnsupportedKeyType
        For any key that is neither RSA nor elliptic curve.

    """
    if not isinstance(key, (rsa.RSAPrivateKey, ec.EllipticCurvePrivateKey)):
        msg = f"unsupported key type: {type(key).__name__}"
        raise UnsupportedKeyType(msg)
    return key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.TraditionalOpenSSL,
        encryption_algorithm=serialization.NoEncryption(),
    )
