"""Enumerated types shared across trusttls.

All enums inherit from ``StrEnum`` so their ``.value`` is a plain
string that YAML and JSON round-trip naturally.
"""

from __future__ import annotations

from enum import StrEnum

# ---------------------------------------------------------------------------
# Keys
# ---------------------------------------------------------------------------


class KeyKind(StrEnum):
    RSA = "rsa"
    ECDSA = "ecdsa"


# ---------------------------------------------------------------------------
# Providers
# ---------------------------------------------------------------------------


class ProviderName(StrEnum):
    """Issuance provider discriminator stored in renewal configs."""

    ACME = "acme"
    DIGICERT_REST = "digicert"
    DIGICERT_ACME = "digicert-acme"


class AccountProvider(StrEnum):
    """Provider tag stored inside account credential records."""

    LETSENCRYPT = "letsencrypt"
    DIGICERT = "digicert"


class ChallengeMethod(StrEnum):
    HTTP_01 = "http-01"


# ---------------------------------------------------------------------------
# DigiCert REST order
# ---------------------------------------------------------------------------


class OrderStatus(StrEnum):
    PENDING = "pending"
    ISSUED = "issued"
    FAILED = "failed"
    TIMEOUT = "timeout"
