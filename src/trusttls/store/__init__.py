"""On-disk persistence for account credentials and issued certificates."""

from trusttls.store.certificates import CertificatePaths, CertificateStore, parse_expiry
from trusttls.store.credentials import AccountCredentials, CredentialStore

__all__ = [
    "AccountCredentials",
    "CertificatePaths",
    "CertificateStore",
    "CredentialStore",
    "parse_expiry",
]
