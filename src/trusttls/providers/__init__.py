"""Issuance providers.

Exports the provider base class, the issued certificate record and the
registry entry point.
"""

from trusttls.providers.base import CertificateResource, Provider
from trusttls.providers.registry import PROVIDER_BUILDERS, build_provider

__all__ = [
    "PROVIDER_BUILDERS",
    "CertificateResource",
    "Provider",
    "build_provider",
]
