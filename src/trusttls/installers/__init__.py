"""Web server installers.

Usage::

    from trusttls.installers import installer_for

    installer = installer_for("nginx", certificate_store, assume_yes=True)
    installer.install("example.com")
"""

from __future__ import annotations

from types import MappingProxyType
from typing import TYPE_CHECKING, Any

from trusttls.errors import UnsupportedProvider
from trusttls.installers.apache import ApacheInstaller
from trusttls.installers.base import Installer
from trusttls.installers.nginx import NginxInstaller

if TYPE_CHECKING:
    from trusttls.store.certificates import CertificateStore

INSTALLERS: MappingProxyType[str, type[Installer]] = MappingProxyType(
    {
        ApacheInstaller.server_type: ApacheInstaller,
        NginxInstaller.server_type: NginxInstaller,
    },
)


def installer_for(name: str, certificates: CertificateStore, **kwargs: Any) -> Installer:
    """Return an installer for the web server *name*.

    Raises
    ------
    UnsupportedProvider
        If *name* is not a known web server.

    """
    cls = INSTALLERS.get(name.strip().lower())
    if cls is None:
        msg = f"unknown install target {name!r}; known: {sorted(INSTALLERS)}"
        raise UnsupportedProvider(msg)
    return cls(certificates, **kwargs)


__all__ = [
    "INSTALLERS",
    "ApacheInstaller",
    "Installer",
    "NginxInstaller",
    "installer_for",
]
