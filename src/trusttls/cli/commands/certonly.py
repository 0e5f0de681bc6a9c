"""``trusttls certonly``: obtain a certificate and remember it for renewal."""

from __future__ import annotations

import logging
import sys
from pathlib import Path

from trusttls.core.types import ProviderName
from trusttls.errors import ValidationError
from trusttls.installers import INSTALLERS, installer_for
from trusttls.providers.acme import LETSENCRYPT_PRODUCTION, LETSENCRYPT_STAGING
from trusttls.renewal import RenewalConfig, RenewalEngine
from trusttls.store.certificates import CertificateStore

log = logging.getLogger(__name__)

_MACOS_WEBROOTS = ("/Library/WebServer/Documents", "/usr/local/var/www")


def detect_webroot(domain: str, certificates: CertificateStore) -> str:
    """Ask each installer for the document root serving *domain*."""
    for cls in INSTALLERS.values():
        webroot = cls(certificates).webroot(domain)
        if webroot:
            log.info("Detected %s webroot %s for %s", cls.server_type, webroot, domain)
            return webroot
    if sys.platform == "darwin":
        for candidate in _MACOS_WEBROOTS:
            if Path(candidate).is_dir():
                return candidate
    return ""


def _resolve_server(args) -> str:
    if args.server:
        return args.server
    if args.provider == ProviderName.ACME:
        return LETSENCRYPT_STAGING if args.staging else LETSENCRYPT_PRODUCTION
    # DigiCert variants take the URL stored with the account credentials.
    return ""


def run_certonly(settings, args) -> int:
    """Issue a certificate for ``args.domain`` and save its renewal record."""
    certificates = CertificateStore(settings.storage.base_dir)

    webroot = args.webroot
    if not webroot and args.provider != ProviderName.DIGICERT_REST:
        webroot = detect_webroot(args.domain, certificates)
        if not webroot:
            msg = (
                f"webroot not found for {args.domain}; pass --webroot explicitly "
                "or ensure an Apache/Nginx vhost on port 80 exists"
            )
            raise ValidationError(msg)

    config = RenewalConfig(
        domain=args.domain,
        email=args.email,
        server=_resolve_server(args),
        provider=args.provider,
        webroot=webroot,
        key_type=args.key_type or "",
        key_size=args.key_size or 0,
        targets=tuple(args.install),
        base_dir=settings.storage.base_dir,
    )

    engine = RenewalEngine(
        settings,
        certificates=certificates,
        installer_factory=lambda name, store: installer_for(name, store, assume_yes=args.yes),
    )
    live_dir = engine.issue(config)

    print(f"Certificate for {args.domain} saved to {live_dir}")
    for target in config.targets:
        print(f"Installed into {target}")
    print("The certificate will be renewed automatically by 'trusttls renew'.")
    return 0
