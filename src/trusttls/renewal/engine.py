"""Renewal scheduler.

Persists one :class:`RenewalConfig` per domain and, on every run,
re-issues the certificates that are due.  A certificate is due when its
live file cannot be read, its expiry cannot be parsed, or it expires
within ``renewal.renew_before_days`` (30 by default).

Domains are processed one at a time.  A failure for one domain never
stops the run: failures are collected and raised together as a single
:class:`~trusttls.errors.RenewalError` once every record has been seen.

Usage::

    from trusttls.renewal import RenewalEngine

    engine = RenewalEngine(settings)
    summary = engine.run_all(verbose=True)
"""

from __future__ import annotations

import dataclasses
import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from pathlib import Path
from typing import TYPE_CHECKING

from trusttls.core.deadline import Deadline
from trusttls.core.types import ProviderName
from trusttls.errors import (
    InvalidCertificate,
    InvalidPEM,
    NotFound,
    RenewalError,
    TrustTLSError,
    ValidationError,
)
from trusttls.installers import installer_for
from trusttls.providers.registry import build_provider
from trusttls.renewal.config import RenewalConfig, dump_yaml, normalise, parse_yaml
from trusttls.store.certificates import CertificateStore
from trusttls.store.credentials import CredentialStore
from trusttls.store.paths import ensure_dir, path_component, write_file

if TYPE_CHECKING:
    from trusttls.config.settings import TrustTLSSettings
    from trusttls.installers.base import Installer
    from trusttls.providers.base import Provider

log = logging.getLogger(__name__)

CONFIG_SUFFIX = ".yaml"


@dataclass
class RenewalSummary:
    """Outcome of one :meth:`RenewalEngine.run_all` pass."""

    renewed: list[str] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)
    failed: dict[str, str] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return not self.failed


class RenewalEngine:
    """Owns the renewal directory and drives re-issuance.

    Parameters
    ----------
    settings:
        Loaded settings; storage locations, renewal window, provider
        flags and HTTP options are read from it.
    credentials, certificates:
        Stores rooted at ``settings.storage.base_dir``; created when
        omitted.
    provider_factory:
        Returns the provider for a record.  Defaults to
        :func:`~trusttls.providers.registry.build_provider`.
    installer_factory:
        Returns the installer for an install target name and certificate
        store.  Defaults to :func:`~trusttls.installers.installer_for`
        without confirmation prompts.
    now:
        Returns the current UTC time.

    """

    def __init__(  # noqa: PLR0913
        self,
        settings: TrustTLSSettings,
        *,
        credentials: CredentialStore | None = None,
        certificates: CertificateStore | None = None,
        provider_factory: Callable[[RenewalConfig], Provider] | None = None,
        installer_factory: Callable[[str, CertificateStore], Installer] | None = None,
        now: Callable[[], datetime] | None = None,
    ) -> None:
        self._settings = settings
        self.base_dir = Path(settings.storage.base_dir)
        self.renewal_dir = Path(settings.storage.renewal_dir)
        self._credentials = credentials or CredentialStore(self.base_dir)
        self._certificates = certificates or CertificateStore(self.base_dir)
        self._provider_factory = provider_factory or self._build_provider
        self._installer_factory = installer_factory or _default_installer
        self._now = now or (lambda: datetime.now(UTC))
        self.renew_before = timedelta(days=settings.renewal.renew_before_days)

    # -- stores ---------------------------------------------------------------

    def _uses_default_base(self, config: RenewalConfig) -> bool:
        return not config.base_dir or Path(config.base_dir) == self.base_dir

    def credential_store(self, config: RenewalConfig) -> CredentialStore:
        if self._uses_default_base(config):
            return self._credentials
        return CredentialStore(config.base_dir)

    def certificate_store(self, config: RenewalConfig) -> CertificateStore:
        if self._uses_default_base(config):
            return self._certificates
        return CertificateStore(config.base_dir)

    def _build_provider(self, config: RenewalConfig) -> Provider:
        return build_provider(
            config,
            credentials=self.credential_store(config),
            settings=self._settings,
        )

    # -- persistence ----------------------------------------------------------

    def config_path(self, domain: str) -> Path:
        return self.renewal_dir / f"{path_component(domain, 'domain')}{CONFIG_SUFFIX}"

    def save(self, config: RenewalConfig) -> Path:
        """Write *config*, replacing any record for the same domain.

        Raises
        ------
        ValidationError
            If the domain is empty or is not a single path component.

        """
        if not config.domain:
            msg = "domain required"
            raise ValidationError(msg)
        if not config.base_dir:
            config = dataclasses.replace(config, base_dir=str(self.base_dir))
        config = normalise(config)

        ensure_dir(self.renewal_dir)
        path = self.config_path(config.domain)
        write_file(path, dump_yaml(config).encode("utf-8"))
        log.info("Saved renewal config for %s", config.domain, extra={"domain": config.domain})
        return path

    def load(self, path: str | Path) -> RenewalConfig:
        """Read the record at *path*.

        Raises
        ------
        NotFound
            If the file does not exist.
        Corrupt
            If the file cannot be parsed.

        """
        path = Path(path)
        try:
            text = path.read_text(encoding="utf-8")
        except FileNotFoundError as exc:
            msg = f"renewal config {path} not found"
            raise NotFound(msg) from exc
        config = parse_yaml(text, source=str(path))
        if not config.base_dir:
            config = dataclasses.replace(config, base_dir=str(self.base_dir))
        return config

    def load_domain(self, domain: str) -> RenewalConfig:
        return self.load(self.config_path(domain))

    def list_configs(self) -> list[Path]:
        """Return every record file in the renewal directory, sorted."""
        if not self.renewal_dir.is_dir():
            return []
        return sorted(
            p for p in self.renewal_dir.iterdir() if p.is_file() and p.suffix == CONFIG_SUFFIX
        )

    # -- scheduling -----------------------------------------------------------

    def is_due(self, config: RenewalConfig) -> bool:
        """Return ``True`` if *config*'s certificate should be re-issued."""
        try:
            expiry = self.certificate_store(config).load_expiry(config.domain)
        except (NotFound, InvalidPEM, InvalidCertificate, OSError) as exc:
            log.debug("%s is due: %s", config.domain, exc)
            return True
        remaining = expiry - self._now()
        due = remaining < self.renew_before
        log.debug(
            "%s expires %s (%s left): %s",
            config.domain,
            expiry.isoformat(),
            remaining,
            "due" if due else "not due",
        )
        return due

    # -- issuance -------------------------------------------------------------

    def _obtain_and_store(self, config: RenewalConfig, deadline: Deadline | None) -> Path:
        provider = self._provider_factory(config)
        resource = provider.obtain_certificate([config.domain], deadline=deadline)
        store = self.certificate_store(config)
        live_dir = store.save(config.domain, resource)
        for target in config.targets:
            self._installer_factory(target, store).install(config.domain)
        return live_dir

    def issue(self, config: RenewalConfig, *, deadline: Deadline | None = None) -> Path:
        """Issue a certificate for *config* and remember it for renewal.

        The record is saved only after the certificate has been stored.
        For the generic ACME provider the account record under
        ``accounts/letsencrypt/`` is written as well.
        Returns the live certificate directory.
        """
        if not config.domain:
            msg = "domain required"
            raise ValidationError(msg)
        path_component(config.domain, "domain")
        config = normalise(config)
        live_dir = self._obtain_and_store(config, deadline)
        if config.provider == ProviderName.ACME and config.email and config.server:
            self.credential_store(config).save_letsencrypt_account(config.email, config.server)
        self.save(config)
        return live_dir

    def run_all(
        self,
        *,
        verbose: bool = False,
        deadline: Deadline | None = None,
    ) -> RenewalSummary:
        """Renew every due certificate.

        Raises
        ------
        RenewalError
            After all records were processed, if any of them failed.

        """
        if deadline is None and self._settings.renewal.run_timeout_seconds:
            deadline = Deadline(self._settings.renewal.run_timeout_seconds)
        report = log.info if verbose else log.debug
        summary = RenewalSummary()

        for path in self.list_configs():
            if deadline is not None and deadline.expired:
                summary.failed[path.stem] = "renewal run deadline reached"
                continue
            try:
                config = self.load(path)
            except TrustTLSError as exc:
                log.warning("Skipping unreadable renewal config %s: %s", path.name, exc)
                summary.failed[path.name] = str(exc)
                continue

            if not self.is_due(config):
                summary.skipped.append(config.domain)
                report("%s is not due for renewal", config.domain)
                continue

            try:
                self._obtain_and_store(config, deadline)
            except (TrustTLSError, OSError) as exc:
                log.error(  # noqa: TRY400
                    "Renewal failed for %s: %s",
                    config.domain,
                    exc,
                    extra={"domain": config.domain, "provider": config.provider},
                )
                summary.failed[config.domain] = str(exc)
                continue
            summary.renewed.append(config.domain)
            report("renewed %s", config.domain)

        log.info(
            "Renewal run finished: %d renewed, %d skipped, %d failed",
            len(summary.renewed),
            len(summary.skipped),
            len(summary.failed),
        )
        if summary.failed:
            raise RenewalError(summary.failed)
        return summary


def _default_installer(name: str, certificates: CertificateStore) -> Installer:
    return installer_for(name, certificates, assume_yes=True)
