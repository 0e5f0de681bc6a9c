"""Typed, frozen dataclasses for every configuration section.

This module is the **single source of truth** for default values.
Every section is optional in the YAML file; a missing file yields the
defaults below.

Access pattern::

    from trusttls.config import load_settings

    settings = load_settings("/etc/trusttls/config.yaml")
    print(settings.http.timeout_seconds)
"""

from __future__ import annotations

from dataclasses import dataclass

from trusttls.store.paths import default_base_dir

# ---------------------------------------------------------------------------
# Storage
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class StorageSettings:
    """Where accounts, certificates and renewal configs live."""

    base_dir: str
    renewal_dir: str


def _build_storage(data: dict | None) -> StorageSettings:
    d = data or {}
    base_dir = d.get("base_dir") or str(default_base_dir())
    return StorageSettings(
        base_dir=base_dir,
        renewal_dir=d.get("renewal_dir") or f"{base_dir}/renewal",
    )


# ---------------------------------------------------------------------------
# HTTP
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class HttpSettings:
    """Outbound HTTP client behaviour shared by all providers."""

    timeout_seconds: int
    user_agent: str
    verify_ssl: bool
    proxy_url: str | None


def _build_http(data: dict | None) -> HttpSettings:
    d = data or {}
    return HttpSettings(
        timeout_seconds=d.get("timeout_seconds", 30),
        user_agent=d.get("user_agent", "trusttls/1.0"),
        verify_ssl=d.get("verify_ssl", True),
        proxy_url=d.get("proxy_url"),
    )


# ---------------------------------------------------------------------------
# Renewal
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class RenewalSettings:
    """When certificates are considered due and how long a run may take."""

    renew_before_days: int
    run_timeout_seconds: int | None


def _build_renewal(data: dict | None) -> RenewalSettings:
    d = data or {}
    return RenewalSettings(
        renew_before_days=d.get("renew_before_days", 30),
        run_timeout_seconds=d.get("run_timeout_seconds"),
    )


# ---------------------------------------------------------------------------
# Providers
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class DigiCertPollSettings:
    """Polling schedule for the DigiCert REST order status."""

    interval_seconds: float
    max_attempts: int


@dataclass(frozen=True)
class ProviderSettings:
    """Provider feature flags and tuning."""

    digicert_enabled: bool
    default_key_type: str
    default_key_size: int
    digicert_poll: DigiCertPollSettings


def _build_providers(data: dict | None) -> ProviderSettings:
    d = data or {}
    poll = d.get("digicert_poll") or {}
    return ProviderSettings(
        digicert_enabled=d.get("digicert_enabled", True),
        default_key_type=d.get("default_key_type", "rsa"),
        default_key_size=d.get("default_key_size", 2048),
        digicert_poll=DigiCertPollSettings(
            interval_seconds=poll.get("interval_seconds", 10),
            max_attempts=poll.get("max_attempts", 30),
        ),
    )


# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class LoggingSettings:
    """Log level, output format and optional rotating log file."""

    level: str
    format: str
    file: str | None
    max_file_size_bytes: int
    backup_count: int


def _build_logging(data: dict | None) -> LoggingSettings:
    d = data or {}
    return LoggingSettings(
        level=d.get("level", "INFO"),
        format=d.get("format", "text"),
        file=d.get("file"),
        max_file_size_bytes=d.get("max_file_size_bytes", 10 * 1024 * 1024),
        backup_count=d.get("backup_count", 5),
    )


# ---------------------------------------------------------------------------
# Root
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class TrustTLSSettings:
    """Root settings object."""

    storage: StorageSettings
    http: HttpSettings
    renewal: RenewalSettings
    providers: ProviderSettings
    logging: LoggingSettings


def build_settings(data: dict | None) -> TrustTLSSettings:
    """Build the full typed settings tree from raw config data."""
    d = data or {}
    return TrustTLSSettings(
        storage=_build_storage(d.get("storage")),
        http=_build_http(d.get("http")),
        renewal=_build_renewal(d.get("renewal")),
        providers=_build_providers(d.get("providers")),
        logging=_build_logging(d.get("logging")),
    )
