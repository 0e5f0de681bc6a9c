"""Configuration subsystem for trusttls.

Public API::

    from trusttls.config import load_settings

    settings = load_settings("config.yaml")
    settings.http.timeout_seconds
"""

from trusttls.config.loader import ConfigValidationError, load_settings
from trusttls.config.settings import (
    DigiCertPollSettings,
    HttpSettings,
    LoggingSettings,
    ProviderSettings,
    RenewalSettings,
    StorageSettings,
    TrustTLSSettings,
    build_settings,
)

__all__ = [
    "ConfigValidationError",
    "DigiCertPollSettings",
    "HttpSettings",
    "LoggingSettings",
    "ProviderSettings",
    "RenewalSettings",
    "StorageSettings",
    "TrustTLSSettings",
    "build_settings",
    "load_settings",
]
