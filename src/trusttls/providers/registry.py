"""Provider registry.

Maps the ``provider`` tag of a renewal record to a builder that returns
a ready :class:`Provider`.  The table is immutable; the DigiCert
variants are always available in code and switched on or off at runtime
through ``providers.digicert_enabled``.

Usage::

    from trusttls.providers.registry import build_provider

    provider = build_provider(config, credentials=store, settings=settings)
    resource = provider.obtain_certificate([config.domain])
"""

from __future__ import annotations

import dataclasses
import logging
from collections.abc import Callable
from types import MappingProxyType
from typing import TYPE_CHECKING

from trusttls.core.types import AccountProvider, ChallengeMethod, KeyKind, ProviderName
from trusttls.errors import UnsupportedProvider, ValidationError
from trusttls.providers.acme import AcmeProvider
from trusttls.providers.digicert_acme import DigiCertAcmeProvider
from trusttls.providers.digicert_rest import DigiCertRestProvider

if TYPE_CHECKING:
    from trusttls.config.settings import TrustTLSSettings
    from trusttls.providers.base import Provider
    from trusttls.renewal.config import RenewalConfig
    from trusttls.store.credentials import CredentialStore

log = logging.getLogger(__name__)

ProviderBuilder = Callable[..., "Provider"]

_DIGICERT_PROVIDERS = frozenset({ProviderName.DIGICERT_REST, ProviderName.DIGICERT_ACME})


def _key_params(config: RenewalConfig, settings: TrustTLSSettings) -> tuple[str, int | None]:
    key_type = config.key_type or settings.providers.default_key_type
    if config.key_size:
        return key_type, config.key_size
    if key_type == KeyKind.RSA:
        return key_type, settings.providers.default_key_size
    return key_type, None


def _build_acme(
    config: RenewalConfig,
    credentials: CredentialStore,
    settings: TrustTLSSettings,
) -> Provider:
    if not config.email or not config.server:
        msg = f"renewal record for {config.domain} needs email and server"
        raise ValidationError(msg)
    key_type, key_size = _key_params(config, settings)
    return AcmeProvider(
        config.email,
        config.server,
        storage_dir=credentials.acme_storage_dir(AccountProvider.LETSENCRYPT, config.email),
        key_type=key_type,
        key_size=key_size,
        webroot=config.webroot,
        http=settings.http,
    )


def _build_digicert_rest(
    config: RenewalConfig,
    credentials: CredentialStore,
    settings: TrustTLSSettings,
) -> Provider:
    rest_config = credentials.digicert_rest_config(config.email)
    if not rest_config.server_url and config.server:
        rest_config = dataclasses.replace(rest_config, server_url=config.server)
    return DigiCertRestProvider(
        rest_config,
        http=settings.http,
        poll=settings.providers.digicert_poll,
    )


def _build_digicert_acme(
    config: RenewalConfig,
    credentials: CredentialStore,
    settings: TrustTLSSettings,
) -> Provider:
    eab_config = credentials.digicert_eab_config(config.email)
    if not eab_config.server_url and config.server:
        eab_config = dataclasses.replace(eab_config, server_url=config.server)
    key_type, key_size = _key_params(config, settings)
    provider = DigiCertAcmeProvider(
        eab_config,
        storage_dir=credentials.acme_storage_dir(AccountProvider.DIGICERT, config.email),
        key_type=key_type,
        key_size=key_size,
        http=settings.http,
    )
    provider.set_webroot(config.webroot)
    return provider


PROVIDER_BUILDERS: MappingProxyType[str, ProviderBuilder] = MappingProxyType(
    {
        ProviderName.ACME: _build_acme,
        ProviderName.DIGICERT_REST: _build_digicert_rest,
        ProviderName.DIGICERT_ACME: _build_digicert_acme,
    },
)


def build_provider(
    config: RenewalConfig,
    *,
    credentials: CredentialStore,
    settings: TrustTLSSettings,
) -> Provider:
    """Return the provider selected by ``config.provider``.

    Raises
    ------
    UnsupportedProvider
        If the tag is unknown, the challenge method is not HTTP-01, or
        DigiCert support is switched off.
    NotFound, WrongProvider
        If the DigiCert account credentials cannot be resolved.

    """
    tag = config.provider
    builder = PROVIDER_BUILDERS.get(tag)
    if builder is None:
        msg = f"unknown provider {tag!r}; known: {sorted(PROVIDER_BUILDERS)}"
        raise UnsupportedProvider(msg)
    if config.method != ChallengeMethod.HTTP_01:
        msg = f"unsupported method: {config.method}"
        raise UnsupportedProvider(msg)
    if tag in _DIGICERT_PROVIDERS and not settings.providers.digicert_enabled:
        msg = f"provider {tag!r} is disabled (providers.digicert_enabled is false)"
        raise UnsupportedProvider(msg)

    provider = builder(config, credentials, settings)
    log.debug("Built %s provider for %s", tag, config.domain)
    return provider
