"""DigiCert ACME endpoint with External Account Binding.

Same order flow as :class:`~trusttls.providers.acme.AcmeProvider`; the
account is bound to a DigiCert CertCentral account through the EAB key
id and HMAC key before registration.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from trusttls.core.types import AccountProvider, KeyKind, ProviderName
from trusttls.errors import MissingEAB
from trusttls.providers.acme import AcmeProvider

if TYPE_CHECKING:
    from pathlib import Path

    from trusttls.config.settings import HttpSettings
    from trusttls.store.credentials import DigiCertEabConfig

log = logging.getLogger(__name__)


class DigiCertAcmeProvider(AcmeProvider):
    """ACME issuance from DigiCert, bound to an account through EAB.

    The HTTP-01 responder starts with an empty webroot; callers must
    :meth:`set_webroot` before issuing.
    """

    name = ProviderName.DIGICERT_ACME

    def __init__(  # noqa: PLR0913
        self,
        config: DigiCertEabConfig,
        *,
        storage_dir: str | Path | None = None,
        key_type: str = KeyKind.RSA,
        key_size: int | None = None,
        http: HttpSettings | None = None,
        client_cls: type | None = None,
        identifier_cls: Any = None,
    ) -> None:
        if not config.eab_kid or not config.eab_hmac_key:
            msg = "EAB KID and HMAC key required"
            raise MissingEAB(msg)
        if storage_dir is None:
            storage_dir = (
                config.base_dir / "accounts" / AccountProvider.DIGICERT / config.email / "acme"
            )
        super().__init__(
            config.email,
            config.server_url,
            storage_dir=storage_dir,
            key_type=key_type,
            key_size=key_size,
            webroot="",
            http=http,
            client_cls=client_cls,
            identifier_cls=identifier_cls,
        )
        self._eab_kid = config.eab_kid
        self._eab_hmac_key = config.eab_hmac_key

    def _before_account(self, client: Any) -> None:  # noqa: ANN401
        log.debug("Binding ACME account %s to EAB key id %s", self.email, self._eab_kid)
        client.set_external_account_binding(kid=self._eab_kid, hmac_key=self._eab_hmac_key)
