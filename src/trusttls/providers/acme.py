"""Generic ACME provider (Let's Encrypt and compatible CAs).

Uses ACMEOW to manage the ACME protocol flow.  The certificate key and
CSR are generated locally (see :mod:`trusttls.core.keys`) and the order
is finalised with that CSR, so the private key never leaves this host
and its type follows the configured key settings.  HTTP-01 challenges
are answered by writing token files into the domain's webroot.

Registration is idempotent: if the CA reports that the account already
exists, that is treated as success.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING, Any

from trusttls.challenge.http01 import Http01Responder
from trusttls.core.keys import build_csr, csr_to_der, generate_key, marshal_key_to_pem
from trusttls.core.types import ChallengeMethod, KeyKind, ProviderName
from trusttls.errors import (
    IssuanceFailed,
    NetworkError,
    PollingTimeout,
    TrustTLSError,
    ValidationError,
)
from trusttls.providers.base import (
    CertificateResource,
    Provider,
    require_domains,
    split_pem_chain,
)

if TYPE_CHECKING:
    from collections.abc import Sequence

    from trusttls.config.settings import HttpSettings
    from trusttls.core.deadline import Deadline

log = logging.getLogger(__name__)

LETSENCRYPT_PRODUCTION = "https://acme-v02.api.letsencrypt.org/directory"
LETSENCRYPT_STAGING = "https://acme-staging-v02.api.letsencrypt.org/directory"

DEFAULT_TIMEOUT_SECONDS = 30

_ALREADY_REGISTERED_MARKERS = (
    "already registered",
    "urn:ietf:params:acme:error:accountAlreadyExists",
    "accountalreadyexists",
)


def already_registered(exc: BaseException) -> bool:
    """Return ``True`` if *exc* says the ACME account already exists."""
    msg = str(exc)
    lowered = msg.lower()
    return any(marker in msg or marker in lowered for marker in _ALREADY_REGISTERED_MARKERS)


class AcmeProvider(Provider):
    """Issue certificates from an ACME directory using HTTP-01.

    The account is registered lazily: the first call to
    :meth:`obtain_certificate` (or an explicit :meth:`register`) creates
    the ACMEOW client and the account, so constructing a provider never
    touches the network.

    Parameters
    ----------
    email:
        Account contact address.
    server:
        ACME directory URL.
    storage_dir:
        Directory where ACMEOW keeps the account key and state.
    key_type, key_size:
        Certificate key parameters (see :func:`generate_key`).
    webroot:
        Default webroot for :meth:`obtain_certificate`.
    http:
        Outbound HTTP settings (timeout, proxy, TLS verification).
    client_cls, identifier_cls:
        ACMEOW ``AcmeClient`` and ``Identifier`` classes; imported lazily
        when omitted.

    """

    name = ProviderName.ACME

    def __init__(  # noqa: PLR0913
        self,
        email: str,
        server: str,
        *,
        storage_dir: str | Path,
        key_type: str = KeyKind.RSA,
        key_size: int | None = None,
        webroot: str | Path | None = None,
        http: HttpSettings | None = None,
        client_cls: type | None = None,
        identifier_cls: Any = None,
    ) -> None:
        if not email or not server:
            msg = "email and server required"
            raise ValidationError(msg)
        self.email = email
        self.server = server
        self.key_type = key_type or KeyKind.RSA
        self.key_size = key_size
        self._storage_dir = Path(storage_dir)
        self._http = http
        self._client_cls = client_cls
        self._identifier_cls = identifier_cls
        self._client: Any = None
        self._responder = Http01Responder(webroot)
        self._handler: Any = None
        self._http01_type: Any = None

    # -- registration ---------------------------------------------------------

    @property
    def registered(self) -> bool:
        return self._client is not None

    def register(self) -> None:
        """Create the ACMEOW client and register the account.

        Raises
        ------
        NetworkError
            If the CA cannot be reached or rejects the registration.

        """
        if self._client is not None:
            return

        from acmeow import AcmeClient, ChallengeType, Identifier  # noqa: PLC0415

        client_cls = self._client_cls or AcmeClient
        self._identifier_cls = self._identifier_cls or Identifier
        self._http01_type = ChallengeType.HTTP

        self._storage_dir.mkdir(parents=True, exist_ok=True, mode=0o700)
        client_kwargs: dict[str, Any] = {
            "server_url": self.server,
            "email": self.email,
            "storage_path": self._storage_dir,
            "timeout": DEFAULT_TIMEOUT_SECONDS,
        }
        if self._http is not None:
            client_kwargs["timeout"] = int(self._http.timeout_seconds)
            if self._http.proxy_url:
                client_kwargs["proxy_url"] = self._http.proxy_url
            if not self._http.verify_ssl:
                client_kwargs["verify_ssl"] = False

        try:
            client = client_cls(**client_kwargs)
        except Exception as exc:  # noqa: BLE001
            msg = f"Failed to initialise ACME client for {self.server}: {exc}"
            raise NetworkError(msg, retryable=True) from exc

        self._before_account(client)
        try:
            client.create_account()
        except Exception as exc:  # noqa: BLE001
            if not already_registered(exc):
                msg = f"ACME registration with {self.server} failed: {exc}"
                raise NetworkError(msg, retryable=_is_retryable(exc)) from exc
            log.info("ACME account for %s already registered with %s", self.email, self.server)
        else:
            log.info("Registered ACME account for %s with %s", self.email, self.server)

        self._client = client

    def _before_account(self, client: Any) -> None:  # noqa: ANN401
        """Hook for subclasses that need to configure the client first."""

    # -- webroot --------------------------------------------------------------

    @property
    def webroot(self) -> str:
        return self._responder.webroot

    def set_webroot(self, webroot: str | Path) -> None:
        """Point the HTTP-01 responder at *webroot*."""
        self._responder.webroot = str(webroot) if webroot else ""

    def _challenge_handler(self) -> Any:
        if self._handler is None:
            self._handler = self._responder.as_acme_handler()
        return self._handler

    # -- issuance -------------------------------------------------------------

    def obtain_http01(
        self,
        domains: Sequence[str],
        webroot: str | Path,
        *,
        deadline: Deadline | None = None,
    ) -> CertificateResource:
        """Issue a certificate for *domains* answering HTTP-01 from *webroot*."""
        self.set_webroot(webroot)
        return self.obtain_certificate(domains, deadline=deadline)

    def obtain_certificate(
        self,
        domains: Sequence[str],
        *,
        deadline: Deadline | None = None,
    ) -> CertificateResource:
        names = require_domains(domains)
        self.register()

        key = generate_key(self.key_type, self.key_size)
        csr_der = csr_to_der(build_csr(names[0], names, key))

        try:
            cert_pem = self._execute_order(names, csr_der, deadline)
        except TrustTLSError:
            raise
        except Exception as exc:  # noqa: BLE001
            exc_type = type(exc).__name__
            msg = f"ACME error ({exc_type}): {exc}"
            if _is_retryable(exc):
                raise NetworkError(msg, retryable=True) from exc
            raise IssuanceFailed(msg) from exc

        leaf, chain = split_pem_chain(cert_pem)
        log.info(
            "Certificate issued for %s by %s",
            ", ".join(names),
            self.server,
            extra={"domain": names[0], "provider": self.name},
        )
        return CertificateResource(
            domain=names[0],
            certificate=leaf,
            issuer_certificate=chain,
            private_key=marshal_key_to_pem(key),
        )

    def _execute_order(
        self,
        domains: list[str],
        csr_der: bytes,
        deadline: Deadline | None,
    ) -> str:
        """Run the order -> challenge -> finalize -> download flow."""
        identifiers = [self._identifier_cls.dns(d) for d in domains]

        _check_deadline(deadline, "creating order")
        log.info("ACME: creating order for %d identifier(s)", len(domains))
        self._client.create_order(identifiers)

        _check_deadline(deadline, "completing challenges")
        log.info("ACME: completing %s challenges in %s", ChallengeMethod.HTTP_01, self.webroot)
        self._client.complete_challenges(
            self._challenge_handler(),
            challenge_type=self._http01_type,
        )

        _check_deadline(deadline, "finalizing order")
        log.info("ACME: finalising order")
        self._client.finalize_order(csr=csr_der)

        cert_pem, _ = self._client.get_certificate()
        if isinstance(cert_pem, bytes):
            cert_pem = cert_pem.decode("ascii")
        return cert_pem


def _check_deadline(deadline: Deadline | None, step: str) -> None:
    if deadline is not None and deadline.expired:
        msg = f"deadline reached before {step}"
        raise PollingTimeout(msg)


def _is_retryable(exc: Exception) -> bool:
    """Determine whether an ACME error is transient via heuristics."""
    exc_name = type(exc).__name__.lower()
    retryable_patterns = (
        "timeout",
        "connection",
        "network",
        "server",
        "503",
        "429",
    )
    msg = str(exc).lower()
    return any(p in exc_name or p in msg for p in retryable_patterns)
