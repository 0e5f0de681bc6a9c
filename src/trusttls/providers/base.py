"""Abstract base class for issuance providers.

Every provider (generic ACME, DigiCert REST, DigiCert ACME with EAB)
inherits from :class:`Provider` and implements
:meth:`Provider.obtain_certificate`, which drives the provider's
protocol to a terminal outcome and returns a
:class:`CertificateResource` or raises a
:class:`~trusttls.errors.TrustTLSError`.
"""

from __future__ import annotations

import abc
import logging
import re
from dataclasses import dataclass
from typing import TYPE_CHECKING, ClassVar

from trusttls.errors import InvalidPEM, ValidationError

if TYPE_CHECKING:
    from collections.abc import Sequence

    from trusttls.core.deadline import Deadline
    from trusttls.core.types import ProviderName

log = logging.getLogger(__name__)

_CERT_BLOCK_RE = re.compile(
    r"-----BEGIN CERTIFICATE-----[\s\S]*?-----END CERTIFICATE-----\s*",
)


@dataclass(frozen=True)
class CertificateResource:
    """Result of a successful issuance.

    Attributes
    ----------
    domain:
        Primary domain (first requested name).
    certificate:
        PEM-encoded leaf certificate.
    issuer_certificate:
        PEM-encoded intermediate chain.
    private_key:
        PEM-encoded private key matching the leaf, or empty.

    """

    domain: str
    certificate: bytes
    issuer_certificate: bytes
    private_key: bytes = b""

    @property
    def full_chain(self) -> bytes:
        """Leaf followed by the issuer chain."""
        return self.certificate + self.issuer_certificate


def split_pem_chain(pem_chain: str) -> tuple[bytes, bytes]:
    """Split a PEM bundle into (leaf, rest-of-chain).

    Raises
    ------
    InvalidPEM
        If the bundle contains no certificate.

    """
    blocks = [m.group(0).strip() + "\n" for m in _CERT_BLOCK_RE.finditer(pem_chain)]
    if not blocks:
        msg = "issued bundle contains no certificate"
        raise InvalidPEM(msg)
    return blocks[0].encode("ascii"), "".join(blocks[1:]).encode("ascii")


def require_domains(domains: Sequence[str]) -> list[str]:
    """Return *domains* as a de-duplicated list, rejecting an empty one."""
    cleaned = [d.strip() for d in domains if d and d.strip()]
    if not cleaned:
        msg = "at least one domain required"
        raise ValidationError(msg)
    return list(dict.fromkeys(cleaned))


class Provider(abc.ABC):
    """Base class for all issuance providers.

    Subclasses set :attr:`name` and implement :meth:`obtain_certificate`.
    """

    name: ClassVar[ProviderName]

    @abc.abstractmethod
    def obtain_certificate(
        self,
        domains: Sequence[str],
        *,
        deadline: Deadline | None = None,
    ) -> CertificateResource:
        """Issue a certificate covering *domains*.

        Parameters
        ----------
        domains:
            Names to cover; the first is the primary / common name.
        deadline:
            Optional bound on blocking waits; honoured by polling loops.

        Returns
        -------
        CertificateResource
            The issued certificate, chain and private key.

        Raises
        ------
        TrustTLSError
            On any issuance failure.

        """
