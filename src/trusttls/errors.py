"""Error taxonomy for trusttls.

Every store and provider operation raises a subclass of
:class:`TrustTLSError` to its immediate caller.  The renewal engine is
the only component that recovers from per-item failures; it collects
them and raises a single :class:`RenewalError` at the end of a run.
"""

from __future__ import annotations


class TrustTLSError(Exception):
    """Base class for all trusttls errors.

    Parameters
    ----------
    detail:
        Human-readable description of the failure.
    retryable:
        Whether the failure is transient and the operation may be retried.

    """

    def __init__(self, detail: str, *, retryable: bool = False) -> None:
        self.detail = detail
        self.retryable = retryable
        super().__init__(detail)


# ---------------------------------------------------------------------------
# Input / store errors
# ---------------------------------------------------------------------------


class ValidationError(TrustTLSError):
    """A required domain, email or credential field is missing."""


class NotFound(TrustTLSError):
    """A stored record does not exist."""


class Corrupt(TrustTLSError):
    """A stored record exists but cannot be parsed."""


class WrongProvider(TrustTLSError):
    """Stored credentials belong to a different provider."""


# ---------------------------------------------------------------------------
# Network / protocol errors
# ---------------------------------------------------------------------------


class NetworkError(TrustTLSError):
    """Transport failure or unexpected HTTP status.

    ``status`` and ``body`` are populated when the server answered.
    """

    def __init__(
        self,
        detail: str,
        *,
        status: int | None = None,
        body: str = "",
        retryable: bool = False,
    ) -> None:
        self.status = status
        self.body = body
        super().__init__(detail, retryable=retryable)


class ProtocolError(TrustTLSError):
    """The remote side or the configuration violates the expected protocol."""


class NoHTTPDCV(ProtocolError):
    """The order offers no HTTP domain control validation method."""


class MissingEAB(ProtocolError):
    """External Account Binding credentials are required but absent."""


class UnsupportedProvider(ProtocolError):
    """Unknown provider or challenge method string."""


class IssuanceFailed(TrustTLSError):
    """The CA marked the order as failed."""


class PollingTimeout(TrustTLSError):
    """The polling ceiling or the caller's deadline was reached."""

    def __init__(self, detail: str, *, attempts: int = 0) -> None:
        self.attempts = attempts
        super().__init__(detail, retryable=True)


# ---------------------------------------------------------------------------
# Cryptographic parsing errors
# ---------------------------------------------------------------------------


class UnsupportedKeyType(TrustTLSError):
    """Key algorithm other than RSA or ECDSA."""


class InvalidPEM(TrustTLSError):
    """No PEM block could be decoded."""


class InvalidCertificate(TrustTLSError):
    """A PEM block decoded but is not a parsable X.509 certificate."""


# ---------------------------------------------------------------------------
# Challenge / installer / renewal errors
# ---------------------------------------------------------------------------


class EmptyWebroot(TrustTLSError):
    """HTTP-01 responder has no webroot configured."""


class InstallError(TrustTLSError):
    """A web server installer failed to deploy a certificate."""


class RenewalError(TrustTLSError):
    """One or more domains failed during a renewal run.

    Attributes
    ----------
    failures:
        Mapping of domain (or config file name) to failure description.

    """

    def __init__(self, failures: dict[str, str]) -> None:
        self.failures = dict(failures)
        body = "; ".join(f"{domain}: {cause}" for domain, cause in self.failures.items())
        super().__init__(f"some renewals failed: {body}")
