"""DigiCert proprietary REST ordering API.

Every request is signed with the account HMAC key::

    signature = hex(HMAC-SHA256(hmac_key, "METHOD\\nPATH[\\nBODY]"))

and carries these headers:

``X-DC-DEVKEY``
    The account API key.
``X-DC-TIMESTAMP``
    RFC 3339 UTC timestamp, fresh per request.
``X-DC-SIGNATURE``
    The hex signature above.
``X-DC-HMAC-ID``
    The HMAC key identifier, when one is configured.

Issuance runs as a sequence: create the order (HTTP 201), look up the
HTTP domain control validation token (HTTP 200), then poll the order
until it is issued, fails or the attempt ceiling is reached.  Placing
the DCV token on the web server is a manual operator step; the token is
handed to the ``on_dcv_token`` callback, which logs it by default.
"""

from __future__ import annotations

import contextlib
import hashlib
import hmac
import json
import logging
import ssl
import time
import urllib.error
import urllib.request
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any
from urllib.parse import urlsplit

from trusttls.core.keys import build_csr, generate_key, marshal_key_to_pem
from trusttls.core.state import (
    ORDER_TRANSITIONS,
    TERMINAL_STATUSES,
    assert_transition,
    classify_remote_status,
    log_transition,
)
from trusttls.core.types import KeyKind, OrderStatus, ProviderName
from trusttls.errors import (
    IssuanceFailed,
    NetworkError,
    NoHTTPDCV,
    PollingTimeout,
    ProtocolError,
    ValidationError,
)
from trusttls.providers.base import CertificateResource, Provider, require_domains

if TYPE_CHECKING:
    from collections.abc import Sequence

    from trusttls.config.settings import DigiCertPollSettings, HttpSettings
    from trusttls.core.deadline import Deadline
    from trusttls.store.credentials import DigiCertRestConfig

log = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 30
DEFAULT_POLL_INTERVAL_SECONDS = 10
DEFAULT_POLL_ATTEMPTS = 30

ORDER_KEY_SIZE = 2048
VALIDITY_YEARS = 1

_ERROR_BODY_LIMIT = 500


@dataclass(frozen=True)
class DcvMethod:
    """One domain control validation method offered for an order."""

    type: str
    token: str
    status: str


def sign_request(key: str, method: str, path: str, body: bytes | None = None) -> str:
    """Return the hex HMAC-SHA256 signature for a request.

    The signed string is ``METHOD\\nPATH`` or, when *body* is non-empty,
    ``METHOD\\nPATH\\nBODY``.
    """
    message = f"{method}\n{path}".encode()
    if body:
        message += b"\n" + body
    return hmac.new(key.encode(), message, hashlib.sha256).hexdigest()


def format_timestamp(moment: datetime) -> str:
    """Format *moment* as RFC 3339 in UTC with second precision."""
    return moment.astimezone(UTC).strftime("%Y-%m-%dT%H:%M:%SZ")


def _log_dcv_token(domain: str, method: DcvMethod) -> None:
    log.warning(
        "Manual DCV required for %s: place token %s in the webroot",
        domain,
        method.token,
        extra={"domain": domain, "provider": ProviderName.DIGICERT_REST},
    )


class DigiCertRestProvider(Provider):
    """Order certificates through DigiCert's signed REST API.

    Parameters
    ----------
    config:
        Server URL and HMAC / API credentials.
    http:
        Outbound HTTP settings; only proxy and TLS verification are used,
        the request timeout is always 30 seconds.
    poll:
        Poll interval and attempt ceiling; 10 s and 30 attempts when
        omitted.
    clock:
        Returns the current UTC time for request timestamps.
    sleep:
        Waits between polls when no :class:`Deadline` is given.
    opener:
        Object with an ``open(request, timeout=...)`` method, normally a
        :class:`urllib.request.OpenerDirector`.
    on_dcv_token:
        Called with ``(domain, DcvMethod)`` once the HTTP DCV token is
        known.

    """

    name = ProviderName.DIGICERT_REST

    def __init__(  # noqa: PLR0913
        self,
        config: DigiCertRestConfig,
        *,
        http: HttpSettings | None = None,
        poll: DigiCertPollSettings | None = None,
        clock: Callable[[], datetime] | None = None,
        sleep: Callable[[float], None] | None = None,
        opener: Any = None,
        on_dcv_token: Callable[[str, DcvMethod], None] | None = None,
    ) -> None:
        if not config.server_url:
            msg = "DigiCert server URL required"
            raise ValidationError(msg)
        if not config.hmac_key or not config.api_key:
            msg = "DigiCert HMAC key and API key required"
            raise ValidationError(msg)
        self._config = config
        self._server = config.server_url.rstrip("/")
        self._http = http
        self._interval = poll.interval_seconds if poll else DEFAULT_POLL_INTERVAL_SECONDS
        self._max_attempts = poll.max_attempts if poll else DEFAULT_POLL_ATTEMPTS
        self._clock = clock or (lambda: datetime.now(UTC))
        self._sleep = sleep or time.sleep
        self._opener = opener
        self._on_dcv_token = on_dcv_token or _log_dcv_token

    # -- HTTP -----------------------------------------------------------------

    def _get_opener(self) -> Any:
        if self._opener is not None:
            return self._opener
        handlers: list[urllib.request.BaseHandler] = []
        if self._http is not None and not self._http.verify_ssl:
            ctx = ssl.create_default_context()
            ctx.check_hostname = False
            ctx.verify_mode = ssl.CERT_NONE
            handlers.append(urllib.request.HTTPSHandler(context=ctx))
        if self._http is not None and self._http.proxy_url:
            proxy = self._http.proxy_url
            handlers.append(urllib.request.ProxyHandler({"http": proxy, "https": proxy}))
        self._opener = urllib.request.build_opener(*handlers)
        return self._opener

    def _build_request(
        self,
        method: str,
        url: str,
        body: bytes | None = None,
    ) -> urllib.request.Request:
        """Build a signed request for *url*."""
        path = urlsplit(url).path
        headers = {
            "Content-Type": "application/json",
            "Accept": "application/json",
            "X-DC-DEVKEY": self._config.api_key,
            "X-DC-TIMESTAMP": format_timestamp(self._clock()),
            "X-DC-SIGNATURE": sign_request(self._config.hmac_key, method, path, body),
        }
        if self._config.hmac_id:
            headers["X-DC-HMAC-ID"] = self._config.hmac_id
        if self._http is not None and self._http.user_agent:
            headers["User-Agent"] = self._http.user_agent
        return urllib.request.Request(url, data=body, method=method, headers=headers)

    def _do_request(
        self,
        method: str,
        path: str,
        *,
        payload: dict | None = None,
        expected_status: int = 200,
    ) -> Any:
        """Send one signed request and return the parsed JSON body."""
        url = f"{self._server}{path}"
        body = json.dumps(payload).encode("utf-8") if payload is not None else None
        req = self._build_request(method, url, body)

        try:
            resp = self._get_opener().open(req, timeout=DEFAULT_TIMEOUT_SECONDS)
        except urllib.error.HTTPError as exc:
            text = ""
            with contextlib.suppress(Exception):
                text = exc.read().decode("utf-8", errors="replace")[:_ERROR_BODY_LIMIT]
            msg = f"DigiCert returned HTTP {exc.code} for {method} {path}: {text}"
            raise NetworkError(
                msg,
                status=exc.code,
                body=text,
                retryable=exc.code >= 500,
            ) from exc
        except (urllib.error.URLError, OSError) as exc:
            msg = f"Failed to reach DigiCert at {url}: {exc}"
            raise NetworkError(msg, retryable=True) from exc

        try:
            raw = resp.read()
        finally:
            resp.close()
        text = raw.decode("utf-8", errors="replace")

        if resp.status != expected_status:
            snippet = text[:_ERROR_BODY_LIMIT]
            msg = (
                f"DigiCert returned unexpected HTTP {resp.status} for {method} {path} "
                f"(expected {expected_status}): {snippet}"
            )
            raise NetworkError(
                msg,
                status=resp.status,
                body=snippet,
                retryable=resp.status >= 500,
            )

        try:
            return json.loads(text)
        except json.JSONDecodeError as exc:
            msg = f"DigiCert returned invalid JSON for {method} {path}: {exc}"
            raise ProtocolError(msg) from exc

    # -- protocol steps -------------------------------------------------------

    def create_order(self, domains: list[str], csr_pem: str) -> str:
        """Submit a new order and return its id (HTTP 201 required)."""
        certificate: dict[str, Any] = {
            "common_name": domains[0],
            "dns_names": domains,
            "signature_hash": "sha256",
            "key_size": ORDER_KEY_SIZE,
            "csr": csr_pem,
        }
        if self._config.organization_id:
            certificate["organization_id"] = self._config.organization_id
        payload = {"certificate": certificate, "validity_years": VALIDITY_YEARS}

        data = self._do_request("POST", "/certificates", payload=payload, expected_status=201)
        order_id = str(data.get("id", "")) if isinstance(data, dict) else ""
        if not order_id:
            msg = "DigiCert order response has no id"
            raise ProtocolError(msg)
        log.info(
            "DigiCert order %s created for %s",
            order_id,
            ", ".join(domains),
            extra={"domain": domains[0], "provider": self.name},
        )
        return order_id

    def get_dcv_methods(self, order_id: str) -> list[DcvMethod]:
        """Return the validation methods offered for *order_id*."""
        data = self._do_request("GET", f"/certificates/{order_id}/dcv")
        if not isinstance(data, list):
            msg = f"DigiCert DCV response for order {order_id} is not a list"
            raise ProtocolError(msg)
        return [
            DcvMethod(
                type=str(item.get("type", "")),
                token=str(item.get("token", "")),
                status=str(item.get("status", "")),
            )
            for item in data
            if isinstance(item, dict)
        ]

    def handle_dcv(self, order_id: str, domain: str) -> DcvMethod:
        """Pick the HTTP DCV method and surface its token.

        Raises
        ------
        NoHTTPDCV
            If the order offers no method of type ``http``.

        """
        method = next((m for m in self.get_dcv_methods(order_id) if m.type == "http"), None)
        if method is None:
            msg = f"DigiCert order {order_id} offers no HTTP validation method"
            raise NoHTTPDCV(msg)
        self._on_dcv_token(domain, method)
        return method

    def get_order(self, order_id: str) -> dict:
        data = self._do_request("GET", f"/certificates/{order_id}")
        if not isinstance(data, dict):
            msg = f"DigiCert order {order_id} response is not an object"
            raise ProtocolError(msg)
        return data

    def wait_for_certificate(
        self,
        order_id: str,
        *,
        deadline: Deadline | None = None,
    ) -> dict:
        """Poll *order_id* until it leaves the pending state.

        Returns the issued order body.

        Raises
        ------
        IssuanceFailed
            If DigiCert reports ``failed``.
        PollingTimeout
            If the attempt ceiling or *deadline* is reached first.

        """
        status = OrderStatus.PENDING
        data: dict = {}
        attempt = 0

        while status not in TERMINAL_STATUSES:
            if attempt >= self._max_attempts or (deadline is not None and deadline.expired):
                target = OrderStatus.TIMEOUT
            else:
                if attempt > 0 and not self._wait(deadline):
                    target = OrderStatus.TIMEOUT
                else:
                    attempt += 1
                    data = self.get_order(order_id)
                    target = classify_remote_status(str(data.get("status", "")))
                    log.debug(
                        "DigiCert order %s attempt %d/%d: %s",
                        order_id,
                        attempt,
                        self._max_attempts,
                        data.get("status"),
                    )

            assert_transition(status, target, ORDER_TRANSITIONS)
            if target != status:
                log_transition(order_id, status, target, attempt=attempt)
            status = target

        if status == OrderStatus.FAILED:
            msg = f"DigiCert order {order_id} failed"
            raise IssuanceFailed(msg)
        if status == OrderStatus.TIMEOUT:
            msg = f"DigiCert order {order_id} not issued after {attempt} attempt(s)"
            raise PollingTimeout(msg, attempts=attempt)
        return data

    def _wait(self, deadline: Deadline | None) -> bool:
        if deadline is None:
            self._sleep(self._interval)
            return True
        return deadline.sleep(self._interval)

    # -- Provider API ---------------------------------------------------------

    def obtain_certificate(
        self,
        domains: Sequence[str],
        *,
        deadline: Deadline | None = None,
    ) -> CertificateResource:
        names = require_domains(domains)
        key = generate_key(KeyKind.RSA, ORDER_KEY_SIZE)
        csr_pem = build_csr(names[0], names, key)

        order_id = self.create_order(names, csr_pem)
        self.handle_dcv(order_id, names[0])
        order = self.wait_for_certificate(order_id, deadline=deadline)

        server_cert = str(order.get("server_cert") or "")
        if not server_cert:
            msg = f"DigiCert order {order_id} is issued but has no server certificate"
            raise ProtocolError(msg)
        intermediate = str(order.get("intermediate_cert") or "")
        log.info(
            "Certificate issued for %s by DigiCert (order %s)",
            ", ".join(names),
            order_id,
            extra={"domain": names[0], "provider": self.name},
        )
        return CertificateResource(
            domain=names[0],
            certificate=server_cert.encode("ascii"),
            issuer_certificate=intermediate.encode("ascii"),
            private_key=marshal_key_to_pem(key),
        )
