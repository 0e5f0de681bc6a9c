"""HTTP-01 challenge responder (RFC 8555 §8.3).

Satisfies domain control validation by writing the key authorization to
``{webroot}/.well-known/acme-challenge/{token}`` so the running web
server can serve it.  Files are world-readable on purpose: the web
server process must be able to read them.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

from trusttls.errors import EmptyWebroot

log = logging.getLogger(__name__)

CHALLENGE_PATH = (".well-known", "acme-challenge")

_DIR_MODE = 0o755
_FILE_MODE = 0o644


class Http01Responder:
    """Write and remove HTTP-01 token files under a webroot.

    Parameters
    ----------
    webroot:
        Document root served for the domain over plain HTTP.  May be
        empty at construction; :meth:`present` then fails.

    """

    def __init__(self, webroot: str | Path | None = None) -> None:
        self.webroot = str(webroot) if webroot else ""

    def challenge_dir(self) -> Path:
        return Path(self.webroot).joinpath(*CHALLENGE_PATH)

    def token_path(self, token: str) -> Path:
        if not token or "/" in token or token in {".", ".."}:
            msg = f"invalid HTTP-01 token {token!r}"
            raise ValueError(msg)
        return self.challenge_dir() / token

    def present(self, token: str, key_authorization: str) -> Path:
        """Write *key_authorization* to the token file and return its path.

        Raises
        ------
        EmptyWebroot
            If no webroot is configured.

        """
        if not self.webroot:
            msg = "webroot is empty"
            raise EmptyWebroot(msg)

        directory = self.challenge_dir()
        directory.mkdir(parents=True, exist_ok=True, mode=_DIR_MODE)
        path = self.token_path(token)
        path.write_text(key_authorization, encoding="ascii")
        path.chmod(_FILE_MODE)
        log.debug("HTTP-01: wrote token %s to %s", token, path)
        return path

    def clean_up(self, token: str) -> None:
        """Remove the token file; a missing file or webroot is not an error."""
        if not self.webroot:
            return
        try:
            self.token_path(token).unlink(missing_ok=True)
        except OSError:
            log.warning("HTTP-01: could not remove token %s", token, exc_info=True)
        else:
            log.debug("HTTP-01: removed token %s", token)

    def as_acme_handler(self) -> Any:
        """Adapt this responder to ACMEOW's ``CallbackHttpHandler``.

        The handler reads :attr:`webroot` at call time, so replacing the
        webroot after the handler was built takes effect immediately.
        """
        from acmeow.handlers import CallbackHttpHandler  # noqa: PLC0415

        def deploy(domain: str, token: str, key_authorization: str) -> None:
            log.info("HTTP-01 deploy for %s", domain, extra={"domain": domain})
            self.present(token, key_authorization)

        def cleanup(domain: str, token: str) -> None:
            log.info("HTTP-01 cleanup for %s", domain, extra={"domain": domain})
            self.clean_up(token)

        return CallbackHttpHandler(setup_callback=deploy, cleanup_callback=cleanup)
