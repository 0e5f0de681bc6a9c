"""Per-account credential persistence.

Layout::

    {base}/accounts/{provider}/{email}/credentials.json   (0600)
    {base}/accounts/{provider}/{email}/acme/              (ACME client storage)

Records are overwritten on every save; nothing here ever deletes them.
"""

from __future__ import annotations

import json
import logging
from dataclasses import asdict, dataclass, fields
from pathlib import Path

from trusttls.core.types import AccountProvider
from trusttls.errors import Corrupt, NotFound, ValidationError, WrongProvider
from trusttls.logging.sanitize import sanitize_for_logs
from trusttls.store.paths import default_base_dir, ensure_dir, path_component, write_file

log = logging.getLogger(__name__)

CREDENTIALS_FILE = "credentials.json"


@dataclass(frozen=True)
class AccountCredentials:
    """Secrets for one (provider, email) account."""

    email: str
    server: str
    provider: str
    eab_kid: str = ""
    eab_hmac_key: str = ""
    hmac_id: str = ""
    hmac_key: str = ""
    api_key: str = ""
    account_id: str = ""
    organization_id: str = ""

    def to_dict(self) -> dict[str, str]:
        return {k: v for k, v in asdict(self).items() if v or k in _REQUIRED_FIELDS}

    @classmethod
    def from_dict(cls, data: dict) -> AccountCredentials:
        known = {f.name for f in fields(cls)}
        values = {k: str(v) for k, v in data.items() if k in known and v is not None}
        missing = [name for name in _REQUIRED_FIELDS if name not in values]
        if missing:
            msg = f"credentials record is missing {', '.join(missing)}"
            raise Corrupt(msg)
        return cls(**values)


_REQUIRED_FIELDS = ("email", "server", "provider")


@dataclass(frozen=True)
class DigiCertRestConfig:
    """Resolved settings for the signed REST ordering API."""

    server_url: str
    hmac_id: str
    hmac_key: str
    api_key: str
    account_id: str = ""
    organization_id: str = ""


@dataclass(frozen=True)
class DigiCertEabConfig:
    """Resolved settings for DigiCert ACME with External Account Binding."""

    server_url: str
    eab_kid: str
    eab_hmac_key: str
    email: str
    base_dir: Path


class CredentialStore:
    """Owns the ``accounts/`` subtree of a trusttls base directory."""

    def __init__(self, base_dir: str | Path | None = None) -> None:
        self.base_dir = Path(base_dir) if base_dir else default_base_dir()

    # -- layout ---------------------------------------------------------------

    def account_dir(self, provider: str, email: str) -> Path:
        provider = path_component(provider, "provider")
        return self.base_dir / "accounts" / provider / path_component(email, "email")

    def acme_storage_dir(self, provider: str, email: str) -> Path:
        """Directory handed to the ACME client library for its account key."""
        return ensure_dir(self.account_dir(provider, email) / "acme")

    # -- generic operations ---------------------------------------------------

    def save(self, email: str, credentials: AccountCredentials) -> Path:
        """Write *credentials* for *email*, replacing any previous record."""
        if not email:
            msg = "email is required to save credentials"
            raise ValidationError(msg)
        if not credentials.provider:
            msg = "credentials must carry a provider tag"
            raise ValidationError(msg)

        account_dir = ensure_dir(self.account_dir(credentials.provider, email))
        path = account_dir / CREDENTIALS_FILE
        data = json.dumps(credentials.to_dict(), indent=2, sort_keys=True)
        write_file(path, data.encode("utf-8"))
        log.info(
            "Saved %s credentials for %s",
            credentials.provider,
            email,
            extra={"provider": credentials.provider, "record": sanitize_for_logs(credentials.to_dict())},
        )
        return path

    def load(self, email: str, provider: str) -> AccountCredentials:
        """Read the record stored for (*provider*, *email*).

        Raises
        ------
        NotFound
            If no record exists.
        Corrupt
            If the record cannot be parsed.

        """
        path = self.account_dir(provider, email) / CREDENTIALS_FILE
        try:
            raw = path.read_text(encoding="utf-8")
        except FileNotFoundError as exc:
            msg = f"no {provider} credentials stored for {email}"
            raise NotFound(msg) from exc

        try:
            data = json.loads(raw)
        except json.JSONDecodeError as exc:
            msg = f"credentials file {path} is not valid JSON: {exc}"
            raise Corrupt(msg) from exc
        if not isinstance(data, dict):
            msg = f"credentials file {path} does not contain an object"
            raise Corrupt(msg)
        return AccountCredentials.from_dict(data)

    def list(self, provider: str) -> list[str]:
        """Return the account identities stored under *provider*."""
        provider_dir = self.base_dir / "accounts" / provider
        if not provider_dir.is_dir():
            return []
        return sorted(entry.name for entry in provider_dir.iterdir() if entry.is_dir())

    # -- provider-specific accessors ------------------------------------------

    def _load_tagged(self, email: str, provider: str) -> AccountCredentials:
        creds = self.load(email, provider)
        if creds.provider != provider:
            msg = f"account {email} is a {creds.provider!r} account, not {provider!r}"
            raise WrongProvider(msg)
        return creds

    def digicert_rest_config(self, email: str) -> DigiCertRestConfig:
        creds = self._load_tagged(email, AccountProvider.DIGICERT)
        return DigiCertRestConfig(
            server_url=creds.server,
            hmac_id=creds.hmac_id,
            hmac_key=creds.hmac_key,
            api_key=creds.api_key,
            account_id=creds.account_id,
            organization_id=creds.organization_id,
        )

    def digicert_eab_config(self, email: str) -> DigiCertEabConfig:
        creds = self._load_tagged(email, AccountProvider.DIGICERT)
        return DigiCertEabConfig(
            server_url=creds.server,
            eab_kid=creds.eab_kid,
            eab_hmac_key=creds.eab_hmac_key,
            email=creds.email,
            base_dir=self.base_dir,
        )

    # -- convenience savers ---------------------------------------------------

    def save_letsencrypt_account(self, email: str, server: str) -> Path:
        return self.save(
            email,
            AccountCredentials(email=email, server=server, provider=AccountProvider.LETSENCRYPT),
        )

    def save_digicert_account(  # noqa: PLR0913
        self,
        email: str,
        server: str,
        *,
        hmac_id: str = "",
        hmac_key: str,
        api_key: str,
        account_id: str = "",
        organization_id: str = "",
    ) -> Path:
        return self.save(
            email,
            AccountCredentials(
                email=email,
                server=server,
                provider=AccountProvider.DIGICERT,
                hmac_id=hmac_id,
                hmac_key=hmac_key,
                api_key=api_key,
                account_id=account_id,
                organization_id=organization_id,
            ),
        )

    def save_digicert_acme_account(  # noqa: PLR0913
        self,
        email: str,
        server: str,
        *,
        eab_kid: str,
        eab_hmac_key: str,
        account_id: str = "",
        organization_id: str = "",
    ) -> Path:
        return self.save(
            email,
            AccountCredentials(
                email=email,
                server=server,
                provider=AccountProvider.DIGICERT,
                eab_kid=eab_kid,
                eab_hmac_key=eab_hmac_key,
                account_id=account_id,
                organization_id=organization_id,
            ),
        )
