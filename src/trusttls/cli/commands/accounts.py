"""``trusttls accounts``: list and record account credentials."""

from __future__ import annotations

import logging
import sys

from trusttls.core.types import AccountProvider
from trusttls.errors import ValidationError
from trusttls.providers.acme import LETSENCRYPT_PRODUCTION, LETSENCRYPT_STAGING
from trusttls.store.credentials import CredentialStore

log = logging.getLogger(__name__)


def run_accounts(settings, args) -> int:
    """Handle accounts subcommands."""
    store = CredentialStore(settings.storage.base_dir)
    if args.accounts_command == "list":
        return _list(store, args.provider)
    if args.accounts_command == "add-letsencrypt":
        server = args.server or (LETSENCRYPT_STAGING if args.staging else LETSENCRYPT_PRODUCTION)
        path = store.save_letsencrypt_account(args.email, server)
        print(f"Saved Let's Encrypt account {args.email} to {path}")
        return 0
    if args.accounts_command == "add-digicert":
        return _add_digicert(store, args)
    print("usage: trusttls accounts {list,add-letsencrypt,add-digicert}", file=sys.stderr)
    return 2


def _list(store: CredentialStore, provider: str | None) -> int:
    providers = [provider] if provider else [p.value for p in AccountProvider]
    found = False
    for name in providers:
        for email in store.list(name):
            print(f"{name}\t{email}")
            found = True
    if not found:
        print("No accounts stored.")
    return 0


def _add_digicert(store: CredentialStore, args) -> int:
    if not args.server:
        msg = "--server is required for DigiCert accounts"
        raise ValidationError(msg)

    if args.eab_kid or args.eab_hmac_key:
        if not (args.eab_kid and args.eab_hmac_key):
            msg = "--eab-kid and --eab-hmac-key must be given together"
            raise ValidationError(msg)
        path = store.save_digicert_acme_account(
            args.email,
            args.server,
            eab_kid=args.eab_kid,
            eab_hmac_key=args.eab_hmac_key,
            account_id=args.account_id,
            organization_id=args.organization_id,
        )
    else:
        if not (args.api_key and args.hmac_key):
            msg = "--api-key and --hmac-key are required (or --eab-kid/--eab-hmac-key for ACME)"
            raise ValidationError(msg)
        path = store.save_digicert_account(
            args.email,
            args.server,
            hmac_id=args.hmac_id,
            hmac_key=args.hmac_key,
            api_key=args.api_key,
            account_id=args.account_id,
            organization_id=args.organization_id,
        )
    print(f"Saved DigiCert account {args.email} to {path}")
    return 0
