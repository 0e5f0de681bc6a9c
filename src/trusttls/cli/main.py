"""trusttls command-line entry point.

Usage::

    trusttls renew
    trusttls renew --verbose
    trusttls certonly --domain example.com --email admin@example.com
    trusttls certonly --domain example.com --email admin@example.com --provider digicert-acme
    trusttls accounts list
    trusttls accounts add-letsencrypt --email admin@example.com --staging
    trusttls accounts add-digicert --email admin@example.com --api-key ... --hmac-key ...
    trusttls -c /etc/trusttls/config.yaml config validate
    python -m trusttls renew
"""

from __future__ import annotations

import argparse
import logging
import sys

log = logging.getLogger(__name__)


def _get_version() -> str:
    from trusttls import __version__

    return __version__


def _build_parser() -> argparse.ArgumentParser:  # noqa: PLR0915
    parser = argparse.ArgumentParser(
        prog="trusttls",
        description="trusttls: issue, store and renew TLS certificates",
    )
    parser.add_argument(
        "-c",
        "--config",
        default=None,
        metavar="PATH",
        help="Path to the settings file (YAML). Defaults to /etc/trusttls/config.yaml if present.",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        default=False,
        help="Enable debug output (full tracebacks, verbose logging).",
    )
    parser.add_argument(
        "-v",
        "--version",
        action="version",
        version=f"%(prog)s {_get_version()}",
    )

    subparsers = parser.add_subparsers(dest="command")

    # renew
    renew_parser = subparsers.add_parser(
        "renew",
        help="Renew certificates that expire within the renewal window",
    )
    renew_parser.add_argument("--verbose", action="store_true", default=False)
    renew_parser.add_argument(
        "--timeout",
        type=float,
        default=None,
        metavar="SECONDS",
        help="Abort waiting once this many seconds have passed.",
    )

    # certonly
    certonly = subparsers.add_parser("certonly", help="Obtain a certificate")
    certonly.add_argument("--domain", "--website", dest="domain", required=True)
    certonly.add_argument("--email", "--contact", dest="email", required=True)
    certonly.add_argument(
        "--provider",
        default="acme",
        choices=("acme", "digicert", "digicert-acme"),
        help="Issuance provider (default: acme).",
    )
    certonly.add_argument("--key-type", default=None, choices=("rsa", "ecdsa"))
    certonly.add_argument(
        "--key-size",
        type=int,
        default=None,
        help="RSA modulus bits, or curve bits (256/384) for ecdsa.",
    )
    certonly.add_argument("--staging", action="store_true", default=False)
    certonly.add_argument("--server", default="", help="Directory or API URL; overrides --staging.")
    certonly.add_argument("--webroot", "--web-root", dest="webroot", default="")
    certonly.add_argument(
        "--install",
        action="append",
        default=[],
        choices=("apache", "nginx"),
        metavar="SERVER",
        help="Install the certificate into this web server (apache or nginx).",
    )
    certonly.add_argument("--yes", action="store_true", default=False)

    # accounts
    accounts_parser = subparsers.add_parser("accounts", help="Account credential management")
    accounts_sub = accounts_parser.add_subparsers(dest="accounts_command")
    list_parser = accounts_sub.add_parser("list", help="List stored accounts")
    list_parser.add_argument("--provider", default=None, choices=("letsencrypt", "digicert"))

    add_le = accounts_sub.add_parser("add-letsencrypt", help="Record a Let's Encrypt account")
    add_le.add_argument("--email", required=True)
    add_le.add_argument("--server", default="")
    add_le.add_argument("--staging", action="store_true", default=False)

    add_dc = accounts_sub.add_parser("add-digicert", help="Record DigiCert credentials")
    add_dc.add_argument("--email", required=True)
    add_dc.add_argument("--server", default="")
    add_dc.add_argument("--api-key", default="")
    add_dc.add_argument("--hmac-id", default="")
    add_dc.add_argument("--hmac-key", default="")
    add_dc.add_argument("--eab-kid", default="")
    add_dc.add_argument("--eab-hmac-key", default="")
    add_dc.add_argument("--account-id", default="")
    add_dc.add_argument("--organization-id", default="")

    # config
    config_parser = subparsers.add_parser("config", help="Settings file tools")
    config_sub = config_parser.add_subparsers(dest="config_command")
    config_sub.add_parser("validate", help="Validate the settings file and exit")

    return parser


def _print_error(message: str) -> None:
    """Print a user-facing error to stderr."""
    print(f"Error: {message}", file=sys.stderr)


def main(argv: list[str] | None = None) -> None:
    """CLI entry point.  Parses arguments, loads settings, dispatches."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        sys.exit(2)

    # -- bootstrap logging early (basic stderr until settings are loaded) ---
    logging.basicConfig(
        level=logging.DEBUG if args.debug else logging.WARNING,
        format="%(levelname)s: %(message)s",
        stream=sys.stderr,
    )

    # -- load & validate settings ---
    from trusttls.config import ConfigValidationError, load_settings

    try:
        settings = load_settings(args.config)
    except ConfigValidationError as exc:
        _print_error(str(exc))
        sys.exit(1)

    # -- replace bootstrap logging with structured logging ---
    from trusttls.logging import configure_logging

    configure_logging(settings.logging)
    if args.debug:
        logging.getLogger("trusttls").setLevel(logging.DEBUG)

    from trusttls.errors import TrustTLSError

    command = args.command
    try:
        if command == "renew":
            from trusttls.cli.commands.renew import run_renew

            code = run_renew(settings, args)
        elif command == "certonly":
            from trusttls.cli.commands.certonly import run_certonly

            code = run_certonly(settings, args)
        elif command == "accounts":
            from trusttls.cli.commands.accounts import run_accounts

            code = run_accounts(settings, args)
        else:
            from trusttls.cli.commands.config import run_config

            code = run_config(settings, args)
    except TrustTLSError as exc:
        if args.debug:
            raise
        _print_error(exc.detail)
        sys.exit(1)

    sys.exit(code)
