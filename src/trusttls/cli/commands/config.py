"""``trusttls config``: settings file tools."""

from __future__ import annotations

import sys


def run_config(settings, args) -> int:
    """Handle config subcommands."""
    if args.config_command != "validate":
        print("usage: trusttls config validate", file=sys.stderr)
        return 2
    _print_settings_summary(settings)
    return 0


def _print_settings_summary(settings) -> None:
    """Print a short summary of the loaded settings."""
    providers = settings.providers
    print("Configuration is valid.")
    print(f"  base_dir:          {settings.storage.base_dir}")
    print(f"  renewal_dir:       {settings.storage.renewal_dir}")
    print(f"  renew_before_days: {settings.renewal.renew_before_days}")
    print(f"  default key:       {providers.default_key_type} {providers.default_key_size}")
    print(f"  digicert enabled:  {providers.digicert_enabled}")
    print(f"  log level/format:  {settings.logging.level} / {settings.logging.format}")
