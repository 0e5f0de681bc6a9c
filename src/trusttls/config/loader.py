"""Settings file loader.

Reads an optional YAML file, resolves ``${VAR}`` / ``${VAR:-default}``
references, runs cross-field validation and returns a frozen
:class:`TrustTLSSettings` tree.  There is no global instance: callers
pass the returned object to whatever needs it.
"""

from __future__ import annotations

import logging
import os
import re
from pathlib import Path
from typing import Any

import yaml

from trusttls.config.settings import TrustTLSSettings, build_settings

log = logging.getLogger(__name__)

_ENV_RE = re.compile(
    r"^\$\{([^}:]+?)(?::-(.*))?\}$",
    re.DOTALL,
)

_KNOWN_SECTIONS = frozenset({"storage", "http", "renewal", "providers", "logging"})
_KNOWN_KEY_TYPES = frozenset({"rsa", "ecdsa"})
_KNOWN_LOG_FORMATS = frozenset({"text", "json"})
_KNOWN_LOG_LEVELS = frozenset({"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"})

DEFAULT_CONFIG_PATHS = (
    Path("/etc/trusttls/config.yaml"),
)


class ConfigValidationError(Exception):
    """Raised when validation finds one or more problems."""

    def __init__(self, errors: list[str]) -> None:
        """Store *errors* and build a human-readable message."""
        self.errors = errors
        body = "\n".join(f"  - {e}" for e in errors)
        super().__init__(f"Configuration validation failed:\n{body}")


# ---------------------------------------------------------------------------
# Environment variable resolution
# ---------------------------------------------------------------------------


def _resolve_value(value: str, path: str) -> str:
    """Replace ``${VAR}`` or ``${VAR:-default}`` with env var value."""
    match = _ENV_RE.match(value)
    if match is None:
        return value
    var_name = match.group(1)
    fallback = match.group(2)
    resolved = os.environ.get(var_name)
    if resolved is not None:
        return resolved
    if fallback is not None:
        return fallback
    raise ConfigValidationError(
        [
            f"Environment variable '${{{var_name}}}' referenced "
            f"at '{path}' is not set and has no default",
        ],
    )


def _resolve_env_vars(
    data: Any,  # noqa: ANN401
    path: str = "",
) -> None:
    """Walk *data* in-place and resolve ``${VAR}``/``${VAR:-default}`` strings."""
    if isinstance(data, dict):
        for key in data:
            child_path = f"{path}.{key}" if path else key
            if isinstance(data[key], str):
                data[key] = _resolve_value(data[key], child_path)
            elif isinstance(data[key], (dict, list)):
                _resolve_env_vars(data[key], child_path)
    elif isinstance(data, list):
        for idx, item in enumerate(data):
            child_path = f"{path}[{idx}]"
            if isinstance(item, str):
                data[idx] = _resolve_value(item, child_path)
            elif isinstance(item, (dict, list)):
                _resolve_env_vars(item, child_path)


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------


def _validate(data: dict) -> None:  # noqa: C901
    errors: list[str] = []

    for section in data:
        if section not in _KNOWN_SECTIONS:
            errors.append(f"unknown section '{section}'; known: {sorted(_KNOWN_SECTIONS)}")
        elif data[section] is not None and not isinstance(data[section], dict):
            errors.append(f"section '{section}' must be a mapping")
    if errors:
        raise ConfigValidationError(errors)

    http = data.get("http") or {}
    timeout = http.get("timeout_seconds", 30)
    if not isinstance(timeout, (int, float)) or timeout <= 0:
        errors.append(f"http.timeout_seconds must be a positive number (got {timeout!r})")

    renewal = data.get("renewal") or {}
    before = renewal.get("renew_before_days", 30)
    if not isinstance(before, int) or before < 1:
        errors.append(f"renewal.renew_before_days must be a positive integer (got {before!r})")

    providers = data.get("providers") or {}
    key_type = providers.get("default_key_type", "rsa")
    if key_type not in _KNOWN_KEY_TYPES:
        errors.append(f"providers.default_key_type must be one of {sorted(_KNOWN_KEY_TYPES)}")
    poll = providers.get("digicert_poll") or {}
    if poll.get("max_attempts", 30) < 1:
        errors.append("providers.digicert_poll.max_attempts must be >= 1")
    if poll.get("interval_seconds", 10) < 0:
        errors.append("providers.digicert_poll.interval_seconds must be >= 0")

    logging_cfg = data.get("logging") or {}
    if str(logging_cfg.get("level", "INFO")).upper() not in _KNOWN_LOG_LEVELS:
        errors.append(f"logging.level must be one of {sorted(_KNOWN_LOG_LEVELS)}")
    if logging_cfg.get("format", "text") not in _KNOWN_LOG_FORMATS:
        errors.append(f"logging.format must be one of {sorted(_KNOWN_LOG_FORMATS)}")

    if errors:
        raise ConfigValidationError(errors)


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def load_settings(config_file: str | Path | None = None) -> TrustTLSSettings:
    """Load settings from *config_file*, or defaults when none is found.

    When *config_file* is ``None`` the :data:`DEFAULT_CONFIG_PATHS` are
    tried in order; a missing file there is not an error.

    Raises
    ------
    ConfigValidationError
        If the file is unreadable, not YAML, or fails validation.

    """
    path: Path | None
    if config_file is not None:
        path = Path(config_file)
        if not path.is_file():
            raise ConfigValidationError([f"configuration file not found: {path}"])
    else:
        path = next((p for p in DEFAULT_CONFIG_PATHS if p.is_file()), None)

    data: dict = {}
    if path is not None:
        try:
            loaded = yaml.safe_load(path.read_text(encoding="utf-8"))
        except (OSError, yaml.YAMLError) as exc:
            raise ConfigValidationError([f"failed to read {path}: {exc}"]) from exc
        if loaded is not None and not isinstance(loaded, dict):
            raise ConfigValidationError([f"{path} must contain a mapping at the top level"])
        data = loaded or {}
        log.debug("Loaded settings from %s", path)

    _resolve_env_vars(data)
    _validate(data)
    return build_settings(data)
