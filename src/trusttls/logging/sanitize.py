"""Sensitive data sanitization for log output.

Provides :func:`sanitize_for_logs` which redacts account secrets (HMAC
keys, API keys, EAB keys) and PEM bodies (private keys, CSRs) from data
structures before they are logged.  Identifiers such as the email,
server URL and key IDs are preserved.
"""

from __future__ import annotations

import re
from typing import Any

REDACTED = "[REDACTED]"

_SECRET_FIELDS = frozenset(
    {
        "hmac_key",
        "api_key",
        "eab_hmac_key",
        "private_key",
        "X-DC-DEVKEY",
        "X-DC-SIGNATURE",
    }
)

# Regex matching the base64 body inside PEM blocks
_PEM_BODY_RE = re.compile(
    r"(-----BEGIN [A-Z0-9 ]+-----)"
    r"([\s\S]*?)"
    r"(-----END [A-Z0-9 ]+-----)",
)


def sanitize_pem(pem: str) -> str:
    """Replace the base64 body of PEM blocks with ``[REDACTED]``.

    Preserves BEGIN/END markers so the type of object is still visible.
    """

    def _redact(m) -> str:
        return f"{m.group(1)}\n{REDACTED}\n{m.group(3)}"

    return _PEM_BODY_RE.sub(_redact, pem)


def sanitize_for_logs(data: Any) -> Any:
    """Recursively sanitize sensitive material in *data*.

    Handles dicts (secret fields by name, PEM strings in values), lists,
    and plain strings.  Non-sensitive data passes through unchanged.
    """
    if isinstance(data, dict):
        return {
            k: (REDACTED if k in _SECRET_FIELDS and v else sanitize_for_logs(v))
            for k, v in data.items()
        }

    if isinstance(data, (list, tuple)):
        return type(data)(sanitize_for_logs(item) for item in data)

    if isinstance(data, str):
        if "-----BEGIN " in data:
            return sanitize_pem(data)
        return data

    return data
