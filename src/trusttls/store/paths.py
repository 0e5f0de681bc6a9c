"""Base directory resolution and restricted-permission file helpers."""

from __future__ import annotations

import os
from pathlib import Path

from trusttls.errors import ValidationError

FALLBACK_BASE_DIR = Path("/var/lib/trusttls")

DIR_MODE = 0o700
FILE_MODE = 0o600


def default_base_dir() -> Path:
    """Return ``~/.trusttls``, or the system fallback if home is unknown."""
    try:
        home = Path.home()
    except (KeyError, RuntimeError):
        return FALLBACK_BASE_DIR
    return home / ".trusttls"


def path_component(value: str, what: str) -> str:
    """Return *value* if it is safe to use as one path component.

    Raises
    ------
    ValidationError
        If *value* contains a path separator or is a dot entry.

    """
    if "/" in value or "\\" in value or "\x00" in value or value in {".", ".."}:
        msg = f"invalid {what} {value!r}"
        raise ValidationError(msg)
    return value


def ensure_dir(path: Path, mode: int = DIR_MODE) -> Path:
    """Create *path* (and parents) and force *mode* on the leaf directory."""
    path.mkdir(parents=True, exist_ok=True, mode=mode)
    path.chmod(mode)
    return path


def write_file(path: Path, data: bytes, mode: int = FILE_MODE) -> None:
    """Write *data* to *path* atomically with the given permission bits.

    The content goes to a sibling temp file created with *mode* and is
    renamed over the destination, so readers never see a partial file.
    """
    tmp = path.with_name(f".{path.name}.tmp")
    fd = os.open(tmp, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, mode)
    try:
        with os.fdopen(fd, "wb") as fh:
            fh.write(data)
        tmp.chmod(mode)
        tmp.replace(path)
    except BaseException:
        tmp.unlink(missing_ok=True)
        raise
