"""Structured logging configuration for trusttls.

Two output styles are supported: JSON lines for unattended renewal runs
(cron, systemd timers) and a compact text format for interactive use.
Records always carry ``domain`` and ``provider`` attributes so that a
run over many domains can be filtered per certificate.
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import UTC, datetime
from logging.handlers import RotatingFileHandler
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from trusttls.config.settings import LoggingSettings

_CONTEXT_ATTRS = ("domain", "provider")

# Attributes every LogRecord has; anything beyond these came in via extra=.
_RECORD_ATTRS = frozenset(
    vars(logging.LogRecord("", logging.INFO, "", 0, "", (), None)),
) | {"message", "asctime", *_CONTEXT_ATTRS}


# ---------------------------------------------------------------------------
# Formatters
# ---------------------------------------------------------------------------


class StructuredFormatter(logging.Formatter):
    """One JSON object per record.

    Context attributes left at their ``"-"`` placeholder are omitted;
    caller ``extra`` fields are copied as-is.
    """

    def format(self, record: logging.LogRecord) -> str:
        created = datetime.fromtimestamp(record.created, tz=UTC)
        payload: dict = {
            "timestamp": created.isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for attr in _CONTEXT_ATTRS:
            value = getattr(record, attr, "-")
            if value not in (None, "-"):
                payload[attr] = str(value)

        payload.update(
            (key, value)
            for key, value in vars(record).items()
            if key not in _RECORD_ATTRS and not key.startswith("_") and key not in payload
        )

        if record.exc_info and record.exc_info[0] is not None:
            payload["exception"] = self.formatException(record.exc_info)
        if record.stack_info:
            payload["stack_info"] = self.formatStack(record.stack_info)
        return json.dumps(payload, default=str)


class TextFormatter(logging.Formatter):
    """``2026-01-01 12:00:00 INFO     [example.com] trusttls.renewal: ...``"""

    def __init__(self) -> None:
        super().__init__(
            fmt="%(asctime)s %(levelname)-8s [%(domain)s] %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )


# ---------------------------------------------------------------------------
# Filter
# ---------------------------------------------------------------------------


class IssuanceContextFilter(logging.Filter):
    """Default the ``domain`` and ``provider`` attributes to ``"-"``.

    Callers attach the real values through ``extra=``.
    """

    def filter(self, record: logging.LogRecord) -> bool:  # type: ignore[override]
        for attr in _CONTEXT_ATTRS:
            if not hasattr(record, attr):
                setattr(record, attr, "-")
        return True


# ---------------------------------------------------------------------------
# Setup
# ---------------------------------------------------------------------------


def configure_logging(settings: LoggingSettings) -> logging.Logger:
    """Attach handlers to the ``trusttls`` logger according to *settings*.

    Console output goes to stderr in the configured format.  When
    ``settings.file`` is set, records are also written as JSON lines to
    a size-rotated file; if that file cannot be opened a warning is
    logged and console logging continues.

    Returns the ``trusttls`` logger.
    """
    logger = logging.getLogger("trusttls")
    logger.setLevel(getattr(logging, settings.level.upper(), logging.INFO))
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
    logger.propagate = False

    context = IssuanceContextFilter()
    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stderr)]
    handlers[0].setFormatter(
        StructuredFormatter() if settings.format == "json" else TextFormatter(),
    )

    file_error: OSError | None = None
    if settings.file:
        try:
            file_handler = RotatingFileHandler(
                settings.file,
                maxBytes=settings.max_file_size_bytes,
                backupCount=settings.backup_count,
            )
        except OSError as exc:
            file_error = exc
        else:
            file_handler.setFormatter(StructuredFormatter())
            handlers.append(file_handler)

    for handler in handlers:
        handler.addFilter(context)
        logger.addHandler(handler)

    if file_error is not None:
        logger.warning("Could not open log file %s: %s", settings.file, file_error)

    for noisy in ("urllib3", "acmeow"):
        logging.getLogger(noisy).setLevel(logging.WARNING)

    return logger
