"""Logging subsystem for trusttls.

Public API::

    from trusttls.logging import configure_logging

    configure_logging(settings.logging)
"""

from trusttls.logging.sanitize import sanitize_for_logs
from trusttls.logging.setup import configure_logging

__all__ = ["configure_logging", "sanitize_for_logs"]
