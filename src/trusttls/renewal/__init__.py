"""Renewal records and the renewal scheduler."""

from trusttls.renewal.config import RenewalConfig
from trusttls.renewal.engine import RenewalEngine, RenewalSummary

__all__ = [
    "RenewalConfig",
    "RenewalEngine",
    "RenewalSummary",
]
