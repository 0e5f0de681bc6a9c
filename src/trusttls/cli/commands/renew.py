"""``trusttls renew``: re-issue every certificate that is due."""

from __future__ import annotations

import logging

from trusttls.core.deadline import Deadline
from trusttls.errors import RenewalError
from trusttls.renewal import RenewalEngine

log = logging.getLogger(__name__)


def run_renew(settings, args) -> int:
    """Run one renewal pass and report the outcome."""
    engine = RenewalEngine(settings)
    deadline = Deadline(args.timeout) if args.timeout else None

    try:
        summary = engine.run_all(verbose=args.verbose, deadline=deadline)
    except RenewalError as exc:
        print("Some certificates could not be renewed:")
        for domain, cause in exc.failures.items():
            print(f"  {domain}: {cause}")
        return 1

    for domain in summary.renewed:
        print(f"renewed {domain}")
    if args.verbose:
        for domain in summary.skipped:
            print(f"not due {domain}")
    print(
        f"Renewal completed: {len(summary.renewed)} renewed, "
        f"{len(summary.skipped)} not due.",
    )
    return 0
