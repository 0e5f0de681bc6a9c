"""DigiCert REST order state machine.

Defines the valid status transitions for an order while it is being
polled.  All transitions are enforced via :func:`assert_transition`.

Order: pending -> pending (still processing) / issued / failed / timeout.
issued, failed and timeout are terminal.

Usage::

    from trusttls.core.state import ORDER_TRANSITIONS, assert_transition
    from trusttls.core.types import OrderStatus

    assert_transition(OrderStatus.PENDING, OrderStatus.ISSUED, ORDER_TRANSITIONS)
"""

from __future__ import annotations

import logging

from trusttls.core.types import OrderStatus

log = logging.getLogger(__name__)

ORDER_TRANSITIONS: dict[OrderStatus, frozenset[OrderStatus]] = {
    OrderStatus.PENDING: frozenset(
        {
            OrderStatus.PENDING,
            OrderStatus.ISSUED,
            OrderStatus.FAILED,
            OrderStatus.TIMEOUT,
        }
    ),
    OrderStatus.ISSUED: frozenset(),
    OrderStatus.FAILED: frozenset(),
    OrderStatus.TIMEOUT: frozenset(),
}

TERMINAL_STATUSES = frozenset(s for s, allowed in ORDER_TRANSITIONS.items() if not allowed)


def classify_remote_status(value: str) -> OrderStatus:
    """Map a status string reported by the CA onto :class:`OrderStatus`.

    Anything other than ``issued`` or ``failed`` means the order is
    still in progress.
    """
    normalized = (value or "").strip().lower()
    if normalized == OrderStatus.ISSUED:
        return OrderStatus.ISSUED
    if normalized == OrderStatus.FAILED:
        return OrderStatus.FAILED
    return OrderStatus.PENDING


def assert_transition(
    current: OrderStatus,
    target: OrderStatus,
    table: dict,
) -> None:
    """Raise :class:`ValueError` if *current* -> *target* is not allowed."""
    allowed = table.get(current)
    if allowed is None:
        msg = f"Unknown status {current!r}"
        raise ValueError(msg)
    if target not in allowed:
        msg = (
            f"Invalid transition {current.value!r} -> {target.value!r}; "
            f"allowed targets: {sorted(s.value for s in allowed) or '(terminal)'}"
        )
        raise ValueError(msg)


def log_transition(
    resource_id: str,
    from_status: OrderStatus,
    to_status: OrderStatus,
    *,
    attempt: int | None = None,
) -> None:
    """Emit a structured log entry for an order status change."""
    extra = {
        "event": "state_transition",
        "resource_type": "order",
        "resource_id": str(resource_id),
        "from_status": from_status.value,
        "to_status": to_status.value,
    }
    if attempt is not None:
        extra["attempt"] = attempt
    log.info(
        "order %s: %s -> %s",
        resource_id,
        extra["from_status"],
        extra["to_status"],
        extra=extra,
    )
