# storefront/services/order_state.py
"""
Order and payment state machines.

Every status change in the codebase goes through `check_order_transition` /
`check_payment_transition`; endpoints never compare statuses themselves.

    pending -> confirmed -> processing -> shipped -> delivered
       \\           \\            \\
        +-----------+------------+--> cancelled
    delivered -> returned -> refunded
"""
from storefront.core.errors import ConflictError, ValidationError

ORDER_STATUSES = (
    "pending",
    "confirmed",
    "processing",
    "shipped",
    "delivered",
    "cancelled",
    "returned",
    "refunded",
)

ORDER_TRANSITIONS: dict[str, frozenset[str]] = {
    "pending": frozenset({"confirmed", "cancelled"}),
    "confirmed": frozenset({"processing", "cancelled"}),
    "processing": frozenset({"shipped", "cancelled"}),
    "shipped": frozenset({"delivered"}),
    "delivered": frozenset({"returned"}),
    "returned": frozenset({"refunded"}),
    # terminal; re-cancelling is accepted as a no-op
    "cancelled": frozenset({"cancelled"}),
    "refunded": frozenset(),
}

# Order-level fulfillment view of each order status
FULFILLMENT_FOR_STATUS: dict[str, str] = {
    "pending": "pending",
    "confirmed": "pending",
    "processing": "in_progress",
    "shipped": "shipped",
    "delivered": "delivered",
    "cancelled": "cancelled",
    "returned": "returned",
    "refunded": "returned",
}

PAYMENT_STATUSES = (
    "pending",
    "paid",
    "failed",
    "cancelled",
    "refunded",
    "partially_refunded",
)

PAYMENT_TRANSITIONS: dict[str, frozenset[str]] = {
    "pending": frozenset({"paid", "failed", "cancelled"}),
    "failed": frozenset({"paid", "pending"}),
    "paid": frozenset({"refunded", "partially_refunded"}),
    "partially_refunded": frozenset({"refunded"}),
    "cancelled": frozenset(),
    "refunded": frozenset(),
}

CANCELLABLE_STATUSES = frozenset(
    status for status, nxt in ORDER_TRANSITIONS.items()
    if "cancelled" in nxt and status != "cancelled"
)


def check_order_transition(current: str, new: str) -> bool:
    """
    Validate an order status change.

    Returns True when the change must be applied (and recorded in history),
    False for an accepted no-op (cancelled -> cancelled).

    Raises:
        ValidationError: unknown target status.
        ConflictError: transition not in ORDER_TRANSITIONS.
    """
    if new not in ORDER_TRANSITIONS:
        raise ValidationError(f"Unknown order status: {new}")
    allowed = ORDER_TRANSITIONS.get(current, frozenset())
    if new not in allowed:
        raise ConflictError(
            f"Invalid status transition: {current} -> {new}",
            details={"from": current, "to": new, "allowed": sorted(allowed)},
            code="INVALID_TRANSITION",
        )
    return new != current


def check_payment_transition(current: str, new: str) -> bool:
    if new not in PAYMENT_TRANSITIONS:
        raise ValidationError(f"Unknown payment status: {new}")
    if new == current:
        return False
    allowed = PAYMENT_TRANSITIONS.get(current, frozenset())
    if new not in allowed:
        raise ConflictError(
            f"Invalid payment transition: {current} -> {new}",
            details={"from": current, "to": new, "allowed": sorted(allowed)},
            code="INVALID_TRANSITION",
        )
    return True
