"""
Order lifecycle state machine. Valid transitions enforce business rules.
"""
from enum import Enum


class OrderStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    PREPARING = "preparing"
    OUT_FOR_DELIVERY = "out_for_delivery"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


# Current status -> allowed next status
VALID_TRANSITIONS: dict[str, frozenset[str]] = {
    "pending": frozenset({"confirmed", "cancelled"}),
    "confirmed": frozenset({"preparing", "cancelled"}),
    "preparing": frozenset({"out_for_delivery", "cancelled"}),
    "out_for_delivery": frozenset({"delivered", "cancelled"}),
    "delivered": frozenset(),  # terminal
    "cancelled": frozenset(),  # terminal
}

TERMINAL_STATUSES = frozenset(s for s, allowed in VALID_TRANSITIONS.items() if not allowed)
MODIFIABLE_STATUSES = frozenset({"pending", "confirmed"})


def _value(status: "str | OrderStatus | None") -> str | None:
    return status.value if isinstance(status, OrderStatus) else status


def allowed_transitions(current_status: "str | OrderStatus | None") -> frozenset[str]:
    return VALID_TRANSITIONS.get(_value(current_status), frozenset())


def is_valid_transition(current_status: "str | OrderStatus | None", new_status: "str | OrderStatus") -> bool:
    """True if new_status is allowed after current_status. Unknown current_status allows nothing."""
    return _value(new_status) in allowed_transitions(current_status)


def can_modify(status: "str | OrderStatus | None") -> bool:
    """Address/payment fields may only change before the kitchen starts."""
    return _value(status) in MODIFIABLE_STATUSES
