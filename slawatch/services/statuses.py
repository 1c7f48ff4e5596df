from __future__ import annotations

from enum import Enum


class OrderStatus(str, Enum):
    PENDING_PAYMENT = "pending_payment"
    ORDER_CONFIRMED = "order_confirmed"
    PROCESSING = "processing"
    READY_TO_SHIP = "ready_to_ship"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"
    DELIVERY_FAILED = "delivery_failed"


TERMINAL_STATUSES = frozenset({OrderStatus.DELIVERED, OrderStatus.CANCELLED})


def parse_status(value: object) -> OrderStatus | None:
    if isinstance(value, OrderStatus):
        return value
    if not isinstance(value, str):
        return None
    try:
        return OrderStatus(value.strip().lower())
    except ValueError:
        return None


def is_terminal(value: object) -> bool:
    return parse_status(value) in TERMINAL_STATUSES


def format_status(value: object) -> str:
    raw = value.value if isinstance(value, OrderStatus) else str(value)
    return " ".join(word[:1].upper() + word[1:] for word in raw.split("_"))
