from __future__ import annotations

from datetime import date, datetime, timezone
from typing import Any

from slawatch.services.statuses import OrderStatus, parse_status


# Most specific timestamp first; the first one present marks stage entry.
STAGE_ENTRY_FIELDS: dict[OrderStatus, tuple[str, ...]] = {
    OrderStatus.PENDING_PAYMENT: ("created_at",),
    OrderStatus.ORDER_CONFIRMED: ("payment_confirmed_at", "created_at"),
    OrderStatus.PROCESSING: ("processing_started_at", "payment_confirmed_at"),
    OrderStatus.READY_TO_SHIP: ("ready_to_ship_at",),
    OrderStatus.SHIPPED: ("shipped_at",),
    OrderStatus.DELIVERED: ("delivered_at",),
    OrderStatus.DELIVERY_FAILED: ("failed_delivery_at",),
    OrderStatus.CANCELLED: ("cancelled_at",),
}
UNKNOWN_STATUS_FIELDS = ("updated_at",)

_uncovered = set(OrderStatus) - set(STAGE_ENTRY_FIELDS)
if _uncovered:
    raise RuntimeError(f"stage entry fields missing for: {sorted(s.value for s in _uncovered)}")


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def coerce_timestamp(value: Any) -> datetime | None:
    """Normalise a stored timestamp to naive UTC, or None when unusable."""
    if value is None:
        return None
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            return value.astimezone(timezone.utc).replace(tzinfo=None)
        return value
    if isinstance(value, date):
        return datetime.combine(value, datetime.min.time())
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            return coerce_timestamp(datetime.fromisoformat(text))
        except ValueError:
            return None
    return None


def order_field(order: Any, name: str) -> Any:
    if isinstance(order, dict):
        return order.get(name)
    return getattr(order, name, None)


def stage_entry_date(order: Any) -> datetime | None:
    status = parse_status(order_field(order, "status"))
    fields = STAGE_ENTRY_FIELDS[status] if status is not None else UNKNOWN_STATUS_FIELDS
    for name in fields:
        stamp = coerce_timestamp(order_field(order, name))
        if stamp is not None:
            return stamp
    return None


def _elapsed_seconds(order: Any, now: datetime | None) -> float:
    entry = stage_entry_date(order)
    if entry is None:
        return 0.0
    current = coerce_timestamp(now) if now is not None else utcnow()
    return max((current - entry).total_seconds(), 0.0)


def days_in_stage(order: Any, now: datetime | None = None) -> int:
    return int(_elapsed_seconds(order, now) // 86400)


def hours_in_stage(order: Any, now: datetime | None = None) -> int:
    return int(_elapsed_seconds(order, now) // 3600)
