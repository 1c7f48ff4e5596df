from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Iterable

from slawatch import config
from slawatch.services.stage_clock import coerce_timestamp, days_in_stage, hours_in_stage, order_field, stage_entry_date, utcnow
from slawatch.services.statuses import OrderStatus, format_status, is_terminal, parse_status


ON_TRACK = "on_track"
AT_RISK = "at_risk"
BREACHED = "breached"
SLA_STATUSES = (ON_TRACK, AT_RISK, BREACHED)

# Raises KeyError at import when a status has no configured threshold.
SLA_THRESHOLDS: dict[OrderStatus, int] = {status: config.SLA_THRESHOLD_DAYS[status.value] for status in OrderStatus}


@dataclass(frozen=True)
class SLAResult:
    status: str
    reason: str
    days_in_stage: int
    hours_in_stage: int
    expected_days: int
    entry_known: bool = True

    def as_dict(self) -> dict[str, Any]:
        return {
            "status": self.status,
            "reason": self.reason,
            "daysInStage": self.days_in_stage,
            "hoursInStage": self.hours_in_stage,
            "expectedDays": self.expected_days,
            "entryKnown": self.entry_known,
        }


def expected_days_for(status: object) -> int:
    parsed = parse_status(status)
    if parsed is None:
        return config.DEFAULT_SLA_THRESHOLD_DAYS
    return SLA_THRESHOLDS[parsed]


def classify(days: int, expected_days: int) -> str:
    if days > expected_days:
        return BREACHED
    if expected_days > 0 and days / expected_days >= config.AT_RISK_RATIO:
        return AT_RISK
    return ON_TRACK


def evaluate_sla(order: Any, now: datetime | None = None) -> SLAResult:
    """Classify how an order is tracking against the allowance for its current stage.

    Terminal orders short-circuit to on_track. An order whose stage entry
    timestamp is missing reads as having just entered the stage; the result
    carries ``entry_known=False`` so callers can surface it separately.
    """
    status = order_field(order, "status")
    if is_terminal(status):
        reason = "Order completed" if parse_status(status) == OrderStatus.DELIVERED else "Order cancelled"
        return SLAResult(status=ON_TRACK, reason=reason, days_in_stage=0, hours_in_stage=0, expected_days=0)

    current = coerce_timestamp(now) if now is not None else utcnow()
    expected = expected_days_for(status)
    days = days_in_stage(order, current)
    hours = hours_in_stage(order, current)
    sla_status = classify(days, expected)

    if sla_status == BREACHED:
        reason = f"{days} days in {format_status(status)} (expected {expected})"
    elif sla_status == AT_RISK:
        reason = f"{days} of {expected} days used — action needed soon"
    else:
        reason = f"{expected - days} days remaining"

    return SLAResult(
        status=sla_status,
        reason=reason,
        days_in_stage=days,
        hours_in_stage=hours,
        expected_days=expected,
        entry_known=stage_entry_date(order) is not None,
    )


def is_order_at_risk(order: Any, now: datetime | None = None) -> bool:
    return evaluate_sla(order, now).status in {AT_RISK, BREACHED}


def is_order_breached(order: Any, now: datetime | None = None) -> bool:
    return evaluate_sla(order, now).status == BREACHED


def filter_active_orders(orders: Iterable[Any]) -> list[Any]:
    return [order for order in orders if not is_terminal(order_field(order, "status"))]


def count_by_sla_status(orders: Iterable[Any], now: datetime | None = None) -> dict[str, int]:
    counts = {key: 0 for key in SLA_STATUSES}
    for order in filter_active_orders(orders):
        counts[evaluate_sla(order, now).status] += 1
    return counts
