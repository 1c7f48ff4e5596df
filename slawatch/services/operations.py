from __future__ import annotations

import math
from datetime import datetime
from typing import Any, Iterable

from slawatch.services.insights import Insight
from slawatch.services.sla import AT_RISK, BREACHED, count_by_sla_status, evaluate_sla, filter_active_orders
from slawatch.services.stage_clock import coerce_timestamp, order_field, utcnow
from slawatch.services.statuses import OrderStatus, format_status
from slawatch.services.urgency import score_for_result, sort_by_urgency


QUEUES = ("awaiting_payment", "awaiting_processing", "at_risk", "unassigned", "my_queue")
AWAITING_PROCESSING_STATUSES = {OrderStatus.ORDER_CONFIRMED.value, "payment_received"}
SLA_INSIGHT_CATEGORY = "order_sla"


def _at_risk(order: Any, now: datetime) -> bool:
    return evaluate_sla(order, now).status in {AT_RISK, BREACHED}


def build_queues(orders: Iterable[Any], user_id: str | None = None, now: datetime | None = None) -> dict[str, list[Any]]:
    current = coerce_timestamp(now) if now is not None else utcnow()
    active = filter_active_orders(orders)
    mine = [order for order in active if user_id and order_field(order, "assigned_to") == user_id]
    return {
        "awaiting_payment": [o for o in active if order_field(o, "status") == OrderStatus.PENDING_PAYMENT.value],
        "awaiting_processing": [o for o in active if order_field(o, "status") in AWAITING_PROCESSING_STATUSES],
        "at_risk": sort_by_urgency([o for o in active if _at_risk(o, current)], current),
        "unassigned": [o for o in active if not order_field(o, "assigned_to")],
        "my_queue": sort_by_urgency(mine, current),
    }


def queue_orders(name: str, orders: Iterable[Any], user_id: str | None = None, now: datetime | None = None) -> list[Any]:
    if name not in QUEUES:
        raise KeyError(name)
    return build_queues(orders, user_id, now)[name]


def average_days_to_complete(orders: Iterable[Any]) -> int:
    durations: list[int] = []
    for order in orders:
        if order_field(order, "status") != OrderStatus.DELIVERED.value:
            continue
        created = coerce_timestamp(order_field(order, "created_at"))
        delivered = coerce_timestamp(order_field(order, "delivered_at"))
        if created is None or delivered is None:
            continue
        durations.append(math.ceil((delivered - created).total_seconds() / 86400))
    if not durations:
        return 0
    return math.floor(sum(durations) / len(durations) + 0.5)


def operations_kpis(orders: Iterable[Any], now: datetime | None = None) -> dict[str, int]:
    orders = list(orders)
    active = filter_active_orders(orders)
    counts = count_by_sla_status(orders, now)
    return {
        "total_active": len(active),
        "at_risk": counts[AT_RISK] + counts[BREACHED],
        "unassigned": sum(1 for order in active if not order_field(order, "assigned_to")),
        "avg_days_to_complete": average_days_to_complete(orders),
    }


def sla_insights(orders: Iterable[Any], now: datetime | None = None) -> list[Insight]:
    """At-risk and breached orders as insights, most urgent first."""
    current = coerce_timestamp(now) if now is not None else utcnow()
    insights: list[Insight] = []
    for order in sort_by_urgency(filter_active_orders(orders), current):
        result = evaluate_sla(order, current)
        if result.status not in {AT_RISK, BREACHED}:
            continue
        label = order_field(order, "order_number") or order_field(order, "id") or "order"
        insights.append(
            Insight(
                id=order_field(order, "id"),
                category=SLA_INSIGHT_CATEGORY,
                urgency="immediate" if result.status == BREACHED else "soon",
                title=f"{label}: {format_status(order_field(order, 'status'))} {result.status.replace('_', ' ')}",
                detail={**result.as_dict(), "urgencyScore": score_for_result(result)},
            )
        )
    return insights
