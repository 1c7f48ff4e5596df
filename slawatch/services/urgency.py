from __future__ import annotations

from datetime import datetime
from typing import Any, Iterable

from slawatch.services.sla import AT_RISK, BREACHED, SLAResult, evaluate_sla
from slawatch.services.stage_clock import coerce_timestamp, utcnow


BREACHED_BAND = 1000
AT_RISK_BAND = 500


def score_for_result(result: SLAResult) -> int:
    if result.status == BREACHED:
        return BREACHED_BAND + result.days_in_stage
    if result.status == AT_RISK:
        return AT_RISK_BAND + result.days_in_stage
    return result.days_in_stage


def urgency_score(order: Any, now: datetime | None = None) -> int:
    return score_for_result(evaluate_sla(order, now))


def sort_by_urgency(orders: Iterable[Any], now: datetime | None = None) -> list[Any]:
    current = coerce_timestamp(now) if now is not None else utcnow()
    return sorted(orders, key=lambda order: urgency_score(order, current), reverse=True)
