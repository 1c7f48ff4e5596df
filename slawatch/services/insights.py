from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Iterable

from slawatch import config
from slawatch.services.alert_types import AlertTypeRegistry
from slawatch.services.throttle import AlertThrottleStore, is_critical


DEFAULT_CATEGORY = "general"


@dataclass(frozen=True)
class Insight:
    id: str | None = None
    category: str | None = None
    urgency: str | None = None
    title: str = ""
    detail: dict[str, Any] = field(default_factory=dict)

    @property
    def category_name(self) -> str:
        return self.category or DEFAULT_CATEGORY

    @property
    def key(self) -> str:
        return f"{self.category_name}_{self.id or 'unknown'}"


@dataclass(frozen=True)
class GroupedInsight:
    type: str
    category: str
    items: list[Insight]
    count: int
    summary: str | None = None


@dataclass
class GroupResult:
    visible: list[GroupedInsight]
    snoozed_count: int
    throttled: list[Insight] = field(default_factory=list)


def group_insights(items: Iterable[Insight], max_group_size: int = config.MAX_GROUP_SIZE) -> list[GroupedInsight]:
    buckets: dict[str, list[Insight]] = {}
    for item in items:
        buckets.setdefault(item.category_name, []).append(item)

    grouped: list[GroupedInsight] = []
    for category, bucket in buckets.items():
        if len(bucket) <= max_group_size:
            grouped.extend(GroupedInsight(type="single", category=category, items=[item], count=1) for item in bucket)
            continue
        remaining = len(bucket) - max_group_size
        grouped.append(
            GroupedInsight(
                type="grouped",
                category=category,
                items=bucket[:max_group_size],
                count=len(bucket),
                summary=f"{len(bucket)} {category} insights (showing {max_group_size}, +{remaining} more)",
            )
        )
    return grouped


def group_and_filter(
    items: Iterable[Insight],
    store: AlertThrottleStore,
    registry: AlertTypeRegistry | None = None,
    risk_amount: float | None = None,
    critical_threshold: float | None = config.CRITICAL_RISK_AMOUNT,
    mark_shown: bool = False,
) -> GroupResult:
    """Drop throttled insights and collapse crowded categories.

    Critical insights are always kept. Input order is preserved both across
    and within categories.
    """
    registry = registry or AlertTypeRegistry()
    snoozed_count = store.snoozed_count()
    visible: list[Insight] = []
    throttled: list[Insight] = []

    for item in items:
        if is_critical(item, risk_amount, critical_threshold):
            visible.append(item)
        elif not store.is_throttled(item.key, registry.is_high_sensitivity(item.category_name)):
            visible.append(item)
        else:
            throttled.append(item)

    if mark_shown:
        for item in visible:
            store.mark_as_shown(item.key)

    return GroupResult(visible=group_insights(visible), snoozed_count=snoozed_count, throttled=throttled)
