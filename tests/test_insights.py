from __future__ import annotations

from datetime import timedelta

import pytest

from slawatch.services.alert_types import HIGH, STANDARD, AlertTypeRegistry, infer_sensitivity, register_alert_type
from slawatch.services.insights import Insight, group_and_filter, group_insights
from slawatch.services.storage import MemoryKeyValueStore
from slawatch.services.throttle import AlertThrottleStore


@pytest.fixture()
def store(clock) -> AlertThrottleStore:
    return AlertThrottleStore(MemoryKeyValueStore(), clock=clock)


def _items(category: str | None, count: int, prefix: str = "i") -> list[Insight]:
    return [Insight(id=f"{prefix}{n}", category=category, title=f"{prefix}{n}") for n in range(count)]


def test_four_items_collapse_into_one_group():
    grouped = group_insights(_items("inventory", 4))
    assert len(grouped) == 1
    entry = grouped[0]
    assert entry.type == "grouped"
    assert entry.count == 4
    assert [item.id for item in entry.items] == ["i0", "i1", "i2"]
    assert entry.summary == "4 inventory insights (showing 3, +1 more)"


def test_three_items_stay_single():
    grouped = group_insights(_items("inventory", 3))
    assert [entry.type for entry in grouped] == ["single", "single", "single"]
    assert all(entry.count == 1 and len(entry.items) == 1 for entry in grouped)
    assert all(entry.summary is None for entry in grouped)


def test_buckets_follow_first_seen_order():
    items = [
        Insight(id="1", category="finance"),
        Insight(id="2"),
        Insight(id="3", category="finance"),
        Insight(id="4", category="ops"),
    ]
    grouped = group_insights(items)
    assert [(entry.category, entry.items[0].id) for entry in grouped] == [
        ("finance", "1"),
        ("finance", "3"),
        ("general", "2"),
        ("ops", "4"),
    ]


def test_insight_key_defaults():
    assert Insight().key == "general_unknown"
    assert Insight(id="9", category="customer").key == "customer_9"


def test_throttled_items_are_hidden(store):
    items = _items("ops", 2)
    store.mark_as_shown("ops_i0")
    result = group_and_filter(items, store)
    assert [entry.items[0].id for entry in result.visible] == ["i1"]
    assert [item.id for item in result.throttled] == ["i0"]


def test_critical_items_bypass_throttle_and_snooze(store):
    urgent = Insight(id="x", category="ops", urgency="immediate")
    store.snooze_insight(urgent.key, hours=48)
    result = group_and_filter([urgent], store)
    assert result.visible[0].items == [urgent]
    assert result.snoozed_count == 1


def test_risk_amount_over_threshold_bypasses_throttle(store):
    item = Insight(id="x", category="finance")
    store.mark_as_shown(item.key)
    assert group_and_filter([item], store, risk_amount=500, critical_threshold=1000).visible == []
    assert len(group_and_filter([item], store, risk_amount=5000, critical_threshold=1000).visible) == 1
    assert group_and_filter([item], store, risk_amount=5000, critical_threshold=None).visible == []


def test_registered_sensitivity_controls_cooldown(store, clock):
    item = Insight(id="7", category="retention")
    store.mark_as_shown(item.key)
    clock.now += timedelta(hours=13)

    assert group_and_filter([item], store).visible == []
    registry = AlertTypeRegistry({"retention": HIGH})
    assert len(group_and_filter([item], store, registry=registry).visible) == 1


def test_mark_shown_records_surfaced_items(store):
    items = _items("ops", 4)
    result = group_and_filter(items, store, mark_shown=True)
    assert result.visible[0].count == 4
    assert all(store.record(item.key).show_count == 1 for item in items)
    assert group_and_filter(items, store).visible == []


def test_registry_resolves_sensitivity_once():
    assert infer_sensitivity("Customer_Health") == HIGH
    assert infer_sensitivity("churn_risk") == HIGH
    assert infer_sensitivity("inventory") == STANDARD

    registry = AlertTypeRegistry()
    assert registry.register("customer_feedback") == HIGH
    assert registry.register("customer_billing", STANDARD) == STANDARD
    assert registry.sensitivity_for("unregistered_customer") == HIGH
    assert registry.sensitivity_for("unregistered_ops") == STANDARD
    assert registry.categories() == {"customer_feedback": HIGH, "customer_billing": STANDARD}
    with pytest.raises(ValueError):
        registry.register("ops", "extreme")


def test_register_alert_type_upserts(db_session):
    first = register_alert_type(db_session, "t1", "churn_watch")
    assert first.sensitivity == HIGH
    second = register_alert_type(db_session, "t1", "churn_watch", STANDARD, "quieter")
    assert second.id == first.id
    assert second.sensitivity == STANDARD

    registry = AlertTypeRegistry.from_db(db_session, "t1")
    assert registry.categories() == {"churn_watch": STANDARD}
    assert AlertTypeRegistry.from_db(db_session, "t2").categories() == {}


def test_unregistered_customer_category_uses_short_cooldown(store, clock):
    item = Insight(id="42", category="customer_churn")
    store.mark_as_shown(item.key)
    clock.now += timedelta(hours=11)
    assert group_and_filter([item], store).visible == []

    clock.now += timedelta(hours=2)
    assert len(group_and_filter([item], store).visible) == 1


def test_explicit_registration_overrides_name_heuristic(store, clock):
    item = Insight(id="42", category="customer_churn")
    registry = AlertTypeRegistry()
    assert registry.is_high_sensitivity("customer_churn")
    registry.register("customer_churn", STANDARD)

    store.mark_as_shown(item.key)
    clock.now += timedelta(hours=13)
    assert group_and_filter([item], store, registry=registry).visible == []
