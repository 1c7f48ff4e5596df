from __future__ import annotations

from datetime import timedelta

import pytest

from slawatch import models
from slawatch.services.sla import (
    AT_RISK,
    BREACHED,
    ON_TRACK,
    SLA_THRESHOLDS,
    count_by_sla_status,
    evaluate_sla,
    expected_days_for,
    filter_active_orders,
    is_order_at_risk,
    is_order_breached,
)
from slawatch.services.stage_clock import STAGE_ENTRY_FIELDS
from slawatch.services.statuses import OrderStatus, TERMINAL_STATUSES


def _order(status: str, **stamps) -> models.Order:
    return models.Order(tenant_id="t1", order_number="SO-1", status=status, **stamps)


def test_every_status_has_a_threshold():
    assert set(SLA_THRESHOLDS) == set(OrderStatus)
    assert expected_days_for("shipped") == 7
    assert expected_days_for("on_hold") == 2


@pytest.mark.parametrize("status", ["delivered", "cancelled"])
def test_terminal_orders_are_on_track_regardless_of_age(clock, status):
    ancient = clock.now - timedelta(days=900)
    order = _order(status, created_at=ancient, delivered_at=ancient, cancelled_at=ancient)
    result = evaluate_sla(order, clock.now)
    assert result.status == ON_TRACK
    assert result.days_in_stage == 0
    assert result.hours_in_stage == 0
    assert result.expected_days == 0
    assert result.reason == ("Order completed" if status == "delivered" else "Order cancelled")


def test_shipped_six_of_seven_days_is_at_risk(clock):
    order = _order("shipped", shipped_at=clock.now - timedelta(days=6))
    result = evaluate_sla(order, clock.now)
    assert result.status == AT_RISK
    assert result.days_in_stage == 6
    assert result.hours_in_stage == 144
    assert result.expected_days == 7
    assert result.reason == "6 of 7 days used — action needed soon"


def test_pending_payment_four_days_is_breached(clock):
    order = _order("pending_payment", created_at=clock.now - timedelta(days=4))
    result = evaluate_sla(order, clock.now)
    assert result.status == BREACHED
    assert result.reason == "4 days in Pending Payment (expected 3)"


def test_on_track_reason_states_days_remaining(clock):
    order = _order("shipped", shipped_at=clock.now - timedelta(days=2, hours=23))
    result = evaluate_sla(order, clock.now)
    assert result.status == ON_TRACK
    assert result.days_in_stage == 2
    assert result.hours_in_stage == 71
    assert result.reason == "5 days remaining"


@pytest.mark.parametrize("status", [s for s in OrderStatus if s not in TERMINAL_STATUSES])
def test_classification_partitions_day_counts(clock, status):
    expected = SLA_THRESHOLDS[status]
    field_name = STAGE_ENTRY_FIELDS[status][0]
    for days in range(0, 40):
        order = _order(status.value, **{field_name: clock.now - timedelta(days=days)})
        result = evaluate_sla(order, clock.now)
        breached = days > expected
        at_risk = not breached and days / expected >= 0.75
        on_track = not breached and not at_risk
        assert [breached, at_risk, on_track].count(True) == 1
        assert (result.status == BREACHED) == breached
        assert (result.status == AT_RISK) == at_risk
        assert (result.status == ON_TRACK) == on_track


def test_unknown_status_uses_default_threshold_and_updated_at(clock):
    order = _order("on_hold", updated_at=clock.now - timedelta(days=3), created_at=clock.now - timedelta(days=30))
    result = evaluate_sla(order, clock.now)
    assert result.expected_days == 2
    assert result.days_in_stage == 3
    assert result.status == BREACHED
    assert result.reason == "3 days in On Hold (expected 2)"


def test_missing_stage_entry_reads_as_just_entered(clock):
    order = _order("processing", created_at=clock.now - timedelta(days=20))
    result = evaluate_sla(order, clock.now)
    assert result.status == ON_TRACK
    assert result.days_in_stage == 0
    assert result.entry_known is False
    assert result.reason == "2 days remaining"


def test_malformed_timestamp_is_tolerated(clock):
    result = evaluate_sla({"status": "shipped", "shipped_at": "not-a-date"}, clock.now)
    assert result.status == ON_TRACK
    assert result.days_in_stage == 0
    assert result.entry_known is False


def test_evaluation_is_idempotent(clock):
    order = _order("ready_to_ship", ready_to_ship_at=clock.now - timedelta(hours=30))
    assert evaluate_sla(order, clock.now) == evaluate_sla(order, clock.now)


def test_risk_helpers_and_counts(clock):
    orders = [
        _order("pending_payment", created_at=clock.now - timedelta(days=5)),
        _order("shipped", shipped_at=clock.now - timedelta(days=6)),
        _order("processing", processing_started_at=clock.now),
        _order("delivered", delivered_at=clock.now - timedelta(days=40)),
        _order("cancelled"),
    ]
    assert is_order_breached(orders[0], clock.now)
    assert is_order_at_risk(orders[0], clock.now)
    assert is_order_at_risk(orders[1], clock.now)
    assert not is_order_breached(orders[1], clock.now)
    assert not is_order_at_risk(orders[2], clock.now)

    assert len(filter_active_orders(orders)) == 3
    assert count_by_sla_status(orders, clock.now) == {ON_TRACK: 1, AT_RISK: 1, BREACHED: 1}
    assert count_by_sla_status([], clock.now) == {ON_TRACK: 0, AT_RISK: 0, BREACHED: 0}
