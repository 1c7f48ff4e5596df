from __future__ import annotations

from slawatch import config, models
from slawatch.seed import DEMO_ORDERS, seed_demo_data
from slawatch.services.operations import operations_kpis
from slawatch.services.query import tenant_orders


def test_seed_is_idempotent_and_covers_every_band(db_session):
    seed_demo_data(db_session)
    seed_demo_data(db_session)

    orders = tenant_orders(db_session, config.DEFAULT_TENANT_ID)
    assert len(orders) == len(DEMO_ORDERS)
    kpis = operations_kpis(orders)
    assert kpis["total_active"] == len(DEMO_ORDERS) - 1
    assert kpis["at_risk"] >= 2

    categories = {
        row.category: row.sensitivity
        for row in db_session.query(models.AlertType).filter(models.AlertType.tenant_id == config.DEFAULT_TENANT_ID)
    }
    assert categories == {"customer_churn": "high", "order_sla": "standard"}
