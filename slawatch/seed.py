from __future__ import annotations

from datetime import timedelta

from slawatch import config, models
from slawatch.services.alert_types import register_alert_type


DEMO_ORDERS = [
    # (order number, customer, status, stage timestamp field, age in days, assignee)
    ("SO-1001", "Harbor Foods", "pending_payment", "created_at", 4, None),
    ("SO-1002", "Northwind Traders", "order_confirmed", "payment_confirmed_at", 0, config.DEFAULT_USER_ID),
    ("SO-1003", "Blue Ridge Supply", "processing", "processing_started_at", 2, config.DEFAULT_USER_ID),
    ("SO-1004", "Atlas Hardware", "shipped", "shipped_at", 6, None),
    ("SO-1005", "Crescent Labs", "ready_to_ship", "ready_to_ship_at", 0, "ops-2"),
    ("SO-1006", "Maple Street Cafe", "delivery_failed", "failed_delivery_at", 3, None),
    ("SO-1007", "Harbor Foods", "delivered", "delivered_at", 1, "ops-2"),
]


def seed_demo_data(db) -> None:
    existing = db.query(models.Order).filter(models.Order.tenant_id == config.DEFAULT_TENANT_ID).count()
    if existing > 0:
        return

    now = models.utcnow()
    for number, customer, status, stamp_field, age_days, assignee in DEMO_ORDERS:
        stamped_at = now - timedelta(days=age_days, hours=1)
        order = models.Order(
            tenant_id=config.DEFAULT_TENANT_ID,
            order_number=number,
            customer_name=customer,
            status=status,
            total_amount=1250.0,
            assigned_to=assignee,
            created_at=stamped_at - timedelta(days=2) if stamp_field != "created_at" else stamped_at,
        )
        setattr(order, stamp_field, stamped_at)
        db.add(order)
    db.commit()

    register_alert_type(db, config.DEFAULT_TENANT_ID, "customer_churn", description="Customers showing churn signals")
    register_alert_type(db, config.DEFAULT_TENANT_ID, "order_sla", "standard", "Orders at risk of missing their stage SLA")
