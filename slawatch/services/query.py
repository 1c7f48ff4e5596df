from __future__ import annotations

from datetime import datetime

from sqlalchemy.orm import Session

from slawatch import models
from slawatch.services.statuses import OrderStatus
from slawatch.services.storage import SqlKeyValueStore
from slawatch.services.throttle import AlertThrottleStore


# Timestamp stamped when an order moves into a status; pending_payment relies on created_at.
TRANSITION_FIELDS: dict[OrderStatus, str | None] = {
    OrderStatus.PENDING_PAYMENT: None,
    OrderStatus.ORDER_CONFIRMED: "payment_confirmed_at",
    OrderStatus.PROCESSING: "processing_started_at",
    OrderStatus.READY_TO_SHIP: "ready_to_ship_at",
    OrderStatus.SHIPPED: "shipped_at",
    OrderStatus.DELIVERED: "delivered_at",
    OrderStatus.CANCELLED: "cancelled_at",
    OrderStatus.DELIVERY_FAILED: "failed_delivery_at",
}


def tenant_orders(db: Session, tenant_id: str, status: str | None = None) -> list[models.Order]:
    query = db.query(models.Order).filter(models.Order.tenant_id == tenant_id)
    if status:
        query = query.filter(models.Order.status == status)
    return query.order_by(models.Order.created_at.asc()).all()


def get_tenant_order(db: Session, tenant_id: str, order_id: str) -> models.Order | None:
    return (
        db.query(models.Order)
        .filter(models.Order.id == order_id, models.Order.tenant_id == tenant_id)
        .first()
    )


def transition_order(db: Session, order: models.Order, status: OrderStatus, at: datetime) -> models.Order:
    order.status = status.value
    field_name = TRANSITION_FIELDS[status]
    if field_name:
        setattr(order, field_name, at)
    order.updated_at = at
    db.commit()
    db.refresh(order)
    return order


def throttle_store_for(db: Session, tenant_id: str) -> AlertThrottleStore:
    return AlertThrottleStore(SqlKeyValueStore(db, namespace=tenant_id))
