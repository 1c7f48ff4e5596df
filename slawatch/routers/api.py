from __future__ import annotations

import logging
from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from slawatch import models, schemas
from slawatch.deps import (
    RequestContext,
    get_alert_registry,
    get_db,
    get_request_context,
    get_throttle_store,
    require_roles,
)
from slawatch.services.alert_types import AlertTypeRegistry, register_alert_type
from slawatch.services.insights import GroupResult, Insight, group_and_filter
from slawatch.services.operations import QUEUES, operations_kpis, queue_orders, sla_insights
from slawatch.services.query import get_tenant_order, tenant_orders, transition_order
from slawatch.services.sla import AT_RISK, BREACHED, ON_TRACK, SLA_STATUSES, count_by_sla_status, evaluate_sla
from slawatch.services.stage_clock import coerce_timestamp, stage_entry_date, utcnow
from slawatch.services.throttle import AlertThrottleStore
from slawatch.services.urgency import score_for_result, sort_by_urgency

router = APIRouter(prefix="/api", tags=["api"])
logger = logging.getLogger("slawatch.api")


def _order_view(order: models.Order, now: datetime) -> schemas.OrderView:
    result = evaluate_sla(order, now)
    return schemas.OrderView(
        id=order.id,
        orderNumber=order.order_number,
        customerName=order.customer_name,
        status=order.status,
        totalAmount=order.total_amount,
        assignedTo=order.assigned_to,
        createdAt=order.created_at,
        stageEnteredAt=stage_entry_date(order),
        sla=schemas.SLAView(**result.as_dict()),
        urgencyScore=score_for_result(result),
    )


def _insight_view(item: Insight) -> schemas.InsightView:
    return schemas.InsightView(
        id=item.id,
        key=item.key,
        category=item.category_name,
        urgency=item.urgency,
        title=item.title,
        detail=item.detail,
    )


def _feed_response(result: GroupResult) -> schemas.InsightFeedResponse:
    return schemas.InsightFeedResponse(
        visible=[
            schemas.GroupedInsightView(
                type=entry.type,
                category=entry.category,
                items=[_insight_view(item) for item in entry.items],
                count=entry.count,
                summary=entry.summary,
            )
            for entry in result.visible
        ],
        snoozedCount=result.snoozed_count,
        throttledCount=len(result.throttled),
    )


@router.post("/orders", response_model=schemas.OrderView, status_code=status.HTTP_201_CREATED)
def create_order(
    payload: schemas.CreateOrderRequest,
    db: Session = Depends(get_db),
    ctx: RequestContext = Depends(get_request_context),
):
    require_roles(ctx, "owner", "pm", "coordinator")
    now = utcnow()
    order = models.Order(
        tenant_id=ctx.tenant_id,
        order_number=payload.orderNumber,
        customer_name=payload.customerName,
        status=payload.status.value,
        total_amount=payload.totalAmount,
        assigned_to=payload.assignedTo,
        created_at=coerce_timestamp(payload.createdAt) or now,
        updated_at=now,
        payment_confirmed_at=coerce_timestamp(payload.paymentConfirmedAt),
        processing_started_at=coerce_timestamp(payload.processingStartedAt),
        ready_to_ship_at=coerce_timestamp(payload.readyToShipAt),
        shipped_at=coerce_timestamp(payload.shippedAt),
        delivered_at=coerce_timestamp(payload.deliveredAt),
        cancelled_at=coerce_timestamp(payload.cancelledAt),
        failed_delivery_at=coerce_timestamp(payload.failedDeliveryAt),
    )
    db.add(order)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise HTTPException(status_code=409, detail="order number already exists for tenant") from None
    db.refresh(order)
    logger.info("Order created tenant=%s order=%s status=%s", ctx.tenant_id, order.order_number, order.status)
    return _order_view(order, now)


@router.get("/orders", response_model=schemas.ListOrdersResponse)
def list_orders(
    status_filter: str | None = Query(default=None, alias="status"),
    sla_status: str | None = Query(default=None, alias="slaStatus"),
    db: Session = Depends(get_db),
    ctx: RequestContext = Depends(get_request_context),
):
    if sla_status and sla_status not in SLA_STATUSES:
        raise HTTPException(status_code=400, detail="invalid slaStatus filter")
    now = utcnow()
    orders = sort_by_urgency(tenant_orders(db, ctx.tenant_id, status_filter), now)
    items = [_order_view(order, now) for order in orders]
    if sla_status:
        items = [item for item in items if item.sla.status == sla_status]
    return schemas.ListOrdersResponse(items=items, total=len(items))


@router.get("/orders/{order_id}", response_model=schemas.OrderView)
def get_order(
    order_id: str,
    db: Session = Depends(get_db),
    ctx: RequestContext = Depends(get_request_context),
):
    order = get_tenant_order(db, ctx.tenant_id, order_id)
    if order is None:
        raise HTTPException(status_code=404, detail="order not found")
    return _order_view(order, utcnow())


@router.patch("/orders/{order_id}/status", response_model=schemas.OrderView)
def update_order_status(
    order_id: str,
    payload: schemas.UpdateOrderStatusRequest,
    db: Session = Depends(get_db),
    ctx: RequestContext = Depends(get_request_context),
):
    require_roles(ctx, "owner", "pm", "coordinator")
    order = get_tenant_order(db, ctx.tenant_id, order_id)
    if order is None:
        raise HTTPException(status_code=404, detail="order not found")
    now = utcnow()
    previous = order.status
    transition_order(db, order, payload.status, now)
    logger.info("Order status changed order=%s from=%s to=%s", order.order_number, previous, order.status)
    return _order_view(order, now)


@router.get("/operations/queues/{queue}", response_model=schemas.ListOrdersResponse)
def get_operations_queue(
    queue: str,
    db: Session = Depends(get_db),
    ctx: RequestContext = Depends(get_request_context),
):
    if queue not in QUEUES:
        raise HTTPException(status_code=404, detail="queue not found")
    now = utcnow()
    orders = queue_orders(queue, tenant_orders(db, ctx.tenant_id), ctx.user_id, now)
    items = [_order_view(order, now) for order in orders]
    return schemas.ListOrdersResponse(items=items, total=len(items))


@router.get("/operations/kpis", response_model=schemas.OperationsKpisResponse)
def get_operations_kpis(
    db: Session = Depends(get_db),
    ctx: RequestContext = Depends(get_request_context),
):
    kpis = operations_kpis(tenant_orders(db, ctx.tenant_id), utcnow())
    return schemas.OperationsKpisResponse(
        totalActive=kpis["total_active"],
        atRisk=kpis["at_risk"],
        unassigned=kpis["unassigned"],
        avgDaysToComplete=kpis["avg_days_to_complete"],
    )


@router.get("/sla/summary", response_model=schemas.SLASummaryResponse)
def get_sla_summary(
    db: Session = Depends(get_db),
    ctx: RequestContext = Depends(get_request_context),
):
    counts = count_by_sla_status(tenant_orders(db, ctx.tenant_id), utcnow())
    return schemas.SLASummaryResponse(onTrack=counts[ON_TRACK], atRisk=counts[AT_RISK], breached=counts[BREACHED])


@router.post("/alert-types", response_model=schemas.AlertTypeView, status_code=status.HTTP_201_CREATED)
def create_alert_type(
    payload: schemas.RegisterAlertTypeRequest,
    db: Session = Depends(get_db),
    ctx: RequestContext = Depends(get_request_context),
):
    require_roles(ctx, "owner", "pm")
    row = register_alert_type(db, ctx.tenant_id, payload.category, payload.sensitivity, payload.description)
    return schemas.AlertTypeView(
        id=row.id,
        category=row.category,
        sensitivity=row.sensitivity,
        description=row.description,
        createdAt=row.created_at,
    )


@router.get("/alert-types", response_model=list[schemas.AlertTypeView])
def list_alert_types(
    db: Session = Depends(get_db),
    ctx: RequestContext = Depends(get_request_context),
):
    rows = (
        db.query(models.AlertType)
        .filter(models.AlertType.tenant_id == ctx.tenant_id)
        .order_by(models.AlertType.category.asc())
        .all()
    )
    return [
        schemas.AlertTypeView(
            id=row.id,
            category=row.category,
            sensitivity=row.sensitivity,
            description=row.description,
            createdAt=row.created_at,
        )
        for row in rows
    ]


@router.post("/insights/feed", response_model=schemas.InsightFeedResponse)
def filter_insight_feed(
    payload: schemas.InsightFeedRequest,
    store: AlertThrottleStore = Depends(get_throttle_store),
    registry: AlertTypeRegistry = Depends(get_alert_registry),
):
    items = [Insight(**item.model_dump()) for item in payload.items]
    result = group_and_filter(
        items,
        store,
        registry=registry,
        risk_amount=payload.riskAmount,
        mark_shown=payload.markShown,
    )
    return _feed_response(result)


@router.get("/insights/sla", response_model=schemas.InsightFeedResponse)
def get_sla_insights(
    mark_shown: bool = Query(default=False, alias="markShown"),
    db: Session = Depends(get_db),
    ctx: RequestContext = Depends(get_request_context),
    store: AlertThrottleStore = Depends(get_throttle_store),
    registry: AlertTypeRegistry = Depends(get_alert_registry),
):
    items = sla_insights(tenant_orders(db, ctx.tenant_id), utcnow())
    result = group_and_filter(items, store, registry=registry, mark_shown=mark_shown)
    return _feed_response(result)


def _throttle_state(store: AlertThrottleStore) -> schemas.ThrottleStateResponse:
    items = [schemas.ThrottleRecordView(key=key, **record) for key, record in sorted(store.snapshot().items())]
    return schemas.ThrottleStateResponse(items=items, snoozedCount=store.snoozed_count())


@router.get("/alerts/throttle-state", response_model=schemas.ThrottleStateResponse)
def get_throttle_state(store: AlertThrottleStore = Depends(get_throttle_store)):
    return _throttle_state(store)


@router.post("/alerts/{key}/shown", response_model=schemas.ThrottleRecordView)
def mark_alert_shown(key: str, store: AlertThrottleStore = Depends(get_throttle_store)):
    record = store.mark_as_shown(key)
    return schemas.ThrottleRecordView(key=key, **record.to_json())


@router.post("/alerts/{key}/snooze", response_model=schemas.ThrottleRecordView)
def snooze_alert(
    key: str,
    payload: schemas.SnoozeRequest,
    ctx: RequestContext = Depends(get_request_context),
    store: AlertThrottleStore = Depends(get_throttle_store),
):
    record = store.snooze_insight(key, payload.hours)
    logger.info("Alert snoozed tenant=%s key=%s hours=%s", ctx.tenant_id, key, payload.hours)
    return schemas.ThrottleRecordView(key=key, **record.to_json())


@router.delete("/alerts/{key}/snooze", response_model=schemas.ThrottleRecordView)
def unsnooze_alert(key: str, store: AlertThrottleStore = Depends(get_throttle_store)):
    record = store.unsnooze_insight(key)
    if record is None:
        raise HTTPException(status_code=404, detail="alert type has no throttle state")
    return schemas.ThrottleRecordView(key=key, **record.to_json())


@router.delete("/alerts/snoozes", response_model=schemas.ThrottleStateResponse)
def clear_snoozes(store: AlertThrottleStore = Depends(get_throttle_store)):
    store.clear_all_snoozes()
    return _throttle_state(store)


@router.delete("/alerts/throttles", response_model=schemas.ThrottleStateResponse)
def clear_throttles(
    ctx: RequestContext = Depends(get_request_context),
    store: AlertThrottleStore = Depends(get_throttle_store),
):
    require_roles(ctx, "owner", "pm")
    store.clear_all_throttles()
    logger.info("Throttle state cleared tenant=%s user=%s", ctx.tenant_id, ctx.user_id)
    return _throttle_state(store)
