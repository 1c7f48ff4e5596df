from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field, field_validator

from slawatch import config
from slawatch.services.alert_types import SENSITIVITIES
from slawatch.services.statuses import OrderStatus


class CreateOrderRequest(BaseModel):
    orderNumber: str = Field(min_length=1, max_length=64)
    customerName: str = Field(default="", max_length=255)
    status: OrderStatus = Field(default=OrderStatus.PENDING_PAYMENT)
    totalAmount: float = Field(default=0.0, ge=0)
    assignedTo: str | None = None
    createdAt: datetime | None = None
    paymentConfirmedAt: datetime | None = None
    processingStartedAt: datetime | None = None
    readyToShipAt: datetime | None = None
    shippedAt: datetime | None = None
    deliveredAt: datetime | None = None
    cancelledAt: datetime | None = None
    failedDeliveryAt: datetime | None = None


class UpdateOrderStatusRequest(BaseModel):
    status: OrderStatus


class SLAView(BaseModel):
    status: str
    reason: str
    daysInStage: int
    hoursInStage: int
    expectedDays: int
    entryKnown: bool


class OrderView(BaseModel):
    id: str
    orderNumber: str
    customerName: str
    status: str
    totalAmount: float
    assignedTo: str | None
    createdAt: datetime | None
    stageEnteredAt: datetime | None
    sla: SLAView
    urgencyScore: int


class ListOrdersResponse(BaseModel):
    items: list[OrderView]
    total: int


class SLASummaryResponse(BaseModel):
    onTrack: int
    atRisk: int
    breached: int


class OperationsKpisResponse(BaseModel):
    totalActive: int
    atRisk: int
    unassigned: int
    avgDaysToComplete: int


class RegisterAlertTypeRequest(BaseModel):
    category: str = Field(min_length=1, max_length=128)
    sensitivity: str | None = None
    description: str = Field(default="", max_length=500)

    @field_validator("sensitivity")
    @classmethod
    def sensitivity_supported(cls, value: str | None) -> str | None:
        if value is not None and value not in SENSITIVITIES:
            raise ValueError(f"sensitivity must be one of {sorted(SENSITIVITIES)}")
        return value


class AlertTypeView(BaseModel):
    id: str
    category: str
    sensitivity: str
    description: str
    createdAt: datetime


class InsightIn(BaseModel):
    id: str | None = None
    category: str | None = None
    urgency: str | None = None
    title: str = ""
    detail: dict[str, Any] = Field(default_factory=dict)


class InsightFeedRequest(BaseModel):
    items: list[InsightIn]
    riskAmount: float | None = Field(default=None, ge=0)
    markShown: bool = False


class InsightView(BaseModel):
    id: str | None
    key: str
    category: str
    urgency: str | None
    title: str
    detail: dict[str, Any]


class GroupedInsightView(BaseModel):
    type: str
    category: str
    items: list[InsightView]
    count: int
    summary: str | None


class InsightFeedResponse(BaseModel):
    visible: list[GroupedInsightView]
    snoozedCount: int
    throttledCount: int


class SnoozeRequest(BaseModel):
    hours: float = Field(default=config.DEFAULT_SNOOZE_HOURS, gt=0, le=config.MAX_SNOOZE_HOURS)


class ThrottleRecordView(BaseModel):
    key: str
    lastShown: str
    showCount: int
    snoozedUntil: str | None = None


class ThrottleStateResponse(BaseModel):
    items: list[ThrottleRecordView]
    snoozedCount: int
