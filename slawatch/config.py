from __future__ import annotations

import logging
import os
from datetime import timedelta

logger = logging.getLogger("slawatch.config")


# Expected days an order may stay in each stage before it is overdue.
SLA_THRESHOLD_DAYS = {
    "pending_payment": 3,
    "order_confirmed": 1,
    "processing": 2,
    "ready_to_ship": 1,
    "shipped": 7,
    "delivered": 0,
    "cancelled": 0,
    "delivery_failed": 1,
}
DEFAULT_SLA_THRESHOLD_DAYS = 2
AT_RISK_RATIO = 0.75

DEFAULT_ALERT_COOLDOWN = timedelta(hours=24)
HIGH_SENSITIVITY_ALERT_COOLDOWN = timedelta(hours=12)
DEFAULT_SNOOZE_HOURS = 24
MAX_SNOOZE_HOURS = 720
MAX_GROUP_SIZE = 3

THROTTLE_STORAGE_KEY = "analytics_alert_throttle_state"
HIGH_SENSITIVITY_MARKERS = ("customer", "churn")
DEFAULT_CRITICAL_RISK_AMOUNT = 10000.0


def _optional_float(raw: str | None, default: float | None) -> float | None:
    if raw is None:
        return default
    if raw.strip() == "":
        return None
    try:
        return float(raw)
    except ValueError:
        logger.warning("Ignoring malformed number %r, using %s", raw, default)
        return default


CRITICAL_RISK_AMOUNT = _optional_float(os.getenv("SLA_WATCH_CRITICAL_RISK_AMOUNT"), DEFAULT_CRITICAL_RISK_AMOUNT)
LOG_LEVEL = os.getenv("SLA_WATCH_LOG_LEVEL", "INFO").upper()

DEFAULT_TENANT_ID = "demo-tenant"
DEFAULT_USER_ID = "demo-user"
DEFAULT_USER_ROLE = "owner"
ALLOWED_ROLES = {"owner", "pm", "coordinator", "readonly"}
