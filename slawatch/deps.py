from __future__ import annotations

from dataclasses import dataclass
from typing import Generator

from fastapi import Depends, Header, HTTPException
from sqlalchemy.orm import Session

from slawatch import config
from slawatch import database
from slawatch.services.alert_types import AlertTypeRegistry
from slawatch.services.query import throttle_store_for
from slawatch.services.throttle import AlertThrottleStore


@dataclass(frozen=True)
class RequestContext:
    tenant_id: str
    user_id: str
    role: str


def get_db() -> Generator[Session, None, None]:
    db = database.SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_request_context(
    x_tenant_id: str | None = Header(default=None),
    x_user_id: str | None = Header(default=None),
    x_user_role: str | None = Header(default=None),
) -> RequestContext:
    role = (x_user_role or config.DEFAULT_USER_ROLE).strip().lower()
    if role not in config.ALLOWED_ROLES:
        raise HTTPException(status_code=400, detail="invalid x-user-role header")
    return RequestContext(
        tenant_id=(x_tenant_id or "").strip() or config.DEFAULT_TENANT_ID,
        user_id=(x_user_id or "").strip() or config.DEFAULT_USER_ID,
        role=role,
    )


def require_roles(ctx: RequestContext, *roles: str) -> None:
    if ctx.role not in roles:
        raise HTTPException(status_code=403, detail="insufficient permissions")


def get_throttle_store(
    db: Session = Depends(get_db),
    ctx: RequestContext = Depends(get_request_context),
) -> AlertThrottleStore:
    """Throttle state for the calling tenant, loaded once per request."""
    return throttle_store_for(db, ctx.tenant_id)


def get_alert_registry(
    db: Session = Depends(get_db),
    ctx: RequestContext = Depends(get_request_context),
) -> AlertTypeRegistry:
    return AlertTypeRegistry.from_db(db, ctx.tenant_id)
