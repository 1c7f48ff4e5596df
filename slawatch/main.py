from __future__ import annotations

import logging
import time
import uuid
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from slawatch import config, database
from slawatch.routers.api import router as api_router

logger = logging.getLogger("slawatch.http")


def _configure_logging() -> None:
    logging.basicConfig(
        level=getattr(logging, config.LOG_LEVEL, logging.INFO),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )


def create_app(seed_demo: bool = True) -> FastAPI:
    _configure_logging()

    @asynccontextmanager
    async def lifespan(_: FastAPI):
        database.init_db()
        if seed_demo:
            from slawatch.seed import seed_demo_data

            db = database.SessionLocal()
            try:
                seed_demo_data(db)
            finally:
                db.close()
        yield

    app = FastAPI(
        title="SLA Watch API",
        description="Order SLA tracking, urgency ranking and alert throttling.",
        version="0.1.0",
        lifespan=lifespan,
    )

    @app.middleware("http")
    async def request_logging(request: Request, call_next):
        request_id = request.headers.get("x-request-id") or str(uuid.uuid4())
        started = time.perf_counter()
        try:
            response = await call_next(request)
        except Exception:  # noqa: BLE001
            logger.exception("Unhandled error: method=%s path=%s request_id=%s", request.method, request.url.path, request_id)
            return JSONResponse(
                status_code=500,
                content={"detail": "internal server error", "request_id": request_id},
                headers={"X-Request-ID": request_id},
            )
        response.headers["X-Request-ID"] = request_id
        logger.info(
            "Request completed: method=%s path=%s status=%s duration_ms=%.2f request_id=%s",
            request.method,
            request.url.path,
            response.status_code,
            (time.perf_counter() - started) * 1000.0,
            request_id,
        )
        return response

    @app.get("/health")
    def healthcheck() -> dict[str, str]:
        return {"status": "ok"}

    app.include_router(api_router)
    return app


app = create_app()
