"""FastAPI application entrypoint."""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException, Request, Response, status
from sqlalchemy import text

from app.core.config import get_settings
from app.core.database import SessionLocal, close_engine
from app.core.metrics import build_metrics_response, instrument_http_request
from app.modules.applications.router import router as applications_router
from app.modules.counselors.router import router as counselors_router
from app.modules.courses.router import router as courses_router
from app.modules.dead_letters.router import router as dead_letters_router
from app.modules.leads.router import router as leads_router
from app.modules.messaging.runtime import build_messaging_runtime
from app.modules.payments.router import router as payments_router
from app.shared.exceptions import register_exception_handlers
from app.shared.utils import utc_now
from app.workers.dead_letter_retry_worker import run_forever

settings = get_settings()
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application startup and shutdown hooks."""
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )
    logger.info("Starting %s", settings.app_name)

    messaging = build_messaging_runtime(settings, SessionLocal)
    app.state.messaging = messaging
    await messaging.start(consume=True)

    retry_task = None
    if settings.dlq_auto_retry_enabled:
        retry_task = asyncio.create_task(
            run_forever(
                messaging.dispatcher,
                settings.dlq_retry_batch_size,
                settings.dlq_retry_interval_seconds,
            ),
            name="dead-letter-retry",
        )
        logger.info(
            "Dead-letter auto-retry every %s seconds",
            settings.dlq_retry_interval_seconds,
        )

    yield

    logger.info("Shutting down %s", settings.app_name)
    if retry_task is not None:
        retry_task.cancel()
        await asyncio.gather(retry_task, return_exceptions=True)
    await messaging.stop()
    await close_engine()


app = FastAPI(
    title=settings.app_name,
    debug=settings.debug,
    lifespan=lifespan,
)
app.middleware("http")(instrument_http_request)

register_exception_handlers(app)

app.include_router(leads_router, prefix=settings.api_prefix)
app.include_router(counselors_router, prefix=settings.api_prefix)
app.include_router(courses_router, prefix=settings.api_prefix)
app.include_router(payments_router, prefix=settings.api_prefix)
app.include_router(applications_router, prefix=settings.api_prefix)
app.include_router(dead_letters_router, prefix=settings.api_prefix)


@app.get("/health")
async def healthcheck() -> dict[str, str]:
    """Liveness check endpoint."""
    return {"status": "ok"}


async def _is_database_ready() -> bool:
    """Return True if DB accepts basic queries."""
    try:
        async with SessionLocal() as session:
            await session.execute(text("SELECT 1"))
        return True
    except Exception:
        logger.exception("Database readiness check failed")
        return False


@app.get("/ready")
async def readiness_check() -> dict[str, str]:
    """Readiness endpoint with DB dependency check."""
    if not await _is_database_ready():
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Database is not ready",
        )
    return {
        "status": "ready",
        "database": "ok",
        "timestamp": utc_now().isoformat(),
    }


@app.get("/metrics", include_in_schema=False)
async def metrics_endpoint(_: Request) -> Response:
    """Prometheus metrics endpoint."""
    return build_metrics_response()
