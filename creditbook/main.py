"""Main FastAPI application."""
import logging
from contextlib import asynccontextmanager

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from creditbook.config import settings
from creditbook.database import async_session_maker, init_db
from creditbook.alerts import routes as alert_routes
from creditbook.alerts.scheduler import AlertScheduler, setup_apscheduler
from creditbook.alerts.store import SqlRuleStore, SqlTransactionSource
from creditbook.notifications.dispatch import get_dispatch_sink

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


def build_alert_scheduler() -> AlertScheduler:
    """AlertScheduler wired to the database and the configured channel."""
    return AlertScheduler(
        rule_store=SqlRuleStore(async_session_maker),
        transaction_source=SqlTransactionSource(async_session_maker),
        dispatch_sink=get_dispatch_sink(
            webhook_url=settings.NOTIFICATION_WEBHOOK_URL,
            console_mode=settings.APP_ENV == "development" and not settings.NOTIFICATION_WEBHOOK_URL,
        ),
        tolerance_minutes=settings.ALERT_TIME_TOLERANCE_MINUTES,
        dispatch_timeout_seconds=settings.DISPATCH_TIMEOUT_SECONDS,
        horizon_days=settings.ALERT_HORIZON_DAYS,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    await init_db()

    alert_scheduler = build_alert_scheduler()
    app.state.alert_scheduler = alert_scheduler

    scheduler = None
    if settings.SCHEDULER_ENABLED:
        scheduler = AsyncIOScheduler()
        setup_apscheduler(scheduler, alert_scheduler, settings.ALERT_TICK_MINUTES)
        scheduler.start()
        alert_scheduler.running = True
        logger.info("Alert scheduler started")

    yield

    if scheduler is not None:
        scheduler.shutdown(wait=False)
        alert_scheduler.running = False
        logger.info("Alert scheduler stopped")


# Create FastAPI app
app = FastAPI(
    title="Credit Book API",
    description="Customer credit ledger with scheduled due-date notifications",
    version="0.1.0",
    lifespan=lifespan,
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(alert_routes.router, prefix=settings.API_V1_PREFIX)


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy"}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "creditbook.main:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
    )
