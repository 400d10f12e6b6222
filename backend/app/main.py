import asyncio
from contextlib import asynccontextmanager

from fastapi import FastAPI
from prometheus_client import generate_latest, CONTENT_TYPE_LATEST
from fastapi.responses import Response

from app.core.config import settings
from app.core.redis import redis_client
from app.core.errors import register_exception_handlers
from app.core.metrics import (
    registry,
    background_tasks_running,
    background_task_errors_total,
)
from app.api.main import api_router
from app.clients.paystack_client import paystack_client
from app.processors import start_notification_scheduler
from app.middleware.metrics_middleware import MetricsMiddleware
from app.middleware.request_context_middleware import RequestContextMiddleware
from app.middleware.logging_middleware import LoggingMiddleware

# Must run before any module-level get_logger() call is used
from app.core.logging import configure_logging, get_logger

configure_logging()
logger = get_logger(__name__)

SCHEDULER_TASK = "notification-scheduler"


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage application lifecycle"""
    scheduler_task = None
    monitor_task = None

    logger.info("application_starting", service=settings.SERVICE_NAME, environment=settings.ENVIRONMENT)

    try:
        await redis_client.connect()

        if settings.ENABLE_NOTIFICATION_SCHEDULER:
            scheduler_task = asyncio.create_task(
                start_notification_scheduler(), name=SCHEDULER_TASK
            )
            background_tasks_running.labels(task_name=SCHEDULER_TASK).set(1)
            monitor_task = asyncio.create_task(monitor_background_tasks(scheduler_task))

        logger.info(
            "application_started",
            redis_connected=True,
            background_tasks=[SCHEDULER_TASK] if scheduler_task else [],
        )
    except Exception as e:
        logger.error("application_startup_failed", error_type=type(e).__name__, error_message=str(e), exc_info=True)
        background_task_errors_total.labels(
            task_name="startup", error_type="startup_error"
        ).inc()
        raise

    yield

    logger.info("application_shutting_down")

    try:
        for task in (monitor_task, scheduler_task):
            if task and not task.done():
                task.cancel()
                try:
                    await task
                except asyncio.CancelledError:
                    pass
        if scheduler_task:
            background_tasks_running.labels(task_name=SCHEDULER_TASK).set(0)

        await paystack_client.close()
        await redis_client.disconnect()

        logger.info("application_shutdown_complete")
    except Exception as e:
        logger.error("application_shutdown_error", error_type=type(e).__name__, error_message=str(e), exc_info=True)


async def monitor_background_tasks(*tasks):
    """Monitor background tasks and update metrics on failure"""
    while True:
        await asyncio.sleep(30)

        for task in tasks:
            if task.done() and not task.cancelled():
                task_name = task.get_name()
                try:
                    task.result()
                except Exception as e:
                    logger.error(
                        "background_task_failed",
                        task_name=task_name,
                        error_type=type(e).__name__,
                        error_message=str(e),
                        exc_info=True
                    )
                    background_tasks_running.labels(task_name=task_name).set(0)
                    background_task_errors_total.labels(
                        task_name=task_name, error_type=type(e).__name__
                    ).inc()
                return


app = FastAPI(
    title=settings.PROJECT_NAME,
    openapi_url=f"{settings.API_V1_STR}/openapi.json",
    lifespan=lifespan,
)

register_exception_handlers(app)


@app.get("/metrics")
async def metrics():
    """Prometheus metrics endpoint"""
    logger.debug("metrics_endpoint_served")
    return Response(generate_latest(registry), media_type=CONTENT_TYPE_LATEST)


# Middleware runs in reverse registration order:
#   RequestContextMiddleware -> LoggingMiddleware -> MetricsMiddleware -> route
# so the request id is bound before the access log line is written.
if settings.ENABLE_METRICS:
    app.add_middleware(MetricsMiddleware)
app.add_middleware(LoggingMiddleware)
app.add_middleware(RequestContextMiddleware)

app.include_router(api_router, prefix=settings.API_V1_STR)
