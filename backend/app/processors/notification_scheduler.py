"""
Notification scheduler - periodic batch emails, run as a background task

Jobs:
    low_stock        products at or below LOW_STOCK_THRESHOLD, one alert per
                     product per LOW_STOCK_ALERT_COOLDOWN
    abandoned_carts  carts idle between ABANDONED_CART_MIN_AGE and
                     ABANDONED_CART_MAX_AGE, reminded once per change
    daily_summary    orders placed in the last 24 hours
    weekly_summary   orders placed in the last 7 days

Each job is due one interval after the previous run (or after startup), so
restarting the service does not resend summaries.
"""

import asyncio
import time
from collections.abc import Awaitable, Callable
from datetime import datetime, timedelta

from sqlalchemy import or_
from sqlmodel import Session, select

from app.core.config import settings
from app.core.db import get_instrumented_session
from app.core.logging import get_logger
from app.core.metrics import background_task_errors_total, scheduled_jobs_total
from app.models import Cart, Order, Product, User, get_datetime_utc
from app.services.notification_service import NotificationService, notification_service

logger = get_logger(__name__)

Job = Callable[[Session, NotificationService], Awaitable[int]]


async def check_low_stock(
    session: Session, notifier: NotificationService, now: datetime | None = None
) -> int:
    now = now or get_datetime_utc()
    cutoff = now - timedelta(seconds=settings.LOW_STOCK_ALERT_COOLDOWN)
    products = session.exec(
        select(Product).where(
            Product.status == "active",
            Product.stock > 0,
            Product.stock <= settings.LOW_STOCK_THRESHOLD,
            or_(
                Product.last_low_stock_alert == None,  # noqa: E711
                Product.last_low_stock_alert < cutoff,  # type: ignore[operator]
            ),
        )
    ).all()
    if not products:
        return 0

    if not await notifier.low_stock(products):
        return 0

    for product in products:
        product.last_low_stock_alert = now
        session.add(product)
    session.commit()
    logger.info("low_stock_alert_sent", products=[p.sku for p in products])
    return len(products)


async def send_abandoned_cart_reminders(
    session: Session, notifier: NotificationService, now: datetime | None = None
) -> int:
    now = now or get_datetime_utc()
    idle_since = now - timedelta(seconds=settings.ABANDONED_CART_MIN_AGE)
    too_old = now - timedelta(seconds=settings.ABANDONED_CART_MAX_AGE)
    carts = session.exec(
        select(Cart).where(
            Cart.updated_at <= idle_since,
            Cart.updated_at >= too_old,
            or_(
                Cart.last_reminder_sent_at == None,  # noqa: E711
                Cart.last_reminder_sent_at < Cart.updated_at,  # type: ignore[operator]
            ),
        )
    ).all()

    reminded = 0
    for cart in carts:
        if not cart.items:
            continue
        user = session.get(User, cart.user_id)
        if user is None:
            continue
        if await notifier.abandoned_cart(cart, user):
            cart.last_reminder_sent_at = now
            session.add(cart)
            reminded += 1
    session.commit()

    if reminded:
        logger.info("abandoned_cart_reminders_sent", count=reminded)
    return reminded


async def send_order_summary(
    session: Session,
    notifier: NotificationService,
    period: str,
    now: datetime | None = None,
) -> int:
    now = now or get_datetime_utc()
    since = now - (timedelta(days=7) if period == "weekly" else timedelta(days=1))
    orders = session.exec(select(Order).where(Order.created_at >= since)).all()
    if not orders:
        logger.debug("order_summary_skipped", period=period)
        return 0
    await notifier.order_summary(period, orders, since)
    return len(orders)


async def _daily_summary(session: Session, notifier: NotificationService) -> int:
    return await send_order_summary(session, notifier, "daily")


async def _weekly_summary(session: Session, notifier: NotificationService) -> int:
    return await send_order_summary(session, notifier, "weekly")


def scheduled_jobs() -> list[tuple[str, int, Job]]:
    return [
        ("low_stock", settings.LOW_STOCK_CHECK_INTERVAL, check_low_stock),
        ("abandoned_carts", settings.ABANDONED_CART_CHECK_INTERVAL, send_abandoned_cart_reminders),
        ("daily_summary", settings.DAILY_SUMMARY_INTERVAL, _daily_summary),
        ("weekly_summary", settings.WEEKLY_SUMMARY_INTERVAL, _weekly_summary),
    ]


async def run_due_jobs(
    last_run: dict[str, float],
    notifier: NotificationService,
    session_factory: Callable = get_instrumented_session,
    now: float | None = None,
) -> list[str]:
    """Run every job whose interval has elapsed; returns the names that ran."""
    now = now if now is not None else time.monotonic()
    ran = []
    for name, interval, job in scheduled_jobs():
        if now - last_run.get(name, now) < interval:
            last_run.setdefault(name, now)
            continue

        last_run[name] = now
        ran.append(name)
        try:
            with session_factory() as session:
                handled = await job(session, notifier)
            scheduled_jobs_total.labels(job=name, status="success").inc()
            logger.info("scheduled_job_completed", job=name, handled=handled)
        except Exception as e:
            scheduled_jobs_total.labels(job=name, status="error").inc()
            background_task_errors_total.labels(
                task_name="notification-scheduler", error_type=type(e).__name__
            ).inc()
            logger.error(
                "scheduled_job_failed",
                job=name,
                error_type=type(e).__name__,
                error_message=str(e),
                exc_info=True,
            )
    return ran


async def start_notification_scheduler():
    """
    Main scheduler loop - runs as background task
    """
    logger.info("notification_scheduler_starting")
    last_run: dict[str, float] = {}

    try:
        while True:
            try:
                await run_due_jobs(last_run, notification_service)
                await asyncio.sleep(settings.NOTIFICATION_SCHEDULER_INTERVAL)
            except Exception as e:
                logger.error(
                    "notification_scheduler_error",
                    error_type=type(e).__name__,
                    error_message=str(e),
                    exc_info=True,
                )
                await asyncio.sleep(settings.NOTIFICATION_SCHEDULER_ERROR_BACKOFF)

    except asyncio.CancelledError:
        logger.info("notification_scheduler_cancelled")
        raise
