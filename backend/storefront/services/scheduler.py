"""
Scheduled store maintenance.

A single background loop wakes up every SCHEDULER_TICK_SECONDS (under a
minute, each job runs at most once per matching minute), works out
the wall-clock time in SCHEDULER_TIMEZONE and runs whichever jobs are due.
Each job is a plain coroutine taking a session (and the reference date or
time) so it can be called directly from scripts and tests.

Jobs:
- warranty expiry reminders   daily 09:00
- weekly warranty report      Monday 10:00
- low stock alert             Monday 11:00
- monthly sales report        1st of month 09:00
- cleanup                     daily 02:00
- order auto-advance          hourly
"""

import asyncio
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import Awaitable, Callable, Dict, List, Optional
from zoneinfo import ZoneInfo

from sqlalchemy import select, delete, or_, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from storefront.core.config import settings
from storefront.core.database import AsyncSessionLocal
from storefront.core.logging_config import logger
from storefront.models import PasswordResetToken, Product, Warranty
from storefront.services import reports
from storefront.services.email_service import email_service
from storefront.services.order_service import advance_orders


# ============================================
# Job bodies
# ============================================

async def send_warranty_expiry_reminders(db: AsyncSession, today: date,
                                         min_days: int = 7, max_days: int = 15) -> int:
    """Mail owners whose warranty runs out in [min_days, max_days]"""
    result = await db.execute(
        select(Warranty)
        .options(selectinload(Warranty.user), selectinload(Warranty.product))
        .where(
            Warranty.expiry_date >= today + timedelta(days=min_days),
            Warranty.expiry_date <= today + timedelta(days=max_days),
        )
    )
    sent = 0
    for warranty in result.scalars().all():
        days_left = (warranty.expiry_date - today).days
        ok = await email_service.send_warranty_expiry_reminder(
            warranty.user.email, warranty.user.name, warranty.product.name,
            warranty.expiry_date, days_left,
        )
        sent += int(ok)
    logger.info(f"[Scheduler] Warranty reminders sent: {sent}")
    return sent


async def send_weekly_warranty_report(db: AsyncSession, today: date) -> Dict[str, int]:
    summary = await reports.weekly_warranty_summary(db, today)
    await email_service.send_report(f"Weekly warranty report ({today.isoformat()})", summary)
    return summary


async def send_low_stock_alert(db: AsyncSession, threshold: Optional[int] = None) -> int:
    threshold = settings.LOW_STOCK_THRESHOLD if threshold is None else threshold
    products = await reports.low_stock_products(db, threshold)
    if products:
        await email_service.send_report(
            "Low stock alert",
            {"Products at or below threshold": len(products), "Threshold": threshold},
            [(p.name, f"{p.stock} left") for p in products],
        )
    logger.info(f"[Scheduler] Low stock products: {len(products)}")
    return len(products)


async def send_monthly_sales_report(db: AsyncSession, today: date) -> Dict[str, str]:
    """Summarise the calendar month before `today`"""
    year, month = reports.previous_month(today.year, today.month)
    start, end = reports.month_bounds(year, month)
    revenue, orders = await reports.sales_between(db, start, end)
    summary = {
        "Month": start.strftime("%B %Y"),
        "Orders": str(orders),
        "Revenue": f"Rs.{revenue}",
    }
    await email_service.send_report(f"Monthly sales report - {start.strftime('%B %Y')}", summary)
    return summary


async def run_cleanup(db: AsyncSession, now: Optional[datetime] = None) -> Dict[str, int]:
    """
    Drop spent reset tokens and keep product visibility in line with stock:
    out-of-stock products are hidden, restocked ones come back.
    """
    now = now or datetime.utcnow()

    tokens = await db.execute(
        delete(PasswordResetToken).where(
            or_(PasswordResetToken.expires_at < now, PasswordResetToken.used == True)
        )
    )
    hidden = await db.execute(
        update(Product)
        .where(Product.is_active == True, Product.stock == 0)
        .values(is_active=False)
    )
    restored = await db.execute(
        update(Product)
        .where(Product.is_active == False, Product.stock > 0)
        .values(is_active=True)
    )
    stats = {
        "reset_tokens_deleted": tokens.rowcount or 0,
        "products_deactivated": hidden.rowcount or 0,
        "products_reactivated": restored.rowcount or 0,
    }
    logger.info(f"[Scheduler] Cleanup: {stats}")
    return stats


async def run_order_auto_advance(db: AsyncSession, now: Optional[datetime] = None) -> Dict[str, int]:
    stats = await advance_orders(db, now=now)
    logger.info(f"[Scheduler] Order auto-advance: {stats}")
    return stats


# ============================================
# Scheduling
# ============================================

@dataclass
class ScheduledJob:
    name: str
    is_due: Callable[[datetime], bool]
    run: Callable[[AsyncSession, datetime], Awaitable]
    last_run_key: Optional[str] = field(default=None)

    def key_for(self, local_now: datetime) -> str:
        # One run per matching minute
        return local_now.strftime("%Y-%m-%d %H:%M")


def _at(hour: int, minute: int = 0, weekday: Optional[int] = None, day: Optional[int] = None):
    def check(now: datetime) -> bool:
        if now.hour != hour or now.minute != minute:
            return False
        if weekday is not None and now.weekday() != weekday:
            return False
        if day is not None and now.day != day:
            return False
        return True
    return check


def _hourly(now: datetime) -> bool:
    return now.minute == 0


def default_jobs() -> List[ScheduledJob]:
    return [
        ScheduledJob("warranty_expiry_reminders", _at(9),
                     lambda db, now: send_warranty_expiry_reminders(db, now.date())),
        ScheduledJob("weekly_warranty_report", _at(10, weekday=0),
                     lambda db, now: send_weekly_warranty_report(db, now.date())),
        ScheduledJob("low_stock_alert", _at(11, weekday=0),
                     lambda db, now: send_low_stock_alert(db)),
        ScheduledJob("monthly_sales_report", _at(9, day=1),
                     lambda db, now: send_monthly_sales_report(db, now.date())),
        ScheduledJob("cleanup", _at(2),
                     lambda db, now: run_cleanup(db)),
        ScheduledJob("order_auto_advance", _hourly,
                     lambda db, now: run_order_auto_advance(db)),
    ]


class SchedulerService:
    """Background loop that fires due jobs, started/stopped from the app lifespan"""

    def __init__(self, jobs: Optional[List[ScheduledJob]] = None, tick_seconds: int = 30,
                 timezone: str = "Asia/Kolkata"):
        self.jobs = jobs if jobs is not None else default_jobs()
        self.tick_seconds = tick_seconds
        self.timezone = ZoneInfo(timezone)
        self.running = False
        self._task: Optional[asyncio.Task] = None
        self.stats: Dict[str, int] = {"runs": 0, "failures": 0}

    async def start(self):
        if self.running:
            logger.warning("[Scheduler] Already running")
            return
        self.running = True
        self._task = asyncio.create_task(self._loop())
        logger.info(f"[Scheduler] Started - {len(self.jobs)} jobs, tz={self.timezone.key}")

    async def stop(self):
        self.running = False
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        logger.info("[Scheduler] Stopped")

    async def _loop(self):
        while self.running:
            try:
                await self.run_due(datetime.now(self.timezone))
            except Exception as e:
                logger.error(f"[Scheduler] Error in scheduler loop: {e}", exc_info=True)
            await asyncio.sleep(self.tick_seconds)

    async def run_due(self, local_now: datetime) -> List[str]:
        """Run every job due at local_now that has not already run this minute"""
        ran = []
        for job in self.jobs:
            key = job.key_for(local_now)
            if not job.is_due(local_now) or job.last_run_key == key:
                continue
            job.last_run_key = key
            await self._run_job(job, local_now)
            ran.append(job.name)
        return ran

    async def _run_job(self, job: ScheduledJob, local_now: datetime):
        async with AsyncSessionLocal() as db:
            try:
                await job.run(db, local_now)
                await db.commit()
                self.stats["runs"] += 1
            except Exception as e:
                await db.rollback()
                self.stats["failures"] += 1
                logger.log_error_with_context(e, context=f"scheduled job {job.name}")


scheduler = SchedulerService(
    tick_seconds=settings.SCHEDULER_TICK_SECONDS,
    timezone=settings.SCHEDULER_TIMEZONE,
)
