"""
Unit Tests for Scheduled Jobs
Tests for: job bodies, due-time matching, once-per-minute dispatch, failure isolation
"""
import pytest
from datetime import date, datetime, timedelta
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock, patch

from sqlalchemy import select, func

from storefront.models import Order, PasswordResetToken, PaymentStatus, Product, Warranty
from storefront.services import scheduler as scheduler_module
from storefront.services.scheduler import (
    ScheduledJob,
    SchedulerService,
    default_jobs,
    run_cleanup,
    send_low_stock_alert,
    send_monthly_sales_report,
    send_warranty_expiry_reminders,
)


def _warranty(user, product, expiry):
    return Warranty(
        user_id=user.id,
        product_id=product.id,
        purchase_date=expiry - timedelta(days=365),
        expiry_date=expiry,
    )


class TestWarrantyReminders:

    @pytest.mark.asyncio
    async def test_only_window_is_mailed(self, db_session, test_user, product, sent_emails):
        today = date(2024, 6, 1)
        for days in (5, 7, 12, 15, 20):
            db_session.add(_warranty(test_user, product, today + timedelta(days=days)))
        await db_session.flush()

        sent = await send_warranty_expiry_reminders(db_session, today)

        assert sent == 3
        assert sent_emails.await_count == 3
        recipients = {c.args[0] for c in sent_emails.await_args_list}
        assert recipients == {test_user.email}


class TestReports:

    @pytest.mark.asyncio
    async def test_low_stock_alert(self, db_session, product, product_factory, sent_emails):
        await product_factory(name="Tempered Glass", stock=1)

        count = await send_low_stock_alert(db_session, threshold=5)

        assert count == 1
        assert sent_emails.await_args.args[1] == "Low stock alert"

    @pytest.mark.asyncio
    async def test_no_low_stock_no_mail(self, db_session, product, sent_emails):
        assert await send_low_stock_alert(db_session, threshold=5) == 0
        sent_emails.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_monthly_report_covers_previous_month(self, db_session, test_user, sent_emails):
        db_session.add(Order(user_id=test_user.id, total_price=Decimal("549.00"),
                             payment_status=PaymentStatus.PAID, created_at=datetime(2024, 5, 14)))
        await db_session.flush()

        summary = await send_monthly_sales_report(db_session, date(2024, 6, 1))

        assert summary == {"Month": "May 2024", "Orders": "1", "Revenue": "Rs.549.00"}
        assert "May 2024" in sent_emails.await_args.args[1]


class TestCleanup:

    @pytest.mark.asyncio
    async def test_tokens_and_visibility(self, db_session, test_user, product_factory):
        now = datetime(2024, 6, 1, 2, 0)
        db_session.add_all([
            PasswordResetToken(user_id=test_user.id, token="expired", expires_at=now - timedelta(minutes=1)),
            PasswordResetToken(user_id=test_user.id, token="used", expires_at=now + timedelta(hours=1), used=True),
            PasswordResetToken(user_id=test_user.id, token="live", expires_at=now + timedelta(hours=1)),
        ])
        sold_out = await product_factory(name="Sold Out", stock=0)
        restocked = await product_factory(name="Restocked", stock=4, is_active=False)

        stats = await run_cleanup(db_session, now=now)

        assert stats == {"reset_tokens_deleted": 2, "products_deactivated": 1, "products_reactivated": 1}
        tokens = (await db_session.execute(select(PasswordResetToken.token))).scalars().all()
        assert tokens == ["live"]
        active = dict((await db_session.execute(
            select(Product.name, Product.is_active).where(Product.id.in_([sold_out.id, restocked.id]))
        )).all())
        assert active == {"Sold Out": False, "Restocked": True}


class TestDueTimes:

    def _job(self, name):
        return next(job for job in default_jobs() if job.name == name)

    def test_daily_job(self):
        job = self._job("warranty_expiry_reminders")

        assert job.is_due(datetime(2024, 6, 3, 9, 0)) is True
        assert job.is_due(datetime(2024, 6, 3, 9, 1)) is False

    def test_weekly_job_only_on_monday(self):
        job = self._job("weekly_warranty_report")

        assert job.is_due(datetime(2024, 6, 3, 10, 0)) is True  # Monday
        assert job.is_due(datetime(2024, 6, 4, 10, 0)) is False

    def test_monthly_job_only_on_first(self):
        job = self._job("monthly_sales_report")

        assert job.is_due(datetime(2024, 7, 1, 9, 0)) is True
        assert job.is_due(datetime(2024, 7, 2, 9, 0)) is False

    def test_hourly_job(self):
        job = self._job("order_auto_advance")

        assert job.is_due(datetime(2024, 7, 2, 13, 0)) is True
        assert job.is_due(datetime(2024, 7, 2, 13, 30)) is False


class TestSchedulerService:

    @pytest.mark.asyncio
    async def test_runs_once_per_minute(self):
        job = ScheduledJob("tick", lambda now: True, AsyncMock())
        service = SchedulerService(jobs=[job])

        with patch.object(service, "_run_job", new_callable=AsyncMock) as run_job:
            first = await service.run_due(datetime(2024, 6, 3, 9, 0, 5))
            again = await service.run_due(datetime(2024, 6, 3, 9, 0, 35))
            later = await service.run_due(datetime(2024, 6, 3, 9, 1, 5))

        assert first == ["tick"]
        assert again == []
        assert later == ["tick"]
        assert run_job.await_count == 2

    @pytest.mark.asyncio
    async def test_skips_jobs_not_due(self):
        job = ScheduledJob("never", lambda now: False, AsyncMock())
        service = SchedulerService(jobs=[job])

        with patch.object(service, "_run_job", new_callable=AsyncMock) as run_job:
            assert await service.run_due(datetime(2024, 6, 3, 9, 0)) == []

        run_job.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_failed_job_rolls_back(self):
        session = AsyncMock()
        session_cm = MagicMock()
        session_cm.__aenter__ = AsyncMock(return_value=session)
        session_cm.__aexit__ = AsyncMock(return_value=False)
        job = ScheduledJob("boom", lambda now: True, AsyncMock(side_effect=RuntimeError("db down")))
        service = SchedulerService(jobs=[job])

        with patch.object(scheduler_module, "AsyncSessionLocal", return_value=session_cm):
            await service.run_due(datetime(2024, 6, 3, 9, 0))

        session.rollback.assert_awaited_once()
        session.commit.assert_not_awaited()
        assert service.stats == {"runs": 0, "failures": 1}

    @pytest.mark.asyncio
    async def test_successful_job_commits(self):
        session = AsyncMock()
        session_cm = MagicMock()
        session_cm.__aenter__ = AsyncMock(return_value=session)
        session_cm.__aexit__ = AsyncMock(return_value=False)
        run = AsyncMock()
        service = SchedulerService(jobs=[ScheduledJob("ok", lambda now: True, run)])
        local_now = datetime(2024, 6, 3, 9, 0)

        with patch.object(scheduler_module, "AsyncSessionLocal", return_value=session_cm):
            await service.run_due(local_now)

        run.assert_awaited_once_with(session, local_now)
        session.commit.assert_awaited_once()
        assert service.stats["runs"] == 1

    @pytest.mark.asyncio
    async def test_start_stop(self):
        service = SchedulerService(jobs=[], tick_seconds=1)

        await service.start()
        assert service.running is True
        await service.stop()

        assert service.running is False
        assert service._task is None
