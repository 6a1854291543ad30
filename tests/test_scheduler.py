"""测试定时刷新调度."""

from unittest.mock import AsyncMock, MagicMock

from feedsync.scheduler.tasks import REFRESH_JOB_ID, RefreshScheduler, refresh_task


class TestRefreshScheduler:
    """测试任务注册与重新调度."""

    async def test_start_registers_single_job(self):
        """启动后只有一个刷新任务."""
        scheduler = RefreshScheduler(MagicMock())
        scheduler.start(30)
        try:
            jobs = scheduler._scheduler.get_jobs()
            assert [j.id for j in jobs] == [REFRESH_JOB_ID]
            assert jobs[0].trigger.interval.total_seconds() == 30 * 60

            scheduler.reschedule(5)
            jobs = scheduler._scheduler.get_jobs()
            assert len(jobs) == 1
            assert jobs[0].trigger.interval.total_seconds() == 5 * 60
        finally:
            scheduler.shutdown()

    async def test_zero_interval_removes_job(self):
        """间隔为 0 时移除任务."""
        scheduler = RefreshScheduler(MagicMock())
        scheduler.start(10)
        try:
            scheduler.reschedule(0)
            assert scheduler._scheduler.get_job(REFRESH_JOB_ID) is None
            assert scheduler.next_run_time() is None
            assert scheduler.interval_minutes == 0
        finally:
            scheduler.shutdown()
        assert not scheduler.running


class TestRefreshTask:
    """测试刷新任务本身."""

    async def test_calls_refresh_all(self):
        """调用 refresh_all."""
        reader = MagicMock()
        reader.refresh_all = AsyncMock(return_value=None)
        await refresh_task(reader)
        reader.refresh_all.assert_awaited_once()

    async def test_errors_are_logged(self):
        """异常不会中断调度器."""
        reader = MagicMock()
        reader.refresh_all = AsyncMock(side_effect=RuntimeError("boom"))
        await refresh_task(reader)
