"""定时刷新任务."""

import logging
from datetime import datetime

from apscheduler.schedulers.asyncio import AsyncIOScheduler

from feedsync.core.reader import FeedReader

logger = logging.getLogger(__name__)

REFRESH_JOB_ID = "refresh_all"


async def refresh_task(reader: FeedReader) -> None:
    """刷新任务：刷新全部订阅源."""
    try:
        report = await reader.refresh_all()
    except Exception as e:
        logger.exception(f"定时刷新失败: {e}")
        return

    if report is not None:
        logger.info(
            f"定时刷新完成: 新条目={report.new_items}, 失败={len(report.failed_feed_ids)}"
        )


class RefreshScheduler:
    """按固定间隔调用 refresh_all；间隔为 0 时只允许手动刷新."""

    def __init__(self, reader: FeedReader, scheduler: AsyncIOScheduler | None = None) -> None:
        self.reader = reader
        self._scheduler = scheduler or AsyncIOScheduler()
        self.interval_minutes = 0

    @property
    def running(self) -> bool:
        return self._scheduler.running

    def start(self, interval_minutes: int) -> None:
        """启动调度器."""
        self.reschedule(interval_minutes)
        if not self._scheduler.running:
            self._scheduler.start()
        logger.info(f"定时刷新调度器已启动，刷新间隔: {interval_minutes} 分钟")

    def reschedule(self, interval_minutes: int) -> None:
        """修改刷新间隔，同一时间只保留一个刷新任务."""
        self.interval_minutes = max(0, interval_minutes)

        if self.interval_minutes == 0:
            if self._scheduler.get_job(REFRESH_JOB_ID):
                self._scheduler.remove_job(REFRESH_JOB_ID)
            logger.info("定时刷新已关闭，仅支持手动刷新")
            return

        self._scheduler.add_job(
            refresh_task,
            "interval",
            minutes=self.interval_minutes,
            args=[self.reader],
            id=REFRESH_JOB_ID,
            name="刷新全部订阅源",
            replace_existing=True,
            max_instances=1,
            coalesce=True,
        )

    def next_run_time(self) -> datetime | None:
        job = self._scheduler.get_job(REFRESH_JOB_ID)
        return job.next_run_time if job else None

    def shutdown(self) -> None:
        """关闭调度器."""
        if self._scheduler.running:
            self._scheduler.shutdown(wait=False)
            logger.info("定时刷新调度器已关闭")
