"""定时任务模块."""

from feedsync.scheduler.tasks import RefreshScheduler

__all__ = ["RefreshScheduler"]
