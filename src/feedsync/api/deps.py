"""路由依赖."""

from fastapi import Request

from feedsync.core.reader import FeedReader
from feedsync.scheduler.tasks import RefreshScheduler


def get_reader(request: Request) -> FeedReader:
    """获取应用级 FeedReader."""
    return request.app.state.reader


def get_scheduler(request: Request) -> RefreshScheduler | None:
    """获取刷新调度器（测试环境中可能没有）."""
    return getattr(request.app.state, "scheduler", None)
