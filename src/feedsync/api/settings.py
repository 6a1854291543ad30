"""设置 API."""

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from feedsync.api.deps import get_reader, get_scheduler
from feedsync.config import get_settings
from feedsync.core.reader import FeedReader
from feedsync.scheduler.tasks import RefreshScheduler

router = APIRouter(prefix="/api/settings", tags=["settings"])


class SettingsResponse(BaseModel):
    """设置响应."""

    refresh_interval_minutes: int
    fetch_concurrency: int
    max_items_per_feed: int
    max_total_items: int
    item_retention_days: int
    notify_on_new_items: bool


class UpdateIntervalRequest(BaseModel):
    """修改刷新间隔（0 表示仅手动刷新）."""

    refresh_interval_minutes: int = Field(ge=0, le=24 * 60)


def _interval(scheduler: RefreshScheduler | None) -> int:
    if scheduler is not None:
        return scheduler.interval_minutes
    return get_settings().refresh_interval_minutes


@router.get("")
async def get_current_settings(
    reader: FeedReader = Depends(get_reader),
    scheduler: RefreshScheduler | None = Depends(get_scheduler),
) -> SettingsResponse:
    """获取当前设置."""
    policy = reader.retention_policy
    return SettingsResponse(
        refresh_interval_minutes=_interval(scheduler),
        fetch_concurrency=reader.orchestrator.concurrency,
        max_items_per_feed=policy.max_items_per_feed,
        max_total_items=policy.max_total_items,
        item_retention_days=policy.retention_days,
        notify_on_new_items=reader.orchestrator.notify_on_new_items,
    )


@router.put("/refresh-interval")
async def update_refresh_interval(
    request: UpdateIntervalRequest,
    scheduler: RefreshScheduler | None = Depends(get_scheduler),
) -> dict:
    """修改刷新间隔并重新调度."""
    if scheduler is not None:
        scheduler.reschedule(request.refresh_interval_minutes)
    return {"success": True, "refresh_interval_minutes": request.refresh_interval_minutes}
