"""刷新 API."""

from fastapi import APIRouter, Depends

from feedsync.api.deps import get_reader
from feedsync.core.reader import FeedReader

router = APIRouter(prefix="/api/sync", tags=["sync"])


@router.post("")
async def trigger_refresh(reader: FeedReader = Depends(get_reader)) -> dict:
    """手动刷新全部订阅源（刷新进行中时返回上一次报告）."""
    report = await reader.refresh_all()
    return {"report": report.to_dict() if report else None}


@router.get("/status")
async def get_sync_status(reader: FeedReader = Depends(get_reader)) -> dict:
    """获取刷新状态."""
    orchestrator = reader.orchestrator
    last_time = orchestrator.last_refresh_time
    report = orchestrator.last_report
    return {
        "is_refreshing": orchestrator.is_refreshing,
        "last_refresh_time": last_time.isoformat() if last_time else None,
        "last_report": report.to_dict() if report else None,
    }


@router.post("/trim")
async def trim(reader: FeedReader = Depends(get_reader)) -> dict:
    """执行保留策略（刷新进行中时推迟到刷新结束后）."""
    evicted = reader.trim()
    return {"evicted": evicted or 0, "deferred": evicted is None}
