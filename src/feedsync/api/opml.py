"""OPML 导入导出 API."""

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import Response

from feedsync.api.deps import get_reader
from feedsync.core.reader import FeedReader

router = APIRouter(prefix="/api/opml", tags=["opml"])


@router.get("")
async def export_subscriptions(reader: FeedReader = Depends(get_reader)) -> Response:
    """导出订阅为 OPML."""
    return Response(
        content=reader.export_opml(),
        media_type="text/x-opml",
        headers={"Content-Disposition": 'attachment; filename="subscriptions.opml"'},
    )


@router.post("")
async def import_subscriptions(
    request: Request,
    refresh: bool = False,
    reader: FeedReader = Depends(get_reader),
) -> dict:
    """导入 OPML（请求体为 OPML 文档）."""
    body = await request.body()
    if not body.strip():
        raise HTTPException(status_code=400, detail="OPML 内容为空")
    added = await reader.import_opml(body, refresh=refresh)
    return {"success": True, "added": added}
