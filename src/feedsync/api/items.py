"""条目 API."""

from fastapi import APIRouter, Depends, HTTPException, Query

from feedsync.api.deps import get_reader
from feedsync.core.reader import FeedReader, ItemFilter
from feedsync.core.store import UnknownFeedError, UnknownItemError
from feedsync.models.feed import FeedItem

router = APIRouter(prefix="/api/items", tags=["items"])


@router.get("")
async def list_items(
    item_filter: ItemFilter = Query(ItemFilter.ALL, alias="filter", description="all / unread / starred"),
    hide_read: bool = Query(False, description="隐藏已读条目"),
    feed_id: str | None = Query(None, description="只看某个订阅源"),
    reader: FeedReader = Depends(get_reader),
) -> dict:
    """获取经过规则过滤的条目列表."""
    if feed_id and not reader.store.has_feed(feed_id):
        raise HTTPException(status_code=404, detail="订阅源不存在")

    views = reader.filtered_items(item_filter, hide_read=hide_read, feed_id=feed_id)
    return {
        "total": len(views),
        "unread_count": reader.store.unread_count,
        "items": [
            {
                **view.item.model_dump(mode="json"),
                "highlight_color": view.result.highlight_color,
                "icon_emoji": view.result.icon_emoji,
                "show_summary": view.result.show_summary,
                "matched_rule_ids": sorted(view.result.matched_rule_ids),
            }
            for view in views
        ],
    }


@router.get("/{item_id}")
async def get_item(item_id: str, reader: FeedReader = Depends(get_reader)) -> FeedItem:
    """获取条目详情."""
    try:
        return reader.store.get_item(item_id)
    except UnknownItemError as e:
        raise HTTPException(status_code=404, detail="条目不存在") from e


@router.post("/{item_id}/read")
async def mark_read(item_id: str, reader: FeedReader = Depends(get_reader)) -> FeedItem:
    """标记为已读."""
    try:
        return await reader.set_read(item_id, True)
    except UnknownItemError as e:
        raise HTTPException(status_code=404, detail="条目不存在") from e


@router.post("/{item_id}/unread")
async def mark_unread(item_id: str, reader: FeedReader = Depends(get_reader)) -> FeedItem:
    """标记为未读."""
    try:
        return await reader.set_read(item_id, False)
    except UnknownItemError as e:
        raise HTTPException(status_code=404, detail="条目不存在") from e


@router.post("/{item_id}/star")
async def toggle_star(item_id: str, reader: FeedReader = Depends(get_reader)) -> FeedItem:
    """切换收藏状态."""
    try:
        return await reader.toggle_starred(item_id)
    except UnknownItemError as e:
        raise HTTPException(status_code=404, detail="条目不存在") from e


@router.post("/mark-all-read")
async def mark_all_read(
    feed_id: str | None = Query(None, description="限定订阅源"),
    reader: FeedReader = Depends(get_reader),
) -> dict:
    """全部标记为已读."""
    try:
        count = await reader.mark_all_read(feed_id)
    except UnknownFeedError as e:
        raise HTTPException(status_code=404, detail="订阅源不存在") from e
    return {"success": True, "updated": count}
