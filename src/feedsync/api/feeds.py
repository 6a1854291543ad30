"""订阅源 API."""

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from feedsync.api.deps import get_reader
from feedsync.core.reader import FeedReader
from feedsync.core.store import DuplicateFeedError, UnknownFeedError
from feedsync.models.feed import AuthKind, Feed

router = APIRouter(prefix="/api/feeds", tags=["feeds"])


class AddFeedRequest(BaseModel):
    """订阅请求."""

    url: str
    title: str | None = None
    refresh: bool = True


class RenameFeedRequest(BaseModel):
    """重命名请求，空标题表示恢复订阅源自身的标题."""

    title: str = ""


class FeedAuthRequest(BaseModel):
    """认证设置请求."""

    kind: AuthKind
    username: str | None = None
    password: str | None = None
    token: str | None = None


class FeedResponse(BaseModel):
    """订阅源响应（含未读数）."""

    feed: Feed
    unread_count: int = Field(default=0)


def _feed_response(reader: FeedReader, feed: Feed) -> FeedResponse:
    unread = sum(1 for i in reader.store.items_for_feed(feed.id) if not i.is_read)
    return FeedResponse(feed=feed, unread_count=unread)


@router.get("")
async def list_feeds(reader: FeedReader = Depends(get_reader)) -> dict:
    """获取订阅列表."""
    feeds = [_feed_response(reader, f) for f in reader.feeds]
    return {"total": len(feeds), "feeds": feeds}


@router.post("", status_code=201)
async def add_feed(
    request: AddFeedRequest,
    reader: FeedReader = Depends(get_reader),
) -> FeedResponse:
    """订阅新源."""
    try:
        feed = await reader.add_feed(request.url, request.title, refresh=request.refresh)
    except DuplicateFeedError as e:
        raise HTTPException(status_code=409, detail=str(e)) from e
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    return _feed_response(reader, feed)


@router.get("/{feed_id}")
async def get_feed(feed_id: str, reader: FeedReader = Depends(get_reader)) -> FeedResponse:
    """获取订阅源详情."""
    try:
        feed = reader.store.get_feed(feed_id)
    except UnknownFeedError as e:
        raise HTTPException(status_code=404, detail="订阅源不存在") from e
    return _feed_response(reader, feed)


@router.patch("/{feed_id}")
async def rename_feed(
    feed_id: str,
    request: RenameFeedRequest,
    reader: FeedReader = Depends(get_reader),
) -> FeedResponse:
    """修改订阅源标题."""
    try:
        feed = reader.rename_feed(feed_id, request.title)
    except UnknownFeedError as e:
        raise HTTPException(status_code=404, detail="订阅源不存在") from e
    return _feed_response(reader, feed)


@router.put("/{feed_id}/auth")
async def set_feed_auth(
    feed_id: str,
    request: FeedAuthRequest,
    reader: FeedReader = Depends(get_reader),
) -> FeedResponse:
    """设置订阅源认证方式."""
    payload = request.model_dump(exclude={"kind"}, exclude_none=True)
    try:
        feed = reader.set_feed_auth(feed_id, request.kind, payload)
    except UnknownFeedError as e:
        raise HTTPException(status_code=404, detail="订阅源不存在") from e
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    return _feed_response(reader, feed)


@router.delete("/{feed_id}")
async def remove_feed(feed_id: str, reader: FeedReader = Depends(get_reader)) -> dict:
    """取消订阅，同时删除其条目."""
    try:
        removed = reader.remove_feed(feed_id)
    except UnknownFeedError as e:
        raise HTTPException(status_code=404, detail="订阅源不存在") from e
    return {"success": True, "removed_items": removed}


@router.post("/{feed_id}/refresh")
async def refresh_feed(feed_id: str, reader: FeedReader = Depends(get_reader)) -> dict:
    """立即刷新单个订阅源."""
    try:
        result = await reader.refresh_feed(feed_id)
    except UnknownFeedError as e:
        raise HTTPException(status_code=404, detail="订阅源不存在") from e
    if result is None:
        raise HTTPException(status_code=404, detail="订阅源不存在")
    return {
        "feed_id": result.feed_id,
        "title": result.feed_title,
        "status": result.status.value,
        "new_items": result.new_items,
        "error": result.error,
    }
