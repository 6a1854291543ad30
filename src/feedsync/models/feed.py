"""Feed 订阅源与 FeedItem 条目模型."""

import uuid
from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field

# 正文长度上限
MAX_DESCRIPTION_LENGTH = 5000
MAX_CONTENT_HTML_LENGTH = 100_000


def new_id() -> str:
    """生成不透明的唯一 ID."""
    return uuid.uuid4().hex


class AuthKind(str, Enum):
    """订阅源认证方式（密钥本身保存在外部凭据存储中）."""

    NONE = "none"
    BASIC = "basic"
    BEARER = "bearer"


class Feed(BaseModel):
    """RSS 订阅源."""

    id: str = Field(default_factory=new_id, description="订阅源 ID")
    title: str = Field(description="显示标题")
    url: str = Field(description="订阅 URL")
    custom_title: bool = Field(default=False, description="标题是否由用户自定义")
    icon_url: str | None = Field(default=None, description="图标 URL")
    last_fetched: datetime | None = Field(default=None, description="最近成功抓取时间")
    etag: str | None = Field(default=None, description="缓存校验 ETag")
    last_modified: str | None = Field(default=None, description="缓存校验 Last-Modified")
    auth_kind: AuthKind = Field(default=AuthKind.NONE, description="认证方式")


class Enclosure(BaseModel):
    """媒体附件."""

    url: str
    type: str | None = None
    length: int | None = None


class FeedItem(BaseModel):
    """订阅源中的单个条目."""

    id: str = Field(default_factory=new_id, description="条目 ID")
    feed_id: str = Field(description="关联 Feed")
    title: str = Field(description="标题")
    link: str = Field(default="", description="原文链接")
    source_id: str | None = Field(default=None, description="上游 guid")
    description: str = Field(default="", description="纯文本摘要")
    content_html: str | None = Field(default=None, description="HTML 正文")
    pub_date: datetime | None = Field(default=None, description="发布时间")
    author: str | None = Field(default=None, description="作者")
    categories: list[str] = Field(default_factory=list, description="分类标签")
    is_read: bool = Field(default=False, description="是否已读")
    is_starred: bool = Field(default=False, description="是否收藏")
    enclosures: list[Enclosure] = Field(default_factory=list, description="媒体附件")
