"""订阅源解析器."""

import logging
from datetime import UTC, datetime
from time import struct_time
from typing import Any, Protocol

import feedparser
from pydantic import BaseModel, Field

from feedsync.models.feed import (
    MAX_CONTENT_HTML_LENGTH,
    MAX_DESCRIPTION_LENGTH,
    Enclosure,
)
from feedsync.utils.html_parser import cap_html, html_to_text

logger = logging.getLogger(__name__)


class ParsedItem(BaseModel):
    """解析后的单个条目（尚未入库）."""

    title: str
    link: str = ""
    source_id: str | None = None
    description: str = ""
    content_html: str | None = None
    pub_date: datetime | None = None
    author: str | None = None
    categories: list[str] = Field(default_factory=list)
    enclosures: list[Enclosure] = Field(default_factory=list)


class ParsedFeed(BaseModel):
    """订阅源解析结果."""

    title: str | None = None
    icon_url: str | None = None
    items: list[ParsedItem] = Field(default_factory=list)
    error: str | None = None  # 非空表示内容无法解析


class FeedParser(Protocol):
    """订阅源解析接口，不允许抛出异常."""

    def parse(self, raw: bytes) -> ParsedFeed: ...


class FeedparserParser:
    """使用 feedparser 解析 RSS / Atom / JSON Feed."""

    def parse(self, raw: bytes) -> ParsedFeed:
        """解析原始字节，失败时返回空结果."""
        try:
            parsed = feedparser.parse(raw)

            if parsed.bozo and not parsed.entries and not parsed.feed.get("title"):
                error = str(parsed.get("bozo_exception") or "无法识别的订阅源格式")
                logger.warning(f"订阅源解析失败: {error}")
                return ParsedFeed(error=error)

            items = [
                item
                for item in (self._parse_entry(entry) for entry in parsed.entries)
                if item is not None
            ]

            return ParsedFeed(
                title=parsed.feed.get("title") or None,
                icon_url=self._feed_icon(parsed.feed),
                items=items,
            )

        except Exception as e:
            logger.warning(f"订阅源解析异常: {e}")
            return ParsedFeed(error=str(e))

    def _feed_icon(self, feed: Any) -> str | None:
        """提取订阅源图标."""
        image = feed.get("image") or {}
        return image.get("href") or feed.get("logo") or feed.get("icon") or None

    def _parse_entry(self, entry: Any) -> ParsedItem | None:
        """解析单个条目，缺少标题和链接的条目直接跳过."""
        title = (entry.get("title") or "").strip()
        link = (entry.get("link") or "").strip()
        source_id = (entry.get("id") or "").strip() or None

        if not title and not link:
            return None

        summary = entry.get("summary") or ""
        contents = entry.get("content") or []
        raw_html = contents[0].get("value") if contents else summary

        return ParsedItem(
            title=title or "Untitled",
            link=link,
            source_id=source_id,
            description=html_to_text(summary or raw_html or "", MAX_DESCRIPTION_LENGTH),
            content_html=cap_html(raw_html, MAX_CONTENT_HTML_LENGTH),
            pub_date=self._parse_date(entry),
            author=entry.get("author") or None,
            categories=[t["term"] for t in entry.get("tags", []) if t.get("term")],
            enclosures=self._parse_enclosures(entry),
        )

    def _parse_date(self, entry: Any) -> datetime | None:
        """解析发布时间（feedparser 已统一为 UTC）."""
        for key in ("published_parsed", "updated_parsed"):
            value = entry.get(key)
            if isinstance(value, struct_time):
                try:
                    return datetime(*value[:6], tzinfo=UTC)
                except (ValueError, OverflowError):
                    continue
        return None

    def _parse_enclosures(self, entry: Any) -> list[Enclosure]:
        """解析媒体附件."""
        enclosures: list[Enclosure] = []
        for enc in entry.get("enclosures", []):
            href = enc.get("href")
            if not href:
                continue
            try:
                length = int(enc.get("length")) if enc.get("length") else None
            except (TypeError, ValueError):
                length = None
            enclosures.append(Enclosure(url=href, type=enc.get("type"), length=length))
        return enclosures
