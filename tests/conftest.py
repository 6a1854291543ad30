"""测试配置和 fixtures."""

import asyncio
from collections.abc import AsyncGenerator
from datetime import UTC, datetime, timedelta

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlmodel import SQLModel

from feedsync.core.filters import FilterRuleEngine
from feedsync.core.store import ItemStore
from feedsync.fetcher.http import FetchFailure, FetchResult
from feedsync.fetcher.parser import ParsedFeed, ParsedItem
from feedsync.models.feed import FeedItem


class FakeFetcher:
    """按 URL 返回预设结果，并记录并发数."""

    def __init__(self, results: dict[str, FetchResult | Exception] | None = None, delay: float = 0.0):
        self.results = results or {}
        self.delay = delay
        self.calls: list[dict] = []
        self.in_flight = 0
        self.max_in_flight = 0

    async def fetch(self, url, etag=None, last_modified=None, auth_header=None) -> FetchResult:
        self.calls.append(
            {"url": url, "etag": etag, "last_modified": last_modified, "auth_header": auth_header}
        )
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self.delay:
                await asyncio.sleep(self.delay)
            result = self.results.get(url, FetchFailure(error="no route"))
            if isinstance(result, Exception):
                raise result
            return result
        finally:
            self.in_flight -= 1


class FakeParser:
    """按响应体返回预设解析结果."""

    def __init__(self, feeds: dict[bytes, ParsedFeed] | None = None):
        self.feeds = feeds or {}

    def parse(self, raw: bytes) -> ParsedFeed:
        return self.feeds.get(raw, ParsedFeed(error="unknown body"))


class RecordingSink:
    """记录收到的通知."""

    def __init__(self):
        self.notifications: list[tuple[str, str, str, str]] = []

    def notify(self, title: str, body: str, link: str, item_id: str) -> None:
        self.notifications.append((title, body, link, item_id))


def parsed_item(title: str, link: str = "", **kwargs) -> ParsedItem:
    """构造解析结果条目."""
    return ParsedItem(title=title, link=link, **kwargs)


def make_item(feed_id: str, title: str, **kwargs) -> FeedItem:
    """构造条目."""
    kwargs.setdefault("link", f"https://example.com/{title.lower().replace(' ', '-')}")
    return FeedItem(feed_id=feed_id, title=title, **kwargs)


def days_ago(now: datetime, days: int) -> datetime:
    return now - timedelta(days=days)


NOW = datetime(2024, 6, 1, 12, 0, tzinfo=UTC)


@pytest.fixture
def store() -> ItemStore:
    """空的条目存储."""
    return ItemStore()


@pytest.fixture
def sink() -> RecordingSink:
    return RecordingSink()


@pytest.fixture
def engine(store: ItemStore, sink: RecordingSink) -> FilterRuleEngine:
    """绑定到 store 的规则引擎."""
    return FilterRuleEngine(store, notifier=sink)


@pytest.fixture
async def session_factory() -> AsyncGenerator[async_sessionmaker[AsyncSession], None]:
    """内存数据库会话工厂."""
    engine = create_async_engine("sqlite+aiosqlite:///:memory:", echo=False)
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)

    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    await engine.dispose()
