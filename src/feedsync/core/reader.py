"""FeedReader：组装各组件，统一处理用户操作."""

import logging
from dataclasses import dataclass
from datetime import UTC, datetime
from enum import Enum

from feedsync.config import Settings
from feedsync.core.credentials import (
    CredentialStore,
    InMemoryCredentialStore,
    validate_payload,
)
from feedsync.core.filters import FilterRuleEngine
from feedsync.core.notifications import LoggingNotificationSink, NotificationSink
from feedsync.core.opml import export_opml, parse_opml
from feedsync.core.persistence import KeyValueStore, StatePersistence
from feedsync.core.retention import RetentionPolicy, as_utc
from feedsync.core.store import DuplicateFeedError, ItemStore
from feedsync.core.sync import SyncOrchestrator
from feedsync.fetcher.http import ConditionalFetcher, HttpConditionalFetcher
from feedsync.fetcher.parser import FeedParser, FeedparserParser
from feedsync.models.feed import AuthKind, Feed, FeedItem
from feedsync.models.rule import FilteredItemResult, FilterRule
from feedsync.models.sync import FeedSyncResult, SyncReport

logger = logging.getLogger(__name__)

_OLDEST = datetime.min.replace(tzinfo=UTC)


class ItemFilter(str, Enum):
    """列表筛选."""

    ALL = "all"
    UNREAD = "unread"
    STARRED = "starred"


@dataclass
class ItemView:
    """条目及其规则评估结果."""

    item: FeedItem
    result: FilteredItemResult


class FeedReader:
    """订阅阅读器的应用层入口."""

    def __init__(
        self,
        store: ItemStore,
        engine: FilterRuleEngine,
        orchestrator: SyncOrchestrator,
        persistence: StatePersistence | None = None,
        credentials: CredentialStore | None = None,
        retention_policy: RetentionPolicy | None = None,
    ) -> None:
        self.store = store
        self.engine = engine
        self.orchestrator = orchestrator
        self.persistence = persistence
        self.credentials = credentials
        self.retention_policy = retention_policy or RetentionPolicy()

    @classmethod
    def create(
        cls,
        settings: Settings,
        kv: KeyValueStore | None = None,
        *,
        fetcher: ConditionalFetcher | None = None,
        parser: FeedParser | None = None,
        credentials: CredentialStore | None = None,
        notifier: NotificationSink | None = None,
    ) -> "FeedReader":
        """按配置组装默认组件."""
        store = ItemStore(ledger_size=settings.read_key_ledger_size)
        notifier = notifier or LoggingNotificationSink()
        credentials = credentials or InMemoryCredentialStore()
        engine = FilterRuleEngine(store, notifier=notifier)
        policy = RetentionPolicy(
            max_items_per_feed=settings.max_items_per_feed,
            max_total_items=settings.max_total_items,
            retention_days=settings.item_retention_days,
        )
        persistence = (
            StatePersistence(kv, store, engine, settings.save_debounce_seconds)
            if kv is not None
            else None
        )
        orchestrator = SyncOrchestrator(
            store,
            fetcher
            or HttpConditionalFetcher(
                timeout=settings.fetch_timeout_seconds,
                user_agent=settings.user_agent,
            ),
            parser or FeedparserParser(),
            engine,
            credentials=credentials,
            persistence=persistence,
            concurrency=settings.fetch_concurrency,
            retention_policy=policy,
            trim_after_refresh=settings.trim_after_refresh,
            notify_on_new_items=settings.notify_on_new_items,
            notifier=notifier,
        )
        return cls(store, engine, orchestrator, persistence, credentials, policy)

    # --- 生命周期 ---

    async def startup(self) -> None:
        """加载持久化状态并执行一次保留策略."""
        if self.persistence is not None:
            await self.persistence.load()
        self.trim()

    async def shutdown(self) -> None:
        """写入未保存的状态并关闭抓取器."""
        if self.persistence is not None:
            await self.persistence.flush()
        close = getattr(self.orchestrator.fetcher, "close", None)
        if close is not None:
            await close()

    # --- 订阅源 ---

    @property
    def feeds(self) -> list[Feed]:
        return self.store.feeds

    async def add_feed(self, url: str, title: str | None = None, refresh: bool = True) -> Feed:
        """订阅新源，默认立即抓取一次."""
        feed = self.store.add_feed(url, title)
        if title and title.strip():
            feed = self.store.rename_feed(feed.id, title)
        logger.info(f"已添加订阅源: {feed.url}")

        if refresh:
            await self.orchestrator.refresh_feed(feed.id)
            feed = self.store.get_feed(feed.id)
        return feed

    def remove_feed(self, feed_id: str) -> int:
        """删除订阅源、其条目和凭据，返回删除的条目数."""
        removed = self.store.remove_feed(feed_id)
        if self.credentials is not None:
            self.credentials.delete(feed_id)
        logger.info(f"已删除订阅源 {feed_id}，连带删除 {len(removed)} 个条目")
        return len(removed)

    def rename_feed(self, feed_id: str, title: str) -> Feed:
        return self.store.rename_feed(feed_id, title)

    def set_feed_auth(
        self, feed_id: str, kind: AuthKind, payload: dict[str, str] | None = None
    ) -> Feed:
        """设置认证方式，密钥写入凭据存储."""
        self.store.get_feed(feed_id)
        payload = payload or {}
        if kind == AuthKind.NONE:
            if self.credentials is not None:
                self.credentials.delete(feed_id)
        else:
            validate_payload(kind, payload)
            if self.credentials is None:
                msg = "未配置凭据存储"
                raise RuntimeError(msg)
            self.credentials.save(feed_id, kind, payload)
        return self.store.set_feed_auth(feed_id, kind)

    async def refresh_feed(self, feed_id: str) -> FeedSyncResult | None:
        return await self.orchestrator.refresh_feed(feed_id)

    async def refresh_all(self) -> SyncReport | None:
        return await self.orchestrator.refresh_all()

    # --- 条目 ---

    async def _write_through(self) -> None:
        if self.persistence is not None:
            await self.persistence.save_items_now()

    async def set_read(self, item_id: str, is_read: bool = True) -> FeedItem:
        item = self.store.set_read(item_id, is_read)
        await self._write_through()
        return item

    async def toggle_read(self, item_id: str) -> FeedItem:
        item = self.store.toggle_read(item_id)
        await self._write_through()
        return item

    async def set_starred(self, item_id: str, is_starred: bool = True) -> FeedItem:
        item = self.store.set_starred(item_id, is_starred)
        await self._write_through()
        return item

    async def toggle_starred(self, item_id: str) -> FeedItem:
        item = self.store.toggle_starred(item_id)
        await self._write_through()
        return item

    async def mark_all_read(self, feed_id: str | None = None) -> int:
        count = self.store.mark_all_read(feed_id)
        if count:
            await self._write_through()
        return count

    def filtered_items(
        self,
        item_filter: ItemFilter = ItemFilter.ALL,
        hide_read: bool = False,
        feed_id: str | None = None,
    ) -> list[ItemView]:
        """
        生成可见条目列表（按发布时间倒序，无日期的排在最后）.

        Args:
            item_filter: 全部 / 未读 / 收藏
            hide_read: 是否隐藏已读条目
            feed_id: 只看某个订阅源

        Returns:
            规则评估后仍可见的条目
        """
        items = self.store.items_for_feed(feed_id) if feed_id else self.store.items
        if item_filter == ItemFilter.UNREAD:
            items = [i for i in items if not i.is_read]
        elif item_filter == ItemFilter.STARRED:
            items = [i for i in items if i.is_starred]
        if hide_read:
            items = [i for i in items if not i.is_read]

        items.sort(key=lambda i: as_utc(i.pub_date) if i.pub_date else _OLDEST, reverse=True)
        results = self.engine.evaluate(items)
        return [
            ItemView(item=item, result=result)
            for item, result in zip(items, results, strict=True)
            if result.is_visible
        ]

    # --- 规则 ---

    @property
    def rules(self) -> list[FilterRule]:
        return self.engine.rules

    def add_rule(self, rule: FilterRule) -> FilterRule:
        return self.engine.add_rule(rule)

    def update_rule(self, rule: FilterRule) -> FilterRule:
        return self.engine.update_rule(rule)

    def remove_rule(self, rule_id: str) -> None:
        self.engine.remove_rule(rule_id)

    def toggle_rule(self, rule_id: str) -> FilterRule:
        return self.engine.toggle_rule(rule_id)

    def move_rule(self, rule_id: str, index: int) -> None:
        self.engine.move_rule(rule_id, index)

    # --- OPML ---

    def export_opml(self) -> str:
        return export_opml(self.store.feeds)

    async def import_opml(self, data: bytes | str, refresh: bool = False) -> int:
        """导入 OPML，跳过已订阅的 URL（忽略大小写），返回新增数量."""
        added: list[Feed] = []
        for outline in parse_opml(data):
            try:
                added.append(self.store.add_feed(outline.url, outline.title))
            except DuplicateFeedError:
                continue

        logger.info(f"OPML 导入: 新增 {len(added)} 个订阅源")
        if refresh and added:
            await self.orchestrator.refresh_all()
        return len(added)

    # --- 保留策略 ---

    def trim(self) -> int | None:
        """
        执行保留策略，返回淘汰数量.

        刷新进行中时推迟到本轮刷新结束后执行，返回 None。
        """
        if self.orchestrator.is_refreshing:
            logger.info("刷新进行中，保留策略推迟到本轮结束后执行")
            self.orchestrator.request_trim()
            return None
        return len(self.store.apply_retention(self.retention_policy))
