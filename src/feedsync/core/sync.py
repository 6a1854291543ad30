"""订阅源刷新编排：并发抓取、单线程合并."""

import asyncio
import logging
from dataclasses import dataclass
from datetime import UTC, datetime

from feedsync.core.credentials import CredentialStore, resolve_auth_header
from feedsync.core.filters import FilterRuleEngine
from feedsync.core.notifications import NotificationSink, send_notification
from feedsync.core.persistence import StatePersistence
from feedsync.core.retention import RetentionPolicy
from feedsync.core.store import ItemStore
from feedsync.fetcher.http import (
    ConditionalFetcher,
    FetchAuthRequired,
    FetchFailure,
    FetchNotModified,
    FetchResult,
    FetchSuccess,
)
from feedsync.fetcher.parser import FeedParser, ParsedFeed
from feedsync.models.feed import Feed
from feedsync.models.sync import FeedSyncResult, FeedSyncStatus, SyncReport

logger = logging.getLogger(__name__)

DEFAULT_CONCURRENCY = 6


@dataclass
class FeedOutcome:
    """工作协程的产出：只包含数据，不修改任何共享状态."""

    feed: Feed
    fetch: FetchResult
    parsed: ParsedFeed | None = None
    fetched_at: datetime | None = None


class SyncOrchestrator:
    """
    刷新全部订阅源.

    固定数量的工作协程从队列取订阅源快照，完成网络请求和解析；
    合并、元数据更新和自动动作都在调用 refresh_all 的协程中
    按结果到达顺序逐个执行。
    """

    def __init__(
        self,
        store: ItemStore,
        fetcher: ConditionalFetcher,
        parser: FeedParser,
        engine: FilterRuleEngine,
        *,
        credentials: CredentialStore | None = None,
        persistence: StatePersistence | None = None,
        concurrency: int = DEFAULT_CONCURRENCY,
        retention_policy: RetentionPolicy | None = None,
        trim_after_refresh: bool = True,
        notify_on_new_items: bool = False,
        notifier: NotificationSink | None = None,
    ) -> None:
        self.store = store
        self.fetcher = fetcher
        self.parser = parser
        self.engine = engine
        self.credentials = credentials
        self.persistence = persistence
        self.concurrency = max(1, concurrency)
        self.retention_policy = retention_policy or RetentionPolicy()
        self.trim_after_refresh = trim_after_refresh
        self.notify_on_new_items = notify_on_new_items
        self.notifier = notifier

        self._refreshing = False
        self._trim_requested = False
        self._last_report: SyncReport | None = None
        self._last_refresh_time: datetime | None = None

    @property
    def is_refreshing(self) -> bool:
        return self._refreshing

    def request_trim(self) -> None:
        """在当前刷新结束后执行一次保留策略."""
        self._trim_requested = True

    @property
    def last_report(self) -> SyncReport | None:
        return self._last_report

    @property
    def last_refresh_time(self) -> datetime | None:
        return self._last_refresh_time

    # --- 刷新入口 ---

    async def refresh_all(self) -> SyncReport | None:
        """
        刷新全部订阅源.

        刷新进行中再次调用时直接返回上一次的报告。
        """
        if self._refreshing:
            logger.info("已有刷新在进行，跳过本次请求")
            return self._last_report

        self._refreshing = True
        if self.persistence is not None:
            self.persistence.hold_saves()
        try:
            feeds = self.store.feeds
            logger.info(f"开始刷新 {len(feeds)} 个订阅源 (并发 {self.concurrency})")

            report = SyncReport()
            await self._run_cycle(feeds, report)

            self._last_refresh_time = datetime.now(UTC)
            if self.trim_after_refresh or self._trim_requested:
                self._trim_requested = False
                report.evicted = len(self.store.apply_retention(self.retention_policy))

            report.completed_at = datetime.now(UTC)
            self._last_report = report
            logger.info(
                f"刷新完成: 新条目={report.new_items}, "
                f"失败={len(report.failed_feed_ids)}, 淘汰={report.evicted}"
            )
            return report
        finally:
            self._refreshing = False
            # 整轮结束（含取消）后才安排保存
            if self.persistence is not None:
                self.persistence.resume_saves()

    async def refresh_feed(self, feed_id: str) -> FeedSyncResult | None:
        """立即刷新单个订阅源（例如刚订阅之后）."""
        feed = self.store.get_feed(feed_id)
        outcome = await self._process(feed)
        result = self._apply_safely(outcome)
        if self.persistence is not None:
            self.persistence.schedule_save()
        return result

    # --- 工作池 ---

    async def _run_cycle(self, feeds: list[Feed], report: SyncReport) -> None:
        if not feeds:
            return

        jobs: asyncio.Queue[Feed] = asyncio.Queue()
        for feed in feeds:
            jobs.put_nowait(feed)
        outcomes: asyncio.Queue[FeedOutcome] = asyncio.Queue()

        workers = [
            asyncio.create_task(self._worker(jobs, outcomes))
            for _ in range(min(self.concurrency, len(feeds)))
        ]
        try:
            for _ in range(len(feeds)):
                outcome = await outcomes.get()
                result = self._apply_safely(outcome)
                if result is not None:
                    report.results[result.feed_id] = result
        finally:
            for worker in workers:
                worker.cancel()
            await asyncio.gather(*workers, return_exceptions=True)

    async def _worker(
        self, jobs: asyncio.Queue[Feed], outcomes: asyncio.Queue[FeedOutcome]
    ) -> None:
        while True:
            try:
                feed = jobs.get_nowait()
            except asyncio.QueueEmpty:
                return
            outcomes.put_nowait(await self._process(feed))

    async def _process(self, feed: Feed) -> FeedOutcome:
        """抓取并解析单个订阅源，只返回结果."""
        try:
            auth_header = resolve_auth_header(self.credentials, feed.id, feed.auth_kind)
            fetched = await self.fetcher.fetch(
                feed.url,
                etag=feed.etag,
                last_modified=feed.last_modified,
                auth_header=auth_header,
            )
            fetched_at = datetime.now(UTC)

            parsed = None
            if isinstance(fetched, FetchSuccess):
                parsed = await asyncio.to_thread(self.parser.parse, fetched.body)
            return FeedOutcome(feed=feed, fetch=fetched, parsed=parsed, fetched_at=fetched_at)
        except Exception as e:
            logger.exception(f"处理订阅源 {feed.title} 时出现异常")
            return FeedOutcome(feed=feed, fetch=FetchFailure(error=str(e) or type(e).__name__))

    # --- 合并 ---

    def _apply_safely(self, outcome: FeedOutcome) -> FeedSyncResult | None:
        """应用结果；出错只记为该订阅源失败."""
        feed = outcome.feed
        try:
            return self._apply(outcome)
        except Exception as e:
            logger.exception(f"合并订阅源 {feed.title} 时出现异常")
            return FeedSyncResult(
                feed.id, feed.title, FeedSyncStatus.FAILED, error=str(e) or type(e).__name__
            )

    def _apply(self, outcome: FeedOutcome) -> FeedSyncResult | None:
        """在写入协程中应用单个订阅源的结果."""
        feed = outcome.feed
        if not self.store.has_feed(feed.id):
            logger.info(f"订阅源 {feed.title} 已在刷新期间删除，丢弃结果")
            return None

        fetched = outcome.fetch
        fetched_at = outcome.fetched_at or datetime.now(UTC)

        if isinstance(fetched, FetchNotModified):
            self.store.touch_feed(feed.id, fetched_at)
            return FeedSyncResult(feed.id, feed.title, FeedSyncStatus.NOT_MODIFIED)

        if isinstance(fetched, FetchAuthRequired):
            error = f"需要认证 (HTTP {fetched.status_code})"
            logger.warning(f"订阅源 {feed.title} {error}")
            return FeedSyncResult(feed.id, feed.title, FeedSyncStatus.AUTH_REQUIRED, error=error)

        if isinstance(fetched, FetchFailure):
            logger.warning(f"订阅源 {feed.title} 抓取失败: {fetched.error}")
            return FeedSyncResult(feed.id, feed.title, FeedSyncStatus.FAILED, error=fetched.error)

        parsed = outcome.parsed
        if parsed is None or parsed.error:
            error = parsed.error if parsed else "没有解析结果"
            logger.warning(f"订阅源 {feed.title} 内容无法解析: {error}")
            return FeedSyncResult(feed.id, feed.title, FeedSyncStatus.DECODE_ERROR, error=error)

        self.store.apply_fetch_metadata(
            feed.id,
            title=parsed.title,
            icon_url=parsed.icon_url,
            etag=fetched.etag,
            last_modified=fetched.last_modified,
            fetched_at=fetched_at,
        )
        new_items = self.store.merge(feed.id, parsed.items)
        self.engine.apply_auto_actions(new_items)

        title = self.store.get_feed(feed.id).title
        if self.notify_on_new_items:
            for item in new_items:
                send_notification(self.notifier, title, item.title, item.link, item.id)

        if new_items:
            logger.info(f"订阅源 {title} 新增 {len(new_items)} 个条目")
        return FeedSyncResult(feed.id, title, FeedSyncStatus.UPDATED, new_items=len(new_items))
