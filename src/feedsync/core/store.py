"""条目存储：订阅源、条目、合并去重与已读键账本."""

import logging
from collections import OrderedDict
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum

from feedsync.core.dedup import dedup_key
from feedsync.core.retention import RetentionPolicy, select_evictions
from feedsync.fetcher.parser import ParsedItem
from feedsync.models.feed import AuthKind, Feed, FeedItem

logger = logging.getLogger(__name__)

DEFAULT_LEDGER_SIZE = 2000


class FeedSyncError(Exception):
    """同步引擎错误基类."""


class UnknownFeedError(FeedSyncError):
    """订阅源不存在."""


class UnknownItemError(FeedSyncError):
    """条目不存在."""


class DuplicateFeedError(FeedSyncError):
    """订阅源已存在."""


class StoreEvent(str, Enum):
    """存储变更事件."""

    RESET = "reset"
    FEEDS_CHANGED = "feeds_changed"
    ITEMS_ADDED = "items_added"
    ITEMS_REMOVED = "items_removed"
    ITEM_CHANGED = "item_changed"


@dataclass
class StoreChange:
    """一次存储变更."""

    event: StoreEvent
    item_ids: set[str] = field(default_factory=set)
    feed_ids: set[str] = field(default_factory=set)


StoreListener = Callable[[StoreChange], None]


class ItemStore:
    """
    订阅源与条目的唯一持有者.

    所有修改都通过本类的方法完成，读取返回快照副本；
    每次修改后向订阅者广播 StoreChange。
    """

    def __init__(self, ledger_size: int = DEFAULT_LEDGER_SIZE) -> None:
        self._feeds: dict[str, Feed] = {}
        self._items: dict[str, FeedItem] = {}
        self._keys: dict[str, str] = {}  # 去重键 -> 条目 ID
        self._read_keys: OrderedDict[str, None] = OrderedDict()
        self._ledger_size = ledger_size
        self._listeners: list[StoreListener] = []

    # --- 订阅 ---

    def subscribe(self, listener: StoreListener) -> None:
        """注册变更监听器."""
        self._listeners.append(listener)

    def _emit(self, change: StoreChange) -> None:
        for listener in self._listeners:
            try:
                listener(change)
            except Exception:
                logger.exception(f"存储变更监听器出错: {change.event.value}")

    # --- 快照读取 ---

    @property
    def feeds(self) -> list[Feed]:
        """订阅源快照."""
        return [f.model_copy(deep=True) for f in self._feeds.values()]

    @property
    def items(self) -> list[FeedItem]:
        """条目快照."""
        return [i.model_copy(deep=True) for i in self._items.values()]

    @property
    def read_key_ledger(self) -> list[str]:
        """已读键账本（旧到新）."""
        return list(self._read_keys)

    @property
    def unread_count(self) -> int:
        return sum(1 for i in self._items.values() if not i.is_read)

    @property
    def starred_count(self) -> int:
        return sum(1 for i in self._items.values() if i.is_starred)

    def has_feed(self, feed_id: str) -> bool:
        return feed_id in self._feeds

    def get_feed(self, feed_id: str) -> Feed:
        """获取订阅源快照."""
        return self._feed(feed_id).model_copy(deep=True)

    def get_item(self, item_id: str) -> FeedItem:
        """获取条目快照."""
        return self._item(item_id).model_copy(deep=True)

    def items_for_feed(self, feed_id: str) -> list[FeedItem]:
        """获取某订阅源的全部条目."""
        return [
            i.model_copy(deep=True) for i in self._items.values() if i.feed_id == feed_id
        ]

    def find_feed_by_url(self, url: str) -> Feed | None:
        """按 URL 查找订阅源（忽略大小写）."""
        url = url.strip().lower()
        for feed in self._feeds.values():
            if feed.url.lower() == url:
                return feed.model_copy(deep=True)
        return None

    def _feed(self, feed_id: str) -> Feed:
        feed = self._feeds.get(feed_id)
        if feed is None:
            msg = f"订阅源不存在: {feed_id}"
            raise UnknownFeedError(msg)
        return feed

    def _item(self, item_id: str) -> FeedItem:
        item = self._items.get(item_id)
        if item is None:
            msg = f"条目不存在: {item_id}"
            raise UnknownItemError(msg)
        return item

    # --- 加载 ---

    def load(
        self,
        feeds: Iterable[Feed],
        items: Iterable[FeedItem],
        read_keys: Iterable[str] = (),
    ) -> None:
        """用持久化数据替换当前状态，丢弃引用不存在订阅源的条目."""
        self._feeds = {f.id: f for f in feeds}
        self._items = {}
        self._keys = {}

        dropped = 0
        for item in items:
            if item.feed_id not in self._feeds:
                dropped += 1
                continue
            key = dedup_key(item.feed_id, item)
            if key in self._keys:
                dropped += 1
                continue
            self._items[item.id] = item
            self._keys[key] = item.id

        self._read_keys = OrderedDict.fromkeys(read_keys)
        self._trim_ledger()

        if dropped:
            logger.warning(f"加载时丢弃了 {dropped} 个无效或重复条目")
        self._emit(StoreChange(StoreEvent.RESET))

    # --- 订阅源管理 ---

    def add_feed(self, url: str, title: str | None = None) -> Feed:
        """新增订阅源，URL 重复（忽略大小写）时抛出 DuplicateFeedError."""
        clean_url = url.strip()
        if not clean_url:
            msg = "订阅 URL 不能为空"
            raise ValueError(msg)
        if self.find_feed_by_url(clean_url):
            msg = f"订阅源已存在: {clean_url}"
            raise DuplicateFeedError(msg)

        clean_title = (title or "").strip()
        feed = Feed(title=clean_title or clean_url, url=clean_url)
        self._feeds[feed.id] = feed
        self._emit(StoreChange(StoreEvent.FEEDS_CHANGED, feed_ids={feed.id}))
        return feed.model_copy(deep=True)

    def rename_feed(self, feed_id: str, title: str) -> Feed:
        """用户修改标题；空标题恢复为由解析结果决定."""
        feed = self._feed(feed_id)
        clean_title = title.strip()
        if clean_title:
            feed.title = clean_title
            feed.custom_title = True
        else:
            feed.custom_title = False
        self._emit(StoreChange(StoreEvent.FEEDS_CHANGED, feed_ids={feed_id}))
        return feed.model_copy(deep=True)

    def set_feed_auth(self, feed_id: str, kind: AuthKind) -> Feed:
        """设置认证方式."""
        feed = self._feed(feed_id)
        feed.auth_kind = kind
        self._emit(StoreChange(StoreEvent.FEEDS_CHANGED, feed_ids={feed_id}))
        return feed.model_copy(deep=True)

    def remove_feed(self, feed_id: str) -> list[str]:
        """删除订阅源及其全部条目，返回被删除的条目 ID."""
        self._feed(feed_id)
        removed = [i.id for i in self._items.values() if i.feed_id == feed_id]
        self._remove_items(removed)
        del self._feeds[feed_id]

        self._emit(StoreChange(StoreEvent.ITEMS_REMOVED, item_ids=set(removed)))
        self._emit(StoreChange(StoreEvent.FEEDS_CHANGED, feed_ids={feed_id}))
        return removed

    def apply_fetch_metadata(
        self,
        feed_id: str,
        *,
        title: str | None,
        icon_url: str | None,
        etag: str | None,
        last_modified: str | None,
        fetched_at: datetime,
    ) -> None:
        """写入抓取得到的订阅源元数据；用户自定义的标题不会被覆盖."""
        feed = self._feed(feed_id)
        if title and title.strip() and not feed.custom_title:
            feed.title = title.strip()
        if icon_url:
            feed.icon_url = icon_url
        feed.etag = etag
        feed.last_modified = last_modified
        feed.last_fetched = fetched_at
        self._emit(StoreChange(StoreEvent.FEEDS_CHANGED, feed_ids={feed_id}))

    def touch_feed(self, feed_id: str, fetched_at: datetime) -> None:
        """仅更新最近抓取时间 (304)."""
        self._feed(feed_id).last_fetched = fetched_at
        self._emit(StoreChange(StoreEvent.FEEDS_CHANGED, feed_ids={feed_id}))

    # --- 合并 ---

    def merge(self, feed_id: str, parsed_items: Iterable[ParsedItem]) -> list[FeedItem]:
        """
        合并解析结果.

        已存在相同去重键的条目保持不变（先到先得）；
        去重键在已读账本中的新条目直接标记为已读。

        Returns:
            新插入且仍为未读的条目
        """
        self._feed(feed_id)

        inserted: list[FeedItem] = []
        for parsed in parsed_items:
            key = dedup_key(feed_id, parsed)
            if key in self._keys:
                continue

            item = FeedItem(feed_id=feed_id, **parsed.model_dump())
            if key in self._read_keys:
                item.is_read = True
                self._read_keys.move_to_end(key)

            self._items[item.id] = item
            self._keys[key] = item.id
            inserted.append(item)

        if not inserted:
            return []

        logger.debug(f"订阅源 {feed_id} 新增 {len(inserted)} 个条目")
        self._emit(
            StoreChange(
                StoreEvent.ITEMS_ADDED,
                item_ids={i.id for i in inserted},
                feed_ids={feed_id},
            )
        )
        return [i.model_copy(deep=True) for i in inserted if not i.is_read]

    # --- 条目状态 ---

    def set_read(self, item_id: str, is_read: bool = True) -> FeedItem:
        """设置已读状态，并同步已读账本."""
        item = self._item(item_id)
        if item.is_read != is_read:
            item.is_read = is_read
            self._record_read(item)
            self._emit(StoreChange(StoreEvent.ITEM_CHANGED, item_ids={item_id}))
        return item.model_copy(deep=True)

    def set_starred(self, item_id: str, is_starred: bool = True) -> FeedItem:
        """设置收藏状态."""
        item = self._item(item_id)
        if item.is_starred != is_starred:
            item.is_starred = is_starred
            self._emit(StoreChange(StoreEvent.ITEM_CHANGED, item_ids={item_id}))
        return item.model_copy(deep=True)

    def toggle_read(self, item_id: str) -> FeedItem:
        return self.set_read(item_id, not self._item(item_id).is_read)

    def toggle_starred(self, item_id: str) -> FeedItem:
        return self.set_starred(item_id, not self._item(item_id).is_starred)

    def mark_all_read(self, feed_id: str | None = None) -> int:
        """全部标记为已读，可限定订阅源；返回变更数量."""
        if feed_id is not None:
            self._feed(feed_id)

        changed: set[str] = set()
        for item in self._items.values():
            if item.is_read or (feed_id is not None and item.feed_id != feed_id):
                continue
            item.is_read = True
            self._record_read(item)
            changed.add(item.id)

        if changed:
            self._emit(StoreChange(StoreEvent.ITEM_CHANGED, item_ids=changed))
        return len(changed)

    def _record_read(self, item: FeedItem) -> None:
        key = dedup_key(item.feed_id, item)
        if item.is_read:
            self._read_keys[key] = None
            self._read_keys.move_to_end(key)
            self._trim_ledger()
        else:
            self._read_keys.pop(key, None)

    def _trim_ledger(self) -> None:
        while len(self._read_keys) > self._ledger_size:
            self._read_keys.popitem(last=False)

    # --- 保留策略 ---

    def apply_retention(
        self, policy: RetentionPolicy, now: datetime | None = None
    ) -> list[str]:
        """按保留策略淘汰条目，返回被淘汰的条目 ID."""
        now = now or datetime.now(UTC)
        evicted = select_evictions(self._items.values(), policy, now)
        if not evicted:
            return []

        removed = [item_id for item_id in self._items if item_id in evicted]
        self._remove_items(removed)
        logger.info(f"保留策略淘汰了 {len(removed)} 个条目")
        self._emit(StoreChange(StoreEvent.ITEMS_REMOVED, item_ids=set(removed)))
        return removed

    def _remove_items(self, item_ids: Iterable[str]) -> None:
        for item_id in item_ids:
            item = self._items.pop(item_id)
            self._keys.pop(dedup_key(item.feed_id, item), None)
