"""条目保留策略."""

from collections import defaultdict
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta

from feedsync.models.feed import FeedItem

_DISTANT_PAST = datetime.min.replace(tzinfo=UTC)


@dataclass(frozen=True)
class RetentionPolicy:
    """保留策略参数."""

    max_items_per_feed: int = 50
    max_total_items: int = 200
    retention_days: int = 30


def as_utc(value: datetime) -> datetime:
    """无时区的时间按 UTC 处理."""
    return value if value.tzinfo else value.replace(tzinfo=UTC)


def _pub_date_key(item: FeedItem) -> datetime:
    return as_utc(item.pub_date) if item.pub_date else _DISTANT_PAST


def _newest_first(items: Iterable[FeedItem]) -> list[FeedItem]:
    return sorted(items, key=_pub_date_key, reverse=True)


def select_evictions(
    items: Iterable[FeedItem],
    policy: RetentionPolicy,
    now: datetime,
) -> set[str]:
    """
    计算需要淘汰的条目 ID.

    依次应用三道规则：
    1. 单个订阅源上限：收藏条目始终保留，其余按发布时间保留最新的；
    2. 过期清理：已读、未收藏且超过保留天数的条目；
    3. 总量上限：未读或收藏的条目受保护，已读条目按新到旧填满剩余名额。

    收藏条目永远不会被淘汰。
    """
    items = list(items)
    evicted: set[str] = set()

    # 规则1：单个订阅源上限
    by_feed: dict[str, list[FeedItem]] = defaultdict(list)
    for item in items:
        by_feed[item.feed_id].append(item)

    for feed_items in by_feed.values():
        if len(feed_items) <= policy.max_items_per_feed:
            continue
        starred_count = sum(1 for i in feed_items if i.is_starred)
        others = _newest_first(i for i in feed_items if not i.is_starred)
        budget = max(0, policy.max_items_per_feed - starred_count)
        evicted.update(i.id for i in others[budget:])

    # 规则2：过期的已读条目
    cutoff = as_utc(now) - timedelta(days=policy.retention_days)
    for item in items:
        if item.id in evicted or not item.is_read or item.is_starred:
            continue
        if item.pub_date and as_utc(item.pub_date) < cutoff:
            evicted.add(item.id)

    # 规则3：总量上限
    remaining = [i for i in items if i.id not in evicted]
    if len(remaining) > policy.max_total_items:
        protected = [i for i in remaining if not i.is_read or i.is_starred]
        candidates = _newest_first(
            i for i in remaining if i.is_read and not i.is_starred
        )
        keep_count = max(0, policy.max_total_items - len(protected))
        evicted.update(i.id for i in candidates[keep_count:])

    return evicted
