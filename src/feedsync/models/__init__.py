"""数据模型."""

from feedsync.models.database import close_db, init_db
from feedsync.models.feed import AuthKind, Enclosure, Feed, FeedItem
from feedsync.models.kv import KeyValueEntry
from feedsync.models.rule import (
    FeedScope,
    FilterAction,
    FilterComparison,
    FilterCondition,
    FilteredItemResult,
    FilterField,
    FilterLogic,
    FilterRule,
    HighlightColor,
)
from feedsync.models.sync import FeedSyncResult, FeedSyncStatus, SyncReport

__all__ = [
    "AuthKind",
    "Enclosure",
    "Feed",
    "FeedItem",
    "FeedScope",
    "FeedSyncResult",
    "FeedSyncStatus",
    "FilterAction",
    "FilterComparison",
    "FilterCondition",
    "FilterField",
    "FilterLogic",
    "FilterRule",
    "FilteredItemResult",
    "HighlightColor",
    "KeyValueEntry",
    "SyncReport",
    "close_db",
    "init_db",
]
