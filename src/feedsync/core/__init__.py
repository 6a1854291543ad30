"""核心业务逻辑."""

from feedsync.core.filters import FilterRuleEngine
from feedsync.core.reader import FeedReader
from feedsync.core.store import ItemStore
from feedsync.core.sync import SyncOrchestrator

__all__ = [
    "FeedReader",
    "FilterRuleEngine",
    "ItemStore",
    "SyncOrchestrator",
]
