"""SyncReport 刷新报告模型."""

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum


class FeedSyncStatus(str, Enum):
    """单个订阅源的刷新结果."""

    UPDATED = "updated"
    NOT_MODIFIED = "not_modified"
    AUTH_REQUIRED = "auth_required"
    DECODE_ERROR = "decode_error"
    FAILED = "failed"


@dataclass
class FeedSyncResult:
    """单个订阅源的刷新记录."""

    feed_id: str
    feed_title: str
    status: FeedSyncStatus
    new_items: int = 0
    error: str | None = None


@dataclass
class SyncReport:
    """一次完整刷新的报告."""

    started_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    completed_at: datetime | None = None
    results: dict[str, FeedSyncResult] = field(default_factory=dict)
    evicted: int = 0

    @property
    def new_items(self) -> int:
        """本次新增条目总数."""
        return sum(r.new_items for r in self.results.values())

    @property
    def failed_feed_ids(self) -> set[str]:
        """失败（含认证失败）的订阅源 ID."""
        return {
            feed_id
            for feed_id, r in self.results.items()
            if r.status in (FeedSyncStatus.FAILED, FeedSyncStatus.AUTH_REQUIRED)
        }

    def to_dict(self) -> dict:
        """转换为 API 响应."""
        return {
            "started_at": self.started_at.isoformat(),
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "new_items": self.new_items,
            "evicted": self.evicted,
            "feeds": [
                {
                    "feed_id": r.feed_id,
                    "title": r.feed_title,
                    "status": r.status.value,
                    "new_items": r.new_items,
                    "error": r.error,
                }
                for r in self.results.values()
            ],
        }
