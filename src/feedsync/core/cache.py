"""规则结果缓存与失效策略."""

from dataclasses import replace

from feedsync.core.store import StoreChange, StoreEvent
from feedsync.models.rule import FilterAction, FilteredItemResult


class FilterResultCache:
    """
    条目 ID -> 规则评估结果.

    同时记录每个条目已经触发过的自动动作。
    条目被删除时两者一起清理，因此不设容量上限。
    """

    def __init__(self) -> None:
        self._results: dict[str, FilteredItemResult] = {}
        self._fired: dict[str, set[FilterAction]] = {}

    def __len__(self) -> int:
        return len(self._results)

    def __contains__(self, item_id: object) -> bool:
        return item_id in self._results

    def get(self, item_id: str) -> FilteredItemResult | None:
        """返回副本，调用方修改不影响缓存."""
        result = self._results.get(item_id)
        return _copy(result) if result is not None else None

    def put(self, result: FilteredItemResult) -> None:
        self._results[result.item_id] = _copy(result)

    def discard(self, item_ids: set[str]) -> None:
        """丢弃指定条目的缓存结果."""
        for item_id in item_ids:
            self._results.pop(item_id, None)

    def forget(self, item_ids: set[str]) -> None:
        """条目已删除：结果和自动动作记录都清理."""
        for item_id in item_ids:
            self._results.pop(item_id, None)
            self._fired.pop(item_id, None)

    def clear_results(self) -> None:
        self._results.clear()

    def clear(self) -> None:
        self._results.clear()
        self._fired.clear()

    def has_fired(self, item_id: str, action: FilterAction) -> bool:
        return action in self._fired.get(item_id, ())

    def mark_fired(self, item_id: str, action: FilterAction) -> None:
        self._fired.setdefault(item_id, set()).add(action)


class CacheInvalidationPolicy:
    """把存储变更和规则变更统一映射为缓存失效."""

    def __init__(self, cache: FilterResultCache) -> None:
        self.cache = cache

    def on_store_change(self, change: StoreChange) -> None:
        """存储变更回调."""
        if change.event == StoreEvent.RESET:
            self.cache.clear()
        elif change.event == StoreEvent.ITEMS_REMOVED:
            self.cache.forget(change.item_ids)
        elif change.event == StoreEvent.ITEM_CHANGED:
            self.cache.discard(change.item_ids)
        # ITEMS_ADDED: 新条目 ID 本来就不在缓存中

    def on_rules_changed(self) -> None:
        """规则列表变更回调."""
        self.cache.clear_results()


def _copy(result: FilteredItemResult) -> FilteredItemResult:
    return replace(result, matched_rule_ids=set(result.matched_rule_ids))
