"""过滤规则引擎."""

import logging
from collections.abc import Callable, Iterable

from feedsync.core.cache import CacheInvalidationPolicy, FilterResultCache
from feedsync.core.notifications import NotificationSink, send_notification
from feedsync.core.store import FeedSyncError, ItemStore, UnknownItemError
from feedsync.models.feed import FeedItem
from feedsync.models.rule import (
    FilterAction,
    FilterComparison,
    FilterCondition,
    FilteredItemResult,
    FilterField,
    FilterLogic,
    FilterRule,
)

logger = logging.getLogger(__name__)

# 通知正文最大长度
NOTIFICATION_BODY_LENGTH = 140


class UnknownRuleError(FeedSyncError):
    """规则不存在."""


def _field_values(item: FeedItem, field: FilterField) -> list[str]:
    if field == FilterField.TITLE:
        return [item.title]
    if field == FilterField.CONTENT:
        return [item.description]
    if field == FilterField.AUTHOR:
        return [item.author or ""]
    if field == FilterField.LINK:
        return [item.link]
    return list(item.categories)


def _compare(text: str, comparison: FilterComparison, value: str) -> bool:
    if comparison == FilterComparison.CONTAINS:
        return value in text
    if comparison == FilterComparison.EQUALS:
        return text == value
    if comparison == FilterComparison.STARTS_WITH:
        return text.startswith(value)
    if comparison == FilterComparison.ENDS_WITH:
        return text.endswith(value)
    return value not in text


def condition_matches(item: FeedItem, condition: FilterCondition) -> bool:
    """
    判断单个条件是否成立（忽略大小写）.

    空值条件视为未填写，永不成立。分类字段对多个分类逐一比较：
    not_contains 要求所有分类都不包含，其余比较方式只需任一分类成立。
    """
    value = condition.value.strip().lower()
    if not value:
        return False

    texts = [t.lower() for t in _field_values(item, condition.field)]
    if condition.comparison == FilterComparison.NOT_CONTAINS:
        return all(value not in t for t in texts)
    return any(_compare(t, condition.comparison, value) for t in texts)


def rule_matches(rule: FilterRule, item: FeedItem) -> bool:
    """判断规则是否命中；没有条件的规则永不命中."""
    if not rule.conditions:
        return False
    results = (condition_matches(item, c) for c in rule.conditions)
    if rule.logic == FilterLogic.ALL:
        return all(results)
    return any(results)


RulesListener = Callable[[], None]


class FilterRuleEngine:
    """按顺序评估过滤规则，并执行自动动作."""

    def __init__(
        self,
        store: ItemStore,
        rules: Iterable[FilterRule] = (),
        notifier: NotificationSink | None = None,
    ) -> None:
        self.store = store
        self.notifier = notifier
        self.cache = FilterResultCache()
        self._rules: list[FilterRule] = list(rules)
        self._listeners: list[RulesListener] = []

        policy = CacheInvalidationPolicy(self.cache)
        store.subscribe(policy.on_store_change)
        self.subscribe(policy.on_rules_changed)

    # --- 规则管理 ---

    @property
    def rules(self) -> list[FilterRule]:
        """规则快照（按存储顺序）."""
        return [r.model_copy(deep=True) for r in self._rules]

    def subscribe(self, listener: RulesListener) -> None:
        """注册规则变更监听器."""
        self._listeners.append(listener)

    def _changed(self) -> None:
        for listener in self._listeners:
            try:
                listener()
            except Exception:
                logger.exception("规则变更监听器出错")

    def _index(self, rule_id: str) -> int:
        for i, rule in enumerate(self._rules):
            if rule.id == rule_id:
                return i
        msg = f"规则不存在: {rule_id}"
        raise UnknownRuleError(msg)

    def set_rules(self, rules: Iterable[FilterRule]) -> None:
        self._rules = [r.model_copy(deep=True) for r in rules]
        self._changed()

    def add_rule(self, rule: FilterRule) -> FilterRule:
        self._rules.append(rule.model_copy(deep=True))
        self._changed()
        return rule

    def update_rule(self, rule: FilterRule) -> FilterRule:
        self._rules[self._index(rule.id)] = rule.model_copy(deep=True)
        self._changed()
        return rule

    def remove_rule(self, rule_id: str) -> None:
        del self._rules[self._index(rule_id)]
        self._changed()

    def toggle_rule(self, rule_id: str) -> FilterRule:
        rule = self._rules[self._index(rule_id)]
        rule.is_enabled = not rule.is_enabled
        self._changed()
        return rule.model_copy(deep=True)

    def move_rule(self, rule_id: str, index: int) -> None:
        """调整规则顺序."""
        rule = self._rules.pop(self._index(rule_id))
        self._rules.insert(max(0, min(index, len(self._rules))), rule)
        self._changed()

    # --- 评估 ---

    def _has_show_rules(self) -> bool:
        return any(r.is_enabled and r.action == FilterAction.SHOW for r in self._rules)

    def evaluate_item(self, item: FeedItem, has_show_rules: bool | None = None) -> FilteredItemResult:
        """评估单个条目（不读写缓存）."""
        if has_show_rules is None:
            has_show_rules = self._has_show_rules()

        result = FilteredItemResult(item_id=item.id)
        matched_show = False

        for rule in self._rules:
            if not rule.is_enabled or not rule.feed_scope.includes(item.feed_id):
                continue
            if not rule_matches(rule, item):
                continue

            result.matched_rule_ids.add(rule.id)
            action = rule.action
            if action == FilterAction.SHOW:
                matched_show = True
            elif action == FilterAction.HIDE:
                result.is_visible = False
            elif action == FilterAction.HIGHLIGHT:
                result.highlight_color = rule.effective_color
            elif action == FilterAction.ADD_ICON:
                result.icon_emoji = rule.icon_emoji
            elif action == FilterAction.ADD_SUMMARY:
                result.show_summary = True
            elif action == FilterAction.AUTO_STAR:
                result.auto_star = True
            elif action == FilterAction.MARK_READ:
                result.mark_read = True
            elif action == FilterAction.NOTIFY:
                result.notify = True

        # 存在“仅显示”规则时，未命中任何一条的条目一律隐藏
        if has_show_rules and not matched_show:
            result.is_visible = False

        return result

    def evaluate(self, items: Iterable[FeedItem]) -> list[FilteredItemResult]:
        """批量评估，结果按条目 ID 缓存."""
        has_show_rules = self._has_show_rules()
        results: list[FilteredItemResult] = []
        for item in items:
            cached = self.cache.get(item.id)
            if cached is None:
                cached = self.evaluate_item(item, has_show_rules)
                self.cache.put(cached)
            results.append(cached)
        return results

    # --- 自动动作 ---

    def apply_auto_actions(self, new_items: Iterable[FeedItem]) -> dict[str, int]:
        """
        对新合并的条目执行自动收藏、自动已读和通知.

        每个条目的每种自动动作最多触发一次。

        Returns:
            各动作的执行次数
        """
        counts = {"starred": 0, "marked_read": 0, "notified": 0}
        items = list(new_items)
        if not items:
            return counts

        for result, item in zip(self.evaluate(items), items, strict=True):
            if not self.store.has_feed(item.feed_id):
                continue
            try:
                if result.auto_star and self._fire(item, FilterAction.AUTO_STAR):
                    self.store.set_starred(item.id, True)
                    counts["starred"] += 1
                if result.mark_read and self._fire(item, FilterAction.MARK_READ):
                    self.store.set_read(item.id, True)
                    counts["marked_read"] += 1
            except UnknownItemError:
                # 条目在评估后已被删除
                continue
            if result.notify and self._fire(item, FilterAction.NOTIFY):
                body = item.description[:NOTIFICATION_BODY_LENGTH]
                if send_notification(self.notifier, item.title, body, item.link, item.id):
                    counts["notified"] += 1

        if any(counts.values()):
            logger.info(
                f"自动动作: 收藏={counts['starred']}, "
                f"已读={counts['marked_read']}, 通知={counts['notified']}"
            )
        return counts

    def _fire(self, item: FeedItem, action: FilterAction) -> bool:
        if self.cache.has_fired(item.id, action):
            return False
        self.cache.mark_fired(item.id, action)
        return True
