"""测试过滤规则引擎."""

from conftest import make_item, parsed_item

from feedsync.core.filters import FilterRuleEngine, condition_matches
from feedsync.core.store import ItemStore
from feedsync.models.rule import (
    FeedScope,
    FilterAction,
    FilterComparison,
    FilterCondition,
    FilterField,
    FilterLogic,
    FilterRule,
    HighlightColor,
)


def _rule(action: FilterAction, *conditions: FilterCondition, **kwargs) -> FilterRule:
    return FilterRule(action=action, conditions=list(conditions), **kwargs)


def _title(value: str, comparison: FilterComparison = FilterComparison.CONTAINS) -> FilterCondition:
    return FilterCondition(field=FilterField.TITLE, comparison=comparison, value=value)


class TestConditions:
    """测试单个条件匹配."""

    def test_case_insensitive(self):
        """匹配忽略大小写."""
        item = make_item("f1", "Python Release Notes")
        assert condition_matches(item, _title("python"))
        assert condition_matches(item, _title("RELEASE NOTES", FilterComparison.ENDS_WITH))
        assert condition_matches(item, _title("python release notes", FilterComparison.EQUALS))
        assert condition_matches(item, _title("pyth", FilterComparison.STARTS_WITH))
        assert not condition_matches(item, _title("python", FilterComparison.NOT_CONTAINS))

    def test_blank_value_never_matches(self):
        """空值条件永不成立."""
        item = make_item("f1", "Anything")
        assert not condition_matches(item, _title("  "))
        assert not condition_matches(item, _title("", FilterComparison.NOT_CONTAINS))

    def test_content_and_author_fields(self):
        """content 匹配描述，author 为空时按空字符串处理."""
        item = make_item("f1", "T", description="Deep dive into asyncio")
        content = FilterCondition(field=FilterField.CONTENT, value="asyncio")
        author = FilterCondition(
            field=FilterField.AUTHOR, comparison=FilterComparison.NOT_CONTAINS, value="bob"
        )
        assert condition_matches(item, content)
        assert condition_matches(item, author)

    def test_link_field(self):
        """link 字段匹配链接."""
        item = make_item("f1", "T", link="https://blog.example.com/post")
        cond = FilterCondition(
            field=FilterField.LINK, comparison=FilterComparison.STARTS_WITH, value="https://blog."
        )
        assert condition_matches(item, cond)

    def test_category_any_and_not_contains(self):
        """分类：任一分类匹配即可；not_contains 要求所有分类都不包含."""
        item = make_item("f1", "T", categories=["Tech", "Sports"])
        equals = FilterCondition(
            field=FilterField.CATEGORY, comparison=FilterComparison.EQUALS, value="sports"
        )
        not_contains = FilterCondition(
            field=FilterField.CATEGORY, comparison=FilterComparison.NOT_CONTAINS, value="sport"
        )
        assert condition_matches(item, equals)
        assert not condition_matches(item, not_contains)


class TestEvaluate:
    """测试规则评估."""

    def test_no_rules_everything_visible(self, engine: FilterRuleEngine):
        """没有规则时全部可见."""
        result = engine.evaluate([make_item("f1", "A")])[0]
        assert result.is_visible
        assert result.matched_rule_ids == set()

    def test_hide_rule(self, engine: FilterRuleEngine):
        """hide 规则命中后隐藏."""
        rule = engine.add_rule(_rule(FilterAction.HIDE, _title("sponsored")))
        hidden, shown = engine.evaluate(
            [make_item("f1", "Sponsored post"), make_item("f1", "Real post")]
        )
        assert not hidden.is_visible
        assert hidden.matched_rule_ids == {rule.id}
        assert shown.is_visible

    def test_show_only_global_and(self, engine: FilterRuleEngine):
        """存在 show 规则时，未命中任何 show 规则的条目隐藏."""
        engine.add_rule(_rule(FilterAction.SHOW, _title("python")))
        engine.add_rule(_rule(FilterAction.SHOW, _title("rust")))
        engine.add_rule(_rule(FilterAction.HIGHLIGHT, _title("go")))

        py, rs, go = engine.evaluate([
            make_item("f1", "Python tips"),
            make_item("f1", "Rust tips"),
            make_item("f1", "Go tips"),
        ])
        assert py.is_visible
        assert rs.is_visible
        assert not go.is_visible
        assert go.highlight_color == "blue"

    def test_disabled_show_rule_ignored(self, engine: FilterRuleEngine):
        """停用的 show 规则不参与全局判断."""
        engine.add_rule(_rule(FilterAction.SHOW, _title("python"), is_enabled=False))
        assert engine.evaluate([make_item("f1", "Go tips")])[0].is_visible

    def test_hide_beats_show(self, engine: FilterRuleEngine):
        """同时命中 show 和 hide 时隐藏."""
        engine.add_rule(_rule(FilterAction.SHOW, _title("python")))
        engine.add_rule(_rule(FilterAction.HIDE, _title("ad")))
        assert not engine.evaluate([make_item("f1", "Python ad")])[0].is_visible

    def test_last_highlight_wins(self, engine: FilterRuleEngine):
        """多条高亮规则命中时最后一条生效."""
        engine.add_rule(_rule(FilterAction.HIGHLIGHT, _title("a"), highlight_color=HighlightColor.RED))
        engine.add_rule(
            _rule(
                FilterAction.HIGHLIGHT,
                _title("a"),
                highlight_color=HighlightColor.CUSTOM,
                custom_color_hex="#123456",
            )
        )
        assert engine.evaluate([make_item("f1", "abc")])[0].highlight_color == "#123456"

    def test_rule_order_is_deterministic(self, engine: FilterRuleEngine):
        """调整顺序后结果随之改变."""
        red = engine.add_rule(_rule(FilterAction.HIGHLIGHT, _title("x"), highlight_color=HighlightColor.RED))
        engine.add_rule(_rule(FilterAction.HIGHLIGHT, _title("x"), highlight_color=HighlightColor.GREEN))
        item = make_item("f1", "x")

        assert engine.evaluate([item])[0].highlight_color == "green"
        engine.move_rule(red.id, 5)
        assert engine.evaluate([item])[0].highlight_color == "red"

    def test_logic_all_and_any(self, engine: FilterRuleEngine):
        """ALL 要求全部条件成立，ANY 只需一个."""
        conds = (_title("python"), _title("async"))
        all_rule = engine.add_rule(_rule(FilterAction.ADD_ICON, *conds, logic=FilterLogic.ALL, icon_emoji="*"))
        any_rule = engine.add_rule(_rule(FilterAction.ADD_SUMMARY, *conds, logic=FilterLogic.ANY))

        result = engine.evaluate([make_item("f1", "Python basics")])[0]
        assert result.matched_rule_ids == {any_rule.id}
        assert result.show_summary
        assert result.icon_emoji is None

        result = engine.evaluate([make_item("f1", "Python async")])[0]
        assert result.matched_rule_ids == {all_rule.id, any_rule.id}
        assert result.icon_emoji == "*"

    def test_empty_conditions_never_match(self, engine: FilterRuleEngine):
        """没有条件的规则永不命中."""
        engine.add_rule(_rule(FilterAction.HIDE))
        assert engine.evaluate([make_item("f1", "A")])[0].is_visible

    def test_feed_scope(self, engine: FilterRuleEngine):
        """规则只作用于指定订阅源."""
        engine.add_rule(
            _rule(FilterAction.HIDE, _title("a"), feed_scope=FeedScope(all_feeds=False, feed_ids=["f2"]))
        )
        in_scope, out_of_scope = engine.evaluate([make_item("f2", "a"), make_item("f1", "a")])
        assert not in_scope.is_visible
        assert out_of_scope.is_visible

    def test_pending_auto_flags(self, engine: FilterRuleEngine):
        """自动动作规则只设置待执行标记."""
        engine.add_rule(_rule(FilterAction.AUTO_STAR, _title("a")))
        engine.add_rule(_rule(FilterAction.MARK_READ, _title("a")))
        engine.add_rule(_rule(FilterAction.NOTIFY, _title("a")))
        result = engine.evaluate([make_item("f1", "a")])[0]
        assert result.auto_star and result.mark_read and result.notify


class TestResultCache:
    """测试评估结果缓存与失效."""

    def test_results_cached(self, engine: FilterRuleEngine):
        """相同条目的结果来自缓存."""
        item = make_item("f1", "A")
        first = engine.evaluate([item])[0]
        assert engine.evaluate([item])[0] == first
        assert item.id in engine.cache

    def test_cached_results_are_copies(self, engine: FilterRuleEngine):
        """修改返回的结果不影响缓存."""
        engine.add_rule(_rule(FilterAction.HIGHLIGHT, _title("a")))
        item = make_item("f1", "A")
        first = engine.evaluate([item])[0]
        first.matched_rule_ids.add("other")
        first.is_visible = False

        again = engine.evaluate([item])[0]
        assert again is not first
        assert again.is_visible
        assert "other" not in again.matched_rule_ids

    def test_rule_listener_error_isolated(self, engine: FilterRuleEngine):
        """规则监听器出错不影响规则修改和缓存失效."""

        def broken_listener() -> None:
            raise ValueError("listener bug")

        engine.subscribe(broken_listener)
        item = make_item("f1", "Sponsored")
        assert engine.evaluate([item])[0].is_visible

        engine.add_rule(_rule(FilterAction.HIDE, _title("sponsored")))
        assert len(engine.rules) == 1
        assert not engine.evaluate([item])[0].is_visible

    def test_rule_change_clears_cache(self, engine: FilterRuleEngine):
        """规则变更后重新评估."""
        item = make_item("f1", "Sponsored")
        assert engine.evaluate([item])[0].is_visible

        rule = engine.add_rule(_rule(FilterAction.HIDE, _title("sponsored")))
        assert not engine.evaluate([item])[0].is_visible

        engine.toggle_rule(rule.id)
        assert engine.evaluate([item])[0].is_visible

        engine.remove_rule(rule.id)
        assert engine.rules == []

    def test_store_changes_invalidate(self, store: ItemStore, engine: FilterRuleEngine):
        """条目变更和删除时丢弃对应缓存."""
        feed = store.add_feed("https://example.com/feed.xml")
        a, b = store.merge(feed.id, [parsed_item("A", "https://example.com/a"),
                                     parsed_item("B", "https://example.com/b")])
        engine.evaluate([a, b])
        assert len(engine.cache) == 2

        store.set_read(a.id)
        assert a.id not in engine.cache
        assert b.id in engine.cache

        store.remove_feed(feed.id)
        assert len(engine.cache) == 0

    def test_load_resets_cache(self, store: ItemStore, engine: FilterRuleEngine):
        """重新加载时清空缓存."""
        engine.evaluate([make_item("f1", "A")])
        store.load([], [])
        assert len(engine.cache) == 0
