"""FilterRule 过滤规则模型."""

from dataclasses import dataclass, field
from enum import Enum

from pydantic import BaseModel, Field

from feedsync.models.feed import new_id


class FilterAction(str, Enum):
    """规则命中后的动作."""

    SHOW = "show"
    HIDE = "hide"
    HIGHLIGHT = "highlight"
    ADD_ICON = "add_icon"
    ADD_SUMMARY = "add_summary"
    AUTO_STAR = "auto_star"
    MARK_READ = "mark_read"
    NOTIFY = "notify"


class FilterField(str, Enum):
    """条件匹配的字段."""

    TITLE = "title"
    CONTENT = "content"
    AUTHOR = "author"
    LINK = "link"
    CATEGORY = "category"


class FilterComparison(str, Enum):
    """条件比较方式（均忽略大小写）."""

    CONTAINS = "contains"
    NOT_CONTAINS = "not_contains"
    EQUALS = "equals"
    STARTS_WITH = "starts_with"
    ENDS_WITH = "ends_with"


class FilterLogic(str, Enum):
    """多条件组合方式."""

    ALL = "all"
    ANY = "any"


class HighlightColor(str, Enum):
    """预设高亮颜色."""

    BLUE = "blue"
    PURPLE = "purple"
    PINK = "pink"
    RED = "red"
    ORANGE = "orange"
    YELLOW = "yellow"
    GREEN = "green"
    TEAL = "teal"
    CUSTOM = "custom"


class FilterCondition(BaseModel):
    """单个匹配条件."""

    id: str = Field(default_factory=new_id)
    field: FilterField = FilterField.TITLE
    comparison: FilterComparison = FilterComparison.CONTAINS
    value: str = ""


class FeedScope(BaseModel):
    """规则作用范围：全部订阅源或指定订阅源."""

    all_feeds: bool = True
    feed_ids: list[str] = Field(default_factory=list)

    def includes(self, feed_id: str) -> bool:
        """判断订阅源是否在作用范围内."""
        return self.all_feeds or feed_id in self.feed_ids


class FilterRule(BaseModel):
    """用户定义的过滤规则."""

    id: str = Field(default_factory=new_id)
    name: str = Field(default="New Rule", description="规则名称")
    is_enabled: bool = Field(default=True, description="是否启用")
    action: FilterAction = Field(default=FilterAction.HIGHLIGHT)
    conditions: list[FilterCondition] = Field(default_factory=list)
    logic: FilterLogic = Field(default=FilterLogic.ANY)
    highlight_color: HighlightColor = Field(default=HighlightColor.BLUE)
    custom_color_hex: str | None = Field(default=None, description="自定义颜色 (#RRGGBB)")
    icon_emoji: str | None = Field(default=None, description="图标字符")
    feed_scope: FeedScope = Field(default_factory=FeedScope)

    @property
    def effective_color(self) -> str:
        """实际使用的高亮颜色."""
        if self.highlight_color == HighlightColor.CUSTOM and self.custom_color_hex:
            return self.custom_color_hex
        return self.highlight_color.value


@dataclass
class FilteredItemResult:
    """单个条目的规则评估结果（派生数据，不持久化）."""

    item_id: str
    is_visible: bool = True
    highlight_color: str | None = None
    icon_emoji: str | None = None
    show_summary: bool = False
    matched_rule_ids: set[str] = field(default_factory=set)
    auto_star: bool = False
    mark_read: bool = False
    notify: bool = False
