"""feedsync - RSS 订阅同步与规则过滤引擎."""

__version__ = "0.1.0"
