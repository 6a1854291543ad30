"""订阅源抓取与解析模块."""

from feedsync.fetcher.http import (
    ConditionalFetcher,
    FetchAuthRequired,
    FetchFailure,
    FetchNotModified,
    FetchResult,
    FetchSuccess,
    HttpConditionalFetcher,
)
from feedsync.fetcher.parser import FeedParser, FeedparserParser, ParsedFeed, ParsedItem

__all__ = [
    "ConditionalFetcher",
    "FeedParser",
    "FeedparserParser",
    "FetchAuthRequired",
    "FetchFailure",
    "FetchNotModified",
    "FetchResult",
    "FetchSuccess",
    "HttpConditionalFetcher",
    "ParsedFeed",
    "ParsedItem",
]
