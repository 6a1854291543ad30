"""去重键计算."""

from datetime import datetime
from typing import Protocol
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

# 常见的跟踪参数
TRACKING_PARAMS = frozenset(
    {
        "fbclid",
        "gclid",
        "dclid",
        "msclkid",
        "mc_cid",
        "mc_eid",
        "igshid",
        "yclid",
        "_hsenc",
        "_hsmi",
        "ref_src",
    }
)


class Dedupable(Protocol):
    """可计算去重键的条目（FeedItem 或 ParsedItem）."""

    title: str
    link: str
    source_id: str | None
    pub_date: datetime | None


def _is_tracking_param(name: str) -> bool:
    name = name.lower()
    return name.startswith("utm_") or name in TRACKING_PARAMS


def normalize_link(link: str) -> str:
    """
    规范化链接.

    去掉跟踪参数和末尾斜杠，并统一为小写。
    """
    link = link.strip()
    if not link:
        return ""

    parts = urlsplit(link)
    if parts.query:
        query = [
            (k, v)
            for k, v in parse_qsl(parts.query, keep_blank_values=True)
            if not _is_tracking_param(k)
        ]
        link = urlunsplit(parts._replace(query=urlencode(query)))

    return link.rstrip("/").lower()


def dedup_key(feed_id: str, item: Dedupable) -> str:
    """计算条目在订阅源内的去重键."""
    if item.source_id:
        return f"{feed_id}-{item.source_id}"

    link = normalize_link(item.link or "")
    if link:
        return f"{feed_id}-{link}"

    epoch = int(item.pub_date.timestamp()) if item.pub_date else 0
    return f"{feed_id}-{item.title.lower()}-{epoch}"
