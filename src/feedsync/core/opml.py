"""OPML 导入导出."""

import logging
from collections.abc import Iterable
from dataclasses import dataclass

from bs4 import BeautifulSoup

from feedsync.models.feed import Feed

logger = logging.getLogger(__name__)

OPML_TITLE = "feedsync Subscriptions"


@dataclass
class OpmlOutline:
    """OPML 中的一个订阅条目."""

    url: str
    title: str


def escape_xml(text: str) -> str:
    """转义 & " < > 四个字符."""
    return (
        text.replace("&", "&amp;")
        .replace('"', "&quot;")
        .replace("<", "&lt;")
        .replace(">", "&gt;")
    )


def export_opml(feeds: Iterable[Feed]) -> str:
    """导出 OPML 2.0 文档."""
    lines = [
        '<?xml version="1.0" encoding="UTF-8"?>',
        '<opml version="2.0">',
        "  <head>",
        f"    <title>{escape_xml(OPML_TITLE)}</title>",
        "  </head>",
        "  <body>",
    ]
    for feed in feeds:
        title = escape_xml(feed.title)
        url = escape_xml(feed.url)
        lines.append(
            f'    <outline type="rss" text="{title}" title="{title}" xmlUrl="{url}"/>'
        )
    lines.extend(["  </body>", "</opml>", ""])
    return "\n".join(lines)


def parse_opml(data: bytes | str) -> list[OpmlOutline]:
    """
    解析 OPML 文档.

    只保留带非空 xmlUrl 的 outline（含嵌套分组中的），
    标题依次取 title、text，都没有时用 URL。
    """
    if isinstance(data, str):
        data = data.encode("utf-8")
    soup = BeautifulSoup(data, "xml")

    outlines: list[OpmlOutline] = []
    for node in soup.find_all("outline"):
        url = (node.get("xmlUrl") or "").strip()
        if not url:
            continue
        title = (node.get("title") or "").strip() or (node.get("text") or "").strip()
        outlines.append(OpmlOutline(url=url, title=title or url))

    logger.debug(f"OPML 中解析到 {len(outlines)} 个订阅")
    return outlines
