"""新条目通知."""

import logging
from typing import Protocol

logger = logging.getLogger(__name__)


class NotificationSink(Protocol):
    """外部通知接口."""

    def notify(self, title: str, body: str, link: str, item_id: str) -> None: ...


class LoggingNotificationSink:
    """默认实现：只写日志."""

    def notify(self, title: str, body: str, link: str, item_id: str) -> None:
        logger.info(f"新条目通知: {title} ({link})")


def send_notification(
    sink: NotificationSink | None,
    title: str,
    body: str,
    link: str,
    item_id: str,
) -> bool:
    """发送通知，失败只记录日志，不重试."""
    if sink is None:
        return False
    try:
        sink.notify(title, body, link, item_id)
    except Exception as e:
        logger.warning(f"通知发送失败: {title} - {e}")
        return False
    return True
