"""订阅源凭据存储."""

import base64
import logging
from typing import Protocol

from feedsync.models.feed import AuthKind

logger = logging.getLogger(__name__)


class CredentialStore(Protocol):
    """外部凭据存储接口，密钥不写入订阅源记录."""

    def save(self, feed_id: str, kind: AuthKind, payload: dict[str, str]) -> None: ...

    def load(self, feed_id: str) -> tuple[AuthKind, dict[str, str]] | None: ...

    def delete(self, feed_id: str) -> None: ...


class InMemoryCredentialStore:
    """进程内凭据存储（默认实现）."""

    def __init__(self) -> None:
        self._entries: dict[str, tuple[AuthKind, dict[str, str]]] = {}

    def save(self, feed_id: str, kind: AuthKind, payload: dict[str, str]) -> None:
        self._entries[feed_id] = (kind, dict(payload))

    def load(self, feed_id: str) -> tuple[AuthKind, dict[str, str]] | None:
        entry = self._entries.get(feed_id)
        if entry is None:
            return None
        kind, payload = entry
        return kind, dict(payload)

    def delete(self, feed_id: str) -> None:
        self._entries.pop(feed_id, None)


def validate_payload(kind: AuthKind, payload: dict[str, str]) -> None:
    """校验凭据内容是否与认证方式匹配."""
    if kind == AuthKind.BASIC and not payload.get("username"):
        msg = "Basic 认证需要 username"
        raise ValueError(msg)
    if kind == AuthKind.BEARER and not payload.get("token"):
        msg = "Bearer 认证需要 token"
        raise ValueError(msg)


def build_auth_header(kind: AuthKind, payload: dict[str, str]) -> str | None:
    """
    把凭据转换为 Authorization 请求头.

    Args:
        kind: 认证方式
        payload: basic 为 username/password，bearer 为 token

    Returns:
        请求头的值，无需认证或凭据不完整时返回 None
    """
    if kind == AuthKind.BASIC:
        username = payload.get("username", "")
        if not username:
            return None
        raw = f"{username}:{payload.get('password', '')}".encode()
        return "Basic " + base64.b64encode(raw).decode("ascii")

    if kind == AuthKind.BEARER:
        token = payload.get("token", "")
        return f"Bearer {token}" if token else None

    return None


def resolve_auth_header(
    store: CredentialStore | None, feed_id: str, kind: AuthKind
) -> str | None:
    """按订阅源的认证方式从凭据存储生成请求头."""
    if kind == AuthKind.NONE or store is None:
        return None

    entry = store.load(feed_id)
    if entry is None:
        logger.warning(f"订阅源 {feed_id} 需要认证，但没有保存凭据")
        return None

    stored_kind, payload = entry
    if stored_kind != kind:
        logger.warning(f"订阅源 {feed_id} 的凭据类型与认证方式不一致")
        return None
    return build_auth_header(kind, payload)
