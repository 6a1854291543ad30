"""测试凭据与认证请求头."""

import base64

import pytest

from feedsync.core.credentials import (
    InMemoryCredentialStore,
    build_auth_header,
    resolve_auth_header,
    validate_payload,
)
from feedsync.models.feed import AuthKind


class TestAuthHeader:
    """测试请求头生成."""

    def test_basic(self):
        """Basic 认证使用 base64 编码."""
        header = build_auth_header(AuthKind.BASIC, {"username": "user", "password": "p:w"})
        assert header == "Basic " + base64.b64encode(b"user:p:w").decode()

    def test_bearer(self):
        """Bearer 认证直接使用 token."""
        assert build_auth_header(AuthKind.BEARER, {"token": "abc"}) == "Bearer abc"

    def test_incomplete_payload(self):
        """凭据不完整时不发送请求头."""
        assert build_auth_header(AuthKind.BEARER, {}) is None
        assert build_auth_header(AuthKind.NONE, {"token": "abc"}) is None

    def test_resolve_from_store(self):
        """从凭据存储读取."""
        store = InMemoryCredentialStore()
        store.save("f1", AuthKind.BEARER, {"token": "t"})
        assert resolve_auth_header(store, "f1", AuthKind.BEARER) == "Bearer t"
        assert resolve_auth_header(store, "f1", AuthKind.BASIC) is None
        assert resolve_auth_header(store, "f2", AuthKind.BEARER) is None
        assert resolve_auth_header(None, "f1", AuthKind.BEARER) is None

    def test_delete(self):
        """删除后读取不到."""
        store = InMemoryCredentialStore()
        store.save("f1", AuthKind.BASIC, {"username": "u"})
        store.delete("f1")
        store.delete("f1")
        assert store.load("f1") is None

    def test_validate_payload(self):
        """缺少必要字段时报错."""
        with pytest.raises(ValueError):
            validate_payload(AuthKind.BASIC, {"password": "x"})
        with pytest.raises(ValueError):
            validate_payload(AuthKind.BEARER, {})
        validate_payload(AuthKind.NONE, {})
