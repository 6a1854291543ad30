"""条件请求抓取器."""

from dataclasses import dataclass
from typing import Protocol

import httpx

HTTP_NOT_MODIFIED = 304
AUTH_STATUS_CODES = (401, 403)


@dataclass
class FetchSuccess:
    """抓取成功."""

    body: bytes
    etag: str | None = None
    last_modified: str | None = None


@dataclass
class FetchNotModified:
    """内容未变化 (304)."""


@dataclass
class FetchAuthRequired:
    """需要认证或凭据无效 (401/403)."""

    status_code: int


@dataclass
class FetchFailure:
    """网络错误或非 2xx 响应."""

    error: str


FetchResult = FetchSuccess | FetchNotModified | FetchAuthRequired | FetchFailure


class ConditionalFetcher(Protocol):
    """条件请求接口."""

    async def fetch(
        self,
        url: str,
        etag: str | None = None,
        last_modified: str | None = None,
        auth_header: str | None = None,
    ) -> FetchResult: ...


class HttpConditionalFetcher:
    """基于 httpx 的条件请求抓取器."""

    def __init__(
        self,
        timeout: float = 30.0,
        user_agent: str = "feedsync/0.1",
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._client = httpx.AsyncClient(
            timeout=timeout,
            follow_redirects=True,
            headers={"User-Agent": user_agent},
            transport=transport,
        )

    async def close(self) -> None:
        """关闭客户端."""
        await self._client.aclose()

    async def fetch(
        self,
        url: str,
        etag: str | None = None,
        last_modified: str | None = None,
        auth_header: str | None = None,
    ) -> FetchResult:
        """发送带缓存校验头的 GET 请求."""
        headers: dict[str, str] = {}
        if etag:
            headers["If-None-Match"] = etag
        if last_modified:
            headers["If-Modified-Since"] = last_modified
        if auth_header:
            headers["Authorization"] = auth_header

        try:
            response = await self._client.get(url, headers=headers)
        except httpx.HTTPError as e:
            return FetchFailure(error=f"{type(e).__name__}: {e}")

        if response.status_code == HTTP_NOT_MODIFIED:
            return FetchNotModified()

        if response.status_code in AUTH_STATUS_CODES:
            return FetchAuthRequired(status_code=response.status_code)

        if not response.is_success:
            return FetchFailure(error=f"HTTP {response.status_code}")

        return FetchSuccess(
            body=response.content,
            etag=response.headers.get("ETag"),
            last_modified=response.headers.get("Last-Modified"),
        )
