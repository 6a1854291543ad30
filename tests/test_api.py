"""测试 HTTP API 端点."""

import pytest
from conftest import FakeFetcher, FakeParser, parsed_item
from httpx import ASGITransport, AsyncClient

from feedsync.config import Settings
from feedsync.core.persistence import MemoryKeyValueStore
from feedsync.core.reader import FeedReader
from feedsync.fetcher.http import FetchFailure, FetchSuccess
from feedsync.fetcher.parser import ParsedFeed
from feedsync.main import app

FEED_URL = "https://example.com/feed.xml"


@pytest.fixture
def reader() -> FeedReader:
    fetcher = FakeFetcher({
        FEED_URL: FetchSuccess(body=b"feed"),
        "https://down.example.com/feed": FetchFailure(error="HTTP 503"),
    })
    parser = FakeParser({
        b"feed": ParsedFeed(
            title="Example",
            items=[
                parsed_item("Python news", "https://example.com/py"),
                parsed_item("Sponsored", "https://example.com/ad"),
            ],
        )
    })
    return FeedReader.create(
        Settings(save_debounce_seconds=10), MemoryKeyValueStore(), fetcher=fetcher, parser=parser
    )


@pytest.fixture
async def client(reader: FeedReader):
    """创建测试客户端."""
    app.state.reader = reader
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    del app.state.reader


async def _subscribe(client: AsyncClient) -> dict:
    response = await client.post("/api/feeds", json={"url": FEED_URL})
    assert response.status_code == 201
    return response.json()["feed"]


class TestFeedsApi:
    """测试订阅源端点."""

    async def test_add_and_list(self, client: AsyncClient):
        """订阅后列表中可见."""
        feed = await _subscribe(client)
        assert feed["title"] == "Example"

        response = await client.get("/api/feeds")
        data = response.json()
        assert data["total"] == 1
        assert data["feeds"][0]["unread_count"] == 2

    async def test_duplicate_returns_409(self, client: AsyncClient):
        """重复订阅返回 409."""
        await _subscribe(client)
        response = await client.post("/api/feeds", json={"url": FEED_URL, "refresh": False})
        assert response.status_code == 409

    async def test_rename_and_delete(self, client: AsyncClient):
        """重命名和删除."""
        feed = await _subscribe(client)

        response = await client.patch(f"/api/feeds/{feed['id']}", json={"title": "Renamed"})
        assert response.json()["feed"]["title"] == "Renamed"

        response = await client.delete(f"/api/feeds/{feed['id']}")
        assert response.json() == {"success": True, "removed_items": 2}

        response = await client.get(f"/api/feeds/{feed['id']}")
        assert response.status_code == 404

    async def test_set_auth_validation(self, client: AsyncClient):
        """认证信息不完整返回 400."""
        feed = await _subscribe(client)
        response = await client.put(f"/api/feeds/{feed['id']}/auth", json={"kind": "bearer"})
        assert response.status_code == 400

        response = await client.put(
            f"/api/feeds/{feed['id']}/auth", json={"kind": "bearer", "token": "t"}
        )
        assert response.json()["feed"]["auth_kind"] == "bearer"

    async def test_refresh_failed_feed(self, client: AsyncClient):
        """刷新失败的订阅源返回失败状态."""
        response = await client.post(
            "/api/feeds", json={"url": "https://down.example.com/feed", "refresh": False}
        )
        feed_id = response.json()["feed"]["id"]

        response = await client.post(f"/api/feeds/{feed_id}/refresh")
        assert response.json()["status"] == "failed"
        assert response.json()["error"] == "HTTP 503"


class TestItemsApi:
    """测试条目端点."""

    async def test_list_read_and_star(self, client: AsyncClient):
        """列表、已读和收藏."""
        await _subscribe(client)
        items = (await client.get("/api/items")).json()["items"]
        assert len(items) == 2
        item_id = items[0]["id"]

        assert (await client.post(f"/api/items/{item_id}/read")).json()["is_read"]
        assert (await client.post(f"/api/items/{item_id}/star")).json()["is_starred"]

        unread = (await client.get("/api/items", params={"filter": "unread"})).json()
        assert unread["total"] == 1
        starred = (await client.get("/api/items", params={"filter": "starred"})).json()
        assert [i["id"] for i in starred["items"]] == [item_id]

    async def test_unknown_item(self, client: AsyncClient):
        """不存在的条目返回 404."""
        response = await client.post("/api/items/missing/read")
        assert response.status_code == 404

    async def test_mark_all_read(self, client: AsyncClient):
        """全部标记已读."""
        await _subscribe(client)
        response = await client.post("/api/items/mark-all-read")
        assert response.json() == {"success": True, "updated": 2}


class TestRulesApi:
    """测试规则端点."""

    async def test_rule_lifecycle(self, client: AsyncClient):
        """创建规则后条目被隐藏，停用后恢复."""
        await _subscribe(client)
        response = await client.post(
            "/api/rules",
            json={"name": "No ads", "action": "hide", "conditions": [{"value": "sponsored"}]},
        )
        assert response.status_code == 201
        rule_id = response.json()["id"]

        titles = [i["title"] for i in (await client.get("/api/items")).json()["items"]]
        assert titles == ["Python news"]

        await client.post(f"/api/rules/{rule_id}/toggle")
        assert (await client.get("/api/items")).json()["total"] == 2

        response = await client.delete(f"/api/rules/{rule_id}")
        assert response.json() == {"success": True}
        assert (await client.get("/api/rules")).json() == []

    async def test_update_unknown_rule(self, client: AsyncClient):
        """更新不存在的规则返回 404."""
        response = await client.put("/api/rules/missing", json={"name": "x"})
        assert response.status_code == 404


class TestSyncAndOpmlApi:
    """测试刷新、OPML 和设置端点."""

    async def test_refresh_and_status(self, client: AsyncClient):
        """手动刷新后可以查询报告."""
        await client.post("/api/feeds", json={"url": FEED_URL, "refresh": False})
        report = (await client.post("/api/sync")).json()["report"]
        assert report["new_items"] == 2

        status = (await client.get("/api/sync/status")).json()
        assert status["is_refreshing"] is False
        assert status["last_report"]["new_items"] == 2

        assert (await client.post("/api/sync/trim")).json() == {"evicted": 0, "deferred": False}

    async def test_opml_export_import(self, client: AsyncClient):
        """导出 OPML 并重新导入."""
        await _subscribe(client)
        response = await client.get("/api/opml")
        assert response.headers["content-type"].startswith("text/x-opml")
        assert FEED_URL in response.text

        response = await client.post("/api/opml", content=response.content)
        assert response.json() == {"success": True, "added": 0}

        response = await client.post("/api/opml", content=b"  ")
        assert response.status_code == 400

    async def test_settings(self, client: AsyncClient):
        """读取设置和修改刷新间隔."""
        data = (await client.get("/api/settings")).json()
        assert data["fetch_concurrency"] == 6

        response = await client.put("/api/settings/refresh-interval", json={"refresh_interval_minutes": 0})
        assert response.json()["refresh_interval_minutes"] == 0

    async def test_health(self, client: AsyncClient):
        """健康检查."""
        assert (await client.get("/health")).json() == {"status": "ok"}
