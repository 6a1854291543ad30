"""feedsync 主应用入口."""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from feedsync.api import feeds, items, opml, rules, settings, sync
from feedsync.config import get_settings
from feedsync.core.persistence import SqlKeyValueStore
from feedsync.core.reader import FeedReader
from feedsync.models.database import close_db, init_db
from feedsync.scheduler import RefreshScheduler

# 配置日志
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logging.getLogger("httpx").setLevel(logging.WARNING)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """应用生命周期管理."""
    app_settings = get_settings()

    logger.info("正在初始化数据库...")
    session_factory = await init_db(app_settings.database_url)

    logger.info("正在加载订阅状态...")
    reader = FeedReader.create(app_settings, SqlKeyValueStore(session_factory))
    await reader.startup()
    app.state.reader = reader

    logger.info("正在启动定时刷新...")
    scheduler = RefreshScheduler(reader)
    scheduler.start(app_settings.refresh_interval_minutes)
    app.state.scheduler = scheduler

    logger.info("feedsync 启动完成！")
    yield

    logger.info("正在关闭...")
    scheduler.shutdown()
    await reader.shutdown()
    await close_db()
    logger.info("feedsync 已关闭")


app = FastAPI(
    title="feedsync",
    description="RSS 订阅同步与规则过滤服务",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# 注册路由
app.include_router(feeds.router)
app.include_router(items.router)
app.include_router(rules.router)
app.include_router(sync.router)
app.include_router(opml.router)
app.include_router(settings.router)


@app.get("/")
async def root() -> dict:
    """根路径."""
    return {
        "name": "feedsync",
        "version": "0.1.0",
        "description": "RSS 订阅同步与规则过滤服务",
    }


@app.get("/health")
async def health() -> dict:
    """健康检查."""
    return {"status": "ok"}


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "feedsync.main:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
    )
