"""数据库初始化."""

import logging

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlmodel import SQLModel

from feedsync.models.kv import KeyValueEntry  # noqa: F401  注册表结构

logger = logging.getLogger(__name__)

# 全局引擎
_engine: AsyncEngine | None = None


async def init_db(database_url: str) -> async_sessionmaker[AsyncSession]:
    """初始化数据库，创建所有表，返回会话工厂."""
    global _engine

    _engine = create_async_engine(database_url, echo=False)
    session_factory = async_sessionmaker(
        _engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )

    async with _engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)

    logger.info(f"数据库已初始化: {database_url}")
    return session_factory


async def close_db() -> None:
    """释放数据库引擎."""
    global _engine
    if _engine is not None:
        await _engine.dispose()
        _engine = None
