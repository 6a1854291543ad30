"""状态持久化：键值存储与防抖保存."""

import asyncio
import logging
from datetime import UTC, datetime
from typing import Protocol

from pydantic import TypeAdapter, ValidationError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from feedsync.core.filters import FilterRuleEngine
from feedsync.core.store import FeedSyncError, ItemStore, StoreChange
from feedsync.models.feed import Feed, FeedItem
from feedsync.models.kv import KeyValueEntry
from feedsync.models.rule import FilterRule

logger = logging.getLogger(__name__)

FEEDS_KEY = "feeds"
ITEMS_KEY = "items"
RULES_KEY = "filter_rules"
LEDGER_KEY = "read_key_ledger"

_feeds_adapter = TypeAdapter(list[Feed])
_items_adapter = TypeAdapter(list[FeedItem])
_rules_adapter = TypeAdapter(list[FilterRule])
_ledger_adapter = TypeAdapter(list[str])


class PersistenceError(FeedSyncError):
    """持久化读写失败."""


class KeyValueStore(Protocol):
    """外部键值存储接口."""

    async def get(self, key: str) -> bytes | None: ...

    async def set(self, key: str, value: bytes) -> None: ...


class MemoryKeyValueStore:
    """内存键值存储（测试与临时运行）."""

    def __init__(self) -> None:
        self.data: dict[str, bytes] = {}

    async def get(self, key: str) -> bytes | None:
        return self.data.get(key)

    async def set(self, key: str, value: bytes) -> None:
        self.data[key] = value


class SqlKeyValueStore:
    """基于 SQLModel 表 kv_store 的键值存储."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def get(self, key: str) -> bytes | None:
        async with self._session_factory() as session:
            entry = await session.get(KeyValueEntry, key)
            return entry.value if entry else None

    async def set(self, key: str, value: bytes) -> None:
        async with self._session_factory() as session:
            entry = await session.get(KeyValueEntry, key)
            if entry is None:
                entry = KeyValueEntry(key=key, value=value)
            else:
                entry.value = value
                entry.updated_at = datetime.now(UTC)
            session.add(entry)
            await session.commit()


class StatePersistence:
    """
    把订阅源、条目、规则和已读账本保存为四个独立的 JSON 值.

    读取时每个键单独解码，某个键损坏只影响该键。
    存储或规则变更后自动安排一次防抖保存。
    """

    def __init__(
        self,
        kv: KeyValueStore,
        store: ItemStore,
        engine: FilterRuleEngine,
        debounce_seconds: float = 0.5,
    ) -> None:
        self.kv = kv
        self.store = store
        self.engine = engine
        self.debounce_seconds = debounce_seconds
        self.warnings: list[str] = []
        self.last_error: str | None = None
        self._pending: asyncio.Task | None = None
        self._loading = False
        self._held = False
        self._held_changes = False

        store.subscribe(self._on_store_change)
        engine.subscribe(self.schedule_save)

    def _on_store_change(self, change: StoreChange) -> None:
        self.schedule_save()

    # --- 读取 ---

    async def _decode(self, key: str, adapter: TypeAdapter) -> list | None:
        try:
            raw = await self.kv.get(key)
        except Exception as e:
            self._warn(f"读取 {key} 失败: {e}")
            return None
        if raw is None:
            return None
        try:
            return adapter.validate_json(raw)
        except ValidationError as e:
            self._warn(f"{key} 数据损坏，已忽略: {e.error_count()} 个错误")
            return None

    def _warn(self, message: str) -> None:
        logger.error(message)
        self.warnings.append(message)

    async def load(self) -> None:
        """从键值存储恢复状态."""
        self.warnings = []
        feeds = await self._decode(FEEDS_KEY, _feeds_adapter) or []
        items = await self._decode(ITEMS_KEY, _items_adapter) or []
        rules = await self._decode(RULES_KEY, _rules_adapter) or []
        read_keys = await self._decode(LEDGER_KEY, _ledger_adapter) or []

        self._loading = True
        try:
            self.store.load(feeds, items, read_keys)
            self.engine.set_rules(rules)
        finally:
            self._loading = False

        logger.info(
            f"已加载状态: 订阅源={len(feeds)}, 条目={len(self.store.items)}, "
            f"规则={len(rules)}"
        )

    # --- 保存 ---

    def _encode(self, keys: tuple[str, ...]) -> dict[str, bytes]:
        payload: dict[str, bytes] = {}
        if FEEDS_KEY in keys:
            payload[FEEDS_KEY] = _feeds_adapter.dump_json(self.store.feeds)
        if ITEMS_KEY in keys:
            payload[ITEMS_KEY] = _items_adapter.dump_json(self.store.items)
        if RULES_KEY in keys:
            payload[RULES_KEY] = _rules_adapter.dump_json(self.engine.rules)
        if LEDGER_KEY in keys:
            payload[LEDGER_KEY] = _ledger_adapter.dump_json(self.store.read_key_ledger)
        return payload

    async def _write(self, keys: tuple[str, ...]) -> None:
        try:
            payload = self._encode(keys)
            for key, value in payload.items():
                await self.kv.set(key, value)
        except Exception as e:
            msg = f"保存 {', '.join(keys)} 失败: {e}"
            raise PersistenceError(msg) from e

    async def save(self) -> bool:
        """立即保存全部状态，失败时记录日志并返回 False."""
        try:
            await self._write((FEEDS_KEY, ITEMS_KEY, RULES_KEY, LEDGER_KEY))
        except PersistenceError as e:
            logger.error(str(e))
            self.last_error = str(e)
            return False
        self.last_error = None
        return True

    async def save_items_now(self) -> bool:
        """已读/收藏变更直接写入条目和账本."""
        try:
            await self._write((ITEMS_KEY, LEDGER_KEY))
        except PersistenceError as e:
            logger.error(str(e))
            self.last_error = str(e)
            return False
        return True

    def schedule_save(self) -> None:
        """安排一次防抖保存；没有运行中的事件循环时等待 flush()."""
        if self._loading:
            return
        if self._held:
            self._held_changes = True
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            return

        if self._pending is not None and not self._pending.done():
            self._pending.cancel()
        self._pending = loop.create_task(self._delayed_save())

    def hold_saves(self) -> None:
        """刷新期间暂停防抖保存，只记录是否有变更."""
        self._held = True
        self._held_changes = self.has_pending_save
        if self._held_changes:
            self._pending.cancel()

    def resume_saves(self) -> None:
        """恢复防抖保存；暂停期间有变更时安排一次保存."""
        self._held = False
        if self._held_changes:
            self._held_changes = False
            self.schedule_save()

    async def _delayed_save(self) -> None:
        await asyncio.sleep(self.debounce_seconds)
        # 写入开始后不再被新的保存请求打断
        await asyncio.shield(self.save())

    @property
    def has_pending_save(self) -> bool:
        return self._pending is not None and not self._pending.done()

    async def flush(self) -> bool:
        """取消等待中的保存并立即写入."""
        if self._pending is not None and not self._pending.done():
            self._pending.cancel()
        self._pending = None
        return await self.save()
