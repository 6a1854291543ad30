"""应用配置管理."""

from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """应用配置（环境变量）."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # 存储配置
    database_url: str = "sqlite+aiosqlite:///./feedsync.db"
    save_debounce_seconds: float = 0.5

    # 刷新配置（0 表示仅手动刷新）
    refresh_interval_minutes: int = 30
    fetch_concurrency: int = 6
    fetch_timeout_seconds: int = 30
    user_agent: str = "feedsync/0.1"

    # 保留策略
    max_items_per_feed: int = 50
    max_total_items: int = 200
    item_retention_days: int = 30
    read_key_ledger_size: int = 2000
    trim_after_refresh: bool = True

    # 通知
    notify_on_new_items: bool = False


@lru_cache
def get_settings() -> Settings:
    """获取应用配置（带缓存）."""
    return Settings()
