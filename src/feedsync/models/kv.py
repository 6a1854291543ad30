"""KeyValueEntry 键值存储模型."""

from datetime import UTC, datetime

from sqlalchemy import Column, LargeBinary
from sqlmodel import Field, SQLModel


class KeyValueEntry(SQLModel, table=True):
    """持久化状态块（每个键一份独立的字节数据）."""

    __tablename__ = "kv_store"  # type: ignore[assignment]

    key: str = Field(primary_key=True, description="状态键")
    value: bytes = Field(sa_column=Column(LargeBinary, nullable=False))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
