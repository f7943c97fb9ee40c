"""
持久化协作方

注册表启动时 load_all() 载入全部记录，每次变更后 save_all() 写回。
持久化只提供尽力而为的持久性，不属于单个操作的事务边界。

实现:
- DatabasePersistence: SQLAlchemy 异步引擎 (默认 SQLite，可配置 MySQL)
- JsonFilePersistence: 人类可读的 JSON 文件
"""
import asyncio
import json
import logging
import os
import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Protocol

from .adapter import (
    bot_channel_from_storage,
    bot_channel_to_storage,
    decode_items,
    mcp_client_from_storage,
    mcp_client_to_storage,
)
from .database import DatabaseManager
from .records import BotChannelRecord, MCPClientRecord
from .repository import get_bot_channel_repository, get_mcp_client_repository

logger = logging.getLogger(__name__)


@dataclass
class RegistrySnapshot:
    """两个有序集合的快照"""
    bot_channels: List[BotChannelRecord] = field(default_factory=list)
    mcp_clients: List[MCPClientRecord] = field(default_factory=list)


class RegistryPersistence(Protocol):
    """持久化协作方接口"""

    async def open(self) -> None:
        ...

    async def load_all(self) -> RegistrySnapshot:
        ...

    async def save_all(self, snapshot: RegistrySnapshot) -> None:
        ...

    async def close(self) -> None:
        ...


# ============== 数据库持久化 ==============

class DatabasePersistence:
    """
    数据库持久化

    save_all 在一个事务中整体替换两张表的内容，失败时回滚。
    """

    def __init__(self, database_url: str | None = None, db_manager: DatabaseManager | None = None):
        self.db_manager = db_manager or DatabaseManager(database_url)

    async def open(self) -> None:
        await self.db_manager.init_db()

    async def load_all(self) -> RegistrySnapshot:
        async with self.db_manager.get_session() as session:
            bot_channels = await get_bot_channel_repository(session).get_all()
            mcp_clients = await get_mcp_client_repository(session).get_all()
        return RegistrySnapshot(bot_channels=bot_channels, mcp_clients=mcp_clients)

    async def save_all(self, snapshot: RegistrySnapshot) -> None:
        async with self.db_manager.get_session() as session:
            await get_bot_channel_repository(session).replace_all(snapshot.bot_channels)
            await get_mcp_client_repository(session).replace_all(snapshot.mcp_clients)

    async def close(self) -> None:
        await self.db_manager.close()


# ============== JSON 文件持久化 ==============

class JsonFilePersistence:
    """
    JSON 文件持久化

    文件结构:
        {"bot_channels": [...], "mcp_clients": [...]}

    兼容旧的 mcp.json 结构 {"clients": [...]} (读取时视为 mcp_clients)。
    写入时先写临时文件再原子替换，避免写到一半的文件。
    """

    def __init__(self, path: str | Path):
        self.path = Path(path)

    async def open(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)

    async def load_all(self) -> RegistrySnapshot:
        if not self.path.exists():
            logger.info(f"数据文件不存在，使用空配置: {self.path}")
            return RegistrySnapshot()

        data = await asyncio.to_thread(self._read)
        if not isinstance(data, dict):
            raise ValueError(f"数据文件格式错误: {self.path}")

        mcp_items = data.get("mcp_clients", data.get("clients", []))
        return RegistrySnapshot(
            bot_channels=decode_items(data.get("bot_channels", []), bot_channel_from_storage, "bot_channels"),
            mcp_clients=decode_items(mcp_items, mcp_client_from_storage, "mcp_clients"),
        )

    async def save_all(self, snapshot: RegistrySnapshot) -> None:
        data = {
            "bot_channels": [bot_channel_to_storage(r) for r in snapshot.bot_channels],
            "mcp_clients": [mcp_client_to_storage(r) for r in snapshot.mcp_clients],
        }
        await asyncio.to_thread(self._write, data)

    async def close(self) -> None:
        pass

    def _read(self) -> dict:
        with open(self.path, "r", encoding="utf-8") as f:
            return json.load(f)

    def _write(self, data: dict) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(dir=self.path.parent, prefix=".registry-", suffix=".json")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(data, f, ensure_ascii=False, indent=2)
            os.replace(tmp_path, self.path)
        except Exception:
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise


def build_persistence(settings) -> RegistryPersistence:
    """根据配置选择持久化实现"""
    if settings.storage == "json":
        logger.info(f"使用 JSON 文件持久化: {settings.data_file}")
        return JsonFilePersistence(settings.data_file)
    logger.info("使用数据库持久化")
    return DatabasePersistence(settings.database_url)
