"""
Integration Registry 数据库访问层 (Repository/DAO)

提供对 bot_channels / mcp_clients 表的读写，封装所有数据库访问逻辑。
ORM 行与规范记录之间的转换也在这里完成。
"""
import logging
from typing import List

from sqlalchemy import select, delete
from sqlalchemy.ext.asyncio import AsyncSession

from .adapter import decode_items
from .models import BotChannel, MCPClient
from .records import BotChannelRecord, MCPClientRecord

logger = logging.getLogger(__name__)


# ============== BotChannel Repository ==============

class BotChannelRepository:
    """
    BotChannel 数据访问层

    提供对 bot_channels 表的所有数据库操作
    """

    def __init__(self, session: AsyncSession):
        """
        初始化 Repository

        Args:
            session: SQLAlchemy AsyncSession
        """
        self.session = session

    async def get_all(self) -> List[BotChannelRecord]:
        """
        按列表顺序获取所有 Bot 通道

        Returns:
            BotChannelRecord 列表
        """
        stmt = select(BotChannel).order_by(BotChannel.position)
        result = await self.session.execute(stmt)
        return decode_items(list(result.scalars().all()), self.to_record, "bot_channels")

    async def replace_all(self, records: List[BotChannelRecord]) -> None:
        """
        用给定记录整体替换表内容

        Args:
            records: 按顺序排列的 Bot 通道记录
        """
        await self.session.execute(delete(BotChannel))
        for position, record in enumerate(records):
            row = BotChannel(
                id=record.id,
                name=record.name,
                type=record.type,
                bot_prefix=record.bot_prefix,
                enabled=record.enabled,
                position=position,
            )
            row.set_config(record.config)
            self.session.add(row)
        await self.session.flush()

        logger.debug(f"写入 Bot 通道: {len(records)} 条")

    @staticmethod
    def to_record(row: BotChannel) -> BotChannelRecord:
        return BotChannelRecord(
            id=row.id,
            name=row.name,
            type=row.type,
            enabled=row.enabled,
            bot_prefix=row.bot_prefix,
            config=row.get_config(),
        )


# ============== MCPClient Repository ==============

class MCPClientRepository:
    """
    MCPClient 数据访问层

    提供对 mcp_clients 表的所有数据库操作
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_all(self) -> List[MCPClientRecord]:
        """按列表顺序获取所有 MCP 客户端"""
        stmt = select(MCPClient).order_by(MCPClient.position)
        result = await self.session.execute(stmt)
        return decode_items(list(result.scalars().all()), self.to_record, "mcp_clients")

    async def replace_all(self, records: List[MCPClientRecord]) -> None:
        """用给定记录整体替换表内容"""
        await self.session.execute(delete(MCPClient))
        for position, record in enumerate(records):
            row = MCPClient(
                name=record.name,
                transport=record.transport,
                command=record.command,
                url=record.url,
                enabled=record.enabled,
                position=position,
            )
            row.set_args(record.args)
            row.set_env(record.env)
            self.session.add(row)
        await self.session.flush()

        logger.debug(f"写入 MCP 客户端: {len(records)} 条")

    @staticmethod
    def to_record(row: MCPClient) -> MCPClientRecord:
        return MCPClientRecord(
            name=row.name,
            transport=row.transport,
            command=row.command,
            args=row.get_args(),
            url=row.url,
            env=row.get_env(),
            enabled=row.enabled,
        )


# ============== 工厂函数 ==============

def get_bot_channel_repository(session: AsyncSession) -> BotChannelRepository:
    """获取 BotChannel Repository"""
    return BotChannelRepository(session)


def get_mcp_client_repository(session: AsyncSession) -> MCPClientRepository:
    """获取 MCPClient Repository"""
    return MCPClientRepository(session)
