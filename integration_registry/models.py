"""
Integration Registry 数据库模型

使用 SQLAlchemy ORM 定义持久化表结构:
- bot_channels: 存储 Bot 通道配置
- mcp_clients: 存储 MCP 客户端配置

config / args / env 以 JSON 文本存储，position 保留插入顺序。

支持多种数据库引擎:
- 开发/测试: SQLite (内存或文件)
- 生产: MySQL
"""
import json
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import String, Boolean, Integer, Text, DateTime, Index
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


# ============== Base Class ==============

class Base(DeclarativeBase):
    """所有模型的基类"""
    pass


def _load_json(raw: Optional[str], default):
    if not raw:
        return default
    try:
        return json.loads(raw)
    except (TypeError, ValueError):
        return default


def _dump_json(value) -> str:
    return json.dumps(value, ensure_ascii=False)


# ============== 数据库模型 ==============

class BotChannel(Base):
    """
    Bot 通道表

    - 基本信息: id, name, type
    - 行为: bot_prefix (唤醒前缀)
    - 平台配置: config (JSON，appId / appSecret 等)
    - 状态: enabled
    """
    __tablename__ = "bot_channels"

    id: Mapped[str] = mapped_column(
        String(64),
        primary_key=True,
        comment="通道 ID (创建时生成)"
    )

    name: Mapped[str] = mapped_column(
        String(200),
        nullable=False,
        comment="显示名称"
    )

    type: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        comment="平台类型: console, feishu, dingtalk, wecom, telegram, discord"
    )

    bot_prefix: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
        default="@bot",
        comment="触发前缀 (唤醒词)"
    )

    config: Mapped[Optional[str]] = mapped_column(
        Text,
        nullable=True,
        comment="平台配置 (JSON 格式)，例如 {appId, appSecret}"
    )

    enabled: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=True,
        comment="是否启用"
    )

    position: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
        comment="列表顺序"
    )

    updated_at: Mapped[datetime] = mapped_column(
        DateTime,
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
        comment="更新时间"
    )

    __table_args__ = (
        Index("idx_bot_channels_type", "type"),
        Index("idx_bot_channels_position", "position"),
    )

    def __repr__(self) -> str:
        return f"<BotChannel(id={self.id[:8]}, name={self.name}, type={self.type})>"

    def get_config(self) -> dict:
        """获取平台配置（解析 JSON）"""
        return _load_json(self.config, {})

    def set_config(self, config: dict) -> None:
        """设置平台配置（转为 JSON）"""
        self.config = _dump_json(config)


class MCPClient(Base):
    """
    MCP 客户端表

    name 为主键。stdio 使用 command / args / env，sse 使用 url。
    """
    __tablename__ = "mcp_clients"

    name: Mapped[str] = mapped_column(
        String(200),
        primary_key=True,
        comment="客户端名称 (唯一)"
    )

    transport: Mapped[str] = mapped_column(
        String(10),
        nullable=False,
        comment="传输方式: stdio, sse"
    )

    command: Mapped[Optional[str]] = mapped_column(
        Text,
        nullable=True,
        comment="启动命令 (stdio)"
    )

    args: Mapped[Optional[str]] = mapped_column(
        Text,
        nullable=True,
        comment="命令参数 (JSON 数组)"
    )

    url: Mapped[Optional[str]] = mapped_column(
        String(500),
        nullable=True,
        comment="SSE 端点 URL"
    )

    env: Mapped[Optional[str]] = mapped_column(
        Text,
        nullable=True,
        comment="进程环境变量 (JSON 格式)"
    )

    enabled: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=True,
        comment="是否启用"
    )

    position: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
        comment="列表顺序"
    )

    updated_at: Mapped[datetime] = mapped_column(
        DateTime,
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
        comment="更新时间"
    )

    __table_args__ = (
        Index("idx_mcp_clients_position", "position"),
    )

    def __repr__(self) -> str:
        return f"<MCPClient(name={self.name}, transport={self.transport}, enabled={self.enabled})>"

    def get_args(self) -> list:
        return _load_json(self.args, [])

    def set_args(self, args: list) -> None:
        self.args = _dump_json(args)

    def get_env(self) -> dict:
        return _load_json(self.env, {})

    def set_env(self, env: dict) -> None:
        self.env = _dump_json(env)
