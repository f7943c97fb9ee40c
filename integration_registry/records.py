"""
Integration Registry 记录模型

两类集成:
- BotChannelRecord: 聊天平台 Bot 通道 (console, feishu, dingtalk, wecom, telegram, discord)
- MCPClientRecord: MCP 工具连接 (stdio 进程 / sse 远程端点)

这里只定义内存中的规范记录结构，持久化表结构见 models.py。
"""
import copy
import uuid
from dataclasses import dataclass, field
from typing import Literal, Optional


# ============== 枚举类型定义 ==============

BotChannelType = Literal["console", "feishu", "dingtalk", "wecom", "telegram", "discord"]
MCPTransport = Literal["stdio", "sse"]

BOT_CHANNEL_TYPES: tuple[str, ...] = ("console", "feishu", "dingtalk", "wecom", "telegram", "discord")
MCP_TRANSPORTS: tuple[str, ...] = ("stdio", "sse")

FAMILY_BOT_CHANNEL = "bot_channel"
FAMILY_MCP_CLIENT = "mcp_client"

DEFAULT_BOT_PREFIX = "@bot"


def integration_family(kind: str) -> str:
    """根据集成类型返回所属族 (bot_channel / mcp_client)"""
    if kind in BOT_CHANNEL_TYPES:
        return FAMILY_BOT_CHANNEL
    if kind in MCP_TRANSPORTS:
        return FAMILY_MCP_CLIENT
    raise ValueError(f"未知的集成类型: {kind}")


# ============== 平台元数据 ==============

@dataclass(frozen=True)
class BotPlatform:
    """Bot 平台元数据 (展示名称、描述、可识别的 config 键)"""
    id: str
    label: str
    description: str
    config_keys: tuple[str, ...] = ("appId", "appSecret")


BOT_PLATFORMS: dict[str, BotPlatform] = {
    "console": BotPlatform(
        id="console",
        label="Console",
        description="本地终端测试通道",
        config_keys=(),
    ),
    "feishu": BotPlatform(
        id="feishu",
        label="飞书 (Feishu)",
        description="企业内部通讯与协作",
        config_keys=("appId", "appSecret", "verificationToken", "encryptKey"),
    ),
    "dingtalk": BotPlatform(
        id="dingtalk",
        label="钉钉 (DingTalk)",
        description="企业级即时通讯平台",
        config_keys=("appId", "appSecret", "webhookUrl"),
    ),
    "wecom": BotPlatform(
        id="wecom",
        label="企业微信 (WeCom)",
        description="全路协同的办公工具",
        config_keys=("appId", "appSecret", "corpId", "agentId"),
    ),
    "telegram": BotPlatform(
        id="telegram",
        label="Telegram",
        description="Secure cloud-based messaging",
        config_keys=("appId", "appSecret", "botToken"),
    ),
    "discord": BotPlatform(
        id="discord",
        label="Discord",
        description="Chat for Communities and Friends",
        config_keys=("appId", "appSecret", "botToken", "guildId"),
    ),
}


def get_platform(bot_type: str) -> Optional[BotPlatform]:
    """获取平台元数据"""
    return BOT_PLATFORMS.get(bot_type)


# ============== 记录模型 ==============

@dataclass
class BotChannelRecord:
    """
    Bot 通道记录

    - id: 创建时生成，之后不可变
    - type: 平台类型，创建后不可变 (换平台需删除后重建)
    - bot_prefix: 唤醒前缀，注册表只存储不解释
    - config: 平台配置 (appId, appSecret 等)，值视为不透明字符串
    """
    name: str
    type: str
    id: str = ""
    enabled: bool = True
    bot_prefix: str = DEFAULT_BOT_PREFIX
    config: dict[str, str] = field(default_factory=dict)

    immutable_fields = ("id", "type")
    mapping_field = "config"

    @property
    def key(self) -> str:
        return self.id

    def copy(self) -> "BotChannelRecord":
        return copy.deepcopy(self)

    def __repr__(self) -> str:
        return f"<BotChannelRecord(id={self.id[:8]}, name={self.name}, type={self.type}, enabled={self.enabled})>"


@dataclass
class MCPClientRecord:
    """
    MCP 客户端记录

    name 即主键。command/args/env 仅对 stdio 有意义，url 仅对 sse 有意义。
    """
    name: str
    transport: str
    command: Optional[str] = None
    args: list[str] = field(default_factory=list)
    url: Optional[str] = None
    env: dict[str, str] = field(default_factory=dict)
    enabled: bool = True

    immutable_fields = ("name",)
    mapping_field = "env"

    @property
    def key(self) -> str:
        return self.name

    @property
    def endpoint(self) -> str:
        """stdio 返回命令行，sse 返回 URL"""
        if self.transport == "stdio":
            return " ".join([self.command or "", *self.args]).strip()
        return self.url or ""

    def copy(self) -> "MCPClientRecord":
        return copy.deepcopy(self)

    def __repr__(self) -> str:
        return f"<MCPClientRecord(name={self.name}, transport={self.transport}, enabled={self.enabled})>"


# ============== 工厂函数 ==============

def generate_channel_id() -> str:
    """生成新的 Bot 通道 ID"""
    return uuid.uuid4().hex


def new_bot_channel(bot_type: str, **overrides) -> BotChannelRecord:
    """
    按平台默认值创建 Bot 通道草稿 (尚未分配 ID)

    Args:
        bot_type: 平台类型
        **overrides: 覆盖默认值的字段 (name, enabled, bot_prefix, config)

    Returns:
        BotChannelRecord 草稿
    """
    platform = get_platform(bot_type)
    fields = {
        "name": platform.label if platform else bot_type,
        "enabled": True,
        "bot_prefix": DEFAULT_BOT_PREFIX,
        "config": {},
    }
    fields.update({k: v for k, v in overrides.items() if v is not None})
    fields.pop("id", None)
    fields.pop("type", None)
    return BotChannelRecord(type=bot_type, **fields)
