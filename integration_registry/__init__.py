"""
Integration Registry

管理 Bot 通道 (飞书、钉钉、企业微信、Telegram、Discord、本地终端) 与
MCP 客户端 (stdio / sse) 的配置和启停生命周期。
"""
from .errors import DuplicateKey, NotFound, PersistenceError, RegistryError, ValidationError
from .lifecycle import LifecycleState
from .records import BotChannelRecord, MCPClientRecord
from .registry import IntegrationRegistry

__all__ = [
    "IntegrationRegistry",
    "BotChannelRecord",
    "MCPClientRecord",
    "LifecycleState",
    "RegistryError",
    "ValidationError",
    "NotFound",
    "DuplicateKey",
    "PersistenceError",
]
