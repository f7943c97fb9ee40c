"""
Integration Registry

注册表门面，持有两份记录存储 (Bot 通道 / MCP 客户端)、生命周期控制器和持久化协作方。

控制流:
    请求 -> 边界适配器规范化 -> 校验 -> 存储原子变更 -> 生命周期推导 -> 变更通知 -> 持久化

注册表实例由宿主进程显式创建并持有 (见 app.py 的 lifespan)，没有全局实例:
    启动时 start() 从持久化载入，关闭时 close() 刷写未保存的变更。
"""
import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator, Callable, List, Optional

from . import adapter
from .config import Settings
from .errors import DuplicateKey, PersistenceError, ValidationError
from .lifecycle import ConnectorSupervisor, LifecycleController, running_eligible
from .persistence import RegistryPersistence, RegistrySnapshot, build_persistence
from .records import (
    FAMILY_BOT_CHANNEL,
    FAMILY_MCP_CLIENT,
    BotChannelRecord,
    MCPClientRecord,
    generate_channel_id,
    integration_family,
)
from .store import ChangeEvent, RecordStore
from .validator import validate_bot_channel, validate_mcp_client

logger = logging.getLogger(__name__)


def _assign_channel_id(record: BotChannelRecord) -> BotChannelRecord:
    record.id = generate_channel_id()
    return record


def _discard(_record: Any) -> None:
    """删除操作对外不返回记录"""
    return None


class IntegrationRegistry:
    """
    集成注册表

    Args:
        persistence: 持久化协作方，None 表示只在内存中保存
        supervisor: 连接器监管者，None 时使用只记录日志的默认实现
        settings: 服务配置
    """

    def __init__(
        self,
        persistence: Optional[RegistryPersistence] = None,
        supervisor: Optional[ConnectorSupervisor] = None,
        settings: Optional[Settings] = None,
    ):
        self.settings = settings or Settings()
        self.persistence = persistence
        self.lifecycle = LifecycleController(supervisor)

        self.bot_channels: RecordStore[BotChannelRecord] = RecordStore(
            "bot_channels",
            validate=validate_bot_channel,
            assign_key=_assign_channel_id,
        )
        self.mcp_clients: RecordStore[MCPClientRecord] = RecordStore(
            "mcp_clients",
            validate=validate_mcp_client,
        )
        self.lifecycle.attach(self.bot_channels)
        self.lifecycle.attach(self.mcp_clients)

        self._write_lock = asyncio.Lock()
        self._dirty = False
        self._started = False
        self._load_failed = False

    # ============== 生命周期 ==============

    async def start(self) -> None:
        """
        启动: 打开持久化并载入全部记录

        载入失败不会阻止启动，注册表以空集合启动并记录警告；
        此后拒绝写回，避免空集合覆盖已持久化的数据。
        """
        if self._started:
            return
        self._started = True

        if self.persistence is None:
            logger.info("未配置持久化，注册表仅保存在内存中")
            return

        self._load_failed = False
        try:
            await self.persistence.open()
            snapshot = await self.persistence.load_all()
        except Exception as e:
            logger.warning(f"载入集成配置失败，以空配置启动 (写回已停用): {e}")
            snapshot = RegistrySnapshot()
            self._load_failed = True

        bots = self.bot_channels.load(snapshot.bot_channels)
        clients = self.mcp_clients.load(snapshot.mcp_clients)
        logger.info(f"已载入 {bots} 个 Bot 通道, {clients} 个 MCP 客户端")

    async def close(self) -> None:
        """关闭: 刷写未保存的变更，等待通知送达，关闭持久化"""
        async with self._write_lock:
            if self._load_failed:
                logger.warning("启动时载入失败，关闭时不刷写内存中的变更")
            elif self._dirty and self.persistence is not None:
                try:
                    await self.persistence.save_all(self.snapshot())
                    self._dirty = False
                    logger.info("关闭前已刷写未保存的变更")
                except Exception as e:
                    logger.error(f"关闭前刷写失败，部分变更未持久化: {e}")

        await self.bot_channels.drain()
        await self.mcp_clients.drain()
        await self.lifecycle.drain()

        if self.persistence is not None:
            await self.persistence.close()
        self._started = False
        logger.info("集成注册表已关闭")

    def snapshot(self) -> RegistrySnapshot:
        """当前两个集合的快照"""
        return RegistrySnapshot(
            bot_channels=self.bot_channels.list(),
            mcp_clients=self.mcp_clients.list(),
        )

    def subscribe(self, listener: Callable[[ChangeEvent], Any]) -> None:
        """订阅两个集合的变更通知"""
        self.bot_channels.subscribe(listener)
        self.mcp_clients.subscribe(listener)

    def unsubscribe(self, listener: Callable[[ChangeEvent], Any]) -> None:
        self.bot_channels.unsubscribe(listener)
        self.mcp_clients.unsubscribe(listener)

    # ============== 变更 + 持久化 ==============

    async def _mutate(self, operation: Callable[[], Any]) -> Any:
        """
        串行执行一次变更并写回持久化

        变更本身是同步的内存操作；写回失败时变更保留，抛出 PersistenceError。
        """
        async with self._write_lock:
            result = operation()
            await self._save(result)
            return result

    async def _save(self, record: Any) -> None:
        if self.persistence is None:
            return
        if self._load_failed:
            self._dirty = True
            raise PersistenceError("启动时载入失败，已停用写回以保护已持久化的数据", record)
        try:
            await self.persistence.save_all(self.snapshot())
        except Exception as e:
            self._dirty = True
            logger.error(f"保存集成配置失败 (内存变更已生效): {e}")
            raise PersistenceError(str(e), record) from e
        self._dirty = False

    def _store_for(self, family: str) -> RecordStore:
        """按集成族或集成类型 (如 "stdio" / "feishu") 选择存储"""
        if family not in (FAMILY_BOT_CHANNEL, FAMILY_MCP_CLIENT):
            try:
                family = integration_family(family)
            except ValueError:
                raise ValidationError("family", f"未知的集成族或类型: {family}")
        if family == FAMILY_BOT_CHANNEL:
            return self.bot_channels
        return self.mcp_clients

    # ============== Bot 通道 ==============

    def list_bot_channels(self) -> List[BotChannelRecord]:
        return self.bot_channels.list()

    def get_bot_channel(self, channel_id: str) -> BotChannelRecord:
        return self.bot_channels.get(channel_id)

    async def create_bot_channel(self, draft: BotChannelRecord | dict) -> BotChannelRecord:
        """
        创建 Bot 通道

        Args:
            draft: 草稿记录或请求体 (id 会被重新生成)

        Raises:
            ValidationError: 草稿不合法
            DuplicateKey: 开启 unique_bot_channel_type 时同类型通道已存在
            PersistenceError: 已创建但未能持久化
        """
        if isinstance(draft, dict):
            draft = adapter.bot_channel_draft(draft)

        def operation():
            if self.settings.unique_bot_channel_type and self.bot_channels.find(
                lambda r: r.type == draft.type
            ):
                raise DuplicateKey(draft.type)
            return self.bot_channels.create(draft)

        return await self._mutate(operation)

    async def update_bot_channel(self, channel_id: str, patch: dict) -> BotChannelRecord:
        """
        部分更新 Bot 通道 (顶层字段和 config 都是浅合并)

        Raises:
            NotFound / ValidationError / PersistenceError
        """
        patch = adapter.bot_channel_patch(patch)
        return await self._mutate(lambda: self.bot_channels.update(channel_id, patch))

    async def toggle_bot_channel(self, channel_id: str) -> BotChannelRecord:
        return await self._mutate(lambda: self.bot_channels.toggle(channel_id))

    async def delete_bot_channel(self, channel_id: str) -> None:
        """删除 Bot 通道，先通知拆除再移除"""
        await self._mutate(lambda: _discard(self.bot_channels.delete(channel_id)))

    # ============== MCP 客户端 ==============

    def list_mcp_clients(self) -> List[MCPClientRecord]:
        return self.mcp_clients.list()

    def get_mcp_client(self, name: str) -> MCPClientRecord:
        return self.mcp_clients.get(name)

    async def create_mcp_client(self, draft: MCPClientRecord | dict) -> MCPClientRecord:
        """
        创建 MCP 客户端，name 即主键

        Raises:
            ValidationError / DuplicateKey / PersistenceError
        """
        if isinstance(draft, dict):
            draft = adapter.mcp_client_draft(draft)
        return await self._mutate(lambda: self.mcp_clients.create(draft))

    async def update_mcp_client(self, name: str, record: MCPClientRecord | dict) -> MCPClientRecord:
        """整体替换 MCP 客户端 (name 不可修改)"""
        if isinstance(record, dict):
            record = adapter.mcp_client_draft({"name": name, **record})
        return await self._mutate(lambda: self.mcp_clients.replace(name, record))

    async def toggle_mcp_client(self, name: str) -> MCPClientRecord:
        return await self._mutate(lambda: self.mcp_clients.toggle(name))

    async def delete_mcp_client(self, name: str) -> None:
        await self._mutate(lambda: _discard(self.mcp_clients.delete(name)))

    # ============== 启用 / 禁用 ==============

    async def enable(self, family: str, key: str) -> Any:
        """启用记录 (幂等)"""
        store = self._store_for(family)
        return await self._mutate(lambda: self.lifecycle.enable(store, key))

    async def disable(self, family: str, key: str) -> Any:
        """禁用记录 (幂等)"""
        store = self._store_for(family)
        return await self._mutate(lambda: self.lifecycle.disable(store, key))

    # ============== Agent 工具描述 ==============

    def enabled_mcp_tool_descriptions(self) -> str:
        """
        生成已启用 MCP 客户端的工具描述 (注入 Agent 系统提示)

        Returns:
            Markdown 文本，没有已启用的客户端时返回空字符串
        """
        enabled = running_eligible(self.mcp_clients.list())
        if not enabled:
            return ""

        lines = [
            "## MCP Tools",
            "",
            "The following MCP (Model Context Protocol) clients are connected:",
            "",
        ]
        for client in enabled:
            endpoint = client.endpoint
            if endpoint and client.transport == "stdio":
                endpoint = f"`{endpoint}`"
            line = f"- **{client.name}** ({client.transport})"
            if endpoint:
                line += f" — {endpoint}"
            lines.append(line)
        return "\n".join(lines) + "\n"


# ============== 生命周期管理 ==============

@asynccontextmanager
async def registry_lifespan(
    settings: Settings,
    persistence: Optional[RegistryPersistence] = None,
    supervisor: Optional[ConnectorSupervisor] = None,
) -> AsyncGenerator[IntegrationRegistry, None]:
    """
    注册表生命周期管理器 (FastAPI lifespan)

    用法:
        async with registry_lifespan(settings) as registry:
            app.state.registry = registry
            yield
    """
    registry = IntegrationRegistry(
        persistence=persistence if persistence is not None else build_persistence(settings),
        supervisor=supervisor,
        settings=settings,
    )
    logger.info("正在启动集成注册表...")
    await registry.start()
    try:
        yield registry
    finally:
        logger.info("正在关闭集成注册表...")
        await registry.close()
