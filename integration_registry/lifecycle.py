"""
生命周期控制器

每条记录的启用/禁用状态机，独立于 CRUD:
- 状态: DISABLED / ENABLED (DELETED 仅用于通知拆除意图)
- enable / disable 都是幂等的，转换到当前状态是无操作的成功

控制器本身不启动或停止外部连接器 (stdio 进程 / SSE 连接)，
只把状态转换通知给 ConnectorSupervisor，由它负责实际的启动和拆除。
通知是发出即忘的，可能重复投递，订阅者需要按当前状态处理。
"""
import asyncio
import enum
import inspect
import logging
from typing import Any, Iterable, List, Optional, Protocol

from .store import ACTION_CREATED, ACTION_UPDATED, ChangeEvent, RecordStore

logger = logging.getLogger(__name__)


class LifecycleState(str, enum.Enum):
    """记录生命周期状态"""
    DISABLED = "disabled"
    ENABLED = "enabled"
    DELETED = "deleted"


class ConnectorSupervisor(Protocol):
    """
    连接器监管者 (外部协作方)

    记录进入 ENABLED 时负责启动 stdio 进程 / 打开 SSE 连接，
    进入 DISABLED 或 DELETED 时负责拆除。可以是同步或异步实现。
    """

    def on_lifecycle_change(self, record: Any, new_state: LifecycleState) -> Any:
        ...


class LoggingSupervisor:
    """只记录日志的默认监管者"""

    def on_lifecycle_change(self, record: Any, new_state: LifecycleState) -> None:
        logger.info(f"连接器状态变更: {record.key} -> {new_state.value}")


def state_of(record: Any) -> LifecycleState:
    """由 enabled 推导当前状态"""
    return LifecycleState.ENABLED if record.enabled else LifecycleState.DISABLED


def running_eligible(records: Iterable[Any]) -> List[Any]:
    """返回允许运行 (已启用) 的记录"""
    return [record for record in records if record.enabled]


class LifecycleController:
    """
    生命周期控制器

    通过 attach() 挂到存储上: 订阅变更事件，并注册删除前钩子，
    保证删除一条记录时先发出拆除意图，再从存储中移除。
    """

    def __init__(self, supervisor: Optional[ConnectorSupervisor] = None):
        self.supervisor = supervisor or LoggingSupervisor()
        self._pending: set[asyncio.Task] = set()

    def attach(self, store: RecordStore) -> None:
        """挂载到一个记录存储"""
        store.subscribe(self.observe)
        store.on_before_delete(self.request_teardown)

    # ---------- 状态转换 ----------

    def enable(self, store: RecordStore, key: str) -> Any:
        """启用记录，已启用时直接返回 (不发通知)"""
        return self._transition(store, key, True)

    def disable(self, store: RecordStore, key: str) -> Any:
        """禁用记录，已禁用时直接返回 (不发通知)"""
        return self._transition(store, key, False)

    def _transition(self, store: RecordStore, key: str, enabled: bool) -> Any:
        record = store.get(key)
        if record.enabled == enabled:
            logger.debug(f"[{store.name}] {key} 已处于 {state_of(record).value} 状态")
            return record
        return store.update(key, {"enabled": enabled})

    # ---------- 事件处理 ----------

    def observe(self, event: ChangeEvent) -> None:
        """
        存储变更订阅者

        - 创建且已启用: 通知 ENABLED
        - 更新且 enabled 发生变化: 通知新状态
        - 已启用的记录配置变化: 重发 ENABLED，监管者按新快照重建连接
        - 删除: 拆除意图已由 request_teardown 在移除前发出
        """
        if event.action == ACTION_CREATED:
            if event.record.enabled:
                self._emit(event.record, LifecycleState.ENABLED)
        elif event.action == ACTION_UPDATED:
            if event.previous is None or event.previous.enabled != event.record.enabled:
                self._emit(event.record, state_of(event.record))
            elif event.record.enabled and event.record != event.previous:
                self._emit(event.record, LifecycleState.ENABLED)

    def request_teardown(self, record: Any) -> None:
        """删除前同步调用，通知监管者拆除连接器"""
        self._emit(record, LifecycleState.DELETED)

    def _emit(self, record: Any, state: LifecycleState) -> None:
        try:
            result = self.supervisor.on_lifecycle_change(record, state)
        except Exception as e:
            logger.error(f"通知连接器监管者失败 ({record.key} -> {state.value}): {e}", exc_info=True)
            return

        if inspect.isawaitable(result):
            try:
                loop = asyncio.get_running_loop()
            except RuntimeError:
                logger.warning(f"没有运行中的事件循环，丢弃生命周期通知: {record.key} -> {state.value}")
                if inspect.iscoroutine(result):
                    result.close()
                return
            task = loop.create_task(self._deliver(result, record, state))
            self._pending.add(task)
            task.add_done_callback(self._pending.discard)

    async def _deliver(self, awaitable, record: Any, state: LifecycleState) -> None:
        try:
            await awaitable
        except Exception as e:
            logger.error(f"连接器监管者处理失败 ({record.key} -> {state.value}): {e}", exc_info=True)

    async def drain(self) -> None:
        """等待所有已发出的异步通知完成"""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)
