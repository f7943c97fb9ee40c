"""
通用记录存储 (Registry Store)

一个带校验钩子的键控记录集合，Bot 通道和 MCP 客户端各实例化一份:
- Bot 通道: 创建时生成 id 作为键
- MCP 客户端: 调用方提供的 name 即为键

所有操作都是纯内存操作，内部用锁保证任何读者都看不到半应用的变更。
读取返回深拷贝，调用方拿到的永远不是内部存储的引用。
"""
import asyncio
import copy
import inspect
import logging
import threading
from dataclasses import dataclass, fields
from typing import Any, Callable, Generic, Iterable, List, Optional, TypeVar

from .errors import DuplicateKey, NotFound, ValidationError

logger = logging.getLogger(__name__)

R = TypeVar("R")

ACTION_CREATED = "created"
ACTION_UPDATED = "updated"
ACTION_DELETED = "deleted"


# ============== 变更事件 ==============

@dataclass(frozen=True)
class ChangeEvent:
    """
    变更通知

    record 为变更后的快照 (删除时为被删除的记录)，previous 为变更前的快照。
    订阅者可能收到重复通知，应以当前状态为准重新读取。
    """
    store: str
    action: str
    key: str
    record: Any
    previous: Any = None


Listener = Callable[[ChangeEvent], Any]


# ============== 补丁合并 ==============

def merge_patch(current: R, patch: dict) -> R:
    """
    将 patch 合并到记录副本上

    - 顶层字段浅合并: patch 中的键覆盖，未出现的键保留
    - 嵌套映射 (config / env) 浅合并: patch 中的键覆盖，值为 None 的键被删除
    - 不可变字段 (immutable_fields) 只允许传入相同的值

    Returns:
        合并后的新记录 (current 不会被修改)
    """
    known = {f.name for f in fields(current)}
    for key in patch:
        if key not in known:
            raise ValidationError(key, "未知字段")

    for key in getattr(current, "immutable_fields", ()):
        if key in patch and patch[key] != getattr(current, key):
            raise ValidationError(key, "创建后不可修改")

    merged = copy.deepcopy(current)
    mapping_field = getattr(current, "mapping_field", None)

    for key, value in patch.items():
        if key == mapping_field and isinstance(value, dict):
            mapping = getattr(merged, key)
            for k, v in value.items():
                if v is None:
                    mapping.pop(k, None)
                else:
                    mapping[k] = v
        else:
            setattr(merged, key, copy.deepcopy(value))

    return merged


# ============== 通用存储 ==============

class RecordStore(Generic[R]):
    """
    键控记录存储

    Args:
        name: 存储名称 (bot_channels / mcp_clients)，用于日志和事件
        validate: 校验函数，失败抛出 ValidationError
        key_of: 从记录取键
        assign_key: 可选，创建时为草稿分配键 (返回带键的新记录)
    """

    def __init__(
        self,
        name: str,
        validate: Callable[[R], None],
        key_of: Callable[[R], str] = lambda record: record.key,
        assign_key: Optional[Callable[[R], R]] = None,
    ):
        self.name = name
        self._validate = validate
        self._key_of = key_of
        self._assign_key = assign_key
        self._records: dict[str, R] = {}
        self._lock = threading.RLock()
        self._listeners: list[Listener] = []
        self._before_delete: list[Callable[[R], Any]] = []
        self._pending: set[asyncio.Task] = set()

    # ---------- 读取 ----------

    def list(self) -> List[R]:
        """按插入顺序返回所有记录的快照"""
        with self._lock:
            return [copy.deepcopy(record) for record in self._records.values()]

    def get(self, key: str) -> R:
        """获取单条记录的快照，不存在抛出 NotFound"""
        with self._lock:
            if key not in self._records:
                raise NotFound(key)
            return copy.deepcopy(self._records[key])

    def find(self, predicate: Callable[[R], bool]) -> List[R]:
        """返回满足条件的记录快照"""
        with self._lock:
            return [copy.deepcopy(r) for r in self._records.values() if predicate(r)]

    def __contains__(self, key: str) -> bool:
        with self._lock:
            return key in self._records

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)

    # ---------- 变更 ----------

    def create(self, draft: R) -> R:
        """
        创建记录

        Raises:
            ValidationError: 草稿不合法
            DuplicateKey: 键已存在
        """
        record = copy.deepcopy(draft)
        if self._assign_key is not None:
            record = self._assign_key(record)
        self._validate(record)
        key = self._key_of(record)

        with self._lock:
            if key in self._records:
                raise DuplicateKey(key)
            self._records[key] = record
            snapshot = copy.deepcopy(record)

        logger.info(f"[{self.name}] 创建记录: {key}")
        self._notify(ChangeEvent(self.name, ACTION_CREATED, key, snapshot))
        return copy.deepcopy(snapshot)

    def update(self, key: str, patch: dict) -> R:
        """
        部分更新记录，合并后重新校验，失败时存储的记录保持不变

        Raises:
            NotFound: 记录不存在
            ValidationError: 合并结果不合法
        """
        with self._lock:
            if key not in self._records:
                raise NotFound(key)
            previous = self._records[key]
            merged = merge_patch(previous, patch)
            self._validate(merged)
            self._records[key] = merged
            snapshot = copy.deepcopy(merged)
            previous = copy.deepcopy(previous)

        logger.info(f"[{self.name}] 更新记录: {key} ({', '.join(sorted(patch)) or '无字段'})")
        self._notify(ChangeEvent(self.name, ACTION_UPDATED, key, snapshot, previous))
        return copy.deepcopy(snapshot)

    def replace(self, key: str, record: R) -> R:
        """
        整体替换记录 (键必须保持不变)

        Raises:
            NotFound: 记录不存在
            ValidationError: 新记录不合法或试图修改键
        """
        record = copy.deepcopy(record)
        self._validate(record)
        if self._key_of(record) != key:
            raise ValidationError("name", "不能通过替换修改主键")

        with self._lock:
            if key not in self._records:
                raise NotFound(key)
            previous = copy.deepcopy(self._records[key])
            self._records[key] = record
            snapshot = copy.deepcopy(record)

        logger.info(f"[{self.name}] 替换记录: {key}")
        self._notify(ChangeEvent(self.name, ACTION_UPDATED, key, snapshot, previous))
        return copy.deepcopy(snapshot)

    def toggle(self, key: str) -> R:
        """翻转 enabled，等价于 update(key, {"enabled": not current.enabled})"""
        with self._lock:
            if key not in self._records:
                raise NotFound(key)
            return self.update(key, {"enabled": not self._records[key].enabled})

    def delete(self, key: str) -> R:
        """
        删除记录 (不可恢复)

        先同步调用 before_delete 钩子 (拆除意图)，再从存储中移除。

        Raises:
            NotFound: 记录不存在，集合保持不变
        """
        with self._lock:
            if key not in self._records:
                raise NotFound(key)
            snapshot = copy.deepcopy(self._records[key])
            for hook in self._before_delete:
                hook(copy.deepcopy(snapshot))
            del self._records[key]

        logger.info(f"[{self.name}] 删除记录: {key}")
        self._notify(ChangeEvent(self.name, ACTION_DELETED, key, snapshot, snapshot))
        return snapshot

    def load(self, records: Iterable[R]) -> int:
        """
        启动时批量载入 (替换现有内容，不发通知)

        不合法或重复的记录会被跳过并记录警告。

        Returns:
            载入的记录数
        """
        loaded: dict[str, R] = {}
        for record in records:
            try:
                self._validate(record)
            except ValidationError as e:
                logger.warning(f"[{self.name}] 跳过不合法的记录: {e}")
                continue
            key = self._key_of(record)
            if key in loaded:
                logger.warning(f"[{self.name}] 跳过重复的记录: {key}")
                continue
            loaded[key] = copy.deepcopy(record)

        with self._lock:
            self._records = loaded
        return len(loaded)

    # ---------- 通知 ----------

    def subscribe(self, listener: Listener) -> None:
        """订阅变更通知"""
        self._listeners.append(listener)

    def unsubscribe(self, listener: Listener) -> None:
        """取消订阅"""
        if listener in self._listeners:
            self._listeners.remove(listener)

    def on_before_delete(self, hook: Callable[[R], Any]) -> None:
        """注册删除前钩子 (在记录移除之前同步调用)"""
        self._before_delete.append(hook)

    def _notify(self, event: ChangeEvent) -> None:
        """
        派发变更通知

        同步订阅者直接调用；返回协程的订阅者在当前事件循环中以后台任务执行。
        订阅者的异常只记录日志，不影响变更本身。
        """
        for listener in list(self._listeners):
            try:
                result = listener(event)
            except Exception as e:
                logger.error(f"[{self.name}] 变更通知处理失败: {e}", exc_info=True)
                continue
            if inspect.isawaitable(result):
                self._schedule(result)

    def _schedule(self, awaitable) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.warning(f"[{self.name}] 没有运行中的事件循环，丢弃异步通知")
            if inspect.iscoroutine(awaitable):
                awaitable.close()
            return

        task = loop.create_task(self._run_listener(awaitable))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _run_listener(self, awaitable) -> None:
        try:
            await awaitable
        except Exception as e:
            logger.error(f"[{self.name}] 异步变更通知处理失败: {e}", exc_info=True)

    async def drain(self) -> None:
        """等待所有后台通知任务完成 (关闭时 / 测试用)"""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)
