"""
Integration Registry 错误类型

全部为可恢复的本地错误，由命令边界 (routes) 转换为 {"success": False, ...} 结果。
"""
from typing import Any, Optional


class RegistryError(Exception):
    """注册表错误基类"""
    code = "registry_error"

    def to_dict(self) -> dict:
        return {"code": self.code, "error": str(self)}


class ValidationError(RegistryError):
    """记录校验失败，field 指出出错字段"""
    code = "validation_error"

    def __init__(self, field: str, reason: str):
        super().__init__(f"{field}: {reason}")
        self.field = field
        self.reason = reason

    def to_dict(self) -> dict:
        return {**super().to_dict(), "field": self.field}


class NotFound(RegistryError):
    """记录不存在"""
    code = "not_found"

    def __init__(self, key: str):
        super().__init__(f"'{key}' 不存在")
        self.key = key


class DuplicateKey(RegistryError):
    """主键已存在"""
    code = "duplicate_key"

    def __init__(self, key: str):
        super().__init__(f"'{key}' 已存在")
        self.key = key


class PersistenceError(RegistryError):
    """
    持久化失败

    内存中的变更已经生效，record 为变更后的记录 (删除时为 None)，
    调用方需要知道持久性不确定。
    """
    code = "persistence_error"

    def __init__(self, reason: str, record: Optional[Any] = None):
        super().__init__(f"持久化失败: {reason}")
        self.reason = reason
        self.record = record
