"""
路由公共工具

- get_registry: FastAPI 依赖，取出 lifespan 中创建的注册表实例
- error_result: 把注册表错误转换为 {"success": False, ...} 结果
"""
from typing import Any

from fastapi import Request

from ..errors import RegistryError
from ..registry import IntegrationRegistry


def get_registry(request: Request) -> IntegrationRegistry:
    """获取当前应用持有的注册表"""
    return request.app.state.registry


def error_result(error: RegistryError, **extra: Any) -> dict:
    """
    注册表错误 -> 结果字典

    Returns:
        {"success": False, "code": ..., "error": ..., "field"?: ..., **extra}
    """
    return {"success": False, **error.to_dict(), **extra}
