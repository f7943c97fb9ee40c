"""
MCP 客户端管理 API 路由

/admin/mcp-clients/* 相关接口，以及 /admin/agent-tools/mcp 工具描述
"""
import logging

from fastapi import APIRouter, Depends, Request

from ..adapter import mcp_client_to_view
from ..errors import PersistenceError, RegistryError
from ..registry import IntegrationRegistry
from .common import error_result, get_registry

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin/mcp-clients", tags=["mcp-clients"])
agent_tools_router = APIRouter(prefix="/admin/agent-tools", tags=["agent-tools"])


def _view_or_none(record):
    return mcp_client_to_view(record) if record is not None else None


@router.get("")
async def list_mcp_clients(registry: IntegrationRegistry = Depends(get_registry)) -> dict:
    """获取所有 MCP 客户端 (插入顺序)"""
    clients = [mcp_client_to_view(c) for c in registry.list_mcp_clients()]
    return {
        "success": True,
        "mcp_clients": clients,
        "total": len(clients)
    }


@agent_tools_router.get("/mcp")
async def get_tool_descriptions(registry: IntegrationRegistry = Depends(get_registry)) -> dict:
    """已启用 MCP 客户端的工具描述 (供 Agent 注入系统提示)"""
    return {
        "success": True,
        "description": registry.enabled_mcp_tool_descriptions()
    }


@router.get("/{name}")
async def get_mcp_client(name: str, registry: IntegrationRegistry = Depends(get_registry)) -> dict:
    """获取单个 MCP 客户端"""
    try:
        client = registry.get_mcp_client(name)
    except RegistryError as e:
        return error_result(e)
    return {"success": True, "mcp_client": mcp_client_to_view(client)}


@router.post("")
async def create_mcp_client(
    request: Request,
    registry: IntegrationRegistry = Depends(get_registry),
) -> dict:
    """
    创建 MCP 客户端

    Body:
        name: str (必填，唯一)
        transport: str - stdio (默认) / sse
        command: str - stdio 必填
        args: list[str] | str
        url: str - sse 必填
        env: dict
        enabled: bool - 默认 true
    """
    try:
        data = await request.json()
        client = await registry.create_mcp_client(data)
        return {"success": True, "mcp_client": mcp_client_to_view(client)}
    except PersistenceError as e:
        return error_result(e, mcp_client=_view_or_none(e.record))
    except RegistryError as e:
        return error_result(e)
    except Exception as e:
        logger.error(f"创建 MCP 客户端失败: {e}", exc_info=True)
        return {"success": False, "error": str(e)}


@router.put("/{name}")
async def update_mcp_client(
    name: str,
    request: Request,
    registry: IntegrationRegistry = Depends(get_registry),
) -> dict:
    """整体替换 MCP 客户端配置 (name 不可修改)"""
    try:
        data = await request.json()
        client = await registry.update_mcp_client(name, data)
        return {"success": True, "mcp_client": mcp_client_to_view(client)}
    except PersistenceError as e:
        return error_result(e, mcp_client=_view_or_none(e.record))
    except RegistryError as e:
        return error_result(e)
    except Exception as e:
        logger.error(f"更新 MCP 客户端失败: {e}", exc_info=True)
        return {"success": False, "error": str(e)}


@router.post("/{name}/toggle")
async def toggle_mcp_client(name: str, registry: IntegrationRegistry = Depends(get_registry)) -> dict:
    """切换 MCP 客户端的启用状态"""
    try:
        client = await registry.toggle_mcp_client(name)
        return {"success": True, "mcp_client": mcp_client_to_view(client)}
    except PersistenceError as e:
        return error_result(e, mcp_client=_view_or_none(e.record))
    except RegistryError as e:
        return error_result(e)


@router.delete("/{name}")
async def delete_mcp_client(name: str, registry: IntegrationRegistry = Depends(get_registry)) -> dict:
    """删除 MCP 客户端"""
    try:
        await registry.delete_mcp_client(name)
        return {"success": True}
    except RegistryError as e:
        return error_result(e)
