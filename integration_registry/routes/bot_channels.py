"""
Bot 通道管理 API 路由

/admin/bot-channels/* 相关接口
"""
import logging

from fastapi import APIRouter, Depends, Request

from ..adapter import bot_channel_to_form, bot_channel_to_view
from ..errors import PersistenceError, RegistryError
from ..records import BOT_PLATFORMS
from ..registry import IntegrationRegistry
from .common import error_result, get_registry

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin/bot-channels", tags=["bot-channels"])


def _view_or_none(record):
    return bot_channel_to_view(record) if record is not None else None


@router.get("")
async def list_bot_channels(registry: IntegrationRegistry = Depends(get_registry)) -> dict:
    """获取所有 Bot 通道 (插入顺序)"""
    channels = [bot_channel_to_view(c) for c in registry.list_bot_channels()]
    return {
        "success": True,
        "bot_channels": channels,
        "total": len(channels)
    }


@router.get("/platforms")
async def list_platforms() -> dict:
    """获取支持的平台及其可识别的配置键"""
    return {
        "success": True,
        "platforms": [
            {
                "id": p.id,
                "name": p.label,
                "description": p.description,
                "config_keys": list(p.config_keys),
            }
            for p in BOT_PLATFORMS.values()
        ]
    }


@router.get("/{channel_id}")
async def get_bot_channel(
    channel_id: str,
    view: str = "default",
    registry: IntegrationRegistry = Depends(get_registry),
) -> dict:
    """
    获取单个 Bot 通道

    Query:
        view: default (与列表相同的形状) / form (平台配置展开为表单字段)
    """
    try:
        channel = registry.get_bot_channel(channel_id)
    except RegistryError as e:
        return error_result(e)

    data = bot_channel_to_form(channel) if view == "form" else bot_channel_to_view(channel)
    return {"success": True, "bot_channel": data}


@router.post("")
async def create_bot_channel(
    request: Request,
    registry: IntegrationRegistry = Depends(get_registry),
) -> dict:
    """
    创建 Bot 通道

    Body:
        type: str (必填) - console / feishu / dingtalk / wecom / telegram / discord
        name: str - 默认为平台名称
        botPrefix: str - 默认 @bot
        enabled: bool - 默认 true
        config: dict | list[{key, value}] - appId, appSecret 等
    """
    try:
        data = await request.json()
        channel = await registry.create_bot_channel(data)
        return {"success": True, "bot_channel": bot_channel_to_view(channel)}
    except PersistenceError as e:
        return error_result(e, bot_channel=_view_or_none(e.record))
    except RegistryError as e:
        return error_result(e)
    except Exception as e:
        logger.error(f"创建 Bot 通道失败: {e}", exc_info=True)
        return {"success": False, "error": str(e)}


@router.put("/{channel_id}")
async def update_bot_channel(
    channel_id: str,
    request: Request,
    registry: IntegrationRegistry = Depends(get_registry),
) -> dict:
    """部分更新 Bot 通道 (config 按键合并，值为 null 的键被删除)"""
    try:
        data = await request.json()
        channel = await registry.update_bot_channel(channel_id, data)
        return {"success": True, "bot_channel": bot_channel_to_view(channel)}
    except PersistenceError as e:
        return error_result(e, bot_channel=_view_or_none(e.record))
    except RegistryError as e:
        return error_result(e)
    except Exception as e:
        logger.error(f"更新 Bot 通道失败: {e}", exc_info=True)
        return {"success": False, "error": str(e)}


@router.post("/{channel_id}/toggle")
async def toggle_bot_channel(
    channel_id: str,
    registry: IntegrationRegistry = Depends(get_registry),
) -> dict:
    """切换 Bot 通道的启用状态"""
    try:
        channel = await registry.toggle_bot_channel(channel_id)
        return {"success": True, "bot_channel": bot_channel_to_view(channel)}
    except PersistenceError as e:
        return error_result(e, bot_channel=_view_or_none(e.record))
    except RegistryError as e:
        return error_result(e)


@router.delete("/{channel_id}")
async def delete_bot_channel(
    channel_id: str,
    registry: IntegrationRegistry = Depends(get_registry),
) -> dict:
    """删除 Bot 通道"""
    try:
        await registry.delete_bot_channel(channel_id)
        return {"success": True}
    except RegistryError as e:
        return error_result(e)
