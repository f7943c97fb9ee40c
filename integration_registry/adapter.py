"""
边界适配器

在规范记录与外部形状之间转换:
- storage: 持久化形状 (snake_case，字段与记录一致)
- view: 展示层形状 (camelCase，与前端 BotChannel / MCPClient 接口一致)
- form: 表单形状 (把已识别的平台配置键展开为具名字段，其余放在 extra 中)
- pairs: 键值对列表，用于编辑任意平台配置

以及把请求体规范化为草稿 / 补丁。所有 to_X / from_X 满足往返律:
from_X(to_X(record)) == record
"""
import logging
import shlex
from typing import Any, Callable, Iterable, Optional

from .errors import ValidationError
from .records import (
    DEFAULT_BOT_PREFIX,
    BotChannelRecord,
    MCPClientRecord,
    get_platform,
    new_bot_channel,
)

logger = logging.getLogger(__name__)

# 展示层字段名 -> 记录字段名
BOT_CHANNEL_ALIASES = {
    "botPrefix": "bot_prefix",
}


# ============== 键值对 ==============

def config_to_pairs(config: dict[str, str]) -> list[dict]:
    """映射 -> [{"key": ..., "value": ...}] (保持顺序)"""
    return [{"key": key, "value": value} for key, value in config.items()]


def pairs_to_config(pairs: Iterable[dict]) -> dict[str, str]:
    """键值对列表 -> 映射，键为空的行 (表单里的空行) 被忽略"""
    config: dict[str, str] = {}
    for pair in pairs:
        if not isinstance(pair, dict):
            raise ValidationError("config", "键值对必须是 {key, value} 对象")
        key = pair.get("key")
        if not isinstance(key, str) or not key.strip():
            continue
        config[key] = _coerce_str(pair.get("value"), "config")
    return config


# ============== 持久化形状 ==============

def bot_channel_to_storage(record: BotChannelRecord) -> dict:
    return {
        "id": record.id,
        "name": record.name,
        "type": record.type,
        "enabled": record.enabled,
        "bot_prefix": record.bot_prefix,
        "config": dict(record.config),
    }


def bot_channel_from_storage(data: dict) -> BotChannelRecord:
    return BotChannelRecord(
        id=data.get("id", ""),
        name=data.get("name", ""),
        type=data.get("type", ""),
        enabled=data.get("enabled", True),
        bot_prefix=data.get("bot_prefix", DEFAULT_BOT_PREFIX),
        config=dict(data.get("config") or {}),
    )


def mcp_client_to_storage(record: MCPClientRecord) -> dict:
    return {
        "name": record.name,
        "transport": record.transport,
        "command": record.command,
        "args": list(record.args),
        "url": record.url,
        "env": dict(record.env),
        "enabled": record.enabled,
    }


def mcp_client_from_storage(data: dict) -> MCPClientRecord:
    return MCPClientRecord(
        name=data.get("name", ""),
        transport=data.get("transport", ""),
        command=data.get("command"),
        args=list(data.get("args") or []),
        url=data.get("url"),
        env=dict(data.get("env") or {}),
        enabled=data.get("enabled", True),
    )


def decode_items(items: Any, decode: Callable[[Any], Any], label: str) -> list:
    """
    逐条解码持久化记录

    单条记录形状错误时记录警告并跳过，不影响其他记录；
    整个集合不是列表时视为存储损坏，抛出 ValueError。
    """
    if not isinstance(items, list):
        raise ValueError(f"{label} 必须是列表")

    records = []
    for index, item in enumerate(items):
        try:
            records.append(decode(item))
        except (AttributeError, TypeError, ValueError) as e:
            logger.warning(f"[{label}] 跳过无法解析的第 {index} 条记录: {e}")
    return records


# ============== 展示层形状 ==============

def bot_channel_to_view(record: BotChannelRecord) -> dict:
    """记录 -> 前端 BotChannel 形状"""
    return {
        "id": record.id,
        "name": record.name,
        "type": record.type,
        "enabled": record.enabled,
        "botPrefix": record.bot_prefix,
        "config": dict(record.config),
    }


def bot_channel_from_view(data: dict) -> BotChannelRecord:
    return BotChannelRecord(
        id=data.get("id", ""),
        name=data.get("name", ""),
        type=data.get("type", ""),
        enabled=data.get("enabled", True),
        bot_prefix=data.get("botPrefix", DEFAULT_BOT_PREFIX),
        config=dict(data.get("config") or {}),
    )


# MCP 客户端的展示层形状与持久化形状一致
mcp_client_to_view = mcp_client_to_storage
mcp_client_from_view = mcp_client_from_storage


# ============== 表单形状 ==============

def bot_channel_to_form(record: BotChannelRecord) -> dict:
    """
    记录 -> 表单

    平台已识别的配置键 (如 appId / appSecret) 展开为顶层字段，
    未识别的键以键值对形式放在 extra 中。
    """
    platform = get_platform(record.type)
    known = platform.config_keys if platform else ()
    form = {
        "id": record.id,
        "name": record.name,
        "type": record.type,
        "enabled": record.enabled,
        "botPrefix": record.bot_prefix,
    }
    extra = {}
    for key, value in record.config.items():
        if key in known:
            form[key] = value
        else:
            extra[key] = value
    form["extra"] = config_to_pairs(extra)
    return form


def bot_channel_from_form(form: dict) -> BotChannelRecord:
    platform = get_platform(form.get("type", ""))
    known = platform.config_keys if platform else ()
    config = {key: form[key] for key in known if key in form}
    config.update(pairs_to_config(form.get("extra") or []))
    return BotChannelRecord(
        id=form.get("id", ""),
        name=form.get("name", ""),
        type=form.get("type", ""),
        enabled=form.get("enabled", True),
        bot_prefix=form.get("botPrefix", DEFAULT_BOT_PREFIX),
        config=config,
    )


# ============== 请求体规范化 ==============

def _require_mapping(payload: Any) -> dict:
    if not isinstance(payload, dict):
        raise ValidationError("body", "请求体必须是 JSON 对象")
    return payload


def _coerce_str(value: Any, field: str) -> str:
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float)):
        return str(value)
    raise ValidationError(field, "值必须是字符串")


def _normalize_mapping(value: Any, field: str, allow_delete: bool = False) -> dict:
    """接受映射或键值对列表，值统一转为字符串"""
    if value is None:
        return {}
    if isinstance(value, list):
        return pairs_to_config(value)
    if not isinstance(value, dict):
        raise ValidationError(field, "必须是映射或键值对列表")
    mapping = {}
    for key, item in value.items():
        if item is None and allow_delete:
            mapping[key] = None
        else:
            mapping[key] = _coerce_str(item, field)
    return mapping


def _normalize_args(value: Any) -> list[str]:
    """args 可以是列表，也可以是一整行参数字符串"""
    if value is None:
        return []
    if isinstance(value, str):
        try:
            return shlex.split(value)
        except ValueError as e:
            raise ValidationError("args", f"无法解析参数: {e}")
    if isinstance(value, list):
        return [_coerce_str(item, "args") for item in value]
    raise ValidationError("args", "必须是字符串列表")


def _blank_to_none(value: Any) -> Optional[Any]:
    if isinstance(value, str) and not value.strip():
        return None
    return value


def bot_channel_draft(payload: Any) -> BotChannelRecord:
    """
    创建请求体 -> Bot 通道草稿

    同时接受 camelCase (botPrefix) 和 snake_case (bot_prefix)，
    未提供的字段按平台默认值填充，请求中的 id 被忽略。
    """
    data = _require_mapping(payload)
    bot_type = data.get("type")
    if not bot_type:
        raise ValidationError("type", "类型不能为空")

    overrides = {
        "name": data.get("name"),
        "enabled": data.get("enabled"),
        "bot_prefix": data.get("botPrefix", data.get("bot_prefix")),
    }
    if "config" in data:
        overrides["config"] = _normalize_mapping(data["config"], "config")
    return new_bot_channel(bot_type, **overrides)


def bot_channel_patch(payload: Any) -> dict:
    """
    更新请求体 -> 补丁字典

    只包含请求中出现的字段；config 中值为 None 的键表示删除。
    """
    data = _require_mapping(payload)
    patch = {}
    for key, value in data.items():
        field = BOT_CHANNEL_ALIASES.get(key, key)
        if field == "config":
            value = _normalize_mapping(value, "config", allow_delete=True)
        patch[field] = value
    return patch


def mcp_client_draft(payload: Any) -> MCPClientRecord:
    """
    创建 / 替换请求体 -> MCP 客户端记录

    transport 缺省为 stdio；args 可为列表或参数字符串；空字符串的 command / url 视为未提供。
    """
    data = _require_mapping(payload)
    name = data.get("name")
    return MCPClientRecord(
        name=name.strip() if isinstance(name, str) else name,
        transport=data.get("transport") or "stdio",
        command=_blank_to_none(data.get("command")),
        args=_normalize_args(data.get("args")),
        url=_blank_to_none(data.get("url")),
        env=_normalize_mapping(data.get("env"), "env"),
        enabled=True if data.get("enabled") is None else data["enabled"],
    )
