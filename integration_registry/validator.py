"""
记录校验器

声明式规则表，按顺序检查，第一个失败的规则决定报告的字段。
校验是纯函数: 不修改记录，不做 I/O。
"""
from dataclasses import dataclass
from typing import Any, Callable, Optional, Sequence

from .errors import ValidationError
from .records import BOT_CHANNEL_TYPES, MCP_TRANSPORTS, BotChannelRecord, MCPClientRecord


# ============== 规则定义 ==============

@dataclass(frozen=True)
class FieldRule:
    """
    单字段规则

    Args:
        field: 字段名
        check: 接收字段值，返回是否通过
        reason: 失败原因
        when: 可选前置条件，接收整条记录，返回 False 时跳过该规则
    """
    field: str
    check: Callable[[Any], bool]
    reason: str
    when: Optional[Callable[[Any], bool]] = None


def _non_empty(value: Any) -> bool:
    return isinstance(value, str) and bool(value.strip())


def _is_str(value: Any) -> bool:
    return isinstance(value, str)


def _is_bool(value: Any) -> bool:
    return isinstance(value, bool)


def _str_mapping(value: Any) -> bool:
    return isinstance(value, dict) and all(
        isinstance(k, str) and bool(k.strip()) and isinstance(v, str) for k, v in value.items()
    )


def _str_list(value: Any) -> bool:
    return isinstance(value, list) and all(isinstance(v, str) for v in value)


def _is_stdio(record: Any) -> bool:
    return record.transport == "stdio"


def _is_sse(record: Any) -> bool:
    return record.transport == "sse"


BOT_CHANNEL_RULES: Sequence[FieldRule] = (
    FieldRule("name", _non_empty, "名称不能为空"),
    FieldRule("type", lambda v: v in BOT_CHANNEL_TYPES, f"类型必须是 {', '.join(BOT_CHANNEL_TYPES)} 之一"),
    FieldRule("enabled", _is_bool, "enabled 必须是布尔值"),
    FieldRule("bot_prefix", _is_str, "前缀必须是字符串"),
    FieldRule("config", _str_mapping, "config 必须是非空字符串键到字符串的映射"),
)

MCP_CLIENT_RULES: Sequence[FieldRule] = (
    FieldRule("name", _non_empty, "名称不能为空"),
    FieldRule("transport", lambda v: v in MCP_TRANSPORTS, f"传输方式必须是 {', '.join(MCP_TRANSPORTS)} 之一"),
    FieldRule("enabled", _is_bool, "enabled 必须是布尔值"),
    FieldRule("command", _non_empty, "stdio 传输需要 command", when=_is_stdio),
    FieldRule("args", _str_list, "args 必须是字符串列表"),
    FieldRule("url", _non_empty, "sse 传输需要 url", when=_is_sse),
    FieldRule("env", _str_mapping, "env 必须是非空字符串键到字符串的映射"),
)


# ============== 校验函数 ==============

def check_rules(record: Any, rules: Sequence[FieldRule]) -> Optional[ValidationError]:
    """按规则表检查记录，返回第一个错误 (全部通过返回 None)"""
    for rule in rules:
        if rule.when is not None and not rule.when(record):
            continue
        if not rule.check(getattr(record, rule.field, None)):
            return ValidationError(rule.field, rule.reason)
    return None


def validate_bot_channel(record: BotChannelRecord) -> None:
    """校验 Bot 通道记录，失败抛出 ValidationError"""
    error = check_rules(record, BOT_CHANNEL_RULES)
    if error:
        raise error


def validate_mcp_client(record: MCPClientRecord) -> None:
    """校验 MCP 客户端记录，失败抛出 ValidationError"""
    error = check_rules(record, MCP_CLIENT_RULES)
    if error:
        raise error
