"""
记录校验器单元测试
"""
import pytest

from integration_registry.errors import ValidationError
from integration_registry.records import BotChannelRecord, MCPClientRecord
from integration_registry.validator import (
    BOT_CHANNEL_RULES,
    check_rules,
    validate_bot_channel,
    validate_mcp_client,
)


class TestBotChannelValidation:
    """Bot 通道校验"""

    def test_valid_channel(self):
        record = BotChannelRecord(name="Ops Bot", type="feishu", config={"appId": "A1"})
        validate_bot_channel(record)

    def test_empty_name(self):
        with pytest.raises(ValidationError) as exc:
            validate_bot_channel(BotChannelRecord(name="   ", type="feishu"))
        assert exc.value.field == "name"

    def test_unknown_type(self):
        with pytest.raises(ValidationError) as exc:
            validate_bot_channel(BotChannelRecord(name="Bot", type="slack"))
        assert exc.value.field == "type"

    def test_config_values_must_be_strings(self):
        with pytest.raises(ValidationError) as exc:
            validate_bot_channel(BotChannelRecord(name="Bot", type="telegram", config={"appId": 123}))
        assert exc.value.field == "config"

    def test_config_keys_must_not_be_blank(self):
        with pytest.raises(ValidationError) as exc:
            validate_bot_channel(BotChannelRecord(name="Bot", type="telegram", config={" ": "x"}))
        assert exc.value.field == "config"

    def test_unknown_config_keys_allowed(self):
        """未识别的配置键是允许的 (向前兼容)"""
        validate_bot_channel(BotChannelRecord(name="Bot", type="discord", config={"futureKey": "v"}))

    def test_first_failing_rule_wins(self):
        """多个字段同时出错时，报告规则表中第一个"""
        error = check_rules(BotChannelRecord(name="", type="nope"), BOT_CHANNEL_RULES)
        assert error.field == "name"

    def test_validation_is_pure(self):
        record = BotChannelRecord(name="Bot", type="wecom", config={"appId": "x"})
        validate_bot_channel(record)
        assert record == BotChannelRecord(name="Bot", type="wecom", config={"appId": "x"})


class TestMCPClientValidation:
    """MCP 客户端校验"""

    def test_stdio_requires_command(self):
        with pytest.raises(ValidationError) as exc:
            validate_mcp_client(MCPClientRecord(name="tavily", transport="stdio", command=""))
        assert exc.value.field == "command"

    def test_stdio_missing_command(self):
        with pytest.raises(ValidationError) as exc:
            validate_mcp_client(MCPClientRecord(name="tavily", transport="stdio"))
        assert exc.value.field == "command"

    def test_sse_with_url_ignores_empty_command(self):
        validate_mcp_client(MCPClientRecord(name="tavily", transport="sse", command="", url="https://mcp.example.com/sse"))

    def test_sse_requires_url(self):
        with pytest.raises(ValidationError) as exc:
            validate_mcp_client(MCPClientRecord(name="remote", transport="sse", command="npx"))
        assert exc.value.field == "url"

    def test_unknown_transport(self):
        with pytest.raises(ValidationError) as exc:
            validate_mcp_client(MCPClientRecord(name="x", transport="http", url="http://x"))
        assert exc.value.field == "transport"

    def test_empty_name(self):
        with pytest.raises(ValidationError) as exc:
            validate_mcp_client(MCPClientRecord(name="", transport="stdio", command="npx"))
        assert exc.value.field == "name"

    def test_args_must_be_strings(self):
        with pytest.raises(ValidationError) as exc:
            validate_mcp_client(MCPClientRecord(name="x", transport="stdio", command="npx", args=["-y", 1]))
        assert exc.value.field == "args"

    def test_error_to_dict(self):
        error = ValidationError("command", "stdio 传输需要 command")
        data = error.to_dict()
        assert data["code"] == "validation_error"
        assert data["field"] == "command"
