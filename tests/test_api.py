"""
管理 API 测试

测试 /admin/bot-channels 和 /admin/mcp-clients 的 CRUD 接口
"""
import pytest
import pytest_asyncio

from httpx import AsyncClient, ASGITransport

from integration_registry.app import create_app
from integration_registry.config import Settings


# ============== 测试 Fixtures ==============

@pytest_asyncio.fixture
async def initialized_app(registry):
    """创建已挂载注册表的 FastAPI 应用 (ASGITransport 不触发 lifespan)"""
    app = create_app(Settings(storage="json"))
    app.state.registry = registry
    yield app


@pytest_asyncio.fixture
async def test_client(initialized_app):
    """创建测试客户端"""
    transport = ASGITransport(app=initialized_app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


@pytest_asyncio.fixture
async def sample_channel(registry):
    """创建示例 Bot 通道"""
    return await registry.create_bot_channel(
        {"name": "Ops Bot", "type": "feishu", "config": {"appId": "A1", "customHeader": "x"}}
    )


# ============== 基础路由 ==============

class TestBasicRoutes:

    @pytest.mark.asyncio
    async def test_root(self, test_client):
        response = await test_client.get("/")
        assert response.status_code == 200
        assert response.json()["service"] == "Integration Registry"

    @pytest.mark.asyncio
    async def test_health(self, test_client, sample_channel):
        data = (await test_client.get("/health")).json()
        assert data["status"] == "healthy"
        assert data["bot_channels_count"] == 1
        assert data["mcp_clients_count"] == 0

    @pytest.mark.asyncio
    async def test_health_before_startup(self):
        app = create_app(Settings(storage="json"))
        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
            data = (await client.get("/health")).json()
        assert data["status"] == "starting"


# ============== Bot 通道 API ==============

class TestBotChannelAPI:

    @pytest.mark.asyncio
    async def test_list_empty(self, test_client):
        data = (await test_client.get("/admin/bot-channels")).json()
        assert data == {"success": True, "bot_channels": [], "total": 0}

    @pytest.mark.asyncio
    async def test_platforms(self, test_client):
        data = (await test_client.get("/admin/bot-channels/platforms")).json()
        ids = [p["id"] for p in data["platforms"]]
        assert ids == ["console", "feishu", "dingtalk", "wecom", "telegram", "discord"]
        assert "botToken" in data["platforms"][4]["config_keys"]

    @pytest.mark.asyncio
    async def test_create_and_list(self, test_client):
        response = await test_client.post("/admin/bot-channels", json={
            "name": "Ops Bot",
            "type": "feishu",
            "botPrefix": "@bot",
            "config": {"appId": "A1"},
        })

        data = response.json()
        assert data["success"] is True
        channel = data["bot_channel"]
        assert channel["enabled"] is True
        assert channel["botPrefix"] == "@bot"
        assert channel["id"]

        listed = (await test_client.get("/admin/bot-channels")).json()
        assert listed["total"] == 1
        assert listed["bot_channels"][0] == channel

    @pytest.mark.asyncio
    async def test_create_invalid(self, test_client):
        data = (await test_client.post("/admin/bot-channels", json={"type": "slack"})).json()
        assert data["success"] is False
        assert data["code"] == "validation_error"
        assert data["field"] == "type"

    @pytest.mark.asyncio
    async def test_create_non_object_body(self, test_client):
        data = (await test_client.post("/admin/bot-channels", json=["feishu"])).json()
        assert data["success"] is False
        assert data["field"] == "body"

    @pytest.mark.asyncio
    async def test_get_form_view(self, test_client, sample_channel):
        data = (await test_client.get(f"/admin/bot-channels/{sample_channel.id}?view=form")).json()
        form = data["bot_channel"]
        assert form["appId"] == "A1"
        assert form["extra"] == [{"key": "customHeader", "value": "x"}]

    @pytest.mark.asyncio
    async def test_get_not_found(self, test_client):
        data = (await test_client.get("/admin/bot-channels/missing")).json()
        assert data["success"] is False
        assert data["code"] == "not_found"

    @pytest.mark.asyncio
    async def test_update(self, test_client, sample_channel):
        response = await test_client.put(
            f"/admin/bot-channels/{sample_channel.id}",
            json={"enabled": False, "config": {"customHeader": None, "appSecret": "S1"}},
        )

        channel = response.json()["bot_channel"]
        assert channel["enabled"] is False
        assert channel["name"] == "Ops Bot"
        assert channel["config"] == {"appId": "A1", "appSecret": "S1"}

    @pytest.mark.asyncio
    async def test_toggle(self, test_client, sample_channel):
        data = (await test_client.post(f"/admin/bot-channels/{sample_channel.id}/toggle")).json()
        assert data["bot_channel"]["enabled"] is False

    @pytest.mark.asyncio
    async def test_delete(self, test_client, sample_channel):
        data = (await test_client.delete(f"/admin/bot-channels/{sample_channel.id}")).json()
        assert data == {"success": True}

        data = (await test_client.delete(f"/admin/bot-channels/{sample_channel.id}")).json()
        assert data["code"] == "not_found"

    @pytest.mark.asyncio
    async def test_persistence_failure_returns_record(self, test_client, memory_persistence):
        memory_persistence.fail_on_save = True

        data = (await test_client.post("/admin/bot-channels", json={"type": "telegram"})).json()

        assert data["success"] is False
        assert data["code"] == "persistence_error"
        assert data["bot_channel"]["name"] == "Telegram"


# ============== MCP 客户端 API ==============

class TestMCPClientAPI:

    @pytest.mark.asyncio
    async def test_create_toggle_delete(self, test_client):
        response = await test_client.post("/admin/mcp-clients", json={
            "name": "tavily",
            "transport": "stdio",
            "command": "npx -y @tavily/mcp",
        })
        assert response.json()["mcp_client"]["enabled"] is True

        toggled = (await test_client.post("/admin/mcp-clients/tavily/toggle")).json()
        assert toggled["mcp_client"]["enabled"] is False

        toggled = (await test_client.post("/admin/mcp-clients/tavily/toggle")).json()
        assert toggled["mcp_client"]["enabled"] is True

        assert (await test_client.delete("/admin/mcp-clients/tavily")).json() == {"success": True}
        assert (await test_client.get("/admin/mcp-clients")).json()["total"] == 0

    @pytest.mark.asyncio
    async def test_duplicate(self, test_client):
        body = {"name": "tavily", "command": "npx"}
        await test_client.post("/admin/mcp-clients", json=body)
        data = (await test_client.post("/admin/mcp-clients", json=body)).json()
        assert data["code"] == "duplicate_key"

    @pytest.mark.asyncio
    async def test_stdio_without_command(self, test_client):
        data = (await test_client.post("/admin/mcp-clients", json={"name": "x", "transport": "stdio"})).json()
        assert data["success"] is False
        assert data["field"] == "command"

    @pytest.mark.asyncio
    async def test_replace(self, test_client):
        await test_client.post("/admin/mcp-clients", json={"name": "tavily", "command": "npx"})

        data = (await test_client.put("/admin/mcp-clients/tavily", json={
            "transport": "sse",
            "url": "https://mcp.tavily.com/sse",
        })).json()

        assert data["mcp_client"]["transport"] == "sse"
        assert data["mcp_client"]["command"] is None

        fetched = (await test_client.get("/admin/mcp-clients/tavily")).json()
        assert fetched["mcp_client"]["url"] == "https://mcp.tavily.com/sse"

    @pytest.mark.asyncio
    async def test_replace_not_found(self, test_client):
        data = (await test_client.put("/admin/mcp-clients/missing", json={"command": "npx"})).json()
        assert data["code"] == "not_found"

    @pytest.mark.asyncio
    async def test_tool_descriptions(self, test_client):
        empty = (await test_client.get("/admin/agent-tools/mcp")).json()
        assert empty["description"] == ""

        await test_client.post("/admin/mcp-clients", json={"name": "tavily", "command": "npx"})
        data = (await test_client.get("/admin/agent-tools/mcp")).json()
        assert "**tavily**" in data["description"]

    @pytest.mark.asyncio
    async def test_client_named_tools_can_be_fetched(self, test_client):
        await test_client.post("/admin/mcp-clients", json={"name": "tools", "command": "npx"})

        data = (await test_client.get("/admin/mcp-clients/tools")).json()

        assert data["success"] is True
        assert data["mcp_client"]["name"] == "tools"


# ============== Lifespan ==============

class TestLifespan:

    @pytest.mark.asyncio
    async def test_lifespan_creates_registry(self, memory_persistence, supervisor):
        app = create_app(Settings(), persistence=memory_persistence, supervisor=supervisor)

        async with app.router.lifespan_context(app):
            registry = app.state.registry
            await registry.create_mcp_client({"name": "tavily", "command": "npx"})

        assert memory_persistence.closed is True
        assert memory_persistence.save_count == 1
