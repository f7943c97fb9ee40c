"""
生命周期控制器单元测试
"""
from unittest.mock import AsyncMock, MagicMock

import pytest

from integration_registry.lifecycle import (
    LifecycleController,
    LifecycleState,
    running_eligible,
    state_of,
)
from integration_registry.records import MCPClientRecord
from integration_registry.store import RecordStore
from integration_registry.validator import validate_mcp_client

from conftest import RecordingSupervisor


@pytest.fixture
def controller(supervisor):
    return LifecycleController(supervisor)


@pytest.fixture
def store(controller):
    store = RecordStore("mcp_clients", validate=validate_mcp_client)
    controller.attach(store)
    return store


def _client(name="tavily", enabled=True):
    return MCPClientRecord(name=name, transport="stdio", command="npx", enabled=enabled)


class TestTransitions:

    def test_create_enabled_emits_enabled(self, store, supervisor):
        store.create(_client())
        assert supervisor.events == [("tavily", LifecycleState.ENABLED)]

    def test_create_disabled_emits_nothing(self, store, supervisor):
        store.create(_client(enabled=False))
        assert supervisor.events == []

    def test_disable_then_enable(self, store, controller, supervisor):
        store.create(_client())

        controller.disable(store, "tavily")
        controller.enable(store, "tavily")

        assert supervisor.events == [
            ("tavily", LifecycleState.ENABLED),
            ("tavily", LifecycleState.DISABLED),
            ("tavily", LifecycleState.ENABLED),
        ]

    def test_enable_is_idempotent(self, store, controller, supervisor):
        store.create(_client())

        first = controller.enable(store, "tavily")
        second = controller.enable(store, "tavily")

        assert first == second
        assert first.enabled is True
        assert supervisor.events == [("tavily", LifecycleState.ENABLED)]

    def test_disable_is_idempotent(self, store, controller, supervisor):
        store.create(_client(enabled=False))
        controller.disable(store, "tavily")
        controller.disable(store, "tavily")
        assert supervisor.events == []

    def test_toggle_emits_new_state(self, store, supervisor):
        store.create(_client())
        store.toggle("tavily")
        assert supervisor.events[-1] == ("tavily", LifecycleState.DISABLED)

    def test_config_change_on_enabled_record_re_emits(self, store, supervisor):
        store.create(_client())
        store.update("tavily", {"args": ["-y"]})
        assert supervisor.events == [
            ("tavily", LifecycleState.ENABLED),
            ("tavily", LifecycleState.ENABLED),
        ]

    def test_config_change_on_disabled_record_is_silent(self, store, supervisor):
        store.create(_client(enabled=False))
        store.update("tavily", {"args": ["-y"]})
        assert supervisor.events == []

    def test_delete_requests_teardown(self, store, supervisor):
        store.create(_client(enabled=False))
        store.delete("tavily")
        assert supervisor.events == [("tavily", LifecycleState.DELETED)]


class TestSupervisorFailures:

    def test_supervisor_error_does_not_block_mutation(self):
        supervisor = MagicMock()
        supervisor.on_lifecycle_change.side_effect = RuntimeError("进程启动失败")

        controller = LifecycleController(supervisor)
        store = RecordStore("mcp_clients", validate=validate_mcp_client)
        controller.attach(store)

        store.create(_client())
        store.delete("tavily")

        assert supervisor.on_lifecycle_change.call_count == 2
        assert "tavily" not in store

    @pytest.mark.asyncio
    async def test_async_supervisor(self):
        supervisor = MagicMock()
        supervisor.on_lifecycle_change = AsyncMock()

        controller = LifecycleController(supervisor)
        store = RecordStore("mcp_clients", validate=validate_mcp_client)
        controller.attach(store)

        store.create(_client())
        store.delete("tavily")
        await controller.drain()

        states = [c.args[1] for c in supervisor.on_lifecycle_change.await_args_list]
        assert states == [LifecycleState.ENABLED, LifecycleState.DELETED]

    @pytest.mark.asyncio
    async def test_async_supervisor_failure_is_logged(self):
        supervisor = MagicMock()
        supervisor.on_lifecycle_change = AsyncMock(side_effect=ConnectionError("SSE 连接失败"))

        controller = LifecycleController(supervisor)
        store = RecordStore("mcp_clients", validate=validate_mcp_client)
        controller.attach(store)

        store.create(_client())
        await controller.drain()

        assert store.get("tavily").enabled is True


class TestHelpers:

    def test_state_of(self):
        assert state_of(_client()) is LifecycleState.ENABLED
        assert state_of(_client(enabled=False)) is LifecycleState.DISABLED

    def test_running_eligible(self):
        records = [_client("a"), _client("b", enabled=False), _client("c")]
        assert [r.name for r in running_eligible(records)] == ["a", "c"]

    def test_recording_supervisor_is_a_supervisor(self):
        supervisor = RecordingSupervisor()
        supervisor.on_lifecycle_change(_client(), LifecycleState.ENABLED)
        assert supervisor.events == [("tavily", LifecycleState.ENABLED)]
