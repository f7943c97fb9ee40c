"""
pytest 配置文件
"""
import sys
from pathlib import Path

import pytest
import pytest_asyncio

# 将包目录添加到 Python 路径
pkg_root = Path(__file__).parent.parent
if str(pkg_root) not in sys.path:
    sys.path.insert(0, str(pkg_root))

from integration_registry.config import Settings
from integration_registry.persistence import DatabasePersistence, JsonFilePersistence, RegistrySnapshot
from integration_registry.registry import IntegrationRegistry


# ============== 测试替身 ==============

class RecordingSupervisor:
    """记录所有生命周期通知的监管者"""

    def __init__(self):
        self.events = []

    def on_lifecycle_change(self, record, new_state):
        self.events.append((record.key, new_state))


class MemoryPersistence:
    """内存持久化，可以让 save_all 失败"""

    def __init__(self, snapshot: RegistrySnapshot | None = None):
        self.snapshot = snapshot or RegistrySnapshot()
        self.fail_on_save = False
        self.save_count = 0
        self.closed = False

    async def open(self):
        pass

    async def load_all(self):
        return self.snapshot

    async def save_all(self, snapshot):
        if self.fail_on_save:
            raise OSError("磁盘已满")
        self.save_count += 1
        self.snapshot = snapshot

    async def close(self):
        self.closed = True


# ============== Fixtures ==============

@pytest.fixture
def supervisor():
    return RecordingSupervisor()


@pytest.fixture
def memory_persistence():
    return MemoryPersistence()


@pytest_asyncio.fixture
async def registry(supervisor, memory_persistence):
    """内存持久化的注册表"""
    registry = IntegrationRegistry(
        persistence=memory_persistence,
        supervisor=supervisor,
        settings=Settings(),
    )
    await registry.start()
    yield registry
    await registry.close()


@pytest_asyncio.fixture
async def db_persistence():
    """内存 SQLite 数据库持久化"""
    persistence = DatabasePersistence("sqlite+aiosqlite:///:memory:")
    await persistence.open()
    yield persistence
    await persistence.close()


@pytest.fixture
def json_persistence(tmp_path):
    return JsonFilePersistence(tmp_path / "integrations.json")
