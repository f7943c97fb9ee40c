#!/usr/bin/env python3
"""
数据迁移脚本：把旧版 mcp.json 中的 MCP 客户端导入注册表存储

旧文件结构: {"clients": [{name, transport, command, args, url, env, enabled}, ...]}
已存在同名客户端时跳过，不合法的记录跳过并打印原因。

用法：
    python scripts/import_legacy_mcp.py [mcp_json_path]
    # 默认读取 ~/.helix/mcp.json，写入当前配置 (REGISTRY_STORAGE / DATABASE_URL / REGISTRY_DATA_FILE)
"""
import asyncio
import json
import sys
from pathlib import Path

# 将项目根目录添加到 Python 路径
sys.path.insert(0, str(Path(__file__).parent.parent))

from integration_registry.adapter import mcp_client_from_storage
from integration_registry.config import load_settings
from integration_registry.errors import DuplicateKey, ValidationError
from integration_registry.persistence import build_persistence
from integration_registry.registry import IntegrationRegistry

DEFAULT_LEGACY_PATH = Path.home() / ".helix" / "mcp.json"


async def import_clients(registry: IntegrationRegistry, items: list) -> dict:
    """
    把旧记录逐条创建到注册表

    Returns:
        {"imported": [...], "skipped": [(name, reason), ...]}
    """
    imported = []
    skipped = []
    for index, item in enumerate(items):
        name = item.get("name") if isinstance(item, dict) else None
        name = name or f"#{index}"
        try:
            record = mcp_client_from_storage(item)
            await registry.create_mcp_client(record)
            imported.append(record.name)
        except (DuplicateKey, ValidationError, AttributeError, TypeError, ValueError) as e:
            skipped.append((name, str(e)))
    return {"imported": imported, "skipped": skipped}


async def main(path: Path):
    print(f"开始导入: {path}")
    if not path.exists():
        print(f"  ❌ 文件不存在: {path}")
        return 1

    with open(path, "r", encoding="utf-8") as f:
        data = json.load(f)

    settings = load_settings()
    registry = IntegrationRegistry(persistence=build_persistence(settings), settings=settings)
    await registry.start()
    try:
        result = await import_clients(registry, data.get("clients", []))
    finally:
        await registry.close()

    for name in result["imported"]:
        print(f"  ✅ {name}")
    for name, reason in result["skipped"]:
        print(f"  ⏭️ {name}: {reason}")
    print(f"\n完成: 导入 {len(result['imported'])} 个, 跳过 {len(result['skipped'])} 个")
    return 0


if __name__ == "__main__":
    legacy_path = Path(sys.argv[1]) if len(sys.argv) > 1 else DEFAULT_LEGACY_PATH
    sys.exit(asyncio.run(main(legacy_path)))
