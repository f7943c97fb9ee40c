"""
Integration Registry 配置管理

优先级（从高到低）：
1. 环境变量
2. JSON 配置文件 (REGISTRY_CONFIG_FILE 指定的路径，或默认 data/registry_config.json)
3. 默认值

环境变量:
    REGISTRY_PORT: 服务端口 (默认 8090)
    REGISTRY_STORAGE: 持久化方式 database / json (默认 database)
    DATABASE_URL: 数据库连接 URL (storage=database 时使用)
    REGISTRY_DATA_FILE: JSON 数据文件路径 (storage=json 时使用)
    REGISTRY_UNIQUE_BOT_TYPE: 是否限制每种平台只能有一个 Bot 通道 (默认 false)
    LOG_LEVEL: 日志级别 (默认 INFO)
"""
import json
import logging
import os
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)

STORAGE_BACKENDS = ("database", "json")


@dataclass
class Settings:
    """注册表服务配置"""
    port: int = 8090
    storage: str = "database"
    database_url: Optional[str] = None
    data_file: str = "data/integrations.json"
    unique_bot_channel_type: bool = False
    log_level: str = "INFO"


def _parse_bool(value: str) -> bool:
    return value.strip().lower() in ("1", "true", "yes", "on")


def load_settings() -> Settings:
    """
    加载配置

    Returns:
        Settings 对象
    """
    values: dict = {}

    # 1. 尝试从 JSON 文件加载
    config_file = os.getenv("REGISTRY_CONFIG_FILE", "data/registry_config.json")
    config_path = Path(config_file)

    if config_path.exists():
        try:
            with open(config_path, "r", encoding="utf-8") as f:
                json_config = json.load(f)
            known = {item.name for item in fields(Settings)}
            values.update({k: v for k, v in json_config.items() if k in known})
            logger.info(f"已从 JSON 文件加载配置: {config_path}")
        except Exception as e:
            logger.warning(f"加载配置文件失败: {e}")

    # 2. 环境变量覆盖（优先级最高）
    if port := os.getenv("REGISTRY_PORT"):
        try:
            values["port"] = int(port)
        except ValueError:
            logger.warning(f"REGISTRY_PORT 不是合法端口，使用默认值: {port}")
    if storage := os.getenv("REGISTRY_STORAGE"):
        values["storage"] = storage.strip().lower()
    if database_url := os.getenv("DATABASE_URL"):
        values["database_url"] = database_url
    if data_file := os.getenv("REGISTRY_DATA_FILE"):
        values["data_file"] = data_file
    if unique := os.getenv("REGISTRY_UNIQUE_BOT_TYPE"):
        values["unique_bot_channel_type"] = _parse_bool(unique)
    if log_level := os.getenv("LOG_LEVEL"):
        values["log_level"] = log_level.upper()

    settings = Settings(**values)

    if settings.storage not in STORAGE_BACKENDS:
        logger.warning(f"未知的持久化方式 '{settings.storage}'，使用 database")
        settings.storage = "database"

    return settings
