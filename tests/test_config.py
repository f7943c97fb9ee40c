"""
配置加载测试 (环境变量 > JSON 文件 > 默认值)
"""
import json

import pytest

from integration_registry.config import Settings, load_settings

ENV_KEYS = (
    "REGISTRY_CONFIG_FILE",
    "REGISTRY_PORT",
    "REGISTRY_STORAGE",
    "DATABASE_URL",
    "REGISTRY_DATA_FILE",
    "REGISTRY_UNIQUE_BOT_TYPE",
    "LOG_LEVEL",
)


@pytest.fixture
def clean_env(monkeypatch, tmp_path):
    for key in ENV_KEYS:
        monkeypatch.delenv(key, raising=False)
    monkeypatch.setenv("REGISTRY_CONFIG_FILE", str(tmp_path / "missing.json"))
    return monkeypatch


@pytest.fixture
def config_file(clean_env, tmp_path):
    path = tmp_path / "registry_config.json"
    path.write_text(json.dumps({
        "port": 9000,
        "storage": "json",
        "data_file": "custom/integrations.json",
        "unknown_key": "ignored",
    }), encoding="utf-8")
    clean_env.setenv("REGISTRY_CONFIG_FILE", str(path))
    return path


def test_defaults(clean_env):
    assert load_settings() == Settings()


def test_json_file(config_file):
    settings = load_settings()
    assert settings.port == 9000
    assert settings.storage == "json"
    assert settings.data_file == "custom/integrations.json"
    assert settings.unique_bot_channel_type is False


def test_env_overrides_json(config_file, clean_env):
    clean_env.setenv("REGISTRY_PORT", "9100")
    clean_env.setenv("REGISTRY_STORAGE", "Database")
    clean_env.setenv("REGISTRY_UNIQUE_BOT_TYPE", "yes")
    clean_env.setenv("LOG_LEVEL", "debug")

    settings = load_settings()

    assert settings.port == 9100
    assert settings.storage == "database"
    assert settings.unique_bot_channel_type is True
    assert settings.log_level == "DEBUG"


def test_invalid_port_keeps_default(clean_env):
    clean_env.setenv("REGISTRY_PORT", "eighty")
    assert load_settings().port == 8090


def test_unknown_storage_falls_back(clean_env):
    clean_env.setenv("REGISTRY_STORAGE", "redis")
    assert load_settings().storage == "database"


def test_broken_json_file(clean_env, tmp_path):
    path = tmp_path / "broken.json"
    path.write_text("{", encoding="utf-8")
    clean_env.setenv("REGISTRY_CONFIG_FILE", str(path))
    assert load_settings() == Settings()
