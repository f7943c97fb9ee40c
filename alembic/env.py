"""Alembic 迁移环境配置

关键配置：
1. 从环境变量 DATABASE_URL 读取数据库连接
2. 导入项目模型 (integration_registry.models)
3. 支持 async SQLAlchemy URL (SQLite/MySQL)，迁移时转换为同步驱动
"""
import os
import sys
from logging.config import fileConfig
from pathlib import Path

from sqlalchemy import engine_from_config, pool

# 将项目根目录添加到 Python 路径
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from alembic import context
from integration_registry.models import Base

# ============== Alembic Config ==============

config = context.config

# ============== 日志配置 ==============

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

# ============== 数据库 URL 配置 ==============

# 从环境变量读取 DATABASE_URL (优先级高于 alembic.ini)
database_url = os.getenv("DATABASE_URL")
if database_url:
    # 转换 async URL 为 sync URL (Alembic 需要同步引擎)
    # sqlite+aiosqlite:///... -> sqlite:///
    # mysql+aiomysql:///... -> mysql+pymysql:///
    if database_url.startswith("sqlite+aiosqlite"):
        sync_url = database_url.replace("sqlite+aiosqlite", "sqlite")
    elif database_url.startswith("mysql+aiomysql"):
        sync_url = database_url.replace("mysql+aiomysql", "mysql+pymysql")
    else:
        sync_url = database_url

    # 转义 % 符号，避免 configparser 解析问题
    escaped_url = sync_url.replace("%", "%%")
    config.set_main_option("sqlalchemy.url", escaped_url)
    print(f"[Alembic] 使用环境变量 DATABASE_URL: {sync_url[:50]}...")

# ============== 模型元数据 ==============

target_metadata = Base.metadata


# ============== 迁移执行函数 ==============

def run_migrations_offline() -> None:
    """离线模式运行迁移

    此模式下不需要数据库连接，只生成 SQL 脚本。
    """
    url = config.get_main_option("sqlalchemy.url")
    context.configure(
        url=url,
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        render_as_batch=True,  # SQLite 支持 ALTER TABLE
    )

    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    """在线模式运行迁移"""
    configuration = config.get_section(config.config_ini_section, {})

    url = configuration.get("sqlalchemy.url", "")
    if url.startswith("sqlite"):
        configuration["sqlalchemy.connect_args"] = {"check_same_thread": False}

    connectable = engine_from_config(
        configuration,
        prefix="sqlalchemy.",
        poolclass=pool.NullPool,
    )

    with connectable.connect() as connection:
        context.configure(
            connection=connection,
            target_metadata=target_metadata,
            render_as_batch=True,
            compare_type=True,
            compare_server_default=True,
        )

        with context.begin_transaction():
            context.run_migrations()


# ============== 入口点 ==============

if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
