"""
Integration Registry 主应用

为展示层提供 Bot 通道和 MCP 客户端的 CRUD / 启停命令接口。

运行方式:
    python -m integration_registry.app
    # 或
    uvicorn integration_registry.app:app --host 0.0.0.0 --port 8090

配置存储:
    - 默认使用 SQLite 数据库 (data/integration_registry.db)
    - 支持 MySQL (通过 DATABASE_URL 环境变量配置)
    - REGISTRY_STORAGE=json 时使用 JSON 文件 (REGISTRY_DATA_FILE)
"""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from .config import Settings, load_settings
from .lifecycle import ConnectorSupervisor
from .persistence import RegistryPersistence
from .registry import registry_lifespan
from .routes import agent_tools_router, bot_channels_router, mcp_clients_router

VERSION = "1.0.0"

settings = load_settings()

# 配置日志
logging.basicConfig(
    level=getattr(logging, settings.log_level, logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


# ============== FastAPI 应用 ==============

def create_app(
    app_settings: Settings | None = None,
    persistence: RegistryPersistence | None = None,
    supervisor: ConnectorSupervisor | None = None,
) -> FastAPI:
    """
    创建 FastAPI 应用

    Args:
        app_settings: 服务配置 (默认使用环境变量加载的配置)
        persistence: 持久化实现 (默认按配置选择)
        supervisor: 连接器监管者 (默认只记录日志)
    """
    app_settings = app_settings or settings

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """应用生命周期管理"""
        async with registry_lifespan(app_settings, persistence, supervisor) as registry:
            app.state.registry = registry

            logger.info(f"Integration Registry 启动 v{VERSION}")
            logger.info(f"  端口: {app_settings.port}")
            logger.info(f"  持久化: {app_settings.storage}")
            logger.info(f"  Bot 通道数量: {len(registry.bot_channels)}")
            logger.info(f"  MCP 客户端数量: {len(registry.mcp_clients)}")

            for channel in registry.list_bot_channels():
                logger.info(f"  - {channel.name} (type={channel.type}, enabled={channel.enabled})")
            for client in registry.list_mcp_clients():
                logger.info(f"  - {client.name} (transport={client.transport}, enabled={client.enabled})")

            yield

        logger.info("Integration Registry 关闭")

    app = FastAPI(
        title="Integration Registry",
        description="集成注册表 - 管理 Bot 通道与 MCP 客户端配置",
        version=VERSION,
        lifespan=lifespan
    )

    # CORS 中间件
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # 注册路由
    app.include_router(bot_channels_router)
    app.include_router(mcp_clients_router)
    app.include_router(agent_tools_router)

    # ============== 基础路由 ==============

    @app.get("/")
    async def root() -> dict:
        return {
            "service": "Integration Registry",
            "version": VERSION,
            "status": "running"
        }

    @app.get("/health")
    async def health(request: Request) -> dict:
        """健康检查"""
        registry = getattr(request.app.state, "registry", None)
        if registry is None:
            return {"status": "starting", "version": VERSION}
        return {
            "status": "healthy",
            "storage": app_settings.storage,
            "bot_channels_count": len(registry.bot_channels),
            "mcp_clients_count": len(registry.mcp_clients),
            "version": VERSION
        }

    return app


app = create_app()


# ============== 入口点 ==============

def main():
    """主函数"""
    import uvicorn
    uvicorn.run(
        "integration_registry.app:app",
        host="0.0.0.0",
        port=settings.port,
        reload=False
    )


if __name__ == "__main__":
    main()
