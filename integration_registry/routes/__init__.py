"""
路由模块
"""
from .bot_channels import router as bot_channels_router
from .mcp_clients import agent_tools_router, router as mcp_clients_router

__all__ = ["agent_tools_router", "bot_channels_router", "mcp_clients_router"]
