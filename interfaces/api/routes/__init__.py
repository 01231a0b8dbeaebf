"""
REST API 路由

定义 REST API 端点。
"""

from interfaces.api.routes.health import router as health_router

__all__ = ["health_router"]
