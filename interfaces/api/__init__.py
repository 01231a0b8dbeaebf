"""
API 接口层

用法：
    from interfaces.api import create_app

    app = create_app(orchestrator)
"""

from interfaces.api.app import create_app

__all__ = [
    "create_app",
]
