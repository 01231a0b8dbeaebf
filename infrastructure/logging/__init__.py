"""日志配置"""

from infrastructure.logging.setup import configure_logging

__all__ = ["configure_logging"]
