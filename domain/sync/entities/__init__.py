"""同步实体模块"""

from domain.sync.entities.watermark import Watermark

__all__ = ["Watermark"]
