"""领域事件基类"""

from dataclasses import dataclass, field
from datetime import datetime, timezone


@dataclass(frozen=True)
class DomainEvent:
    """
    领域事件基类

    Attributes:
        aggregate_id: 事件所属聚合的标识
        occurred_at: 事件发生时间
    """

    aggregate_id: str = ""
    occurred_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def event_type(self) -> str:
        """事件类型名"""
        return type(self).__name__
