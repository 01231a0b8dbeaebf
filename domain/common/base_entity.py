"""实体基类"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional
from uuid import UUID, uuid4


@dataclass(eq=False)
class BaseEntity:
    """
    实体基类

    实体通过 ID 判等，而非属性值。

    Attributes:
        id: 实体唯一标识
        created_at: 创建时间
        updated_at: 最后更新时间
    """

    id: UUID = field(default_factory=uuid4)
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    updated_at: Optional[datetime] = field(default=None)

    def update_timestamp(self) -> None:
        """刷新更新时间"""
        self.updated_at = datetime.now(timezone.utc)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, BaseEntity):
            return NotImplemented
        return self.id == other.id

    def __hash__(self) -> int:
        return hash(self.id)
