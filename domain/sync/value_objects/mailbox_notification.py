"""邮箱变更通知值对象"""

from dataclasses import dataclass

from domain.common.base_value_object import BaseValueObject


@dataclass(frozen=True)
class MailboxNotification(BaseValueObject):
    """
    服务器推送的邮箱变更通知（IDLE 下的 EXISTS）

    Attributes:
        path: 发生变化的邮箱目录
        count: 当前邮件数
        prev_count: 上次已知的邮件数
    """

    path: str
    count: int
    prev_count: int = 0

    @property
    def has_new_messages(self) -> bool:
        return self.count > self.prev_count
