"""邮件信封值对象"""

from dataclasses import dataclass
from datetime import datetime
from typing import Tuple

from domain.common.base_value_object import BaseValueObject
from domain.common.exceptions import InvalidValueObjectException


@dataclass(frozen=True)
class MessageEnvelope(BaseValueObject):
    """
    邮件信封值对象

    向下游输出的最小单元：协议层报告的元数据快照，创建后不再修改，
    同步引擎不持久化也不检查其内容。

    Attributes:
        account_id: 所属账号标识
        uid: 邮箱目录内唯一的 UID
        arrival_time: 服务器接收时间（INTERNALDATE）
        senders: 发件人地址列表
        subject: 邮件主题
        size: 邮件大小（字节）
        flags: IMAP 标志
    """

    account_id: str
    uid: int
    arrival_time: datetime
    senders: Tuple[str, ...] = ()
    subject: str = ""
    size: int = 0
    flags: Tuple[str, ...] = ()

    def validate(self) -> None:
        if self.uid <= 0:
            raise InvalidValueObjectException(
                value_object_type="MessageEnvelope",
                value=self.uid,
                reason="uid must be a positive integer",
            )
        if self.arrival_time.tzinfo is None:
            raise InvalidValueObjectException(
                value_object_type="MessageEnvelope",
                value=self.arrival_time,
                reason="arrival_time must be timezone-aware",
            )

    def summary(self) -> str:
        """单行摘要：uid=.. from=.. date=.. subject=.."""
        sender = ", ".join(self.senders) if self.senders else "(unknown)"
        subject = self.subject or "(no subject)"
        return (
            f"uid={self.uid} from={sender} "
            f"date={self.arrival_time.isoformat()} subject={subject}"
        )
