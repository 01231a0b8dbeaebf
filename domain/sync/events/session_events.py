"""会话诊断事件

由邮箱会话在出错或意外断开时发布，账号监督器订阅并决定记录、
停止或重连。aggregate_id 为账号标识。
"""

from dataclasses import dataclass
from typing import Optional

from domain.common.base_event import DomainEvent


@dataclass(frozen=True)
class SessionErrored(DomainEvent):
    """
    会话错误事件

    Attributes:
        error: 原始异常
    """

    error: Optional[BaseException] = None


@dataclass(frozen=True)
class SessionClosed(DomainEvent):
    """
    会话意外断开事件

    主动调用 close() 不会发布此事件。

    Attributes:
        reason: 断开原因（可选）
    """

    reason: Optional[str] = None
