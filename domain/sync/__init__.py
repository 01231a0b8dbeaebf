"""
邮件同步界限上下文

提供多账号增量同步的领域模型，包括：
- AccountDescriptor, MessageEnvelope, MailboxNotification 值对象
- Watermark 实体（水位与单飞状态机）
- MailSession, MessageSink 服务接口
- AccountRepository 仓储接口
- 会话诊断事件
"""

from domain.sync.entities.watermark import Watermark
from domain.sync.value_objects import (
    AccountDescriptor,
    MessageEnvelope,
    MailboxNotification,
    SyncState,
)

__all__ = [
    "Watermark",
    "AccountDescriptor",
    "MessageEnvelope",
    "MailboxNotification",
    "SyncState",
]
