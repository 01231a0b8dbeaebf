"""同步领域服务模块"""

from domain.sync.services.mail_session import (
    MailSession,
    MailSessionFactory,
    NotificationHandler,
    SessionEventHandler,
    MailConnectionError,
    MailboxError,
    FetchError,
)
from domain.sync.services.message_sink import MessageSink

__all__ = [
    "MailSession",
    "MailSessionFactory",
    "NotificationHandler",
    "SessionEventHandler",
    "MailConnectionError",
    "MailboxError",
    "FetchError",
    "MessageSink",
]
