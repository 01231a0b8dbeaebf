"""邮件基础设施服务"""

from infrastructure.mail.services.imap_mail_session import ImapMailSession
from infrastructure.mail.services.logging_message_sink import LoggingMessageSink

__all__ = [
    "ImapMailSession",
    "LoggingMessageSink",
]
