"""日志输出的邮件接收器"""

import logging
from typing import Optional

from domain.sync.services.message_sink import MessageSink
from domain.sync.value_objects.account_descriptor import AccountDescriptor
from domain.sync.value_objects.message_envelope import MessageEnvelope


class LoggingMessageSink(MessageSink):
    """把每封新邮件的摘要写入日志"""

    def __init__(self, logger: Optional[logging.Logger] = None):
        self._logger = logger or logging.getLogger(__name__)

    def deliver(self, account: AccountDescriptor, envelope: MessageEnvelope) -> None:
        self._logger.info(f"[IMAP][{account.display_name}] [SYNC] {envelope.summary()}")
