"""邮件输出接口"""

from abc import ABC, abstractmethod

from domain.sync.value_objects.account_descriptor import AccountDescriptor
from domain.sync.value_objects.message_envelope import MessageEnvelope


class MessageSink(ABC):
    """
    邮件输出接口

    下游（规范化、存储、索引）通过实现此接口接收新邮件。
    投递语义为至少一次，去重由实现方负责。
    """

    @abstractmethod
    def deliver(self, account: AccountDescriptor, envelope: MessageEnvelope) -> None:
        """
        投递一封新观察到的邮件

        Args:
            account: 邮件所属账号
            envelope: 邮件信封
        """
        raise NotImplementedError
