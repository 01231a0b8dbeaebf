"""邮箱会话接口"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Callable, List

from domain.common.base_event import DomainEvent
from domain.sync.value_objects.account_descriptor import AccountDescriptor
from domain.sync.value_objects.mailbox_notification import MailboxNotification
from domain.sync.value_objects.message_envelope import MessageEnvelope

NotificationHandler = Callable[[MailboxNotification], None]
SessionEventHandler = Callable[[DomainEvent], None]


class MailSession(ABC):
    """
    邮箱会话接口

    持有一个账号邮箱的一条活动连接，具体实现在基础设施层，负责：
    - 建立传输层与协议会话
    - 选择目标邮箱目录
    - 按到达时间增量拉取邮件元数据
    - 监听服务器推送的变更通知
    - 出错或意外断开时发布诊断事件
    """

    @abstractmethod
    async def connect(self) -> None:
        """
        建立连接并登录

        Raises:
            MailConnectionError: 网络或认证失败
        """
        raise NotImplementedError

    @abstractmethod
    async def open_mailbox(self, name: str) -> None:
        """
        选择目标邮箱目录

        Args:
            name: 邮箱目录名

        Raises:
            MailboxError: 目录不存在或不可选择
        """
        raise NotImplementedError

    @property
    @abstractmethod
    def is_usable(self) -> bool:
        """
        会话当前能否处理拉取请求

        Returns:
            断开后立即返回 False
        """
        raise NotImplementedError

    @abstractmethod
    async def fetch_since(self, since: datetime) -> List[MessageEnvelope]:
        """
        拉取到达时间不早于 since 的全部邮件

        Args:
            since: 起始时间（含）

        Returns:
            匹配的邮件信封，可能为空

        Raises:
            FetchError: 拉取过程中的协议错误
        """
        raise NotImplementedError

    @abstractmethod
    async def listen(self, on_notification: NotificationHandler) -> None:
        """
        开始在后台监听已选目录的变更推送

        Args:
            on_notification: 每条推送通知的回调
        """
        raise NotImplementedError

    @abstractmethod
    async def close(self) -> None:
        """关闭会话（幂等）"""
        raise NotImplementedError

    @abstractmethod
    def subscribe(self, handler: SessionEventHandler) -> None:
        """
        订阅会话诊断事件（SessionErrored / SessionClosed）

        Args:
            handler: 事件回调
        """
        raise NotImplementedError


MailSessionFactory = Callable[[AccountDescriptor], MailSession]


class MailConnectionError(Exception):
    """连接或认证失败，对该账号是致命错误"""

    def __init__(self, host: str, port: int, message: str):
        self.host = host
        self.port = port
        super().__init__(f"Failed to connect to {host}:{port} - {message}")


class MailboxError(Exception):
    """邮箱目录无效，对该账号是致命错误"""

    def __init__(self, mailbox: str, message: str):
        self.mailbox = mailbox
        super().__init__(f"Failed to open mailbox {mailbox!r} - {message}")


class FetchError(Exception):
    """增量拉取时的协议错误，在本地恢复"""

    def __init__(self, account_id: str, message: str):
        self.account_id = account_id
        super().__init__(f"Fetch failed for {account_id} - {message}")
