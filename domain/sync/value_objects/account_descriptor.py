"""账号描述值对象"""

from dataclasses import dataclass, field

from domain.common.base_value_object import BaseValueObject
from domain.common.exceptions import InvalidValueObjectException

DEFAULT_MAILBOX = "INBOX"


@dataclass(frozen=True)
class AccountDescriptor(BaseValueObject):
    """
    邮箱账号描述值对象

    一个已配置账号的全部连接参数，启动时加载一次，此后只读。
    由同步编排器持有，并只读共享给该账号的监督器。

    Attributes:
        id: 账号标识
        label: 显示名称（用于日志上下文）
        host: IMAP 服务器地址
        port: IMAP 服务器端口
        secure: 连接时是否直接使用 TLS
        username: 登录用户名
        password: 登录密码（不出现在 repr 中）
        mailbox: 目标邮箱目录，默认 INBOX
    """

    id: str
    label: str
    host: str
    port: int
    username: str
    password: str = field(repr=False)
    secure: bool = True
    mailbox: str = DEFAULT_MAILBOX

    def validate(self) -> None:
        """验证账号描述的有效性"""
        for name in ("id", "host", "username", "password"):
            value = getattr(self, name)
            if not value or not str(value).strip():
                raise InvalidValueObjectException(
                    value_object_type="AccountDescriptor",
                    value="[REDACTED]" if name == "password" else value,
                    reason=f"{name} cannot be empty",
                )

        if not 1 <= self.port <= 65535:
            raise InvalidValueObjectException(
                value_object_type="AccountDescriptor",
                value=self.port,
                reason=f"Invalid port number: {self.port}. Must be between 1 and 65535",
            )

        if not self.mailbox:
            raise InvalidValueObjectException(
                value_object_type="AccountDescriptor",
                value=self.mailbox,
                reason="mailbox cannot be empty",
            )

    @property
    def display_name(self) -> str:
        """日志中使用的名称，未设置 label 时回退到 id"""
        return self.label or self.id

    @property
    def connection_string(self) -> str:
        """返回连接字符串格式"""
        protocol = "imaps" if self.secure else "imap"
        return f"{protocol}://{self.host}:{self.port}"
