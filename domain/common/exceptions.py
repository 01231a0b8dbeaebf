"""领域异常定义"""

from typing import Any


class DomainException(Exception):
    """领域异常基类"""

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class InvalidValueObjectException(DomainException):
    """值对象校验失败"""

    def __init__(self, value_object_type: str, value: Any, reason: str):
        self.value_object_type = value_object_type
        self.value = value
        self.reason = reason
        super().__init__(f"Invalid {value_object_type}: {reason}")


class InvalidStateTransitionException(DomainException):
    """非法状态转换"""

    def __init__(self, entity: str, from_state: str, to_state: str, reason: str = ""):
        self.entity = entity
        self.from_state = from_state
        self.to_state = to_state
        self.reason = reason
        message = f"{entity} cannot transition from {from_state} to {to_state}"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)


class ConfigurationException(DomainException):
    """启动配置缺失或非法（启动期致命错误）"""

    def __init__(self, setting: str, reason: str):
        self.setting = setting
        self.reason = reason
        super().__init__(f"Invalid configuration '{setting}': {reason}")
