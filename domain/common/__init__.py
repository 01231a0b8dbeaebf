"""领域层公共基类与异常"""

from domain.common.base_entity import BaseEntity
from domain.common.base_event import DomainEvent
from domain.common.base_value_object import BaseValueObject
from domain.common.exceptions import (
    DomainException,
    InvalidValueObjectException,
    InvalidStateTransitionException,
    ConfigurationException,
)

__all__ = [
    "BaseEntity",
    "DomainEvent",
    "BaseValueObject",
    "DomainException",
    "InvalidValueObjectException",
    "InvalidStateTransitionException",
    "ConfigurationException",
]
