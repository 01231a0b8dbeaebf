"""账号仓储接口"""

from abc import ABC, abstractmethod
from typing import List

from domain.sync.value_objects.account_descriptor import AccountDescriptor


class AccountRepository(ABC):
    """
    账号仓储接口

    提供启动时配置的账号列表，具体实现在基础设施层。
    """

    @abstractmethod
    def list_all(self) -> List[AccountDescriptor]:
        """
        获取所有已配置账号（保持配置顺序）

        Returns:
            账号描述列表

        Raises:
            ConfigurationException: 必填配置缺失
        """
        raise NotImplementedError
