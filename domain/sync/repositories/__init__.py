"""同步仓储接口模块"""

from domain.sync.repositories.account_repository import AccountRepository

__all__ = ["AccountRepository"]
