"""基于环境变量配置的账号仓储实现"""

import logging
import os
from typing import Dict, List, Mapping, Optional

from dotenv import dotenv_values

from domain.common.exceptions import ConfigurationException, InvalidValueObjectException
from domain.sync.repositories.account_repository import AccountRepository
from domain.sync.value_objects.account_descriptor import DEFAULT_MAILBOX, AccountDescriptor
from infrastructure.config.settings import Settings


class SettingsAccountRepository(AccountRepository):
    """
    账号仓储实现

    共享服务器参数来自 Settings；每个账号键 K 读取：
    - IMAP_ACCOUNT_<K>_USER / _PASS（必填）
    - IMAP_ACCOUNT_<K>_MAILBOX（默认 INBOX）
    - IMAP_ACCOUNT_<K>_LABEL（默认 "Inbox <K>"）
    - IMAP_ACCOUNT_<K>_HOST / _PORT（默认使用共享值）

    变量先从 .env 读取，再由进程环境变量覆盖。
    """

    PREFIX = "IMAP_ACCOUNT_"

    def __init__(
        self,
        settings: Settings,
        environ: Optional[Mapping[str, str]] = None,
        logger: Optional[logging.Logger] = None,
    ):
        """
        初始化账号仓储

        Args:
            settings: 应用配置
            environ: 变量来源（测试时注入），默认合并 .env 与 os.environ
            logger: 可选的日志记录器
        """
        self._settings = settings
        self._environ = environ
        self._logger = logger or logging.getLogger(__name__)

    def list_all(self) -> List[AccountDescriptor]:
        environ = self._load_environ()
        accounts = [self._build(key, environ) for key in self._settings.account_keys]
        self._logger.info(
            f"Loaded {len(accounts)} IMAP accounts: "
            f"{', '.join(account.display_name for account in accounts)}"
        )
        return accounts

    def _load_environ(self) -> Dict[str, str]:
        """合并 .env 与进程环境变量（键统一为大写）"""
        if self._environ is not None:
            source = dict(self._environ)
        else:
            env_file = self._settings.model_config.get("env_file")
            source = {}
            if env_file and os.path.exists(env_file):
                source.update({k: v for k, v in dotenv_values(env_file).items() if v is not None})
            source.update(os.environ)
        return {key.upper(): value for key, value in source.items()}

    def _build(self, key: str, environ: Dict[str, str]) -> AccountDescriptor:
        prefix = f"{self.PREFIX}{key.upper()}_"

        username = self._required(environ, f"{prefix}USER")
        password = self._required(environ, f"{prefix}PASS")

        host = environ.get(f"{prefix}HOST", "").strip() or self._settings.imap_host.strip()
        if not host:
            raise ConfigurationException("IMAP_HOST", "is required")

        port = self._port(environ.get(f"{prefix}PORT", "").strip(), f"{prefix}PORT")
        if port is None:
            port = self._settings.imap_port
        if port is None:
            raise ConfigurationException("IMAP_PORT", "is required")

        try:
            return AccountDescriptor(
                id=f"account{key}",
                label=environ.get(f"{prefix}LABEL", "").strip() or f"Inbox {key}",
                host=host,
                port=port,
                username=username,
                password=password,
                secure=self._settings.imap_secure,
                mailbox=environ.get(f"{prefix}MAILBOX", "").strip() or DEFAULT_MAILBOX,
            )
        except InvalidValueObjectException as e:
            raise ConfigurationException(f"{prefix}*", e.message)

    @staticmethod
    def _required(environ: Dict[str, str], name: str) -> str:
        value = environ.get(name, "").strip()
        if not value:
            raise ConfigurationException(name, "is required")
        return value

    @staticmethod
    def _port(value: str, name: str) -> Optional[int]:
        if not value:
            return None
        try:
            return int(value)
        except ValueError:
            raise ConfigurationException(name, f"must be an integer, got {value!r}")
