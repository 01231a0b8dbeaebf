"""邮件基础设施仓储"""

from infrastructure.mail.repositories.settings_account_repository import SettingsAccountRepository

__all__ = ["SettingsAccountRepository"]
