"""
基础设施容器（InfraContainer）

管理所有基础设施组件：账号仓储、IMAP 会话、邮件接收器等。
依赖 ConfigContainer 获取配置。
"""

from dependency_injector import containers, providers

from infrastructure.mail.repositories.settings_account_repository import SettingsAccountRepository
from infrastructure.mail.services.imap_mail_session import ImapMailSession
from infrastructure.mail.services.logging_message_sink import LoggingMessageSink


class InfraContainer(containers.DeclarativeContainer):
    """基础设施容器 - 管理技术实现"""

    # 依赖配置容器
    config = providers.DependenciesContainer()

    # ============ 仓储 ============

    # 账号仓储（从环境变量 / .env 读取账号）
    account_repository = providers.Singleton(
        SettingsAccountRepository,
        settings=config.settings,
    )

    # ============ 邮件服务 ============

    # IMAP 会话（每个账号每次连接一个新实例）
    # 以 account 为调用参数：mail_session(account)
    mail_session = providers.Factory(
        ImapMailSession,
        idle_timeout=config.settings.provided.imap_idle_timeout,
    )

    # 新邮件接收器（单例）
    message_sink = providers.Singleton(LoggingMessageSink)
