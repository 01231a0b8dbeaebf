"""
应用容器（AppContainer）

管理应用层组件：增量拉取例程、同步编排器等。
依赖 InfraContainer 获取基础设施。
"""

from typing import TYPE_CHECKING

from dependency_injector import containers, providers

from application.sync.services.incremental_fetch import IncrementalFetchRoutine
from application.sync.services.sync_orchestrator import SyncOrchestrator

if TYPE_CHECKING:
    from .infrastructure import InfraContainer


class AppContainer(containers.DeclarativeContainer):
    """应用容器 - 管理应用层服务"""

    # 依赖配置容器
    config = providers.DependenciesContainer()

    # 依赖基础设施容器
    infra = providers.DependenciesContainer()

    # ============ 应用服务 ============

    # 增量拉取例程（无状态，各账号共享）
    fetch_routine = providers.Singleton(
        IncrementalFetchRoutine,
        sink=infra.message_sink,
    )

    # 同步编排器（单例，整个应用只需一个实例）
    # 注意: session_factory 使用 .provider 传递工厂，每个账号每次连接创建新会话
    sync_orchestrator = providers.Singleton(
        SyncOrchestrator,
        account_repository=infra.account_repository,
        session_factory=infra.mail_session.provider,
        routine=fetch_routine,
        lookback=config.settings.provided.sync_lookback,
        poll_interval=config.settings.provided.sync_poll_interval,
        fetch_timeout=config.settings.provided.sync_fetch_timeout,
        initial_fetch_timeout=config.settings.provided.sync_initial_fetch_timeout,
        reconnect_max_attempts=config.settings.provided.sync_reconnect_max_attempts,
    )
