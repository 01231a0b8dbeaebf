"""
依赖注入容器

三层容器：
- ConfigContainer: 配置
- InfraContainer: 基础设施（依赖 config）
- AppContainer: 应用服务（依赖 config + infra）

使用示例：
    from infrastructure.containers import bootstrap

    boot = bootstrap()
    orchestrator = boot.app.sync_orchestrator()
"""

from dataclasses import dataclass

from infrastructure.containers.application import AppContainer
from infrastructure.containers.config import ConfigContainer
from infrastructure.containers.infrastructure import InfraContainer


@dataclass
class Bootstrap:
    """已装配的容器集合"""

    config: ConfigContainer
    infra: InfraContainer
    app: AppContainer


def bootstrap() -> Bootstrap:
    """
    创建并连接所有容器

    Returns:
        Bootstrap 实例
    """
    config = ConfigContainer()
    infra = InfraContainer(config=config)
    app = AppContainer(config=config, infra=infra)
    return Bootstrap(config=config, infra=infra, app=app)


__all__ = [
    "AppContainer",
    "Bootstrap",
    "ConfigContainer",
    "InfraContainer",
    "bootstrap",
]
