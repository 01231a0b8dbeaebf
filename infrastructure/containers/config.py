"""
配置容器（ConfigContainer）

提供全局 Settings 单例，供其他容器依赖。
"""

from dependency_injector import containers, providers

from infrastructure.config.settings import get_settings


class ConfigContainer(containers.DeclarativeContainer):
    """配置容器"""

    settings = providers.Singleton(get_settings)
