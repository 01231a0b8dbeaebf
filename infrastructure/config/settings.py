"""
应用配置管理

使用 pydantic-settings 管理环境变量和配置
"""

from datetime import timedelta
from typing import List, Optional

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    应用配置类

    自动从环境变量和 .env 文件读取配置。
    每个账号的 IMAP_ACCOUNT_<K>_* 变量由账号仓储按 imap_accounts 动态读取。
    """

    # ========== 应用 ==========
    app_name: str = "MailSync"
    app_version: str = "1.0.0"

    # ========== HTTP ==========
    port: int = 4000
    frontend_origin: str = "http://localhost:3000"

    # ========== IMAP 服务器（各账号共享，可按账号覆盖）==========
    imap_host: str = ""
    imap_port: Optional[int] = None
    imap_secure: bool = True
    imap_idle_timeout: float = 29 * 60

    # 账号键列表，逗号分隔，对应 IMAP_ACCOUNT_<K>_* 变量
    imap_accounts: str = "1,2"

    # ========== 同步 ==========
    sync_lookback_days: int = 30
    sync_poll_interval: float = 15.0
    sync_fetch_timeout: float = 60.0
    sync_initial_fetch_timeout: float = 300.0
    sync_reconnect_max_attempts: int = 5

    # ========== 日志配置 ==========
    log_level: str = "INFO"
    log_file: str = ""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",  # 忽略未定义的环境变量
    )

    @field_validator("imap_secure", mode="before")
    @classmethod
    def _parse_secure(cls, value):
        """只有 "false" 关闭 TLS，其他任何值都视为开启"""
        if isinstance(value, bool):
            return value
        return str(value).strip().lower() != "false"

    @field_validator("imap_port", mode="before")
    @classmethod
    def _empty_port(cls, value):
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @property
    def account_keys(self) -> List[str]:
        """账号键列表（保持配置顺序，去掉空项）"""
        return [key.strip() for key in self.imap_accounts.split(",") if key.strip()]

    @property
    def sync_lookback(self) -> timedelta:
        """首次同步回溯窗口"""
        return timedelta(days=self.sync_lookback_days)


# 全局配置实例（单例）
_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """
    获取配置实例（单例模式）

    Returns:
        Settings 实例
    """
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings
