"""邮件同步服务接口"""

from abc import ABC, abstractmethod
from datetime import timedelta


class SyncService(ABC):
    """
    邮件同步服务接口

    定义多账号同步引擎的契约，负责：
    - 为每个账号并行启动一个监督器
    - 隔离单账号失败
    - 首次回溯同步 + 推送触发 + 定时兜底
    - 优雅启动和停止
    """

    DEFAULT_LOOKBACK: timedelta = timedelta(days=30)  # 首次同步回溯窗口
    DEFAULT_POLL_INTERVAL: float = 15.0  # 兜底轮询间隔（秒）
    DEFAULT_FETCH_TIMEOUT: float = 60.0  # 单次拉取超时（秒）
    DEFAULT_INITIAL_FETCH_TIMEOUT: float = 300.0  # 初始回溯同步的拉取超时（秒）
    DEFAULT_RECONNECT_MAX_ATTEMPTS: int = 5  # 意外断开后的最大重连次数

    @property
    @abstractmethod
    def is_running(self) -> bool:
        """
        检查同步服务是否正在运行

        Returns:
            True 如果已启动且未停止
        """
        raise NotImplementedError

    @property
    @abstractmethod
    def lookback(self) -> timedelta:
        """首次同步回溯窗口"""
        raise NotImplementedError

    @property
    @abstractmethod
    def poll_interval(self) -> float:
        """兜底轮询间隔（秒）"""
        raise NotImplementedError

    @property
    @abstractmethod
    def fetch_timeout(self) -> float:
        """单次拉取超时（秒）"""
        raise NotImplementedError

    @abstractmethod
    async def start(self) -> None:
        """
        启动同步服务

        并行启动所有账号，等待每个账号完成初始化阶段（或失败）后返回。
        单个账号失败只记录日志，不会中断其他账号。
        """
        raise NotImplementedError

    @abstractmethod
    async def stop(self) -> None:
        """
        停止同步服务

        取消所有定时器与监听任务并关闭会话。未运行时调用无效。
        """
        raise NotImplementedError
