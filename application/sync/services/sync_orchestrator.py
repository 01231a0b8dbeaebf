"""同步编排器 - 多账号并行启动与失败隔离"""

import asyncio
import logging
from datetime import datetime, timedelta, timezone
from typing import List, Optional

from domain.sync.repositories.account_repository import AccountRepository
from domain.sync.services.mail_session import MailSessionFactory
from application.sync.services.account_supervisor import AccountSupervisor
from application.sync.services.incremental_fetch import IncrementalFetchRoutine
from application.sync.services.sync_service import SyncService


class SyncOrchestrator(SyncService):
    """
    同步编排器实现

    使用 asyncio 为每个已配置账号并行启动一个 AccountSupervisor：
    - 并行启动所有账号（使用 asyncio.gather）
    - 单账号失败只记录日志，不影响其他账号
    - 编排器本身不重试失败的账号
    - 优雅停止
    """

    def __init__(
        self,
        account_repository: AccountRepository,
        session_factory: MailSessionFactory,
        routine: IncrementalFetchRoutine,
        lookback: timedelta = SyncService.DEFAULT_LOOKBACK,
        poll_interval: float = SyncService.DEFAULT_POLL_INTERVAL,
        fetch_timeout: float = SyncService.DEFAULT_FETCH_TIMEOUT,
        initial_fetch_timeout: float = SyncService.DEFAULT_INITIAL_FETCH_TIMEOUT,
        reconnect_max_attempts: int = SyncService.DEFAULT_RECONNECT_MAX_ATTEMPTS,
        logger: Optional[logging.Logger] = None,
    ):
        """
        初始化同步编排器

        Args:
            account_repository: 账号仓储
            session_factory: 会话工厂
            routine: 增量拉取例程（各账号共享，无状态）
            lookback: 首次同步回溯窗口，默认 30 天
            poll_interval: 兜底轮询间隔（秒），默认 15 秒
            fetch_timeout: 单次拉取超时（秒），默认 60 秒
            initial_fetch_timeout: 初始回溯同步的拉取超时（秒），默认 300 秒
            reconnect_max_attempts: 意外断开后的最大重连次数，默认 5
            logger: 可选的日志记录器
        """
        self._account_repository = account_repository
        self._session_factory = session_factory
        self._routine = routine
        self._lookback = lookback
        self._poll_interval = poll_interval
        self._fetch_timeout = fetch_timeout
        self._initial_fetch_timeout = initial_fetch_timeout
        self._reconnect_max_attempts = reconnect_max_attempts
        self._logger = logger or logging.getLogger(__name__)

        self._supervisors: List[AccountSupervisor] = []
        self._running = False

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def lookback(self) -> timedelta:
        return self._lookback

    @property
    def poll_interval(self) -> float:
        return self._poll_interval

    @property
    def fetch_timeout(self) -> float:
        return self._fetch_timeout

    @property
    def initial_fetch_timeout(self) -> float:
        return self._initial_fetch_timeout

    @property
    def supervisors(self) -> List[AccountSupervisor]:
        """已创建的监督器（只读副本）"""
        return list(self._supervisors)

    async def start(self) -> None:
        """
        启动所有账号的同步

        Raises:
            ConfigurationException: 账号配置缺失（启动期致命错误）
        """
        if self._running:
            self._logger.warning("Sync orchestrator already running")
            return

        accounts = self._account_repository.list_all()
        self._running = True

        if not accounts:
            self._logger.warning("No IMAP accounts configured, nothing to sync")
            return

        self._supervisors = [
            AccountSupervisor(
                account=account,
                session_factory=self._session_factory,
                routine=self._routine,
                lookback=self._lookback,
                poll_interval=self._poll_interval,
                fetch_timeout=self._fetch_timeout,
                initial_fetch_timeout=self._initial_fetch_timeout,
                reconnect_max_attempts=self._reconnect_max_attempts,
                logger=self._logger,
            )
            for account in accounts
        ]

        start = datetime.now(timezone.utc)
        self._logger.info(f"Starting IMAP sync for {len(accounts)} accounts")

        results = await asyncio.gather(
            *(self._start_supervisor(supervisor) for supervisor in self._supervisors),
            return_exceptions=True,
        )

        failed = sum(1 for result in results if isinstance(result, BaseException))
        duration = (datetime.now(timezone.utc) - start).total_seconds()
        self._logger.info(
            f"IMAP sync started: {len(results) - failed} ok, {failed} failed, "
            f"{duration:.2f}s"
        )

    async def stop(self) -> None:
        """停止所有账号的同步"""
        if not self._running:
            return
        self._running = False

        await asyncio.gather(
            *(supervisor.stop() for supervisor in self._supervisors),
            return_exceptions=True,
        )
        self._logger.info("IMAP sync stopped")

    async def _start_supervisor(self, supervisor: AccountSupervisor) -> None:
        """启动单个监督器，失败时记录账号上下文后重新抛出"""
        try:
            await supervisor.start()
        except Exception as e:
            self._logger.error(
                f"[IMAP][{supervisor.account.display_name}] Failed to connect or sync: {e}"
            )
            raise
