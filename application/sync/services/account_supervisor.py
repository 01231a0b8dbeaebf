"""账号监督器"""

import asyncio
import logging
from datetime import timedelta
from enum import Enum
from typing import Optional

from domain.common.base_event import DomainEvent
from domain.sync.entities.watermark import Watermark
from domain.sync.events.session_events import SessionClosed, SessionErrored
from domain.sync.services.mail_session import MailSession, MailSessionFactory
from domain.sync.value_objects.account_descriptor import AccountDescriptor
from application.sync.services.incremental_fetch import (
    Clock,
    IncrementalFetchRoutine,
    utcnow,
)
from application.sync.services.trigger_multiplexer import TriggerMultiplexer


class SupervisorState(str, Enum):
    """账号监督器状态"""

    PENDING = "pending"
    """尚未启动"""

    RUNNING = "running"
    """初始同步完成，正在监听与轮询"""

    RECONNECTING = "reconnecting"
    """会话意外断开，正在退避重连"""

    DISCONNECTED = "disconnected"
    """重连次数耗尽，账号空闲"""

    FAILED = "failed"
    """初始化阶段（连接或打开邮箱）失败"""

    STOPPED = "stopped"
    """已主动停止"""


class AccountSupervisor:
    """
    账号监督器

    每个账号一个，独立于其他账号运行。持有该账号的会话、水位和
    触发复用器，启动顺序：

    1. 连接会话
    2. 打开目标邮箱
    3. 无条件执行一次覆盖回溯窗口的初始同步
    4. 开始监听推送通知
    5. 启动兜底定时器

    连接或打开邮箱失败会向上抛出，由编排器记录，不影响其他账号。
    运行期间会话意外断开时，按指数退避重连，水位保持不变。
    """

    RECONNECT_BASE_DELAY = 1.0  # 秒
    RECONNECT_MAX_DELAY = 30.0  # 秒

    def __init__(
        self,
        account: AccountDescriptor,
        session_factory: MailSessionFactory,
        routine: IncrementalFetchRoutine,
        lookback: timedelta = timedelta(days=30),
        poll_interval: float = 15.0,
        fetch_timeout: float = 60.0,
        initial_fetch_timeout: float = 300.0,
        reconnect_max_attempts: int = 5,
        clock: Clock = utcnow,
        logger: Optional[logging.Logger] = None,
    ):
        """
        初始化账号监督器

        Args:
            account: 账号描述
            session_factory: 会话工厂，每次（重）连接创建一个新会话
            routine: 增量拉取例程
            lookback: 首次同步回溯窗口
            poll_interval: 兜底轮询间隔（秒）
            fetch_timeout: 单次拉取超时（秒）
            initial_fetch_timeout: 初始回溯同步的拉取超时（秒）
            reconnect_max_attempts: 意外断开后的最大重连次数，0 表示不重连
            clock: 时钟（测试时可替换）
            logger: 可选的日志记录器
        """
        self._account = account
        self._session_factory = session_factory
        self._routine = routine
        self._lookback = lookback
        self._poll_interval = poll_interval
        self._fetch_timeout = fetch_timeout
        self._initial_fetch_timeout = initial_fetch_timeout
        self._reconnect_max_attempts = reconnect_max_attempts
        self._clock = clock
        self._logger = logger or logging.getLogger(__name__)

        self._state = SupervisorState.PENDING
        self._session: Optional[MailSession] = None
        self._watermark: Optional[Watermark] = None
        self._multiplexer: Optional[TriggerMultiplexer] = None
        self._reconnect_task: Optional[asyncio.Task] = None
        self._closed_during_setup = False

    @property
    def account(self) -> AccountDescriptor:
        return self._account

    @property
    def state(self) -> SupervisorState:
        return self._state

    @property
    def session(self) -> Optional[MailSession]:
        return self._session

    @property
    def watermark(self) -> Optional[Watermark]:
        return self._watermark

    @property
    def multiplexer(self) -> Optional[TriggerMultiplexer]:
        return self._multiplexer

    async def start(self) -> None:
        """
        执行初始化阶段并进入监听/轮询

        Raises:
            MailConnectionError: 连接或认证失败
            MailboxError: 目标邮箱无效
        """
        label = self._account.display_name

        self._watermark = Watermark.starting_at(
            self._account.id, self._clock(), self._lookback
        )

        try:
            self._session = await self._open_session()
        except Exception:
            self._state = SupervisorState.FAILED
            raise

        self._multiplexer = TriggerMultiplexer(
            account=self._account,
            session=self._session,
            watermark=self._watermark,
            routine=self._routine,
            poll_interval=self._poll_interval,
            fetch_timeout=self._fetch_timeout,
            logger=self._logger,
        )

        # 初始回溯同步
        await self._multiplexer.attempt(timeout=self._initial_fetch_timeout)

        await self._session.listen(self._multiplexer.on_notification)
        self._multiplexer.start()
        self._state = SupervisorState.RUNNING

        self._logger.info(
            f"[IMAP][{label}] Initial sync done. Listening for changes "
            f"(IDLE / exists) and starting fallback polling..."
        )

        # 初始化期间会话已断开，进入重连流程
        if self._closed_during_setup or not self._session.is_usable:
            self._closed_during_setup = False
            self._schedule_reconnect()

    async def stop(self) -> None:
        """停止定时器、重连任务并关闭会话"""
        if self._state == SupervisorState.STOPPED:
            return
        self._state = SupervisorState.STOPPED

        task, self._reconnect_task = self._reconnect_task, None
        if task is not None:
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass

        if self._multiplexer is not None:
            await self._multiplexer.stop()

        if self._session is not None:
            await self._session.close()

        self._logger.info(f"[IMAP][{self._account.display_name}] Supervisor stopped")

    async def _open_session(self) -> MailSession:
        """创建会话、连接并打开邮箱；失败时关闭会话后重新抛出"""
        label = self._account.display_name
        session = self._session_factory(self._account)
        session.subscribe(self._on_session_event)

        try:
            await session.connect()
            self._logger.info(
                f'[IMAP][{label}] Connected. Opening mailbox "{self._account.mailbox}"'
            )
            await session.open_mailbox(self._account.mailbox)
        except (Exception, asyncio.CancelledError):
            await session.close()
            raise

        return session

    def _on_session_event(self, event: DomainEvent) -> None:
        """会话诊断事件回调"""
        label = self._account.display_name

        if isinstance(event, SessionErrored):
            self._logger.error(f"[IMAP][{label}] Error: {event.error}")
            return

        if isinstance(event, SessionClosed):
            self._logger.warning(f"[IMAP][{label}] Connection closed")
            if self._state == SupervisorState.PENDING:
                self._closed_during_setup = True
                return
            if self._state != SupervisorState.RUNNING:
                return
            self._schedule_reconnect()

    def _schedule_reconnect(self) -> None:
        """进入重连流程；不允许重连时直接标记为断开"""
        if self._reconnect_max_attempts <= 0:
            self._state = SupervisorState.DISCONNECTED
            return
        self._state = SupervisorState.RECONNECTING
        self._reconnect_task = asyncio.create_task(self._reconnect())

    def _backoff_delay(self, attempt: int) -> float:
        """第 attempt 次（从 0 开始）重连前的等待秒数：1s, 2s, 4s ... 上限 30s"""
        return min(self.RECONNECT_BASE_DELAY * (2**attempt), self.RECONNECT_MAX_DELAY)

    async def _reconnect(self) -> None:
        """指数退避重连，成功后沿用原有水位"""
        try:
            await self._reconnect_with_backoff()
        finally:
            if self._reconnect_task is asyncio.current_task():
                self._reconnect_task = None

    async def _reconnect_with_backoff(self) -> None:
        label = self._account.display_name

        if self._session is not None:
            await self._session.close()

        for attempt in range(self._reconnect_max_attempts):
            delay = self._backoff_delay(attempt)
            self._logger.warning(
                f"[IMAP][{label}] Reconnect attempt {attempt + 1}/"
                f"{self._reconnect_max_attempts} in {delay}s"
            )
            await asyncio.sleep(delay)

            try:
                session = await self._open_session()
            except Exception as e:
                self._logger.warning(f"[IMAP][{label}] Reconnect failed: {e}")
                continue

            self._session = session
            self._multiplexer.rebind(session)
            self._state = SupervisorState.RUNNING

            await session.listen(self._multiplexer.on_notification)
            self._logger.info(
                f"[IMAP][{label}] Reconnected; resuming from "
                f"{self._watermark.last_sync_time.isoformat()}"
            )
            await self._multiplexer.attempt()
            return

        self._state = SupervisorState.DISCONNECTED
        self._logger.error(
            f"[IMAP][{label}] Reconnect failed after "
            f"{self._reconnect_max_attempts} attempts; account is idle"
        )
