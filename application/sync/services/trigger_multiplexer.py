"""触发复用器 - 推送通知与定时兜底共用一个单飞拉取入口"""

import asyncio
import logging
from typing import Optional, Set

from domain.sync.entities.watermark import Watermark
from domain.sync.services.mail_session import FetchError, MailSession
from domain.sync.value_objects.account_descriptor import AccountDescriptor
from domain.sync.value_objects.mailbox_notification import MailboxNotification
from application.sync.services.incremental_fetch import IncrementalFetchRoutine


class TriggerMultiplexer:
    """
    触发复用器

    把两个异步触发源串行化为增量拉取调用：
    - 推送触发：会话上报的邮箱变更通知（路径不匹配的直接丢弃）
    - 兜底触发：固定间隔的定时器，会话不可用时空转

    两者都汇入 attempt()：已有拉取在进行时直接丢弃（不排队、不合并），
    否则执行一次拉取，无论成功、失败还是超时都会释放占用标志。
    """

    def __init__(
        self,
        account: AccountDescriptor,
        session: MailSession,
        watermark: Watermark,
        routine: IncrementalFetchRoutine,
        poll_interval: float = 15.0,
        fetch_timeout: float = 60.0,
        logger: Optional[logging.Logger] = None,
    ):
        """
        初始化触发复用器

        Args:
            account: 账号描述
            session: 该账号的会话
            watermark: 该账号的水位
            routine: 增量拉取例程
            poll_interval: 兜底轮询间隔（秒）
            fetch_timeout: 单次拉取超时（秒）
            logger: 可选的日志记录器
        """
        self._account = account
        self._session = session
        self._watermark = watermark
        self._routine = routine
        self._poll_interval = poll_interval
        self._fetch_timeout = fetch_timeout
        self._logger = logger or logging.getLogger(__name__)

        self._timer_task: Optional[asyncio.Task] = None
        self._attempts: Set[asyncio.Task] = set()

    @property
    def is_running(self) -> bool:
        """兜底定时器是否在运行"""
        return self._timer_task is not None and not self._timer_task.done()

    @property
    def poll_interval(self) -> float:
        return self._poll_interval

    @property
    def fetch_timeout(self) -> float:
        return self._fetch_timeout

    @property
    def session(self) -> MailSession:
        return self._session

    def rebind(self, session: MailSession) -> None:
        """
        切换到新的会话（重连后调用）

        Args:
            session: 新会话
        """
        self._session = session

    def on_notification(self, notification: MailboxNotification) -> None:
        """
        推送触发入口

        Args:
            notification: 邮箱变更通知
        """
        label = self._account.display_name

        if notification.path != self._account.mailbox:
            self._logger.debug(
                f"[IMAP][{label}] Ignoring exists event for {notification.path!r}"
            )
            return

        self._logger.info(
            f"[IMAP][{label}] exists event: prevCount={notification.prev_count} "
            f"-> count={notification.count}"
        )
        self._schedule()

    def start(self) -> None:
        """启动兜底定时器（需在事件循环中调用）"""
        if self.is_running:
            return
        self._timer_task = asyncio.create_task(self._fallback_loop())

    async def stop(self) -> None:
        """停止定时器并取消进行中的拉取"""
        tasks = list(self._attempts)
        if self._timer_task is not None:
            tasks.append(self._timer_task)
            self._timer_task = None

        for task in tasks:
            task.cancel()
        for task in tasks:
            try:
                await task
            except asyncio.CancelledError:
                pass

        self._attempts.clear()

    async def attempt(self, timeout: Optional[float] = None) -> bool:
        """
        单飞拉取入口

        Args:
            timeout: 本次拉取超时（秒），为空时使用 fetch_timeout

        Returns:
            True 如果本次执行了拉取；False 如果因已有拉取在进行而被丢弃
        """
        label = self._account.display_name
        timeout = timeout or self._fetch_timeout

        if not self._watermark.try_begin():
            self._logger.debug(f"[IMAP][{label}] Sync already in flight, trigger dropped")
            return False

        try:
            await asyncio.wait_for(
                self._routine.run(self._account, self._session, self._watermark),
                timeout=timeout,
            )
        except asyncio.TimeoutError:
            self._logger.warning(
                f"[IMAP][{label}] syncSince() timed out after {timeout}s"
            )
        except FetchError as e:
            self._logger.error(f"[IMAP][{label}] Error during syncSince(): {e}")
        except Exception as e:
            self._logger.exception(f"[IMAP][{label}] Unexpected error during syncSince(): {e}")
        finally:
            self._watermark.finish()

        return True

    def _schedule(self) -> None:
        """在后台发起一次 attempt()"""
        task = asyncio.create_task(self.attempt())
        self._attempts.add(task)
        task.add_done_callback(self._attempts.discard)

    async def _fallback_loop(self) -> None:
        """兜底定时器主循环（用于不发送 EXISTS/IDLE 的服务器）"""
        while True:
            await asyncio.sleep(self._poll_interval)
            if not self._session.is_usable:
                continue
            self._schedule()
