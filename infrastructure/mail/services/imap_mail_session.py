"""IMAP 邮箱会话实现"""

import asyncio
import logging
import ssl
from contextlib import suppress
from datetime import datetime
from typing import List, Optional

import aioimaplib

from domain.common.base_event import DomainEvent
from domain.sync.events.session_events import SessionClosed, SessionErrored
from domain.sync.services.mail_session import (
    FetchError,
    MailboxError,
    MailConnectionError,
    MailSession,
    NotificationHandler,
    SessionEventHandler,
)
from domain.sync.value_objects.account_descriptor import AccountDescriptor
from domain.sync.value_objects.mailbox_notification import MailboxNotification
from domain.sync.value_objects.message_envelope import MessageEnvelope
from infrastructure.mail.services.imap_codec import (
    FETCH_ITEMS,
    format_since_criterion,
    parse_exists,
    parse_fetch_response,
    parse_search_uids,
    parse_select_response,
)


class ImapMailSession(MailSession):
    """
    IMAP 邮箱会话实现

    使用 aioimaplib 实现单账号的长连接会话，支持：
    - SSL/TLS 连接（secure=True 时连接即握手）
    - SELECT 目标邮箱并记录 EXISTS 基线
    - UID SEARCH SINCE + UID FETCH 增量拉取元数据
    - IDLE 推送监听（服务器不支持时只依赖兜底轮询）
    - 意外断开时发布 SessionClosed 事件

    同一连接上 IDLE 与 FETCH 不能并发：所有命令通过 _lock 串行，
    拉取前先发送 DONE 让出正在进行的 IDLE。
    """

    DEFAULT_TIMEOUT = 30  # 秒
    IDLE_TIMEOUT = 29 * 60  # RFC 2177 建议 29 分钟内续期
    PUSH_WAIT = 1.0  # IDLE 中等待推送的单次时长（秒）

    def __init__(
        self,
        account: AccountDescriptor,
        timeout: float = DEFAULT_TIMEOUT,
        idle_timeout: float = IDLE_TIMEOUT,
        logger: Optional[logging.Logger] = None,
    ):
        """
        初始化 IMAP 会话

        Args:
            account: 账号描述
            timeout: 单条命令超时（秒）
            idle_timeout: 单轮 IDLE 的最长时间（秒）
            logger: 可选的日志记录器
        """
        self._account = account
        self._timeout = timeout
        self._idle_timeout = idle_timeout
        self._logger = logger or logging.getLogger(__name__)

        self._client: Optional[aioimaplib.IMAP4] = None
        self._lock = asyncio.Lock()
        self._handlers: List[SessionEventHandler] = []

        self._connected = False
        self._closed = False
        self._mailbox: Optional[str] = None
        self._exists = 0

        self._idle_task: Optional[asyncio.Task] = None
        self._idling = False
        self._done_sent = False
        self._idle_starting = False
        self._done_requested = False

    @property
    def account(self) -> AccountDescriptor:
        return self._account

    @property
    def is_usable(self) -> bool:
        return (
            self._client is not None
            and self._connected
            and not self._closed
            and self._mailbox is not None
        )

    @property
    def is_listening(self) -> bool:
        return self._idle_task is not None and not self._idle_task.done()

    def subscribe(self, handler: SessionEventHandler) -> None:
        self._handlers.append(handler)

    async def connect(self) -> None:
        """
        建立连接并登录

        Raises:
            MailConnectionError: 连接失败或认证失败
        """
        host = self._account.host
        port = self._account.port
        label = self._account.display_name

        ssl_context = ssl.create_default_context() if self._account.secure else None

        try:
            self._logger.debug(f"[IMAP][{label}] Connecting to {self._account.connection_string}")
            self._client = aioimaplib.IMAP4(
                host=host,
                port=port,
                timeout=self._timeout,
                conn_lost_cb=self._on_connection_lost,
                ssl_context=ssl_context,
            )
            await self._client.wait_hello_from_server()
        except Exception as e:
            raise MailConnectionError(host=host, port=port, message=str(e) or type(e).__name__)

        try:
            self._logger.debug(f"[IMAP][{label}] Authenticating as {self._account.username}")
            response = await self._client.login(self._account.username, self._account.password)
        except Exception as e:
            raise MailConnectionError(host=host, port=port, message=str(e) or type(e).__name__)

        if response.result != "OK":
            raise MailConnectionError(
                host=host,
                port=port,
                message=f"Authentication failed for {self._account.username}: "
                f"{_join_lines(response.lines)}",
            )

        self._connected = True
        self._closed = False

        capabilities = sorted(getattr(self._client.protocol, "capabilities", set()) or [])
        self._logger.info(f"[IMAP][{label}] Server capabilities: {', '.join(capabilities)}")

    async def open_mailbox(self, name: str) -> None:
        """
        选择目标邮箱

        Raises:
            MailboxError: 未连接、目录不存在或不可选择
        """
        label = self._account.display_name

        if self._client is None or not self._connected:
            raise MailboxError(mailbox=name, message="session is not connected")

        async with self._lock:
            try:
                response = await self._client.select(_quote_mailbox(name))
            except Exception as e:
                raise MailboxError(mailbox=name, message=str(e) or type(e).__name__)

        if response.result != "OK":
            raise MailboxError(mailbox=name, message=_join_lines(response.lines))

        exists, uidnext = parse_select_response(response.lines)
        self._mailbox = name
        self._exists = exists

        self._logger.info(
            f"[IMAP][{label}] Mailbox opened: path={name}, exists={exists}, uidNext={uidnext}"
        )

    async def fetch_since(self, since: datetime) -> List[MessageEnvelope]:
        """
        拉取到达时间不早于 since 的邮件元数据

        Raises:
            FetchError: 会话不可用或协议错误
        """
        if not self.is_usable:
            raise FetchError(account_id=self._account.id, message="session is not usable")

        self._interrupt_idle()

        async with self._lock:
            try:
                search = await self._client.uid_search(format_since_criterion(since), charset=None)
                if search.result != "OK":
                    raise FetchError(
                        account_id=self._account.id,
                        message=f"UID SEARCH failed: {_join_lines(search.lines)}",
                    )

                uids = parse_search_uids(search.lines)
                if not uids:
                    return []

                fetch = await self._client.uid("fetch", ",".join(str(uid) for uid in uids), FETCH_ITEMS)
                if fetch.result != "OK":
                    raise FetchError(
                        account_id=self._account.id,
                        message=f"UID FETCH failed: {_join_lines(fetch.lines)}",
                    )
            except FetchError:
                raise
            except Exception as e:
                raise FetchError(account_id=self._account.id, message=str(e) or type(e).__name__)

        envelopes = parse_fetch_response(self._account.id, fetch.lines)
        # SINCE 只精确到日期，这里按 INTERNALDATE 精确过滤（含边界）
        return [envelope for envelope in envelopes if envelope.arrival_time >= since]

    async def listen(self, on_notification: NotificationHandler) -> None:
        """开始 IDLE 监听；服务器不支持 IDLE 时直接返回"""
        label = self._account.display_name

        if not self.is_usable:
            self._logger.warning(f"[IMAP][{label}] listen() skipped; client not usable")
            return

        if self.is_listening:
            return

        if not self._client.has_capability("IDLE"):
            self._logger.info(
                f"[IMAP][{label}] Server does not support IDLE; relying on fallback polling"
            )
            return

        self._idle_task = asyncio.create_task(self._idle_loop(on_notification))

    async def close(self) -> None:
        """停止 IDLE 并登出（幂等，不发布 SessionClosed）"""
        if self._closed:
            return
        self._closed = True
        was_connected = self._connected
        self._connected = False

        if self._idle_task is not None:
            self._idle_task.cancel()
            with suppress(asyncio.CancelledError):
                await self._idle_task
            self._idle_task = None

        if self._client is not None and was_connected:
            try:
                await asyncio.wait_for(self._client.logout(), timeout=self._timeout)
            except Exception as e:
                self._logger.debug(f"Error during logout: {e}")
        elif self._client is not None:
            # 未完成登录，直接关闭底层连接
            transport = getattr(self._client.protocol, "transport", None)
            if transport is not None:
                transport.close()

        self._mailbox = None

    # ------------------------------------------------------------------ IDLE

    async def _idle_loop(self, on_notification: NotificationHandler) -> None:
        """IDLE 主循环：每轮持锁，拉取请求到来时让出"""
        while self.is_usable:
            try:
                async with self._lock:
                    if not self.is_usable:
                        break
                    await self._idle_once(on_notification)
            except asyncio.CancelledError:
                raise
            except Exception as e:
                if not self.is_usable:
                    break
                self._publish(SessionErrored(aggregate_id=self._account.id, error=e))
                await asyncio.sleep(self.PUSH_WAIT)

    async def _idle_once(self, on_notification: NotificationHandler) -> None:
        self._done_requested = False
        self._idle_starting = True
        try:
            idle = await self._client.idle_start(timeout=self._idle_timeout)
        finally:
            self._idle_starting = False
        self._idling = True
        self._done_sent = False
        # 等待 IDLE 确认期间有拉取请求，确认后立即结束本轮
        if self._done_requested:
            self._done_requested = False
            self._done_sent = True
            self._client.idle_done()
        try:
            while self._client.has_pending_idle():
                try:
                    push = await self._client.wait_server_push(timeout=self.PUSH_WAIT)
                except asyncio.TimeoutError:
                    continue
                if push == aioimaplib.STOP_WAIT_SERVER_PUSH:
                    break
                self._dispatch_push(push, on_notification)
        finally:
            self._idling = False
            if not self._done_sent and self._client.has_pending_idle():
                self._done_sent = True
                self._client.idle_done()
            with suppress(Exception):
                await asyncio.wait_for(idle, timeout=self._timeout)

    def _interrupt_idle(self) -> None:
        """发送 DONE 结束当前 IDLE，让拉取尽快拿到连接"""
        if self._idling and not self._done_sent:
            self._done_sent = True
            self._client.idle_done()
        elif self._idle_starting:
            self._done_requested = True

    def _dispatch_push(self, push, on_notification: NotificationHandler) -> None:
        lines = push if isinstance(push, (list, tuple)) else [push]
        for line in lines:
            count = parse_exists(line)
            if count is None:
                continue
            previous = self._exists
            self._exists = count
            on_notification(
                MailboxNotification(path=self._mailbox, count=count, prev_count=previous)
            )

    # ---------------------------------------------------------------- events

    def _on_connection_lost(self, exc: Optional[Exception]) -> None:
        """aioimaplib 连接断开回调"""
        self._connected = False
        if self._closed:
            return
        self._publish(
            SessionClosed(aggregate_id=self._account.id, reason=str(exc) if exc else None)
        )

    def _publish(self, event: DomainEvent) -> None:
        for handler in list(self._handlers):
            try:
                handler(event)
            except Exception as e:
                self._logger.error(f"Session event handler failed for {event.event_type}: {e}")


def _quote_mailbox(name: str) -> str:
    if " " in name and not name.startswith('"'):
        return f'"{name}"'
    return name


def _join_lines(lines) -> str:
    return " ".join(
        bytes(line).decode("utf-8", errors="replace") if isinstance(line, (bytes, bytearray)) else str(line)
        for line in lines or []
    )
