"""ImapMailSession 单元测试（模拟 aioimaplib 客户端）"""

import asyncio
from collections import namedtuple
from datetime import datetime, timezone
from unittest.mock import AsyncMock, Mock, patch

import aioimaplib
import pytest

from domain.sync.events.session_events import SessionClosed
from domain.sync.services.mail_session import FetchError, MailboxError, MailConnectionError
from domain.sync.value_objects.account_descriptor import AccountDescriptor
from domain.sync.value_objects.mailbox_notification import MailboxNotification
from infrastructure.mail.services.imap_mail_session import ImapMailSession

Response = namedtuple("Response", "result lines")

IMAP4_PATH = "infrastructure.mail.services.imap_mail_session.aioimaplib.IMAP4"
SINCE = datetime(2024, 5, 1, 12, 0, 0, tzinfo=timezone.utc)

FETCH_LINES = [
    b'1 FETCH (UID 11 FLAGS (\\Seen) INTERNALDATE "01-May-2024 12:00:05 +0000" '
    b"RFC822.SIZE 1234 BODY[HEADER.FIELDS (FROM SUBJECT)] {51}",
    bytearray(b"From: Alice <alice@example.com>\r\nSubject: Hello\r\n\r\n"),
    b")",
    b'2 FETCH (UID 12 FLAGS () INTERNALDATE "01-May-2024 11:59:59 +0000" '
    b"RFC822.SIZE 10 BODY[HEADER.FIELDS (FROM SUBJECT)] {2}",
    bytearray(b"\r\n"),
    b")",
    b"UID FETCH completed",
]


@pytest.fixture
def account():
    return AccountDescriptor(
        id="account1",
        label="Inbox 1",
        host="imap.example.com",
        port=993,
        username="user@example.com",
        password="secret",
    )


@pytest.fixture
def client():
    """模拟 aioimaplib.IMAP4 客户端"""
    client = Mock()
    client.wait_hello_from_server = AsyncMock()
    client.login = AsyncMock(return_value=Response("OK", [b"LOGIN completed"]))
    client.select = AsyncMock(
        return_value=Response(
            "OK",
            [b"4 EXISTS", b"OK [UIDNEXT 10] Predicted next UID", b"[READ-WRITE] SELECT completed"],
        )
    )
    client.uid_search = AsyncMock(return_value=Response("OK", [b"11 12", b"SEARCH completed"]))
    client.uid = AsyncMock(return_value=Response("OK", FETCH_LINES))
    client.logout = AsyncMock(return_value=Response("OK", [b"LOGOUT completed"]))
    client.has_capability = Mock(return_value=True)
    client.has_pending_idle = Mock(return_value=True)
    client.protocol.capabilities = {"IMAP4REV1", "IDLE"}
    return client


@pytest.fixture
def imap4(client):
    with patch(IMAP4_PATH, return_value=client) as mock_cls:
        yield mock_cls


async def open_session(account) -> ImapMailSession:
    session = ImapMailSession(account, timeout=1)
    await session.connect()
    await session.open_mailbox("INBOX")
    return session


def install_idle(client, pushes, ack=None):
    """
    模拟 IDLE：依次返回 pushes 中的推送，之后阻塞直到 idle_done()

    ack 不为空时，idle_start 等到 ack 置位才返回（模拟服务器的 "+ idling" 确认）

    Returns:
        asyncio.Event，在收到 DONE 时被置位
    """
    done = asyncio.Event()
    loop = asyncio.get_running_loop()

    async def idle_start(timeout=None):
        if ack is not None:
            await ack.wait()
        future = loop.create_future()
        future.set_result(Response("OK", [b"IDLE terminated"]))
        return future

    async def wait_server_push(timeout=None):
        if pushes:
            return pushes.pop(0)
        await asyncio.wait_for(done.wait(), timeout)
        done.clear()
        return aioimaplib.STOP_WAIT_SERVER_PUSH

    client.idle_start = AsyncMock(side_effect=idle_start)
    client.wait_server_push = AsyncMock(side_effect=wait_server_push)
    client.idle_done = Mock(side_effect=done.set)
    return done


class TestConnect:
    """连接与认证测试"""

    @pytest.mark.asyncio
    async def test_connect_uses_tls_and_logs_in(self, account, client, imap4):
        """测试 secure=True 时使用 TLS 连接并登录"""
        session = ImapMailSession(account)

        await session.connect()

        kwargs = imap4.call_args.kwargs
        assert kwargs["host"] == "imap.example.com"
        assert kwargs["port"] == 993
        assert kwargs["ssl_context"] is not None
        client.login.assert_awaited_once_with("user@example.com", "secret")
        assert not session.is_usable  # 尚未打开邮箱

    @pytest.mark.asyncio
    async def test_plain_connection_without_tls(self, account, client, imap4):
        """测试 secure=False 时不使用 TLS"""
        plain = AccountDescriptor(
            id="account1", label="Inbox 1", host="localhost", port=143,
            username="user", password="secret", secure=False,
        )

        await ImapMailSession(plain).connect()

        assert imap4.call_args.kwargs["ssl_context"] is None

    @pytest.mark.asyncio
    async def test_login_rejected(self, account, client, imap4):
        """测试认证失败"""
        client.login.return_value = Response("NO", [b"[AUTHENTICATIONFAILED] Invalid credentials"])

        with pytest.raises(MailConnectionError) as exc_info:
            await ImapMailSession(account).connect()

        assert exc_info.value.host == "imap.example.com"
        assert "AUTHENTICATIONFAILED" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_transport_failure(self, account, client, imap4):
        """测试网络错误"""
        client.wait_hello_from_server.side_effect = OSError("Connection refused")

        with pytest.raises(MailConnectionError) as exc_info:
            await ImapMailSession(account).connect()

        assert exc_info.value.port == 993


class TestOpenMailbox:
    """打开邮箱测试"""

    @pytest.mark.asyncio
    async def test_open_mailbox_makes_session_usable(self, account, client, imap4):
        """测试 SELECT 成功后会话可用"""
        session = await open_session(account)

        client.select.assert_awaited_once_with("INBOX")
        assert session.is_usable

    @pytest.mark.asyncio
    async def test_select_rejected(self, account, client, imap4):
        """测试目录不存在"""
        client.select.return_value = Response("NO", [b"Mailbox doesn't exist: Nope"])
        session = ImapMailSession(account)
        await session.connect()

        with pytest.raises(MailboxError):
            await session.open_mailbox("Nope")

        assert not session.is_usable

    @pytest.mark.asyncio
    async def test_open_mailbox_before_connect(self, account):
        """测试未连接时打开邮箱报错"""
        with pytest.raises(MailboxError):
            await ImapMailSession(account).open_mailbox("INBOX")


class TestFetchSince:
    """增量拉取测试"""

    @pytest.mark.asyncio
    async def test_fetch_filters_by_arrival_time(self, account, client, imap4):
        """测试按天查询后按 INTERNALDATE 精确过滤"""
        session = await open_session(account)

        envelopes = await session.fetch_since(SINCE)

        client.uid_search.assert_awaited_once_with("SINCE 30-Apr-2024", charset=None)
        assert client.uid.await_args.args[:2] == ("fetch", "11,12")
        assert [e.uid for e in envelopes] == [11]
        assert envelopes[0].subject == "Hello"

    @pytest.mark.asyncio
    async def test_boundary_is_inclusive(self, account, client, imap4):
        """测试到达时间等于起点的邮件被包含"""
        session = await open_session(account)

        envelopes = await session.fetch_since(datetime(2024, 5, 1, 11, 59, 59, tzinfo=timezone.utc))

        assert [e.uid for e in envelopes] == [11, 12]

    @pytest.mark.asyncio
    async def test_no_matching_uids(self, account, client, imap4):
        """测试无匹配时不发送 FETCH"""
        client.uid_search.return_value = Response("OK", [b"", b"SEARCH completed"])
        session = await open_session(account)

        assert await session.fetch_since(SINCE) == []
        client.uid.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_search_rejected(self, account, client, imap4):
        """测试 SEARCH 失败"""
        client.uid_search.return_value = Response("BAD", [b"Could not parse command"])
        session = await open_session(account)

        with pytest.raises(FetchError):
            await session.fetch_since(SINCE)

    @pytest.mark.asyncio
    async def test_protocol_exception_wrapped(self, account, client, imap4):
        """测试协议异常被包装为 FetchError"""
        client.uid.side_effect = asyncio.TimeoutError()
        session = await open_session(account)

        with pytest.raises(FetchError) as exc_info:
            await session.fetch_since(SINCE)

        assert exc_info.value.account_id == "account1"

    @pytest.mark.asyncio
    async def test_fetch_when_not_usable(self, account):
        """测试会话不可用时报错"""
        with pytest.raises(FetchError):
            await ImapMailSession(account).fetch_since(SINCE)


class TestListen:
    """IDLE 监听测试"""

    @pytest.mark.asyncio
    async def test_exists_push_emits_notification(self, account, client, imap4):
        """测试 EXISTS 推送转为邮箱变更通知"""
        install_idle(client, [[b"5 EXISTS"]])
        session = await open_session(account)
        received = []

        await session.listen(received.append)
        for _ in range(50):
            if received:
                break
            await asyncio.sleep(0.01)

        assert received == [MailboxNotification(path="INBOX", count=5, prev_count=4)]
        assert session.is_listening
        await session.close()
        assert not session.is_listening

    @pytest.mark.asyncio
    async def test_fetch_interrupts_idle(self, account, client, imap4):
        """测试拉取时先结束 IDLE 再发送命令"""
        install_idle(client, [])
        session = await open_session(account)
        await session.listen(lambda notification: None)
        for _ in range(50):
            if client.wait_server_push.await_count:
                break
            await asyncio.sleep(0.01)

        envelopes = await asyncio.wait_for(session.fetch_since(SINCE), timeout=2)

        client.idle_done.assert_called()
        assert [e.uid for e in envelopes] == [11]
        await session.close()

    @pytest.mark.asyncio
    async def test_fetch_during_idle_acknowledgement(self, account, client, imap4):
        """测试 IDLE 尚未确认时到来的拉取在确认后立即结束 IDLE"""
        ack = asyncio.Event()
        install_idle(client, [], ack=ack)
        session = await open_session(account)
        await session.listen(lambda notification: None)
        for _ in range(50):
            if client.idle_start.await_count:
                break
            await asyncio.sleep(0.01)

        task = asyncio.create_task(session.fetch_since(SINCE))
        await asyncio.sleep(0.05)
        client.idle_done.assert_not_called()
        ack.set()
        envelopes = await asyncio.wait_for(task, timeout=2)

        client.idle_done.assert_called_once()
        assert [e.uid for e in envelopes] == [11]
        await session.close()

    @pytest.mark.asyncio
    async def test_server_without_idle(self, account, client, imap4):
        """测试服务器不支持 IDLE 时不启动监听"""
        client.has_capability.return_value = False
        session = await open_session(account)

        await session.listen(lambda notification: None)

        assert not session.is_listening


class TestCloseAndEvents:
    """关闭与断开事件测试"""

    @pytest.mark.asyncio
    async def test_close_logs_out_once(self, account, client, imap4):
        """测试关闭时登出且幂等"""
        session = await open_session(account)

        await session.close()
        await session.close()

        client.logout.assert_awaited_once()
        assert not session.is_usable

    @pytest.mark.asyncio
    async def test_connection_lost_publishes_closed(self, account, client, imap4):
        """测试意外断开时发布 SessionClosed"""
        session = await open_session(account)
        events = []
        session.subscribe(events.append)

        imap4.call_args.kwargs["conn_lost_cb"](ConnectionResetError("reset by peer"))

        assert len(events) == 1
        assert isinstance(events[0], SessionClosed)
        assert events[0].aggregate_id == "account1"
        assert events[0].reason == "reset by peer"
        assert not session.is_usable

    @pytest.mark.asyncio
    async def test_explicit_close_does_not_publish(self, account, client, imap4):
        """测试主动关闭后的断开回调不发布事件"""
        session = await open_session(account)
        events = []
        session.subscribe(events.append)

        await session.close()
        imap4.call_args.kwargs["conn_lost_cb"](None)

        assert events == []

    @pytest.mark.asyncio
    async def test_failing_handler_does_not_break_others(self, account, client, imap4):
        """测试某个订阅者出错不影响其他订阅者"""
        session = await open_session(account)
        events = []
        session.subscribe(Mock(side_effect=RuntimeError("boom")))
        session.subscribe(events.append)

        imap4.call_args.kwargs["conn_lost_cb"](None)

        assert len(events) == 1
