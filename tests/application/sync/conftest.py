"""同步应用层测试夹具"""

import asyncio
from datetime import datetime, timezone
from typing import List, Optional
from unittest.mock import Mock

import pytest

from domain.sync.services.mail_session import MailSession
from domain.sync.services.message_sink import MessageSink
from domain.sync.value_objects.account_descriptor import AccountDescriptor
from domain.sync.value_objects.message_envelope import MessageEnvelope

T0 = datetime(2024, 5, 1, 12, 0, 0, tzinfo=timezone.utc)


class FakeSession(MailSession):
    """
    内存中的会话替身

    - envelopes: fetch_since 返回的邮件
    - fetch_error: fetch_since 抛出的异常
    - gate: 设置后 fetch_since 会等待该事件，用于模拟慢拉取
    """

    def __init__(
        self,
        envelopes: Optional[List[MessageEnvelope]] = None,
        usable: bool = True,
        fetch_error: Optional[BaseException] = None,
        connect_error: Optional[BaseException] = None,
        mailbox_error: Optional[BaseException] = None,
        gate: Optional[asyncio.Event] = None,
    ):
        self.envelopes = list(envelopes or [])
        self.usable = usable
        self.fetch_error = fetch_error
        self.connect_error = connect_error
        self.mailbox_error = mailbox_error
        self.gate = gate

        self.calls: List[str] = []
        self.fetch_calls: List[datetime] = []
        self.in_flight = 0
        self.max_in_flight = 0
        self.handlers = []
        self.on_notification = None
        self.closed = False

    @property
    def is_usable(self) -> bool:
        return self.usable and not self.closed

    async def connect(self) -> None:
        self.calls.append("connect")
        if self.connect_error is not None:
            raise self.connect_error

    async def open_mailbox(self, name: str) -> None:
        self.calls.append(f"open_mailbox:{name}")
        if self.mailbox_error is not None:
            raise self.mailbox_error

    async def fetch_since(self, since: datetime) -> List[MessageEnvelope]:
        self.calls.append("fetch_since")
        self.fetch_calls.append(since)
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self.gate is not None:
                await self.gate.wait()
            if self.fetch_error is not None:
                raise self.fetch_error
            return list(self.envelopes)
        finally:
            self.in_flight -= 1

    async def listen(self, on_notification) -> None:
        self.calls.append("listen")
        self.on_notification = on_notification

    async def close(self) -> None:
        self.calls.append("close")
        self.closed = True

    def subscribe(self, handler) -> None:
        self.handlers.append(handler)

    def publish(self, event) -> None:
        for handler in list(self.handlers):
            handler(event)


def make_account(key: str = "1", mailbox: str = "INBOX") -> AccountDescriptor:
    return AccountDescriptor(
        id=f"account{key}",
        label=f"Inbox {key}",
        host="imap.example.com",
        port=993,
        username=f"user{key}@example.com",
        password="secret",
        mailbox=mailbox,
    )


def make_envelope(uid: int, arrival_time: datetime, account_id: str = "account1") -> MessageEnvelope:
    return MessageEnvelope(
        account_id=account_id,
        uid=uid,
        arrival_time=arrival_time,
        senders=(f"sender{uid}@example.com",),
        subject=f"Message {uid}",
    )


@pytest.fixture
def fake_session_cls():
    """会话替身类"""
    return FakeSession


@pytest.fixture
def account():
    """测试账号"""
    return make_account()


@pytest.fixture
def account_factory():
    """按键创建测试账号"""
    return make_account


@pytest.fixture
def envelope_factory():
    """创建测试邮件信封"""
    return make_envelope


@pytest.fixture
def mock_sink():
    """模拟下游输出"""
    return Mock(spec=MessageSink)
