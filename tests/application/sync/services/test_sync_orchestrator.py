"""SyncOrchestrator 单元测试 - 包含并行启动与失败隔离测试"""

import pytest
from datetime import timedelta
from unittest.mock import Mock

from application.sync.services.account_supervisor import SupervisorState
from application.sync.services.incremental_fetch import IncrementalFetchRoutine
from application.sync.services.sync_orchestrator import SyncOrchestrator
from application.sync.services.sync_service import SyncService
from domain.common.exceptions import ConfigurationException
from domain.sync.services.mail_session import MailConnectionError


@pytest.fixture
def mock_account_repository():
    """创建模拟账号仓储"""
    return Mock()


@pytest.fixture
def sessions():
    """account_id -> 会话替身"""
    return {}


@pytest.fixture
def orchestrator(mock_account_repository, sessions, mock_sink):
    """创建编排器实例（使用长间隔避免定时器干扰）"""
    return SyncOrchestrator(
        account_repository=mock_account_repository,
        session_factory=lambda account: sessions[account.id],
        routine=IncrementalFetchRoutine(sink=mock_sink),
        lookback=timedelta(days=7),
        poll_interval=60.0,
        fetch_timeout=5.0,
        initial_fetch_timeout=20.0,
        reconnect_max_attempts=0,
    )


class TestSyncOrchestratorLifecycle:
    """生命周期测试"""

    def test_is_sync_service(self, orchestrator):
        """测试实现 SyncService 接口并暴露配置"""
        assert isinstance(orchestrator, SyncService)
        assert orchestrator.lookback == timedelta(days=7)
        assert orchestrator.poll_interval == 60.0
        assert orchestrator.fetch_timeout == 5.0
        assert orchestrator.initial_fetch_timeout == 20.0
        assert not orchestrator.is_running

    @pytest.mark.asyncio
    async def test_start_with_no_accounts(self, orchestrator, mock_account_repository):
        """测试无账号时启动不报错"""
        mock_account_repository.list_all.return_value = []

        await orchestrator.start()

        assert orchestrator.is_running
        assert orchestrator.supervisors == []
        await orchestrator.stop()
        assert not orchestrator.is_running

    @pytest.mark.asyncio
    async def test_start_twice_is_noop(
        self, orchestrator, mock_account_repository, account_factory, fake_session_cls, sessions
    ):
        """测试重复启动不会再次加载账号"""
        account = account_factory("1")
        sessions[account.id] = fake_session_cls()
        mock_account_repository.list_all.return_value = [account]

        await orchestrator.start()
        await orchestrator.start()

        assert mock_account_repository.list_all.call_count == 1
        assert len(orchestrator.supervisors) == 1
        await orchestrator.stop()

    @pytest.mark.asyncio
    async def test_stop_is_idempotent(self, orchestrator, mock_account_repository):
        """测试未运行或重复停止不会出错"""
        mock_account_repository.list_all.return_value = []

        await orchestrator.stop()
        await orchestrator.start()
        await orchestrator.stop()
        await orchestrator.stop()

        assert not orchestrator.is_running

    @pytest.mark.asyncio
    async def test_configuration_error_propagates(self, orchestrator, mock_account_repository):
        """测试配置错误在启动时抛出"""
        mock_account_repository.list_all.side_effect = ConfigurationException(
            "IMAP_ACCOUNT_1_USER", "is required"
        )

        with pytest.raises(ConfigurationException):
            await orchestrator.start()

        assert not orchestrator.is_running


class TestSyncOrchestratorIsolation:
    """多账号并行与失败隔离测试"""

    @pytest.mark.asyncio
    async def test_all_accounts_started(
        self, orchestrator, mock_account_repository, account_factory, fake_session_cls, sessions
    ):
        """测试所有账号都完成初始同步并开始监听"""
        accounts = [account_factory("1"), account_factory("2")]
        for account in accounts:
            sessions[account.id] = fake_session_cls()
        mock_account_repository.list_all.return_value = accounts

        await orchestrator.start()

        assert [s.state for s in orchestrator.supervisors] == [
            SupervisorState.RUNNING,
            SupervisorState.RUNNING,
        ]
        for account in accounts:
            assert sessions[account.id].calls[-2:] == ["fetch_since", "listen"]

        await orchestrator.stop()
        assert all(s.state == SupervisorState.STOPPED for s in orchestrator.supervisors)
        assert all(session.closed for session in sessions.values())

    @pytest.mark.asyncio
    async def test_one_account_failing_does_not_affect_other(
        self, orchestrator, mock_account_repository, account_factory, fake_session_cls, sessions
    ):
        """测试一个账号连接失败，另一个账号仍完成初始同步并开始监听"""
        bad, good = account_factory("1"), account_factory("2")
        sessions[bad.id] = fake_session_cls(
            connect_error=MailConnectionError("imap.example.com", 993, "auth failed")
        )
        sessions[good.id] = fake_session_cls()
        mock_account_repository.list_all.return_value = [bad, good]

        await orchestrator.start()

        bad_supervisor, good_supervisor = orchestrator.supervisors
        assert bad_supervisor.state == SupervisorState.FAILED
        assert good_supervisor.state == SupervisorState.RUNNING
        assert good_supervisor.multiplexer.is_running
        assert sessions[good.id].calls == ["connect", "open_mailbox:INBOX", "fetch_since", "listen"]
        assert orchestrator.is_running

        await orchestrator.stop()

    @pytest.mark.asyncio
    async def test_each_account_has_own_watermark(
        self, orchestrator, mock_account_repository, account_factory, fake_session_cls, sessions
    ):
        """测试账号之间不共享水位"""
        accounts = [account_factory("1"), account_factory("2")]
        for account in accounts:
            sessions[account.id] = fake_session_cls()
        mock_account_repository.list_all.return_value = accounts

        await orchestrator.start()

        first, second = orchestrator.supervisors
        assert first.watermark is not second.watermark
        assert first.watermark.account_id == "account1"
        assert second.watermark.account_id == "account2"
        await orchestrator.stop()
