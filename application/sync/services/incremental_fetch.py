"""增量拉取例程"""

import logging
from datetime import datetime, timezone
from typing import Callable, Optional

from domain.sync.entities.watermark import Watermark
from domain.sync.services.mail_session import MailSession
from domain.sync.services.message_sink import MessageSink
from domain.sync.value_objects.account_descriptor import AccountDescriptor

Clock = Callable[[], datetime]


def utcnow() -> datetime:
    """当前 UTC 时间"""
    return datetime.now(timezone.utc)


class IncrementalFetchRoutine:
    """
    增量拉取例程

    拉取到达时间不早于水位的全部邮件，推进水位并逐封投递给下游。
    不持有任何账号状态，可在多个账号之间共享。

    边界是包含的：到达时间恰好等于水位的邮件可能被再次投递，
    去重由下游负责。
    """

    def __init__(
        self,
        sink: MessageSink,
        clock: Clock = utcnow,
        logger: Optional[logging.Logger] = None,
    ):
        """
        初始化增量拉取例程

        Args:
            sink: 下游输出
            clock: 时钟（测试时可替换）
            logger: 可选的日志记录器
        """
        self._sink = sink
        self._clock = clock
        self._logger = logger or logging.getLogger(__name__)

    async def run(
        self,
        account: AccountDescriptor,
        session: MailSession,
        watermark: Watermark,
    ) -> int:
        """
        执行一次增量拉取

        Args:
            account: 账号描述
            session: 该账号的会话
            watermark: 该账号的水位

        Returns:
            投递的邮件数量；会话不可用时返回 0

        Raises:
            FetchError: 拉取失败，水位保持不变
            Exception: 下游投递失败时原样抛出，水位保持不变
        """
        label = account.display_name

        if not session.is_usable:
            self._logger.warning(f"[IMAP][{label}] syncSince skipped; client not usable")
            return 0

        since = watermark.last_sync_time
        now = self._clock()

        self._logger.info(f"[IMAP][{label}] Running syncSince() from {since.isoformat()}")

        envelopes = await session.fetch_since(since)

        if not envelopes:
            # 推进到当前时间，避免下次仍查询同一个空窗口
            watermark.advance_to(now)
            self._logger.info(f"[IMAP][{label}] syncSince() found no new messages")
            return 0

        # 全部投递成功后才推进水位，投递失败时下次从原水位重新拉取
        for envelope in envelopes:
            self._sink.deliver(account, envelope)

        watermark.advance_to(max(envelope.arrival_time for envelope in envelopes))

        self._logger.info(
            f"[IMAP][{label}] syncSince() processed {len(envelopes)} messages. "
            f"lastSyncTime -> {watermark.last_sync_time.isoformat()}"
        )
        return len(envelopes)
