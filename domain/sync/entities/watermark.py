"""同步水位实体"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone

from domain.common.base_entity import BaseEntity
from domain.common.exceptions import InvalidStateTransitionException
from domain.sync.value_objects.sync_state import SyncState


@dataclass(eq=False)
class Watermark(BaseEntity):
    """同步水位实体

    每个账号一个实例，只由该账号的触发复用器与增量拉取例程修改，
    从不跨账号共享。

    不变量：
    - last_sync_time 在监督器生命周期内单调不减
    - 同一时刻最多只有一次拉取处于 FETCHING 状态

    Attributes:
        account_id: 所属账号标识
        last_sync_time: 下次增量拉取的起点（含）
        state: 当前状态（IDLE / FETCHING）
    """

    account_id: str = field(default="")
    last_sync_time: datetime = field(
        default_factory=lambda: datetime.now(timezone.utc)
    )
    state: SyncState = field(default=SyncState.IDLE)

    @classmethod
    def starting_at(
        cls,
        account_id: str,
        now: datetime,
        lookback: timedelta,
    ) -> "Watermark":
        """工厂方法：以 now - lookback 作为初始水位

        Args:
            account_id: 账号标识
            now: 监督器启动时间
            lookback: 首次同步的回溯窗口

        Returns:
            处于 IDLE 状态的水位
        """
        return cls(account_id=account_id, last_sync_time=now - lookback)

    @property
    def is_syncing(self) -> bool:
        """是否有拉取正在进行"""
        return self.state == SyncState.FETCHING

    def try_begin(self) -> bool:
        """尝试进入 FETCHING

        检查与置位之间没有 await，在事件循环内是原子的。

        Returns:
            True 表示已进入 FETCHING；False 表示已有拉取在进行，本次被丢弃
        """
        if self.state == SyncState.FETCHING:
            return False
        self.state = SyncState.FETCHING
        return True

    def finish(self) -> None:
        """回到 IDLE

        Raises:
            InvalidStateTransitionException: 当前并非 FETCHING
        """
        if self.state != SyncState.FETCHING:
            raise InvalidStateTransitionException(
                entity="Watermark",
                from_state=self.state.value,
                to_state=SyncState.IDLE.value,
                reason="No fetch in flight",
            )
        self.state = SyncState.IDLE

    def advance_to(self, timestamp: datetime) -> datetime:
        """推进水位，永不回退

        Args:
            timestamp: 候选水位

        Returns:
            推进后的 last_sync_time
        """
        if timestamp > self.last_sync_time:
            self.last_sync_time = timestamp
            self.update_timestamp()
        return self.last_sync_time
