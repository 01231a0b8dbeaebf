"""同步状态枚举"""

from enum import Enum


class SyncState(str, Enum):
    """单账号同步状态机

    Attributes:
        IDLE: 空闲，可以开始一次增量拉取
        FETCHING: 正在拉取，新的触发将被丢弃
    """

    IDLE = "idle"
    FETCHING = "fetching"
