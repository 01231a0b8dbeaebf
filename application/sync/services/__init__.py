"""邮件同步应用服务"""

from application.sync.services.sync_service import SyncService
from application.sync.services.sync_orchestrator import SyncOrchestrator
from application.sync.services.account_supervisor import AccountSupervisor, SupervisorState
from application.sync.services.trigger_multiplexer import TriggerMultiplexer
from application.sync.services.incremental_fetch import IncrementalFetchRoutine

__all__ = [
    "SyncService",
    "SyncOrchestrator",
    "AccountSupervisor",
    "SupervisorState",
    "TriggerMultiplexer",
    "IncrementalFetchRoutine",
]
