"""同步值对象模块"""

from domain.sync.value_objects.account_descriptor import AccountDescriptor, DEFAULT_MAILBOX
from domain.sync.value_objects.message_envelope import MessageEnvelope
from domain.sync.value_objects.mailbox_notification import MailboxNotification
from domain.sync.value_objects.sync_state import SyncState

__all__ = [
    "AccountDescriptor",
    "DEFAULT_MAILBOX",
    "MessageEnvelope",
    "MailboxNotification",
    "SyncState",
]
