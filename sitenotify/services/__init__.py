"""Services for push token registration, recipient fan-out and delivery."""
from .token_codec import TokenCodec
from .token_store import TokenStore
from .capability import PermissionGate
from .registrar import TokenRegistrar
from .recipients import RecipientResolver
from .dispatcher import NotificationDispatcher
from .inbox import NotificationInbox
from .local_notifier import LocalNotifier

__all__ = [
    "TokenCodec",
    "TokenStore",
    "PermissionGate",
    "TokenRegistrar",
    "RecipientResolver",
    "NotificationDispatcher",
    "NotificationInbox",
    "LocalNotifier",
]
