"""Pydantic schemas for identities, activities, tokens and notifications."""
from .identity import (
    UserType,
    Platform,
    DeviceIdentity,
    AdminIdentity,
    StaffIdentity,
    CustomerIdentity,
    UserIdentity,
    identity_from_session,
)
from .activity import (
    ActivityType,
    Actor,
    ActivityEvent,
)
from .notification import (
    DeliveryMode,
    NotificationSource,
    NotificationRecord,
    Recipient,
    RecipientsResponse,
    SendNotificationRequest,
    SendResult,
)
from .push_token import (
    PushToken,
    PushTokenRegistration,
    PushTokenRegistered,
    validate_token_format,
)

__all__ = [
    "UserType",
    "Platform",
    "DeviceIdentity",
    "AdminIdentity",
    "StaffIdentity",
    "CustomerIdentity",
    "UserIdentity",
    "identity_from_session",
    "ActivityType",
    "Actor",
    "ActivityEvent",
    "DeliveryMode",
    "NotificationSource",
    "NotificationRecord",
    "Recipient",
    "RecipientsResponse",
    "SendNotificationRequest",
    "SendResult",
    "PushToken",
    "PushTokenRegistration",
    "PushTokenRegistered",
    "validate_token_format",
]
