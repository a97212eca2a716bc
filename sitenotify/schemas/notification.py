"""Notification schemas: delivered records and backend wire models."""
import logging
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .identity import UserType

logger = logging.getLogger(__name__)


class DeliveryMode(str, Enum):
    REMOTE = "remote"
    LOCAL_FALLBACK = "local_fallback"


class NotificationSource(str, Enum):
    PUSH = "push"
    LOCAL = "local"
    BACKEND = "backend"


class NotificationRecord(BaseModel):
    """A notification as shown on the device."""
    id: Optional[int] = None
    title: str
    body: str = ""
    data: Dict[str, Any] = Field(default_factory=dict)
    delivery_mode: DeliveryMode = DeliveryMode.LOCAL_FALLBACK
    source: NotificationSource = NotificationSource.LOCAL
    is_read: bool = False
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class Recipient(BaseModel):
    """A user the backend should deliver a notification to."""
    user_id: str = Field(..., alias="userId")
    full_name: str = Field("User", alias="fullName")
    user_type: UserType = Field(..., alias="userType")
    email: Optional[str] = None
    client_id: Optional[str] = Field(None, alias="clientId")

    model_config = ConfigDict(populate_by_name=True)

    @field_validator("user_type", mode="before")
    @classmethod
    def parse_wire_user_type(cls, value):
        if isinstance(value, str):
            return UserType.from_wire(value)
        return value

    def to_wire(self) -> Dict[str, Any]:
        payload = {
            "userId": self.user_id,
            "fullName": self.full_name,
            "userType": self.user_type.wire_value,
        }
        if self.email:
            payload["email"] = self.email
        return payload


class RecipientsResponse(BaseModel):
    """Response of GET /notifications/recipients.

    Entries that do not parse are skipped so one bad user does not cost
    the whole fan-out.
    """
    success: bool
    recipients: List[Recipient] = Field(default_factory=list)

    @field_validator("recipients", mode="before")
    @classmethod
    def skip_invalid_recipients(cls, value):
        if not isinstance(value, list):
            return value
        recipients = []
        for entry in value:
            try:
                recipients.append(Recipient.model_validate(entry))
            except ValidationError as e:
                logger.warning(f"Skipping malformed recipient from backend: {e.error_count()} error(s)")
        return recipients


class SendNotificationRequest(BaseModel):
    """Body of POST /notifications/send."""
    title: str
    body: str
    data: Dict[str, Any] = Field(default_factory=dict)
    recipients: List[Recipient]
    timestamp: int  # epoch milliseconds

    def to_wire(self) -> Dict[str, Any]:
        return {
            "title": self.title,
            "body": self.body,
            "data": self.data,
            "recipients": [r.to_wire() for r in self.recipients],
            "timestamp": self.timestamp,
        }


class SendResult(BaseModel):
    """``data`` part of the POST /notifications/send response."""
    notifications_sent: int = Field(0, alias="notificationsSent")
    notifications_failed: int = Field(0, alias="notificationsFailed")

    model_config = ConfigDict(populate_by_name=True)
