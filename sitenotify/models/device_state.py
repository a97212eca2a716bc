"""DeviceState model - key-value store for on-device notification state."""
from datetime import datetime
from sqlalchemy import Column, String, DateTime

from ..database import Base


class DeviceState(Base):
    """Device-local state stored as key-value pairs."""

    __tablename__ = "device_state"

    key = Column(String, primary_key=True)
    value = Column(String, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


# Keys owned by the push token lifecycle
PUSH_TOKEN_KEY = "secure_push_token"
PUSH_TOKEN_REGISTERED_KEY = "push_token_registered"
PUSH_TOKEN_REGISTERED_AT_KEY = "push_token_registration_time"
ENCRYPTION_KEY = "notification_encryption_key"

# Cleared on logout, in this order
TOKEN_STATE_KEYS = (
    PUSH_TOKEN_KEY,
    PUSH_TOKEN_REGISTERED_KEY,
    PUSH_TOKEN_REGISTERED_AT_KEY,
    ENCRYPTION_KEY,
)
