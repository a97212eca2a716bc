"""LocalNotification model - the on-device notification inbox."""
from datetime import datetime
from sqlalchemy import Column, Integer, String, Text, Boolean, DateTime, JSON

from ..database import Base


class LocalNotification(Base):
    """A notification shown on this device, whether pushed or scheduled locally."""

    __tablename__ = "local_notifications"

    id = Column(Integer, primary_key=True, autoincrement=True)
    title = Column(String, nullable=False)
    body = Column(Text, nullable=False, default="")
    data = Column(JSON, nullable=True)
    source = Column(String, nullable=False, default="local")  # push, local, backend
    delivery_mode = Column(String, nullable=False, default="local_fallback")  # remote, local_fallback
    is_read = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, default=datetime.utcnow, index=True)
