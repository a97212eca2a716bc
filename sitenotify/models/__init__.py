"""Local store models."""
from .device_state import DeviceState
from .local_notification import LocalNotification

__all__ = ["DeviceState", "LocalNotification"]
