"""Push provider adapter - the boundary to the OS and push service.

The host application implements ``PushProvider`` on top of its platform
notification API. The core only depends on this interface.
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum

from ..schemas.identity import Platform


class ExecutionEnvironment(str, Enum):
    BARE = "bare"
    STANDALONE = "standalone"
    STORE_CLIENT = "storeClient"  # sandboxed Expo Go runtime


class PermissionStatus(str, Enum):
    GRANTED = "granted"
    DENIED = "denied"
    UNDETERMINED = "undetermined"
    UNSUPPORTED = "unsupported"


@dataclass(frozen=True)
class DeviceEnvironment:
    """Facts about the device the app is running on."""
    platform: Platform
    is_physical_device: bool
    execution_environment: ExecutionEnvironment
    install_id: str
    device_name: str = ""


@dataclass(frozen=True)
class PermissionResponse:
    """What the OS reports about notification permission."""
    status: PermissionStatus
    can_ask_again: bool = True


class PushProvider(ABC):
    """OS/push-provider facade implemented by the host application."""

    @abstractmethod
    def environment(self) -> DeviceEnvironment:
        """Describe the running device."""

    def notifications_available(self) -> bool:
        """Whether the native notification module could be loaded."""
        return True

    @abstractmethod
    async def get_permission_status(self) -> PermissionResponse:
        """Current permission without prompting."""

    @abstractmethod
    async def request_permission(self) -> PermissionResponse:
        """Show the OS permission prompt."""

    @abstractmethod
    async def get_push_token(self) -> str:
        """Acquire the provider push token for this install."""
