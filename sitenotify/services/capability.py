"""Permission and capability gate - decides whether push work may proceed."""
import logging
from dataclasses import dataclass
from typing import Optional

from ..schemas.identity import Platform
from .push_provider import (
    ExecutionEnvironment,
    PermissionResponse,
    PermissionStatus,
    PushProvider,
)

logger = logging.getLogger(__name__)


@dataclass
class CapabilityResult:
    supported: bool
    reason: Optional[str] = None


@dataclass
class PermissionResult:
    granted: bool
    status: PermissionStatus
    can_ask_again: bool = True


class PermissionGate:
    """Checks device capability and notification permission.

    Permission status is cached for the session and dropped when the app
    comes back to the foreground, since the user may have changed it in the
    system settings meanwhile.
    """

    def __init__(self, provider: PushProvider):
        self._provider = provider
        self._cached: Optional[PermissionResult] = None

    def check_capability(self) -> CapabilityResult:
        """Check whether this environment can receive push notifications at all."""
        try:
            env = self._provider.environment()
        except Exception as e:
            logger.error(f"Could not read device environment: {e}")
            return CapabilityResult(False, "Device environment unavailable")

        if env.execution_environment == ExecutionEnvironment.STORE_CLIENT and env.platform == Platform.ANDROID:
            return CapabilityResult(
                False,
                "Push notifications are not supported in the store client on Android; use a development build",
            )

        if not env.is_physical_device:
            return CapabilityResult(
                False,
                "Push notifications require a physical device; simulators are not supported",
            )

        try:
            available = self._provider.notifications_available()
        except Exception as e:
            logger.error(f"Could not check the notification module: {e}")
            available = False
        if not available:
            return CapabilityResult(False, "Notification module is not available in this environment")

        return CapabilityResult(True)

    def _to_result(self, response: PermissionResponse) -> PermissionResult:
        return PermissionResult(
            granted=response.status == PermissionStatus.GRANTED,
            status=response.status,
            can_ask_again=response.can_ask_again,
        )

    async def get_permission_status(self) -> PermissionResult:
        """Current permission, from the session cache when available."""
        if self._cached is not None:
            return self._cached

        capability = self.check_capability()
        if not capability.supported:
            return PermissionResult(False, PermissionStatus.UNSUPPORTED, can_ask_again=False)

        try:
            response = await self._provider.get_permission_status()
        except Exception as e:
            logger.error(f"Permission status check failed: {e}")
            return PermissionResult(False, PermissionStatus.UNDETERMINED)

        self._cached = self._to_result(response)
        return self._cached

    async def request_permission(self, prompt_user: bool = True) -> PermissionResult:
        """Request notification permission.

        A denial is returned to the caller as is; the gate never re-prompts on
        its own. When the OS will not show the prompt again, no prompt is
        attempted.
        """
        current = await self.get_permission_status()
        if current.granted or current.status == PermissionStatus.UNSUPPORTED:
            return current

        if not prompt_user:
            logger.info(f"Notification permission not granted ({current.status.value}), not prompting")
            return current

        if not current.can_ask_again:
            logger.info("Notification permission denied permanently, user must enable it in settings")
            return current

        try:
            response = await self._provider.request_permission()
        except Exception as e:
            logger.error(f"Permission request failed: {e}")
            return PermissionResult(False, PermissionStatus.UNDETERMINED)

        self._cached = self._to_result(response)
        logger.info(f"Notification permission: {self._cached.status.value}")
        return self._cached

    def on_foreground(self):
        """Drop the cached status so the next check asks the OS again."""
        self._cached = None
