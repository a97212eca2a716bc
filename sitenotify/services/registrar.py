"""Token registrar - push token lifecycle from permission prompt to backend registration.

Flow for ``initialize``:

    UNINITIALIZED -> CAPABILITY_CHECKED -> PERMISSION_REQUESTED
        -> TOKEN_ACQUIRED -> TOKEN_STORED -> BACKEND_REGISTERED

A backend failure after the token is stored ends in DEGRADED_LOCAL_ONLY,
which still counts as success: local notifications keep working without
server push.
"""
import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional, Union

from ..config import settings
from ..exceptions import BackendError, TokenFormatError
from ..schemas.identity import (
    AdminIdentity,
    CustomerIdentity,
    DeviceIdentity,
    StaffIdentity,
)
from ..schemas.push_token import PushToken, PushTokenRegistration, validate_token_format
from ..utils.masking import mask_token
from .api_client import BackendClient
from .capability import PermissionGate
from .push_provider import PushProvider
from .token_store import ClearResult, TokenStore

logger = logging.getLogger(__name__)

Identity = Union[AdminIdentity, StaffIdentity, CustomerIdentity]


class RegistrationState(str, Enum):
    UNINITIALIZED = "uninitialized"
    CAPABILITY_CHECKED = "capability_checked"
    PERMISSION_REQUESTED = "permission_requested"
    TOKEN_ACQUIRED = "token_acquired"
    TOKEN_STORED = "token_stored"
    BACKEND_REGISTERED = "backend_registered"
    DEGRADED_LOCAL_ONLY = "degraded_local_only"


class RegistrationFailure(str, Enum):
    CAPABILITY = "capability"
    PERMISSION = "permission"
    TOKEN_UNAVAILABLE = "token_unavailable"
    TOKEN_FORMAT = "token_format"
    STORAGE = "storage"
    LOGGED_OUT = "logged_out"


@dataclass
class RegistrationResult:
    """Outcome of an ``initialize`` run."""
    success: bool
    state: RegistrationState
    failure: Optional[RegistrationFailure] = None
    reason: Optional[str] = None
    token_id: Optional[str] = None
    is_new: bool = False

    @property
    def degraded(self) -> bool:
        return self.state == RegistrationState.DEGRADED_LOCAL_ONLY


@dataclass
class UnregisterResult:
    cleared: List[ClearResult]
    backend_attempted: bool

    @property
    def fully_cleared(self) -> bool:
        return all(r.cleared for r in self.cleared)


class TokenRegistrar:
    """Orchestrates push token acquisition, storage and backend registration."""

    def __init__(
        self,
        provider: PushProvider,
        gate: PermissionGate,
        store: TokenStore,
        api: BackendClient,
        app_version: Optional[str] = None,
    ):
        self._provider = provider
        self._gate = gate
        self._store = store
        self._api = api
        self._app_version = app_version or settings.app_version
        self._state = RegistrationState.UNINITIALIZED
        self._user: Optional[Identity] = None
        self._device: Optional[DeviceIdentity] = None
        self._token: Optional[PushToken] = None
        self._in_flight: Optional[asyncio.Task] = None
        self._pending_deactivation: Optional[asyncio.Task] = None

    @property
    def state(self) -> RegistrationState:
        return self._state

    @property
    def current_token(self) -> Optional[PushToken]:
        return self._token

    @property
    def pending_deactivation(self) -> Optional[asyncio.Task]:
        """Backend deactivation started by the last ``unregister``, if any."""
        return self._pending_deactivation

    def device_identity(self) -> DeviceIdentity:
        """Device facts for registration, built once per registrar."""
        if self._device is None:
            env = self._provider.environment()
            self._device = DeviceIdentity(
                platform=env.platform,
                device_id=env.install_id or "unknown",
                device_name=env.device_name or f"{env.platform.value} Device",
                app_version=self._app_version,
            )
        return self._device

    async def initialize(self, user: Identity, prompt_user: bool = True) -> RegistrationResult:
        """Run the registration flow for the logged-in user.

        A call made while another one is in flight waits for that one and
        returns its result instead of registering a second time.
        """
        if self._in_flight is not None and not self._in_flight.done():
            logger.info("Push token registration already in progress, waiting for it")
        else:
            self._in_flight = asyncio.create_task(self._initialize(user, prompt_user))
        return await self._wait_for(self._in_flight)

    async def _wait_for(self, task: asyncio.Task) -> RegistrationResult:
        try:
            return await asyncio.shield(task)
        except asyncio.CancelledError:
            # Only a logout cancels the registration task itself
            if not task.cancelled():
                raise
            return RegistrationResult(
                False,
                RegistrationState.UNINITIALIZED,
                failure=RegistrationFailure.LOGGED_OUT,
                reason="registration cancelled by logout",
            )

    def _fail(self, failure: RegistrationFailure, reason: str) -> RegistrationResult:
        logger.warning(f"Push token registration stopped ({failure.value}): {reason}")
        return RegistrationResult(False, self._state, failure=failure, reason=reason)

    async def _initialize(self, user: Identity, prompt_user: bool) -> RegistrationResult:
        self._user = user

        capability = self._gate.check_capability()
        if not capability.supported:
            self._state = RegistrationState.UNINITIALIZED
            return self._fail(RegistrationFailure.CAPABILITY, capability.reason or "unsupported")
        self._state = RegistrationState.CAPABILITY_CHECKED

        permission = await self._gate.request_permission(prompt_user)
        self._state = RegistrationState.PERMISSION_REQUESTED
        if not permission.granted:
            return self._fail(RegistrationFailure.PERMISSION, f"permission {permission.status.value}")

        try:
            raw = await self._provider.get_push_token()
        except Exception as e:
            return self._fail(RegistrationFailure.TOKEN_UNAVAILABLE, f"token acquisition failed: {e}")

        return await self._register_token(user, raw)

    async def _register_token(self, user: Identity, raw: Optional[str]) -> RegistrationResult:
        try:
            raw = validate_token_format(raw, settings.token_min_length, settings.token_max_length)
        except TokenFormatError as e:
            return self._fail(RegistrationFailure.TOKEN_FORMAT, str(e))
        self._state = RegistrationState.TOKEN_ACQUIRED

        try:
            device = self.device_identity()
        except Exception as e:
            return self._fail(RegistrationFailure.CAPABILITY, f"device environment unavailable: {e}")

        stored = await self._store.load_token()
        unchanged = stored == raw
        if unchanged and await self._store.is_registered():
            self._state = RegistrationState.BACKEND_REGISTERED
            self._token = PushToken(
                raw_value=raw,
                registered_at=await self._store.registered_at(),
                is_registered=True,
            )
            logger.info(f"Push token {mask_token(raw)} unchanged and already registered")
            return RegistrationResult(True, self._state)

        if stored and not unchanged:
            logger.info("Push token rotated by the provider, registering the new token")

        if not await self._store.save_token(raw):
            return self._fail(RegistrationFailure.STORAGE, "could not persist push token")
        await self._store.mark_unregistered()
        encrypted = await self._store.load()
        self._state = RegistrationState.TOKEN_STORED
        self._token = PushToken(raw_value=raw, encrypted_value=encrypted)

        registration = PushTokenRegistration(
            user_id=user.user_id,
            user_type=user.user_type,
            token=raw,
            device=device,
        )
        try:
            registered = await self._api.register_push_token(registration)
        except BackendError as e:
            self._state = RegistrationState.DEGRADED_LOCAL_ONLY
            logger.warning(
                f"Backend push token registration failed, continuing with local notifications only: {e}"
            )
            return RegistrationResult(True, self._state, reason=str(e))
        except Exception as e:
            self._state = RegistrationState.DEGRADED_LOCAL_ONLY
            logger.error(f"Unexpected error registering push token, continuing with local notifications only: {e}")
            return RegistrationResult(True, self._state, reason=str(e))

        when = datetime.now(timezone.utc)
        await self._store.mark_registered(when)
        self._token = PushToken(
            raw_value=raw,
            encrypted_value=encrypted,
            registered_at=when,
            is_registered=True,
        )
        self._state = RegistrationState.BACKEND_REGISTERED
        logger.info(f"Push token registered (new={registered.is_new})")
        return RegistrationResult(
            True,
            self._state,
            token_id=registered.token_id,
            is_new=registered.is_new,
        )

    async def handle_token_rotation(self, raw: str) -> Optional[RegistrationResult]:
        """Re-register after the provider issued a new token.

        Returns None when no user is logged in on this registrar.
        """
        if self._in_flight is not None and not self._in_flight.done():
            await self._wait_for(self._in_flight)
        if self._user is None:
            logger.info("Push token changed without a logged-in user, ignoring until initialize")
            return None
        self._in_flight = asyncio.create_task(self._register_token(self._user, raw))
        return await self._wait_for(self._in_flight)

    def on_foreground(self):
        """App came back to the foreground; permission may have changed."""
        self._gate.on_foreground()

    async def _deactivate(self, user_id: str):
        try:
            await self._api.deactivate_push_token(user_id)
        except BackendError as e:
            logger.warning(f"Backend push token deactivation failed, ignoring: {e}")
        except Exception as e:
            logger.error(f"Unexpected error deactivating push token, ignoring: {e}")

    async def unregister(self, user: Optional[Identity] = None) -> UnregisterResult:
        """Log out of push: deactivate on the backend, then clear local state.

        A registration still in progress is cancelled first, so nothing it
        writes outlives the logout. The backend call runs in the background
        and never holds up the local clear.
        """
        in_flight = self._in_flight
        if in_flight is not None and not in_flight.done():
            logger.info("Cancelling push token registration in progress for logout")
            in_flight.cancel()
            await asyncio.wait([in_flight])

        user = user or self._user
        backend_attempted = False
        if user is not None:
            self._pending_deactivation = asyncio.create_task(self._deactivate(user.user_id))
            backend_attempted = True
        else:
            logger.info("No user known, skipping backend push token deactivation")

        cleared = await self._store.clear()
        self._state = RegistrationState.UNINITIALIZED
        self._token = None
        self._user = None
        self._gate.on_foreground()
        return UnregisterResult(cleared=cleared, backend_attempted=backend_attempted)
