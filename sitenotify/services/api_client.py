"""Backend API client - push token registration and notification delivery."""
import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional

import httpx
from pydantic import ValidationError

from ..config import settings
from ..exceptions import (
    BackendProtocolError,
    BackendRejectedError,
    BackendTimeoutError,
    BackendUnavailableError,
)
from ..schemas.notification import (
    Recipient,
    RecipientsResponse,
    SendNotificationRequest,
    SendResult,
)
from ..schemas.push_token import PushTokenRegistration, PushTokenRegistered
from ..utils.masking import mask_token

logger = logging.getLogger(__name__)

AuthTokenProvider = Callable[[], Awaitable[Optional[str]]]


class BackendClient:
    """Talks to the app backend's push token and notification endpoints.

    Every call makes a single attempt with a bounded timeout and raises a
    ``BackendError`` subclass on any failure; retry policy belongs to the
    caller.
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        auth_token_provider: Optional[AuthTokenProvider] = None,
        app_version: Optional[str] = None,
        platform: str = "",
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = (base_url or settings.api_base_url).rstrip("/")
        self._auth_token_provider = auth_token_provider
        self._app_version = app_version or settings.app_version
        self._platform = platform
        self._transport = transport

    async def _headers(self) -> Dict[str, str]:
        headers = {
            "Content-Type": "application/json",
            "X-App-Version": self._app_version,
        }
        if self._platform:
            headers["X-Platform"] = self._platform
        if self._auth_token_provider:
            auth_token = await self._auth_token_provider()
            if auth_token:
                headers["Authorization"] = f"Bearer {auth_token}"
        return headers

    async def _request(
        self,
        method: str,
        path: str,
        timeout: float,
        json: Optional[dict] = None,
        params: Optional[dict] = None,
    ) -> Dict[str, Any]:
        """Send one request and return the decoded JSON body."""
        url = f"{self.base_url}{path}"
        headers = await self._headers()

        try:
            async with httpx.AsyncClient(timeout=timeout, transport=self._transport) as client:
                response = await client.request(method, url, json=json, params=params, headers=headers)
        except httpx.TimeoutException as e:
            raise BackendTimeoutError(f"{method} {path} timed out after {timeout}s") from e
        except httpx.HTTPError as e:
            raise BackendUnavailableError(f"{method} {path} failed: {e}") from e

        if response.status_code >= 400:
            raise BackendRejectedError(
                f"{method} {path} returned {response.status_code}: {response.text[:200]}",
                status_code=response.status_code,
            )

        try:
            body = response.json()
        except ValueError as e:
            raise BackendProtocolError(f"{method} {path} returned a non-JSON body") from e

        if not isinstance(body, dict):
            raise BackendProtocolError(f"{method} {path} returned an unexpected body")

        if body.get("success") is False:
            message = body.get("message") or body.get("error") or "success=false"
            raise BackendRejectedError(f"{method} {path} rejected: {message}", status_code=response.status_code)

        return body

    async def register_push_token(
        self,
        registration: PushTokenRegistration,
        timeout: Optional[float] = None,
    ) -> PushTokenRegistered:
        """POST /push-token."""
        logger.info(
            f"Registering push token {mask_token(registration.token)} for "
            f"{registration.user_type.value} {registration.user_id} "
            f"on {registration.device.platform.value}"
        )
        body = await self._request(
            "POST",
            "/push-token",
            timeout=timeout or settings.registration_timeout_seconds,
            json=registration.to_wire(),
        )
        try:
            return PushTokenRegistered.model_validate(body.get("data") or {})
        except ValidationError as e:
            raise BackendProtocolError(f"Unexpected push token response: {e}") from e

    async def deactivate_push_token(self, user_id: str, timeout: Optional[float] = None) -> bool:
        """DELETE /push-token?userId=..."""
        await self._request(
            "DELETE",
            "/push-token",
            timeout=timeout or settings.unregister_timeout_seconds,
            params={"userId": user_id},
        )
        logger.info(f"Push tokens deactivated for user {user_id}")
        return True

    async def get_recipients(
        self,
        client_id: str,
        project_id: Optional[str] = None,
        timeout: Optional[float] = None,
    ) -> List[Recipient]:
        """GET /notifications/recipients."""
        params = {"clientId": client_id}
        if project_id:
            params["projectId"] = project_id

        body = await self._request(
            "GET",
            "/notifications/recipients",
            timeout=timeout or settings.recipients_timeout_seconds,
            params=params,
        )
        try:
            return RecipientsResponse.model_validate(body).recipients
        except ValidationError as e:
            raise BackendProtocolError(f"Unexpected recipients response: {e}") from e

    async def send_notification(
        self,
        request: SendNotificationRequest,
        timeout: Optional[float] = None,
    ) -> SendResult:
        """POST /notifications/send."""
        body = await self._request(
            "POST",
            "/notifications/send",
            timeout=timeout or settings.send_timeout_seconds,
            json=request.to_wire(),
        )
        try:
            return SendResult.model_validate(body.get("data") or {})
        except ValidationError as e:
            raise BackendProtocolError(f"Unexpected send response: {e}") from e
