"""Shared fixtures: temporary local store, fake push provider, fake backend."""
import asyncio
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import httpx
import pytest
from fastapi import APIRouter, FastAPI, Request
from fastapi.responses import JSONResponse, PlainTextResponse

from sitenotify.database import close_db, create_engine, create_session_factory, init_db
from sitenotify.schemas.identity import (
    AdminIdentity,
    CustomerIdentity,
    Platform,
    StaffIdentity,
)
from sitenotify.services.api_client import BackendClient
from sitenotify.services.device_state import DeviceStateRepository
from sitenotify.services.inbox import NotificationInbox
from sitenotify.services.local_notifier import LocalNotifier, NotificationPresenter
from sitenotify.services.push_provider import (
    DeviceEnvironment,
    ExecutionEnvironment,
    PermissionResponse,
    PermissionStatus,
    PushProvider,
)
from sitenotify.services.token_codec import TokenCodec
from sitenotify.services.token_store import TokenStore

BACKEND_URL = "http://backend.test/api"
VALID_TOKEN = "ExponentPushToken[xxxxxxxxxxxxxxxxxxxxxx]"
ROTATED_TOKEN = "ExponentPushToken[yyyyyyyyyyyyyyyyyyyyyy]"


# --- Local store ---

@pytest.fixture
async def engine(tmp_path):
    engine = create_engine(f"sqlite+aiosqlite:///{tmp_path}/test.db")
    await init_db(engine)
    yield engine
    await close_db(engine)


@pytest.fixture
def session_factory(engine):
    return create_session_factory(engine)


@pytest.fixture
def device_state(session_factory):
    return DeviceStateRepository(session_factory)


@pytest.fixture
def codec(device_state):
    return TokenCodec(device_state, "install-1234")


@pytest.fixture
def token_store(device_state, codec):
    return TokenStore(device_state, codec)


# --- Push provider ---

class FakePushProvider(PushProvider):
    """Scriptable stand-in for the OS notification API."""

    def __init__(
        self,
        platform: Platform = Platform.IOS,
        is_physical_device: bool = True,
        execution_environment: ExecutionEnvironment = ExecutionEnvironment.STANDALONE,
        available: bool = True,
        status: PermissionStatus = PermissionStatus.GRANTED,
        can_ask_again: bool = True,
        prompt_result: PermissionStatus = PermissionStatus.GRANTED,
        token: Optional[str] = VALID_TOKEN,
    ):
        self.env = DeviceEnvironment(
            platform=platform,
            is_physical_device=is_physical_device,
            execution_environment=execution_environment,
            install_id="install-1234",
            device_name="Test Phone",
        )
        self.available = available
        self.status = status
        self.can_ask_again = can_ask_again
        self.prompt_result = prompt_result
        self.token = token
        self.token_error: Optional[Exception] = None
        self.token_delay = 0.0
        self.status_checks = 0
        self.prompts = 0
        self.token_requests = 0

    def environment(self) -> DeviceEnvironment:
        return self.env

    def notifications_available(self) -> bool:
        return self.available

    async def get_permission_status(self) -> PermissionResponse:
        self.status_checks += 1
        return PermissionResponse(self.status, self.can_ask_again)

    async def request_permission(self) -> PermissionResponse:
        self.prompts += 1
        self.status = self.prompt_result
        return PermissionResponse(self.prompt_result, self.prompt_result != PermissionStatus.DENIED)

    async def get_push_token(self) -> str:
        self.token_requests += 1
        if self.token_delay:
            await asyncio.sleep(self.token_delay)
        if self.token_error is not None:
            raise self.token_error
        return self.token


@pytest.fixture
def provider():
    return FakePushProvider()


class FakePresenter(NotificationPresenter):
    def __init__(self):
        self.presented = []

    async def present(self, record):
        self.presented.append(record)


@pytest.fixture
def presenter():
    return FakePresenter()


@pytest.fixture
def inbox(session_factory):
    return NotificationInbox(session_factory, limit=100)


@pytest.fixture
def notifier(inbox, presenter):
    return LocalNotifier(inbox, presenter=presenter)


# --- Backend ---

@dataclass
class BackendState:
    """What the fake backend has seen, and how it should answer."""
    recipients: Dict[str, List[Dict[str, Any]]] = field(default_factory=dict)
    registrations: List[Dict[str, Any]] = field(default_factory=list)
    deactivations: List[str] = field(default_factory=list)
    sends: List[Dict[str, Any]] = field(default_factory=list)
    recipient_queries: List[Dict[str, str]] = field(default_factory=list)
    headers: List[Dict[str, str]] = field(default_factory=list)
    register_status: int = 200
    send_status: int = 200
    sent_override: Optional[int] = None
    register_gate: Optional[asyncio.Event] = None
    register_started: int = 0


def create_backend(state: BackendState) -> FastAPI:
    """Minimal backend implementing the push token and notification endpoints."""
    app = FastAPI()
    router = APIRouter(prefix="/api")

    @router.post("/push-token")
    async def register_push_token(request: Request):
        state.headers.append(dict(request.headers))
        if state.register_status != 200:
            return JSONResponse({"success": False, "message": "unavailable"}, status_code=state.register_status)
        payload = await request.json()
        state.register_started += 1
        if state.register_gate is not None:
            await state.register_gate.wait()
        state.registrations.append(payload)
        return {
            "success": True,
            "data": {"tokenId": f"tok-{len(state.registrations)}", "isNew": len(state.registrations) == 1},
        }

    @router.delete("/push-token")
    async def deactivate_push_token(userId: str):
        state.deactivations.append(userId)
        return {"success": True}

    @router.get("/notifications/recipients")
    async def get_recipients(request: Request):
        params = dict(request.query_params)
        state.recipient_queries.append(params)
        return {"success": True, "recipients": state.recipients.get(params.get("clientId"), [])}

    @router.post("/notifications/send")
    async def send_notification(request: Request):
        if state.send_status != 200:
            return PlainTextResponse("Bad gateway", status_code=state.send_status)
        payload = await request.json()
        state.sends.append(payload)
        sent = len(payload["recipients"]) if state.sent_override is None else state.sent_override
        return {
            "success": True,
            "data": {"notificationsSent": sent, "notificationsFailed": len(payload["recipients"]) - sent},
        }

    app.include_router(router)
    return app


@pytest.fixture
def backend_state():
    return BackendState(
        recipients={
            "C1": [
                {"userId": "A1", "fullName": "Admin One", "userType": "admin", "email": "a1@example.com"},
                {"userId": "A2", "fullName": "Admin Two", "userType": "admin", "email": "a2@example.com"},
                {"userId": "S1", "fullName": "S1", "userType": "staff", "email": "s1@example.com"},
                {"userId": "S2", "fullName": "Staff Two", "userType": "staff"},
                {"userId": "S3", "fullName": "Staff Three", "userType": "staff"},
            ]
        }
    )


@pytest.fixture
def backend_transport(backend_state):
    return httpx.ASGITransport(app=create_backend(backend_state))


@pytest.fixture
def api(backend_transport):
    async def auth_token():
        return "session-token"

    return BackendClient(
        base_url=BACKEND_URL,
        auth_token_provider=auth_token,
        app_version="2.3.4",
        platform="ios",
        transport=backend_transport,
    )


def failing_transport(exc_type=httpx.ConnectError) -> httpx.MockTransport:
    """Transport whose every request fails at the network layer."""
    def handler(request: httpx.Request) -> httpx.Response:
        raise exc_type("backend unreachable", request=request)

    return httpx.MockTransport(handler)


@pytest.fixture
def offline_api():
    return BackendClient(base_url=BACKEND_URL, transport=failing_transport())


# --- Identities ---

@pytest.fixture
def staff_user():
    return StaffIdentity(user_id="S1", email="s1@example.com", full_name="S1", client_ids=["C1"])


@pytest.fixture
def admin_user():
    return AdminIdentity(user_id="A1", email="a1@example.com", full_name="Admin One", client_id="C1")


@pytest.fixture
def customer_user():
    return CustomerIdentity(user_id="U9", email="u9@example.com", full_name="Customer", client_id="C1")
