"""Wires the notification core together for the host application.

Typical use from the app root::

    async with notification_core(provider, presenter) as core:
        await core.registrar.initialize(user)
        ...
        await core.dispatcher.send_activity_notification(event)
"""
import asyncio
import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Optional

import httpx
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from sqlalchemy.ext.asyncio import AsyncEngine, async_sessionmaker

from .config import Settings, settings
from .database import close_db, create_session_factory, engine, init_db, async_session
from .services.api_client import AuthTokenProvider, BackendClient
from .services.capability import PermissionGate
from .services.device_state import DeviceStateRepository
from .services.dispatcher import NotificationDispatcher
from .services.inbox import NotificationInbox
from .services.local_notifier import LocalNotifier, NotificationPresenter
from .services.push_provider import PushProvider
from .services.recipients import RecipientResolver
from .services.registrar import TokenRegistrar
from .services.token_codec import TokenCodec
from .services.token_store import TokenStore

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def configure_logging(level: Optional[str] = None):
    """Configure root logging for hosts that have not done so themselves."""
    logging.basicConfig(
        level=getattr(logging, (level or settings.log_level).upper(), logging.INFO),
        format=LOG_FORMAT,
    )
    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)


@dataclass
class NotificationCore:
    """All notification services sharing one store and one backend client."""
    api: BackendClient
    gate: PermissionGate
    codec: TokenCodec
    store: TokenStore
    registrar: TokenRegistrar
    resolver: RecipientResolver
    inbox: NotificationInbox
    notifier: LocalNotifier
    dispatcher: NotificationDispatcher


def create_core(
    provider: PushProvider,
    presenter: Optional[NotificationPresenter] = None,
    auth_token_provider: Optional[AuthTokenProvider] = None,
    session_factory: Optional[async_sessionmaker] = None,
    scheduler: Optional[AsyncIOScheduler] = None,
    config: Settings = settings,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> NotificationCore:
    """Build the services without touching the store or the network."""
    session_factory = session_factory or async_session
    env = provider.environment()

    api = BackendClient(
        base_url=config.api_base_url,
        auth_token_provider=auth_token_provider,
        app_version=config.app_version,
        platform=env.platform.value,
        transport=transport,
    )
    state = DeviceStateRepository(session_factory)
    codec = TokenCodec(state, env.install_id)
    store = TokenStore(state, codec)
    gate = PermissionGate(provider)
    inbox = NotificationInbox(session_factory, limit=config.local_notification_limit)
    notifier = LocalNotifier(
        inbox,
        presenter=presenter,
        scheduler=scheduler,
        delay_seconds=config.local_notification_delay_seconds,
    )
    resolver = RecipientResolver(api)

    return NotificationCore(
        api=api,
        gate=gate,
        codec=codec,
        store=store,
        registrar=TokenRegistrar(provider, gate, store, api, app_version=config.app_version),
        resolver=resolver,
        inbox=inbox,
        notifier=notifier,
        dispatcher=NotificationDispatcher(
            resolver,
            api,
            notifier,
            local_fallback_on_empty=config.local_fallback_on_empty_recipients,
        ),
    )


@asynccontextmanager
async def notification_core(
    provider: PushProvider,
    presenter: Optional[NotificationPresenter] = None,
    auth_token_provider: Optional[AuthTokenProvider] = None,
    bind: Optional[AsyncEngine] = None,
    session_factory: Optional[async_sessionmaker] = None,
    config: Settings = settings,
    transport: Optional[httpx.AsyncBaseTransport] = None,
):
    """Notification core lifespan - startup and shutdown."""
    if bind is not None and session_factory is None:
        session_factory = create_session_factory(bind)
    bind = bind or engine
    await init_db(bind)

    scheduler = AsyncIOScheduler()
    scheduler.start()
    logger.info("Local notification scheduler started")

    core = create_core(
        provider,
        presenter=presenter,
        auth_token_provider=auth_token_provider,
        session_factory=session_factory,
        scheduler=scheduler,
        config=config,
        transport=transport,
    )
    if not await core.codec.load_key():
        logger.warning("Push tokens will be stored without encryption")

    try:
        yield core
    finally:
        pending = core.registrar.pending_deactivation
        if pending is not None and not pending.done():
            try:
                await asyncio.wait_for(pending, timeout=config.unregister_timeout_seconds)
            except asyncio.TimeoutError:
                logger.warning("Push token deactivation still pending at shutdown, abandoning it")
        scheduler.shutdown(wait=False)
        await close_db(bind)
        logger.info("Notification core shut down")
