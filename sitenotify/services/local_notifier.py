"""Local notifier - shows notifications on this device without the backend.

Every notification passes ``validate_for_display`` before it is stored or
shown. Presentation is scheduled on the APScheduler loop after a short delay
when a running scheduler is given, otherwise it happens inline.
"""
import logging
from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.date import DateTrigger

from ..config import settings
from ..schemas.notification import DeliveryMode, NotificationRecord, NotificationSource
from .inbox import NotificationInbox
from .validator import sanitize_data, sanitize_for_navigation, validate_for_display

logger = logging.getLogger(__name__)


class NotificationPresenter(ABC):
    """Displays a notification through the OS. Implemented by the host app."""

    @abstractmethod
    async def present(self, record: NotificationRecord):
        ...


class LocalNotifier:
    """Stores notifications in the inbox and hands them to the presenter."""

    def __init__(
        self,
        inbox: NotificationInbox,
        presenter: Optional[NotificationPresenter] = None,
        scheduler: Optional[AsyncIOScheduler] = None,
        delay_seconds: Optional[float] = None,
    ):
        self.inbox = inbox
        self._presenter = presenter
        self._scheduler = scheduler
        self._delay = settings.local_notification_delay_seconds if delay_seconds is None else delay_seconds

    async def schedule(
        self,
        title: str,
        body: str,
        data: Optional[Dict[str, Any]] = None,
    ) -> Optional[NotificationRecord]:
        """Show a locally generated notification.

        Returns the stored record, or None if the content was blocked.
        """
        candidate = {"title": title, "body": body, "data": data or {}}
        if not validate_for_display(candidate):
            logger.warning("Local notification blocked by content validation")
            return None

        record = await self.inbox.add(
            NotificationRecord(
                title=title,
                body=body,
                data=data or {},
                source=NotificationSource.LOCAL,
                delivery_mode=DeliveryMode.LOCAL_FALLBACK,
            )
        )
        await self._dispatch(record)
        return record

    async def receive(
        self,
        title: Any,
        body: Any,
        data: Any = None,
        source: NotificationSource = NotificationSource.PUSH,
    ) -> Optional[NotificationRecord]:
        """Handle a notification that arrived from outside, e.g. a push.

        Blocked content is dropped. Data is reduced to the whitelisted fields.
        """
        if not validate_for_display({"title": title, "body": body, "data": data}):
            logger.warning(f"Incoming {source.value} notification blocked by content validation")
            return None

        record = await self.inbox.add(
            NotificationRecord(
                title=title or "",
                body=body or "",
                data=sanitize_data(data),
                source=source,
                delivery_mode=DeliveryMode.REMOTE,
            )
        )
        await self._dispatch(record)
        return record

    async def _dispatch(self, record: NotificationRecord):
        if self._presenter is None:
            return

        if self._scheduler is not None and self._scheduler.running:
            run_date = datetime.now(timezone.utc) + timedelta(seconds=self._delay)
            self._scheduler.add_job(
                self._present,
                trigger=DateTrigger(run_date=run_date),
                args=[record],
                id=f"local-notification-{record.id}",
                replace_existing=True,
            )
            logger.debug(f"Local notification {record.id} scheduled for {run_date.isoformat()}")
        else:
            await self._present(record)

    async def _present(self, record: NotificationRecord):
        try:
            await self._presenter.present(record)
        except Exception as e:
            logger.error(f"Failed to present notification {record.id}: {e}")

    def navigation_target(self, record: NotificationRecord) -> Optional[str]:
        """Where tapping the notification should go, if anywhere safe."""
        data = record.data or {}
        for key in ("url", "route"):
            target = data.get(key)
            if target and sanitize_for_navigation(target):
                return target
        return None
