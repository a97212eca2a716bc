"""Notification dispatcher - turns an activity into a delivered notification.

Remote delivery goes through the backend. Whenever that path fails for any
reason the acting user gets a local notification instead, so every call
ends in either a remote send or a local fallback.
"""
import logging
import re
import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from ..config import settings
from ..exceptions import BackendError
from ..schemas.activity import ActivityEvent, ActivityType
from ..schemas.notification import NotificationRecord, Recipient, SendNotificationRequest
from .api_client import BackendClient
from .local_notifier import LocalNotifier
from .recipients import RecipientResolver
from .validator import scrub_outbound_data

logger = logging.getLogger(__name__)

TITLE_TEMPLATES: Dict[ActivityType, str] = {
    ActivityType.MATERIAL_IMPORTED: "Materials Imported by {name}",
    ActivityType.MATERIAL_USED: "Materials Used by {name}",
    ActivityType.MATERIAL_TRANSFERRED: "Materials Transferred by {name}",
    ActivityType.LABOR_ADDED: "Labor Added by {name}",
    ActivityType.PROJECT_CREATED: "New Project Created by {name}",
    ActivityType.PROJECT_UPDATED: "Project Updated by {name}",
    ActivityType.PROJECT_DELETED: "Project Deleted by {name}",
    ActivityType.SECTION_CREATED: "New Section Created by {name}",
    ActivityType.SECTION_UPDATED: "Section Updated by {name}",
    ActivityType.SECTION_DELETED: "Section Deleted by {name}",
    ActivityType.MINI_SECTION_CREATED: "New Mini-Section Created by {name}",
    ActivityType.MINI_SECTION_UPDATED: "Mini-Section Updated by {name}",
    ActivityType.MINI_SECTION_DELETED: "Mini-Section Deleted by {name}",
    ActivityType.STAFF_ADDED: "New Staff Added by {name}",
    ActivityType.STAFF_UPDATED: "Staff Updated by {name}",
    ActivityType.STAFF_REMOVED: "Staff Removed by {name}",
    ActivityType.ADMIN_UPDATE: "Admin Update by {name}",
}
DEFAULT_TITLE = "Activity Update by {name}"

NOTIFICATIONS_ROUTE = "notifications"

_LEADING_MARKER = re.compile(r"^(?:tmp|test)\s*", re.IGNORECASE)
_TRAILING_MARKER = re.compile(r"\s*(?:tmp|test)$", re.IGNORECASE)
_WORD_START = re.compile(r"\b\w")


@dataclass
class DeliveryResult:
    """What happened to one activity notification."""
    sent: int = 0
    failed: int = 0
    used_fallback: bool = False
    recipients: List[Recipient] = field(default_factory=list)
    reason: Optional[str] = None
    record: Optional[NotificationRecord] = None


def build_title(activity_type: Any, actor_name: str) -> str:
    """Title for an activity. Unknown types get the generic title."""
    name = actor_name or "Someone"
    try:
        template = TITLE_TEMPLATES.get(ActivityType(activity_type), DEFAULT_TITLE)
    except ValueError:
        template = DEFAULT_TITLE
    return template.format(name=name)


def clean_project_name(name: str) -> str:
    """Drop leftover tmp/test markers and title-case the project name."""
    cleaned = _LEADING_MARKER.sub("", name)
    cleaned = _TRAILING_MARKER.sub("", cleaned).strip()
    if len(cleaned) < 2:
        return name
    return _WORD_START.sub(lambda m: m.group(0).upper(), cleaned)


def build_body(event: ActivityEvent) -> str:
    text = event.message or event.details or ""
    if event.project_name:
        project = clean_project_name(event.project_name)
        return f"{project}: {text}" if text else project
    return text


def build_data(event: ActivityEvent) -> Dict[str, Any]:
    data: Dict[str, Any] = {
        "type": "activity",
        "activityType": event.activity_type.value,
        "clientId": event.client_id,
        "route": NOTIFICATIONS_ROUTE,
        "url": f"/{NOTIFICATIONS_ROUTE}",
    }
    if event.project_id:
        data["projectId"] = event.project_id
    if event.section_id:
        data["sectionId"] = event.section_id
    if event.mini_section_id:
        data["miniSectionId"] = event.mini_section_id
    return data


class NotificationDispatcher:
    """Delivers activity notifications with a guaranteed local fallback."""

    def __init__(
        self,
        resolver: RecipientResolver,
        api: BackendClient,
        notifier: LocalNotifier,
        local_fallback_on_empty: Optional[bool] = None,
    ):
        self._resolver = resolver
        self._api = api
        self._notifier = notifier
        if local_fallback_on_empty is None:
            local_fallback_on_empty = settings.local_fallback_on_empty_recipients
        self._local_fallback_on_empty = local_fallback_on_empty

    async def send_activity_notification(
        self,
        event: ActivityEvent,
        notify_self_when_empty: Optional[bool] = None,
    ) -> DeliveryResult:
        """Notify the right users about ``event``.

        Never raises. If the backend cannot be reached, rejects the send or
        delivers to nobody, a local notification is shown on this device and
        ``used_fallback`` is set.
        """
        title = DEFAULT_TITLE.format(name=event.actor.full_name or "Someone")
        body = ""
        data: Dict[str, Any] = {}
        try:
            title = build_title(event.activity_type, event.actor.full_name)
            body = build_body(event)
            data = scrub_outbound_data(build_data(event))

            try:
                recipients = await self._resolver.resolve_recipients(
                    event.client_id,
                    event.actor.user_id,
                    event.actor.role,
                    project_id=event.project_id,
                )
            except BackendError as e:
                logger.warning(f"Recipient lookup failed, falling back to local notification: {e}")
                return await self._fallback(title, body, data, reason=f"recipients: {e}")

            if not recipients:
                notify_self = notify_self_when_empty
                if notify_self is None:
                    notify_self = self._local_fallback_on_empty
                if notify_self:
                    return await self._fallback(title, body, data, reason="no recipients")
                logger.info(f"No recipients for {event.activity_type.value} in client {event.client_id}")
                return DeliveryResult(reason="no recipients")

            request = SendNotificationRequest(
                title=title,
                body=body,
                data=data,
                recipients=recipients,
                timestamp=int(time.time() * 1000),
            )
            try:
                result = await self._api.send_notification(request)
            except BackendError as e:
                logger.warning(f"Notification send failed, falling back to local notification: {e}")
                return await self._fallback(title, body, data, recipients=recipients, reason=f"send: {e}")

            if result.notifications_sent == 0:
                logger.warning(
                    f"Backend delivered to nobody ({result.notifications_failed} failed), "
                    f"falling back to local notification"
                )
                return await self._fallback(
                    title,
                    body,
                    data,
                    recipients=recipients,
                    failed=result.notifications_failed,
                    reason="zero sent",
                )

            logger.info(
                f"Sent {event.activity_type.value} notification to {result.notifications_sent} "
                f"recipient(s), {result.notifications_failed} failed"
            )
            return DeliveryResult(
                sent=result.notifications_sent,
                failed=result.notifications_failed,
                recipients=recipients,
            )
        except Exception as e:
            logger.error(f"Unexpected error sending activity notification: {e}")
            return await self._fallback(title, body, data, reason=f"error: {e}")

    async def _fallback(
        self,
        title: str,
        body: str,
        data: Dict[str, Any],
        recipients: Optional[List[Recipient]] = None,
        failed: int = 0,
        reason: Optional[str] = None,
    ) -> DeliveryResult:
        record = None
        try:
            record = await self._notifier.schedule(title, body, data)
        except Exception as e:
            logger.error(f"Local fallback notification failed: {e}")
        return DeliveryResult(
            sent=0,
            failed=failed,
            used_fallback=True,
            recipients=recipients or [],
            reason=reason,
            record=record,
        )
