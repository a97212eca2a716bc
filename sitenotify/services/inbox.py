"""Notification inbox - the persistent list of notifications shown on this device."""
import logging
from typing import List, Optional

from sqlalchemy import select, update, delete, func
from sqlalchemy.ext.asyncio import async_sessionmaker

from ..config import settings
from ..models.local_notification import LocalNotification
from ..schemas.notification import NotificationRecord
from ..utils.db_utils import retry_on_lock

logger = logging.getLogger(__name__)


class NotificationInbox:
    """Newest-first notification list with read tracking, capped in size."""

    def __init__(self, session_factory: async_sessionmaker, limit: Optional[int] = None):
        self._session_factory = session_factory
        self.limit = limit or settings.local_notification_limit

    async def add(self, record: NotificationRecord) -> NotificationRecord:
        """Store a notification and trim the inbox to its limit."""
        async with self._session_factory() as session:
            row = LocalNotification(
                title=record.title,
                body=record.body,
                data=record.data or None,
                source=record.source.value,
                delivery_mode=record.delivery_mode.value,
                is_read=record.is_read,
            )
            session.add(row)
            await retry_on_lock(session.commit)
            await session.refresh(row)

            # Keep only the newest entries
            keep = (
                select(LocalNotification.id)
                .order_by(LocalNotification.created_at.desc(), LocalNotification.id.desc())
                .limit(self.limit)
            )
            trimmed = await session.execute(
                delete(LocalNotification).where(LocalNotification.id.not_in(keep))
            )
            if trimmed.rowcount:
                await retry_on_lock(session.commit)
                logger.debug(f"Trimmed {trimmed.rowcount} old notification(s)")

            return self._to_record(row)

    def _to_record(self, row: LocalNotification) -> NotificationRecord:
        return NotificationRecord(
            id=row.id,
            title=row.title,
            body=row.body or "",
            data=row.data or {},
            delivery_mode=row.delivery_mode,
            source=row.source,
            is_read=bool(row.is_read),
            created_at=row.created_at,
        )

    async def list(self, limit: Optional[int] = None, unread_only: bool = False) -> List[NotificationRecord]:
        async with self._session_factory() as session:
            query = select(LocalNotification).order_by(
                LocalNotification.created_at.desc(), LocalNotification.id.desc()
            )
            if unread_only:
                query = query.where(LocalNotification.is_read.is_(False))
            if limit:
                query = query.limit(limit)
            result = await session.execute(query)
            return [self._to_record(row) for row in result.scalars().all()]

    async def get(self, notification_id: int) -> Optional[NotificationRecord]:
        async with self._session_factory() as session:
            row = await session.get(LocalNotification, notification_id)
            return self._to_record(row) if row else None

    async def unread_count(self) -> int:
        async with self._session_factory() as session:
            result = await session.execute(
                select(func.count(LocalNotification.id)).where(LocalNotification.is_read.is_(False))
            )
            return result.scalar() or 0

    async def mark_read(self, notification_id: int) -> bool:
        async with self._session_factory() as session:
            result = await session.execute(
                update(LocalNotification)
                .where(LocalNotification.id == notification_id, LocalNotification.is_read.is_(False))
                .values(is_read=True)
            )
            await retry_on_lock(session.commit)
            return (result.rowcount or 0) > 0

    async def mark_all_read(self) -> int:
        async with self._session_factory() as session:
            result = await session.execute(
                update(LocalNotification)
                .where(LocalNotification.is_read.is_(False))
                .values(is_read=True)
            )
            await retry_on_lock(session.commit)
            return result.rowcount or 0

    async def delete(self, notification_id: int) -> bool:
        async with self._session_factory() as session:
            result = await session.execute(
                delete(LocalNotification).where(LocalNotification.id == notification_id)
            )
            await retry_on_lock(session.commit)
            return (result.rowcount or 0) > 0

    async def clear(self) -> int:
        async with self._session_factory() as session:
            result = await session.execute(delete(LocalNotification))
            await retry_on_lock(session.commit)
            return result.rowcount or 0
