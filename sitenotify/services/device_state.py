"""Device state repository - key-value access to the local store."""
import logging
from datetime import datetime
from typing import Dict, Iterable, Optional

from sqlalchemy import select, delete
from sqlalchemy.ext.asyncio import async_sessionmaker

from ..models.device_state import DeviceState
from ..utils.db_utils import retry_on_lock

logger = logging.getLogger(__name__)


class DeviceStateRepository:
    """Reads and writes individual device state keys.

    Every call runs in its own session so one failing key never rolls back
    another.
    """

    def __init__(self, session_factory: async_sessionmaker):
        self._session_factory = session_factory

    async def get(self, key: str) -> Optional[str]:
        async with self._session_factory() as session:
            result = await session.execute(
                select(DeviceState.value).where(DeviceState.key == key)
            )
            return result.scalar_one_or_none()

    async def set(self, key: str, value: str) -> None:
        """Insert or overwrite a key."""
        async with self._session_factory() as session:
            existing = await session.get(DeviceState, key)
            if existing:
                existing.value = value
                existing.updated_at = datetime.utcnow()
            else:
                session.add(DeviceState(key=key, value=value))
            await retry_on_lock(session.commit)

    async def delete(self, key: str) -> bool:
        """Delete a key. Returns True if a row was removed."""
        async with self._session_factory() as session:
            result = await session.execute(
                delete(DeviceState).where(DeviceState.key == key)
            )
            await retry_on_lock(session.commit)
            return (result.rowcount or 0) > 0

    async def delete_many(self, keys: Iterable[str]) -> Dict[str, Optional[Exception]]:
        """Delete keys one by one, continuing past failures.

        Returns:
            Mapping of key to the exception raised for it, or None on success
        """
        outcome: Dict[str, Optional[Exception]] = {}
        for key in keys:
            try:
                await self.delete(key)
                outcome[key] = None
            except Exception as e:
                logger.warning(f"Failed to clear device state key {key}: {e}")
                outcome[key] = e
        return outcome
