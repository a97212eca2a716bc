"""Token store - on-device persistence of the encrypted push token."""
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy.exc import SQLAlchemyError

from ..exceptions import TokenDecryptError
from ..models.device_state import (
    PUSH_TOKEN_KEY,
    PUSH_TOKEN_REGISTERED_KEY,
    PUSH_TOKEN_REGISTERED_AT_KEY,
    TOKEN_STATE_KEYS,
)
from .device_state import DeviceStateRepository
from .token_codec import TokenCodec

logger = logging.getLogger(__name__)


@dataclass
class ClearResult:
    """Outcome of clearing a single key."""
    key: str
    cleared: bool
    error: Optional[str] = None


class TokenStore:
    """Stores the encrypted token, registration flag and registration time.

    At most one token is kept per device: saving always overwrites.
    """

    def __init__(self, state: DeviceStateRepository, codec: TokenCodec):
        self._state = state
        self._codec = codec

    async def save(self, encrypted_token: str) -> bool:
        """Persist an already encrypted token. Returns False on storage failure."""
        try:
            await self._state.set(PUSH_TOKEN_KEY, encrypted_token)
            return True
        except SQLAlchemyError as e:
            logger.error(f"Failed to store push token: {e}")
            return False

    async def load(self) -> Optional[str]:
        """Return the stored encrypted token, or None."""
        try:
            return await self._state.get(PUSH_TOKEN_KEY)
        except SQLAlchemyError as e:
            logger.error(f"Failed to read push token: {e}")
            return None

    async def save_token(self, raw_token: str) -> bool:
        """Encrypt and persist a raw provider token."""
        await self._codec.load_key()
        return await self.save(self._codec.encrypt(raw_token))

    async def load_token(self) -> Optional[str]:
        """Return the decrypted stored token.

        A value that no longer decrypts is treated as missing so the caller
        acquires a fresh token.
        """
        encrypted = await self.load()
        if not encrypted:
            return None

        await self._codec.load_key()
        try:
            return self._codec.decrypt(encrypted)
        except TokenDecryptError as e:
            logger.warning(f"Stored push token unreadable, treating as absent: {e}")
            return None

    async def mark_registered(self, when: Optional[datetime] = None) -> bool:
        when = when or datetime.now(timezone.utc)
        try:
            await self._state.set(PUSH_TOKEN_REGISTERED_KEY, "true")
            await self._state.set(PUSH_TOKEN_REGISTERED_AT_KEY, when.isoformat())
            return True
        except SQLAlchemyError as e:
            logger.error(f"Failed to record push token registration: {e}")
            return False

    async def mark_unregistered(self) -> bool:
        try:
            await self._state.set(PUSH_TOKEN_REGISTERED_KEY, "false")
            return True
        except SQLAlchemyError as e:
            logger.error(f"Failed to reset push token registration flag: {e}")
            return False

    async def is_registered(self) -> bool:
        try:
            return await self._state.get(PUSH_TOKEN_REGISTERED_KEY) == "true"
        except SQLAlchemyError as e:
            logger.error(f"Failed to read push token registration flag: {e}")
            return False

    async def registered_at(self) -> Optional[datetime]:
        try:
            value = await self._state.get(PUSH_TOKEN_REGISTERED_AT_KEY)
        except SQLAlchemyError as e:
            logger.error(f"Failed to read push token registration time: {e}")
            return None
        if not value:
            return None
        try:
            return datetime.fromisoformat(value)
        except ValueError:
            return None

    async def clear(self) -> List[ClearResult]:
        """Clear every token-related key, best effort.

        Each key is cleared independently; a failure on one key does not stop
        the others. The encryption key goes with the token.
        """
        outcome = await self._state.delete_many(TOKEN_STATE_KEYS)
        self._codec.forget_key()

        results = [
            ClearResult(key=key, cleared=error is None, error=str(error) if error else None)
            for key, error in outcome.items()
        ]
        failed = [r.key for r in results if not r.cleared]
        if failed:
            logger.warning(f"Push token state partially cleared, failed keys: {failed}")
        else:
            logger.info("Push token state cleared")
        return results
