"""Token codec - encrypts push tokens before they are persisted on the device.

The key is derived once per install from the session/install identifier and
a random seed, stored in the device state, and reused afterwards. If no key
can be loaded the codec degrades to a marked base64 encoding: tokens stay
usable, they just lose confidentiality at rest.
"""
import base64
import binascii
import logging
import secrets
from typing import Optional

from cryptography.fernet import Fernet, InvalidToken
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.hkdf import HKDF

from ..exceptions import TokenDecryptError
from ..models.device_state import ENCRYPTION_KEY
from .device_state import DeviceStateRepository

logger = logging.getLogger(__name__)

FALLBACK_PREFIX = "b64:"
KEY_INFO = b"sitenotify push token"


def derive_key(install_id: str, seed: bytes) -> str:
    """Derive a Fernet key from the install identifier and a random seed."""
    hkdf = HKDF(
        algorithm=hashes.SHA256(),
        length=32,
        salt=seed,
        info=KEY_INFO,
    )
    material = hkdf.derive(install_id.encode("utf-8"))
    return base64.urlsafe_b64encode(material).decode("ascii")


class TokenCodec:
    """Symmetric encryption of push tokens with a per-install key."""

    def __init__(self, state: DeviceStateRepository, install_id: str):
        self._state = state
        self._install_id = install_id or "default"
        self._fernet: Optional[Fernet] = None
        self._loaded = False

    @property
    def is_secure(self) -> bool:
        """True when a key is loaded and tokens are actually encrypted."""
        return self._fernet is not None

    async def load_key(self) -> bool:
        """Load the install key, deriving and persisting it on first use.

        Returns:
            True if encryption is available, False if the codec degraded
        """
        if self._loaded:
            return self.is_secure

        try:
            key = await self._state.get(ENCRYPTION_KEY)
            if not key:
                key = derive_key(self._install_id, secrets.token_bytes(16))
                await self._state.set(ENCRYPTION_KEY, key)
                logger.info("Generated new token encryption key")
            self._fernet = Fernet(key.encode("ascii"))
        except Exception as e:
            logger.error(f"Failed to initialize token encryption, using base64 encoding: {e}")
            self._fernet = None

        self._loaded = True
        return self.is_secure

    def forget_key(self):
        """Drop the cached key so the next load derives a fresh one."""
        self._fernet = None
        self._loaded = False

    def encrypt(self, raw: str) -> str:
        """Encrypt a token for storage. Never raises."""
        if self._fernet is not None:
            try:
                return self._fernet.encrypt(raw.encode("utf-8")).decode("ascii")
            except Exception as e:
                logger.error(f"Token encryption failed, using base64 encoding: {e}")
        encoded = base64.b64encode(raw.encode("utf-8")).decode("ascii")
        return f"{FALLBACK_PREFIX}{encoded}"

    def decrypt(self, encoded: str) -> str:
        """Decrypt a stored token.

        Raises:
            TokenDecryptError: If the value cannot be decoded with the current key
        """
        if not encoded:
            raise TokenDecryptError("Empty stored token")

        if encoded.startswith(FALLBACK_PREFIX):
            try:
                return base64.b64decode(encoded[len(FALLBACK_PREFIX):], validate=True).decode("utf-8")
            except (binascii.Error, UnicodeDecodeError) as e:
                raise TokenDecryptError(f"Corrupted base64 token: {e}") from e

        if self._fernet is None:
            raise TokenDecryptError("No encryption key loaded")

        try:
            return self._fernet.decrypt(encoded.encode("ascii")).decode("utf-8")
        except (InvalidToken, UnicodeError) as e:
            raise TokenDecryptError("Stored token does not decrypt with the install key") from e
