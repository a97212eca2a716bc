"""Push token schemas and envelope validation."""
import re
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from ..exceptions import TokenFormatError
from .identity import DeviceIdentity, UserType

# ExponentPushToken[xxxxxxxxxxxxxxxxxxxxxx] or ExpoPushToken[...]
TOKEN_ENVELOPE = re.compile(r"^(?:ExponentPushToken|ExpoPushToken)\[[^\[\]\s]+\]$")


def validate_token_format(raw: Optional[str], min_length: int = 20, max_length: int = 500) -> str:
    """Check a provider token against the expected envelope and length window.

    Returns:
        The token unchanged

    Raises:
        TokenFormatError: If the token is missing, malformed, or out of bounds
    """
    if not isinstance(raw, str) or not raw:
        raise TokenFormatError("Provider returned no token")
    if len(raw) < min_length or len(raw) > max_length:
        raise TokenFormatError(f"Token length {len(raw)} outside {min_length}..{max_length}")
    if not TOKEN_ENVELOPE.match(raw):
        raise TokenFormatError("Token does not match the provider envelope")
    return raw


class PushToken(BaseModel):
    """The device's current push token.

    Only ``encrypted_value`` is ever persisted.
    """
    raw_value: str = Field(..., repr=False)
    encrypted_value: Optional[str] = Field(None, repr=False)
    registered_at: Optional[datetime] = None
    is_registered: bool = False


class PushTokenRegistration(BaseModel):
    """Body of POST /push-token."""
    user_id: str = Field(..., alias="userId")
    user_type: UserType = Field(..., alias="userType")
    token: str = Field(..., repr=False)
    device: DeviceIdentity

    model_config = ConfigDict(populate_by_name=True)

    def to_wire(self) -> dict:
        return {
            "userId": self.user_id,
            "userType": self.user_type.wire_value,
            "token": self.token,
            "platform": self.device.platform.value,
            "deviceId": self.device.device_id,
            "deviceName": self.device.device_name,
            "appVersion": self.device.app_version,
        }


class PushTokenRegistered(BaseModel):
    """``data`` part of the POST /push-token response."""
    token_id: Optional[str] = Field(None, alias="tokenId")
    is_new: bool = Field(False, alias="isNew")

    model_config = ConfigDict(populate_by_name=True)
