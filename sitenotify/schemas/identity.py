"""User and device identity schemas."""
from enum import Enum
from typing import Annotated, Any, List, Literal, Mapping, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


class UserType(str, Enum):
    """Role classification used for recipient fan-out and token tagging."""
    ADMIN = "admin"
    STAFF = "staff"
    CUSTOMER = "customer"

    @property
    def wire_value(self) -> str:
        """Value the backend expects in ``userType`` fields."""
        return "client" if self is UserType.CUSTOMER else self.value

    @classmethod
    def from_wire(cls, value: str) -> "UserType":
        """Parse a backend ``userType`` value."""
        value = (value or "").strip().lower()
        if value in ("client", "customer"):
            return cls.CUSTOMER
        return cls(value)


class Platform(str, Enum):
    IOS = "ios"
    ANDROID = "android"
    WEB = "web"
    OTHER = "other"


class DeviceIdentity(BaseModel):
    """Device facts attached to every registration call."""
    platform: Platform
    device_id: str = Field(..., min_length=1)
    device_name: str
    app_version: str

    model_config = ConfigDict(frozen=True)


class AdminIdentity(BaseModel):
    user_type: Literal[UserType.ADMIN] = UserType.ADMIN
    user_id: str = Field(..., min_length=1)
    email: str
    full_name: str = ""
    client_id: str = Field(..., min_length=1)

    model_config = ConfigDict(frozen=True)

    @property
    def client_ids(self) -> List[str]:
        return [self.client_id]


class StaffIdentity(BaseModel):
    user_type: Literal[UserType.STAFF] = UserType.STAFF
    user_id: str = Field(..., min_length=1)
    email: str
    full_name: str = ""
    client_ids: List[str] = Field(..., min_length=1)

    model_config = ConfigDict(frozen=True)


class CustomerIdentity(BaseModel):
    user_type: Literal[UserType.CUSTOMER] = UserType.CUSTOMER
    user_id: str = Field(..., min_length=1)
    email: str
    full_name: str = ""
    client_id: str = Field(..., min_length=1)

    model_config = ConfigDict(frozen=True)

    @property
    def client_ids(self) -> List[str]:
        return [self.client_id]


UserIdentity = Annotated[
    Union[AdminIdentity, StaffIdentity, CustomerIdentity],
    Field(discriminator="user_type"),
]

STAFF_ROLE_MARKERS = ("engineer", "supervisor", "manager")


def _classify(payload: Mapping[str, Any]) -> UserType:
    """Classify a raw session user the way the app's login payloads are shaped.

    Order matters: an explicit role wins over userType, which wins over the
    presence of client assignments.
    """
    role = str(payload.get("role") or "").strip().lower()
    if role in ("admin", "client-admin"):
        return UserType.ADMIN
    if role == "staff" or any(marker in role for marker in STAFF_ROLE_MARKERS):
        return UserType.STAFF
    if role in ("client", "customer"):
        return UserType.CUSTOMER

    user_type = str(payload.get("userType") or "").strip().lower()
    if user_type == "admin":
        return UserType.ADMIN
    if user_type == "staff":
        return UserType.STAFF
    if user_type in ("client", "customer"):
        return UserType.CUSTOMER

    clients = payload.get("clients")
    if isinstance(clients, list) and clients:
        return UserType.STAFF

    return UserType.CUSTOMER


def _full_name(payload: Mapping[str, Any]) -> str:
    name = payload.get("fullName") or payload.get("name")
    if name:
        return str(name).strip()
    parts = [payload.get("firstName"), payload.get("lastName")]
    return " ".join(str(p).strip() for p in parts if p).strip()


def identity_from_session(payload: Mapping[str, Any]) -> Union[AdminIdentity, StaffIdentity, CustomerIdentity]:
    """Resolve a stored session user object into exactly one identity variant.

    Call this once when the session is established; downstream code switches
    on ``user_type`` and never looks at the raw payload again.

    Raises:
        ValueError: If the payload lacks an id or a client scope
    """
    user_id = payload.get("_id") or payload.get("id") or payload.get("userId")
    if not user_id:
        raise ValueError("Session user has no id")

    user_type = _classify(payload)
    common = {
        "user_id": str(user_id),
        "email": str(payload.get("email") or ""),
        "full_name": _full_name(payload),
    }

    if user_type is UserType.STAFF:
        client_ids: List[str] = []
        for entry in payload.get("clients") or []:
            client_id = entry.get("clientId") if isinstance(entry, Mapping) else entry
            if client_id and str(client_id) not in client_ids:
                client_ids.append(str(client_id))
        if not client_ids and payload.get("clientId"):
            client_ids.append(str(payload["clientId"]))
        if not client_ids:
            raise ValueError("Staff user has no client assignment")
        return StaffIdentity(client_ids=client_ids, **common)

    # Admins and customers carry exactly one implicit scope; a customer is
    # its own client when no clientId is given.
    client_id: Optional[str] = payload.get("clientId")
    if not client_id and user_type is UserType.CUSTOMER:
        client_id = str(user_id)
    if not client_id:
        raise ValueError("Admin user has no client scope")

    if user_type is UserType.ADMIN:
        return AdminIdentity(client_id=str(client_id), **common)
    return CustomerIdentity(client_id=str(client_id), **common)
