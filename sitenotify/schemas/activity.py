"""Activity event schemas - the triggers for notifications."""
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from .identity import UserType


class ActivityType(str, Enum):
    """Closed set of activities that produce notifications."""
    MATERIAL_IMPORTED = "material_imported"
    MATERIAL_USED = "material_used"
    MATERIAL_TRANSFERRED = "material_transferred"
    LABOR_ADDED = "labor_added"
    PROJECT_CREATED = "project_created"
    PROJECT_UPDATED = "project_updated"
    PROJECT_DELETED = "project_deleted"
    SECTION_CREATED = "section_created"
    SECTION_UPDATED = "section_updated"
    SECTION_DELETED = "section_deleted"
    MINI_SECTION_CREATED = "mini_section_created"
    MINI_SECTION_UPDATED = "mini_section_updated"
    MINI_SECTION_DELETED = "mini_section_deleted"
    STAFF_ADDED = "staff_added"
    STAFF_UPDATED = "staff_updated"
    STAFF_REMOVED = "staff_removed"
    ADMIN_UPDATE = "admin_update"


# Older screens still send these names
LEGACY_ACTIVITY_ALIASES = {
    "material_added": ActivityType.MATERIAL_IMPORTED,
    "usage_added": ActivityType.MATERIAL_USED,
}


class Actor(BaseModel):
    """The user who performed the activity."""
    user_id: str = Field(..., min_length=1)
    full_name: str
    role: UserType


class ActivityEvent(BaseModel):
    """Something that happened in a client's project and may notify other users."""
    activity_type: ActivityType
    client_id: str = Field(..., min_length=1)
    project_id: Optional[str] = None
    section_id: Optional[str] = None
    mini_section_id: Optional[str] = None
    project_name: Optional[str] = None
    section_name: Optional[str] = None
    mini_section_name: Optional[str] = None
    actor: Actor
    details: str = ""
    message: Optional[str] = None

    @field_validator("activity_type", mode="before")
    @classmethod
    def resolve_legacy_names(cls, value):
        if isinstance(value, str) and value in LEGACY_ACTIVITY_ALIASES:
            return LEGACY_ACTIVITY_ALIASES[value]
        return value
