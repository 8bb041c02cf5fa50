"""File attachment models."""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict


class EntityType(str, Enum):
    """Kinds of records a file can be attached to."""

    TOOL = "TOOL"
    PATRON = "PATRON"
    VOLUNTEER = "VOLUNTEER"
    DAMAGE_REPORT = "DAMAGE_REPORT"


class FileRecord(BaseModel):
    """Metadata of a stored file."""

    id: int
    entity_type: EntityType
    file_name: str
    file_path: str
    file_type: str
    label: str | None = None
    uploaded_by: int | None = None
    uploaded_at: datetime | None = None

    model_config = ConfigDict(from_attributes=True, use_enum_values=True)
