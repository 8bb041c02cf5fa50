"""
Attachment targets.

A file belongs to exactly one record. The target says which kind of record
and which id; ``owner_column`` maps it to the File foreign key that stores
the link.
"""

from typing import Annotated, Literal, assert_never

from pydantic import BaseModel, Field

from ..models.file import EntityType


class ToolTarget(BaseModel):
    kind: Literal["TOOL"] = "TOOL"
    tool_id: int = Field(..., ge=1)


class PatronTarget(BaseModel):
    kind: Literal["PATRON"] = "PATRON"
    patron_id: int = Field(..., ge=1)


class VolunteerTarget(BaseModel):
    kind: Literal["VOLUNTEER"] = "VOLUNTEER"
    volunteer_id: int = Field(..., ge=1)


class DamageReportTarget(BaseModel):
    kind: Literal["DAMAGE_REPORT"] = "DAMAGE_REPORT"
    damage_report_id: int = Field(..., ge=1)


AttachmentTarget = Annotated[
    ToolTarget | PatronTarget | VolunteerTarget | DamageReportTarget,
    Field(discriminator="kind"),
]


def owner_column(target: AttachmentTarget) -> tuple[EntityType, str, int]:
    """(entity type, File column, owner id) for a target."""
    match target:
        case ToolTarget(tool_id=owner_id):
            return EntityType.TOOL, "tool_id", owner_id
        case PatronTarget(patron_id=owner_id):
            return EntityType.PATRON, "patron_id", owner_id
        case VolunteerTarget(volunteer_id=owner_id):
            return EntityType.VOLUNTEER, "volunteer_id", owner_id
        case DamageReportTarget(damage_report_id=owner_id):
            return EntityType.DAMAGE_REPORT, "damage_report_id", owner_id
        case _:
            assert_never(target)


def target_for(entity_type: EntityType | str, entity_id: int) -> AttachmentTarget:
    """Build a target from an entity type name and id."""
    match EntityType(entity_type):
        case EntityType.TOOL:
            return ToolTarget(tool_id=entity_id)
        case EntityType.PATRON:
            return PatronTarget(patron_id=entity_id)
        case EntityType.VOLUNTEER:
            return VolunteerTarget(volunteer_id=entity_id)
        case EntityType.DAMAGE_REPORT:
            return DamageReportTarget(damage_report_id=entity_id)
