"""
Tool models for the Tool Library MCP Server.

A tool record describes one kind of item the library lends, with a quantity
of identical units. Availability is derived: quantity minus the units on an
active (CHECKED_OUT) loan.
"""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, computed_field

from .file import FileRecord


class ConditionStatus(str, Enum):
    """Physical state of a tool."""

    GOOD = "GOOD"
    DAMAGED = "DAMAGED"
    RETIRED = "RETIRED"


class Tool(BaseModel):
    """A lendable tool record."""

    id: int = Field(..., ge=1)

    name: str = Field(
        ...,
        description="Display name of the tool",
        min_length=1,
        max_length=200,
        examples=["Cordless Drill", "Circular Saw", "Post Hole Digger"],
    )

    description: str = Field(
        default="",
        description="Free-form description, accessories, usage notes",
    )

    category_id: int = Field(..., description="The single category this tool belongs to")

    quantity: int = Field(
        default=1,
        description="Number of identical units the library owns",
        ge=1,
    )

    donor: str | None = Field(None, description="Who donated the tool, if known")

    condition_status: ConditionStatus = Field(default=ConditionStatus.GOOD)

    created_at: datetime | None = None
    updated_at: datetime | None = None

    model_config = ConfigDict(
        from_attributes=True,
        use_enum_values=True,
        str_strip_whitespace=True,
    )


class ToolSummary(Tool):
    """Tool with its category name and current availability."""

    category_name: str | None = None
    active_checkouts: int = Field(0, ge=0)
    thumbnail: FileRecord | None = None

    @computed_field
    @property
    def available_count(self) -> int:
        """Units not currently on loan."""
        return self.quantity - self.active_checkouts


class DamageReport(BaseModel):
    """Damage report filed against a tool."""

    id: int
    tool_id: int
    reporter_id: int | None = None
    description: str
    reported_at: datetime

    model_config = ConfigDict(from_attributes=True)


class ToolDetail(ToolSummary):
    """Tool detail view with attachments and damage history."""

    files: list[FileRecord] = Field(default_factory=list)
    damage_reports: list[DamageReport] = Field(default_factory=list)
