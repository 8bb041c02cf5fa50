"""
Tool repository for the Tool Library MCP Server.

Tool inventory CRUD plus the availability-aware read views:

1. **Search**: name substring match ordered by category then name, capped
2. **Inventory list**: every tool with its category and first attachment
3. **Detail**: files and damage reports (newest first)

Availability is never stored. It is always quantity minus the number of
CHECKED_OUT rows for the tool.
"""

import logging

from pydantic import BaseModel, Field, field_validator
from sqlalchemy import func, select
from sqlalchemy.orm import selectinload

from ..files.storage import remove_stored_files
from ..models.file import FileRecord
from ..models.tool import ConditionStatus, ToolDetail, ToolSummary
from ..models.tool import DamageReport as DamageReportModel
from ..models.tool import Tool as ToolModel
from .repository import BaseRepository, NotFoundError, ValidationError
from .schema import Category as CategoryDB
from .schema import Checkout as CheckoutDB
from .schema import CheckoutStatusEnum, ConditionStatusEnum
from .schema import DamageReport as DamageReportDB
from .schema import Tool as ToolDB
from .session import safe_commit, safe_query

logger = logging.getLogger(__name__)

DEFAULT_SEARCH_LIMIT = 50


def _condition_or_good(value):
    """Unknown or missing condition values fall back to GOOD."""
    if isinstance(value, ConditionStatus):
        return value
    if isinstance(value, str) and value.strip().upper() in ConditionStatus.__members__:
        return ConditionStatus[value.strip().upper()]
    return ConditionStatus.GOOD


class ToolCreateSchema(BaseModel):
    """Schema for creating a tool."""

    name: str = Field(..., min_length=1, max_length=200)
    description: str = ""
    category_id: int
    quantity: int = Field(1, ge=1)
    donor: str | None = None
    condition_status: ConditionStatus = ConditionStatus.GOOD

    @field_validator("condition_status", mode="before")
    @classmethod
    def normalize_condition(cls, v):
        return _condition_or_good(v)

    @field_validator("name")
    @classmethod
    def name_not_blank(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Tool name is required")
        return v

    @field_validator("description", mode="before")
    @classmethod
    def strip_description(cls, v):
        return (v or "").strip()

    @field_validator("donor", mode="before")
    @classmethod
    def blank_donor(cls, v):
        if v is None or not str(v).strip():
            return None
        return str(v).strip()


class ToolUpdateSchema(ToolCreateSchema):
    """Schema for updating a tool; every field is replaced."""


class ToolRepository(BaseRepository[ToolDB, ToolModel]):
    """Repository for tool inventory."""

    @property
    def model_class(self):
        return ToolDB

    @property
    def response_schema(self):
        return ToolModel

    def _check_category(self, category_id: int) -> None:
        exists = safe_query(
            self.session,
            lambda s: s.get(CategoryDB, category_id),
            "Failed to check category",
        )
        if exists is None:
            raise NotFoundError(f"Category {category_id} not found", field="category_id")

    def _active_counts(self, tool_ids: list[int]) -> dict[int, int]:
        if not tool_ids:
            return {}
        query = (
            select(CheckoutDB.tool_id, func.count(CheckoutDB.id))
            .where(
                CheckoutDB.tool_id.in_(tool_ids),
                CheckoutDB.status == CheckoutStatusEnum.CHECKED_OUT,
            )
            .group_by(CheckoutDB.tool_id)
        )
        rows = safe_query(self.session, lambda s: s.execute(query).all(), "Failed to count loans")
        return dict(rows)

    def _summary(self, tool: ToolDB, active: int, with_thumbnail: bool = False) -> ToolSummary:
        thumbnail = None
        if with_thumbnail and tool.files:
            thumbnail = FileRecord.model_validate(tool.files[0])
        return ToolSummary(
            **ToolModel.model_validate(tool).model_dump(),
            category_name=tool.category.name if tool.category else None,
            active_checkouts=active,
            thumbnail=thumbnail,
        )

    def create(self, data: ToolCreateSchema) -> ToolModel:
        """
        Add a tool to the inventory.

        Raises:
            NotFoundError: If the category does not exist
        """
        self._check_category(data.category_id)
        db_tool = ToolDB(
            name=data.name,
            description=data.description,
            category_id=data.category_id,
            quantity=data.quantity,
            donor=data.donor,
            condition_status=ConditionStatusEnum(data.condition_status),
        )
        db_tool = self._commit_new(db_tool, "create tool")
        logger.info("Created tool %s (%r) in category %s", db_tool.id, db_tool.name, data.category_id)
        return self._to_response_model(db_tool)

    def update(self, tool_id: int, data: ToolUpdateSchema) -> ToolModel:
        """
        Replace a tool's editable fields.

        Raises:
            NotFoundError: If the tool or category does not exist
        """
        db_tool = self._require_db_obj(tool_id)
        self._check_category(data.category_id)

        db_tool.name = data.name
        db_tool.description = data.description
        db_tool.category_id = data.category_id
        try:
            db_tool.quantity = data.quantity
        except ValueError as e:
            raise ValidationError(str(e), field="quantity") from e
        db_tool.donor = data.donor
        db_tool.condition_status = ConditionStatusEnum(data.condition_status)

        self._commit_changes(db_tool, "update tool")
        return self._to_response_model(db_tool)

    def delete(self, id: int) -> bool:
        """
        Delete a tool with its checkouts, files and damage reports.

        This cannot be undone. Stored files are removed from disk once the
        database delete has committed.
        """
        db_tool = self._get_db_obj(id)
        if db_tool is None:
            return False

        paths = [f.file_path for f in db_tool.files]
        for report in db_tool.damage_reports:
            paths.extend(f.file_path for f in report.files)

        name = db_tool.name
        self.session.delete(db_tool)
        safe_commit(self.session, "delete tool")
        logger.warning("Deleted tool %s (%r) and %d file(s)", id, name, len(paths))

        remove_stored_files(paths)
        return True

    def get_detail(self, tool_id: int) -> ToolDetail:
        """
        Tool with category, files, damage reports and availability.

        Raises:
            NotFoundError: If the tool does not exist
        """
        query = (
            select(ToolDB)
            .where(ToolDB.id == tool_id)
            .options(
                selectinload(ToolDB.category),
                selectinload(ToolDB.files),
                selectinload(ToolDB.damage_reports),
            )
        )
        db_tool = safe_query(
            self.session, lambda s: s.execute(query).scalar_one_or_none(), "Failed to get tool"
        )
        if db_tool is None:
            raise NotFoundError(f"Tool {tool_id} not found")

        active = self._active_counts([tool_id]).get(tool_id, 0)
        summary = self._summary(db_tool, active, with_thumbnail=True)
        return ToolDetail(
            **summary.model_dump(exclude={"available_count"}),
            files=[FileRecord.model_validate(f) for f in db_tool.files],
            damage_reports=[DamageReportModel.model_validate(r) for r in db_tool.damage_reports],
        )

    def search(self, query: str, limit: int = DEFAULT_SEARCH_LIMIT) -> list[ToolSummary]:
        """
        Tools whose name contains the query, for the checkout picker.

        A blank query returns nothing. Results are ordered by category
        name, then tool name.
        """
        term = (query or "").strip()
        if not term:
            return []

        stmt = (
            select(ToolDB)
            .join(CategoryDB, ToolDB.category_id == CategoryDB.id)
            .where(ToolDB.name.ilike(f"%{term}%"))
            .options(selectinload(ToolDB.category))
            .order_by(CategoryDB.name, ToolDB.name)
            .limit(limit)
        )
        tools = safe_query(
            self.session, lambda s: s.execute(stmt).scalars().all(), "Failed to search tools"
        )
        active = self._active_counts([t.id for t in tools])
        return [self._summary(t, active.get(t.id, 0)) for t in tools]

    def list_tools(self, query: str | None = None) -> list[ToolSummary]:
        """Inventory list ordered by name, each with its first attached file."""
        stmt = (
            select(ToolDB)
            .options(selectinload(ToolDB.category), selectinload(ToolDB.files))
            .order_by(ToolDB.name)
        )
        if query and query.strip():
            stmt = stmt.where(ToolDB.name.ilike(f"%{query.strip()}%"))

        tools = safe_query(
            self.session, lambda s: s.execute(stmt).scalars().all(), "Failed to list tools"
        )
        active = self._active_counts([t.id for t in tools])
        return [self._summary(t, active.get(t.id, 0), with_thumbnail=True) for t in tools]

    def add_damage_report(
        self, tool_id: int, description: str, reporter_id: int | None = None
    ) -> DamageReportModel:
        """Record damage against a tool and mark it DAMAGED."""
        db_tool = self._require_db_obj(tool_id)
        text = (description or "").strip()
        if not text:
            raise ValidationError("Damage description is required", field="description")

        report = DamageReportDB(tool_id=tool_id, reporter_id=reporter_id, description=text)
        self.session.add(report)
        if db_tool.condition_status == ConditionStatusEnum.GOOD:
            db_tool.condition_status = ConditionStatusEnum.DAMAGED
        safe_commit(self.session, "add damage report")
        self.session.refresh(report)
        return DamageReportModel.model_validate(report)

