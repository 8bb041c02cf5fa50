"""
Inventory tools for the Tool Library MCP Server.

1. create_tool / update_tool / delete_tool: manage tool records
2. search_tools: find tools by name with live availability
3. report_damage: file a damage report against a tool
4. upload_files / get_file: photos and documents attached to records

File contents travel base64 encoded. Photos are resized and re-encoded
before they are stored.
"""

import base64
import logging
from typing import Any

from pydantic import BaseModel, Field
from pydantic import ValidationError as PydanticValidationError

from ..auth import require_role, require_user
from ..config import get_config
from ..database.errors import NotFoundError, RepositoryException
from ..database.session import session_scope
from ..database.tool_repository import ToolCreateSchema, ToolRepository, ToolUpdateSchema
from ..files import FileService, UploadedFile, target_for
from ..models.file import EntityType
from ..models.tool import ConditionStatus
from ..models.user import UserRole
from ..observability import trace_tool
from . import responses

logger = logging.getLogger(__name__)


class ToolFieldsInput(BaseModel):
    """Fields shared by create_tool and update_tool."""

    session_token: str = Field(..., description="Token returned by the login tool")
    name: str = Field(..., description="Tool name", examples=["Cordless Drill"])
    description: str = Field("", description="Description, accessories, usage notes")
    category_id: int = Field(..., description="Category the tool belongs to")
    quantity: int = Field(1, ge=1, description="Number of identical units owned")
    donor: str | None = Field(None, description="Donor name, if known")
    condition_status: str | None = Field(
        None,
        description="GOOD, DAMAGED or RETIRED; anything else is treated as GOOD",
        examples=[s.value for s in ConditionStatus],
    )


class UpdateToolInput(ToolFieldsInput):
    tool_id: int = Field(..., description="Tool to update")


class ToolIdInput(BaseModel):
    session_token: str = Field(..., description="Token returned by the login tool")
    tool_id: int = Field(..., description="Tool id")


class SearchToolsInput(BaseModel):
    session_token: str = Field(..., description="Token returned by the login tool")
    query: str = Field(..., description="Part of the tool name", examples=["drill", "saw"])


class ReportDamageInput(BaseModel):
    session_token: str = Field(..., description="Token returned by the login tool")
    tool_id: int = Field(..., description="Damaged tool")
    description: str = Field(..., min_length=1, description="What is wrong with the tool")


class FileUploadInput(BaseModel):
    file_name: str = Field(..., description="Original file name", examples=["drill.jpg"])
    content_base64: str = Field(..., description="File content, base64 encoded")
    content_type: str | None = Field(None, description="MIME type; guessed from the name if omitted")


class UploadFilesInput(BaseModel):
    session_token: str = Field(..., description="Token returned by the login tool")
    entity_type: EntityType = Field(..., description="Kind of record the files belong to")
    entity_id: int = Field(..., description="Id of that record")
    files: list[FileUploadInput] = Field(..., min_length=1)
    label: str | None = Field(None, description="Optional label for every file", examples=["Photo"])


class GetFileInput(BaseModel):
    session_token: str = Field(..., description="Token returned by the login tool")
    file_id: int = Field(..., description="Stored file id")


def _tool_schema(params: ToolFieldsInput, schema: type[ToolCreateSchema]) -> ToolCreateSchema:
    return schema(
        name=params.name,
        description=params.description,
        category_id=params.category_id,
        quantity=params.quantity,
        donor=params.donor,
        condition_status=params.condition_status,
    )


@trace_tool("create_tool")
async def create_tool_handler(arguments: dict[str, Any]) -> dict[str, Any]:
    try:
        params = ToolFieldsInput.model_validate(arguments)
        data = _tool_schema(params, ToolCreateSchema)
    except PydanticValidationError as e:
        return responses.invalid_input(e)

    try:
        require_user(params.session_token)
        with session_scope() as session:
            tool = ToolRepository(session).create(data)
    except RepositoryException as e:
        return responses.from_exception(e)
    except Exception:
        return responses.unexpected("create_tool")

    return responses.success(
        f"Added '{tool.name}' (id {tool.id}, quantity {tool.quantity}).",
        {"tool": responses.dump(tool)},
    )


@trace_tool("update_tool")
async def update_tool_handler(arguments: dict[str, Any]) -> dict[str, Any]:
    try:
        params = UpdateToolInput.model_validate(arguments)
        data = _tool_schema(params, ToolUpdateSchema)
    except PydanticValidationError as e:
        return responses.invalid_input(e)

    try:
        require_user(params.session_token)
        with session_scope() as session:
            tool = ToolRepository(session).update(params.tool_id, data)
    except RepositoryException as e:
        return responses.from_exception(e)
    except Exception:
        return responses.unexpected("update_tool")

    return responses.success(f"Updated '{tool.name}' (id {tool.id}).", {"tool": responses.dump(tool)})


@trace_tool("delete_tool")
async def delete_tool_handler(arguments: dict[str, Any]) -> dict[str, Any]:
    try:
        params = ToolIdInput.model_validate(arguments)
    except PydanticValidationError as e:
        return responses.invalid_input(e)

    try:
        require_role(params.session_token, UserRole.ADMIN)
        with session_scope() as session:
            if not ToolRepository(session).delete(params.tool_id):
                raise NotFoundError(f"Tool {params.tool_id} not found", field="tool_id")
    except RepositoryException as e:
        return responses.from_exception(e)
    except Exception:
        return responses.unexpected("delete_tool")

    return responses.success(
        f"Permanently deleted tool {params.tool_id} with its loan history and files.",
        {"tool_id": params.tool_id},
    )


@trace_tool("search_tools")
async def search_tools_handler(arguments: dict[str, Any]) -> dict[str, Any]:
    try:
        params = SearchToolsInput.model_validate(arguments)
    except PydanticValidationError as e:
        return responses.invalid_input(e)

    try:
        require_user(params.session_token)
        with session_scope() as session:
            tools = ToolRepository(session).search(
                params.query, limit=get_config().search_result_limit
            )
    except RepositoryException as e:
        return responses.from_exception(e)
    except Exception:
        return responses.unexpected("search_tools")

    lines = [
        f"- [{t.id}] {t.name} ({t.category_name}): {t.available_count} of {t.quantity} available"
        for t in tools
    ]
    text = "\n".join([f"Found {len(tools)} tool(s) matching '{params.query}'.", *lines])
    return responses.success(text, {"tools": [responses.dump(t) for t in tools]})


@trace_tool("report_damage")
async def report_damage_handler(arguments: dict[str, Any]) -> dict[str, Any]:
    try:
        params = ReportDamageInput.model_validate(arguments)
    except PydanticValidationError as e:
        return responses.invalid_input(e)

    try:
        user = require_user(params.session_token)
        with session_scope() as session:
            report = ToolRepository(session).add_damage_report(
                params.tool_id, params.description, reporter_id=user.id
            )
    except RepositoryException as e:
        return responses.from_exception(e)
    except Exception:
        return responses.unexpected("report_damage")

    return responses.success(
        f"Damage report {report.id} filed for tool {report.tool_id}.",
        {"damage_report": responses.dump(report)},
    )


@trace_tool("upload_files")
async def upload_files_handler(arguments: dict[str, Any]) -> dict[str, Any]:
    try:
        params = UploadFilesInput.model_validate(arguments)
    except PydanticValidationError as e:
        return responses.invalid_input(e)

    try:
        user = require_user(params.session_token)
        uploads = [
            UploadedFile.from_base64(f.file_name, f.content_base64, f.content_type)
            for f in params.files
        ]
        with session_scope() as session:
            result = FileService(session).write_many(
                uploads,
                target_for(params.entity_type, params.entity_id),
                uploaded_by=user.id,
                label=params.label,
            )
    except RepositoryException as e:
        return responses.from_exception(e)
    except Exception:
        return responses.unexpected("upload_files")

    message = f"Stored {len(result.successful)} file(s)"
    if result.failed:
        message += f"; {len(result.failed)} failed: " + ", ".join(
            f"{f.file_name} ({f.error})" for f in result.failed
        )
        if not result.successful:
            return responses.error(message, field="files", kind="StorageError")
    return responses.success(message + ".", responses.dump(result))


@trace_tool("get_file")
async def get_file_handler(arguments: dict[str, Any]) -> dict[str, Any]:
    try:
        params = GetFileInput.model_validate(arguments)
    except PydanticValidationError as e:
        return responses.invalid_input(e)

    try:
        require_user(params.session_token)
        with session_scope() as session:
            stored = FileService(session).read_file(params.file_id)
    except RepositoryException as e:
        return responses.from_exception(e)
    except Exception:
        return responses.unexpected("get_file")

    return responses.success(
        f"{stored.record.file_name} ({stored.content_type}, {len(stored.data)} bytes)",
        {
            "file": responses.dump(stored.record),
            "content_type": stored.content_type,
            "content_base64": base64.b64encode(stored.data).decode("ascii"),
        },
    )


inventory_tools: list[dict[str, Any]] = [
    {
        "name": "create_tool",
        "description": "Add a tool to the inventory in an existing category.",
        "inputSchema": ToolFieldsInput.model_json_schema(),
        "handler": create_tool_handler,
    },
    {
        "name": "update_tool",
        "description": "Replace a tool's name, description, category, quantity, donor and condition.",
        "inputSchema": UpdateToolInput.model_json_schema(),
        "handler": update_tool_handler,
    },
    {
        "name": "delete_tool",
        "description": (
            "Permanently delete a tool together with its checkout history, damage reports "
            "and files. This cannot be undone. Admin only."
        ),
        "inputSchema": ToolIdInput.model_json_schema(),
        "handler": delete_tool_handler,
    },
    {
        "name": "search_tools",
        "description": (
            "Find tools whose name contains the query, ordered by category then name, "
            "with the number of units available right now."
        ),
        "inputSchema": SearchToolsInput.model_json_schema(),
        "handler": search_tools_handler,
    },
    {
        "name": "report_damage",
        "description": "File a damage report against a tool; a GOOD tool becomes DAMAGED.",
        "inputSchema": ReportDamageInput.model_json_schema(),
        "handler": report_damage_handler,
    },
    {
        "name": "upload_files",
        "description": (
            "Attach base64-encoded files to a tool, patron, volunteer or damage report. "
            "JPEG, PNG and WebP photos are resized and stripped of metadata."
        ),
        "inputSchema": UploadFilesInput.model_json_schema(),
        "handler": upload_files_handler,
    },
    {
        "name": "get_file",
        "description": "Download a stored file as base64 with its content type.",
        "inputSchema": GetFileInput.model_json_schema(),
        "handler": get_file_handler,
    },
]
