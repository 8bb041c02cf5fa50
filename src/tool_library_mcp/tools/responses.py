"""
Result envelopes shared by every tool handler.

Success: ``{"content": [text], "data": {...}}``
Failure: ``{"isError": True, "content": [text], "data": {"error": ..., "field": ...}}``
"""

import logging
from typing import Any

from fastmcp.tools import ToolResult
from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from ..database.errors import RepositoryException

logger = logging.getLogger(__name__)

UNEXPECTED_ERROR = "An unexpected error occurred. The problem has been logged."


def success(message: str, data: dict[str, Any] | None = None) -> dict[str, Any]:
    return {
        "content": [{"type": "text", "text": message}],
        "data": data or {},
    }


def error(message: str, field: str | None = None, kind: str = "error") -> dict[str, Any]:
    return {
        "isError": True,
        "content": [{"type": "text", "text": message}],
        "data": {"error": kind, "message": message, "field": field},
    }


def from_exception(e: RepositoryException) -> dict[str, Any]:
    """Envelope for an expected domain error, tagged with the error class."""
    return error(e.message, field=e.field, kind=type(e).__name__)


def invalid_input(e: PydanticValidationError) -> dict[str, Any]:
    """Envelope for arguments that failed schema validation."""
    first = e.errors()[0] if e.errors() else {}
    field = ".".join(str(part) for part in first.get("loc", ())) or None
    details = "; ".join(
        f"{'.'.join(str(p) for p in err['loc']) or 'input'}: {err['msg']}" for err in e.errors()
    )
    return error(f"Invalid parameters: {details}", field=field, kind="ValidationError")


def unexpected(tool_name: str) -> dict[str, Any]:
    logger.exception("Unexpected error in %s tool", tool_name)
    return error(UNEXPECTED_ERROR, kind="InternalError")


def dump(model: BaseModel) -> dict[str, Any]:
    return model.model_dump(mode="json")


def to_tool_result(envelope: dict[str, Any]) -> ToolResult:
    """
    Convert an envelope into the result FastMCP sends back.

    ``isError`` becomes the protocol-level error flag, so clients see a
    failed call instead of a successful one carrying an error payload.
    """
    text = "\n".join(
        block["text"] for block in envelope.get("content", []) if block.get("type") == "text"
    )
    return ToolResult(
        content=text,
        structured_content=envelope.get("data") or {},
        is_error=bool(envelope.get("isError", False)),
    )
