"""Tool Library MCP Server.

Entry point for the community tool-lending library. The server exposes:

- Resources: the category tree with availability counts and the tool catalog
- Tools: staff login, category and inventory management, patrons, file
  uploads, checkout and check-in

Logs go to stderr; on the stdio transport stdout carries the MCP protocol.

MCP REGISTRATION:
Resource handlers are registered through ``mcp.resource`` and FastMCP reads
their URI parameters from the handler signature. Tool handlers instead take
the raw argument dict, so each is wrapped in an ``EnvelopeTool`` carrying the
tool's pydantic input schema; its ``isError`` envelopes become MCP tool
errors on the wire.
"""

import logging
import signal
import sys
from collections.abc import Awaitable, Callable
from typing import Any

from fastmcp import FastMCP
from fastmcp.tools import Tool, ToolResult
from pydantic.json_schema import SkipJsonSchema

from .auth import start_session_sweeper, stop_session_sweeper
from .config import get_config
from .database.session import get_db_manager
from .observability import initialize_observability
from .resources import all_resources
from .tools import all_tools, responses

logger = logging.getLogger(__name__)

INSTRUCTIONS = (
    "Tool Library MCP Server - lending library for tools. Log in with the login tool "
    "and pass the returned session_token to every other tool. Read the category tree "
    "and tool catalog through resources; check tools out and in, and manage patrons "
    "and inventory, through tools."
)


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)-8s %(name)s: %(message)s",
        handlers=[logging.StreamHandler(sys.stderr)],
    )


def _register_resources(mcp: FastMCP, resources: list[dict[str, Any]]) -> None:
    for resource in resources:
        uri = resource.get("uri_template") or resource.get("uri")
        if not uri:
            raise ValueError(f"Resource {resource.get('name')!r} has no URI")
        logger.debug("Resource %s -> %s", resource["name"], uri)
        mcp.resource(
            uri=uri,
            name=resource["name"],
            description=resource["description"],
            mime_type=resource["mime_type"],
        )(resource["handler"])


class EnvelopeTool(Tool):
    """
    An MCP tool backed by one of the handlers in ``tools/``.

    Handlers take the raw argument dict and validate it against their own
    pydantic input model, so the advertised ``parameters`` schema is that
    model's JSON schema rather than one inferred from the handler signature.
    """

    handler: SkipJsonSchema[Callable[[dict[str, Any]], Awaitable[dict[str, Any]]]]

    async def run(self, arguments: dict[str, Any]) -> ToolResult:
        return responses.to_tool_result(await self.handler(arguments))


def _register_tools(mcp: FastMCP, tools: list[dict[str, Any]]) -> None:
    for tool in tools:
        logger.debug("Tool %s", tool["name"])
        mcp.add_tool(
            EnvelopeTool(
                name=tool["name"],
                description=tool["description"],
                parameters=tool["inputSchema"],
                handler=tool["handler"],
            )
        )


def create_server() -> FastMCP:
    """Build the FastMCP instance with every resource and tool attached."""
    info = get_config().server_info
    mcp = FastMCP(name=info["name"], version=info["version"], instructions=INSTRUCTIONS)

    _register_resources(mcp, all_resources)
    _register_tools(mcp, all_tools)
    logger.info("Registered %d resources and %d tools", len(all_resources), len(all_tools))
    return mcp


def _exit_on_signal(signum: int, _frame: Any) -> None:
    logger.info("Signal %s received, shutting down", signum)
    sys.exit(0)


def run_server(mcp: FastMCP) -> None:
    """Prepare the database and session sweeper, then serve until stopped."""
    config = get_config()
    fastmcp_level = logging.DEBUG if config.is_development else logging.WARNING
    logging.getLogger("fastmcp").setLevel(fastmcp_level)

    signal.signal(signal.SIGINT, _exit_on_signal)
    signal.signal(signal.SIGTERM, _exit_on_signal)

    db_manager = get_db_manager()
    db_manager.init_database()
    if not db_manager.verify_connection():
        logger.error("Database %s is not reachable", db_manager.engine.url)
        sys.exit(1)

    start_session_sweeper()
    try:
        if config.transport == "stdio":
            logger.info("Serving on stdio")
            mcp.run(transport="stdio")
        else:
            logger.info("Serving on http://%s:%s", config.http_host, config.http_port)
            mcp.run(transport="streamable-http", host=config.http_host, port=config.http_port)
    finally:
        stop_session_sweeper()
        db_manager.close()
        logger.info("Server stopped")


def main() -> None:
    config = get_config()
    configure_logging("DEBUG" if config.debug else config.log_level)
    logger.info("Starting %(name)s %(version)s (transport=%(transport)s)", config.server_info)

    try:
        initialize_observability()
        run_server(create_server())
    except KeyboardInterrupt:
        logger.info("Interrupted")
    except Exception:
        logger.exception("Server failed")
        sys.exit(1)


if __name__ == "__main__":
    main()
