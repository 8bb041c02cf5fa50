"""Tracing for the Tool Library MCP Server, built on Logfire."""

import logging

import logfire

from .config import ObservabilityConfig
from .decorators import trace_resource, trace_tool

logger = logging.getLogger(__name__)


def initialize_observability(config: ObservabilityConfig | None = None) -> None:
    """Configure Logfire once at startup; a disabled config leaves spans as no-ops."""
    settings = config or ObservabilityConfig()
    if not settings.enabled:
        logger.debug("Tracing disabled")
        return

    logfire.configure(
        token=settings.token or None,
        service_name=settings.service_name,
        environment=settings.environment,
        send_to_logfire=settings.send_to_logfire,
        console=None if settings.console_output else False,
    )
    logger.info(
        "Tracing configured for %s (sending to Logfire: %s)",
        settings.environment,
        settings.send_to_logfire,
    )


__all__ = [
    "ObservabilityConfig",
    "initialize_observability",
    "trace_resource",
    "trace_tool",
]
