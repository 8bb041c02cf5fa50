"""Configuration for Logfire observability."""

import os

from pydantic import BaseModel, Field

# Never recorded as span attributes
REDACTED_FIELDS = frozenset({"password", "session_token", "content_base64", "files"})


def _env_flag(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() == "true"


class ObservabilityConfig(BaseModel):
    """Configuration for Logfire observability."""

    # Connection
    token: str = Field(default_factory=lambda: os.getenv("LOGFIRE_TOKEN", ""))
    service_name: str = "tool-library-mcp"
    environment: str = Field(default_factory=lambda: os.getenv("ENVIRONMENT", "development"))

    # Behavior
    enabled: bool = Field(default_factory=lambda: _env_flag("LOGFIRE_ENABLED", "true"))
    console_output: bool = Field(default_factory=lambda: _env_flag("LOGFIRE_CONSOLE", "false"))
    # Nothing leaves the machine unless explicitly asked for
    send_to_logfire: bool = Field(default_factory=lambda: _env_flag("LOGFIRE_SEND", "false"))
