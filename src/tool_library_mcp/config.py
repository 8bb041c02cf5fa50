"""Settings for the Tool Library MCP Server.

Every field can be set through a ``TOOL_LIBRARY_<FIELD>`` environment
variable or a ``.env`` file in the working directory. Values are validated
by pydantic-settings when the process starts, so a bad port or transport
fails fast instead of on first use.
"""

from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Ports other services on a small library server usually hold
RESERVED_PORTS = frozenset({22, 25, 80, 443, 3306, 5432})


class ServerConfig(BaseSettings):
    """Validated server settings."""

    model_config = SettingsConfigDict(
        env_prefix="TOOL_LIBRARY_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="allow",
    )

    # MCP handshake
    server_name: str = Field(
        default="tool-library",
        description="Name announced to MCP clients",
        pattern=r"^[a-z0-9-]{3,50}$",
    )
    server_version: str = Field(
        default="0.1.0",
        description="Semantic version announced to MCP clients",
        pattern=r"^\d+\.\d+\.\d+(-[a-zA-Z0-9.]+)?$",
    )

    # Storage
    database_path: Path = Field(
        default=Path("data/tool_library.db"),
        description="SQLite file used when database_url is not set",
    )
    database_url: str | None = Field(
        default=None,
        description="SQLAlchemy URL for a different database; wins over database_path",
        repr=False,
    )
    upload_base_path: Path = Field(
        default=Path("data/files"),
        description="Root directory for uploaded photos and documents",
    )
    image_max_width: int = Field(
        default=1920, ge=16, description="Wider photos are scaled down to this width"
    )
    image_quality: int = Field(
        default=85, ge=1, le=100, description="Encoder quality for re-encoded photos"
    )

    # Transport
    transport: str = Field(default="stdio", pattern=r"^(stdio|streamable_http)$")
    http_host: str = Field(default="127.0.0.1")
    http_port: int = Field(default=8080, ge=1024, le=65535)

    # Staff sessions
    session_ttl_hours: int = Field(
        default=24, ge=1, le=24 * 30, description="Lifetime of a login session"
    )
    session_sweep_interval_seconds: int = Field(
        default=300, ge=1, description="How often expired sessions are purged"
    )

    search_result_limit: int = Field(
        default=50, ge=1, le=500, description="Row cap for tool and patron searches"
    )

    debug: bool = False
    log_level: str = Field(default="INFO", pattern=r"^(DEBUG|INFO|WARNING|ERROR)$")

    @field_validator("database_path")
    @classmethod
    def ensure_database_directory(cls, v: Path) -> Path:
        path = v.absolute()
        path.parent.mkdir(parents=True, exist_ok=True)
        return path

    @field_validator("upload_base_path")
    @classmethod
    def absolute_upload_path(cls, v: Path) -> Path:
        return v.absolute()

    @field_validator("http_port")
    @classmethod
    def reject_reserved_port(cls, v: int) -> int:
        if v in RESERVED_PORTS:
            raise ValueError(f"Port {v} is usually taken by another service")
        return v

    @property
    def is_development(self) -> bool:
        return self.debug or self.log_level == "DEBUG"

    @property
    def session_ttl_seconds(self) -> int:
        return self.session_ttl_hours * 3600

    @property
    def server_info(self) -> dict[str, str]:
        return {
            "name": self.server_name,
            "version": self.server_version,
            "transport": self.transport,
        }

    def get_database_url(self) -> str:
        return self.database_url or f"sqlite:///{self.database_path}"


class _ConfigStore:
    instance: ServerConfig | None = None


def get_config() -> ServerConfig:
    """The process-wide settings, loaded on first use."""
    if _ConfigStore.instance is None:
        _ConfigStore.instance = ServerConfig()
    return _ConfigStore.instance


def reset_config() -> None:
    """Forget the loaded settings so the next get_config() re-reads the environment."""
    _ConfigStore.instance = None
