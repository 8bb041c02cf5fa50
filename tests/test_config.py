"""Tests for server configuration.

These tests cover:
1. Default values
2. Environment variable loading
3. Validation of transport, port and log level
4. Derived values (session lifetime, database URL)
"""

import os
from pathlib import Path
from unittest.mock import patch

import pytest
from pydantic import ValidationError

from tool_library_mcp.config import ServerConfig, get_config, reset_config


class TestServerConfig:
    def test_defaults(self, tmp_path):
        config = ServerConfig(database_path=tmp_path / "library.db")

        assert config.server_name == "tool-library"
        assert config.server_version == "0.1.0"
        assert config.transport == "stdio"
        assert config.http_port == 8080
        assert config.session_ttl_hours == 24
        assert config.session_sweep_interval_seconds == 300
        assert config.image_quality == 85
        assert config.search_result_limit == 50
        assert ServerConfig.model_fields["database_path"].default == Path("data/tool_library.db")
        assert ServerConfig.model_fields["image_max_width"].default == 1920

    def test_environment_variable_loading(self, tmp_path):
        env_vars = {
            "TOOL_LIBRARY_SERVER_NAME": "eastside-tools",
            "TOOL_LIBRARY_DATABASE_PATH": str(tmp_path / "nested" / "env.db"),
            "TOOL_LIBRARY_SESSION_TTL_HOURS": "8",
            "TOOL_LIBRARY_LOG_LEVEL": "DEBUG",
            "TOOL_LIBRARY_TRANSPORT": "streamable_http",
        }

        with patch.dict(os.environ, env_vars):
            config = ServerConfig()

        assert config.server_name == "eastside-tools"
        assert config.database_path == tmp_path / "nested" / "env.db"
        assert config.database_path.parent.is_dir()
        assert config.session_ttl_seconds == 8 * 60 * 60
        assert config.transport == "streamable_http"
        assert config.is_development is True

    @pytest.mark.parametrize("transport", ["http", "websocket", "STDIO"])
    def test_unknown_transport_rejected(self, transport):
        with pytest.raises(ValidationError):
            ServerConfig(transport=transport)

    @pytest.mark.parametrize("port", [80, 443, 1023, 70000])
    def test_bad_ports_rejected(self, port):
        with pytest.raises(ValidationError):
            ServerConfig(http_port=port)

    def test_bad_log_level_rejected(self):
        with pytest.raises(ValidationError):
            ServerConfig(log_level="VERBOSE")

    def test_server_name_rules(self):
        with pytest.raises(ValidationError):
            ServerConfig(server_name="Tool Library")
        with pytest.raises(ValidationError):
            ServerConfig(server_name="ab")

    def test_database_url_from_path(self, tmp_path):
        config = ServerConfig(database_path=tmp_path / "library.db")
        assert config.get_database_url() == f"sqlite:///{tmp_path / 'library.db'}"

    def test_database_url_override(self):
        config = ServerConfig(database_url="sqlite:///:memory:")
        assert config.get_database_url() == "sqlite:///:memory:"

    def test_upload_path_made_absolute(self):
        config = ServerConfig(upload_base_path=Path("uploads"))
        assert config.upload_base_path.is_absolute()

    def test_server_info(self):
        info = ServerConfig().server_info
        assert info == {"name": "tool-library", "version": "0.1.0", "transport": "stdio"}


class TestGlobalConfig:
    def test_get_config_is_cached(self):
        assert get_config() is get_config()

    def test_reset_config_reloads_environment(self, monkeypatch):
        first = get_config()
        monkeypatch.setenv("TOOL_LIBRARY_SEARCH_RESULT_LIMIT", "5")
        reset_config()

        second = get_config()
        assert second is not first
        assert second.search_result_limit == 5

    def test_test_settings_point_into_tmp_path(self, test_config, tmp_path):
        assert test_config.database_path == tmp_path / "test_tool_library.db"
        assert test_config.upload_base_path == tmp_path / "files"
        assert test_config.image_max_width == 200
