"""Test configuration and fixtures for the Tool Library MCP Server.

Every test gets:
1. Isolated configuration - TOOL_LIBRARY_* settings pointing into tmp_path
2. A fresh SQLite file installed as the global DatabaseManager, so MCP
   handlers (which open their own sessions) and the test share one database
3. A session store that tests can drive directly

Handlers open their own sessions and SQLite takes the write lock at BEGIN,
so fixtures that write always go through short ``session_scope`` blocks.
"""

import os
from collections.abc import Generator
from datetime import date
from pathlib import Path

import logfire
import pytest
from sqlalchemy.orm import Session

from tool_library_mcp.auth import SessionStore, set_session_store, stop_session_sweeper
from tool_library_mcp.auth.gate import load_active_user
from tool_library_mcp.config import ServerConfig, get_config, reset_config
from tool_library_mcp.database import (
    CategoryRepository,
    DatabaseManager,
    PatronRepository,
    ToolCreateSchema,
    ToolRepository,
    UserCreateSchema,
    UserRepository,
    get_db_manager,
    reset_db_manager,
)
from tool_library_mcp.models import PatronFields

ADMIN_PASSWORD = "admin-pass-123"
VOLUNTEER_PASSWORD = "volunteer-pass-123"

# Spans are created but never exported
logfire.configure(send_to_logfire=False, console=False)


def pytest_configure(config):
    config.addinivalue_line(
        "markers", "mcp_protocol: tests that exercise MCP tool and resource envelopes"
    )


# === Configuration Fixtures ===


@pytest.fixture(autouse=True)
def test_config(tmp_path: Path, monkeypatch) -> Generator[ServerConfig, None, None]:
    """Point every setting that touches disk into tmp_path."""
    for key in list(os.environ):
        if key.startswith("TOOL_LIBRARY_"):
            monkeypatch.delenv(key)
    monkeypatch.setenv("TOOL_LIBRARY_DATABASE_PATH", str(tmp_path / "test_tool_library.db"))
    monkeypatch.setenv("TOOL_LIBRARY_UPLOAD_BASE_PATH", str(tmp_path / "files"))
    monkeypatch.setenv("TOOL_LIBRARY_IMAGE_MAX_WIDTH", "200")

    reset_config()
    yield get_config()
    reset_config()


# === Database Fixtures ===


@pytest.fixture
def db_manager(test_config: ServerConfig) -> Generator[DatabaseManager, None, None]:
    """A fresh schema in a per-test SQLite file, installed as the global manager."""
    reset_db_manager()
    manager = get_db_manager(test_config.get_database_url())
    manager.init_database()
    yield manager
    stop_session_sweeper()
    reset_db_manager()


@pytest.fixture
def db_session(db_manager: DatabaseManager) -> Generator[Session, None, None]:
    """A session for repository tests. Do not hold it open across handler calls."""
    session = db_manager.create_session()
    try:
        yield session
    finally:
        session.rollback()
        session.close()


@pytest.fixture
def session_store(db_manager: DatabaseManager) -> Generator[SessionStore, None, None]:
    store = SessionStore(load_active_user)
    set_session_store(store)
    yield store
    set_session_store(None)


# === Staff Fixtures ===


def _create_user(db_manager: DatabaseManager, user_name: str, password: str, role: str):
    with db_manager.session_scope() as session:
        return UserRepository(session).create(
            UserCreateSchema(
                user_name=user_name,
                password=password,
                name=f"{user_name.title()} Tester",
                role=role,
                email=f"{user_name}@toollibrary.test",
                training_date=date(2024, 1, 15),
            )
        )


@pytest.fixture
def admin_password() -> str:
    return ADMIN_PASSWORD


@pytest.fixture
def volunteer_password() -> str:
    return VOLUNTEER_PASSWORD


@pytest.fixture
def admin_user(db_manager: DatabaseManager):
    return _create_user(db_manager, "admin", ADMIN_PASSWORD, "ADMIN")


@pytest.fixture
def volunteer_user(db_manager: DatabaseManager):
    return _create_user(db_manager, "volunteer", VOLUNTEER_PASSWORD, "VOLUNTEER")


@pytest.fixture
def admin_token(session_store: SessionStore, admin_user) -> str:
    return session_store.create_session(admin_user.id)


@pytest.fixture
def volunteer_token(session_store: SessionStore, volunteer_user) -> str:
    return session_store.create_session(volunteer_user.id)


# === Library Data Fixtures ===


def patron_fields(**overrides) -> PatronFields:
    data = {
        "first_name": "Alice",
        "last_name": "Builder",
        "email": "alice@email.com",
        "phone": "555-555-1001",
        "mailing_street": "100 Construction Way",
        "mailing_city": "Springfield",
        "mailing_state": "IL",
        "mailing_zipcode": "62704",
    }
    data.update(overrides)
    return PatronFields(**data)


@pytest.fixture
def make_patron_fields():
    """Factory for valid PatronFields; keyword arguments override defaults."""
    return patron_fields


@pytest.fixture
def patron(db_manager: DatabaseManager, admin_user):
    with db_manager.session_scope() as session:
        return PatronRepository(session).create(patron_fields(), created_by=admin_user.id)


@pytest.fixture
def catalog(db_manager: DatabaseManager) -> dict:
    """Power Tools > Drills/Saws with three tools.

    Returns a dict of category and tool models keyed by short names.
    """
    with db_manager.session_scope() as session:
        categories = CategoryRepository(session)
        power = categories.create("Power Tools")
        drills = categories.create("Drills", power.id)
        saws = categories.create("Saws", power.id)

        tools = ToolRepository(session)
        drill = tools.create(
            ToolCreateSchema(name="Cordless Drill", category_id=drills.id, quantity=2)
        )
        hammer_drill = tools.create(
            ToolCreateSchema(name="Hammer Drill", category_id=drills.id, quantity=1)
        )
        saw = tools.create(ToolCreateSchema(name="Circular Saw", category_id=saws.id, quantity=1))

    return {
        "power": power,
        "drills": drills,
        "saws": saws,
        "drill": drill,
        "hammer_drill": hammer_drill,
        "saw": saw,
    }
