#!/usr/bin/env python3
"""
Create a staff account interactively.

Usage:
    python scripts/create_user.py [--database-url URL]
    python scripts/create_user.py --deactivate USERNAME
    python scripts/create_user.py --reactivate USERNAME
"""

import argparse
import getpass
import logging
import sys

from pydantic import ValidationError as PydanticValidationError

from tool_library_mcp.database import RepositoryException, UserCreateSchema, UserRepository
from tool_library_mcp.database import get_db_manager

logging.basicConfig(level=logging.WARNING, format="%(levelname)s - %(message)s")
logger = logging.getLogger(__name__)


def prompt_fields() -> dict[str, str]:
    user_name = input("Username: ").strip()
    password = getpass.getpass("Password (min 8 characters): ")
    name = input("Full Name: ").strip()
    role = input("Role (ADMIN/VOLUNTEER) [ADMIN]: ").strip().upper() or "ADMIN"
    if role not in ("ADMIN", "VOLUNTEER"):
        raise ValueError("Role must be either ADMIN or VOLUNTEER")

    return {
        "user_name": user_name,
        "password": password,
        "name": name,
        "role": role,
        "phone": input("Phone: ").strip(),
        "email": input("Email: ").strip(),
        "mailing_street": input("Street Address: ").strip(),
        "mailing_city": input("City: ").strip(),
        "mailing_state": input("State: ").strip(),
        "mailing_zipcode": input("Zipcode: ").strip(),
    }


def toggle_active(database_url: str | None, user_name: str, active: bool) -> None:
    """Deactivated accounts can no longer log in; their history is kept."""
    db_manager = get_db_manager(database_url)
    try:
        with db_manager.session_scope() as session:
            repo = UserRepository(session)
            db_user = repo.get_by_user_name(user_name)
            if db_user is None:
                print(f"\nError: no user named {user_name!r}\n", file=sys.stderr)
                sys.exit(1)
            user = repo.set_active(db_user.id, active)
    finally:
        db_manager.close()
    print(f"{user.user_name} is now {'active' if user.active else 'inactive'}")


def main():
    parser = argparse.ArgumentParser(description="Create a Tool Library staff account")
    parser.add_argument("--database-url", help="Override default database URL")
    group = parser.add_mutually_exclusive_group()
    group.add_argument("--deactivate", metavar="USERNAME", help="Block an existing account")
    group.add_argument("--reactivate", metavar="USERNAME", help="Unblock an existing account")
    args = parser.parse_args()

    if args.deactivate or args.reactivate:
        toggle_active(args.database_url, args.deactivate or args.reactivate, bool(args.reactivate))
        return

    print("Create New User\n")
    try:
        data = UserCreateSchema.model_validate(prompt_fields())
    except (ValueError, PydanticValidationError) as e:
        print(f"\nError: {e}\n", file=sys.stderr)
        sys.exit(1)

    db_manager = get_db_manager(args.database_url)
    try:
        db_manager.init_database()
        with db_manager.session_scope() as session:
            user = UserRepository(session).create(data)
    except RepositoryException as e:
        print(f"\nError: {e.message}\n", file=sys.stderr)
        sys.exit(1)
    finally:
        db_manager.close()

    print("\nUser created successfully!")
    print(f"   Username: {user.user_name}")
    print(f"   Name: {user.name}")
    print(f"   Role: {user.role}")
    print(f"   ID: {user.id}\n")


if __name__ == "__main__":
    main()
