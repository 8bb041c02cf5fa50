#!/usr/bin/env python3
"""
Create the Tool Library schema, optionally with demo data.

Usage:
    python scripts/init_database.py [--drop-existing] [--sample-data] [--extra-patrons N]

With --sample-data the script loads a category tree, tools, staff accounts
and patrons, and prints the demo logins.
"""

import argparse
import logging
import sys

from sqlalchemy import inspect

from tool_library_mcp.database import Base, get_db_manager
from tool_library_mcp.database.seed import SAMPLE_PASSWORDS, seed_sample_data

logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)-8s %(message)s")
logger = logging.getLogger(__name__)


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Set up the Tool Library database")
    parser.add_argument(
        "--drop-existing", action="store_true", help="Drop every table first (destroys data)"
    )
    parser.add_argument("--sample-data", action="store_true", help="Load demo data")
    parser.add_argument(
        "--extra-patrons", type=int, default=20, help="Generated patrons on top of the named ones"
    )
    parser.add_argument("--database-url", help="SQLAlchemy URL; defaults to the configured one")
    return parser.parse_args()


def main() -> None:
    args = parse_args()
    db_manager = get_db_manager(args.database_url)

    if not db_manager.verify_connection():
        logger.error("Cannot connect to %s", db_manager.engine.url)
        sys.exit(1)

    try:
        db_manager.init_database(drop_existing=args.drop_existing)

        if args.sample_data:
            with db_manager.session_scope() as session:
                seed_sample_data(session, extra_patrons=args.extra_patrons)
            for user_name, password in SAMPLE_PASSWORDS.items():
                logger.info("Demo login: %s / %s", user_name, password)

        present = set(inspect(db_manager.engine).get_table_names())
        missing = sorted(set(Base.metadata.tables) - present)
        if missing:
            logger.error("Tables missing after setup: %s", ", ".join(missing))
            sys.exit(1)
        logger.info("Database ready with tables: %s", ", ".join(sorted(present)))
    except Exception:
        logger.exception("Database setup failed")
        sys.exit(1)
    finally:
        db_manager.close()


if __name__ == "__main__":
    main()
