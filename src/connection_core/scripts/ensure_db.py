"""Create the configured database, or its tables for SQLite deployments."""
from __future__ import annotations

import argparse
import logging
import sys
from urllib.parse import urlsplit, urlunsplit

import psycopg
from psycopg import sql
from sqlalchemy.exc import SQLAlchemyError

from connection_core.core.settings import settings
from connection_core.db.session import create_tables, drop_tables

logger = logging.getLogger(__name__)


def to_libpq_url(uri: str) -> str:
    """Strip quoting and the SQLAlchemy driver suffix so psycopg accepts the URL."""
    uri = (uri or "").strip().strip("'\"")
    if not uri:
        raise ValueError("DATABASE_URL is empty")
    parts = urlsplit(uri)
    scheme = parts.scheme.split("+", 1)[0]
    if scheme not in {"postgresql", "postgres"}:
        raise ValueError(f"Not a Postgres URL: {uri!r}")
    return urlunsplit(("postgresql", parts.netloc, parts.path, parts.query, parts.fragment))


def maintenance_target(db_url: str) -> tuple[str, str]:
    """Return ``(maintenance_url, database_name)`` for ``db_url``."""
    parts = urlsplit(to_libpq_url(db_url))
    target_db = parts.path.lstrip("/") or "postgres"
    if parts.netloc:
        admin_url = urlunsplit(("postgresql", parts.netloc, "/postgres", parts.query, ""))
    else:
        admin_url = "postgresql:///postgres"
    return admin_url, target_db


def ensure_postgres_database(db_url: str) -> bool:
    """Create the Postgres database when missing. Returns True if it was created."""
    admin_url, target_db = maintenance_target(db_url)
    with psycopg.connect(admin_url, autocommit=True) as conn, conn.cursor() as cur:
        cur.execute("SELECT 1 FROM pg_database WHERE datname = %s", (target_db,))
        if cur.fetchone() is not None:
            logger.info("Database %s already exists", target_db)
            return False
        cur.execute(sql.SQL("CREATE DATABASE {}").format(sql.Identifier(target_db)))
    logger.info("Created database %s", target_db)
    return True


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Ensure the configured database exists")
    parser.add_argument(
        "--reset",
        action="store_true",
        help="Drop every table and recreate the schema from the models.",
    )
    parser.add_argument(
        "--url",
        default=None,
        help="Override database URL (defaults to the effective settings URL)",
    )
    args = parser.parse_args(argv)
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")

    raw_url = args.url or settings.effective_database_url
    try:
        if not raw_url.startswith("sqlite"):
            ensure_postgres_database(raw_url)
        if args.reset:
            drop_tables()
            create_tables()
            logger.info("Schema recreated")
    except (ValueError, psycopg.Error, SQLAlchemyError) as exc:
        logger.error("ensure_db failed: %s", exc)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
