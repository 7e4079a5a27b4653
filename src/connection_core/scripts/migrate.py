# src/connection_core/scripts/migrate.py
"""Apply Alembic migrations to the configured database."""
from __future__ import annotations

import argparse
from pathlib import Path

from alembic import command
from alembic.config import Config

from connection_core.core.settings import settings

MIGRATIONS_DIR = Path(__file__).resolve().parents[3] / "migrations"


def alembic_config(url: str | None = None) -> Config:
    """Build an Alembic config without an ini file."""
    cfg = Config()
    cfg.set_main_option("script_location", str(MIGRATIONS_DIR))
    cfg.set_main_option("sqlalchemy.url", url or settings.database_url_sync)
    return cfg


def run_upgrade(revision: str = "head", url: str | None = None) -> None:
    command.upgrade(alembic_config(url), revision)


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(description="Upgrade the database schema")
    parser.add_argument("revision", nargs="?", default="head")
    parser.add_argument("--url", default=None, help="Override the database URL")
    args = parser.parse_args(argv)
    run_upgrade(args.revision, args.url)


if __name__ == "__main__":
    main()
