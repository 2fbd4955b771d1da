"""
Create or upgrade the SportsBook schema in the Supabase Postgres database.

Migrations live in ``migrations/`` as ``<version>_<name>.sql`` and run in
version order, one transaction each. Every applied version is recorded with
a checksum of its file, so a migration edited after it ran is refused rather
than skipped. The run ends by checking that every table the API reads from
exists.

Reads ``DATABASE_URL`` (and optionally ``LOG_LEVEL``) from the environment or
a local .env file.
"""
from __future__ import annotations

import hashlib
import logging
import os
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Sequence

import psycopg
from dotenv import load_dotenv
from psycopg import Connection

from Database.db import (
    ATHLETES_TABLE_NAME,
    BOOKINGS_TABLE_NAME,
    DONATIONS_TABLE_NAME,
    FACILITIES_TABLE_NAME,
    FINANCIAL_AID_TABLE_NAME,
    TRAINERS_TABLE_NAME,
    USERS_TABLE_NAME,
)
from settings import configure_logging

LOGGER = logging.getLogger(__name__)

MIGRATIONS_DIR = Path(__file__).with_name("migrations")
HISTORY_TABLE = "sportsbook_migrations"
REQUIRED_TABLES = (
    USERS_TABLE_NAME,
    FACILITIES_TABLE_NAME,
    TRAINERS_TABLE_NAME,
    ATHLETES_TABLE_NAME,
    BOOKINGS_TABLE_NAME,
    FINANCIAL_AID_TABLE_NAME,
    DONATIONS_TABLE_NAME,
)

_MIGRATION_NAME = re.compile(r"^(\d+)_(\w+)\.sql$")


class MigrationError(RuntimeError):
    """Raised when the schema cannot be brought up to date."""


@dataclass(frozen=True)
class Migration:
    version: int
    name: str
    path: Path

    @property
    def sql(self) -> str:
        return self.path.read_text(encoding="utf-8").strip()

    @property
    def checksum(self) -> str:
        return hashlib.sha256(self.sql.encode("utf-8")).hexdigest()


def database_url() -> str:
    url = os.getenv("DATABASE_URL")
    if not url:
        raise MigrationError("DATABASE_URL must be set to run migrations.")
    return url


def load_migrations(directory: Path = MIGRATIONS_DIR) -> list[Migration]:
    """
    Collect the migration files of ``directory`` in version order.

    Raises:
        MigrationError: On a file name without a version prefix or on two
            files sharing a version.
    """

    migrations: list[Migration] = []
    for path in directory.glob("*.sql"):
        match = _MIGRATION_NAME.match(path.name)
        if match is None:
            raise MigrationError(f"Migration {path.name} must be named <version>_<name>.sql")
        migrations.append(Migration(int(match.group(1)), match.group(2), path))

    migrations.sort(key=lambda migration: migration.version)
    for earlier, later in zip(migrations, migrations[1:]):
        if earlier.version == later.version:
            raise MigrationError(
                f"Migrations {earlier.path.name} and {later.path.name} share version {later.version}"
            )
    return migrations


def applied_checksums(connection: Connection[Any]) -> dict[int, str]:
    connection.execute(
        f"""
        CREATE TABLE IF NOT EXISTS {HISTORY_TABLE} (
            version INTEGER PRIMARY KEY,
            name TEXT NOT NULL,
            checksum TEXT NOT NULL,
            applied_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        );
        """
    )
    rows = connection.execute(f"SELECT version, checksum FROM {HISTORY_TABLE};")
    return {version: checksum for version, checksum in rows}


def pending_migrations(migrations: Sequence[Migration], applied: dict[int, str]) -> list[Migration]:
    """Migrations not applied yet; an applied one must still match its checksum."""

    pending: list[Migration] = []
    for migration in migrations:
        recorded = applied.get(migration.version)
        if recorded is None:
            pending.append(migration)
        elif recorded != migration.checksum:
            raise MigrationError(f"Migration {migration.path.name} was modified after it was applied")
    return pending


def apply_migration(connection: Connection[Any], migration: Migration) -> None:
    with connection.transaction():
        if migration.sql:
            connection.execute(migration.sql)  # type: ignore[arg-type]
        connection.execute(
            f"INSERT INTO {HISTORY_TABLE} (version, name, checksum) VALUES (%s, %s, %s);",
            (migration.version, migration.name, migration.checksum),
        )


def missing_tables(connection: Connection[Any]) -> list[str]:
    rows = connection.execute(
        """
        SELECT table_name FROM information_schema.tables
        WHERE table_schema = 'public' AND table_name = ANY(%s);
        """,
        (list(REQUIRED_TABLES),),
    )
    present = {row[0] for row in rows}
    return [table for table in REQUIRED_TABLES if table not in present]


def migrate(connection: Connection[Any], migrations: Sequence[Migration]) -> list[Migration]:
    """
    Bring the schema up to date.

    Args:
        connection: Autocommit connection; each migration opens its own
            transaction.
        migrations: Known migrations in version order.

    Returns:
        The migrations applied by this run.

    Raises:
        MigrationError: If a migration fails, was edited after it ran, or
            the resulting schema lacks a table the API needs.
    """

    pending = pending_migrations(migrations, applied_checksums(connection))
    for migration in pending:
        LOGGER.info("Applying migration %s", migration.path.name)
        try:
            apply_migration(connection, migration)
        except psycopg.Error as exc:
            LOGGER.error("Migration %s failed: %s", migration.path.name, exc)
            raise MigrationError(f"Migration {migration.path.name} failed") from exc

    missing = missing_tables(connection)
    if missing:
        raise MigrationError(f"Schema is missing tables: {', '.join(missing)}")
    return pending


def main() -> None:
    load_dotenv()
    configure_logging(os.getenv("LOG_LEVEL", "INFO").upper())
    migrations = load_migrations()
    with psycopg.connect(database_url(), autocommit=True) as connection:
        applied = migrate(connection, migrations)

    if applied:
        LOGGER.info("Applied migrations: %s", ", ".join(m.path.name for m in applied))
    else:
        LOGGER.info("SportsBook schema already up to date.")


if __name__ == "__main__":
    main()
