"""Versioned schema migrations for the data room warehouse.

Migrations are plain SQL files in ``db/sql`` named ``NNNN_description.sql``.
Applied versions are recorded in ``schema_migrations``; each pending file runs
in its own transaction, in version order. Deployments run them with
``scripts/run_migrations.py`` before the new release starts serving.
"""

import re
from dataclasses import dataclass
from pathlib import Path

from loguru import logger

from vdr_api.db.warehouse import Warehouse

SQL_DIR = Path(__file__).parent / "sql"
MIGRATION_FILE_PATTERN = re.compile(r"^(\d{4})_([a-z0-9_]+)\.sql$")


@dataclass(frozen=True)
class Migration:
    """One versioned SQL file."""

    version: int
    name: str
    path: Path

    def read(self) -> str:
        return self.path.read_text(encoding="utf-8")


def discover_migrations(sql_dir: Path = SQL_DIR) -> list[Migration]:
    """
    List migration files in version order.

    Raises
    ------
    ValueError
        If a file does not follow the naming scheme or two files share a version
    """
    migrations = []
    for path in sorted(sql_dir.glob("*.sql")):
        match = MIGRATION_FILE_PATTERN.match(path.name)
        if not match:
            raise ValueError(f"Migration file name must look like 0001_name.sql: {path.name}")
        migrations.append(Migration(version=int(match.group(1)), name=match.group(2), path=path))

    versions = [m.version for m in migrations]
    if len(versions) != len(set(versions)):
        raise ValueError(f"Duplicate migration versions in {sql_dir}")

    return migrations


async def applied_versions(warehouse: Warehouse) -> set[int]:
    """Create the bookkeeping table if needed and return the applied versions."""
    async with warehouse.acquire() as conn:
        await conn.execute(
            """
            CREATE TABLE IF NOT EXISTS schema_migrations (
                version     INTEGER PRIMARY KEY,
                name        TEXT NOT NULL,
                applied_at  TIMESTAMPTZ NOT NULL DEFAULT NOW()
            )
            """
        )
        rows = await conn.fetch("SELECT version FROM schema_migrations")
    return {row["version"] for row in rows}


async def run_migrations(warehouse: Warehouse, sql_dir: Path = SQL_DIR) -> list[int]:
    """Apply every pending migration.

    Parameters
    ----------
    warehouse : Warehouse
        Connected (or connecting) warehouse gateway
    sql_dir : Path
        Directory holding the versioned SQL files

    Returns
    -------
    list[int]
        Versions applied by this run (empty when the schema is current)
    """
    done = await applied_versions(warehouse)
    pending = [m for m in discover_migrations(sql_dir) if m.version not in done]

    if not pending:
        logger.info("Warehouse schema is up to date", applied=len(done))
        return []

    applied = []
    for migration in pending:
        logger.info("Applying migration", version=migration.version, name=migration.name)
        async with warehouse.transaction() as conn:
            await conn.execute(migration.read())
            await conn.execute(
                "INSERT INTO schema_migrations (version, name) VALUES ($1, $2)",
                migration.version,
                migration.name,
            )
        applied.append(migration.version)

    logger.success("Warehouse migrations completed", applied=applied)
    return applied
