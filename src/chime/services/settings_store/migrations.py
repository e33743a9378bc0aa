"""
Schema migrations for the notification settings database.

Migration files live in the migrations/ directory beside this module and
are named NNN_description.sql. Applied versions are recorded in the
schema_migrations table so each file runs exactly once per database.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    import aiosqlite

logger = logging.getLogger(__name__)

MIGRATIONS_DIR = Path(__file__).parent / "migrations"


@dataclass(frozen=True)
class Migration:
    """A single versioned schema change."""

    version: int
    description: str
    path: Path

    @classmethod
    def from_path(cls, path: Path) -> Migration | None:
        """Build from a NNN_description.sql file (None if misnamed)."""
        prefix, _, rest = path.stem.partition("_")
        try:
            version = int(prefix)
        except ValueError:
            return None
        return cls(version=version, description=rest.replace("_", " ") or path.stem, path=path)


def discover_migrations(directory: Path = MIGRATIONS_DIR) -> list[Migration]:
    """
    List migration files in version order.

    Misnamed files are skipped with a warning.
    """
    migrations = []
    for path in sorted(directory.glob("*.sql")):
        migration = Migration.from_path(path)
        if migration is None:
            logger.warning("Skipping invalid migration file: %s", path.name)
            continue
        migrations.append(migration)
    return sorted(migrations, key=lambda m: m.version)


class MigrationRunner:
    """Bring a settings database up to the latest schema version."""

    def __init__(self, db: aiosqlite.Connection, directory: Path = MIGRATIONS_DIR):
        self.db = db
        self.directory = directory

    async def current_version(self) -> int:
        """Latest applied version, or 0 for a fresh database."""
        await self._ensure_migrations_table()
        cursor = await self.db.execute("SELECT MAX(version) FROM schema_migrations")
        row = await cursor.fetchone()
        return row[0] if row and row[0] is not None else 0

    async def run_migrations(self) -> int:
        """
        Apply pending migrations.

        Returns:
            Number of migrations applied
        """
        current = await self.current_version()
        pending = [m for m in discover_migrations(self.directory) if m.version > current]

        for migration in pending:
            await self._apply(migration)

        if pending:
            logger.info(
                "Settings schema migrated from version %d to %d",
                current,
                pending[-1].version,
            )
        return len(pending)

    async def _ensure_migrations_table(self) -> None:
        await self.db.execute(
            """
            CREATE TABLE IF NOT EXISTS schema_migrations (
                version INTEGER PRIMARY KEY,
                applied_at INTEGER NOT NULL,
                description TEXT
            )
            """
        )
        await self.db.commit()

    async def _apply(self, migration: Migration) -> None:
        logger.info("Applying migration %03d: %s", migration.version, migration.description)

        await self.db.executescript(migration.path.read_text())
        await self.db.execute(
            "INSERT INTO schema_migrations (version, applied_at, description) VALUES (?, ?, ?)",
            (migration.version, int(time.time()), migration.description),
        )
        await self.db.commit()
