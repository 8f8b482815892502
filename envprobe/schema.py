"""Database schema definitions for probe run history."""

import logging
import aiosqlite

logger = logging.getLogger(__name__)

SCHEMA_VERSION = 1

CREATE_TABLES_SQL = """
-- Schema version tracking
CREATE TABLE IF NOT EXISTS schema_version (
    version INTEGER PRIMARY KEY,
    applied_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
);

-- Completed probe runs, newest kept up to the configured limit
CREATE TABLE IF NOT EXISTS runs (
    run_id TEXT PRIMARY KEY,
    created_at TIMESTAMP NOT NULL,
    environment TEXT,
    target_url TEXT NOT NULL,
    strategy TEXT,
    verdict TEXT NOT NULL CHECK(verdict IN ('GO', 'NO-GO')),
    report_json TEXT NOT NULL
);

-- Archived environment settings
CREATE TABLE IF NOT EXISTS archive (
    archive_id TEXT PRIMARY KEY,
    name TEXT NOT NULL,
    archived_at TIMESTAMP NOT NULL,
    settings_json TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_runs_created_at ON runs(created_at);
CREATE INDEX IF NOT EXISTS idx_runs_environment ON runs(environment);
CREATE INDEX IF NOT EXISTS idx_archive_archived_at ON archive(archived_at);
"""


async def initialize_database(db: aiosqlite.Connection) -> None:
    """Initialize database schema and apply migrations."""
    try:
        await db.executescript(CREATE_TABLES_SQL)

        current_version = await get_schema_version(db)

        if current_version < SCHEMA_VERSION:
            await db.execute(
                "INSERT INTO schema_version (version) VALUES (?)",
                (SCHEMA_VERSION,)
            )
            await db.commit()
            logger.info(f"Database schema initialized to version {SCHEMA_VERSION}")
        else:
            logger.debug(f"Database schema already at version {current_version}")

    except Exception as e:
        logger.error(f"Failed to initialize database: {e}")
        raise


async def get_schema_version(db: aiosqlite.Connection) -> int:
    """Get current schema version."""
    try:
        async with db.execute("SELECT version FROM schema_version ORDER BY version DESC LIMIT 1") as cursor:
            row = await cursor.fetchone()
            return row[0] if row else 0
    except aiosqlite.Error:
        return 0
