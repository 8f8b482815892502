"""Run history and environment archive, stored in SQLite."""

import logging
import json
import uuid
from datetime import datetime
from typing import Optional, List, Dict, Any
from pathlib import Path
import aiosqlite

from .schema import initialize_database
from .models import Report, RunRecord, ArchiveRecord
from .exceptions import DatabaseError

logger = logging.getLogger(__name__)


class HistoryStore:
    """Persists completed reports and archived environment settings."""

    def __init__(self, db_path: str, history_limit: int = 50):
        """Initialize history store.

        Args:
            db_path: Path to SQLite database file
            history_limit: Number of most recent runs to keep
        """
        self.db_path = db_path
        self.history_limit = history_limit
        self.db: Optional[aiosqlite.Connection] = None

    async def __aenter__(self):
        """Async context manager entry."""
        await self._initialize()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit."""
        if self.db:
            await self.db.close()
            self.db = None

    async def _initialize(self):
        """Initialize database connection and schema."""
        try:
            Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)

            self.db = await aiosqlite.connect(self.db_path)
            self.db.row_factory = aiosqlite.Row
            await initialize_database(self.db)
            logger.info(f"History store initialized with database: {self.db_path}")
        except Exception as e:
            logger.error(f"Failed to initialize history store: {e}")
            await self._close_quietly()
            raise DatabaseError("Failed to initialize database", e)

    async def _close_quietly(self):
        """Close a connection left open by a failed initialization."""
        if self.db:
            try:
                await self.db.close()
            except Exception as e:
                logger.warning(f"Error closing history database: {e}")
            self.db = None

    # Run history

    async def save_run(
        self,
        report: Report,
        env_name: Optional[str],
        target_url: str,
    ) -> RunRecord:
        """Store a completed report and trim history to the limit.

        Args:
            report: Finalized report
            env_name: Named environment, or None for ad-hoc targets
            target_url: URL that was probed

        Returns:
            The stored RunRecord
        """
        run_id = str(uuid.uuid4())
        now = datetime.now()
        verdict = report.verdict.value
        report_json = report.to_json()

        try:
            await self.db.execute(
                """INSERT INTO runs (
                    run_id, created_at, environment, target_url, strategy, verdict, report_json
                ) VALUES (?, ?, ?, ?, ?, ?, ?)""",
                (run_id, now.isoformat(timespec="microseconds"), env_name, target_url, report.strategy, verdict, report_json)
            )
            await self.db.execute(
                """DELETE FROM runs WHERE run_id NOT IN (
                    SELECT run_id FROM runs ORDER BY created_at DESC LIMIT ?
                )""",
                (self.history_limit,)
            )
            await self.db.commit()
            logger.info(f"Saved run {run_id} ({verdict}) for {env_name or target_url}")

            return RunRecord(
                run_id=run_id,
                created_at=now,
                environment=env_name,
                target_url=target_url,
                strategy=report.strategy,
                verdict=verdict,
                report_json=report_json,
            )
        except Exception as e:
            logger.error(f"Failed to save run: {e}")
            raise DatabaseError("Failed to save run", e)

    async def get_run(self, run_id: str) -> Optional[RunRecord]:
        """Get run by ID or by the short ID prefix shown in listings.

        Returns None when nothing matches or the prefix is ambiguous.
        """
        try:
            async with self.db.execute(
                "SELECT * FROM runs WHERE run_id = ? OR run_id LIKE ? LIMIT 2",
                (run_id, f"{run_id}%")
            ) as cursor:
                rows = await cursor.fetchall()
                if len(rows) == 1:
                    return RunRecord(**dict(rows[0]))
                if rows:
                    logger.warning(f"Run ID prefix {run_id!r} is ambiguous")
                return None
        except Exception as e:
            logger.error(f"Failed to get run {run_id}: {e}")
            raise DatabaseError(f"Failed to get run {run_id}", e)

    async def list_runs(
        self,
        environment: Optional[str] = None,
        limit: int = 50
    ) -> List[RunRecord]:
        """List runs newest first, optionally for one environment."""
        try:
            if environment:
                query = "SELECT * FROM runs WHERE environment = ? ORDER BY created_at DESC LIMIT ?"
                params = (environment, limit)
            else:
                query = "SELECT * FROM runs ORDER BY created_at DESC LIMIT ?"
                params = (limit,)

            async with self.db.execute(query, params) as cursor:
                rows = await cursor.fetchall()
                return [RunRecord(**dict(row)) for row in rows]
        except Exception as e:
            logger.error(f"Failed to list runs: {e}")
            raise DatabaseError("Failed to list runs", e)

    # Archive

    async def archive_environment(self, name: str, settings: Dict[str, Any]) -> ArchiveRecord:
        """Archive a snapshot of an environment's settings."""
        archive_id = str(uuid.uuid4())
        now = datetime.now()
        settings_json = json.dumps(settings)

        try:
            await self.db.execute(
                "INSERT INTO archive (archive_id, name, archived_at, settings_json) VALUES (?, ?, ?, ?)",
                (archive_id, name, now.isoformat(timespec="microseconds"), settings_json)
            )
            await self.db.commit()
            logger.info(f"Archived environment {name}")

            return ArchiveRecord(
                archive_id=archive_id,
                name=name,
                archived_at=now,
                settings_json=settings_json,
            )
        except Exception as e:
            logger.error(f"Failed to archive environment {name}: {e}")
            raise DatabaseError("Failed to archive environment", e)

    async def list_archive(self, limit: int = 50) -> List[ArchiveRecord]:
        """List archived environments newest first."""
        try:
            async with self.db.execute(
                "SELECT * FROM archive ORDER BY archived_at DESC LIMIT ?", (limit,)
            ) as cursor:
                rows = await cursor.fetchall()
                return [ArchiveRecord(**dict(row)) for row in rows]
        except Exception as e:
            logger.error(f"Failed to list archive: {e}")
            raise DatabaseError("Failed to list archive", e)
