"""Unit tests for run history and the environment archive."""

import aiosqlite
import pytest
import tempfile
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock, patch

from envprobe.exceptions import DatabaseError
from envprobe.history import HistoryStore
from envprobe.models import CheckResult, CheckStatus, Report, Verdict
from envprobe.schema import SCHEMA_VERSION, get_schema_version


def _report(*statuses):
    report = Report(strategy="static")
    for name, status in zip(["UI URL", "Login", "Backend API", "Database", "Console"], statuses):
        report.add(CheckResult(name=name, status=status, elapsed_ms=1200.0, notes="note"))
    report.finalize()
    return report


@pytest.fixture
async def store():
    """Create temporary history store for testing."""
    with tempfile.TemporaryDirectory() as tmpdir:
        db_path = str(Path(tmpdir) / "history" / "test.db")

        async with HistoryStore(db_path, history_limit=3) as hs:
            yield hs


@pytest.mark.asyncio
async def test_schema_initialized(store):
    """Test schema version is recorded."""
    assert await get_schema_version(store.db) == SCHEMA_VERSION


@pytest.mark.asyncio
async def test_save_run(store):
    """Test saving a completed report."""
    report = _report(CheckStatus.PASS, CheckStatus.WARNING)
    record = await store.save_run(report, "QA", "https://qa.example.com")

    assert record.run_id is not None
    assert record.environment == "QA"
    assert record.verdict == "GO"
    assert record.strategy == "static"


@pytest.mark.asyncio
async def test_get_run(store):
    """Test retrieving a run and its report."""
    report = _report(CheckStatus.PASS, CheckStatus.FAIL)
    saved = await store.save_run(report, "QA", "https://qa.example.com")

    retrieved = await store.get_run(saved.run_id)
    assert retrieved is not None
    assert retrieved.run_id == saved.run_id
    assert retrieved.verdict == "NO-GO"
    assert retrieved.target_url == "https://qa.example.com"

    restored = retrieved.get_report()
    assert restored.verdict == Verdict.NO_GO
    assert [c.name for c in restored.checks] == ["UI URL", "Login"]
    assert restored.checks[0].latency == "1.2s"


@pytest.mark.asyncio
async def test_run_not_found(store):
    """Test missing run."""
    assert await store.get_run("nonexistent") is None


@pytest.mark.asyncio
async def test_list_runs_newest_first(store):
    """Test runs are listed newest first."""
    first = await store.save_run(_report(CheckStatus.PASS), "QA", "https://qa.example.com")
    second = await store.save_run(_report(CheckStatus.FAIL), None, "https://adhoc.example.com")

    runs = await store.list_runs()
    assert [r.run_id for r in runs] == [second.run_id, first.run_id]
    assert runs[0].environment is None

    qa_runs = await store.list_runs(environment="QA")
    assert [r.run_id for r in qa_runs] == [first.run_id]


@pytest.mark.asyncio
async def test_history_limit(store):
    """Only the newest runs up to the limit are kept."""
    saved = []
    for _ in range(5):
        saved.append(await store.save_run(_report(CheckStatus.PASS), "QA", "https://qa.example.com"))

    runs = await store.list_runs(limit=50)
    assert len(runs) == 3
    assert runs[0].run_id == saved[-1].run_id
    assert await store.get_run(saved[0].run_id) is None


@pytest.mark.asyncio
async def test_archive_environment(store):
    """Test archiving environment settings."""
    settings = {"base_url": "https://beta.example.com", "password": "********"}
    record = await store.archive_environment("Beta", settings)

    assert record.name == "Beta"
    assert record.archived_at is not None

    archive = await store.list_archive()
    assert len(archive) == 1
    assert archive[0].name == "Beta"
    assert archive[0].get_settings() == settings


@pytest.mark.asyncio
async def test_unusable_database(tmp_path):
    """A path that cannot be opened raises DatabaseError."""
    with pytest.raises(DatabaseError):
        async with HistoryStore(str(tmp_path)):
            pass


@pytest.mark.asyncio
async def test_closed_store(tmp_path):
    """Operations on a closed store raise DatabaseError."""
    store = HistoryStore(str(tmp_path / "test.db"))
    with pytest.raises(DatabaseError):
        await store.list_runs()


@pytest.mark.asyncio
async def test_get_run_by_prefix(store):
    """The short ID shown in listings finds the run."""
    saved = await store.save_run(_report(CheckStatus.PASS), "QA", "https://qa.example.com")

    retrieved = await store.get_run(saved.run_id[:8])
    assert retrieved is not None
    assert retrieved.run_id == saved.run_id


@pytest.mark.asyncio
async def test_get_run_ambiguous_prefix(store):
    """A prefix matching several runs finds nothing."""
    await store.save_run(_report(CheckStatus.PASS), "QA", "https://qa.example.com")
    await store.save_run(_report(CheckStatus.PASS), "QA", "https://qa.example.com")

    assert await store.get_run("") is None


@pytest.mark.asyncio
async def test_failed_schema_closes_connection(tmp_path):
    """A connection opened before schema setup failed is closed."""
    connection = MagicMock()
    connection.close = AsyncMock()

    with patch("envprobe.history.aiosqlite.connect", AsyncMock(return_value=connection)), \
            patch("envprobe.history.initialize_database", AsyncMock(side_effect=aiosqlite.Error("disk I/O error"))):
        store = HistoryStore(str(tmp_path / "test.db"))
        with pytest.raises(DatabaseError):
            async with store:
                pass

    connection.close.assert_awaited_once()
    assert store.db is None
