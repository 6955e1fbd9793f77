# ==============================================================================
# CORE TESTS
# ==============================================================================
# Settings, exceptions, logging, engine and factory lifecycle
# ==============================================================================

import json
import logging

import pytest

from farm_data.core.exceptions import (
    DatabaseError,
    DatabaseErrorCode,
    DependencyViolationError,
    InvalidTableError,
    QueryTimeoutError,
)
from farm_data.core.logger import AuditLogger, JsonFormatter, setup_logging
from farm_data.core.settings import Environment, Settings
from farm_data.database.adapters.base_adapter import StorageEngineError, StorageErrorKind
from farm_data.database.adapters.sqlite_adapter import SQLiteEngine, classify_error
from farm_data.database.factory import DatabaseFactory
from farm_data.database.retry import RetryPolicy

from tests.conftest import FailingEngine, RecordingEngine


class TestSettings:
    """Tests for environment driven configuration."""

    def test_defaults(self, monkeypatch):
        for name in ("DB_INITIAL_RETRY_DELAY_MS", "DB_MAX_RETRY_DELAY_MS"):
            monkeypatch.delenv(name, raising=False)
        config = Settings(_env_file=None)

        assert config.DB_MAX_LIMIT == 1000
        assert config.DB_DEFAULT_RETRIES == 3
        assert config.DB_INITIAL_RETRY_DELAY_MS == 100
        assert config.DB_MAX_RETRY_DELAY_MS == 2000
        assert config.retryable_error_kinds == frozenset({"busy", "locked", "timeout"})

    def test_environment_overrides(self, monkeypatch):
        monkeypatch.setenv("ENVIRONMENT", "production")
        monkeypatch.setenv("DB_RETRYABLE_ERROR_KINDS", "busy, Locked")
        config = Settings(_env_file=None)

        assert config.ENVIRONMENT is Environment.PRODUCTION
        assert config.is_production is True
        assert config.retryable_error_kinds == frozenset({"busy", "locked"})

    def test_async_url(self, monkeypatch):
        monkeypatch.setenv("SQLITE_URL", "sqlite:///./farm.db")
        assert Settings(_env_file=None).sqlite_async_url == "sqlite+aiosqlite:///./farm.db"

    def test_invalid_log_format(self, monkeypatch):
        monkeypatch.setenv("LOG_FORMAT", "xml")
        with pytest.raises(ValueError):
            Settings(_env_file=None)


class TestExceptions:
    """Tests for the error hierarchy."""

    def test_codes_and_status(self):
        assert InvalidTableError("x").status_code == 400
        assert DependencyViolationError("blocked").status_code == 409
        assert DatabaseError("boom").status_code == 500

    def test_to_dict(self):
        error = QueryTimeoutError(250)
        payload = error.to_dict()

        assert payload["success"] is False
        assert payload["error"]["code"] == DatabaseErrorCode.QUERY_TIMEOUT.value
        assert payload["error"]["details"]["timeout_ms"] == 250


class TestLogging:
    """Tests for structured logging."""

    def test_json_formatter(self):
        record = logging.LogRecord("farm", logging.INFO, __file__, 1, "hello", None, None)
        record.event_type = "database"
        record.context = {"table": "farms"}

        entry = json.loads(JsonFormatter().format(record))

        assert entry["message"] == "hello"
        assert entry["type"] == "database"
        assert entry["context"] == {"table": "farms"}

    def test_setup_logging_installs_json_handler(self):
        root = logging.getLogger()
        saved_handlers, saved_level = list(root.handlers), root.level
        try:
            setup_logging("debug", "json")
            assert root.level == logging.DEBUG
            assert len(root.handlers) == 1
            assert isinstance(root.handlers[0].formatter, JsonFormatter)
        finally:
            for handler in list(root.handlers):
                root.removeHandler(handler)
            for handler in saved_handlers:
                root.addHandler(handler)
            root.setLevel(saved_level)

    def test_audit_logger_tags_records(self, caplog):
        audit = AuditLogger("farm_data.test")
        with caplog.at_level(logging.INFO, logger="farm_data.test"):
            audit.security("Rate limit exceeded", {"actor_id": "7"})
            audit.log_database("query", "farms", 3.2, True)

        security, database = caplog.records
        assert security.levelno == logging.WARNING
        assert security.event_type == "security"
        assert database.context["table"] == "farms"


class TestRetryPolicy:
    """Tests for the backoff schedule."""

    def test_delays_double_up_to_ceiling(self):
        policy = RetryPolicy(max_attempts=5, initial_delay_ms=100, max_delay_ms=300)
        assert [policy.delay_ms(n) for n in (1, 2, 3)] == [100, 200, 300]

    def test_only_listed_kinds_retry(self):
        policy = RetryPolicy(max_attempts=3)
        busy = StorageEngineError("busy", kind=StorageErrorKind.BUSY)
        syntax = StorageEngineError("bad", kind=StorageErrorKind.SYNTAX)

        assert policy.should_retry(busy, 1) is True
        assert policy.should_retry(busy, 3) is False
        assert policy.should_retry(syntax, 1) is False
        assert policy.should_retry(ValueError("x"), 1) is False


class TestSQLiteEngine:
    """Tests for the SQLite storage engine."""

    @pytest.mark.asyncio
    async def test_prepare_bind_first(self, engine):
        row = await engine.prepare("SELECT ? AS value").bind(5).first()
        assert row == {"value": 5}

    @pytest.mark.asyncio
    async def test_raw_rows(self, engine):
        rows = await engine.prepare("SELECT 1, 2").bind().raw()
        assert rows == [(1, 2)]

    @pytest.mark.asyncio
    async def test_errors_are_classified(self, engine):
        with pytest.raises(StorageEngineError) as exc:
            await engine.prepare("SELECT * FROM missing_table").bind().all()
        assert exc.value.kind is StorageErrorKind.SCHEMA

    def test_message_classification(self):
        assert classify_error(Exception("database is locked")).kind is StorageErrorKind.BUSY
        assert classify_error(Exception("database table is locked")).kind is StorageErrorKind.LOCKED
        assert classify_error(Exception("near 'SELEC': syntax error")).kind is StorageErrorKind.SYNTAX
        assert classify_error(Exception("strange")).kind is StorageErrorKind.UNKNOWN

    @pytest.mark.asyncio
    async def test_health_check(self, engine):
        assert await engine.health_check() is True
        await engine.disconnect()
        assert await engine.health_check() is False

    @pytest.mark.asyncio
    async def test_drop_schema(self, engine):
        await engine.drop_schema()
        with pytest.raises(StorageEngineError) as exc:
            await engine.prepare("SELECT COUNT(*) FROM farms").bind().first()
        assert exc.value.kind is StorageErrorKind.SCHEMA

    @pytest.mark.asyncio
    async def test_unconnected_engine_rejects_statements(self, tmp_path):
        idle = SQLiteEngine(f"sqlite+aiosqlite:///{tmp_path / 'idle.db'}")
        with pytest.raises(RuntimeError):
            await idle.prepare("SELECT 1").bind().all()


class TestDatabaseFactory:
    """Tests for the process-wide data access stack."""

    def test_accessors_require_initialization(self):
        with pytest.raises(RuntimeError):
            DatabaseFactory.get_operations()
        with pytest.raises(RuntimeError):
            DatabaseFactory.get_crud()

    @pytest.mark.asyncio
    async def test_initialize_is_idempotent(self):
        engine = RecordingEngine()
        first = await DatabaseFactory.initialize(engine=engine)
        second = await DatabaseFactory.initialize(engine=RecordingEngine())

        assert first is second
        assert DatabaseFactory.get_engine() is engine
        assert DatabaseFactory.is_initialized() is True

    @pytest.mark.asyncio
    async def test_health_check(self):
        assert await DatabaseFactory.health_check() == {"healthy": False}

        await DatabaseFactory.initialize(engine=RecordingEngine())
        health = await DatabaseFactory.health_check()

        assert health["healthy"] is True
        assert health["metrics"]["total_queries"] == 0

    @pytest.mark.asyncio
    async def test_connection_failure(self):
        class BrokenEngine(FailingEngine):
            async def connect(self) -> None:
                raise StorageEngineError("unable to open", kind=StorageErrorKind.CONNECTION)

        with pytest.raises(DatabaseError) as exc:
            await DatabaseFactory.initialize(engine=BrokenEngine())

        assert exc.value.details["storage_error_kind"] == "connection"
        assert DatabaseFactory.is_initialized() is False

    @pytest.mark.asyncio
    async def test_shutdown(self):
        await DatabaseFactory.initialize(engine=RecordingEngine())
        await DatabaseFactory.shutdown()
        assert DatabaseFactory.is_initialized() is False
