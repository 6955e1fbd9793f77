# ==============================================================================
# TRANSACTION TESTS
# ==============================================================================
# Atomic batches through DatabaseOperations and the Unit of Work
# ==============================================================================

import pytest

from farm_data.core.exceptions import DatabaseErrorCode, InvalidParameterError, TransactionError
from farm_data.core.settings import settings
from farm_data.database.adapters.base_adapter import StorageErrorKind
from farm_data.database.factory import DatabaseFactory
from farm_data.database.operations import DatabaseOperations, OperationKind, QueryRequest
from farm_data.database.unit_of_work import UnitOfWork, get_unit_of_work

from tests.conftest import FailingEngine, HangingEngine, RecordingEngine


def insert_user(email: str) -> QueryRequest:
    return QueryRequest(
        "INSERT INTO users (email, password_hash, name) VALUES (?, ?, ?)",
        [email, "hashed", email.split("@")[0]],
        OperationKind.RUN,
        "users",
    )


class TestExecuteTransaction:
    """Tests for atomic batch execution."""

    @pytest.mark.asyncio
    async def test_all_statements_applied(self, ops, crud):
        result = await ops.execute_transaction([
            insert_user("a@example.com"),
            insert_user("b@example.com"),
        ])

        assert result.success is True
        assert result.transaction_id.startswith("txn_")
        assert [r.changes for r in result.results] == [1, 1]
        assert result.results[0].last_insert_id is not None
        assert await crud.count("users") == 2

    @pytest.mark.asyncio
    async def test_failing_statement_rolls_back_everything(self, ops, crud):
        with pytest.raises(TransactionError) as exc:
            await ops.execute_transaction([
                insert_user("a@example.com"),
                QueryRequest(
                    "INSERT INTO farms (nme) VALUES (?)", ["Broken"], OperationKind.RUN, "farms"
                ),
            ])

        error = exc.value
        assert error.code is DatabaseErrorCode.TRANSACTION_ERROR
        assert "rolled back" in error.message
        assert error.details["storage_error_kind"] == StorageErrorKind.SCHEMA.value
        assert await crud.count("users") == 0

    @pytest.mark.asyncio
    async def test_malformed_middle_statement_discards_batch(self, ops, crud, owner):
        with pytest.raises(TransactionError) as exc:
            await ops.execute_transaction([
                crud.build_insert("farms", {"name": "First", "owner_id": owner["id"]}),
                QueryRequest(
                    "INSERT INTO farms name, owner_id VALUES (?, ?)",
                    ["Second", owner["id"]],
                    OperationKind.RUN,
                    "farms",
                ),
                crud.build_insert("farms", {"name": "Third", "owner_id": owner["id"]}),
            ])

        assert exc.value.details["storage_error_kind"] == StorageErrorKind.SYNTAX.value
        assert await crud.find_many("farms") == []

    @pytest.mark.asyncio
    async def test_constraint_violation_rolls_back(self, ops, crud):
        with pytest.raises(TransactionError):
            await ops.execute_transaction([
                insert_user("dup@example.com"),
                insert_user("dup@example.com"),
            ])
        assert await crud.count("users") == 0

    @pytest.mark.asyncio
    async def test_read_operations_shaped(self, ops):
        result = await ops.execute_transaction([
            insert_user("a@example.com"),
            QueryRequest(
                "SELECT email FROM users WHERE email = ?",
                ["a@example.com"],
                OperationKind.FIRST,
                "users",
            ),
        ])
        assert result.results[1].data == {"email": "a@example.com"}

    @pytest.mark.asyncio
    async def test_mapping_operations_default_to_run(self, ops, crud):
        await ops.execute_transaction([
            {
                "query": "INSERT INTO users (email, password_hash, name) VALUES (?, ?, ?)",
                "params": ["m@example.com", "hashed", "M"],
            }
        ])
        assert await crud.count("users", {"email": "m@example.com"}) == 1

    @pytest.mark.asyncio
    async def test_empty_batch_rejected(self, ops):
        with pytest.raises(TransactionError):
            await ops.execute_transaction([])

    @pytest.mark.asyncio
    async def test_oversized_batch_rejected(self):
        engine = RecordingEngine()
        ops = DatabaseOperations(engine)
        batch = [QueryRequest("SELECT 1")] * (settings.DB_MAX_TRANSACTION_OPERATIONS + 1)

        with pytest.raises(TransactionError) as exc:
            await ops.execute_transaction(batch)

        assert "too large" in exc.value.message
        assert engine.batches == []

    @pytest.mark.asyncio
    async def test_suspicious_operation_rejects_whole_batch(self):
        engine = RecordingEngine()
        ops = DatabaseOperations(engine)

        with pytest.raises(TransactionError) as exc:
            await ops.execute_transaction([
                QueryRequest("SELECT 1"),
                QueryRequest("DROP TABLE farms"),
            ])

        assert exc.value.details["operation_index"] == 1
        assert exc.value.details["cause_code"] == "SUSPICIOUS_ACTIVITY"
        assert engine.batches == []

    @pytest.mark.asyncio
    async def test_batch_failure_is_not_retried(self):
        engine = FailingEngine(StorageErrorKind.BUSY)
        ops = DatabaseOperations(engine)

        with pytest.raises(TransactionError):
            await ops.execute_transaction([QueryRequest("SELECT 1")])

        assert len(engine.batches) == 1

    @pytest.mark.asyncio
    async def test_batch_timeout(self):
        ops = DatabaseOperations(HangingEngine())

        with pytest.raises(TransactionError) as exc:
            await ops.execute_transaction([QueryRequest("SELECT 1")], timeout_ms=50)

        assert exc.value.details["cause_code"] == "QUERY_TIMEOUT"

    @pytest.mark.asyncio
    async def test_zero_timeout_rejected(self):
        engine = RecordingEngine()
        ops = DatabaseOperations(engine)

        with pytest.raises(InvalidParameterError):
            await ops.execute_transaction([QueryRequest("SELECT 1")], timeout_ms=0)

        assert engine.batches == []


class TestUnitOfWork:
    """Tests for staged transactional writes."""

    @pytest.mark.asyncio
    async def test_commit_on_exit(self, ops, crud):
        async with UnitOfWork(ops) as uow:
            index = uow.add(insert_user("a@example.com"))
            uow.add(insert_user("b@example.com"))
            assert uow.pending == 2

        assert index == 0
        assert uow.result is not None
        assert uow.is_active is False
        assert await crud.count("users") == 2

    @pytest.mark.asyncio
    async def test_exception_discards_staged_work(self, ops, crud):
        with pytest.raises(RuntimeError):
            async with UnitOfWork(ops) as uow:
                uow.add(insert_user("a@example.com"))
                raise RuntimeError("abort")

        assert uow.result is None
        assert await crud.count("users") == 0

    @pytest.mark.asyncio
    async def test_empty_unit_commits_nothing(self, ops):
        async with UnitOfWork(ops) as uow:
            pass
        assert uow.result is None

    def test_add_outside_context_rejected(self, ops):
        with pytest.raises(TransactionError):
            UnitOfWork(ops).add(insert_user("a@example.com"))

    @pytest.mark.asyncio
    async def test_factory_helper(self, engine):
        await DatabaseFactory.initialize(engine=engine)

        async with get_unit_of_work(actor_id="1") as uow:
            uow.add(insert_user("a@example.com"))

        crud = DatabaseFactory.get_crud()
        assert await crud.count("users") == 1
